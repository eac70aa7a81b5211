"""Deployment Orchestration: Pre-Deployment Validation.

Checks run in a fixed order and the first failure stops the sequence.
Nothing touches the environment until every check has passed.
"""

import logging
import re
import time
from typing import Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlparse

from .config import DeploymentConfig, Environment, ValidationStatus
from .models import ValidationResult

logger = logging.getLogger(__name__)

ValidationHook = Callable[[DeploymentConfig, str], Awaitable[Optional[bool]]]

# Version strings: semver-like tags, build numbers or commit hashes
_VERSION_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]{0,127}$")

BUILD_ARTIFACTS = "build_artifacts"
SECURITY_SCAN = "security_scan"
REGRESSION_TEST = "regression_test"
DATABASE_MIGRATIONS = "database_migrations"
CONFIGURATION = "configuration"


def checks_for(environment: Environment) -> List[str]:
    """Ordered check names for an environment."""
    names = [BUILD_ARTIFACTS, SECURITY_SCAN, REGRESSION_TEST]
    if environment == Environment.PRODUCTION:
        names.append(DATABASE_MIGRATIONS)
    names.append(CONFIGURATION)
    return names


class DeploymentValidator:
    """Runs pre-deployment checks.

    Scanner-style checks (security scan, regression test, migrations) are
    delegated to registered hooks; without a hook they are recorded as
    SKIPPED. Build artifact and configuration checks have built-in rules
    and also run any hook registered for them.

    Example:
        validator = DeploymentValidator()
        validator.register_hook("security_scan", run_trivy)
        results = await validator.run_checks(config, "2.3.1")
    """

    def __init__(self) -> None:
        self._hooks: Dict[str, ValidationHook] = {}

    def register_hook(self, check_name: str, hook: ValidationHook) -> None:
        if check_name not in (BUILD_ARTIFACTS, SECURITY_SCAN, REGRESSION_TEST,
                              DATABASE_MIGRATIONS, CONFIGURATION):
            raise ValueError(f"Unknown validation check: {check_name}")
        self._hooks[check_name] = hook

    async def run_checks(self, config: DeploymentConfig, version: str) -> List[ValidationResult]:
        """Run checks in order, stopping after the first failure."""
        results: List[ValidationResult] = []
        for name in checks_for(config.environment):
            result = await self._run_one(name, config, version)
            results.append(result)
            logger.info("Validation %s: %s %s", name, result.status.value, result.message)
            if not result.passed:
                break
        return results

    async def _run_one(self, name: str, config: DeploymentConfig, version: str) -> ValidationResult:
        start = time.perf_counter()
        builtin = _BUILTIN_CHECKS.get(name)
        problems = builtin(config, version) if builtin else []
        hook = self._hooks.get(name)

        if problems:
            status, message = ValidationStatus.FAILED, "; ".join(problems)
        elif hook is not None:
            try:
                outcome = await hook(config, version)
            except Exception as exc:
                status, message = ValidationStatus.FAILED, f"{type(exc).__name__}: {exc}"
            else:
                if outcome is False:
                    status, message = ValidationStatus.FAILED, "check reported failure"
                else:
                    status, message = ValidationStatus.PASSED, ""
        elif builtin is None:
            status, message = ValidationStatus.SKIPPED, "no check registered"
        else:
            status, message = ValidationStatus.PASSED, ""

        return ValidationResult(
            name=name,
            status=status,
            message=message,
            duration_ms=(time.perf_counter() - start) * 1000,
        )


def _check_build_artifacts(config: DeploymentConfig, version: str) -> List[str]:
    if not version or not _VERSION_PATTERN.match(version):
        return [f"invalid version string {version!r}"]
    return []


def _is_http_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _check_configuration(config: DeploymentConfig, version: str) -> List[str]:
    problems = []
    if not 0 < config.rollback_threshold <= 100:
        problems.append("rollback_threshold must be in (0, 100]")
    if config.monitoring_duration_seconds < 0:
        problems.append("monitoring_duration_seconds must be non-negative")
    if not _is_http_url(config.health_check_endpoint):
        problems.append(f"health_check_endpoint is not an http(s) URL: {config.health_check_endpoint!r}")
    if config.idle_slot_endpoint and not _is_http_url(config.idle_slot_endpoint):
        problems.append(f"idle_slot_endpoint is not an http(s) URL: {config.idle_slot_endpoint!r}")
    if any(not str(c).strip() for c in config.notification_channels):
        problems.append("notification channel names must be non-empty")
    return problems


_BUILTIN_CHECKS = {
    BUILD_ARTIFACTS: _check_build_artifacts,
    CONFIGURATION: _check_configuration,
}
