"""Log Context Management.

Binds deployment and request identifiers to every log entry emitted
inside a scope, using contextvars so concurrent deployment runs on the
same event loop never see each other's context.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


_correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
_deployment_id_var: ContextVar[str] = ContextVar("deployment_id", default="")
_environment_var: ContextVar[str] = ContextVar("environment", default="")
_extra_context_var: ContextVar[dict] = ContextVar("extra_context", default={})


def generate_correlation_id() -> str:
    """Generate a unique correlation ID using UUID4."""
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Get the current correlation ID from context."""
    return _correlation_id_var.get()


def get_deployment_id() -> str:
    """Get the deployment ID bound to the current context."""
    return _deployment_id_var.get()


def get_context_dict() -> dict[str, Any]:
    """Get all context variables as a dictionary for log binding."""
    ctx = {}
    corr_id = _correlation_id_var.get()
    if corr_id:
        ctx["correlation_id"] = corr_id
    deployment_id = _deployment_id_var.get()
    if deployment_id:
        ctx["deployment_id"] = deployment_id
    environment = _environment_var.get()
    if environment:
        ctx["environment"] = environment
    extra = _extra_context_var.get()
    if extra:
        ctx.update(extra)
    return ctx


@dataclass
class LogContext:
    """Context manager for scoped logging context.

    Binds correlation_id, deployment_id and environment to all log entries
    within the context and restores the previous values on exit.

    Example:
        with LogContext(deployment_id="deploy_abc", environment="staging"):
            logger.info("switching traffic")  # includes deployment_id
    """

    correlation_id: str = ""
    deployment_id: str = ""
    environment: str = ""
    extra: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    _tokens: list = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.correlation_id:
            self.correlation_id = generate_correlation_id()

    def __enter__(self) -> "LogContext":
        self._tokens = [
            (_correlation_id_var, _correlation_id_var.set(self.correlation_id)),
            (_deployment_id_var, _deployment_id_var.set(self.deployment_id)),
            (_environment_var, _environment_var.set(self.environment)),
            (_extra_context_var, _extra_context_var.set(self.extra.copy())),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since context was created."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000

    def bind(self, **kwargs: Any) -> None:
        """Add extra key-value pairs to the context."""
        current = _extra_context_var.get()
        _extra_context_var.set({**current, **kwargs})
        self.extra.update(kwargs)
