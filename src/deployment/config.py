"""Deployment Orchestration: Configuration."""

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

# Traffic percentages a canary release ramps through, in order
CANARY_STEPS: Tuple[int, ...] = (5, 25, 50, 100)


class Strategy(enum.Enum):
    """Deployment strategy types."""

    BLUE_GREEN = "blue-green"
    CANARY = "canary"
    ROLLING = "rolling"
    INSTANT = "instant"


class Environment(enum.Enum):
    """Target environments."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PREVIEW = "preview"
    PRODUCTION = "production"


class DeploymentStatus(enum.Enum):
    """Lifecycle status of a deployment."""

    PENDING = "pending"
    DEPLOYING = "deploying"
    MONITORING = "monitoring"
    SUCCESS = "success"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentStatus.SUCCESS, DeploymentStatus.FAILED, DeploymentStatus.ROLLED_BACK)


class ValidationStatus(enum.Enum):
    """Status of a pre-deployment check."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeploymentConfig:
    """Per-run deployment request.

    `rollback_threshold` is an error-rate percentage; exceeding it during
    the canary ramp or the monitoring window aborts the run.
    """

    environment: Environment
    strategy: Strategy
    health_check_endpoint: str
    rollback_threshold: float = 5.0
    monitoring_duration_seconds: float = 300.0
    notification_channels: List[str] = field(default_factory=lambda: ["email", "slack"])
    # blue-green only: probe for the idle slot, defaults to the health endpoint
    idle_slot_endpoint: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.environment, Environment):
            self.environment = Environment(self.environment)
        if not isinstance(self.strategy, Strategy):
            self.strategy = Strategy(self.strategy)

    @property
    def slot_endpoint(self) -> str:
        return self.idle_slot_endpoint or self.health_check_endpoint


@dataclass
class OrchestratorConfig:
    """Orchestrator-wide tunables with sensible defaults."""

    poll_interval_seconds: float = 30.0
    canary_steps: Tuple[int, ...] = CANARY_STEPS
    canary_observation_seconds: float = 300.0
    rolling_timeout_seconds: float = 600.0
    # probes considered when computing the monitoring error rate
    health_window: int = 10
    history_size: int = 200
    escalation_channels: List[str] = field(default_factory=lambda: ["pagerduty", "slack"])
