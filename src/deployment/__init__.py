"""Deployment Orchestration.

Blue-green, canary, rolling and instant releases with pre-deployment
validation, a health-monitored observation window and automatic rollback.
"""

from .config import (
    CANARY_STEPS,
    DeploymentConfig,
    DeploymentStatus,
    Environment,
    OrchestratorConfig,
    Strategy,
    ValidationStatus,
)
from .models import (
    ALLOWED_TRANSITIONS,
    DeploymentMetrics,
    DeploymentRecord,
    TrafficStep,
    ValidationResult,
)
from .operators import EnvironmentOperator, InMemoryEnvironmentOperator
from .orchestrator import DeploymentOrchestrator
from .rollback import (
    RollbackExecutor,
    RollbackPlan,
    RollbackPlanner,
    RollbackResult,
)
from .validation import DeploymentValidator

__all__ = [
    # Config
    "CANARY_STEPS",
    "DeploymentConfig",
    "DeploymentStatus",
    "Environment",
    "OrchestratorConfig",
    "Strategy",
    "ValidationStatus",
    # Records
    "ALLOWED_TRANSITIONS",
    "DeploymentMetrics",
    "DeploymentRecord",
    "TrafficStep",
    "ValidationResult",
    # Operator
    "EnvironmentOperator",
    "InMemoryEnvironmentOperator",
    # Orchestrator
    "DeploymentOrchestrator",
    # Rollback
    "RollbackExecutor",
    "RollbackPlan",
    "RollbackPlanner",
    "RollbackResult",
    # Validation
    "DeploymentValidator",
]
