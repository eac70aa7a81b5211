"""Deployment Orchestration: Outcome Notifications."""

from typing import Optional

from src.alerting import AlertSeverity, NotificationPayload

from .config import DeploymentStatus
from .models import DeploymentRecord


def outcome_severity(record: DeploymentRecord) -> AlertSeverity:
    if record.status == DeploymentStatus.SUCCESS:
        return AlertSeverity.INFO
    if record.status == DeploymentStatus.ROLLED_BACK:
        return AlertSeverity.WARNING
    return AlertSeverity.CRITICAL


def _header(record: DeploymentRecord) -> str:
    return (
        f"Environment: {record.environment.value}\n"
        f"Version: {record.version}\n"
        f"Duration: {round(record.duration_seconds)}s"
    )


def _rollback_line(record: DeploymentRecord) -> str:
    result = record.rollback_result
    if result is None:
        return f"Rollback: {'Available' if record.rollback_available else 'Not Available'}"
    if result.success:
        return f"Rollback: Completed ({result.from_version} -> {result.to_version})"
    return f"Rollback: FAILED ({result.error})"


def format_outcome_message(record: DeploymentRecord) -> str:
    """Human-readable summary of a terminal deployment."""
    if record.status == DeploymentStatus.SUCCESS:
        return (
            f"Deployment {record.deployment_id} completed successfully!\n"
            f"{_header(record)}\n"
            f"Error Rate: {record.metrics.error_rate:.2f}%\n"
            f"Response Time: {record.metrics.response_time:.0f}ms"
        )
    headline = "was rolled back" if record.status == DeploymentStatus.ROLLED_BACK else "failed!"
    lines = [
        f"Deployment {record.deployment_id} {headline}",
        _header(record),
        f"Status: {record.status.value}",
    ]
    if record.failure_reason:
        lines.append(f"Cause: {record.failure_reason}")
    lines.append(_rollback_line(record))
    return "\n".join(lines)


def build_outcome_payload(
    record: DeploymentRecord,
    severity: Optional[AlertSeverity] = None,
) -> NotificationPayload:
    severity = severity or outcome_severity(record)
    if record.status == DeploymentStatus.SUCCESS:
        title = f"Deployment succeeded: {record.version} to {record.environment.value}"
    elif record.status == DeploymentStatus.ROLLED_BACK:
        title = f"Deployment rolled back: {record.version} on {record.environment.value}"
    else:
        title = f"Deployment failed: {record.version} to {record.environment.value}"
    if severity == AlertSeverity.EMERGENCY:
        title = f"EMERGENCY rollback failure: {record.version} on {record.environment.value}"
    return NotificationPayload(
        title=title,
        message=format_outcome_message(record),
        severity=severity.value,
        source="deployment",
        data={
            "deployment_id": record.deployment_id,
            "environment": record.environment.value,
            "version": record.version,
            "status": record.status.value,
        },
    )
