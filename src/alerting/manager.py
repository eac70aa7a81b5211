"""Alerting - Alert Engine.

Evaluates threshold rules against each metrics snapshot and manages the
alert lifecycle: at most one open alert per rule, activation on the first
true evaluation, automatic resolution on the first false one.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from src.api_errors import ErrorCode, NotFoundError

from .channels import NotificationDispatcher, NotificationPayload
from .config import AlertConfig, AlertSeverity, AlertStatus
from .rules import AlertRule, default_rules, resolve_metric_path

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Alert:
    """A single firing of a rule."""

    rule_id: str
    severity: AlertSeverity
    message: str
    metric: str
    value: float
    threshold: float
    alert_id: str = field(default_factory=lambda: f"alert_{uuid.uuid4().hex}")
    status: AlertStatus = AlertStatus.ACTIVE
    created_at: datetime = field(default_factory=_utcnow)
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status != AlertStatus.RESOLVED

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "message": self.message,
            "metric": self.metric,
            "value": self.value,
            "threshold": self.threshold,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


class TransitionKind(Enum):
    ACTIVATED = "activated"
    RESOLVED = "resolved"


@dataclass
class AlertTransition:
    """Lifecycle change produced by one evaluation pass."""

    kind: TransitionKind
    alert: Alert
    rule: AlertRule


class AlertEngine:
    """Threshold-rule alert engine.

    Rules are evaluated in insertion order. Evaluation is synchronous and
    holds the engine lock; notification happens in `evaluate_and_notify`
    after the lock is released. Acknowledged alerts keep their rule's slot
    and resolve automatically like active ones.

    Example:
        engine = AlertEngine(dispatcher=NotificationDispatcher())
        await engine.evaluate_and_notify(metrics.to_dict())
        engine.get_active_alerts()
    """

    def __init__(
        self,
        config: Optional[AlertConfig] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        rules: Optional[Iterable[AlertRule]] = None,
    ) -> None:
        self._config = config or AlertConfig()
        self._dispatcher = dispatcher or NotificationDispatcher()
        self._rules: Dict[str, AlertRule] = {}
        self._alerts: Dict[str, Alert] = {}
        self._open_by_rule: Dict[str, str] = {}
        self._lock = threading.Lock()

        if rules is None and self._config.load_default_rules:
            rules = default_rules()
        for rule in rules or ():
            self._rules[rule.rule_id] = rule

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    # -- Rules -----------------------------------------------------------

    def add_rule(self, rule: AlertRule) -> None:
        """Add or replace a rule. Replacing keeps the rule's open alert."""
        with self._lock:
            self._rules[rule.rule_id] = rule
        logger.info("Alert rule %s registered (%s)", rule.rule_id, rule.metric)

    def remove_rule(self, rule_id: str) -> bool:
        """Remove a rule, resolving its open alert if any."""
        with self._lock:
            if self._rules.pop(rule_id, None) is None:
                return False
            self._close_rule_alert(rule_id)
        logger.info("Alert rule %s removed", rule_id)
        return True

    def replace_rules(self, rules: Iterable[AlertRule]) -> None:
        """Swap the whole rule set between evaluations."""
        new_rules = {rule.rule_id: rule for rule in rules}
        with self._lock:
            for rule_id in list(self._rules):
                if rule_id not in new_rules:
                    self._close_rule_alert(rule_id)
            self._rules = new_rules
        logger.info("Alert rules reloaded (%d rules)", len(new_rules))

    def get_rules(self) -> List[AlertRule]:
        with self._lock:
            return list(self._rules.values())

    # -- Evaluation ------------------------------------------------------

    def evaluate(self, snapshot: Mapping[str, Any]) -> List[AlertTransition]:
        """Evaluate every rule against one snapshot.

        Returns the activations and resolutions this snapshot caused.
        """
        transitions: List[AlertTransition] = []
        with self._lock:
            for rule in list(self._rules.values()):
                open_id = self._open_by_rule.get(rule.rule_id)
                if not rule.enabled:
                    if open_id is not None:
                        alert = self._close_rule_alert(rule.rule_id)
                        transitions.append(AlertTransition(TransitionKind.RESOLVED, alert, rule))
                    continue

                value = resolve_metric_path(snapshot, rule.metric)
                triggered = rule.matches(value)

                if triggered and open_id is None:
                    alert = Alert(
                        rule_id=rule.rule_id,
                        severity=rule.severity,
                        message=rule.describe(value),
                        metric=rule.metric,
                        value=value,
                        threshold=rule.threshold,
                    )
                    self._alerts[alert.alert_id] = alert
                    self._open_by_rule[rule.rule_id] = alert.alert_id
                    transitions.append(AlertTransition(TransitionKind.ACTIVATED, alert, rule))
                    logger.warning(
                        "Alert %s activated [%s]: %s",
                        alert.alert_id, alert.severity.value, alert.message,
                    )
                elif not triggered and open_id is not None:
                    alert = self._close_rule_alert(rule.rule_id)
                    transitions.append(AlertTransition(TransitionKind.RESOLVED, alert, rule))
            self._prune()
        return transitions

    async def evaluate_and_notify(self, snapshot: Mapping[str, Any]) -> List[AlertTransition]:
        """Evaluate, then notify each activated alert's channels."""
        transitions = self.evaluate(snapshot)
        for transition in transitions:
            if transition.kind is TransitionKind.ACTIVATED:
                await self._notify(transition.alert, transition.rule)
        return transitions

    async def _notify(self, alert: Alert, rule: AlertRule) -> None:
        payload = NotificationPayload(
            title=f"[{alert.severity.value.upper()}] {rule.name}",
            message=alert.message,
            severity=alert.severity.value,
            source="alerting",
            data=alert.to_dict(),
        )
        await self._dispatcher.dispatch(payload, rule.notification_channels)

    # -- Lifecycle -------------------------------------------------------

    def acknowledge(self, alert_id: str, by: str = "system") -> bool:
        """Acknowledge an active alert.

        Returns:
            True if the alert moved to ACKNOWLEDGED; False if it was
            already acknowledged or resolved.
        """
        with self._lock:
            alert = self._require(alert_id)
            if alert.status != AlertStatus.ACTIVE:
                return False
            alert.status = AlertStatus.ACKNOWLEDGED
            alert.acknowledged_at = _utcnow()
            alert.acknowledged_by = by
        logger.info("Alert %s acknowledged by %s", alert_id, by)
        return True

    def resolve(self, alert_id: str) -> bool:
        """Resolve an alert manually, freeing its rule's slot."""
        with self._lock:
            alert = self._require(alert_id)
            if alert.status == AlertStatus.RESOLVED:
                return False
            self._mark_resolved(alert)
            if self._open_by_rule.get(alert.rule_id) == alert_id:
                del self._open_by_rule[alert.rule_id]
            self._prune()
        return True

    def _require(self, alert_id: str) -> Alert:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise NotFoundError(
                f"Alert {alert_id} not found",
                ErrorCode.ALERT_NOT_FOUND,
                resource_type="alert",
                resource_id=alert_id,
            )
        return alert

    def _close_rule_alert(self, rule_id: str) -> Optional[Alert]:
        alert_id = self._open_by_rule.pop(rule_id, None)
        if alert_id is None:
            return None
        alert = self._alerts[alert_id]
        self._mark_resolved(alert)
        return alert

    @staticmethod
    def _mark_resolved(alert: Alert) -> None:
        alert.status = AlertStatus.RESOLVED
        alert.resolved_at = _utcnow()
        logger.info("Alert %s resolved", alert.alert_id)

    def _prune(self) -> None:
        resolved = [a for a in self._alerts.values() if a.status == AlertStatus.RESOLVED]
        excess = len(resolved) - self._config.max_alert_history
        if excess <= 0:
            return
        resolved.sort(key=lambda a: a.resolved_at)
        for alert in resolved[:excess]:
            del self._alerts[alert.alert_id]

    # -- Queries ---------------------------------------------------------

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    def get_active_alerts(self) -> List[Alert]:
        """Open alerts (active or acknowledged), most severe first."""
        with self._lock:
            open_alerts = [a for a in self._alerts.values() if a.is_open]
        return sorted(open_alerts, key=lambda a: (-a.severity.rank, a.created_at))

    def get_alerts(
        self,
        status: Optional[AlertStatus] = None,
        severity: Optional[AlertSeverity] = None,
    ) -> List[Alert]:
        """Get alerts with optional filtering, oldest first."""
        with self._lock:
            results = list(self._alerts.values())
        if status is not None:
            results = [a for a in results if a.status == status]
        if severity is not None:
            results = [a for a in results if a.severity == severity]
        return results

    def get_alert_count_by_severity(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for alert in self.get_alerts():
            key = alert.severity.value
            counts[key] = counts.get(key, 0) + 1
        return counts
