"""Alerting - Notification Channels & Dispatch.

Channels are transports keyed by name ("email", "slack", "pagerduty", ...).
The dispatcher fans a payload out to the named channels and records each
delivery attempt; a failed delivery is logged, never raised, and never
changes alert or deployment state.
"""

import asyncio
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

import aiohttp

logger = logging.getLogger(__name__)


@dataclass
class NotificationPayload:
    """Payload for a notification."""

    title: str
    message: str
    severity: str = "info"
    source: str = "helmsman"
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "source": self.source,
            "data": self.data,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class DeliveryResult:
    """Result of a channel delivery attempt."""

    channel: str
    success: bool
    title: str = ""
    error: Optional[str] = None
    delivered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "channel": self.channel,
            "success": self.success,
            "title": self.title,
            "error": self.error,
            "delivered_at": self.delivered_at.isoformat(),
        }


@runtime_checkable
class NotificationChannel(Protocol):
    """Transport for delivering a payload to a named channel."""

    async def send(self, channel_name: str, payload: NotificationPayload) -> None: ...


class LoggingChannel:
    """Writes notifications to the application log.

    Used for channels that have no transport configured.
    """

    _LEVELS = {
        "info": logging.INFO,
        "warning": logging.WARNING,
        "critical": logging.ERROR,
        "emergency": logging.CRITICAL,
    }

    async def send(self, channel_name: str, payload: NotificationPayload) -> None:
        level = self._LEVELS.get(payload.severity, logging.INFO)
        logger.log(
            level, "[%s] %s: %s", channel_name, payload.title, payload.message,
            extra={"channel": channel_name, "severity": payload.severity},
        )


class WebhookChannel:
    """Posts notifications as JSON to per-channel webhook URLs.

    Example:
        channel = WebhookChannel({"slack": "https://hooks.slack.com/..."})
        await channel.send("slack", payload)
    """

    def __init__(
        self,
        urls: Dict[str, str],
        timeout_seconds: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.urls = dict(urls)
        self.timeout_seconds = timeout_seconds
        self._session = session

    def handles(self, channel_name: str) -> bool:
        return bool(self.urls.get(channel_name))

    async def send(self, channel_name: str, payload: NotificationPayload) -> None:
        url = self.urls.get(channel_name)
        if not url:
            raise ValueError(f"No webhook URL configured for channel '{channel_name}'")
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        body = {"channel": channel_name, **payload.to_dict()}
        if self._session is not None:
            async with self._session.post(url, json=body, timeout=timeout) as resp:
                resp.raise_for_status()
            return
        async with aiohttp.ClientSession() as session:
            async with session.post(url, json=body, timeout=timeout) as resp:
                resp.raise_for_status()


class NotificationDispatcher:
    """Dispatches payloads to notification channels.

    Channels registered by name take precedence; any other name falls back
    to the default transport. Maintains a bounded delivery log for audit
    and statistics.
    """

    def __init__(
        self,
        default_channel: Optional[NotificationChannel] = None,
        log_size: int = 1000,
    ) -> None:
        self._default = default_channel or LoggingChannel()
        self._channels: Dict[str, NotificationChannel] = {}
        self._delivery_log: deque = deque(maxlen=log_size)
        self._lock = threading.Lock()

    def register(self, channel_name: str, channel: NotificationChannel) -> None:
        self._channels[channel_name] = channel

    def channel_for(self, channel_name: str) -> NotificationChannel:
        return self._channels.get(channel_name, self._default)

    async def dispatch(
        self,
        payload: NotificationPayload,
        channel_names: Iterable[str],
    ) -> List[DeliveryResult]:
        """Deliver to every named channel concurrently.

        Returns one DeliveryResult per channel; never raises.
        """
        names = list(dict.fromkeys(channel_names))
        if not names:
            return []
        results = await asyncio.gather(*(self._deliver(name, payload) for name in names))
        with self._lock:
            self._delivery_log.extend(results)
        return list(results)

    async def _deliver(self, channel_name: str, payload: NotificationPayload) -> DeliveryResult:
        try:
            await self.channel_for(channel_name).send(channel_name, payload)
        except Exception as exc:
            logger.error(
                "Notification to %s failed: %s: %s",
                channel_name, type(exc).__name__, exc,
            )
            return DeliveryResult(
                channel=channel_name,
                success=False,
                title=payload.title,
                error=str(exc) or type(exc).__name__,
            )
        logger.debug("Dispatched '%s' to %s", payload.title, channel_name)
        return DeliveryResult(channel=channel_name, success=True, title=payload.title)

    def get_delivery_log(self, channel_name: Optional[str] = None) -> List[DeliveryResult]:
        """Get the delivery log, optionally filtered by channel."""
        with self._lock:
            log = list(self._delivery_log)
        if channel_name is not None:
            return [r for r in log if r.channel == channel_name]
        return log

    def get_channel_stats(self) -> Dict[str, int]:
        """Get delivery counts per channel."""
        stats: Dict[str, int] = {}
        for result in self.get_delivery_log():
            stats[result.channel] = stats.get(result.channel, 0) + 1
        return stats

    def clear_log(self) -> None:
        with self._lock:
            self._delivery_log.clear()
        logger.info("Delivery log cleared")
