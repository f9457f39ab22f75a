"""
Webhook Notification Handler.

============================================================
PURPOSE
============================================================
Deliver alerts and critical heartbeats to Slack, Discord and
generic webhook endpoints.

PRINCIPLES:
- Notification-only, nothing is read back from the endpoints
- Per-channel rate limiting to prevent spam
- Delivery failures are logged and counted, never raised into
  the scheduler
- One message per alert batch, not one per alert

============================================================
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiohttp

from core.clock import ClockProtocol, SystemClock
from core.exceptions import NotificationError

from ..config import WebhookChannelSettings
from ..models import Alert, AlertLevel, Heartbeat, OverallStatus


logger = logging.getLogger(__name__)


# ============================================================
# NOTIFICATION
# ============================================================

@dataclass
class Notification:
    """One outbound message, before channel formatting."""
    message: str
    severity: str
    category: str
    installation_id: str
    timestamp: datetime
    data: Dict[str, Any] = field(default_factory=dict)
    notification_id: str = field(default_factory=lambda: f"notif_{uuid.uuid4().hex[:12]}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.notification_id,
            "message": self.message,
            "severity": self.severity,
            "category": self.category,
            "installation_id": self.installation_id,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


@dataclass
class DeliveryResult:
    """Outcome of sending one notification to one channel."""
    channel: str
    success: bool
    rate_limited: bool = False
    error: Optional[str] = None


# ============================================================
# FORMATTER
# ============================================================

class WebhookFormatter:
    """Builds channel-specific JSON payloads."""

    SEVERITY_ICONS = {
        "info": "ℹ️",
        "warning": "⚠️",
        "critical": "🚨",
    }

    # Slack attachment colors
    SEVERITY_COLORS = {
        "info": "good",
        "warning": "warning",
        "critical": "danger",
    }

    # Discord embed colors
    SEVERITY_COLOR_CODES = {
        "info": 0x36A64F,
        "warning": 0xFF9900,
        "critical": 0xFF0000,
    }

    USERNAME = "Installation Monitor"
    FOOTER = "Installation Keeper"

    @classmethod
    def _details(cls, data: Dict[str, Any], max_items: int = 5) -> str:
        lines = []
        for count, (key, value) in enumerate(data.items()):
            if count >= max_items:
                lines.append(f"... and {len(data) - count} more")
                break
            if isinstance(value, float):
                value = f"{value:.1f}"
            elif isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            lines.append(f"{key}: {value}")
        return "\n".join(lines)

    @classmethod
    def slack(cls, notification: Notification) -> Dict[str, Any]:
        icon = cls.SEVERITY_ICONS.get(notification.severity, "📌")
        fields = [
            {"title": "Installation ID", "value": notification.installation_id, "short": True},
            {"title": "Severity", "value": notification.severity.upper(), "short": True},
            {
                "title": "Time",
                "value": notification.timestamp.strftime("%Y-%m-%d %H:%M:%S UTC"),
                "short": True,
            },
        ]
        if notification.data:
            fields.append({"title": "Details", "value": cls._details(notification.data), "short": False})

        return {
            "username": cls.USERNAME,
            "icon_emoji": ":desktop_computer:",
            "attachments": [{
                "color": cls.SEVERITY_COLORS.get(notification.severity, "#cccccc"),
                "title": f"{icon} Installation Alert",
                "text": notification.message,
                "fields": fields,
                "footer": cls.FOOTER,
                "ts": int(notification.timestamp.timestamp()),
            }],
        }

    @classmethod
    def discord(cls, notification: Notification) -> Dict[str, Any]:
        icon = cls.SEVERITY_ICONS.get(notification.severity, "📌")
        fields = [
            {"name": "Installation ID", "value": notification.installation_id, "inline": True},
            {"name": "Severity", "value": notification.severity.upper(), "inline": True},
        ]
        if notification.data:
            fields.append({"name": "Details", "value": cls._details(notification.data), "inline": False})

        return {
            "username": cls.USERNAME,
            "embeds": [{
                "title": f"{icon} Installation Alert",
                "description": notification.message,
                "color": cls.SEVERITY_COLOR_CODES.get(notification.severity, 0xCCCCCC),
                "fields": fields,
                "timestamp": notification.timestamp.isoformat(),
                "footer": {"text": cls.FOOTER},
            }],
        }

    @classmethod
    def generic(cls, notification: Notification) -> Dict[str, Any]:
        return {
            "notification": notification.to_dict(),
            "installation_id": notification.installation_id,
            "timestamp": notification.timestamp.isoformat(),
        }

    @classmethod
    def format(cls, kind: str, notification: Notification) -> Dict[str, Any]:
        if kind == "slack":
            return cls.slack(notification)
        if kind == "discord":
            return cls.discord(notification)
        if kind == "webhook":
            return cls.generic(notification)
        raise NotificationError(f"Unknown channel type: {kind}", channel=kind)


# ============================================================
# RATE LIMITER
# ============================================================

class ChannelRateLimiter:
    """
    Minimum spacing between messages on each channel.

    A channel that sent less than `min_interval_seconds` ago is
    skipped, not queued.
    """

    def __init__(self, clock: Optional[ClockProtocol] = None):
        self._clock = clock or SystemClock()
        self._last_sent: Dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    def is_limited(self, channel: WebhookChannelSettings) -> bool:
        last = self._last_sent.get(channel.name)
        if last is None:
            return False
        return self._clock.seconds_since(last) < channel.min_interval_seconds

    async def acquire(self, channel: WebhookChannelSettings) -> bool:
        """Try to take the channel's send slot."""
        async with self._lock:
            if self.is_limited(channel):
                return False
            self._last_sent[channel.name] = self._clock.now()
            return True

    def reset(self, channel_name: Optional[str] = None) -> None:
        if channel_name is None:
            self._last_sent.clear()
        else:
            self._last_sent.pop(channel_name, None)


# ============================================================
# WEBHOOK NOTIFIER
# ============================================================

class WebhookNotifier:
    """
    Sends notifications to webhook channels.

    Usage:
        notifier = WebhookNotifier(scheduler.installation_id, settings.channels)
        notifier.attach(scheduler)
        ...
        await notifier.close()
    """

    LEVEL_ORDER = {AlertLevel.WARNING: 1, AlertLevel.CRITICAL: 2}

    def __init__(
        self,
        installation_id: str,
        channels: Optional[List[WebhookChannelSettings]] = None,
        min_level: AlertLevel = AlertLevel.WARNING,
        clock: Optional[ClockProtocol] = None,
        timeout_seconds: float = 10.0,
    ):
        """
        Initialize webhook notifier.

        Args:
            installation_id: Identifier included in every message
            channels: Channels to deliver to
            min_level: Lowest alert level that is sent
            clock: Clock for timestamps and rate limiting
            timeout_seconds: HTTP request timeout
        """
        self._installation_id = installation_id
        self._channels: Dict[str, WebhookChannelSettings] = {
            c.name: c for c in (channels or [])
        }
        self._min_level = min_level
        self._clock = clock or SystemClock()
        self._rate_limiter = ChannelRateLimiter(self._clock)
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

        self._sent = 0
        self._failed = 0
        self._rate_limited = 0

        if self._channels:
            logger.info(f"WebhookNotifier enabled with {len(self._channels)} channel(s)")
        else:
            logger.warning("WebhookNotifier has no channels configured")

    # =========================================================
    # CHANNELS
    # =========================================================

    def add_channel(self, channel: WebhookChannelSettings) -> None:
        self._channels[channel.name] = channel
        logger.info(f"Notification channel added: {channel.name} ({channel.kind})")

    def remove_channel(self, name: str) -> bool:
        if self._channels.pop(name, None) is None:
            return False
        self._rate_limiter.reset(name)
        logger.info(f"Notification channel removed: {name}")
        return True

    @property
    def channels(self) -> List[WebhookChannelSettings]:
        return list(self._channels.values())

    # =========================================================
    # SCHEDULER WIRING
    # =========================================================

    def attach(self, scheduler) -> None:
        """Subscribe to a MetricsScheduler's alert and heartbeat events."""
        scheduler.on_alerts(self.handle_alerts)
        scheduler.on_heartbeat(self.handle_heartbeat)

    async def handle_alerts(self, alerts: List[Alert]) -> List[DeliveryResult]:
        """Send one message for a batch of alerts at or above min_level."""
        selected = [
            a for a in alerts
            if self.LEVEL_ORDER.get(a.level, 0) >= self.LEVEL_ORDER[self._min_level]
        ]
        if not selected:
            return []

        severity = (
            AlertLevel.CRITICAL.value
            if any(a.level == AlertLevel.CRITICAL for a in selected)
            else AlertLevel.WARNING.value
        )
        if len(selected) == 1:
            message = selected[0].message
        else:
            message = f"{len(selected)} alerts raised:\n" + "\n".join(f"• {a.message}" for a in selected)

        return await self.send_notification(
            message,
            severity=severity,
            category="alert",
            data={"alert_types": [a.type for a in selected]},
        )

    async def handle_heartbeat(self, heartbeat: Heartbeat) -> List[DeliveryResult]:
        """Only critical heartbeats are forwarded."""
        if heartbeat.overall_status != OverallStatus.CRITICAL:
            return []
        return await self.send_notification(
            "Installation heartbeat shows critical status",
            severity="critical",
            category="heartbeat",
            data={k: v for k, v in heartbeat.quick_stats.to_dict().items() if v is not None},
        )

    # =========================================================
    # SENDING
    # =========================================================

    async def send_notification(
        self,
        message: str,
        severity: str = "info",
        category: str = "general",
        data: Optional[Dict[str, Any]] = None,
    ) -> List[DeliveryResult]:
        """Send to every enabled channel that is not rate limited."""
        notification = Notification(
            message=message,
            severity=severity,
            category=category,
            installation_id=self._installation_id,
            timestamp=self._clock.now(),
            data=data or {},
        )

        results = []
        for channel in list(self._channels.values()):
            if not channel.enabled:
                continue
            if not await self._rate_limiter.acquire(channel):
                self._rate_limited += 1
                logger.debug(f"Notification rate limited for channel: {channel.name}")
                results.append(DeliveryResult(channel=channel.name, success=False, rate_limited=True))
                continue
            results.append(await self._deliver(channel, notification))
        return results

    async def send_test(self, channel_name: str) -> DeliveryResult:
        """Send a test message to one channel, bypassing the rate limit."""
        channel = self._channels.get(channel_name)
        if channel is None:
            raise NotificationError(f"Unknown notification channel: {channel_name}", channel=channel_name)

        notification = Notification(
            message="Test notification from Installation Keeper",
            severity="info",
            category="test",
            installation_id=self._installation_id,
            timestamp=self._clock.now(),
        )
        return await self._deliver(channel, notification)

    async def _deliver(
        self,
        channel: WebhookChannelSettings,
        notification: Notification,
    ) -> DeliveryResult:
        try:
            if not channel.url:
                raise NotificationError(
                    f"{channel.kind} webhook URL not configured", channel=channel.name,
                )
            payload = WebhookFormatter.format(channel.kind, notification)
            await self._post(channel, payload)
            self._sent += 1
            return DeliveryResult(channel=channel.name, success=True)
        except (NotificationError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._failed += 1
            logger.error(f"Failed to send notification to {channel.name}: {e}")
            return DeliveryResult(channel=channel.name, success=False, error=str(e))

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _post(self, channel: WebhookChannelSettings, payload: Dict[str, Any]) -> None:
        session = await self._get_session()
        async with session.post(channel.url, json=payload) as response:
            if response.status >= 300:
                body = await response.text()
                raise NotificationError(
                    f"Webhook returned {response.status}: {body[:200]}",
                    channel=channel.name,
                    status_code=response.status,
                )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "channels": len(self._channels),
            "sent": self._sent,
            "failed": self._failed,
            "rate_limited": self._rate_limited,
        }
