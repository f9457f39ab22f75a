"""
Tests for the Event Bus and Webhook Notifications.

============================================================
PURPOSE
============================================================
Verifies listener isolation on the event bus, webhook payload
formatting, per-channel rate limiting and failure handling.

HTTP is never touched: WebhookNotifier._post is patched.
============================================================
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from core.clock import MockClock
from core.exceptions import NotificationError
from monitoring import MetricsProvider, MetricsScheduler
from monitoring.config import MonitoringSettings, WebhookChannelSettings
from monitoring.events import EventBus, EventKind
from monitoring.models import (
    Alert,
    AlertLevel,
    Heartbeat,
    NetworkInfo,
    OverallStatus,
    QuickStats,
    SecurityStatus,
    SystemMetrics,
)
from monitoring.notifications import (
    ChannelRateLimiter,
    Notification,
    WebhookFormatter,
    WebhookNotifier,
)


NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    return MockClock(NOW)


@pytest.fixture
def slack():
    return WebhookChannelSettings(name="slack", kind="slack", url="https://hooks.slack.test/abc")


@pytest.fixture
def discord():
    return WebhookChannelSettings(name="discord", kind="discord", url="https://discord.test/api/webhooks/1")


@pytest.fixture
def notifier(clock, slack, discord):
    notifier = WebhookNotifier("inst-1", [slack, discord], clock=clock)
    notifier._post = AsyncMock()
    return notifier


@pytest.fixture
def notification():
    return Notification(
        message="High CPU usage: 96.0%",
        severity="warning",
        category="alert",
        installation_id="inst-1",
        timestamp=NOW,
        data={"cpu": 96.0, "alert_types": ["cpu_high"]},
    )


def make_alert(alert_type: str, level: AlertLevel, message: str) -> Alert:
    return Alert(type=alert_type, level=level, message=message, snapshot_time=NOW)


# ============================================================
# EVENT BUS
# ============================================================

class TestEventBus:

    def test_publish_to_subscribers(self):
        bus = EventBus()
        received = []
        bus.subscribe(EventKind.HEARTBEAT, received.append)

        assert bus.publish(EventKind.HEARTBEAT, "beat") == 1
        assert bus.publish(EventKind.ERROR, "ignored") == 0
        assert received == ["beat"]

    def test_duplicate_subscription_is_noop(self):
        bus = EventBus()
        listener = MagicMock()
        bus.subscribe(EventKind.ERROR, listener)
        bus.subscribe(EventKind.ERROR, listener)

        bus.publish(EventKind.ERROR, "e")

        assert bus.listener_count(EventKind.ERROR) == 1
        listener.assert_called_once_with("e")

    def test_raising_listener_does_not_block_others(self):
        bus = EventBus()
        received = []
        bus.subscribe(EventKind.SNAPSHOT_UPDATED, MagicMock(side_effect=RuntimeError("bug")))
        bus.subscribe(EventKind.SNAPSHOT_UPDATED, received.append)

        assert bus.publish(EventKind.SNAPSHOT_UPDATED, "snap") == 1
        assert received == ["snap"]

    def test_unsubscribe(self):
        bus = EventBus()
        listener = MagicMock()
        bus.subscribe(EventKind.ALERTS_RAISED, listener)
        bus.unsubscribe(EventKind.ALERTS_RAISED, listener)
        bus.unsubscribe(EventKind.ALERTS_RAISED, listener)

        bus.publish(EventKind.ALERTS_RAISED, [])
        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_async_listener_is_scheduled(self):
        bus = EventBus()
        received = []

        async def listener(payload):
            await asyncio.sleep(0)
            received.append(payload)

        bus.subscribe(EventKind.HEARTBEAT, listener)
        bus.publish(EventKind.HEARTBEAT, "beat")
        assert received == []

        await bus.drain()
        assert received == ["beat"]

    @pytest.mark.asyncio
    async def test_failing_async_listener_is_contained(self):
        bus = EventBus()

        async def listener(payload):
            raise RuntimeError("async bug")

        bus.subscribe(EventKind.ERROR, listener)
        bus.publish(EventKind.ERROR, "e")
        await bus.drain()


# ============================================================
# FORMATTER
# ============================================================

class TestWebhookFormatter:

    def test_slack_payload(self, notification):
        payload = WebhookFormatter.slack(notification)

        attachment = payload["attachments"][0]
        assert attachment["color"] == "warning"
        assert attachment["text"] == "High CPU usage: 96.0%"
        assert attachment["ts"] == int(NOW.timestamp())
        titles = [f["title"] for f in attachment["fields"]]
        assert titles == ["Installation ID", "Severity", "Time", "Details"]
        assert "cpu: 96.0" in attachment["fields"][-1]["value"]

    def test_discord_payload(self, notification):
        embed = WebhookFormatter.discord(notification)["embeds"][0]

        assert embed["description"] == "High CPU usage: 96.0%"
        assert embed["color"] == 0xFF9900
        assert embed["timestamp"] == NOW.isoformat()

    def test_generic_payload(self, notification):
        payload = WebhookFormatter.format("webhook", notification)
        assert payload["notification"]["message"] == "High CPU usage: 96.0%"
        assert payload["installation_id"] == "inst-1"

    def test_unknown_kind(self, notification):
        with pytest.raises(NotificationError):
            WebhookFormatter.format("pager", notification)

    def test_details_truncated(self):
        data = {f"k{i}": i for i in range(8)}
        text = WebhookFormatter._details(data, max_items=5)
        assert text.splitlines()[-1] == "... and 3 more"


# ============================================================
# RATE LIMITER
# ============================================================

class TestChannelRateLimiter:

    @pytest.mark.asyncio
    async def test_spacing_per_channel(self, clock, slack, discord):
        limiter = ChannelRateLimiter(clock)

        assert await limiter.acquire(slack) is True
        assert await limiter.acquire(slack) is False
        assert await limiter.acquire(discord) is True

        clock.advance(60)
        assert await limiter.acquire(slack) is True

    @pytest.mark.asyncio
    async def test_reset(self, clock, slack):
        limiter = ChannelRateLimiter(clock)
        await limiter.acquire(slack)
        limiter.reset("slack")
        assert not limiter.is_limited(slack)


# ============================================================
# NOTIFIER
# ============================================================

class TestWebhookNotifier:

    @pytest.mark.asyncio
    async def test_alert_batch_is_one_message(self, notifier):
        results = await notifier.handle_alerts([
            make_alert("cpu_high", AlertLevel.WARNING, "High CPU usage: 96.0%"),
            make_alert("disk_high", AlertLevel.CRITICAL, "High disk usage: 97.0%"),
        ])

        assert [r.success for r in results] == [True, True]
        assert notifier._post.await_count == 2
        channel, payload = notifier._post.await_args_list[0].args
        assert channel.name == "slack"
        attachment = payload["attachments"][0]
        assert attachment["color"] == "danger"
        assert attachment["text"].startswith("2 alerts raised:")

    @pytest.mark.asyncio
    async def test_min_level_filters(self, clock, slack):
        notifier = WebhookNotifier("inst-1", [slack], min_level=AlertLevel.CRITICAL, clock=clock)
        notifier._post = AsyncMock()

        results = await notifier.handle_alerts([
            make_alert("cpu_high", AlertLevel.WARNING, "High CPU usage: 96.0%"),
        ])

        assert results == []
        notifier._post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limited_channel_is_skipped(self, notifier, clock):
        await notifier.send_notification("first", severity="warning")
        results = await notifier.send_notification("second", severity="warning")

        assert all(r.rate_limited for r in results)
        assert notifier.get_statistics()["rate_limited"] == 2

        clock.advance(61)
        results = await notifier.send_notification("third", severity="warning")
        assert all(r.success for r in results)

    @pytest.mark.asyncio
    async def test_only_critical_heartbeats_are_sent(self, notifier):
        good = Heartbeat("inst-1", NOW, 10.0, OverallStatus.WARNING)
        critical = Heartbeat("inst-1", NOW, 10.0, OverallStatus.CRITICAL, QuickStats(cpu=97.0, apps=2))

        assert await notifier.handle_heartbeat(good) == []
        results = await notifier.handle_heartbeat(critical)

        assert len(results) == 2
        _, payload = notifier._post.await_args_list[0].args
        details = payload["attachments"][0]["fields"][-1]["value"]
        assert "cpu: 97.0" in details
        assert "memory" not in details

    @pytest.mark.asyncio
    async def test_delivery_failure_is_reported_not_raised(self, notifier):
        notifier._post.side_effect = aiohttp.ClientError("connection refused")

        results = await notifier.send_notification("boom", severity="critical")

        assert [r.success for r in results] == [False, False]
        assert "connection refused" in results[0].error
        assert notifier.get_statistics()["failed"] == 2

    @pytest.mark.asyncio
    async def test_http_error_status(self, notifier):
        notifier._post.side_effect = NotificationError("Webhook returned 500", status_code=500)
        result = await notifier.send_test("slack")
        assert not result.success

    @pytest.mark.asyncio
    async def test_missing_url(self, clock):
        notifier = WebhookNotifier("inst-1", [WebhookChannelSettings(name="webhook")], clock=clock)
        notifier._post = AsyncMock()

        result = await notifier.send_test("webhook")

        assert not result.success
        assert "URL not configured" in result.error
        notifier._post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_test_unknown_channel(self, notifier):
        with pytest.raises(NotificationError):
            await notifier.send_test("email")

    @pytest.mark.asyncio
    async def test_send_test_bypasses_rate_limit(self, notifier):
        await notifier.send_notification("first")
        result = await notifier.send_test("slack")
        assert result.success

    @pytest.mark.asyncio
    async def test_disabled_channel(self, notifier, discord):
        discord.enabled = False
        results = await notifier.send_notification("hello")
        assert [r.channel for r in results] == ["slack"]

    @pytest.mark.asyncio
    async def test_channel_management(self, notifier):
        assert notifier.remove_channel("discord") is True
        assert notifier.remove_channel("discord") is False
        notifier.add_channel(WebhookChannelSettings(name="ops", url="https://ops.test/hook"))
        assert [c.name for c in notifier.channels] == ["slack", "ops"]

    @pytest.mark.asyncio
    async def test_attached_to_scheduler(self, notifier, clock):
        provider = AsyncMock(spec=MetricsProvider)
        provider.get_system_metrics.return_value = SystemMetrics.from_usage(cpu=96, memory=50, disk=50)
        provider.get_network_info.return_value = NetworkInfo()
        provider.get_display_info.return_value = []
        provider.get_security_status.return_value = SecurityStatus()

        scheduler = MetricsScheduler(provider=provider, clock=clock)
        notifier.attach(scheduler)

        await scheduler.collect_now()
        await scheduler.send_heartbeat()
        await scheduler.events.drain()

        # One alert message per channel, then the heartbeat is rate limited
        assert notifier._post.await_count == 2
        _, payload = notifier._post.await_args_list[0].args
        assert payload["attachments"][0]["text"] == "High CPU usage: 96.0%"
        assert notifier.get_statistics()["rate_limited"] == 2


class TestSettingsChannels:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MONITOR_SLACK_WEBHOOK", "https://hooks.slack.test/x")
        monkeypatch.setenv("MONITOR_INTERVAL_MS", "10000")
        monkeypatch.setenv("MONITOR_THRESHOLD_CPU", "80")

        settings = MonitoringSettings.from_env()

        assert settings.interval_ms == 10000
        assert settings.heartbeat_interval_ms == 10000
        assert settings.thresholds.cpu_usage == 80
        assert [(c.name, c.kind) for c in settings.channels] == [("slack", "slack")]

    def test_heartbeat_capped(self):
        assert MonitoringSettings(interval_ms=300000).heartbeat_interval_ms == 60000

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "monitoring.yaml"
        path.write_text(
            "interval_ms: 15000\n"
            "thresholds:\n"
            "  diskUsage: 85\n"
            "channels:\n"
            "  alerts:\n"
            "    kind: discord\n"
            "    url: https://discord.test/hook\n"
            "    min_interval_seconds: 5\n"
        )

        settings = MonitoringSettings.from_yaml(path)

        assert settings.interval_ms == 15000
        assert settings.thresholds.disk_usage == 85
        channel = settings.channels[0]
        assert (channel.name, channel.kind, channel.min_interval_seconds) == ("alerts", "discord", 5.0)

    def test_channel_string_flag(self):
        off = WebhookChannelSettings.from_dict("ops", {"url": "https://ops.test/hook", "enabled": "off"})
        on = WebhookChannelSettings.from_dict("ops", {"url": "https://ops.test/hook"})

        assert off.enabled is False
        assert on.enabled is True

    def test_from_yaml_missing_file(self, tmp_path):
        settings = MonitoringSettings.from_yaml(tmp_path / "nope.yaml")
        assert settings.interval_ms == MonitoringSettings().interval_ms
