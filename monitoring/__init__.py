"""
Monitoring Package.

============================================================
PURPOSE
============================================================
Continuous observation of an unattended installation machine.

PRINCIPLES:
1. OBSERVATIONAL - reads host state through a provider, never changes it
2. DETERMINISTIC - explicit threshold rules, no predictions
3. UNKNOWN IS NOT ZERO - missing metrics are skipped, never guessed
4. RESILIENT - a failing sensor or listener never stops the schedule

============================================================
COMPONENTS
============================================================
- MetricsScheduler: collection cycles, heartbeats, watched apps
- AlertEvaluator: snapshot + thresholds -> alerts
- WebhookNotifier: Slack / Discord / webhook delivery

============================================================
"""

from .models import (
    # Enums
    MetricStatus,
    AppRunState,
    AlertLevel,
    OverallStatus,

    # Metrics
    ResourceMetric,
    TemperatureReading,
    SystemMetrics,
    NetworkInterface,
    NetworkInfo,
    SecurityStatus,

    # Applications & displays
    WatchedApplication,
    AppStatus,
    AppHistoryEntry,
    DisplayStatus,

    # Cycle outputs
    Snapshot,
    Alert,
    QuickStats,
    Heartbeat,
)
from .config import AlertThresholds, MonitoringSettings, WebhookChannelSettings
from .events import EventBus, EventKind
from .interfaces import MetricsProvider
from .alerts import AlertEvaluator, AlertRule, evaluate_alerts, get_default_rules
from .scheduler import MetricsScheduler, generate_installation_id


__all__ = [
    # Enums
    "MetricStatus",
    "AppRunState",
    "AlertLevel",
    "OverallStatus",

    # Metrics
    "ResourceMetric",
    "TemperatureReading",
    "SystemMetrics",
    "NetworkInterface",
    "NetworkInfo",
    "SecurityStatus",

    # Applications & displays
    "WatchedApplication",
    "AppStatus",
    "AppHistoryEntry",
    "DisplayStatus",

    # Cycle outputs
    "Snapshot",
    "Alert",
    "QuickStats",
    "Heartbeat",

    # Configuration
    "AlertThresholds",
    "MonitoringSettings",
    "WebhookChannelSettings",

    # Events
    "EventBus",
    "EventKind",

    # Provider
    "MetricsProvider",

    # Alerts
    "AlertEvaluator",
    "AlertRule",
    "evaluate_alerts",
    "get_default_rules",

    # Scheduler
    "MetricsScheduler",
    "generate_installation_id",
]
