"""
Monitoring - Configuration.

============================================================
CONFIGURABLE MONITORING
============================================================

- Alert thresholds (cpu / memory / disk / temperature / restarts)
- Collection interval and heartbeat cap
- Application status history size
- Webhook notification channels

Configuration can be loaded from:
- Default values
- Environment variables (MONITOR_*)
- YAML config file

============================================================
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from core.exceptions import InvalidConfigError
from core.installation_config import parse_bool


logger = logging.getLogger(__name__)


DEFAULT_INTERVAL_MS = 30000
MAX_HEARTBEAT_INTERVAL_MS = 60000


# =============================================================
# ALERT THRESHOLDS
# =============================================================

# Operator-facing camelCase names accepted by AlertThresholds.merged().
_THRESHOLD_ALIASES = {
    "cpuUsage": "cpu_usage",
    "memoryUsage": "memory_usage",
    "diskUsage": "disk_usage",
    "temperatureCpu": "temperature_cpu",
    "appRestarts": "app_restarts",
}


@dataclass(frozen=True)
class AlertThresholds:
    """
    Thresholds the alert evaluator compares a snapshot against.

    Immutable: an update produces a new record via merged(), which the
    scheduler swaps in whole.
    """
    cpu_usage: float = 90.0
    memory_usage: float = 90.0
    disk_usage: float = 90.0
    temperature_cpu: float = 85.0
    app_restarts: int = 5

    def merged(self, partial: Mapping[str, Any]) -> "AlertThresholds":
        """
        Return a copy with `partial` applied on top.

        Raises:
            InvalidConfigError: unknown key or non-numeric value
        """
        known = {f.name for f in fields(self)}
        changes: Dict[str, Any] = {}
        for key, value in partial.items():
            name = _THRESHOLD_ALIASES.get(key, key)
            if name not in known:
                raise InvalidConfigError(key, value, "unknown alert threshold")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidConfigError(key, value, "threshold must be a number")
            if value < 0:
                raise InvalidConfigError(key, value, "threshold must not be negative")
            changes[name] = int(value) if name == "app_restarts" else float(value)
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, float]:
        return {
            "cpu_usage": self.cpu_usage,
            "memory_usage": self.memory_usage,
            "disk_usage": self.disk_usage,
            "temperature_cpu": self.temperature_cpu,
            "app_restarts": self.app_restarts,
        }


# =============================================================
# NOTIFICATION CHANNELS
# =============================================================


@dataclass
class WebhookChannelSettings:
    """One outbound webhook channel."""
    name: str
    kind: str = "webhook"  # slack | discord | webhook
    url: Optional[str] = None
    enabled: bool = True
    min_interval_seconds: float = 60.0

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "WebhookChannelSettings":
        return cls(
            name=name,
            kind=str(data.get("kind", name)),
            url=data.get("url") or data.get("webhook"),
            enabled=parse_bool(data.get("enabled"), default=True),
            min_interval_seconds=float(data.get("min_interval_seconds", 60.0)),
        )


# =============================================================
# MAIN CONFIGURATION
# =============================================================


@dataclass
class MonitoringSettings:
    """Runtime settings for the metrics scheduler and notifier."""
    interval_ms: int = DEFAULT_INTERVAL_MS
    max_heartbeat_interval_ms: int = MAX_HEARTBEAT_INTERVAL_MS
    app_history_size: int = 100
    thresholds: AlertThresholds = field(default_factory=AlertThresholds)
    channels: List[WebhookChannelSettings] = field(default_factory=list)
    request_timeout_seconds: float = 10.0

    @property
    def heartbeat_interval_ms(self) -> int:
        return min(self.interval_ms, self.max_heartbeat_interval_ms)

    @classmethod
    def from_env(cls) -> "MonitoringSettings":
        """
        Load configuration from environment variables.

        Environment variables:
        - MONITOR_INTERVAL_MS
        - MONITOR_APP_HISTORY_SIZE
        - MONITOR_THRESHOLD_CPU / _MEMORY / _DISK / _TEMPERATURE
        - MONITOR_SLACK_WEBHOOK
        - MONITOR_DISCORD_WEBHOOK
        - MONITOR_WEBHOOK_URL
        """
        config = cls()

        if os.getenv("MONITOR_INTERVAL_MS"):
            config.interval_ms = int(os.getenv("MONITOR_INTERVAL_MS"))
        if os.getenv("MONITOR_APP_HISTORY_SIZE"):
            config.app_history_size = int(os.getenv("MONITOR_APP_HISTORY_SIZE"))

        partial = {}
        for env_name, key in (
            ("MONITOR_THRESHOLD_CPU", "cpu_usage"),
            ("MONITOR_THRESHOLD_MEMORY", "memory_usage"),
            ("MONITOR_THRESHOLD_DISK", "disk_usage"),
            ("MONITOR_THRESHOLD_TEMPERATURE", "temperature_cpu"),
        ):
            if os.getenv(env_name):
                partial[key] = float(os.getenv(env_name))
        if partial:
            config.thresholds = config.thresholds.merged(partial)

        for env_name, kind in (
            ("MONITOR_SLACK_WEBHOOK", "slack"),
            ("MONITOR_DISCORD_WEBHOOK", "discord"),
            ("MONITOR_WEBHOOK_URL", "webhook"),
        ):
            url = os.getenv(env_name)
            if url:
                config.channels.append(WebhookChannelSettings(name=kind, kind=kind, url=url))

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "MonitoringSettings":
        """Load configuration from YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load YAML config from {path}: {e}")
            return cls()

        config = cls()
        if "interval_ms" in data:
            config.interval_ms = int(data["interval_ms"])
        if "app_history_size" in data:
            config.app_history_size = int(data["app_history_size"])
        if "request_timeout_seconds" in data:
            config.request_timeout_seconds = float(data["request_timeout_seconds"])
        if isinstance(data.get("thresholds"), Mapping):
            config.thresholds = config.thresholds.merged(data["thresholds"])
        if isinstance(data.get("channels"), Mapping):
            config.channels = [
                WebhookChannelSettings.from_dict(name, channel or {})
                for name, channel in data["channels"].items()
            ]
        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interval_ms": self.interval_ms,
            "heartbeat_interval_ms": self.heartbeat_interval_ms,
            "app_history_size": self.app_history_size,
            "thresholds": self.thresholds.to_dict(),
            "channels": [c.name for c in self.channels],
        }
