"""
Core Module - Installation Configuration.

============================================================
PURPOSE
============================================================
Typed view of the installation's configuration document.

The configuration store holds a plain nested mapping (the shape
an operator edits). Scoring and validation never read that mapping
directly: they parse it into the dataclasses below, which name
every field they rely on.

============================================================
PARSING RULES
============================================================
- Parsing never raises. A malformed value is treated as absent,
  and absent values are what the health scorer penalizes.
- Nested sections are merged with merge_config(): the override
  wins, recursively for nested mappings only. Lists and scalars
  are replaced wholesale.

============================================================
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


logger = logging.getLogger(__name__)


DEFAULT_INSTALLATION_NAME = "Installation Keeper"
DEFAULT_INTERVAL_MS = 30000


# ============================================================
# MERGE
# ============================================================

def merge_config(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merge two configuration mappings.

    Values from `override` take precedence. Nested mappings are merged
    recursively; every other value type replaces the base value.
    Neither input is modified.
    """
    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        existing = merged.get(key)
        if isinstance(value, Mapping) and isinstance(existing, Mapping):
            merged[key] = merge_config(existing, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


_TRUE_STRINGS = ("true", "1", "yes", "on")
_FALSE_STRINGS = ("false", "0", "no", "off")


def parse_bool(value: Any, default: bool = False) -> bool:
    """Parse a flag; "false" and "off" are false. Unrecognized values give `default`."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    return default


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


# ============================================================
# MONITORING SECTION
# ============================================================

@dataclass
class LevelThresholds:
    """Warning and critical breakpoints for one metric."""

    warning: Optional[float] = None
    critical: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["LevelThresholds"]:
        if not isinstance(data, Mapping):
            return None
        return cls(
            warning=_as_number(data.get("warning")),
            critical=_as_number(data.get("critical")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"warning": self.warning, "critical": self.critical}


def _default_level_thresholds() -> Dict[str, LevelThresholds]:
    return {
        "cpu": LevelThresholds(warning=70, critical=90),
        "memory": LevelThresholds(warning=70, critical=90),
        "disk": LevelThresholds(warning=80, critical=95),
        "temperature": LevelThresholds(warning=75, critical=85),
    }


@dataclass
class MonitoringConfig:
    """Monitoring section of the installation configuration."""

    enabled: bool = True
    interval_ms: Optional[float] = DEFAULT_INTERVAL_MS
    thresholds: Optional[Dict[str, LevelThresholds]] = field(default_factory=_default_level_thresholds)
    applications: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "MonitoringConfig":
        if not isinstance(data, Mapping):
            return cls(enabled=False, interval_ms=None, thresholds=None)

        thresholds = None
        raw_thresholds = data.get("thresholds")
        if isinstance(raw_thresholds, Mapping) and raw_thresholds:
            thresholds = {}
            for name, raw in raw_thresholds.items():
                parsed = LevelThresholds.from_dict(raw)
                if parsed is not None:
                    thresholds[str(name)] = parsed
            thresholds = thresholds or None

        applications = data.get("applications")
        return cls(
            enabled=parse_bool(data.get("enabled")),
            interval_ms=_as_number(_pick(data, "interval_ms", "interval")),
            thresholds=thresholds,
            applications=[str(a) for a in applications] if isinstance(applications, list) else [],
        )

    def critical_threshold(self, metric: str) -> Optional[float]:
        if not self.thresholds or metric not in self.thresholds:
            return None
        return self.thresholds[metric].critical

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "interval_ms": self.interval_ms,
            "thresholds": (
                {k: v.to_dict() for k, v in self.thresholds.items()}
                if self.thresholds is not None else None
            ),
            "applications": list(self.applications),
        }


# ============================================================
# NOTIFICATION SECTION
# ============================================================

@dataclass
class ChannelConfig:
    """One notification channel (slack, discord, email, webhook)."""

    enabled: bool = False
    webhook: Optional[str] = None
    urls: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "ChannelConfig":
        if not isinstance(data, Mapping):
            return cls()
        urls = data.get("urls")
        return cls(
            enabled=parse_bool(data.get("enabled")),
            webhook=_as_text(data.get("webhook")),
            urls=[str(u) for u in urls] if isinstance(urls, list) else [],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "webhook": self.webhook, "urls": list(self.urls)}


def _default_channels() -> Dict[str, ChannelConfig]:
    return {
        "slack": ChannelConfig(),
        "discord": ChannelConfig(),
        "email": ChannelConfig(),
        "webhook": ChannelConfig(),
    }


@dataclass
class NotificationConfig:
    """Notification section of the installation configuration."""

    enabled: bool = True
    channels: Dict[str, ChannelConfig] = field(default_factory=_default_channels)
    alert_levels: List[str] = field(default_factory=lambda: ["warning", "critical"])

    @classmethod
    def from_dict(cls, data: Any) -> "NotificationConfig":
        if not isinstance(data, Mapping):
            return cls(enabled=False, channels={}, alert_levels=[])

        raw_channels = data.get("channels")
        channels = {}
        if isinstance(raw_channels, Mapping):
            channels = {str(k): ChannelConfig.from_dict(v) for k, v in raw_channels.items()}

        levels = _pick(data, "alert_levels", "alertLevels")
        return cls(
            enabled=parse_bool(data.get("enabled")),
            channels=channels,
            alert_levels=[str(level) for level in levels] if isinstance(levels, list) else [],
        )

    @property
    def enabled_channels(self) -> List[str]:
        return [name for name, channel in self.channels.items() if channel.enabled]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "channels": {k: v.to_dict() for k, v in self.channels.items()},
            "alert_levels": list(self.alert_levels),
        }


# ============================================================
# INSTALLATION METADATA
# ============================================================

@dataclass
class InstallationInfo:
    """Descriptive metadata about the installation."""

    name: Optional[str] = DEFAULT_INSTALLATION_NAME
    description: Optional[str] = "Automated installation management"
    location: Optional[str] = None
    contact: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "InstallationInfo":
        if not isinstance(data, Mapping):
            return cls(name=None, description=None)
        return cls(
            name=_as_text(data.get("name")),
            description=_as_text(data.get("description")),
            location=_as_text(data.get("location")),
            contact=_as_text(data.get("contact")),
        )

    @property
    def has_custom_name(self) -> bool:
        return bool(self.name) and self.name != DEFAULT_INSTALLATION_NAME

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "location": self.location,
            "contact": self.contact,
        }


# ============================================================
# FULL DOCUMENT
# ============================================================

@dataclass
class InstallationConfig:
    """Typed installation configuration document."""

    version: str = "1.0.0"
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    installation: InstallationInfo = field(default_factory=InstallationInfo)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "InstallationConfig":
        """
        Parse a configuration mapping.

        A missing or malformed section yields an "empty" section that
        scores as unconfigured rather than raising.
        """
        if not isinstance(data, Mapping):
            logger.warning("Configuration is not a mapping, treating every section as missing")
            data = {}
        return cls(
            version=str(data.get("version", "1.0.0")),
            monitoring=MonitoringConfig.from_dict(data.get("monitoring")),
            notifications=NotificationConfig.from_dict(data.get("notifications")),
            installation=InstallationInfo.from_dict(data.get("installation")),
        )

    @classmethod
    def coerce(cls, config: Any) -> "InstallationConfig":
        """Accept either a parsed config or a raw mapping."""
        if isinstance(config, cls):
            return config
        return cls.from_dict(config)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "monitoring": self.monitoring.to_dict(),
            "notifications": self.notifications.to_dict(),
            "installation": self.installation.to_dict(),
        }


__all__ = [
    "DEFAULT_INSTALLATION_NAME",
    "merge_config",
    "parse_bool",
    "LevelThresholds",
    "MonitoringConfig",
    "ChannelConfig",
    "NotificationConfig",
    "InstallationInfo",
    "InstallationConfig",
]
