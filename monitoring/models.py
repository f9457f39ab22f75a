"""
Monitoring Data Models.

============================================================
PURPOSE
============================================================
Records produced by one collection cycle and the values derived
from them.

1. SNAPSHOT IS IMMUTABLE
   - Built once per cycle, then swapped in whole
   - Readers never observe a half-assembled snapshot
   - Consumers (alerts, health scoring, validation) only read it

2. UNKNOWN IS NOT ZERO
   - A metric the provider could not determine is None
   - None metrics carry status UNKNOWN and are skipped by rules

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


# ============================================================
# ENUMS
# ============================================================

class MetricStatus(str, Enum):
    """Derived status tag of a single metric."""

    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class AppRunState(str, Enum):
    """Whether a watched application process is alive."""

    RUNNING = "running"
    STOPPED = "stopped"


class AlertLevel(str, Enum):
    """Alert severity."""

    WARNING = "warning"
    CRITICAL = "critical"


class OverallStatus(str, Enum):
    """Status broadcast with every heartbeat."""

    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


# Breakpoints used to derive the status tag of each metric.
RESOURCE_STATUS_BREAKPOINTS: Dict[str, Tuple[float, float]] = {
    "cpu": (70.0, 90.0),
    "memory": (70.0, 90.0),
    "disk": (80.0, 90.0),
}
TEMPERATURE_STATUS_BREAKPOINTS: Tuple[float, float] = (70.0, 85.0)


def derive_status(
    value: Optional[float],
    warning: float,
    critical: float,
) -> MetricStatus:
    """Map a reading onto good / warning / critical."""
    if value is None:
        return MetricStatus.UNKNOWN
    if value > critical:
        return MetricStatus.CRITICAL
    if value > warning:
        return MetricStatus.WARNING
    return MetricStatus.GOOD


# ============================================================
# SYSTEM METRICS
# ============================================================

@dataclass(frozen=True)
class ResourceMetric:
    """
    Usage of one resource as a percentage.

    `status` is derived from `usage` when not given explicitly.
    """

    usage: Optional[float] = None
    status: Optional[MetricStatus] = None
    warning_at: float = 70.0
    critical_at: float = 90.0

    def __post_init__(self):
        if self.usage is not None:
            object.__setattr__(self, "usage", float(self.usage))
        if self.status is None:
            object.__setattr__(
                self, "status", derive_status(self.usage, self.warning_at, self.critical_at)
            )

    @classmethod
    def for_kind(cls, kind: str, usage: Optional[float]) -> "ResourceMetric":
        """Build a metric using the status breakpoints of `kind` (cpu, memory, disk)."""
        warning, critical = RESOURCE_STATUS_BREAKPOINTS[kind]
        return cls(usage=usage, warning_at=warning, critical_at=critical)

    @property
    def is_known(self) -> bool:
        return self.usage is not None

    def to_dict(self) -> Dict[str, Any]:
        return {"usage": self.usage, "status": self.status.value}


@dataclass(frozen=True)
class TemperatureReading:
    """Temperature sensors, in degrees Celsius."""

    cpu: Optional[float] = None
    status: Optional[MetricStatus] = None

    def __post_init__(self):
        if self.status is None:
            warning, critical = TEMPERATURE_STATUS_BREAKPOINTS
            object.__setattr__(self, "status", derive_status(self.cpu, warning, critical))

    def to_dict(self) -> Dict[str, Any]:
        return {"cpu": self.cpu, "status": self.status.value}


def _cpu() -> ResourceMetric:
    return ResourceMetric.for_kind("cpu", None)


def _memory() -> ResourceMetric:
    return ResourceMetric.for_kind("memory", None)


def _disk() -> ResourceMetric:
    return ResourceMetric.for_kind("disk", None)


@dataclass(frozen=True)
class SystemMetrics:
    """Host resource metrics. Every field may be unknown."""

    cpu: ResourceMetric = field(default_factory=_cpu)
    memory: ResourceMetric = field(default_factory=_memory)
    disk: ResourceMetric = field(default_factory=_disk)
    temperature: TemperatureReading = field(default_factory=TemperatureReading)
    uptime_seconds: Optional[float] = None
    load_1: Optional[float] = None
    load_5: Optional[float] = None
    load_15: Optional[float] = None

    @classmethod
    def from_usage(
        cls,
        cpu: Optional[float] = None,
        memory: Optional[float] = None,
        disk: Optional[float] = None,
        temperature_cpu: Optional[float] = None,
        uptime_seconds: Optional[float] = None,
        load: Optional[Tuple[float, float, float]] = None,
    ) -> "SystemMetrics":
        """Convenience constructor from plain numbers."""
        load_1, load_5, load_15 = load if load else (None, None, None)
        return cls(
            cpu=ResourceMetric.for_kind("cpu", cpu),
            memory=ResourceMetric.for_kind("memory", memory),
            disk=ResourceMetric.for_kind("disk", disk),
            temperature=TemperatureReading(cpu=temperature_cpu),
            uptime_seconds=uptime_seconds,
            load_1=load_1,
            load_5=load_5,
            load_15=load_15,
        )

    @property
    def uptime_hours(self) -> Optional[float]:
        if self.uptime_seconds is None:
            return None
        return self.uptime_seconds / 3600

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cpu": self.cpu.to_dict(),
            "memory": self.memory.to_dict(),
            "disk": self.disk.to_dict(),
            "temperature": self.temperature.to_dict(),
            "uptime_seconds": self.uptime_seconds,
            "load": [self.load_1, self.load_5, self.load_15],
        }


# ============================================================
# NETWORK
# ============================================================

@dataclass(frozen=True)
class NetworkInterface:
    """One network interface address."""

    name: str
    address: Optional[str] = None
    family: str = "IPv4"
    internal: bool = False
    active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "family": self.family,
            "internal": self.internal,
            "active": self.active,
        }


@dataclass(frozen=True)
class NetworkInfo:
    """Network state of the host."""

    interfaces: Tuple[NetworkInterface, ...] = ()
    primary_address: Optional[str] = None
    reachable: Optional[bool] = None

    def __post_init__(self):
        object.__setattr__(self, "interfaces", tuple(self.interfaces))

    @property
    def external_interfaces(self) -> Tuple[NetworkInterface, ...]:
        """Active, non-loopback interfaces that have an address."""
        return tuple(
            iface for iface in self.interfaces
            if iface.active and not iface.internal and iface.address
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interfaces": [iface.to_dict() for iface in self.interfaces],
            "primary_address": self.primary_address,
            "reachable": self.reachable,
        }


# ============================================================
# APPLICATIONS & DISPLAYS
# ============================================================

@dataclass
class WatchedApplication:
    """
    Application the operator asked to watch.

    Keyed by name in the scheduler; re-registering a name replaces
    the entry.
    """

    name: str
    path: str
    should_be_running: bool = True
    options: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "should_be_running": self.should_be_running,
            "options": dict(self.options),
        }


@dataclass(frozen=True)
class AppStatus:
    """
    Status of one watched application in one cycle.

    `restart_count` counts restarts seen within the scheduler's
    history window for this application.
    """

    name: str
    status: AppRunState
    pid: Optional[int] = None
    should_be_running: bool = True
    restart_count: int = 0

    def __post_init__(self):
        object.__setattr__(self, "status", AppRunState(self.status))

    @property
    def is_running(self) -> bool:
        return self.status == AppRunState.RUNNING

    @property
    def is_failing(self) -> bool:
        """Expected to run but is not running."""
        return self.should_be_running and not self.is_running

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "pid": self.pid,
            "should_be_running": self.should_be_running,
            "restart_count": self.restart_count,
        }


@dataclass(frozen=True)
class DisplayStatus:
    """One attached display."""

    id: str
    name: str
    online: bool = True
    resolution: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "online": self.online,
            "resolution": self.resolution,
        }


# ============================================================
# SECURITY
# ============================================================

@dataclass(frozen=True)
class SecurityStatus:
    """
    Security features of the host.

    Each flag is True (enabled), False (disabled) or None (unknown).
    """

    integrity_protection: Optional[bool] = None
    app_allowlisting: Optional[bool] = None
    firewall: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "integrity_protection": self.integrity_protection,
            "app_allowlisting": self.app_allowlisting,
            "firewall": self.firewall,
        }


# ============================================================
# SNAPSHOT
# ============================================================

@dataclass(frozen=True)
class Snapshot:
    """
    Consistent set of metrics from one collection cycle.

    `collection_errors` maps a provider call name to the error it
    raised; the matching field holds its unknown/empty value.
    """

    timestamp: datetime
    system: SystemMetrics = field(default_factory=SystemMetrics)
    network: NetworkInfo = field(default_factory=NetworkInfo)
    applications: Tuple[AppStatus, ...] = ()
    displays: Tuple[DisplayStatus, ...] = ()
    security: SecurityStatus = field(default_factory=SecurityStatus)
    collection_errors: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "applications", tuple(self.applications))
        object.__setattr__(self, "displays", tuple(self.displays))
        object.__setattr__(self, "collection_errors", dict(self.collection_errors))

    @property
    def running_applications(self) -> Tuple[AppStatus, ...]:
        return tuple(app for app in self.applications if app.is_running)

    @property
    def failing_applications(self) -> Tuple[AppStatus, ...]:
        return tuple(app for app in self.applications if app.is_failing)

    def get_application(self, name: str) -> Optional[AppStatus]:
        for app in self.applications:
            if app.name == name:
                return app
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "system": self.system.to_dict(),
            "network": self.network.to_dict(),
            "applications": [app.to_dict() for app in self.applications],
            "displays": [d.to_dict() for d in self.displays],
            "security": self.security.to_dict(),
            "collection_errors": dict(self.collection_errors),
        }


# ============================================================
# ALERTS & HEARTBEAT
# ============================================================

@dataclass(frozen=True)
class Alert:
    """A threshold crossing found in one snapshot. Never persisted."""

    type: str
    level: AlertLevel
    message: str
    value: Optional[float] = None
    threshold: Optional[float] = None
    application: Optional[str] = None
    snapshot_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "level": self.level.value,
            "message": self.message,
            "value": self.value,
            "threshold": self.threshold,
            "application": self.application,
            "snapshot_time": self.snapshot_time.isoformat() if self.snapshot_time else None,
        }


@dataclass(frozen=True)
class QuickStats:
    """Headline numbers carried by a heartbeat."""

    cpu: Optional[float] = None
    memory: Optional[float] = None
    apps: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"cpu": self.cpu, "memory": self.memory, "apps": self.apps}


@dataclass(frozen=True)
class Heartbeat:
    """Periodic liveness broadcast."""

    installation_id: str
    timestamp: datetime
    process_uptime: float
    overall_status: OverallStatus
    quick_stats: QuickStats = field(default_factory=QuickStats)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "installation_id": self.installation_id,
            "timestamp": self.timestamp.isoformat(),
            "process_uptime": self.process_uptime,
            "overall_status": self.overall_status.value,
            "quick_stats": self.quick_stats.to_dict(),
        }


@dataclass(frozen=True)
class AppHistoryEntry:
    """One observed status of an application."""

    timestamp: datetime
    status: AppRunState
    pid: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "pid": self.pid,
        }
