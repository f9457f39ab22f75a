"""
Validation - Installation Checks.

============================================================
PURPOSE
============================================================
The individual validation tests.

Every check is an async method taking the run's filter and
returning a TestOutcome. Checks read:
- the scheduler's current snapshot
- the configuration store
- the optional settings verifier and auto-start inspector

Checks report problems through the outcome. Anything they raise is
turned into an ERROR result by the runner.

============================================================
"""

import logging
from typing import Any, Dict, List, Optional

from core.clock import ClockProtocol, SystemClock
from core.config_store import ConfigStore
from core.installation_config import InstallationConfig
from monitoring.models import Snapshot
from monitoring.scheduler import MetricsScheduler

from .interfaces import AutoStartInspector, SettingStatus, SettingsVerifier
from .models import TestOutcome, ValidationFilter


logger = logging.getLogger(__name__)


# ============================================================
# LIMITS
# ============================================================

MIN_UPTIME_HOURS = 1.0

MAX_CPU_USAGE = 90.0
MAX_MEMORY_USAGE = 85.0
MAX_DISK_USAGE = 90.0

# Critical thresholds above these leave no room to react
MAX_CRITICAL_THRESHOLDS = {"cpu": 95.0, "memory": 95.0, "disk": 98.0}
MAX_MONITORING_INTERVAL_MS = 60000

REQUIRED_SETTINGS = ("screensaver", "display_sleep", "computer_sleep")


def _round1(value: float) -> float:
    return round(value * 10) / 10


class InstallationChecks:
    """
    Validation checks over one installation.

    Usage:
        checks = InstallationChecks(scheduler, config_store, verifier=verifier)
        outcome = await checks.system_uptime(ValidationFilter())
    """

    def __init__(
        self,
        scheduler: MetricsScheduler,
        config_store: ConfigStore,
        verifier: Optional[SettingsVerifier] = None,
        inspector: Optional[AutoStartInspector] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._scheduler = scheduler
        self._config_store = config_store
        self._verifier = verifier
        self._inspector = inspector
        self._clock = clock or SystemClock()

    # =========================================================
    # HELPERS
    # =========================================================

    def _snapshot(self) -> Optional[Snapshot]:
        return self._scheduler.get_current_data()

    @staticmethod
    def _no_snapshot() -> TestOutcome:
        return TestOutcome(
            passed=False,
            message="No metrics snapshot available yet",
            recommendations=["Start the metrics scheduler before running validation"],
        )

    async def _config(self) -> InstallationConfig:
        return await self._config_store.load_installation_config()

    # =========================================================
    # SYSTEM
    # =========================================================

    async def system_uptime(self, options: ValidationFilter) -> TestOutcome:
        snapshot = self._snapshot()
        if snapshot is None:
            return self._no_snapshot()

        uptime_seconds = snapshot.system.uptime_seconds
        if uptime_seconds is None:
            return TestOutcome(
                passed=False,
                message="System uptime unknown",
                details={"uptime_hours": None, "uptime_seconds": None},
                recommendations=["Check that the metrics provider can read the system uptime"],
            )

        uptime_hours = uptime_seconds / 3600
        details = {"uptime_hours": uptime_hours, "uptime_seconds": uptime_seconds}

        if uptime_hours >= MIN_UPTIME_HOURS:
            return TestOutcome(
                passed=True,
                message=f"System uptime: {_round1(uptime_hours)} hours",
                details=details,
            )
        return TestOutcome(
            passed=False,
            message=(
                f"Insufficient uptime: {_round1(uptime_hours)} hours "
                f"(recommended: >{MIN_UPTIME_HOURS:g} hour)"
            ),
            details=details,
            recommendations=["Allow the system to run for at least 1 hour to ensure stability"],
        )

    async def system_resources(self, options: ValidationFilter) -> TestOutcome:
        snapshot = self._snapshot()
        if snapshot is None:
            return self._no_snapshot()

        system = snapshot.system
        issues: List[str] = []
        details: Dict[str, Any] = {}

        for key, label, usage, limit in (
            ("cpu", "CPU", system.cpu.usage, MAX_CPU_USAGE),
            ("memory", "memory", system.memory.usage, MAX_MEMORY_USAGE),
            ("disk", "disk", system.disk.usage, MAX_DISK_USAGE),
        ):
            details[key] = usage
            if usage is not None and usage > limit:
                issues.append(f"High {label} usage: {usage:.1f}%")

        if not issues:
            return TestOutcome(
                passed=True,
                message=(
                    f"System resources healthy: CPU {self._fmt(details['cpu'])}, "
                    f"Memory {self._fmt(details['memory'])}, Disk {self._fmt(details['disk'])}"
                ),
                details=details,
            )
        return TestOutcome(
            passed=False,
            message=f"Resource issues detected: {', '.join(issues)}",
            details=details,
            recommendations=[
                "Close unnecessary applications to reduce resource usage",
                "Consider a system restart if resources remain high",
                "Check for runaway processes",
            ],
        )

    @staticmethod
    def _fmt(usage: Optional[float]) -> str:
        return "unknown" if usage is None else f"{usage:.1f}%"

    # =========================================================
    # HARDWARE & NETWORK
    # =========================================================

    async def display_configuration(self, options: ValidationFilter) -> TestOutcome:
        snapshot = self._snapshot()
        if snapshot is None:
            return self._no_snapshot()

        displays = snapshot.displays
        online = [d for d in displays if d.online]
        offline = [d for d in displays if not d.online]
        details = {
            "total_displays": len(displays),
            "online_displays": len(online),
            "offline_displays": len(offline),
            "displays": [d.to_dict() for d in displays],
        }

        if not displays:
            return TestOutcome(
                passed=False,
                message="No displays detected",
                details=details,
                recommendations=[
                    "Check display connections and power",
                    "Verify graphics card functionality",
                ],
            )
        if not offline:
            return TestOutcome(
                passed=True,
                message=f"All {len(online)} display(s) are online",
                details=details,
            )
        return TestOutcome(
            passed=False,
            message=(
                f"{len(offline)} of {len(displays)} displays are offline: "
                f"{', '.join(d.name for d in offline)}"
            ),
            details=details,
            recommendations=[
                "Check power and cable connections for offline displays",
                "Verify the display arrangement in system settings",
                "Test displays with different cables if available",
            ],
        )

    async def network_connectivity(self, options: ValidationFilter) -> TestOutcome:
        snapshot = self._snapshot()
        if snapshot is None:
            return self._no_snapshot()

        network = snapshot.network
        external = network.external_interfaces
        details = {
            "interfaces": [iface.to_dict() for iface in network.interfaces],
            "primary_address": network.primary_address,
            "reachable": network.reachable,
        }

        if external:
            address = network.primary_address or external[0].address
            return TestOutcome(
                passed=True,
                message=f"Network connectivity available ({address})",
                details=details,
            )
        return TestOutcome(
            passed=False,
            message="No active network connectivity detected",
            details=details,
            recommendations=[
                "Check Ethernet or Wi-Fi connections",
                "Verify network settings",
                "Test with a different network interface if available",
            ],
        )

    # =========================================================
    # CONFIGURATION
    # =========================================================

    async def system_preferences(self, options: ValidationFilter) -> TestOutcome:
        if self._verifier is None:
            return TestOutcome(
                passed=False,
                message="System settings verifier not available for testing",
                recommendations=["Provide a settings verifier for this platform"],
            )

        try:
            results = await self._verifier.verify_settings(list(REQUIRED_SETTINGS))
        except Exception as e:
            logger.warning(f"Settings verification failed: {e}")
            return TestOutcome(
                passed=False,
                message=f"Failed to verify system preferences: {e}",
                details={"error": str(e)},
                recommendations=["Check system permissions for preference access"],
            )

        details = {"settings": [r.to_dict() for r in results]}
        reported = {r.setting for r in results}
        missing = [name for name in REQUIRED_SETTINGS if name not in reported]
        incorrect = [
            r.setting for r in results
            if r.status in (SettingStatus.NOT_APPLIED, SettingStatus.ERROR)
        ]
        unknown = [r.setting for r in results if r.status == SettingStatus.UNKNOWN]
        unknown.extend(missing)

        if incorrect:
            return TestOutcome(
                passed=False,
                message=f"{len(incorrect)} system preferences need adjustment: {', '.join(incorrect)}",
                details=details,
                recommendations=[
                    "Apply the recommended system settings for installation environments",
                    "Disable the screensaver and display/computer sleep",
                ],
            )
        if unknown:
            return TestOutcome(
                passed=True,
                message=f"System preferences could not all be verified: {', '.join(unknown)}",
                details=details,
                warning="Some system preferences are in an unknown state",
            )
        return TestOutcome(
            passed=True,
            message=f"All {len(REQUIRED_SETTINGS)} system preferences are correctly configured",
            details=details,
        )

    async def monitoring_configuration(self, options: ValidationFilter) -> TestOutcome:
        config = await self._config()
        monitoring = config.monitoring
        details = {"config": monitoring.to_dict()}
        issues: List[str] = []

        if not monitoring.enabled:
            issues.append("Monitoring is disabled")
        if not monitoring.thresholds:
            issues.append("No monitoring thresholds configured")
        else:
            for metric, limit in MAX_CRITICAL_THRESHOLDS.items():
                critical = monitoring.critical_threshold(metric)
                if critical is not None and critical > limit:
                    issues.append(f"{metric} critical threshold above {limit:g}%")
        if monitoring.interval_ms is not None and monitoring.interval_ms > MAX_MONITORING_INTERVAL_MS:
            issues.append("Monitoring interval is too long (>60s)")

        if not issues:
            return TestOutcome(
                passed=True,
                message="Monitoring configuration is optimal",
                details=details,
            )
        return TestOutcome(
            passed=False,
            message=f"Monitoring configuration issues: {', '.join(issues)}",
            details=details,
            recommendations=[
                "Enable monitoring for system visibility",
                "Configure appropriate thresholds for your installation",
                "Set the monitoring interval to 30-60 seconds for responsive alerts",
            ],
        )

    async def notification_configuration(self, options: ValidationFilter) -> TestOutcome:
        config = await self._config()
        notifications = config.notifications
        details = {"config": notifications.to_dict()}
        issues: List[str] = []

        if not notifications.enabled:
            issues.append("Notifications are disabled")
        if not notifications.enabled_channels:
            issues.append("No notification channels configured")
        if "critical" not in notifications.alert_levels:
            issues.append("Critical alerts are not delivered")

        if not issues:
            return TestOutcome(
                passed=True,
                message=(
                    "Notification configuration is set up "
                    f"({', '.join(notifications.enabled_channels)})"
                ),
                details=details,
            )
        return TestOutcome(
            passed=False,
            message=f"Notification issues: {', '.join(issues)}",
            details=details,
            recommendations=[
                "Enable notifications for alert delivery",
                "Configure at least one notification channel (Slack, Discord, email, webhook)",
                "Include the critical level in the delivered alert levels",
            ],
        )

    # =========================================================
    # APPLICATIONS
    # =========================================================

    async def critical_applications(self, options: ValidationFilter) -> TestOutcome:
        snapshot = self._snapshot()
        if snapshot is None:
            return self._no_snapshot()

        critical = [app for app in snapshot.applications if app.should_be_running]
        running = [app for app in critical if app.is_running]
        stopped = [app.name for app in critical if not app.is_running]
        details = {
            "total_critical": len(critical),
            "running": len(running),
            "stopped": len(stopped),
            "stopped_apps": stopped,
        }

        if not critical:
            return TestOutcome(
                passed=True,
                message="No critical applications configured",
                details=details,
                warning="Consider adding critical applications to monitoring",
            )
        if not stopped:
            return TestOutcome(
                passed=True,
                message=f"All {len(critical)} critical applications are running",
                details=details,
            )
        return TestOutcome(
            passed=False,
            message=f"{len(stopped)} critical applications are not running: {', '.join(stopped)}",
            details=details,
            recommendations=[
                "Restart stopped applications",
                "Check application configurations and dependencies",
                "Review application logs for startup errors",
            ],
        )

    async def auto_start_entries(self, options: ValidationFilter) -> TestOutcome:
        if self._inspector is None:
            return TestOutcome(
                passed=True,
                message="Auto-start entries were not inspected",
                warning="No auto-start inspector is available on this host",
            )

        entries = await self._inspector.list_entries()
        inactive = [e for e in entries if not e.is_active]
        details = {"entries": [e.to_dict() for e in entries]}

        if not entries:
            return TestOutcome(
                passed=True,
                message="No auto-start entries installed",
                details=details,
                warning="Installation software will not start after a reboot",
            )
        if not inactive:
            return TestOutcome(
                passed=True,
                message=f"All {len(entries)} auto-start entries are installed and loaded",
                details=details,
            )

        problems = []
        for entry in inactive:
            state = "not installed" if not entry.installed else "not loaded"
            problems.append(f"{entry.label} ({state})")
        return TestOutcome(
            passed=False,
            message=f"{len(inactive)} of {len(entries)} auto-start entries are inactive: {', '.join(problems)}",
            details=details,
            recommendations=[
                "Reinstall missing auto-start entries",
                "Load installed entries so they run at the next login",
            ],
        )

    # =========================================================
    # SECURITY & PERFORMANCE
    # =========================================================

    async def security_baseline(self, options: ValidationFilter) -> TestOutcome:
        snapshot = self._snapshot()
        security = snapshot.security if snapshot is not None else None

        integrity = security.integrity_protection if security is not None else None
        if self._verifier is not None:
            status = await self._verifier.check_integrity_protection_status()
            if status.enabled is not None:
                integrity = status.enabled

        details = {
            "integrity_protection": integrity,
            "app_allowlisting": security.app_allowlisting if security is not None else None,
            "firewall": security.firewall if security is not None else None,
        }

        if integrity is False:
            return TestOutcome(
                passed=False,
                message="System integrity protection is disabled",
                details=details,
                recommendations=[
                    "Enable system integrity protection unless the installation requires otherwise",
                ],
            )

        weak = []
        if integrity is None:
            weak.append("integrity protection state unknown")
        for key, label in (("app_allowlisting", "app allowlisting"), ("firewall", "firewall")):
            if details[key] is False:
                weak.append(f"{label} disabled")
            elif details[key] is None:
                weak.append(f"{label} state unknown")

        if weak:
            return TestOutcome(
                passed=True,
                message=f"Basic security check passed with caveats: {', '.join(weak)}",
                details=details,
                recommendations=[
                    "Enable app allowlisting and the firewall where the installation allows it",
                ],
                warning="Security baseline is incomplete",
            )
        return TestOutcome(
            passed=True,
            message="Security baseline is in place: integrity protection, app allowlisting and firewall enabled",
            details=details,
        )

    async def performance_baseline(self, options: ValidationFilter) -> TestOutcome:
        snapshot = self._snapshot()
        if snapshot is None:
            return self._no_snapshot()

        system = snapshot.system
        baseline = {
            "cpu": system.cpu.usage,
            "memory": system.memory.usage,
            "disk": system.disk.usage,
            "timestamp": self._clock.format_iso(),
        }
        message = (
            f"Performance baseline established: CPU {self._fmt(baseline['cpu'])}, "
            f"Memory {self._fmt(baseline['memory'])}, Disk {self._fmt(baseline['disk'])}"
        )

        unknown = [k for k in ("cpu", "memory", "disk") if baseline[k] is None]
        if unknown:
            return TestOutcome(
                passed=True,
                message=message,
                details={"baseline": baseline},
                warning=f"Baseline incomplete, unknown metrics: {', '.join(unknown)}",
            )
        return TestOutcome(passed=True, message=message, details={"baseline": baseline})

    # =========================================================
    # METADATA
    # =========================================================

    async def installation_metadata(self, options: ValidationFilter) -> TestOutcome:
        config = await self._config()
        info = config.installation
        details = {"config": info.to_dict()}

        missing = []
        if not info.has_custom_name:
            missing.append("installation name")
        if not info.description:
            missing.append("description")
        if not info.location:
            missing.append("location")
        if not info.contact:
            missing.append("contact information")

        if not missing:
            return TestOutcome(
                passed=True,
                message="Installation metadata is complete",
                details=details,
            )
        return TestOutcome(
            passed=False,
            message=f"Missing installation metadata: {', '.join(missing)}",
            details=details,
            recommendations=[
                "Complete the installation information in the settings",
                "Provide a clear installation name and description",
                "Add location and contact details for maintenance",
            ],
        )
