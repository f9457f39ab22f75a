"""
Health Scoring - Category Scorers.

============================================================
HEALTH CATEGORY SCORING
============================================================

Individual scorers for each health category:
1. Performance    - CPU, memory, disk, temperature
2. Stability      - Uptime, application run ratio, displays online
3. Security       - Integrity protection, app allowlisting, firewall
4. Configuration  - Monitoring, notifications, installation metadata

Each scorer:
- Starts at 100
- Subtracts (100 - sub_score) * sub_weight for every sub-check
- Records a factor for every sub-check below its acceptable level
- Returns an integer score clamped to 0-100

============================================================
SCORING PHILOSOPHY
============================================================

- Higher is always better
- Fully explainable (no ML)
- Unknown resource readings are skipped; unknown security state
  is penalized like a disabled feature
- Malformed configuration lowers the score, it never raises

============================================================
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple
import logging
import math

from core.installation_config import InstallationConfig
from monitoring.models import Snapshot

from .config import HealthScoringConfig, ResourceBreakpoints
from .models import CategoryScore, HealthCategory, HealthFactor


logger = logging.getLogger(__name__)


# =============================================================
# SHARED HELPERS
# =============================================================


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive scores."""
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def resource_score(usage: float, breakpoints: ResourceBreakpoints) -> float:
    """
    Piecewise-linear score of a resource reading.

    100 up to `good`, 100->80 up to `fair`, 80->60 up to `poor`,
    then 60->0 at 100, floored at 0.
    """
    good, fair, poor = breakpoints.good, breakpoints.fair, breakpoints.poor
    if usage <= good:
        return 100.0
    if usage <= fair:
        return 100.0 - ((usage - good) / (fair - good)) * 20.0
    if usage <= poor:
        return 80.0 - ((usage - fair) / (poor - fair)) * 20.0
    return max(0.0, 60.0 - ((usage - poor) / (100.0 - poor)) * 60.0)


def uptime_score(hours: float) -> float:
    """Tiered uptime score; below six hours it is hours * 5."""
    if hours >= 168:
        return 100.0
    if hours >= 72:
        return 90.0
    if hours >= 24:
        return 80.0
    if hours >= 12:
        return 70.0
    if hours >= 6:
        return 60.0
    return max(0.0, hours * 5.0)


# =============================================================
# BASE CATEGORY SCORER
# =============================================================


class BaseCategoryScorer(ABC):
    """
    Abstract base class for category scorers.

    Each scorer turns a snapshot and the installation configuration
    into a CategoryScore.
    """

    category: HealthCategory

    def __init__(self, config: Optional[HealthScoringConfig] = None) -> None:
        self._config = config or HealthScoringConfig()

    @property
    def weight(self) -> float:
        return self._config.weights.get_weight(self.category)

    @abstractmethod
    def score(self, snapshot: Snapshot, config: InstallationConfig) -> CategoryScore:
        """
        Calculate the score for this category.

        Args:
            snapshot: Metrics snapshot
            config: Parsed installation configuration

        Returns:
            CategoryScore with score and factors
        """
        pass

    def _result(self, raw_score: float, factors: List[HealthFactor]) -> CategoryScore:
        return CategoryScore(
            category=self.category,
            score=clamp_score(raw_score),
            weight=self.weight,
            factors=tuple(factors),
        )


# =============================================================
# PERFORMANCE SCORER
# =============================================================


class PerformanceScorer(BaseCategoryScorer):
    """
    Scores resource pressure:
    - CPU usage (30%)
    - Memory usage (35%)
    - Disk usage (25%)
    - CPU temperature (10%)
    """

    category = HealthCategory.PERFORMANCE

    FACTOR_CUTOFF = 80.0

    def score(self, snapshot: Snapshot, config: InstallationConfig) -> CategoryScore:
        perf = self._config.performance
        system = snapshot.system

        checks: List[Tuple[str, Optional[float], ResourceBreakpoints, float, str]] = [
            ("cpu", system.cpu.usage, perf.cpu, perf.cpu_weight, "CPU usage at {:.1f}%"),
            ("memory", system.memory.usage, perf.memory, perf.memory_weight, "Memory usage at {:.1f}%"),
            ("disk", system.disk.usage, perf.disk, perf.disk_weight, "Disk usage at {:.1f}%"),
            (
                "temperature", system.temperature.cpu, perf.temperature,
                perf.temperature_weight, "CPU temperature at {:.1f}°C",
            ),
        ]

        total = 100.0
        factors = []
        for key, value, breakpoints, weight, template in checks:
            if value is None:
                continue
            sub = resource_score(value, breakpoints)
            total -= (100.0 - sub) * weight
            if sub < self.FACTOR_CUTOFF:
                factors.append(HealthFactor(
                    key=key,
                    score=round(sub, 1),
                    value=value,
                    description=template.format(value),
                ))

        return self._result(total, factors)


# =============================================================
# STABILITY SCORER
# =============================================================


class StabilityScorer(BaseCategoryScorer):
    """
    Scores how steadily the installation runs:
    - System uptime (40%)
    - Should-be-running applications actually running (40%)
    - Displays online (20%)
    """

    category = HealthCategory.STABILITY

    UPTIME_WEIGHT = 0.4
    APPLICATION_WEIGHT = 0.4
    DISPLAY_WEIGHT = 0.2

    def score(self, snapshot: Snapshot, config: InstallationConfig) -> CategoryScore:
        total = 100.0
        factors = []

        hours = snapshot.system.uptime_hours
        if hours is not None:
            sub = uptime_score(hours)
            total -= (100.0 - sub) * self.UPTIME_WEIGHT
            if sub < 80:
                factors.append(HealthFactor(
                    key="uptime",
                    score=sub,
                    value=round(hours, 1),
                    description=f"System uptime is {hours:.1f} hours",
                ))

        expected = [app for app in snapshot.applications if app.should_be_running]
        if expected:
            running = [app for app in expected if app.is_running]
            sub = len(running) / len(expected) * 100.0
        else:
            sub = 100.0
        total -= (100.0 - sub) * self.APPLICATION_WEIGHT
        if sub < 90:
            stopped = tuple(app.name for app in expected if not app.is_running)
            factors.append(HealthFactor(
                key="applications",
                score=round(sub, 1),
                value=round(sub, 1),
                description=f"{len(stopped)} of {len(expected)} required application(s) not running",
                subjects=stopped,
            ))

        displays = snapshot.displays
        if displays:
            online = [d for d in displays if d.online]
            sub = len(online) / len(displays) * 100.0
        else:
            sub = 100.0
        total -= (100.0 - sub) * self.DISPLAY_WEIGHT
        if sub < 90:
            offline = tuple(d.name for d in displays if not d.online)
            factors.append(HealthFactor(
                key="displays",
                score=round(sub, 1),
                value=round(sub, 1),
                description=f"{len(offline)} of {len(displays)} display(s) offline",
                subjects=offline,
            ))

        return self._result(total, factors)


# =============================================================
# SECURITY SCORER
# =============================================================


class SecurityScorer(BaseCategoryScorer):
    """
    Scores host security features. A feature whose state is unknown
    is scored as disabled.
    """

    category = HealthCategory.SECURITY

    # key -> (weight, score when disabled or unknown, label)
    CHECKS: Dict[str, Tuple[float, float, str]] = {
        "integrity_protection": (0.4, 60.0, "System integrity protection"),
        "app_allowlisting": (0.3, 50.0, "App allowlisting"),
        "firewall": (0.3, 70.0, "Firewall"),
    }

    def score(self, snapshot: Snapshot, config: InstallationConfig) -> CategoryScore:
        total = 100.0
        factors = []

        for key, (weight, penalty_score, label) in self.CHECKS.items():
            enabled = getattr(snapshot.security, key)
            if enabled is True:
                continue
            total -= (100.0 - penalty_score) * weight
            state = "disabled" if enabled is False else "in an unknown state"
            factors.append(HealthFactor(
                key=key,
                score=penalty_score,
                description=f"{label} is {state}",
            ))

        return self._result(total, factors)


# =============================================================
# CONFIGURATION SCORER
# =============================================================


class ConfigurationScorer(BaseCategoryScorer):
    """
    Scores configuration quality:
    - Monitoring configuration (40%)
    - Notification configuration (30%)
    - Installation metadata (30%)
    """

    category = HealthCategory.CONFIGURATION

    def score(self, snapshot: Snapshot, config: InstallationConfig) -> CategoryScore:
        total = 100.0
        factors = []

        for key, weight, cutoff, evaluate in (
            ("monitoring", 0.4, 90, self.evaluate_monitoring),
            ("notifications", 0.3, 80, self.evaluate_notifications),
            ("installation", 0.3, 80, self.evaluate_installation),
        ):
            sub, issues = evaluate(config)
            total -= (100.0 - sub) * weight
            if sub < cutoff:
                factors.append(HealthFactor(
                    key=key,
                    score=sub,
                    description=", ".join(issues),
                    issues=tuple(issues),
                ))

        return self._result(total, factors)

    @staticmethod
    def evaluate_monitoring(config: InstallationConfig) -> Tuple[float, List[str]]:
        monitoring = config.monitoring
        score = 100.0
        issues = []

        if not monitoring.enabled:
            score -= 50
            issues.append("Monitoring is disabled")

        if not monitoring.thresholds:
            score -= 30
            issues.append("No monitoring thresholds configured")
        else:
            for metric, limit, label in (
                ("cpu", 95, "CPU"),
                ("memory", 95, "Memory"),
                ("disk", 98, "Disk"),
            ):
                critical = monitoring.critical_threshold(metric)
                if critical is not None and critical > limit:
                    score -= 10
                    issues.append(f"{label} critical threshold too high")

        if monitoring.interval_ms is not None and monitoring.interval_ms > 60000:
            score -= 10
            issues.append("Monitoring interval too long")

        return max(0.0, score), issues

    @staticmethod
    def evaluate_notifications(config: InstallationConfig) -> Tuple[float, List[str]]:
        notifications = config.notifications
        score = 100.0
        issues = []

        if not notifications.enabled:
            score -= 40
            issues.append("Notifications are disabled")

        if not notifications.enabled_channels:
            score -= 30
            issues.append("No notification channels configured")

        if not notifications.alert_levels:
            score -= 20
            issues.append("No alert levels configured")
        elif "critical" not in notifications.alert_levels:
            score -= 15
            issues.append("Critical alerts not enabled")

        return max(0.0, score), issues

    @staticmethod
    def evaluate_installation(config: InstallationConfig) -> Tuple[float, List[str]]:
        info = config.installation
        score = 100.0
        issues = []

        if not info.has_custom_name:
            score -= 20
            issues.append("Installation name not customized")
        if not info.description:
            score -= 15
            issues.append("No installation description provided")
        if not info.location:
            score -= 10
            issues.append("Installation location not specified")
        if not info.contact:
            score -= 10
            issues.append("No contact information provided")

        return max(0.0, score), issues


# =============================================================
# SCORER FACTORY
# =============================================================


class CategoryScorerFactory:
    """Factory for creating category scorers."""

    _scorers = {
        HealthCategory.PERFORMANCE: PerformanceScorer,
        HealthCategory.STABILITY: StabilityScorer,
        HealthCategory.SECURITY: SecurityScorer,
        HealthCategory.CONFIGURATION: ConfigurationScorer,
    }

    @classmethod
    def create(
        cls,
        category: HealthCategory,
        config: Optional[HealthScoringConfig] = None,
    ) -> BaseCategoryScorer:
        """Create a scorer for the given category."""
        scorer_class = cls._scorers.get(category)
        if scorer_class is None:
            raise ValueError(f"Unknown category: {category}")
        return scorer_class(config)

    @classmethod
    def create_all(
        cls,
        config: Optional[HealthScoringConfig] = None,
    ) -> Dict[HealthCategory, BaseCategoryScorer]:
        """Create scorers for all categories, in category order."""
        return {
            category: cls.create(category, config)
            for category in HealthCategory
        }
