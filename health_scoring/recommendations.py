"""
Health Scoring - Recommendations.

Turns the factors of low-scoring categories into actionable advice.
A category only produces recommendations when its score is below
the acceptable cutoff. The final list is ordered by priority weight,
highest first; ties keep category order (performance, stability,
security, configuration) and factor order within a category.
"""

import logging
from typing import Callable, Dict, List, Optional

from .models import (
    CategoryScore,
    HealthCategory,
    HealthFactor,
    Recommendation,
    RecommendationPriority as Priority,
)


logger = logging.getLogger(__name__)


FactorRule = Callable[[HealthFactor], Optional[Recommendation]]


# =============================================================
# PERFORMANCE
# =============================================================


def _cpu(factor: HealthFactor) -> Recommendation:
    return Recommendation(
        category=HealthCategory.PERFORMANCE,
        priority=Priority.CRITICAL if factor.value > 90 else Priority.HIGH,
        title="High CPU Usage Detected",
        description=(
            f"CPU usage is at {factor.value:.1f}%. "
            "Consider closing unnecessary applications or processes."
        ),
        action="Check the process list for resource-intensive processes",
        impact="Performance",
    )


def _memory(factor: HealthFactor) -> Recommendation:
    return Recommendation(
        category=HealthCategory.PERFORMANCE,
        priority=Priority.CRITICAL if factor.value > 90 else Priority.HIGH,
        title="High Memory Usage",
        description=(
            f"Memory usage is at {factor.value:.1f}%. "
            "This may cause system slowdowns or crashes."
        ),
        action="Close unused applications or add more RAM",
        impact="Performance & Stability",
    )


def _disk(factor: HealthFactor) -> Recommendation:
    return Recommendation(
        category=HealthCategory.PERFORMANCE,
        priority=Priority.CRITICAL if factor.value > 95 else Priority.HIGH,
        title="Low Disk Space",
        description=(
            f"Disk usage is at {factor.value:.1f}%. "
            "Free up space to prevent system issues."
        ),
        action="Delete unnecessary files or move data to external storage",
        impact="Performance & Stability",
    )


def _temperature(factor: HealthFactor) -> Recommendation:
    return Recommendation(
        category=HealthCategory.PERFORMANCE,
        priority=Priority.HIGH if factor.value > 85 else Priority.MEDIUM,
        title="High System Temperature",
        description=(
            f"CPU temperature is {factor.value:.1f}°C. "
            "This may indicate cooling issues."
        ),
        action="Check system ventilation and clean dust from fans",
        impact="Hardware Longevity",
    )


# =============================================================
# STABILITY
# =============================================================


def _uptime(factor: HealthFactor) -> Optional[Recommendation]:
    if factor.value is None or factor.value >= 24:
        return None
    return Recommendation(
        category=HealthCategory.STABILITY,
        priority=Priority.MEDIUM,
        title="Recent System Restart",
        description=f"System uptime is only {factor.value:.1f} hours. Monitor for stability issues.",
        action="Check system logs for crash reports or unexpected restarts",
        impact="Stability",
    )


def _applications(factor: HealthFactor) -> Optional[Recommendation]:
    if not factor.subjects:
        return None
    return Recommendation(
        category=HealthCategory.STABILITY,
        priority=Priority.HIGH,
        title="Critical Applications Not Running",
        description=(
            f"{len(factor.subjects)} critical application(s) are not running: "
            f"{', '.join(factor.subjects)}"
        ),
        action="Restart stopped applications and check their configuration",
        impact="Installation Functionality",
    )


def _displays(factor: HealthFactor) -> Optional[Recommendation]:
    if not factor.subjects:
        return None
    return Recommendation(
        category=HealthCategory.STABILITY,
        priority=Priority.HIGH,
        title="Display Issues Detected",
        description=f"{len(factor.subjects)} display(s) are offline or not responding.",
        action="Check display connections and power status",
        impact="Installation Functionality",
    )


# =============================================================
# SECURITY
# =============================================================


def _security(title: str, description: str, action: str) -> FactorRule:
    def rule(factor: HealthFactor) -> Recommendation:
        return Recommendation(
            category=HealthCategory.SECURITY,
            priority=Priority.MEDIUM,
            title=title,
            description=f"{description} ({factor.description.lower()}).",
            action=action,
            impact="Security",
        )
    return rule


# =============================================================
# CONFIGURATION
# =============================================================


def _configuration(priority: Priority, title: str, prefix: str, action: str, impact: str) -> FactorRule:
    def rule(factor: HealthFactor) -> Recommendation:
        return Recommendation(
            category=HealthCategory.CONFIGURATION,
            priority=priority,
            title=title,
            description=f"{prefix}: {', '.join(factor.issues)}",
            action=action,
            impact=impact,
        )
    return rule


_RULES: Dict[HealthCategory, Dict[str, FactorRule]] = {
    HealthCategory.PERFORMANCE: {
        "cpu": _cpu,
        "memory": _memory,
        "disk": _disk,
        "temperature": _temperature,
    },
    HealthCategory.STABILITY: {
        "uptime": _uptime,
        "applications": _applications,
        "displays": _displays,
    },
    HealthCategory.SECURITY: {
        "integrity_protection": _security(
            "System Integrity Protection Disabled",
            "Integrity protection is off, which reduces system security",
            "Enable integrity protection unless specifically required for your installation",
        ),
        "app_allowlisting": _security(
            "App Allowlisting Disabled",
            "Unsigned applications are allowed to run",
            "Enable app allowlisting to prevent malicious software",
        ),
        "firewall": _security(
            "Firewall Disabled",
            "The system firewall is not protecting the network",
            "Enable the firewall for better network protection",
        ),
    },
    HealthCategory.CONFIGURATION: {
        "monitoring": _configuration(
            Priority.MEDIUM,
            "Improve Monitoring Configuration",
            "Monitoring issues",
            "Review and optimize monitoring settings",
            "System Visibility",
        ),
        "notifications": _configuration(
            Priority.MEDIUM,
            "Configure Notifications",
            "Notification issues",
            "Set up notification channels for alerts",
            "Incident Response",
        ),
        "installation": _configuration(
            Priority.LOW,
            "Complete Installation Information",
            "Installation setup issues",
            "Update installation details in settings",
            "Documentation",
        ),
    },
}


def build_recommendations(
    breakdown: Dict[HealthCategory, CategoryScore],
    acceptable_score: float = 80.0,
) -> List[Recommendation]:
    """
    Recommendations for every category below `acceptable_score`.

    Returns:
        Recommendations sorted by descending priority weight (stable)
    """
    recommendations: List[Recommendation] = []
    for category in HealthCategory:
        category_score = breakdown.get(category)
        if category_score is None or category_score.score >= acceptable_score:
            continue

        rules = _RULES[category]
        for factor in category_score.factors:
            rule = rules.get(factor.key)
            if rule is None:
                logger.debug(f"No recommendation rule for factor {factor.key}")
                continue
            recommendation = rule(factor)
            if recommendation is not None:
                recommendations.append(recommendation)

    return sorted(recommendations, key=lambda r: r.priority.weight, reverse=True)
