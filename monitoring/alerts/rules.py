"""
Alert Rules.

============================================================
PURPOSE
============================================================
Deterministic alert rules with explicit triggers.

PRINCIPLES:
- All thresholds come from AlertThresholds
- Rules are stateless: same snapshot and thresholds, same alerts
- Rules are independent; several may fire for one snapshot
- Unknown metrics never fire a rule

============================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from ..config import AlertThresholds
from ..models import Alert, AlertLevel, ResourceMetric, Snapshot


logger = logging.getLogger(__name__)


# ============================================================
# ALERT RULE BASE
# ============================================================

class AlertRule(ABC):
    """Base class for alert rules."""

    rule_id: str = ""
    level: AlertLevel = AlertLevel.WARNING

    @abstractmethod
    def evaluate(self, snapshot: Snapshot, thresholds: AlertThresholds) -> List[Alert]:
        """
        Evaluate the rule against one snapshot.

        Returns an empty list when the rule does not fire.
        """
        pass

    def _alert(
        self,
        snapshot: Snapshot,
        message: str,
        value: Optional[float] = None,
        threshold: Optional[float] = None,
        application: Optional[str] = None,
    ) -> Alert:
        return Alert(
            type=self.rule_id,
            level=self.level,
            message=message,
            value=value,
            threshold=threshold,
            application=application,
            snapshot_time=snapshot.timestamp,
        )


# ============================================================
# RESOURCE RULES
# ============================================================

class ResourceUsageRule(AlertRule):
    """Fires when a resource's usage is above its threshold."""

    label: str = ""

    @abstractmethod
    def metric(self, snapshot: Snapshot) -> ResourceMetric:
        pass

    @abstractmethod
    def threshold(self, thresholds: AlertThresholds) -> float:
        pass

    def evaluate(self, snapshot: Snapshot, thresholds: AlertThresholds) -> List[Alert]:
        metric = self.metric(snapshot)
        limit = self.threshold(thresholds)
        if not metric.is_known or metric.usage <= limit:
            return []
        usage = metric.usage
        return [self._alert(
            snapshot,
            f"High {self.label} usage: {usage:.1f}%",
            value=usage,
            threshold=limit,
        )]


class CpuUsageRule(ResourceUsageRule):
    rule_id = "cpu_high"
    level = AlertLevel.WARNING
    label = "CPU"

    def metric(self, snapshot: Snapshot) -> ResourceMetric:
        return snapshot.system.cpu

    def threshold(self, thresholds: AlertThresholds) -> float:
        return thresholds.cpu_usage


class MemoryUsageRule(ResourceUsageRule):
    rule_id = "memory_high"
    level = AlertLevel.WARNING
    label = "memory"

    def metric(self, snapshot: Snapshot) -> ResourceMetric:
        return snapshot.system.memory

    def threshold(self, thresholds: AlertThresholds) -> float:
        return thresholds.memory_usage


class DiskUsageRule(ResourceUsageRule):
    """Disk exhaustion does not clear by itself, hence critical."""

    rule_id = "disk_high"
    level = AlertLevel.CRITICAL
    label = "disk"

    def metric(self, snapshot: Snapshot) -> ResourceMetric:
        return snapshot.system.disk

    def threshold(self, thresholds: AlertThresholds) -> float:
        return thresholds.disk_usage


class TemperatureRule(AlertRule):
    rule_id = "temperature_high"
    level = AlertLevel.WARNING

    def evaluate(self, snapshot: Snapshot, thresholds: AlertThresholds) -> List[Alert]:
        temp = snapshot.system.temperature.cpu
        if temp is None or temp <= thresholds.temperature_cpu:
            return []
        return [self._alert(
            snapshot,
            f"High CPU temperature: {temp:.1f}°C",
            value=temp,
            threshold=thresholds.temperature_cpu,
        )]


# ============================================================
# APPLICATION RULES
# ============================================================

class ApplicationStoppedRule(AlertRule):
    """One alert per application that should run but does not."""

    rule_id = "app_stopped"
    level = AlertLevel.CRITICAL

    def evaluate(self, snapshot: Snapshot, thresholds: AlertThresholds) -> List[Alert]:
        return [
            self._alert(
                snapshot,
                f"Application stopped: {app.name}",
                application=app.name,
            )
            for app in snapshot.failing_applications
        ]


class AppRestartsRule(AlertRule):
    """Fires when an application restarted more often than allowed."""

    rule_id = "app_unstable"
    level = AlertLevel.WARNING

    def evaluate(self, snapshot: Snapshot, thresholds: AlertThresholds) -> List[Alert]:
        return [
            self._alert(
                snapshot,
                f"Application unstable: {app.name} restarted {app.restart_count} times",
                value=app.restart_count,
                threshold=thresholds.app_restarts,
                application=app.name,
            )
            for app in snapshot.applications
            if app.restart_count > thresholds.app_restarts
        ]


# ============================================================
# DEFAULT RULES
# ============================================================

def get_default_rules() -> List[AlertRule]:
    """Get the standard rule set, in evaluation order."""
    return [
        CpuUsageRule(),
        MemoryUsageRule(),
        DiskUsageRule(),
        TemperatureRule(),
        ApplicationStoppedRule(),
        AppRestartsRule(),
    ]
