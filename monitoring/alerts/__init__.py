"""
Alerts Package.

Alert rules and the evaluator for the monitoring subsystem.
"""

from .rules import (
    AlertRule,
    ResourceUsageRule,
    CpuUsageRule,
    MemoryUsageRule,
    DiskUsageRule,
    TemperatureRule,
    ApplicationStoppedRule,
    AppRestartsRule,
    get_default_rules,
)
from .evaluator import AlertEvaluator, evaluate_alerts


__all__ = [
    # Rule types
    "AlertRule",
    "ResourceUsageRule",

    # Resource rules
    "CpuUsageRule",
    "MemoryUsageRule",
    "DiskUsageRule",
    "TemperatureRule",

    # Application rules
    "ApplicationStoppedRule",
    "AppRestartsRule",
    "get_default_rules",

    # Evaluation
    "AlertEvaluator",
    "evaluate_alerts",
]
