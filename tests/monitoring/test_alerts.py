"""
Tests for Alert Rules and the Alert Evaluator.

TEST PRINCIPLES:
- Rules are pure functions of (snapshot, thresholds)
- Rules fire independently of each other
- Unknown readings never fire
"""

from datetime import datetime, timezone
from typing import List

import pytest

from monitoring.alerts import (
    AlertEvaluator,
    AlertRule,
    AppRestartsRule,
    ApplicationStoppedRule,
    CpuUsageRule,
    DiskUsageRule,
    MemoryUsageRule,
    TemperatureRule,
    evaluate_alerts,
    get_default_rules,
)
from monitoring.config import AlertThresholds
from monitoring.models import (
    Alert,
    AlertLevel,
    AppRunState,
    AppStatus,
    MetricStatus,
    ResourceMetric,
    Snapshot,
    SystemMetrics,
)


NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_snapshot(**usage) -> Snapshot:
    applications = usage.pop("applications", ())
    return Snapshot(
        timestamp=NOW,
        system=SystemMetrics.from_usage(**usage),
        applications=applications,
    )


# ============================================================
# RESOURCE RULES
# ============================================================

class TestResourceRules:

    def test_cpu_above_threshold_is_warning(self):
        alerts = CpuUsageRule().evaluate(make_snapshot(cpu=91.5), AlertThresholds())

        assert len(alerts) == 1
        assert alerts[0].type == "cpu_high"
        assert alerts[0].level == AlertLevel.WARNING
        assert alerts[0].message == "High CPU usage: 91.5%"
        assert alerts[0].value == 91.5
        assert alerts[0].threshold == 90
        assert alerts[0].snapshot_time == NOW

    def test_at_threshold_does_not_fire(self):
        assert CpuUsageRule().evaluate(make_snapshot(cpu=90), AlertThresholds()) == []

    def test_memory_is_warning(self):
        alerts = MemoryUsageRule().evaluate(make_snapshot(memory=95), AlertThresholds())
        assert [(a.type, a.level) for a in alerts] == [("memory_high", AlertLevel.WARNING)]

    @pytest.mark.parametrize("disk_threshold", [10, 50, 75, 89.9])
    def test_disk_above_any_threshold_is_critical(self, disk_threshold):
        thresholds = AlertThresholds(disk_usage=disk_threshold)
        alerts = DiskUsageRule().evaluate(make_snapshot(disk=90), thresholds)

        assert len(alerts) == 1
        assert alerts[0].level == AlertLevel.CRITICAL

    def test_unknown_usage_never_fires(self):
        thresholds = AlertThresholds(cpu_usage=0, memory_usage=0, disk_usage=0, temperature_cpu=0)
        assert evaluate_alerts(make_snapshot(), thresholds) == []

    def test_temperature(self):
        alerts = TemperatureRule().evaluate(make_snapshot(temperature_cpu=88), AlertThresholds())

        assert alerts[0].type == "temperature_high"
        assert alerts[0].message == "High CPU temperature: 88.0°C"


class TestApplicationStoppedRule:

    def test_one_alert_per_failing_application(self):
        snapshot = make_snapshot(applications=[
            AppStatus(name="Viewer", status=AppRunState.STOPPED),
            AppStatus(name="Player", status=AppRunState.RUNNING, pid=42),
            AppStatus(name="Kiosk", status=AppRunState.STOPPED),
            AppStatus(name="X", status=AppRunState.STOPPED, should_be_running=False),
        ])

        alerts = ApplicationStoppedRule().evaluate(snapshot, AlertThresholds())

        assert [a.application for a in alerts] == ["Viewer", "Kiosk"]
        assert all(a.level == AlertLevel.CRITICAL for a in alerts)
        assert alerts[0].message == "Application stopped: Viewer"

    def test_string_status_is_coerced(self):
        app = AppStatus(name="Viewer", status="running")
        assert app.status == AppRunState.RUNNING



class TestAppRestartsRule:

    def test_fires_above_threshold(self):
        snapshot = make_snapshot(applications=[
            AppStatus(name="Viewer", status=AppRunState.RUNNING, pid=7, restart_count=6),
            AppStatus(name="Player", status=AppRunState.RUNNING, pid=8, restart_count=1),
        ])

        alerts = AppRestartsRule().evaluate(snapshot, AlertThresholds())

        assert len(alerts) == 1
        assert alerts[0].type == "app_unstable"
        assert alerts[0].level == AlertLevel.WARNING
        assert alerts[0].application == "Viewer"
        assert alerts[0].value == 6
        assert alerts[0].threshold == 5
        assert alerts[0].message == "Application unstable: Viewer restarted 6 times"

    def test_at_threshold_does_not_fire(self):
        snapshot = make_snapshot(applications=[
            AppStatus(name="Viewer", status=AppRunState.RUNNING, restart_count=5),
        ])
        assert AppRestartsRule().evaluate(snapshot, AlertThresholds()) == []

    def test_zero_threshold_fires_on_first_restart(self):
        snapshot = make_snapshot(applications=[
            AppStatus(name="Viewer", status=AppRunState.RUNNING, restart_count=1),
        ])
        alerts = AppRestartsRule().evaluate(snapshot, AlertThresholds(app_restarts=0))
        assert [a.application for a in alerts] == ["Viewer"]

    def test_part_of_default_rules(self):
        assert any(isinstance(rule, AppRestartsRule) for rule in get_default_rules())


# ============================================================
# EVALUATOR
# ============================================================

class BrokenRule(AlertRule):
    rule_id = "broken"

    def evaluate(self, snapshot: Snapshot, thresholds: AlertThresholds) -> List[Alert]:
        raise RuntimeError("rule bug")


class TestAlertEvaluator:

    def test_rules_are_independent(self):
        snapshot = make_snapshot(
            cpu=95, memory=95, disk=95,
            applications=[AppStatus(name="Viewer", status=AppRunState.STOPPED)],
        )

        alerts = evaluate_alerts(snapshot)

        assert [a.type for a in alerts] == ["cpu_high", "memory_high", "disk_high", "app_stopped"]

    def test_failing_rule_is_skipped(self):
        evaluator = AlertEvaluator([BrokenRule(), CpuUsageRule()])
        alerts = evaluator.evaluate(make_snapshot(cpu=99), AlertThresholds())
        assert [a.type for a in alerts] == ["cpu_high"]

    def test_get_rule(self):
        evaluator = AlertEvaluator()
        assert isinstance(evaluator.get_rule("disk_high"), DiskUsageRule)
        assert evaluator.get_rule("nope") is None
        assert len(evaluator.rules) == len(get_default_rules())

    def test_deterministic(self):
        snapshot = make_snapshot(cpu=99, disk=99)
        assert evaluate_alerts(snapshot) == evaluate_alerts(snapshot)


# ============================================================
# THRESHOLDS & METRIC STATUS
# ============================================================

class TestAlertThresholds:

    def test_defaults(self):
        thresholds = AlertThresholds()
        assert thresholds.to_dict() == {
            "cpu_usage": 90.0,
            "memory_usage": 90.0,
            "disk_usage": 90.0,
            "temperature_cpu": 85.0,
            "app_restarts": 5,
        }

    def test_merged_accepts_aliases(self):
        merged = AlertThresholds().merged({"diskUsage": 70, "app_restarts": 2.0})

        assert merged.disk_usage == 70.0
        assert merged.app_restarts == 2
        assert isinstance(merged.app_restarts, int)


class TestMetricStatus:

    @pytest.mark.parametrize("kind,usage,expected", [
        ("cpu", 50, MetricStatus.GOOD),
        ("cpu", 75, MetricStatus.WARNING),
        ("cpu", 95, MetricStatus.CRITICAL),
        ("disk", 85, MetricStatus.WARNING),
        ("memory", None, MetricStatus.UNKNOWN),
    ])
    def test_status_derived_from_usage(self, kind, usage, expected):
        assert ResourceMetric.for_kind(kind, usage).status == expected
