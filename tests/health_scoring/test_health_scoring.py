"""
Tests for Health Scoring.

============================================================
TEST COVERAGE
============================================================
1. Piecewise resource and uptime curves
2. Category scorers
3. Composite score, rating and recommendations
4. Report and trend analysis
5. Configuration loading
============================================================
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from core.installation_config import InstallationConfig, InstallationInfo
from health_scoring import (
    CategoryScorerFactory,
    CategoryWeights,
    ConfigurationScorer,
    HealthCategory,
    HealthRating,
    HealthScorer,
    HealthScoringConfig,
    PerformanceScorer,
    RecommendationPriority,
    ResourceBreakpoints,
    SecurityScorer,
    StabilityScorer,
    TrendDirection,
    rating,
    resource_score,
    uptime_score,
)
from health_scoring.scorers import clamp_score, round_half_up
from monitoring.models import (
    AppRunState,
    AppStatus,
    DisplayStatus,
    SecurityStatus,
    Snapshot,
    SystemMetrics,
)


NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
HOUR = 3600


# ============================================================
# FIXTURES
# ============================================================

def make_snapshot(
    cpu=20.0,
    memory=40.0,
    disk=50.0,
    temperature=50.0,
    uptime_hours=200.0,
    applications=(),
    displays=(DisplayStatus(id="1", name="Main"),),
    security=SecurityStatus(True, True, True),
) -> Snapshot:
    return Snapshot(
        timestamp=NOW,
        system=SystemMetrics.from_usage(
            cpu=cpu,
            memory=memory,
            disk=disk,
            temperature_cpu=temperature,
            uptime_seconds=uptime_hours * HOUR if uptime_hours is not None else None,
        ),
        applications=applications,
        displays=displays,
        security=security,
    )


@pytest.fixture
def configured() -> InstallationConfig:
    """A fully configured installation."""
    config = InstallationConfig()
    config.notifications.channels["slack"].enabled = True
    config.installation = InstallationInfo(
        name="Lobby Wall",
        description="Six-screen video wall",
        location="Main lobby",
        contact="ops@example.com",
    )
    return config


@pytest.fixture
def scorer() -> HealthScorer:
    return HealthScorer()


# ============================================================
# CURVES
# ============================================================

class TestCurves:

    @pytest.mark.parametrize("usage,expected", [
        (0, 100),
        (70, 100),
        (77.5, 90),
        (85, 80),
        (90, 70),
        (95, 60),
        (97.5, 30),
        (100, 0),
    ])
    def test_cpu_curve(self, usage, expected):
        assert resource_score(usage, ResourceBreakpoints(70, 85, 95)) == pytest.approx(expected)

    def test_resource_curve_is_monotonic(self):
        breakpoints = ResourceBreakpoints(75, 85, 95)
        scores = [resource_score(u / 2, breakpoints) for u in range(0, 201)]
        assert all(a >= b for a, b in zip(scores, scores[1:]))

    @pytest.mark.parametrize("hours,expected", [
        (200, 100),
        (168, 100),
        (100, 90),
        (30, 80),
        (12, 70),
        (6, 60),
        (5, 25),
        (0, 0),
    ])
    def test_uptime_tiers(self, hours, expected):
        assert uptime_score(hours) == expected

    def test_round_half_up(self):
        assert round_half_up(84.5) == 85
        assert round_half_up(84.49) == 84
        assert clamp_score(-3) == 0
        assert clamp_score(104.2) == 100

    def test_breakpoints_must_increase(self):
        with pytest.raises(ValueError):
            ResourceBreakpoints(90, 80, 95)


# ============================================================
# CATEGORY SCORERS
# ============================================================

class TestPerformanceScorer:

    def test_healthy(self, configured):
        result = PerformanceScorer().score(make_snapshot(), configured)
        assert result.score == 100
        assert result.factors == ()

    def test_cpu_spike(self, configured):
        result = PerformanceScorer().score(make_snapshot(cpu=96), configured)

        # 100 - (100 - 48) * 0.30
        assert result.score == 84
        factor = result.get_factor("cpu")
        assert factor.score == 48
        assert factor.value == 96

    def test_unknown_readings_are_skipped(self, configured):
        snapshot = make_snapshot(cpu=None, memory=None, disk=None, temperature=None)
        assert PerformanceScorer().score(snapshot, configured).score == 100


class TestStabilityScorer:

    def test_short_uptime(self, configured):
        result = StabilityScorer().score(make_snapshot(uptime_hours=5), configured)

        # uptime sub-score 25 at weight 0.4
        assert result.score == 70
        assert result.get_factor("uptime").value == 5.0

    def test_application_ratio_counts_expected_apps_only(self, configured):
        apps = [
            AppStatus(name="Viewer", status=AppRunState.RUNNING, pid=1),
            AppStatus(name="Player", status=AppRunState.STOPPED),
            AppStatus(name="Optional", status=AppRunState.STOPPED, should_be_running=False),
        ]
        result = StabilityScorer().score(make_snapshot(applications=apps), configured)

        assert result.score == 80
        assert result.get_factor("applications").subjects == ("Player",)

    def test_offline_display(self, configured):
        displays = (DisplayStatus(id="1", name="Left"), DisplayStatus(id="2", name="Right", online=False))
        result = StabilityScorer().score(make_snapshot(displays=displays), configured)

        assert result.score == 90
        assert result.get_factor("displays").subjects == ("Right",)

    def test_no_displays_or_apps(self, configured):
        result = StabilityScorer().score(make_snapshot(displays=()), configured)
        assert result.score == 100


class TestSecurityScorer:

    @pytest.mark.parametrize("security,expected", [
        (SecurityStatus(True, True, True), 100),
        (SecurityStatus(False, True, True), 84),
        (SecurityStatus(True, False, True), 85),
        (SecurityStatus(True, True, False), 91),
        (SecurityStatus(False, False, False), 60),
        (SecurityStatus(None, None, None), 60),
    ])
    def test_scores(self, configured, security, expected):
        assert SecurityScorer().score(make_snapshot(security=security), configured).score == expected

    def test_unknown_state_factor(self, configured):
        result = SecurityScorer().score(make_snapshot(security=SecurityStatus(True, None, True)), configured)
        assert result.get_factor("app_allowlisting").description == "App allowlisting is in an unknown state"


class TestConfigurationScorer:

    def test_fully_configured(self, configured):
        assert ConfigurationScorer().score(make_snapshot(), configured).score == 100

    def test_default_configuration(self):
        result = ConfigurationScorer().score(make_snapshot(), InstallationConfig())

        # notifications 70, installation 60
        assert result.score == 79
        assert result.get_factor("monitoring") is None
        assert result.get_factor("notifications").issues == ("No notification channels configured",)
        assert result.get_factor("installation").issues == (
            "Installation name not customized",
            "Installation location not specified",
            "No contact information provided",
        )

    def test_monitoring_issues(self):
        config = InstallationConfig.from_dict({
            "monitoring": {
                "enabled": True,
                "interval_ms": 120000,
                "thresholds": {"cpu": {"warning": 80, "critical": 99}},
            },
        })
        score, issues = ConfigurationScorer.evaluate_monitoring(config)

        assert score == 80
        assert issues == ["CPU critical threshold too high", "Monitoring interval too long"]

    def test_notifications_without_critical_level(self):
        config = InstallationConfig.from_dict({
            "notifications": {
                "enabled": True,
                "channels": {"discord": {"enabled": True}},
                "alert_levels": ["warning"],
            },
        })
        score, issues = ConfigurationScorer.evaluate_notifications(config)

        assert score == 85
        assert issues == ["Critical alerts not enabled"]

    def test_empty_document(self):
        config = InstallationConfig.from_dict({})
        assert ConfigurationScorer.evaluate_monitoring(config)[0] == 20
        assert ConfigurationScorer.evaluate_notifications(config)[0] == 10
        assert ConfigurationScorer.evaluate_installation(config)[0] == 45


class TestScorerFactory:

    def test_create_all_in_category_order(self):
        scorers = CategoryScorerFactory.create_all()
        assert list(scorers) == list(HealthCategory)

    def test_weights_from_config(self):
        scorer = CategoryScorerFactory.create(HealthCategory.PERFORMANCE)
        assert scorer.weight == pytest.approx(0.35)


# ============================================================
# COMPOSITE SCORE
# ============================================================

class TestHealthScorer:

    def test_perfect_installation(self, scorer, configured):
        health = scorer.score(make_snapshot(), configured)

        assert health.overall == 100
        assert health.rating == HealthRating.EXCELLENT
        assert health.recommendations == ()
        assert health.timestamp == NOW

    def test_default_configuration_recommendations(self, scorer):
        health = scorer.score(make_snapshot(), InstallationConfig())

        # 35 + 25 + 20 + 79 * 0.2
        assert health.overall == 96
        assert [r.title for r in health.recommendations] == [
            "Configure Notifications",
            "Complete Installation Information",
        ]
        assert [r.priority for r in health.recommendations] == [
            RecommendationPriority.MEDIUM,
            RecommendationPriority.LOW,
        ]

    def test_recommendations_sorted_by_priority(self, scorer, configured):
        snapshot = make_snapshot(
            cpu=96,
            memory=96,
            uptime_hours=5,
            applications=[AppStatus(name="Viewer", status=AppRunState.STOPPED)],
            security=SecurityStatus(False, True, True),
        )

        health = scorer.score(snapshot, configured)

        weights = [r.priority.weight for r in health.recommendations]
        assert weights == sorted(weights, reverse=True)
        titles = [r.title for r in health.recommendations]
        assert titles[:2] == ["High CPU Usage Detected", "High Memory Usage"]
        assert "Critical Applications Not Running" in titles
        assert "Recent System Restart" in titles
        assert "System Integrity Protection Disabled" not in titles  # security scored 84

    def test_raw_mapping_config(self, scorer, configured):
        from_mapping = scorer.score(make_snapshot(), configured.to_dict())
        from_object = scorer.score(make_snapshot(), configured)
        assert from_mapping.overall == from_object.overall

    def test_missing_config_degrades_score(self, scorer):
        health = scorer.score(make_snapshot())

        assert health.category_score(HealthCategory.CONFIGURATION) < 30
        assert health.overall < 90

    def test_malformed_config_never_raises(self, scorer):
        health = scorer.score(make_snapshot(), "not a config")
        assert 0 <= health.overall <= 100

    def test_deterministic(self, scorer, configured):
        snapshot = make_snapshot(cpu=88, uptime_hours=30)
        assert scorer.score(snapshot, configured) == scorer.score(snapshot, configured)

    def test_overall_bounds(self, scorer):
        worst = make_snapshot(
            cpu=100, memory=100, disk=100, temperature=100, uptime_hours=0,
            applications=[AppStatus(name="Viewer", status=AppRunState.STOPPED)],
            displays=(DisplayStatus(id="1", name="Main", online=False),),
            security=SecurityStatus(False, False, False),
        )
        health = scorer.score(worst, {})

        assert 0 <= health.overall <= 100
        assert health.rating == HealthRating.CRITICAL

    def test_failing_category_scores_zero(self, scorer, configured):
        scorer._scorers[HealthCategory.SECURITY].score = MagicMock(side_effect=RuntimeError("probe"))

        health = scorer.score(make_snapshot(), configured)

        security = health.breakdown[HealthCategory.SECURITY]
        assert security.score == 0
        assert security.factors[0].key == "evaluation_error"
        assert health.overall == 80

    @pytest.mark.parametrize("overall,expected", [
        (100, HealthRating.EXCELLENT),
        (90, HealthRating.EXCELLENT),
        (89, HealthRating.GOOD),
        (75, HealthRating.GOOD),
        (74, HealthRating.FAIR),
        (60, HealthRating.FAIR),
        (59, HealthRating.POOR),
        (40, HealthRating.POOR),
        (39, HealthRating.CRITICAL),
        (0, HealthRating.CRITICAL),
    ])
    def test_rating(self, overall, expected):
        assert rating(overall) == expected

    def test_to_dict(self, scorer, configured):
        data = scorer.score(make_snapshot(), configured).to_dict()
        assert set(data["breakdown"]) == {"performance", "stability", "security", "configuration"}
        assert data["rating"] == "excellent"


# ============================================================
# REPORT & TREND
# ============================================================

class TestHealthReport:

    def test_summary_counts(self, scorer, configured):
        snapshot = make_snapshot(
            cpu=96,
            memory=96,
            applications=[AppStatus(name="Viewer", status=AppRunState.STOPPED)],
            uptime_hours=5,
        )

        report = scorer.generate_health_report(snapshot, configured)

        assert report.critical_issues == 2
        assert report.high_priority_issues == 1
        assert report.total_recommendations == len(report.score.recommendations)
        assert report.categories["performance"] == report.score.category_score(HealthCategory.PERFORMANCE)
        assert report.to_dict()["summary"]["critical_issues"] == 2

    def test_recommendations_capped(self, configured):
        scorer = HealthScorer(HealthScoringConfig(max_report_recommendations=1))
        report = scorer.generate_health_report(make_snapshot(cpu=96, memory=96), configured)

        assert len(report.recommendations) == 1
        assert report.total_recommendations == 2


class TestHealthTrend:

    @pytest.mark.parametrize("current,history,expected", [
        (90, [80, 80, 80, 80, 80], TrendDirection.IMPROVING),
        (70, [80, 80, 80], TrendDirection.DECLINING),
        (82, [80, 80], TrendDirection.STABLE),
        (80, [0, 0, 0, 80, 80, 80, 80, 80], TrendDirection.STABLE),
        (80, [50], TrendDirection.INSUFFICIENT_DATA),
        (80, [], TrendDirection.INSUFFICIENT_DATA),
    ])
    def test_direction(self, scorer, current, history, expected):
        assert scorer.analyze_health_trend(current, history).direction == expected

    def test_change_reported(self, scorer):
        trend = scorer.analyze_health_trend(90, [80, 84])
        assert trend.change == pytest.approx(8)
        assert trend.to_dict()["trend"] == "improving"


# ============================================================
# CONFIGURATION
# ============================================================

class TestHealthScoringConfig:

    def test_weights_normalized(self):
        weights = CategoryWeights(1, 1, 1, 1)
        assert weights.performance == pytest.approx(0.25)
        assert weights.total() == pytest.approx(1.0)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("HEALTH_WEIGHT_PERFORMANCE", "0.5")
        monkeypatch.setenv("HEALTH_ACCEPTABLE_SCORE", "70")

        config = HealthScoringConfig.from_env()

        assert config.weights.total() == pytest.approx(1.0)
        assert config.weights.performance > config.weights.stability
        assert config.acceptable_score == 70

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "health.yaml"
        path.write_text(
            "weights:\n"
            "  performance: 0.25\n"
            "  stability: 0.25\n"
            "  security: 0.25\n"
            "  configuration: 0.25\n"
            "breakpoints:\n"
            "  cpu: {good: 50, fair: 60, poor: 70}\n"
            "trend_window: 3\n"
        )

        config = HealthScoringConfig.from_yaml(path)

        assert config.weights.security == 0.25
        assert config.performance.cpu.poor == 70
        assert config.trend_window == 3

    def test_from_yaml_invalid(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("weights: [unclosed\n")
        assert HealthScoringConfig.from_yaml(path).acceptable_score == 80
