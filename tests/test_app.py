"""
Tests for the application entry point wiring.
"""

import pytest

from app import build_scheduler, create_parser, load_class, parse_apps, run_application
from core.exceptions import InvalidConfigError, MissingConfigError
from monitoring import MetricsProvider, MonitoringSettings


@pytest.fixture
def parser(monkeypatch):
    for name in ("KEEPER_PROVIDER", "KEEPER_VERIFIER", "KEEPER_INSPECTOR"):
        monkeypatch.delenv(name, raising=False)
    return create_parser()


class TestWiring:

    def test_missing_provider(self, parser):
        args = parser.parse_args([])

        with pytest.raises(MissingConfigError) as exc_info:
            build_scheduler(args, MonitoringSettings())

        assert exc_info.value.context["config_key"] == "provider"
        assert "provider" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_provider_exit_code(self, parser):
        args = parser.parse_args(["--health"])
        assert await run_application(args) == 2

    @pytest.mark.parametrize("dotted", ["no_colon", ":Cls", "monitoring:"])
    def test_malformed_class_path(self, dotted):
        with pytest.raises(InvalidConfigError):
            load_class(dotted, MetricsProvider)

    def test_wrong_base_class(self):
        with pytest.raises(InvalidConfigError):
            load_class("monitoring:MonitoringSettings", MetricsProvider)

    def test_parse_apps(self):
        assert parse_apps(["Viewer=/Applications/Viewer.app", " X = /x "]) == {
            "Viewer": "/Applications/Viewer.app",
            "X": "/x",
        }
        with pytest.raises(InvalidConfigError):
            parse_apps(["no-path"])
