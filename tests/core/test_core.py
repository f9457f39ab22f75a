"""
Tests for Core Infrastructure.

============================================================
TEST COVERAGE
============================================================
1. Clock abstraction
2. Exception hierarchy
3. Installation configuration parsing and merging
4. In-memory configuration store
============================================================
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.clock import MockClock, SystemClock
from core.config_store import InMemoryConfigStore, default_config
from core.exceptions import (
    AlreadyRunningError,
    ConfigurationError,
    InstallationKeeperError,
    InvalidConfigError,
    MissingConfigError,
    MonitoringError,
    NoProviderError,
    NotificationError,
    ProviderError,
    Severity,
    UnknownTestError,
    ValidationRunError,
)
from core.installation_config import (
    DEFAULT_INSTALLATION_NAME,
    InstallationConfig,
    InstallationInfo,
    merge_config,
)


# ============================================================
# CLOCK
# ============================================================

class TestMockClock:
    """Tests for the deterministic clock."""

    def test_naive_time_is_treated_as_utc(self):
        clock = MockClock(datetime(2024, 1, 1, 12, 0, 0))
        assert clock.now().tzinfo == timezone.utc

    def test_advance(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        clock = MockClock(start)

        clock.advance(30)
        clock.advance(minutes=1)

        assert clock.now() == start + timedelta(seconds=90)
        assert clock.seconds_since(start) == 90

    def test_set_time(self):
        clock = MockClock()
        target = datetime(2030, 6, 1, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target
        assert clock.timestamp() == target.timestamp()

    def test_format_iso_defaults_to_now(self):
        clock = MockClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert clock.format_iso() == "2024-01-01T00:00:00+00:00"


class TestSystemClock:

    def test_now_is_timezone_aware(self):
        assert SystemClock().now().tzinfo is not None


# ============================================================
# EXCEPTIONS
# ============================================================

class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_hierarchy(self):
        assert issubclass(InvalidConfigError, ConfigurationError)
        assert issubclass(MissingConfigError, ConfigurationError)
        assert issubclass(NoProviderError, MonitoringError)
        assert issubclass(ProviderError, MonitoringError)
        assert issubclass(AlreadyRunningError, ValidationRunError)
        assert issubclass(UnknownTestError, ValidationRunError)
        for cls in (ConfigurationError, MonitoringError, ValidationRunError, NotificationError):
            assert issubclass(cls, InstallationKeeperError)

    def test_invalid_config_context(self):
        error = InvalidConfigError("cpu_usage", "abc", "threshold must be a number")

        assert "cpu_usage" in str(error)
        assert error.severity == Severity.HIGH
        assert error.recoverable is False
        assert error.context["config_key"] == "cpu_usage"
        assert error.context["reason"] == "threshold must be a number"

    def test_missing_config(self):
        error = MissingConfigError("provider", source="env")
        assert error.context["source"] == "env"
        assert error.context["config_key"] == "provider"

    def test_provider_error_keeps_cause(self):
        cause = RuntimeError("sensor offline")
        error = ProviderError("get_system_metrics", cause=cause)

        assert error.call == "get_system_metrics"
        assert error.cause is cause
        assert error.context["cause_type"] == "RuntimeError"
        assert "sensor offline" in str(error)

    def test_to_dict(self):
        data = UnknownTestError("nope").to_dict()

        assert data["type"] == "UnknownTestError"
        assert data["context"]["test_id"] == "nope"
        assert "timestamp" in data

    def test_notification_error_context(self):
        error = NotificationError("boom", channel="slack", status_code=500)
        assert error.context == {"channel": "slack", "status_code": 500}


# ============================================================
# INSTALLATION CONFIG
# ============================================================

class TestMergeConfig:

    def test_override_wins_recursively(self):
        base = {"monitoring": {"enabled": True, "interval_ms": 30000}, "version": "1"}
        override = {"monitoring": {"interval_ms": 10000}}

        merged = merge_config(base, override)

        assert merged == {"monitoring": {"enabled": True, "interval_ms": 10000}, "version": "1"}

    def test_lists_are_replaced(self):
        merged = merge_config({"levels": ["warning", "critical"]}, {"levels": ["critical"]})
        assert merged["levels"] == ["critical"]

    def test_inputs_untouched(self):
        base = {"a": {"b": 1}}
        merge_config(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}


class TestInstallationConfig:

    def test_defaults(self):
        config = InstallationConfig()

        assert config.monitoring.enabled is True
        assert config.monitoring.interval_ms == 30000
        assert config.monitoring.critical_threshold("cpu") == 90
        assert config.monitoring.critical_threshold("disk") == 95
        assert config.notifications.enabled_channels == []
        assert config.notifications.alert_levels == ["warning", "critical"]
        assert config.installation.name == DEFAULT_INSTALLATION_NAME
        assert not config.installation.has_custom_name

    def test_round_trip_through_dict(self):
        config = InstallationConfig.from_dict(InstallationConfig().to_dict())
        assert config == InstallationConfig()

    def test_malformed_sections_never_raise(self):
        config = InstallationConfig.from_dict({
            "monitoring": "yes please",
            "notifications": 42,
            "installation": None,
        })

        assert config.monitoring.enabled is False
        assert not config.monitoring.thresholds
        assert config.notifications.enabled is False
        assert config.installation.name is None

    def test_non_mapping_document(self):
        config = InstallationConfig.from_dict(["not", "a", "mapping"])
        assert config.monitoring.enabled is False

    def test_camel_case_keys(self):
        config = InstallationConfig.from_dict({
            "monitoring": {"enabled": True, "interval": 90000},
            "notifications": {
                "enabled": True,
                "channels": {"slack": {"enabled": True, "webhook": "https://hooks.example/x"}},
                "alertLevels": ["critical"],
            },
        })

        assert config.monitoring.interval_ms == 90000
        assert config.notifications.enabled_channels == ["slack"]
        assert config.notifications.alert_levels == ["critical"]

    @pytest.mark.parametrize("flag, expected", [
        ("false", False),
        (" Off ", False),
        ("0", False),
        ("yes", True),
        ("TRUE", True),
        (1, True),
        (0, False),
        ("maybe", False),
        (None, False),
    ])
    def test_string_flags(self, flag, expected):
        config = InstallationConfig.from_dict({
            "monitoring": {"enabled": flag},
            "notifications": {
                "enabled": flag,
                "channels": {"slack": {"enabled": flag, "webhook": "https://hooks.example/x"}},
            },
        })

        assert config.monitoring.enabled is expected
        assert config.notifications.enabled is expected
        assert config.notifications.channels["slack"].enabled is expected

    def test_coerce_accepts_parsed_config(self):
        config = InstallationConfig()
        assert InstallationConfig.coerce(config) is config

    def test_custom_name(self):
        assert InstallationInfo(name="Lobby Wall").has_custom_name
        assert not InstallationInfo(name="").has_custom_name


# ============================================================
# CONFIG STORE
# ============================================================

class TestInMemoryConfigStore:
    """Tests for the dot-path configuration store."""

    @pytest.fixture
    def store(self):
        return InMemoryConfigStore({"installation": {"name": "Lobby Wall"}})

    @pytest.mark.asyncio
    async def test_defaults_merged_with_overrides(self, store):
        assert await store.get("installation.name") == "Lobby Wall"
        assert await store.get("monitoring.interval_ms") == 30000

    @pytest.mark.asyncio
    async def test_missing_path_is_none(self, store):
        assert await store.get("monitoring.nope.deeper") is None

    @pytest.mark.asyncio
    async def test_update_creates_intermediate_sections(self, store):
        await store.update("custom.section.value", 5)
        assert await store.get("custom.section") == {"value": 5}

    @pytest.mark.asyncio
    async def test_returned_values_are_copies(self, store):
        monitoring = await store.get("monitoring")
        monitoring["enabled"] = False
        assert await store.get("monitoring.enabled") is True

    @pytest.mark.asyncio
    async def test_empty_path_rejected(self, store):
        with pytest.raises(InvalidConfigError):
            await store.update("", 1)

    @pytest.mark.asyncio
    async def test_load_installation_config(self, store):
        await store.update("notifications.channels.discord.enabled", True)
        config = await store.load_installation_config()

        assert config.installation.has_custom_name
        assert config.notifications.enabled_channels == ["discord"]

    @pytest.mark.asyncio
    async def test_merge_and_reset(self, store):
        await store.merge({"monitoring": {"interval_ms": 5000}})
        assert await store.get("monitoring.interval_ms") == 5000
        assert await store.get("monitoring.enabled") is True

        await store.reset()
        assert await store.get() == default_config()
