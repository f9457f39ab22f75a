"""
Validation Module.

============================================================
PURPOSE
============================================================
Verifies an installation is set up to run unattended.

Runs a registry of independent tests (uptime, resources, displays,
network, system settings, configuration, applications, auto-start,
security, performance baseline, metadata) and summarizes them.

============================================================
"""

from .models import (
    TestCategory,
    TestPriority,
    TestStatus,
    TestOutcome,
    ValidationFilter,
    ValidationTest,
    TestResult,
    BreakdownCounts,
    ValidationSummary,
    ValidationReport,
    ValidationRecommendation,
)
from .interfaces import (
    SettingStatus,
    SettingVerification,
    IntegrityProtectionStatus,
    SettingsVerifier,
    AutoStartEntry,
    AutoStartInspector,
)
from .checks import InstallationChecks, REQUIRED_SETTINGS
from .test_cases import build_default_tests, create_test
from .runner import ValidationRunner


__all__ = [
    # Models
    "TestCategory",
    "TestPriority",
    "TestStatus",
    "TestOutcome",
    "ValidationFilter",
    "ValidationTest",
    "TestResult",
    "BreakdownCounts",
    "ValidationSummary",
    "ValidationReport",
    "ValidationRecommendation",
    # Interfaces
    "SettingStatus",
    "SettingVerification",
    "IntegrityProtectionStatus",
    "SettingsVerifier",
    "AutoStartEntry",
    "AutoStartInspector",
    # Checks
    "InstallationChecks",
    "REQUIRED_SETTINGS",
    "build_default_tests",
    "create_test",
    # Runner
    "ValidationRunner",
]
