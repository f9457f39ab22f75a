"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the exception hierarchy for the installation keeper.

- Provides clear exception hierarchy
- Separates recoverable collection failures from caller errors
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
InstallationKeeperError (base)
├── ConfigurationError
│   ├── MissingConfigError
│   └── InvalidConfigError
├── MonitoringError
│   ├── NoProviderError
│   ├── ProviderError
│   └── SchedulerAlreadyRunningError
├── ValidationRunError
│   ├── AlreadyRunningError
│   └── UnknownTestError
└── NotificationError

============================================================
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ============================================================
# BASE EXCEPTION
# ============================================================

class InstallationKeeperError(Exception):
    """
    Base exception for all installation keeper errors.

    All exceptions carry:
    - severity: how loudly the error should be reported
    - context: for debugging
    - recoverable: whether the caller may simply retry later
    """

    default_severity: Severity = Severity.MEDIUM
    default_recoverable: bool = True

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.recoverable = recoverable if recoverable is not None else self.default_recoverable
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause is not None:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging and error notifications."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(InstallationKeeperError):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_recoverable = False

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""

    def __init__(self, key: str, source: str = "config"):
        super().__init__(
            message=f"Missing required configuration: {key}",
            config_key=key,
            context={"source": source},
        )


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


# ============================================================
# MONITORING ERRORS
# ============================================================

class MonitoringError(InstallationKeeperError):
    """Base class for metrics scheduler errors."""


class NoProviderError(MonitoringError):
    """The scheduler was started without a metrics provider."""

    default_severity = Severity.HIGH
    default_recoverable = False

    def __init__(self, message: str = "No metrics provider bound to the scheduler"):
        super().__init__(message)


class ProviderError(MonitoringError):
    """A single metrics provider call failed."""

    def __init__(
        self,
        call: str,
        message: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.call = call
        super().__init__(
            message or f"Provider call {call} failed: {cause}",
            context={"call": call},
            cause=cause,
        )


class SchedulerAlreadyRunningError(MonitoringError):
    """start() was called on a scheduler that is already running."""

    def __init__(self):
        super().__init__("Metrics scheduler is already running", recoverable=False)


# ============================================================
# VALIDATION ERRORS
# ============================================================

class ValidationRunError(InstallationKeeperError):
    """Base class for validation runner errors."""


class AlreadyRunningError(ValidationRunError):
    """A validation run is already in progress."""

    def __init__(self, message: str = "Validation is already running"):
        super().__init__(message)


class UnknownTestError(ValidationRunError):
    """A validation test id is not registered."""

    def __init__(self, test_id: str):
        self.test_id = test_id
        super().__init__(
            f"Unknown validation test: {test_id}",
            context={"test_id": test_id},
            recoverable=False,
        )


# ============================================================
# NOTIFICATION ERRORS
# ============================================================

class NotificationError(InstallationKeeperError):
    """Failed to deliver a notification."""

    default_severity = Severity.LOW

    def __init__(
        self,
        message: str,
        channel: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if channel:
            context["channel"] = channel
        if status_code is not None:
            context["status_code"] = status_code

        super().__init__(message, context=context, **kwargs)


__all__ = [
    "Severity",
    "InstallationKeeperError",
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    "MonitoringError",
    "NoProviderError",
    "ProviderError",
    "SchedulerAlreadyRunningError",
    "ValidationRunError",
    "AlreadyRunningError",
    "UnknownTestError",
    "NotificationError",
]
