"""
Validation - Collaborator Interfaces.

Host-specific probes some validation tests need. No implementation
ships here; the hosting application binds platform-specific ones.
Tests that need a probe which was not provided report a warning or
a failure instead of raising.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class SettingStatus(str, Enum):
    APPLIED = "applied"
    NOT_APPLIED = "not_applied"
    ERROR = "error"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SettingVerification:
    """Whether one system setting has the value the installation needs."""
    setting: str
    status: SettingStatus
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"setting": self.setting, "status": self.status.value, "detail": self.detail}


@dataclass(frozen=True)
class IntegrityProtectionStatus:
    enabled: Optional[bool]


class SettingsVerifier(ABC):
    """Checks host system preferences."""

    @abstractmethod
    async def verify_settings(
        self,
        names: Optional[Sequence[str]] = None,
    ) -> List[SettingVerification]:
        """
        Verify system settings.

        Args:
            names: Settings to verify, or None for all known settings

        Returns:
            One verification per setting
        """
        pass

    @abstractmethod
    async def check_integrity_protection_status(self) -> IntegrityProtectionStatus:
        pass


@dataclass(frozen=True)
class AutoStartEntry:
    """A login/boot entry that starts installation software."""
    label: str
    installed: bool
    loaded: bool

    @property
    def is_active(self) -> bool:
        return self.installed and self.loaded

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "installed": self.installed, "loaded": self.loaded}


class AutoStartInspector(ABC):
    """Lists the auto-start entries managed for the installation."""

    @abstractmethod
    async def list_entries(self) -> List[AutoStartEntry]:
        pass
