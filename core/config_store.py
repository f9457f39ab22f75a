"""
Core Module - Configuration Store.

============================================================
PURPOSE
============================================================
Dot-path access to the installation configuration document.

- ConfigStore is the interface the validation runner and the
  health scorer read through
- InMemoryConfigStore keeps the document in memory, seeded with
  the default configuration merged with any overrides

Persisting the document to disk belongs to the surrounding
application and is not done here.

============================================================
USAGE
============================================================
    store = InMemoryConfigStore({"installation": {"name": "Lobby Wall"}})
    await store.get("monitoring.interval_ms")        # 30000
    await store.update("notifications.enabled", False)
    config = await store.load_installation_config()

============================================================
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from core.exceptions import InvalidConfigError
from core.installation_config import InstallationConfig, merge_config


logger = logging.getLogger(__name__)


def default_config() -> Dict[str, Any]:
    """Fresh copy of the default configuration document."""
    return InstallationConfig().to_dict()


def _split_path(path: str) -> List[str]:
    parts = [p for p in path.split(".") if p]
    if not parts:
        raise InvalidConfigError(path, path, "configuration path is empty")
    return parts


# ============================================================
# INTERFACE
# ============================================================

class ConfigStore(ABC):
    """Dot-delimited access to the configuration document."""

    @abstractmethod
    async def get(self, path: Optional[str] = None) -> Any:
        """
        Read a value.

        Args:
            path: Dot-delimited path, or None for the whole document

        Returns:
            The value, or None when the path does not exist
        """
        pass

    @abstractmethod
    async def update(self, path: str, value: Any) -> None:
        """Write a value at a dot-delimited path."""
        pass

    async def load_installation_config(self) -> InstallationConfig:
        """Read the whole document and parse it."""
        return InstallationConfig.from_dict(await self.get())


# ============================================================
# IN-MEMORY IMPLEMENTATION
# ============================================================

class InMemoryConfigStore(ConfigStore):
    """
    Configuration store backed by a nested dict.

    Values handed out are deep copies, so callers cannot mutate the
    stored document behind the store's back.
    """

    def __init__(self, overrides: Optional[Mapping[str, Any]] = None):
        self._data = merge_config(default_config(), overrides or {})
        self._lock = threading.RLock()

    async def get(self, path: Optional[str] = None) -> Any:
        with self._lock:
            if path is None:
                return copy.deepcopy(self._data)

            node: Any = self._data
            for part in _split_path(path):
                if not isinstance(node, Mapping) or part not in node:
                    return None
                node = node[part]
            return copy.deepcopy(node)

    async def update(self, path: str, value: Any) -> None:
        parts = _split_path(path)
        with self._lock:
            node = self._data
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            node[parts[-1]] = copy.deepcopy(value)
        logger.debug(f"Configuration updated: {path}")

    async def merge(self, partial: Mapping[str, Any]) -> None:
        """Deep-merge a partial document into the stored one."""
        with self._lock:
            self._data = merge_config(self._data, partial)

    async def reset(self) -> None:
        """Restore the default configuration."""
        with self._lock:
            self._data = default_config()
        logger.info("Configuration reset to defaults")


__all__ = [
    "default_config",
    "ConfigStore",
    "InMemoryConfigStore",
]
