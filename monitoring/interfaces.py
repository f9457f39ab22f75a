"""
Metrics Provider Interface.

============================================================
PURPOSE
============================================================
How the scheduler obtains metrics from the host.

Sampling is platform specific, so the scheduler never does it
itself: a concrete provider is injected at construction. Every
method may fail on its own; the scheduler isolates each call so
one failing sensor does not blank the whole snapshot.

============================================================
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

from .models import (
    AppStatus,
    DisplayStatus,
    NetworkInfo,
    SecurityStatus,
    SystemMetrics,
)


class MetricsProvider(ABC):
    """Platform-specific source of host metrics."""

    @abstractmethod
    async def get_system_metrics(self) -> SystemMetrics:
        """CPU, memory, disk, temperature, uptime and load."""
        pass

    @abstractmethod
    async def get_network_info(self) -> NetworkInfo:
        """Interfaces, primary address and reachability."""
        pass

    @abstractmethod
    async def get_application_status(self, names: Sequence[str]) -> List[AppStatus]:
        """
        Status of the named applications.

        Args:
            names: Watched application names for this cycle

        Returns:
            One AppStatus per name the provider could resolve
        """
        pass

    @abstractmethod
    async def get_display_info(self) -> List[DisplayStatus]:
        """Attached displays."""
        pass

    @abstractmethod
    async def get_security_status(self) -> SecurityStatus:
        """Integrity protection, app allowlisting and firewall state."""
        pass


__all__ = ["MetricsProvider"]
