"""
Metrics Scheduler.

============================================================
PURPOSE
============================================================
Periodically pulls a snapshot from the metrics provider, keeps the
watched-application set, publishes snapshot / alert / heartbeat
events.

============================================================
LIFECYCLE
============================================================
    scheduler = MetricsScheduler(provider)
    scheduler.on_alerts(notifier.handle_alerts)
    await scheduler.start(interval_ms=30000)
    ...
    scheduler.stop()

One instance per process, owned and passed around by the caller.

============================================================
CYCLE POLICY
============================================================
- Provider calls are isolated: one failing call marks its field
  unknown, records the error on the snapshot, and publishes an
  error event. The other calls still complete.
- Cycles never overlap. A cycle requested while one is in flight
  is skipped. The periodic loop is fixed-rate and drops ticks that
  were missed while a long cycle ran.
- A failing cycle is reported as an error event; the schedule
  keeps running.

============================================================
"""

import asyncio
import hashlib
import logging
import platform
import secrets
import socket
import threading
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Deque, Dict, List, Mapping, Optional, Sequence

from core.clock import ClockProtocol, SystemClock
from core.exceptions import (
    InvalidConfigError,
    MonitoringError,
    NoProviderError,
    ProviderError,
    SchedulerAlreadyRunningError,
)

from .alerts.evaluator import AlertEvaluator
from .config import AlertThresholds, MonitoringSettings
from .events import EventBus, EventKind, Listener
from .interfaces import MetricsProvider
from .models import (
    Alert,
    AppHistoryEntry,
    AppRunState,
    AppStatus,
    Heartbeat,
    NetworkInfo,
    OverallStatus,
    QuickStats,
    SecurityStatus,
    Snapshot,
    SystemMetrics,
    WatchedApplication,
)


logger = logging.getLogger(__name__)


# Usage above this is critical regardless of the configured thresholds.
HEARTBEAT_CRITICAL_USAGE = 95.0


def generate_installation_id(timestamp: Optional[float] = None) -> str:
    """
    Derive an installation identifier.

    Hash of hostname, platform, architecture, time and a random salt,
    truncated to 16 hex characters. Not persisted: a new process gets
    a new identifier.
    """
    ts = timestamp if timestamp is not None else datetime.now().timestamp()
    seed = "-".join([
        socket.gethostname(),
        platform.system().lower(),
        platform.machine(),
        str(int(ts * 1000)),
        secrets.token_hex(8),
    ])
    return hashlib.md5(seed.encode("utf-8")).hexdigest()[:16]


# ============================================================
# RESTART DETECTION
# ============================================================

def count_restarts(history: Sequence[AppHistoryEntry], current: AppStatus) -> int:
    """
    Count restarts across `history` followed by `current`.

    A restart is a stopped -> running transition, or a new pid between
    two running observations. The first observation never counts.
    """
    observed = [(entry.status, entry.pid) for entry in history]
    observed.append((current.status, current.pid))

    restarts = 0
    for (prev_status, prev_pid), (status, pid) in zip(observed, observed[1:]):
        if status != AppRunState.RUNNING:
            continue
        if prev_status != AppRunState.RUNNING:
            restarts += 1
        elif pid is not None and prev_pid is not None and pid != prev_pid:
            restarts += 1
    return restarts


class MetricsScheduler:
    """
    Collection and heartbeat scheduler.

    add_application / remove_application / update_thresholds may be
    called at any time, including while a cycle is in flight; each
    is a short replace under a lock and applies from the next cycle.
    """

    def __init__(
        self,
        provider: Optional[MetricsProvider] = None,
        settings: Optional[MonitoringSettings] = None,
        clock: Optional[ClockProtocol] = None,
        evaluator: Optional[AlertEvaluator] = None,
        installation_id: Optional[str] = None,
    ):
        self._provider = provider
        self._settings = settings or MonitoringSettings()
        self._clock = clock or SystemClock()
        self._evaluator = evaluator or AlertEvaluator()
        self._events = EventBus()

        self._created_at = self._clock.now()
        self._installation_id = installation_id or generate_installation_id(self._clock.timestamp())

        # Shared state
        self._lock = threading.Lock()
        self._current: Optional[Snapshot] = None
        self._watched: Dict[str, WatchedApplication] = {}
        self._thresholds: AlertThresholds = self._settings.thresholds
        self._app_history: Dict[str, Deque[AppHistoryEntry]] = {}

        # Tasks
        self._running = False
        self._collecting = False
        self._interval_ms: Optional[int] = None
        self._collection_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None

        # Statistics
        self._cycles = 0
        self._skipped_cycles = 0
        self._provider_errors = 0
        self._cycle_errors = 0
        self._heartbeats = 0

        logger.info(f"MetricsScheduler initialized (installation {self._installation_id})")

    # =========================================================
    # PROPERTIES
    # =========================================================

    @property
    def installation_id(self) -> str:
        return self._installation_id

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def thresholds(self) -> AlertThresholds:
        with self._lock:
            return self._thresholds

    @property
    def interval_ms(self) -> Optional[int]:
        return self._interval_ms

    def bind_provider(self, provider: MetricsProvider) -> None:
        """Bind the provider. Takes effect on the next cycle."""
        self._provider = provider

    # =========================================================
    # LISTENERS
    # =========================================================

    def on_snapshot(self, listener: Callable[[Snapshot], Any]) -> None:
        self._events.subscribe(EventKind.SNAPSHOT_UPDATED, listener)

    def on_alerts(self, listener: Callable[[List[Alert]], Any]) -> None:
        self._events.subscribe(EventKind.ALERTS_RAISED, listener)

    def on_heartbeat(self, listener: Callable[[Heartbeat], Any]) -> None:
        self._events.subscribe(EventKind.HEARTBEAT, listener)

    def on_error(self, listener: Callable[[MonitoringError], Any]) -> None:
        self._events.subscribe(EventKind.ERROR, listener)

    def on_thresholds_updated(self, listener: Callable[[AlertThresholds], Any]) -> None:
        self._events.subscribe(EventKind.THRESHOLDS_UPDATED, listener)

    def remove_listener(self, kind: EventKind, listener: Listener) -> None:
        self._events.unsubscribe(kind, listener)

    # =========================================================
    # LIFECYCLE
    # =========================================================

    async def start(self, interval_ms: Optional[int] = None) -> None:
        """
        Start periodic collection and heartbeats.

        Runs one collection and one heartbeat before returning.

        Args:
            interval_ms: Collection interval; the heartbeat runs every
                min(interval_ms, 60000) ms

        Raises:
            NoProviderError: no provider bound
            SchedulerAlreadyRunningError: already started
        """
        if self._provider is None:
            raise NoProviderError()
        if self._running:
            raise SchedulerAlreadyRunningError()

        interval_ms = interval_ms if interval_ms is not None else self._settings.interval_ms
        if interval_ms <= 0:
            raise InvalidConfigError("interval_ms", interval_ms, "interval must be positive")

        heartbeat_ms = min(interval_ms, self._settings.max_heartbeat_interval_ms)
        self._interval_ms = interval_ms
        self._running = True

        await self._collect_guarded()
        await self._heartbeat_guarded()

        if not self._running:
            # stop() was called during the initial cycle
            return

        self._collection_task = asyncio.create_task(
            self._run_periodic("collection", interval_ms / 1000, self._collect_guarded)
        )
        self._heartbeat_task = asyncio.create_task(
            self._run_periodic("heartbeat", heartbeat_ms / 1000, self._heartbeat_guarded)
        )
        logger.info(
            f"Metrics scheduler started: collection every {interval_ms}ms, "
            f"heartbeat every {heartbeat_ms}ms"
        )

    def stop(self) -> None:
        """Cancel both periodic tasks. No-op when not started."""
        if not self._running and self._collection_task is None and self._heartbeat_task is None:
            return

        self._running = False
        for task in (self._collection_task, self._heartbeat_task):
            if task is not None and not task.done():
                task.cancel()
        self._collection_task = None
        self._heartbeat_task = None
        logger.info("Metrics scheduler stopped")

    async def shutdown(self) -> None:
        """Stop and wait for the cancelled tasks and pending listeners."""
        tasks = [t for t in (self._collection_task, self._heartbeat_task) if t is not None]
        self.stop()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._events.drain()

    async def _run_periodic(
        self,
        name: str,
        interval_seconds: float,
        action: Callable[[], Awaitable[Any]],
    ) -> None:
        """Fixed-rate loop. Ticks missed during a long run are dropped."""
        loop = asyncio.get_running_loop()
        next_run = loop.time() + interval_seconds

        while self._running:
            try:
                await asyncio.sleep(max(0.0, next_run - loop.time()))
                if not self._running:
                    break

                await action()

                next_run += interval_seconds
                now = loop.time()
                if next_run <= now:
                    missed = int((now - next_run) // interval_seconds) + 1
                    next_run += missed * interval_seconds
                    logger.debug(f"{name} loop fell behind, dropped {missed} tick(s)")

            except asyncio.CancelledError:
                break

    # =========================================================
    # COLLECTION
    # =========================================================

    async def collect_now(self) -> Optional[Snapshot]:
        """
        Run one collection cycle on demand.

        Returns:
            The new snapshot, or None when a cycle was already in flight

        Raises:
            NoProviderError: no provider bound
        """
        if self._provider is None:
            raise NoProviderError()
        return await self._collect()

    async def _collect_guarded(self) -> None:
        try:
            await self._collect()
        except Exception as e:
            self._cycle_errors += 1
            logger.error(f"Collection cycle failed: {e}", exc_info=True)
            error = e if isinstance(e, MonitoringError) else MonitoringError(
                f"Collection cycle failed: {e}", cause=e,
            )
            self._events.publish(EventKind.ERROR, error)

    async def _collect(self) -> Optional[Snapshot]:
        if self._collecting:
            self._skipped_cycles += 1
            logger.debug("Collection cycle still in flight, skipping")
            return None

        self._collecting = True
        try:
            snapshot = await self._build_snapshot()

            with self._lock:
                self._current = snapshot
                self._record_history(snapshot)
                thresholds = self._thresholds
            self._cycles += 1

            self._events.publish(EventKind.SNAPSHOT_UPDATED, snapshot)

            alerts = self._evaluator.evaluate(snapshot, thresholds)
            if alerts:
                logger.warning(
                    f"{len(alerts)} alert(s) raised: "
                    + ", ".join(a.type for a in alerts)
                )
                self._events.publish(EventKind.ALERTS_RAISED, alerts)

            return snapshot
        finally:
            self._collecting = False

    async def _build_snapshot(self) -> Snapshot:
        provider = self._provider
        with self._lock:
            watched = dict(self._watched)
        names = list(watched.keys())
        errors: Dict[str, str] = {}

        async def no_apps() -> List[AppStatus]:
            return []

        system, network, raw_apps, displays, security = await asyncio.gather(
            self._provider_call("get_system_metrics", provider.get_system_metrics, SystemMetrics(), errors),
            self._provider_call("get_network_info", provider.get_network_info, NetworkInfo(), errors),
            self._provider_call(
                "get_application_status",
                (lambda: provider.get_application_status(names)) if names else no_apps,
                None,
                errors,
            ),
            self._provider_call("get_display_info", provider.get_display_info, [], errors),
            self._provider_call("get_security_status", provider.get_security_status, SecurityStatus(), errors),
        )

        return Snapshot(
            timestamp=self._clock.now(),
            system=system,
            network=network,
            applications=self._with_restart_counts(self._merge_app_status(watched, raw_apps)),
            displays=tuple(displays),
            security=security,
            collection_errors=errors,
        )

    async def _provider_call(
        self,
        call: str,
        fn: Callable[[], Awaitable[Any]],
        default: Any,
        errors: Dict[str, str],
    ) -> Any:
        try:
            return await fn()
        except Exception as e:
            self._provider_errors += 1
            errors[call] = str(e)
            logger.warning(f"Provider call {call} failed: {e}")
            self._events.publish(EventKind.ERROR, ProviderError(call, cause=e))
            return default

    @staticmethod
    def _merge_app_status(
        watched: Mapping[str, WatchedApplication],
        reported: Optional[List[AppStatus]],
    ) -> List[AppStatus]:
        """
        Combine provider results with the watched set.

        `should_be_running` always comes from the watched entry. A
        watched name the provider did not report counts as stopped.
        When the provider call failed outright, no statuses are known.
        """
        if reported is None:
            return []

        by_name = {status.name: status for status in reported}
        merged = []
        for name, app in watched.items():
            status = by_name.get(name)
            merged.append(AppStatus(
                name=name,
                status=status.status if status else AppRunState.STOPPED,
                pid=status.pid if status else None,
                should_be_running=app.should_be_running,
            ))
        return merged

    def _with_restart_counts(self, apps: List[AppStatus]) -> List[AppStatus]:
        with self._lock:
            histories = {app.name: list(self._app_history.get(app.name, ())) for app in apps}
        return [
            replace(app, restart_count=count_restarts(histories[app.name], app))
            for app in apps
        ]

    def _record_history(self, snapshot: Snapshot) -> None:
        for app in snapshot.applications:
            history = self._app_history.get(app.name)
            if history is None:
                history = deque(maxlen=self._settings.app_history_size)
                self._app_history[app.name] = history
            history.append(AppHistoryEntry(
                timestamp=snapshot.timestamp,
                status=app.status,
                pid=app.pid,
            ))

    # =========================================================
    # HEARTBEAT
    # =========================================================

    async def send_heartbeat(self) -> Heartbeat:
        """Build and publish a heartbeat from the current snapshot."""
        heartbeat = self.build_heartbeat()
        self._heartbeats += 1
        self._events.publish(EventKind.HEARTBEAT, heartbeat)
        logger.debug(f"Heartbeat sent: {heartbeat.overall_status.value}")
        return heartbeat

    async def _heartbeat_guarded(self) -> None:
        try:
            await self.send_heartbeat()
        except Exception as e:
            logger.error(f"Heartbeat failed: {e}", exc_info=True)
            self._events.publish(EventKind.ERROR, MonitoringError(f"Heartbeat failed: {e}", cause=e))

    def build_heartbeat(self) -> Heartbeat:
        with self._lock:
            snapshot = self._current
            thresholds = self._thresholds

        if snapshot is None:
            return Heartbeat(
                installation_id=self._installation_id,
                timestamp=self._clock.now(),
                process_uptime=self._clock.seconds_since(self._created_at),
                overall_status=OverallStatus.GOOD,
            )

        system = snapshot.system
        return Heartbeat(
            installation_id=self._installation_id,
            timestamp=self._clock.now(),
            process_uptime=self._clock.seconds_since(self._created_at),
            overall_status=self.overall_status(snapshot, thresholds),
            quick_stats=QuickStats(
                cpu=system.cpu.usage,
                memory=system.memory.usage,
                apps=len(snapshot.running_applications),
            ),
        )

    @staticmethod
    def overall_status(snapshot: Snapshot, thresholds: AlertThresholds) -> OverallStatus:
        """
        Heartbeat status precedence:
        critical if any of cpu/memory/disk > 95, else warning if any
        exceeds its threshold or a should-be-running app is down,
        else good.
        """
        system = snapshot.system
        readings = [
            (system.cpu.usage, thresholds.cpu_usage),
            (system.memory.usage, thresholds.memory_usage),
            (system.disk.usage, thresholds.disk_usage),
        ]
        known = [(usage, limit) for usage, limit in readings if usage is not None]

        if any(usage > HEARTBEAT_CRITICAL_USAGE for usage, _ in known):
            return OverallStatus.CRITICAL
        if any(usage > limit for usage, limit in known) or snapshot.failing_applications:
            return OverallStatus.WARNING
        return OverallStatus.GOOD

    # =========================================================
    # WATCHED APPLICATIONS
    # =========================================================

    def add_application(
        self,
        name: str,
        path: str,
        should_be_running: bool = True,
        **options: Any,
    ) -> WatchedApplication:
        """
        Watch an application. Re-adding a name replaces its entry.

        Takes effect on the next collection cycle.
        """
        if not name:
            raise InvalidConfigError("name", name, "application name is required")

        app = WatchedApplication(
            name=name,
            path=path,
            should_be_running=should_be_running is not False,
            options=dict(options),
        )
        with self._lock:
            self._watched[name] = app
        logger.info(f"Watching application {name} ({path})")
        return app

    def remove_application(self, name: str) -> bool:
        """
        Stop watching an application. Idempotent.

        Returns:
            True if the application was being watched
        """
        with self._lock:
            removed = self._watched.pop(name, None)
            self._app_history.pop(name, None)
        if removed is not None:
            logger.info(f"Stopped watching application {name}")
        return removed is not None

    def get_watched_applications(self) -> List[WatchedApplication]:
        with self._lock:
            return list(self._watched.values())

    def get_application_history(self, name: str) -> List[AppHistoryEntry]:
        with self._lock:
            return list(self._app_history.get(name, ()))

    # =========================================================
    # THRESHOLDS
    # =========================================================

    def update_thresholds(self, partial: Mapping[str, Any]) -> AlertThresholds:
        """
        Merge `partial` into the alert thresholds.

        Effective from the next evaluation.

        Raises:
            InvalidConfigError: unknown key or bad value; nothing is changed
        """
        with self._lock:
            self._thresholds = self._thresholds.merged(partial)
            thresholds = self._thresholds
        logger.info(f"Alert thresholds updated: {dict(partial)}")
        self._events.publish(EventKind.THRESHOLDS_UPDATED, thresholds)
        return thresholds

    # =========================================================
    # QUERIES
    # =========================================================

    def get_current_data(self) -> Optional[Snapshot]:
        """Most recent complete snapshot, or None before the first cycle."""
        with self._lock:
            return self._current

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            watched = len(self._watched)
        return {
            "installation_id": self._installation_id,
            "running": self._running,
            "interval_ms": self._interval_ms,
            "watched_applications": watched,
            "cycles": self._cycles,
            "skipped_cycles": self._skipped_cycles,
            "provider_errors": self._provider_errors,
            "cycle_errors": self._cycle_errors,
            "heartbeats": self._heartbeats,
        }
