#!/usr/bin/env python3
"""
Installation Keeper - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Wires the metrics scheduler, webhook notifier, health scorer and
validation runner into one process.

- Compatible with process managers (PM2, launchd, systemd)
- Stops cleanly on SIGINT / SIGTERM
- Platform probes are loaded by dotted path, so this file holds
  no host-specific code

============================================================
USAGE
============================================================
Run monitoring:
    python app.py --provider my_platform.metrics:HostMetricsProvider

Run validation once and print the report:
    python app.py --provider my_platform.metrics:HostMetricsProvider --validate

Environment-based configuration (a .env file is honored):
    LOG_LEVEL=DEBUG MONITOR_INTERVAL_MS=10000 python app.py --provider ...

============================================================
"""

import argparse
import asyncio
import importlib
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from core.config_store import InMemoryConfigStore
from core.exceptions import InstallationKeeperError, InvalidConfigError, MissingConfigError
from health_scoring import HealthScorer, HealthScoringConfig
from monitoring import MetricsProvider, MetricsScheduler, MonitoringSettings, Snapshot
from monitoring.notifications import WebhookNotifier
from validation import AutoStartInspector, SettingsVerifier, ValidationRunner


logger = logging.getLogger("installation_keeper")


# ============================================================
# CLI
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="installation-keeper",
        description="Unattended installation monitoring, health scoring and validation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --provider host.metrics:Provider
  %(prog)s --provider host.metrics:Provider --app Viewer=/Applications/Viewer.app
  %(prog)s --provider host.metrics:Provider --validate --verifier host.settings:Verifier
  %(prog)s --provider host.metrics:Provider --health
        """
    )

    parser.add_argument(
        "--provider",
        default=os.getenv("KEEPER_PROVIDER"),
        help="Metrics provider class as package.module:Class (env KEEPER_PROVIDER)",
    )
    parser.add_argument(
        "--verifier",
        default=os.getenv("KEEPER_VERIFIER"),
        help="Settings verifier class as package.module:Class",
    )
    parser.add_argument(
        "--inspector",
        default=os.getenv("KEEPER_INSPECTOR"),
        help="Auto-start inspector class as package.module:Class",
    )

    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument(
        "--monitoring-config",
        type=Path,
        help="YAML file with scheduler and notifier settings (default: environment)",
    )
    config_group.add_argument(
        "--installation-config",
        type=Path,
        help="YAML file with the installation configuration document",
    )
    config_group.add_argument(
        "--interval-ms",
        type=int,
        help="Collection interval in milliseconds",
    )
    config_group.add_argument(
        "--app",
        action="append",
        default=[],
        metavar="NAME=PATH",
        help="Application to watch; may be repeated",
    )

    run_group = parser.add_argument_group("One-shot Commands")
    run_group.add_argument(
        "--validate",
        action="store_true",
        help="Run the validation tests once, print the JSON report and exit",
    )
    run_group.add_argument(
        "--health",
        action="store_true",
        help="Score one snapshot, print the JSON health report and exit",
    )

    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (env LOG_LEVEL)",
    )
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s | %(levelname)-5s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ============================================================
# WIRING
# ============================================================

def load_class(dotted: str, base: type) -> Any:
    """
    Instantiate a class given as package.module:Class.

    Raises:
        InvalidConfigError: malformed path, missing class, or wrong base class
    """
    module_name, sep, class_name = dotted.partition(":")
    if not sep or not module_name or not class_name:
        raise InvalidConfigError(base.__name__, dotted, "expected package.module:Class")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise InvalidConfigError(base.__name__, dotted, f"cannot import {module_name}: {e}") from e

    cls = getattr(module, class_name, None)
    if not isinstance(cls, type) or not issubclass(cls, base):
        raise InvalidConfigError(base.__name__, dotted, f"{class_name} is not a {base.__name__}")
    return cls()


def parse_apps(entries: List[str]) -> Dict[str, str]:
    apps = {}
    for entry in entries:
        name, sep, path = entry.partition("=")
        if not sep or not name.strip():
            raise InvalidConfigError("app", entry, "expected NAME=PATH")
        apps[name.strip()] = path.strip()
    return apps


def load_installation_config(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load installation config from {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Installation config {path} is not a mapping, ignoring it")
        return {}
    return data


def build_scheduler(args, settings: MonitoringSettings) -> MetricsScheduler:
    if not args.provider:
        raise MissingConfigError("provider", source="--provider or KEEPER_PROVIDER")
    provider = load_class(args.provider, MetricsProvider)
    scheduler = MetricsScheduler(provider=provider, settings=settings)
    for name, path in parse_apps(args.app).items():
        scheduler.add_application(name, path)
    return scheduler


def print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, default=str))


# ============================================================
# COMMANDS
# ============================================================

async def run_validation(args, scheduler: MetricsScheduler, store: InMemoryConfigStore) -> int:
    verifier = load_class(args.verifier, SettingsVerifier) if args.verifier else None
    inspector = load_class(args.inspector, AutoStartInspector) if args.inspector else None

    await scheduler.collect_now()
    runner = ValidationRunner(scheduler, store, verifier=verifier, inspector=inspector)
    report = await runner.run_full_validation()
    print_json(report.to_dict())
    return 0 if report.summary.is_healthy else 1


async def run_health(scheduler: MetricsScheduler, store: InMemoryConfigStore) -> int:
    snapshot = await scheduler.collect_now()
    if snapshot is None:
        logger.error("No snapshot collected")
        return 1
    scorer = HealthScorer(HealthScoringConfig.from_env())
    report = scorer.generate_health_report(snapshot, await store.load_installation_config())
    print_json(report.to_dict())
    return 0


async def run_monitoring(
    args,
    scheduler: MetricsScheduler,
    store: InMemoryConfigStore,
    settings: MonitoringSettings,
) -> int:
    notifier = WebhookNotifier(
        scheduler.installation_id,
        settings.channels,
        timeout_seconds=settings.request_timeout_seconds,
    )
    notifier.attach(scheduler)

    scorer = HealthScorer(HealthScoringConfig.from_env())
    installation = await store.load_installation_config()

    def log_health(snapshot: Snapshot) -> None:
        health = scorer.score(snapshot, installation)
        logger.info(f"Health {health.overall} ({health.rating.value})")

    scheduler.on_snapshot(log_health)

    stop_event = asyncio.Event()
    install_signal_handlers(stop_event)

    try:
        await scheduler.start(args.interval_ms)
        logger.info(f"Monitoring installation {scheduler.installation_id} (Ctrl+C to stop)")
        await stop_event.wait()
        return 0
    finally:
        await scheduler.shutdown()
        await notifier.close()
        logger.info(f"Final statistics: {scheduler.get_statistics()}")


def install_signal_handlers(stop_event: asyncio.Event) -> None:
    """Set `stop_event` on SIGINT / SIGTERM."""
    if sys.platform == "win32":
        # No loop signal handlers on Windows; KeyboardInterrupt ends asyncio.run
        return

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _on_signal, sig, stop_event)


def _on_signal(sig: signal.Signals, stop_event: asyncio.Event) -> None:
    logger.info(f"Received signal {sig.name}")
    stop_event.set()


async def run_application(args) -> int:
    """
    Run the selected command.

    Returns:
        Exit code
    """
    if args.monitoring_config:
        settings = MonitoringSettings.from_yaml(args.monitoring_config)
    else:
        settings = MonitoringSettings.from_env()
    store = InMemoryConfigStore(load_installation_config(args.installation_config))

    try:
        scheduler = build_scheduler(args, settings)
        if args.validate:
            return await run_validation(args, scheduler, store)
        if args.health:
            return await run_health(scheduler, store)
        return await run_monitoring(args, scheduler, store, settings)
    except InstallationKeeperError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 2
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


def main() -> int:
    """Main entry point."""
    load_dotenv()
    args = create_parser().parse_args()
    configure_logging(args.log_level)

    try:
        return asyncio.run(run_application(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
