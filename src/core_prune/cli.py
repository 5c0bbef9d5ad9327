from __future__ import annotations

import argparse
import os
import signal
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from croniter import croniter
from zoneinfo import ZoneInfo

from .config import ConfigurationError, PruneConfig, SchedulerConfig, load_config
from .logger import configure_logging, get_logger
from .orchestrator import SweepOrchestrator, SweepRootError, TenantResult

LOG = get_logger(__name__)

DEFAULT_CONFIG_PATH = "resources/config.json"
EXIT_FATAL = 2


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete dated company directories past their retention.")
    parser.add_argument(
        "--config",
        default=os.getenv("CORE_PRUNE_CONFIG", DEFAULT_CONFIG_PATH),
        help="Path to the retention configuration (YAML or JSON).",
    )
    parser.add_argument(
        "--base-dir",
        default=os.getenv("CORE_PRUNE_BASE_DIR"),
        help="Sweep root holding one directory per company. Overrides sweep_root in the config.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "DEBUG"),
        help="Log level (default DEBUG).",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sweep even when the configuration defines a scheduler.",
    )
    return parser.parse_args(argv)


def resolve_sweep_root(config: PruneConfig, override: Optional[str]) -> Path:
    if override:
        return Path(override).expanduser()
    if config.sweep_root:
        return config.sweep_root
    raise ConfigurationError("No sweep root given; set sweep_root or pass --base-dir")


def run_sweep(config: PruneConfig, sweep_root: Path, now: Optional[datetime] = None) -> List[TenantResult]:
    orchestrator = SweepOrchestrator.from_config(config)
    results = orchestrator.run(sweep_root, now=now)

    for result in results:
        if result.status == "skipped":
            LOG.warning("Company %s skipped: %s", result.tenant_id, "; ".join(result.errors))
        elif result.success:
            LOG.info(
                "Company %s pruned in %.2fs, %d director%s removed",
                result.tenant_id,
                (result.completed_at - result.started_at).total_seconds(),
                len(result.deleted),
                "y" if len(result.deleted) == 1 else "ies",
            )
        else:
            LOG.warning(
                "Company %s pruned with %d error(s), %d removed",
                result.tenant_id,
                len(result.errors),
                len(result.deleted),
            )
    return results


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        configure_logging(args.log_level)
    except ValueError as exc:
        configure_logging("INFO")
        LOG.error("%s", exc)
        return EXIT_FATAL

    config_path = Path(args.config).expanduser()
    try:
        config = load_config(config_path)
        sweep_root = resolve_sweep_root(config, args.base_dir)
    except ConfigurationError as exc:
        LOG.error("Could not open config: %s", exc)
        return EXIT_FATAL
    LOG.debug("Config = %s", config)

    if config.scheduler and not args.once:
        return SweepScheduler(config_path, config, args.base_dir).run()

    try:
        run_sweep(config, sweep_root)
    except SweepRootError as exc:
        LOG.error("%s", exc)
        return EXIT_FATAL
    return 0


class SweepScheduler:
    """Repeats sweeps on the configured cron schedule until stopped.

    The configuration is re-read before every sweep. A configuration that no
    longer loads, or a sweep root that cannot be listed, ends the loop with
    ``EXIT_FATAL`` just as it would for a single run. Removing the
    ``scheduler`` block ends the loop normally.
    """

    MAX_WAIT_SECONDS = 60

    def __init__(
        self,
        config_path: Path,
        config: PruneConfig,
        base_dir: Optional[str],
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        if not config.scheduler:
            raise ValueError("Scheduler configuration is required")
        self._config_path = config_path
        self._config = config
        self._base_dir = base_dir
        self._stop_event = stop_event
        self._next_run: Optional[datetime] = None

    @property
    def _schedule(self) -> SchedulerConfig:
        return self._config.scheduler

    def run(self) -> int:
        if self._stop_event is None:
            self._stop_event = threading.Event()
            self._install_signal_handlers()

        if self._schedule.run_on_startup:
            LOG.info("Executing initial sweep immediately")
            self._next_run = datetime.now(timezone.utc)
        else:
            self._advance()

        while not self._stop_event.is_set():
            remaining = (self._next_run - datetime.now(timezone.utc)).total_seconds()
            if remaining > 0:
                self._stop_event.wait(min(remaining, self.MAX_WAIT_SECONDS))
                continue

            exit_code = self.tick()
            if exit_code is not None:
                return exit_code
            self._advance()

        LOG.info("Scheduler stopped")
        return 0

    def tick(self) -> Optional[int]:
        """Reload the configuration and sweep once; returns an exit code to stop."""
        try:
            self._config = load_config(self._config_path)
            sweep_root = resolve_sweep_root(self._config, self._base_dir)
        except ConfigurationError as exc:
            LOG.error("Could not open config: %s", exc)
            return EXIT_FATAL

        if not self._config.scheduler:
            LOG.info("Scheduler removed from configuration; exiting loop")
            return 0

        try:
            run_sweep(self._config, sweep_root, now=datetime.now(timezone.utc))
        except SweepRootError as exc:
            LOG.error("%s", exc)
            return EXIT_FATAL
        return None

    def _advance(self) -> None:
        self._next_run = next_run_after(
            self._schedule.cron, datetime.now(ZoneInfo(self._schedule.timezone))
        )
        LOG.info("Next sweep scheduled for %s", self._next_run.isoformat())

    def _install_signal_handlers(self) -> None:
        def _handle_signal(signum: int, _frame: Optional[object]) -> None:
            LOG.info("Received signal %s; stopping scheduler", signum)
            self._stop_event.set()

        signal.signal(signal.SIGTERM, _handle_signal)
        signal.signal(signal.SIGINT, _handle_signal)


def next_run_after(cron_expression: str, reference: datetime) -> datetime:
    return croniter(cron_expression, reference).get_next(datetime)


if __name__ == "__main__":
    sys.exit(main())
