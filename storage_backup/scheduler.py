"""Run supervision: one run at startup, then a once-a-minute schedule poll."""

import logging
import signal
import threading
from datetime import datetime
from typing import Callable, Iterable, Optional

from .backup_manager import BackupManager, RunMetrics, format_run_summary
from .schedule_checker import ScheduleChecker
from .storage import Notifier
from .tree_enumerator import TreeEnumerator, filter_by_extension

POLL_INTERVAL = 60.0


class BackupScheduler:
    """Ties enumeration, batching and scheduling into a repeating process."""

    def __init__(
        self,
        enumerator: TreeEnumerator,
        manager: BackupManager,
        schedule: str,
        notifier: Optional[Notifier] = None,
        file_extensions: Iterable[str] = (),
        poll_interval: float = POLL_INTERVAL,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.enumerator = enumerator
        self.manager = manager
        self.schedule = schedule
        self.notifier = notifier
        self.file_extensions = list(file_extensions)
        self.poll_interval = poll_interval
        self.clock = clock
        self._stop_event = threading.Event()
        self._last_fired_minute: Optional[datetime] = None
        self.logger = logging.getLogger(__name__)

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run_backup(self, raise_errors: bool = False) -> Optional[RunMetrics]:
        """
        Perform one complete backup run.

        Args:
            raise_errors: Re-raise unexpected errors instead of logging them
                (single-run mode turns these into a non-zero exit code)

        Returns:
            The finished metrics, or None if the run failed
        """
        metrics = RunMetrics(start_time=self.clock())
        self.logger.info("=" * 60)
        self.logger.info(f"Starting backup at {metrics.start_time:%Y-%m-%d %H:%M:%S}")
        self.logger.info("=" * 60)

        try:
            objects = self.enumerator.list_all()
            objects = filter_by_extension(objects, self.file_extensions)

            if not objects:
                self.logger.info("No files found to backup")
            else:
                self.manager.run(objects, metrics=metrics)
            metrics.finish(self.clock())
        except Exception as e:
            self.logger.error(f"Backup failed with error: {e}", exc_info=True)
            if raise_errors:
                raise
            return None

        self.logger.info("\n" + format_run_summary(metrics))
        self._notify(metrics)
        return metrics

    def _notify(self, metrics: RunMetrics) -> None:
        """Hand metrics to the notifier; failures are logged and dropped."""
        if self.notifier is None:
            return
        try:
            self.notifier.send(metrics)
        except Exception as e:
            self.logger.error(f"Failed to send notification: {e}")

    def should_run_now(self, now: Optional[datetime] = None) -> bool:
        """Check the schedule, firing at most once per calendar minute."""
        now = now or self.clock()
        minute = now.replace(second=0, microsecond=0)
        if minute == self._last_fired_minute:
            return False
        if not ScheduleChecker.should_run(self.schedule, now):
            return False
        self._last_fired_minute = minute
        return True

    def start(self) -> None:
        """Run once immediately, then poll the schedule until stopped."""
        if not ScheduleChecker.validate_schedule_format(self.schedule):
            self.logger.warning(f"Schedule '{self.schedule}' does not look like a valid cron expression")

        self.logger.info("Running initial backup...")
        self.run_backup()

        self.logger.info(f"Scheduler is running with schedule '{self.schedule}'")
        self._log_next_run()

        while not self._stop_event.wait(self.poll_interval):
            now = self.clock()
            if self.should_run_now(now):
                self.logger.info(f"[{now:%Y-%m-%d %H:%M:%S}] Cron trigger activated")
                self.run_backup()
                self._log_next_run()

        self.logger.info("Scheduler stopped")

    def stop(self) -> None:
        """Stop scheduling further runs; an in-flight run is left to finish."""
        self._stop_event.set()

    def install_signal_handlers(self) -> None:
        """Stop gracefully on SIGINT and SIGTERM."""

        def handle_signal(signum, frame):
            self.logger.info(
                f"Received {signal.Signals(signum).name}, shutting down gracefully..."
            )
            self.stop()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

    def _log_next_run(self) -> None:
        next_run = ScheduleChecker.next_run_time(self.schedule, self.clock())
        if next_run:
            self.logger.info(f"Next scheduled run: {next_run:%Y-%m-%d %H:%M}")
