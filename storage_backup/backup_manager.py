"""Batch orchestration of transfers and run-level metrics."""

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from .transfer import COPIED, SKIPPED, TransferOutcome, TransferStrategist
from .tree_enumerator import RemoteObject


class RunMetrics:
    """Aggregate counters for one backup run."""

    def __init__(self, start_time: Optional[datetime] = None):
        self.start_time = start_time or datetime.now()
        self.end_time: Optional[datetime] = None
        self.total_files = 0
        self.success_count = 0
        self.skip_count = 0
        self.error_count = 0
        self.total_bytes = 0
        self.bytes_copied = 0
        self.batches = 0

    @property
    def finished(self) -> bool:
        return self.end_time is not None

    @property
    def duration(self) -> float:
        """Run duration in seconds (up to now while the run is in progress)."""
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    def record(self, obj: RemoteObject, outcome: TransferOutcome) -> None:
        """Count one transfer outcome."""
        if self.finished:
            raise RuntimeError("Cannot record outcomes on a finished run")

        self.total_files += 1
        self.total_bytes += obj.size or 0

        if outcome.status == COPIED:
            self.success_count += 1
            self.bytes_copied += outcome.bytes_transferred
        elif outcome.status == SKIPPED:
            self.skip_count += 1
        else:
            self.error_count += 1

    def finish(self, end_time: Optional[datetime] = None) -> "RunMetrics":
        """Freeze the metrics; later calls keep the first end time."""
        if self.end_time is None:
            self.end_time = end_time or datetime.now()
        return self


_SIZE_UNITS = ("KB", "MB", "GB", "TB", "PB")


def format_size(num_bytes: int) -> str:
    """Byte count in binary steps: whole bytes below 1 KB, one decimal above."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    value = num_bytes / 1024
    for unit in _SIZE_UNITS[:-1]:
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} {_SIZE_UNITS[-1]}"


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format."""
    if seconds < 60:
        return f"{seconds:.0f}s"
    elif seconds < 3600:
        return f"{int(seconds // 60)}m {seconds % 60:.0f}s"
    else:
        return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60)}m"


def format_run_summary(metrics: RunMetrics) -> str:
    """Format run metrics into a readable summary."""
    summary = ["=== Backup Summary ==="]
    summary.append(f"Total files: {metrics.total_files}")
    summary.append(f"Successfully backed up: {metrics.success_count}")
    summary.append(f"Skipped (already exists): {metrics.skip_count}")
    summary.append(f"Errors: {metrics.error_count}")
    summary.append(f"Batches: {metrics.batches}")
    summary.append(f"Duration: {format_duration(metrics.duration)}")
    summary.append(f"Total size processed: {format_size(metrics.total_bytes)}")
    summary.append(f"Bytes copied: {format_size(metrics.bytes_copied)}")
    return "\n".join(summary)


def chunked(objects: Sequence[RemoteObject], size: int) -> List[List[RemoteObject]]:
    """Split ``objects`` into contiguous batches of at most ``size`` items."""
    if size <= 0:
        raise ValueError("batch size must be > 0")
    return [list(objects[i:i + size]) for i in range(0, len(objects), size)]


class BackupManager:
    """Runs transfers in sequential batches of bounded concurrency."""

    def __init__(self, strategist: TransferStrategist, staging_dir: str, batch_size: int = 5):
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.strategist = strategist
        self.staging_dir = Path(staging_dir)
        self.batch_size = batch_size
        self.logger = logging.getLogger(__name__)

    def run(
        self,
        objects: Sequence[RemoteObject],
        batch_size: Optional[int] = None,
        metrics: Optional[RunMetrics] = None,
    ) -> RunMetrics:
        """
        Copy all objects, one batch at a time.

        Every transfer of a batch runs concurrently and the batch completes
        only when all of them have resolved. The staging directory is removed
        when the run ends, whatever the outcome.

        Args:
            objects: Files to back up
            batch_size: Concurrency width per batch (defaults to the configured one)
            metrics: Metrics to accumulate into; the caller then owns finishing them

        Returns:
            The run metrics, finished unless they were passed in
        """
        batch_size = batch_size or self.batch_size
        owns_metrics = metrics is None
        if owns_metrics:
            metrics = RunMetrics()

        try:
            self._ensure_staging_dir()

            batches = chunked(objects, batch_size)
            if objects:
                self.logger.info(
                    f"Starting backup of {len(objects)} file(s) in {len(batches)} batch(es)"
                )

            for number, batch in enumerate(batches, start=1):
                self.logger.info(f"Processing batch {number} ({len(batch)} files)")
                for obj, outcome in zip(batch, self._run_batch(batch)):
                    metrics.record(obj, outcome)
                metrics.batches += 1
        finally:
            self._cleanup_staging_dir()

        return metrics.finish() if owns_metrics else metrics

    def _run_batch(self, batch: List[RemoteObject]) -> List[TransferOutcome]:
        """Start every transfer of the batch and wait for all of them."""
        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            futures = [executor.submit(self.strategist.copy, obj) for obj in batch]

        outcomes = []
        for obj, future in zip(batch, futures):
            try:
                outcomes.append(future.result())
            except Exception as e:
                self.logger.error(f"Unexpected error backing up {obj.path}: {e}")
                outcomes.append(TransferOutcome.failed(obj.path, e))
        return outcomes

    def _ensure_staging_dir(self) -> None:
        if not self.staging_dir.exists():
            self.staging_dir.mkdir(parents=True, exist_ok=True)
            self.logger.info(f"Created staging directory: {self.staging_dir}")

    def _cleanup_staging_dir(self) -> None:
        try:
            shutil.rmtree(self.staging_dir)
            self.logger.info(f"Cleaned up staging directory: {self.staging_dir}")
        except FileNotFoundError:
            pass
        except Exception as e:
            self.logger.warning(f"Could not clean up staging directory {self.staging_dir}: {e}")
