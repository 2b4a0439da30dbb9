"""Per-object transfer: existence probe, buffered copy, staged-file fallback."""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from .errors import TransferTimeoutError
from .storage import (
    DestinationStorage,
    SourceStorage,
    get_content_type,
    make_destination_key,
)
from .tree_enumerator import RemoteObject

BUFFERED_SIZE_LIMIT = 100 * 1024 * 1024  # 100 MiB
PROBE_TIMEOUT = 15.0
READ_TIMEOUT = 60.0

COPIED = "copied"
SKIPPED = "skipped"
FAILED = "failed"


class TransferOutcome:
    """Result of copying one object: copied, skipped or failed."""

    def __init__(
        self,
        path: str,
        status: str,
        reason: str = "",
        error: Optional[BaseException] = None,
        strategy: Optional[str] = None,
        bytes_transferred: int = 0,
    ):
        self.path = path
        self.status = status
        self.reason = reason
        self.error = error
        self.strategy = strategy
        self.bytes_transferred = bytes_transferred

    @classmethod
    def copied(cls, path: str, strategy: str, bytes_transferred: int) -> "TransferOutcome":
        return cls(path, COPIED, strategy=strategy, bytes_transferred=bytes_transferred)

    @classmethod
    def skipped(cls, path: str, reason: str) -> "TransferOutcome":
        return cls(path, SKIPPED, reason=reason)

    @classmethod
    def failed(cls, path: str, error: BaseException) -> "TransferOutcome":
        return cls(path, FAILED, reason=str(error), error=error)

    def __repr__(self) -> str:
        return f"TransferOutcome(path={self.path!r}, status={self.status!r}, reason={self.reason!r})"


def call_with_timeout(func: Callable[..., Any], timeout: float, *args, **kwargs) -> Any:
    """
    Run ``func`` in a helper thread and wait at most ``timeout`` seconds.

    The helper thread cannot be killed, so a hung call keeps running in the
    background after TransferTimeoutError is raised.
    """
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        name = getattr(func, "__name__", repr(func))
        raise TransferTimeoutError(f"{name} timed out after {timeout:g}s") from None
    finally:
        executor.shutdown(wait=False)


def staging_file_name(path: str) -> str:
    """
    Flatten an object path into a file name unique to this transfer.

    Flattening alone is ambiguous (``a/b_c`` and ``a_b/c`` both give ``a_b_c``),
    so a random token is put in front of it.
    """
    return f"{uuid4().hex}_{path.replace('/', '_')}"


class TransferStrategist:
    """Copies one object from source to destination."""

    def __init__(
        self,
        source: SourceStorage,
        destination: DestinationStorage,
        staging_dir: str,
        key_prefix: Optional[str] = None,
        buffered_size_limit: int = BUFFERED_SIZE_LIMIT,
        probe_timeout: float = PROBE_TIMEOUT,
        read_timeout: float = READ_TIMEOUT,
    ):
        self.source = source
        self.destination = destination
        self.staging_dir = Path(staging_dir)
        self.key_prefix = key_prefix
        self.buffered_size_limit = buffered_size_limit
        self.probe_timeout = probe_timeout
        self.read_timeout = read_timeout
        self.logger = logging.getLogger(__name__)

    def copy(self, obj: RemoteObject) -> TransferOutcome:
        """
        Copy ``obj`` unless the destination already has it.

        Small (or unknown-size) objects are copied through memory; large ones,
        and small ones whose buffered copy failed, go through a staging file.

        Returns:
            The outcome; errors are captured, never raised
        """
        key = make_destination_key(obj.path, self.key_prefix)

        if self._exists(key):
            self.logger.info(f"Skipping (already exists): {obj.path}")
            return TransferOutcome.skipped(obj.path, "already exists")

        content_type = get_content_type(obj.name)
        metadata = {
            "original-path": obj.path,
            "backup-date": datetime.now(timezone.utc).isoformat(),
        }

        if obj.size is None or obj.size < self.buffered_size_limit:
            try:
                size = self._copy_buffered(obj, key, content_type, metadata)
                self.logger.info(f"Copied {obj.path} -> {key} ({size} bytes)")
                return TransferOutcome.copied(obj.path, "buffered", size)
            except Exception as e:
                self.logger.warning(
                    f"Buffered copy failed for {obj.path}: {e}; trying staged copy"
                )

        try:
            size = self._copy_staged(obj, key, content_type, metadata)
        except Exception as e:
            self.logger.error(f"Error backing up {obj.path}: {e}")
            return TransferOutcome.failed(obj.path, e)

        self.logger.info(f"Copied {obj.path} -> {key} via staging file ({size} bytes)")
        return TransferOutcome.copied(obj.path, "staged", size)

    def _exists(self, key: str) -> bool:
        """Probe the destination; any failure counts as 'does not exist'."""
        try:
            return bool(call_with_timeout(self.destination.exists, self.probe_timeout, key))
        except Exception as e:
            self.logger.warning(f"Existence check failed for {key}, assuming missing: {e}")
            return False

    def _read(self, obj: RemoteObject) -> bytes:
        return call_with_timeout(self.source.read, self.read_timeout, obj.path)

    def _copy_buffered(
        self, obj: RemoteObject, key: str, content_type: str, metadata: Dict[str, str]
    ) -> int:
        data = self._read(obj)
        self.destination.write_buffer(key, data, content_type, metadata)
        return len(data)

    def _copy_staged(
        self, obj: RemoteObject, key: str, content_type: str, metadata: Dict[str, str]
    ) -> int:
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        staged_path = self.staging_dir / staging_file_name(obj.path)

        def report_progress(percent: int) -> None:
            self.logger.debug(f"Upload progress {obj.path}: {percent}%")

        try:
            data = self._read(obj)
            staged_path.write_bytes(data)
            with open(staged_path, "rb") as fh:
                self.destination.write_stream(
                    key, fh, content_type, metadata, report_progress
                )
            return len(data)
        finally:
            try:
                staged_path.unlink(missing_ok=True)
            except OSError as e:
                self.logger.warning(f"Could not remove staging file {staged_path}: {e}")
