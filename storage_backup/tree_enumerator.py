"""Breadth-first enumeration of the source bucket."""

import logging
from collections import Counter, deque
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .storage import SourceStorage, StorageEntry


class RemoteObject:
    """A single file in the source bucket."""

    def __init__(
        self,
        path: str,
        size: Optional[int] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.path = path
        self.size = size
        self.created_at = created_at
        self.updated_at = updated_at
        self.metadata = metadata or {}

    @property
    def name(self) -> str:
        """Last component of the path."""
        return self.path.rsplit("/", 1)[-1]

    @property
    def extension(self) -> str:
        """Lower-cased extension including the dot, or '' if there is none."""
        if "." not in self.name:
            return ""
        return "." + self.name.rsplit(".", 1)[-1].lower()

    def __repr__(self) -> str:
        return f"RemoteObject(path={self.path!r}, size={self.size!r})"


def is_folder_entry(entry: StorageEntry) -> bool:
    """
    Classify a listing entry.

    Supabase reports folders as entries without metadata, so an entry whose
    metadata is missing, empty, or lacks a ``size`` key is a folder.
    """
    if not entry.metadata:
        return True
    return entry.metadata.get("size") is None


def parse_size(value: Any) -> Optional[int]:
    """Byte size from listing metadata, or None if it is not a number."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def join_path(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as returned by the storage API."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def filter_by_extension(
    objects: Iterable[RemoteObject], extensions: Iterable[str]
) -> List[RemoteObject]:
    """Keep objects whose extension is in the allow-list (all if it is empty)."""
    allowed = {ext.strip().lower() for ext in extensions if ext.strip()}
    allowed = {ext if ext.startswith(".") else f".{ext}" for ext in allowed}
    if not allowed:
        return list(objects)
    return [obj for obj in objects if obj.extension in allowed]


class TreeEnumerator:
    """Walks the source hierarchy and flattens it into a list of files."""

    def __init__(self, source: SourceStorage, root: str = ""):
        self.source = source
        self.root = root.strip("/")
        self.logger = logging.getLogger(__name__)

    def list_all(self) -> List[RemoteObject]:
        """
        List every file below the root.

        A path that fails to list is logged and its subtree skipped; the rest
        of the traversal continues.

        Returns:
            All files found, in breadth-first order
        """
        self.logger.info(f"Scanning source starting at '{self.root or '/'}'")

        files: List[RemoteObject] = []
        queue = deque([self.root])
        visited = set()

        while queue:
            current_path = queue.popleft()
            if current_path in visited:
                continue
            visited.add(current_path)

            try:
                entries = self.source.list(current_path)
            except Exception as e:
                self.logger.error(f"Error listing path '{current_path}': {e}")
                continue

            for entry in entries or []:
                full_path = join_path(current_path, entry.name)

                if is_folder_entry(entry):
                    self.logger.debug(f"Found folder: {full_path}")
                    queue.append(full_path)
                    continue

                size = parse_size(entry.metadata["size"])
                if size is None:
                    self.logger.warning(
                        f"Unreadable size {entry.metadata['size']!r} for {full_path}, treating as unknown"
                    )

                files.append(
                    RemoteObject(
                        path=full_path,
                        size=size,
                        created_at=parse_timestamp(entry.created_at),
                        updated_at=parse_timestamp(entry.updated_at),
                        metadata=entry.metadata,
                    )
                )

        self.logger.info(
            f"Scan complete. Found {len(files)} file(s) across {len(visited)} folder(s)"
        )
        self._log_scan_summary(files)
        return files

    def _log_scan_summary(self, files: List[RemoteObject]) -> None:
        """Log a breakdown of file types and a few sample files."""
        if not files:
            return

        extensions = Counter(obj.extension or "(no extension)" for obj in files)
        self.logger.info("File types found:")
        for ext, count in extensions.most_common(10):
            self.logger.info(f"  - {ext}: {count} file(s)")

        self.logger.info("Sample files:")
        for obj in files[:5]:
            self.logger.info(f"  - {obj.path} ({obj.size or 0} bytes)")
