"""Storage capabilities consumed by the backup engine.

The engine only talks to these narrow interfaces so it can run against the
real Supabase and S3 clients as well as in-memory fakes.
"""

from __future__ import annotations

from typing import Any, BinaryIO, Callable, Dict, List, Optional, Protocol

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES: Dict[str, str] = {
    # Audio
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "m4a": "audio/mp4",
    "aac": "audio/aac",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "webm": "audio/webm",
    "wma": "audio/x-ms-wma",
    # Video
    "mp4": "video/mp4",
    "avi": "video/x-msvideo",
    "mkv": "video/x-matroska",
    "mov": "video/quicktime",
    "wmv": "video/x-ms-wmv",
    "flv": "video/x-flv",
    # Images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "ico": "image/x-icon",
    # Documents
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    # Text
    "txt": "text/plain",
    "csv": "text/csv",
    "json": "application/json",
    "xml": "application/xml",
    "html": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "ts": "application/typescript",
    # Archives
    "zip": "application/zip",
    "rar": "application/x-rar-compressed",
    "7z": "application/x-7z-compressed",
    "tar": "application/x-tar",
    "gz": "application/gzip",
}


class StorageEntry:
    """One raw entry returned by a source listing call."""

    def __init__(
        self,
        name: str,
        metadata: Optional[Dict[str, Any]] = None,
        created_at: Optional[str] = None,
        updated_at: Optional[str] = None,
        entry_id: Optional[str] = None,
    ):
        self.name = name
        self.metadata = metadata
        self.created_at = created_at
        self.updated_at = updated_at
        self.entry_id = entry_id

    def __repr__(self) -> str:
        return f"StorageEntry(name={self.name!r}, metadata={self.metadata!r})"


class SourceStorage(Protocol):
    """Read side: the bucket being backed up."""

    def list(self, path: str) -> List[StorageEntry]:
        ...

    def read(self, path: str) -> bytes:
        ...


class DestinationStorage(Protocol):
    """Write side: the bucket receiving the copies."""

    def exists(self, key: str) -> bool:
        ...

    def write_buffer(
        self, key: str, data: bytes, content_type: str, metadata: Dict[str, str]
    ) -> None:
        ...

    def write_stream(
        self,
        key: str,
        fileobj: BinaryIO,
        content_type: str,
        metadata: Dict[str, str],
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> None:
        ...


class Notifier(Protocol):
    """Receives the metrics of every finished run."""

    def send(self, metrics: Any) -> None:
        ...


def get_content_type(file_name: str) -> str:
    """Map a file name to a MIME type using its extension."""
    if "." not in file_name:
        return DEFAULT_CONTENT_TYPE
    extension = file_name.rsplit(".", 1)[-1].lower()
    return CONTENT_TYPES.get(extension, DEFAULT_CONTENT_TYPE)


def make_destination_key(path: str, prefix: Optional[str] = None) -> str:
    """Mirror the source path under an optional fixed prefix."""
    if prefix:
        return f"{prefix.rstrip('/')}/{path}"
    return path
