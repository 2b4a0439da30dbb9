"""Shared in-memory fakes for the storage capabilities."""

import os
import sys
import threading

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from storage_backup.storage import StorageEntry


def file_entry(name, size, updated_at="2024-05-01T10:00:00Z"):
    return StorageEntry(
        name=name,
        metadata={"size": size, "mimetype": "application/octet-stream"},
        created_at="2024-05-01T09:00:00Z",
        updated_at=updated_at,
    )


def folder_entry(name):
    return StorageEntry(name=name, metadata=None)


class FakeSource:
    """Source storage backed by a dict of path -> entries and path -> bytes."""

    def __init__(self, listings=None, contents=None):
        self.listings = listings or {}
        self.contents = contents or {}
        self.list_calls = []
        self.read_calls = []
        self.list_errors = {}
        self._lock = threading.Lock()

    def list(self, path):
        self.list_calls.append(path)
        if path in self.list_errors:
            raise self.list_errors[path]
        return list(self.listings.get(path, []))

    def read(self, path):
        with self._lock:
            self.read_calls.append(path)
        if path not in self.contents:
            raise FileNotFoundError(path)
        return self.contents[path]


class FakeDestination:
    """Destination storage that records every call."""

    def __init__(self, existing=()):
        self.objects = {key: b"" for key in existing}
        self.calls = []
        self.fail_buffer = False
        self.fail_stream = False
        self.fail_exists = False
        self.staged_paths = []
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def exists(self, key):
        self._record("exists", key)
        if self.fail_exists:
            raise ConnectionError("probe failed")
        return key in self.objects

    def write_buffer(self, key, data, content_type, metadata):
        self._record("write_buffer", key, content_type)
        if self.fail_buffer:
            raise ConnectionError("request body dropped")
        self.objects[key] = data

    def write_stream(self, key, fileobj, content_type, metadata, on_progress=None):
        self._record("write_stream", key, content_type)
        self.staged_paths.append(str(fileobj.name))
        if self.fail_stream:
            raise ConnectionError("upload failed")
        self.objects[key] = fileobj.read()
        if on_progress:
            on_progress(100)

    def call_names(self):
        return [call[0] for call in self.calls]


class FakeNotifier:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def send(self, metrics):
        self.sent.append(metrics)
        if self.error:
            raise self.error


@pytest.fixture
def staging_dir(tmp_path):
    return tmp_path / "staging"
