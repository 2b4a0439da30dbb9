"""Supabase Storage as the backup source."""

import logging
from typing import List

from supabase import Client, create_client

from .config import BackupSettings
from .storage import StorageEntry

LIST_PAGE_SIZE = 10000


class SupabaseSource:
    """Lists and downloads objects from one Supabase Storage bucket."""

    def __init__(self, client: Client, bucket_name: str, page_size: int = LIST_PAGE_SIZE):
        self.client = client
        self.bucket_name = bucket_name
        self.page_size = page_size
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: BackupSettings) -> "SupabaseSource":
        """Create a source from settings, preferring the service role key."""
        logger = logging.getLogger(__name__)
        if config.supabase_service_key:
            logger.info("Using service role key for full access")
        else:
            logger.info("Using anon key (limited access - files may not be visible)")
        client = create_client(config.supabase_url, config.supabase_key)
        return cls(client, config.supabase_bucket_name)

    def list(self, path: str) -> List[StorageEntry]:
        """List the direct children of ``path`` (one level, no recursion)."""
        items = self.client.storage.from_(self.bucket_name).list(
            path, {"limit": self.page_size, "offset": 0}
        )
        return [self._to_entry(item) for item in items or []]

    def read(self, path: str) -> bytes:
        """Download the full object at ``path``."""
        data = self.client.storage.from_(self.bucket_name).download(path)
        if data is None:
            raise ValueError(f"No data returned for file: {path}")
        return data

    @staticmethod
    def _to_entry(item: dict) -> StorageEntry:
        return StorageEntry(
            name=item["name"],
            metadata=item.get("metadata"),
            created_at=item.get("created_at"),
            updated_at=item.get("updated_at"),
            entry_id=item.get("id"),
        )

