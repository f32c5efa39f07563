"""Long-term document archive backed by Supabase Storage."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from supabase import Client

from src.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)

# Invoice PDFs are small; 10MB leaves ample headroom.
MAX_FILE_SIZE_BYTES = 10485760


@dataclass(frozen=True)
class ArchiveNamespace:
    """A bucket plus a folder prefix inside it."""

    bucket: str
    prefix: str

    def path_for(self, filename: str) -> str:
        return f"{self.prefix}/{filename}" if self.prefix else filename


class ArchiveStore(Protocol):
    """Named binary blob storage."""

    async def ensure_namespace(self, path: str) -> ArchiveNamespace:
        """Return a handle for 'bucket/prefix', creating the bucket if needed."""
        ...

    async def upload(self, namespace: ArchiveNamespace, data: bytes, filename: str) -> str:
        """Store a blob and return its identifier."""
        ...


class SupabaseArchiveStore:
    """ArchiveStore implementation using private Supabase Storage buckets."""

    def __init__(self, client: Client | None = None) -> None:
        self.client = client or get_supabase_client()
        self._known_buckets: set[str] = set()

    async def ensure_namespace(self, path: str) -> ArchiveNamespace:
        """Ensure the bucket behind a namespace path exists.

        Args:
            path: 'bucket/prefix' path, e.g. 'invoices/PROD'.

        Returns:
            ArchiveNamespace: Handle used for uploads.
        """
        bucket, _, prefix = path.strip("/").partition("/")
        if bucket not in self._known_buckets:
            await asyncio.to_thread(self._ensure_bucket, bucket)
            self._known_buckets.add(bucket)
        return ArchiveNamespace(bucket=bucket, prefix=prefix)

    def _ensure_bucket(self, bucket: str) -> None:
        try:
            self.client.storage.get_bucket(bucket)
            return
        except Exception:
            logger.info("Storage bucket '%s' not found, creating it", bucket)

        self.client.storage.create_bucket(
            bucket,
            options={"public": False, "file_size_limit": MAX_FILE_SIZE_BYTES},
        )
        logger.info("Created storage bucket '%s'", bucket)

    async def upload(self, namespace: ArchiveNamespace, data: bytes, filename: str) -> str:
        """Upload a PDF into a namespace.

        Args:
            namespace: Handle from ensure_namespace().
            data: File content.
            filename: Object name within the namespace.

        Returns:
            str: Storage path of the uploaded object.
        """
        storage_path = namespace.path_for(filename)
        await asyncio.to_thread(
            lambda: self.client.storage.from_(namespace.bucket).upload(
                path=storage_path,
                file=data,
                file_options={"content-type": "application/pdf", "upsert": "true"},
            )
        )
        return storage_path
