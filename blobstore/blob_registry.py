"""Blob Registry: one bookkeeping row per stored blob on top of the Chunk Store."""

import asyncio
import secrets
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePath
from typing import AsyncIterator, Optional, Tuple

from blobstore.chunk_store import AsyncByteStream, ChunkStore
from blobstore.database import Database
from blobstore.exceptions import BlobNotFoundError, StorageFailureError
from common.constants import DEFAULT_CONTENT_TYPE
from common.logging_config import get_logger
from common.utils import utc_now

logger = get_logger(__name__)


@dataclass
class Blob:
    blob_id: str
    filename: str
    original_name: Optional[str]
    length: int
    content_type: str
    chunk_size: int
    chunk_count: int
    checksum: str
    uploaded_at: datetime


def generate_storage_filename(original_name: Optional[str]) -> str:
    """
    Build the storage-facing name for an upload.

    Random hex plus the original extension, so user-chosen names never reach
    the store and two uploads never collide.

    Args:
        original_name: Filename supplied by the client

    Returns:
        e.g. "9f86d081884c7d659a2feaa0c55ad015.pdf"
    """
    extension = PurePath(original_name).suffix if original_name else ""
    return f"{secrets.token_hex(16)}{extension}"


class BlobRegistry:
    def __init__(self, database: Database, chunk_store: ChunkStore):
        self.database = database
        self.chunk_store = chunk_store

    async def create(
        self,
        stream: AsyncByteStream,
        original_name: Optional[str] = None,
        content_type: Optional[str] = None,
        max_bytes: Optional[int] = None,
    ) -> Blob:
        """
        Store a stream as a new blob and register it.

        The blob becomes visible to readers only when its row is inserted,
        which happens after every chunk has been committed.

        Raises:
            UploadTooLargeError: If the stream exceeds max_bytes
            StorageFailureError: If chunks or the blob row could not be stored
        """
        content_type = content_type or DEFAULT_CONTENT_TYPE
        handle = await self.chunk_store.write(stream, content_type=content_type, max_bytes=max_bytes)

        blob = Blob(
            blob_id=handle.blob_id,
            filename=generate_storage_filename(original_name),
            original_name=original_name,
            length=handle.length,
            content_type=handle.content_type,
            chunk_size=handle.chunk_size,
            chunk_count=handle.chunk_count,
            checksum=handle.checksum,
            uploaded_at=utc_now(),
        )

        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, self._insert_blob, blob)
        except sqlite3.Error as e:
            logger.error(f"Failed to register blob {blob.blob_id}: {e}", exc_info=True)
            try:
                await loop.run_in_executor(None, self.chunk_store.delete, blob.blob_id)
            except StorageFailureError as cleanup_error:
                logger.warning(f"Cleanup of unregistered blob {blob.blob_id} incomplete: {cleanup_error}")
            raise StorageFailureError(f"Failed to register blob {blob.blob_id}: {e}") from e

        logger.info(f"Registered blob {blob.blob_id} as {blob.filename} ({blob.length} bytes)")
        return blob

    def _insert_blob(self, blob: Blob) -> None:
        with self.database.connection() as conn:
            conn.execute(
                """
                INSERT INTO blobs (blob_id, filename, original_name, length, content_type,
                                   chunk_size, chunk_count, checksum, uploaded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    blob.blob_id,
                    blob.filename,
                    blob.original_name,
                    blob.length,
                    blob.content_type,
                    blob.chunk_size,
                    blob.chunk_count,
                    blob.checksum,
                    blob.uploaded_at.isoformat(),
                )
            )
            conn.commit()

    def find(self, blob_id: str) -> Optional[Blob]:
        with self.database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT blob_id, filename, original_name, length, content_type,
                       chunk_size, chunk_count, checksum, uploaded_at
                FROM blobs WHERE blob_id = ?
                """,
                (blob_id,)
            )
            row = cursor.fetchone()

        if row is None:
            return None

        return Blob(
            blob_id=row["blob_id"],
            filename=row["filename"],
            original_name=row["original_name"],
            length=row["length"],
            content_type=row["content_type"],
            chunk_size=row["chunk_size"],
            chunk_count=row["chunk_count"],
            checksum=row["checksum"],
            uploaded_at=datetime.fromisoformat(row["uploaded_at"]),
        )

    def resolve(self, blob_id: str) -> Blob:
        """
        Look up a registered blob.

        Raises:
            BlobNotFoundError: If no blob is registered under blob_id
        """
        blob = self.find(blob_id)
        if blob is None:
            raise BlobNotFoundError(f"Blob {blob_id} not found")
        return blob

    def exists(self, blob_id: str) -> bool:
        return self.find(blob_id) is not None

    def open_stream(self, blob_id: str) -> Tuple[Blob, AsyncIterator[bytes]]:
        """
        Resolve a blob and open its chunk stream.

        Returns:
            The blob row and an async iterator over its payload
        """
        blob = self.resolve(blob_id)
        return blob, self.chunk_store.read(blob_id, expected_chunks=blob.chunk_count)

    def delete(self, blob_id: str) -> bool:
        """
        Cascade delete a blob row and all of its chunks.

        A missing blob id is not an error.

        Returns:
            True if anything was removed, False if the blob was already gone

        Raises:
            StorageFailureError: If chunk payloads could not be removed
        """
        with self.database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM blobs WHERE blob_id = ?", (blob_id,))
            removed_row = cursor.rowcount > 0
            conn.commit()

        removed_chunks = self.chunk_store.delete(blob_id)

        if not removed_row and not removed_chunks:
            logger.debug(f"Blob {blob_id} already absent")
            return False

        logger.info(f"Deleted blob {blob_id} ({removed_chunks} chunks)")
        return True
