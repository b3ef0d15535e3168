"""Chunk Store: splits byte streams into fixed-size chunks and streams them back."""

import asyncio
import sqlite3
from pathlib import Path
from typing import AsyncIterator, List, Optional, Protocol

from blobstore.checksum import BlobDigest, verify_chunk
from blobstore.chunk_storage import (
    delete_chunk,
    ensure_chunks_directory,
    list_all_chunks,
    read_chunk,
    remove_partial_writes,
    write_chunk,
)
from blobstore.database import Database
from blobstore.exceptions import (
    BlobNotFoundError,
    ChecksumMismatchError,
    StorageFailureError,
    UploadTooLargeError,
)
from common.constants import CHUNK_SIZE_BYTES, DEFAULT_CONTENT_TYPE
from common.logging_config import get_logger
from common.types import BlobHandle, ChunkDescriptor
from common.utils import generate_uuid

logger = get_logger(__name__)


class AsyncByteStream(Protocol):
    """Anything with an awaitable ``read(size)``, e.g. Starlette's UploadFile."""

    async def read(self, size: int = -1) -> bytes:
        ...


async def read_full(stream: AsyncByteStream, size: int) -> bytes:
    """
    Read exactly ``size`` bytes unless the stream ends first.

    Args:
        stream: Source stream
        size: Number of bytes wanted

    Returns:
        Up to ``size`` bytes; fewer only at end of stream
    """
    buffer = bytearray()
    while len(buffer) < size:
        piece = await stream.read(size - len(buffer))
        if not piece:
            break
        buffer.extend(piece)
    return bytes(buffer)


class ChunkStore:
    """
    Persists blob payloads as sequenced chunk files plus one sqlite row per chunk.

    Chunk rows for a blob are committed in a single transaction after every
    payload file is on disk, so a blob's chunk set is either complete or absent.
    """

    def __init__(self, database: Database, chunks_dir: Path, chunk_size: int = CHUNK_SIZE_BYTES):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.database = database
        self.chunks_dir = Path(chunks_dir)
        self.chunk_size = chunk_size
        ensure_chunks_directory(self.chunks_dir)

    async def write(
        self,
        stream: AsyncByteStream,
        content_type: str = DEFAULT_CONTENT_TYPE,
        chunk_size: Optional[int] = None,
        blob_id: Optional[str] = None,
        max_bytes: Optional[int] = None,
    ) -> BlobHandle:
        """
        Consume a stream chunk by chunk and store it under a new blob id.

        Args:
            stream: Async byte stream to consume
            content_type: MIME type recorded on the handle
            chunk_size: Override of the store's chunk size
            blob_id: Use this blob id instead of generating one
            max_bytes: Abort once the stream exceeds this many bytes

        Returns:
            BlobHandle describing the stored blob

        Raises:
            UploadTooLargeError: If the stream exceeds max_bytes
            StorageFailureError: If a chunk could not be persisted
        """
        chunk_size = chunk_size or self.chunk_size
        blob_id = blob_id or generate_uuid()
        written: List[ChunkDescriptor] = []
        digest = BlobDigest()
        committed = False
        loop = asyncio.get_event_loop()

        try:
            while True:
                data = await read_full(stream, chunk_size)
                if not data:
                    break

                if max_bytes is not None and digest.length + len(data) > max_bytes:
                    raise UploadTooLargeError(max_bytes)

                chunk = ChunkDescriptor(
                    chunk_id=generate_uuid(),
                    blob_id=blob_id,
                    sequence=digest.chunk_count,
                    size=len(data),
                    checksum=digest.add_chunk(data),
                )
                await loop.run_in_executor(None, write_chunk, self.chunks_dir, chunk.chunk_id, data)
                written.append(chunk)
                logger.debug(f"Wrote chunk {chunk.sequence} ({chunk.size} bytes) for blob {blob_id}")

                if len(data) < chunk_size:
                    break

            await loop.run_in_executor(None, self._commit_chunks, written)
            committed = True
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Chunk write failed for blob {blob_id}: {e}", exc_info=True)
            raise StorageFailureError(f"Failed to store blob {blob_id}: {e}") from e
        finally:
            if not committed:
                await loop.run_in_executor(None, self._discard_files, written)

        logger.info(f"Stored blob {blob_id}: {digest.length} bytes in {digest.chunk_count} chunks")

        return BlobHandle(
            blob_id=blob_id,
            length=digest.length,
            content_type=content_type,
            chunk_size=chunk_size,
            chunk_count=digest.chunk_count,
            checksum=digest.hexdigest,
        )

    def get_chunks(self, blob_id: str) -> List[ChunkDescriptor]:
        """
        List a blob's chunks in ascending sequence order.
        """
        with self.database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT chunk_id, blob_id, sequence, size, checksum
                FROM chunks
                WHERE blob_id = ?
                ORDER BY sequence
                """,
                (blob_id,)
            )
            rows = cursor.fetchall()

        return [
            ChunkDescriptor(
                chunk_id=row["chunk_id"],
                blob_id=row["blob_id"],
                sequence=row["sequence"],
                size=row["size"],
                checksum=row["checksum"],
            )
            for row in rows
        ]

    def read(self, blob_id: str, expected_chunks: Optional[int] = None) -> AsyncIterator[bytes]:
        """
        Open a blob for streaming.

        The chunk set is resolved before this returns, so a missing blob fails
        here rather than on first iteration. The returned iterator yields one
        chunk payload at a time and can be consumed once.

        A zero-length blob has no chunk rows; pass expected_chunks=0 (the count
        from its BlobHandle) to read it as an empty stream.

        Args:
            blob_id: Blob to read
            expected_chunks: Chunk count recorded for the blob, if known

        Returns:
            Async iterator of chunk payloads in sequence order

        Raises:
            BlobNotFoundError: If no chunks exist for blob_id and none were expected
            StorageFailureError: If the chunk set has gaps or a wrong count
        """
        chunks = self.get_chunks(blob_id)
        if not chunks and expected_chunks != 0:
            raise BlobNotFoundError(f"No chunks stored for blob {blob_id}")

        for expected_sequence, chunk in enumerate(chunks):
            if chunk.sequence != expected_sequence:
                raise StorageFailureError(
                    f"Blob {blob_id} is missing chunk {expected_sequence}"
                )

        if expected_chunks is not None and len(chunks) != expected_chunks:
            raise StorageFailureError(
                f"Blob {blob_id} has {len(chunks)} chunks, expected {expected_chunks}"
            )

        return self._stream_chunks(blob_id, chunks)

    async def _stream_chunks(self, blob_id: str, chunks: List[ChunkDescriptor]) -> AsyncIterator[bytes]:
        bytes_streamed = 0
        total_chunks = len(chunks)
        loop = asyncio.get_event_loop()

        try:
            for chunk in chunks:
                try:
                    data = await loop.run_in_executor(None, read_chunk, self.chunks_dir, chunk.chunk_id)
                except OSError as e:
                    logger.error(
                        f"Chunk {chunk.sequence + 1}/{total_chunks} of blob {blob_id} unreadable "
                        f"after {bytes_streamed} bytes: {e}"
                    )
                    raise StorageFailureError(
                        f"Chunk {chunk.sequence} of blob {blob_id} could not be read"
                    ) from e

                try:
                    verify_chunk(chunk, data)
                except ChecksumMismatchError as e:
                    logger.error(f"Corrupt chunk in blob {blob_id} after {bytes_streamed} bytes: {e}")
                    raise

                bytes_streamed += len(data)
                yield data
        except GeneratorExit:
            logger.info(f"Stream of blob {blob_id} closed by consumer after {bytes_streamed} bytes")
            raise

        logger.debug(f"Streamed blob {blob_id}: {bytes_streamed} bytes in {total_chunks} chunks")

    def delete(self, blob_id: str) -> int:
        """
        Remove every chunk belonging to a blob.

        Deleting an unknown blob id is a no-op.

        Returns:
            Number of chunk rows removed

        Raises:
            StorageFailureError: If a payload file could not be removed
        """
        with self.database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT chunk_id FROM chunks WHERE blob_id = ?", (blob_id,))
            chunk_ids = [row["chunk_id"] for row in cursor.fetchall()]
            cursor.execute("DELETE FROM chunks WHERE blob_id = ?", (blob_id,))
            conn.commit()

        failed = []
        for chunk_id in chunk_ids:
            try:
                delete_chunk(self.chunks_dir, chunk_id)
            except OSError as e:
                logger.error(f"Failed to remove chunk file {chunk_id} of blob {blob_id}: {e}")
                failed.append(chunk_id)

        if chunk_ids:
            logger.info(f"Deleted {len(chunk_ids)} chunks [blob_id={blob_id}]")

        if failed:
            raise StorageFailureError(
                f"Could not remove {len(failed)} chunk files of blob {blob_id}"
            )

        return len(chunk_ids)

    def remove_orphan_files(self) -> int:
        """
        Delete payload files that no chunk row references.

        Such files are left when the process dies between writing a chunk and
        committing its row. Only safe while no upload is in flight, so it runs
        at startup.

        Returns:
            Number of files removed
        """
        removed = remove_partial_writes(self.chunks_dir)

        with self.database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT chunk_id FROM chunks")
            known = {row["chunk_id"] for row in cursor.fetchall()}

        for chunk_id in list_all_chunks(self.chunks_dir):
            if chunk_id not in known and delete_chunk(self.chunks_dir, chunk_id):
                removed += 1

        if removed:
            logger.warning(f"Removed {removed} orphaned chunk files from {self.chunks_dir}")
        return removed

    def _commit_chunks(self, chunks: List[ChunkDescriptor]) -> None:
        if not chunks:
            return

        with self.database.connection() as conn:
            try:
                conn.executemany(
                    """
                    INSERT INTO chunks (chunk_id, blob_id, sequence, size, checksum)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    [
                        (chunk.chunk_id, chunk.blob_id, chunk.sequence, chunk.size, chunk.checksum)
                        for chunk in chunks
                    ]
                )
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise

    def _discard_files(self, chunks: List[ChunkDescriptor]) -> None:
        if not chunks:
            return

        logger.info(f"Cleaning up {len(chunks)} uncommitted chunks of blob {chunks[0].blob_id}")
        for chunk in chunks:
            try:
                delete_chunk(self.chunks_dir, chunk.chunk_id)
            except OSError as e:
                logger.error(f"Failed to remove uncommitted chunk {chunk.chunk_id}: {e}")
