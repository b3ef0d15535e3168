"""Integrity checks for chunk payloads and the running digest of a blob."""

import hashlib

from blobstore.exceptions import ChecksumMismatchError
from common.types import ChunkDescriptor


def chunk_checksum(data: bytes) -> str:
    """SHA-256 hex digest recorded on each chunk row."""
    return hashlib.sha256(data).hexdigest()


def verify_chunk(chunk: ChunkDescriptor, data: bytes) -> None:
    """
    Check a payload read back from disk against its chunk row.

    Raises:
        ChecksumMismatchError: If the size or digest differs from the row
    """
    if len(data) != chunk.size:
        raise ChecksumMismatchError(
            f"Chunk {chunk.sequence} of blob {chunk.blob_id} is {len(data)} bytes, "
            f"expected {chunk.size}"
        )
    if chunk_checksum(data) != chunk.checksum:
        raise ChecksumMismatchError(
            f"Chunk {chunk.sequence} of blob {chunk.blob_id} failed checksum verification"
        )


class BlobDigest:
    """
    Digest and length of a whole blob, fed one chunk at a time in sequence order.
    """

    def __init__(self):
        self._hasher = hashlib.sha256()
        self.length = 0
        self.chunk_count = 0

    def add_chunk(self, data: bytes) -> str:
        """
        Fold a chunk into the blob digest.

        Returns:
            The chunk's own checksum
        """
        self._hasher.update(data)
        self.length += len(data)
        self.chunk_count += 1
        return chunk_checksum(data)

    @property
    def hexdigest(self) -> str:
        return self._hasher.hexdigest()
