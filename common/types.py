"""Shared data type definitions (BlobHandle, ChunkDescriptor)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ChunkDescriptor:
    """
    Metadata for a single stored chunk of a blob.
    """
    chunk_id: str
    blob_id: str
    sequence: int
    size: int
    checksum: str


@dataclass(frozen=True)
class BlobHandle:
    """
    Result of a completed chunk write: every chunk is durably stored.
    """
    blob_id: str
    length: int
    content_type: str
    chunk_size: int
    chunk_count: int
    checksum: str
