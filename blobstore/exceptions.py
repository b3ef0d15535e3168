"""Exceptions raised by the chunked blob storage engine."""

from typing import Optional


class BlobStoreError(Exception):
    """
    Base exception class for all blob storage errors.
    """
    pass


class BlobNotFoundError(BlobStoreError):
    """
    Raised when no blob or chunk data exists for a blob id.
    """
    pass


class StorageFailureError(BlobStoreError):
    """
    Raised when reading or writing chunk data fails.
    """
    pass


class ChecksumMismatchError(StorageFailureError):
    """
    Raised when a stored chunk no longer matches its recorded checksum.
    """
    pass


class UploadTooLargeError(BlobStoreError):
    """
    Raised when an inbound stream exceeds the configured size cap.
    """

    def __init__(self, limit: int, message: Optional[str] = None):
        self.limit = limit
        super().__init__(message or f"Upload exceeds maximum size of {limit} bytes")
