"""Service layer for business logic."""

from pdfserver.services.document_service import DocumentService, UploadState

__all__ = [
    "DocumentService",
    "UploadState",
]
