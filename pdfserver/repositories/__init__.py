"""Repository layer for data access."""

from pdfserver.repositories.document_repository import DocumentRecord, DocumentRepository

__all__ = [
    "DocumentRecord",
    "DocumentRepository",
]
