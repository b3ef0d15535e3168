"""Pydantic schemas for API requests and responses."""

from pdfserver.schemas.common import ErrorResponse
from pdfserver.schemas.documents import DeleteDocumentResponse, DocumentResponse

__all__ = [
    "DeleteDocumentResponse",
    "DocumentResponse",
    "ErrorResponse",
]
