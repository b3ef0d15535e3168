"""Pydantic schemas for document endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from pdfserver.repositories.document_repository import DocumentRecord


class DocumentResponse(BaseModel):
    """Response model for a document metadata record."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    legacy_id: str = Field(alias="_id")
    title: str
    author: str
    price: float
    category: str
    description: Optional[str] = None
    file_id: str = Field(alias="fileId")
    file_name: Optional[str] = Field(default=None, alias="fileName")
    created_at: datetime = Field(alias="createdAt")
    locked: bool

    @classmethod
    def from_record(cls, record: DocumentRecord) -> "DocumentResponse":
        return cls(
            id=record.document_id,
            legacy_id=record.document_id,
            title=record.title,
            author=record.author,
            price=record.price,
            category=record.category,
            description=record.description,
            file_id=record.file_id,
            file_name=record.file_name,
            created_at=record.created_at,
            locked=record.locked,
        )


class DeleteDocumentResponse(BaseModel):
    """Response model for document deletion."""
    message: str
