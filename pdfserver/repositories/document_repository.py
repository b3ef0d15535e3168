"""Document repository: the metadata catalog."""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from blobstore.database import Database
from common.constants import DEFAULT_AUTHOR
from common.logging_config import get_logger
from common.utils import generate_uuid, normalize_identifier, utc_now
from pdfserver.exceptions import DocumentNotFoundError, ValidationError

logger = get_logger(__name__)

REQUIRED_FIELDS = ("title", "category")


@dataclass
class DocumentRecord:
    document_id: str
    title: str
    author: str
    price: float
    category: str
    description: Optional[str]
    file_id: str
    file_name: Optional[str]
    created_at: datetime
    locked: bool


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_fields(fields: Dict[str, Any]) -> None:
    """
    Check the caller-supplied metadata fields.

    Raises:
        ValidationError: If title or category is missing, or price is invalid
    """
    missing = [name for name in REQUIRED_FIELDS if _is_blank(fields.get(name))]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            fields=missing,
        )

    price = fields.get("price")
    if price is None:
        return
    if isinstance(price, bool) or not isinstance(price, (int, float)) or not math.isfinite(price):
        raise ValidationError("price must be a number", fields=["price"])
    if price < 0:
        raise ValidationError("price must not be negative", fields=["price"])


class DocumentRepository:
    def __init__(self, database: Database):
        self.database = database

    def create(self, fields: Dict[str, Any], created_at: Optional[datetime] = None) -> DocumentRecord:
        """
        Validate, default and persist a new metadata record.

        Args:
            fields: title, category and file_id are required; author, price,
                description and file_name are optional
            created_at: Creation time; defaults to now

        Returns:
            The stored record with its id and creation timestamp

        Raises:
            ValidationError: If a field constraint is violated
        """
        validate_fields(fields)
        if _is_blank(fields.get("file_id")):
            raise ValidationError("Missing required fields: file_id", fields=["file_id"])

        price = float(fields.get("price") or 0)
        record = DocumentRecord(
            document_id=generate_uuid(),
            title=fields["title"].strip(),
            author=fields.get("author") or DEFAULT_AUTHOR,
            price=price,
            category=fields["category"].strip(),
            description=fields.get("description"),
            file_id=fields["file_id"],
            file_name=fields.get("file_name"),
            created_at=created_at or utc_now(),
            locked=price > 0,
        )

        with self.database.connection() as conn:
            conn.execute(
                """
                INSERT INTO documents (document_id, title, author, price, category, description,
                                       file_id, file_name, created_at, locked)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.document_id,
                    record.title,
                    record.author,
                    record.price,
                    record.category,
                    record.description,
                    record.file_id,
                    record.file_name,
                    record.created_at.isoformat(),
                    int(record.locked),
                )
            )
            conn.commit()

        logger.info(f"Document metadata saved: {record.title} [document_id={record.document_id}]")
        return record

    def list(self) -> List[DocumentRecord]:
        """All records, most recently created first."""
        with self.database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM documents
                ORDER BY created_at DESC, rowid DESC
                """
            )
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def find(self, document_id: str) -> Optional[DocumentRecord]:
        normalized = normalize_identifier(document_id)
        if normalized is None:
            return None

        with self.database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM documents WHERE document_id = ?", (normalized,))
            row = cursor.fetchone()

        return self._row_to_record(row) if row is not None else None

    def find_by_blob(self, file_id: str) -> Optional[DocumentRecord]:
        with self.database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM documents WHERE file_id = ? ORDER BY created_at DESC LIMIT 1",
                (file_id,)
            )
            row = cursor.fetchone()

        return self._row_to_record(row) if row is not None else None

    def get(self, document_id: str) -> DocumentRecord:
        """
        Raises:
            DocumentNotFoundError: If the id is malformed or unknown
        """
        record = self.find(document_id)
        if record is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return record

    def delete(self, document_id: str) -> None:
        """
        Raises:
            DocumentNotFoundError: If the id is malformed or unknown
        """
        normalized = normalize_identifier(document_id)
        if normalized is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        with self.database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM documents WHERE document_id = ?", (normalized,))
            deleted = cursor.rowcount
            conn.commit()

        if not deleted:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        logger.info(f"Document deleted [document_id={normalized}]")

    @staticmethod
    def _row_to_record(row) -> DocumentRecord:
        return DocumentRecord(
            document_id=row["document_id"],
            title=row["title"],
            author=row["author"],
            price=row["price"],
            category=row["category"],
            description=row["description"],
            file_id=row["file_id"],
            file_name=row["file_name"],
            created_at=datetime.fromisoformat(row["created_at"]),
            locked=bool(row["locked"]),
        )
