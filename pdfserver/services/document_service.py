"""Document service: upload, retrieval and deletion pipelines."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from blobstore.blob_registry import Blob, BlobRegistry
from blobstore.exceptions import UploadTooLargeError
from common.constants import MAX_UPLOAD_BYTES
from common.logging_config import get_logger
from common.utils import generate_uuid, normalize_identifier
from pdfserver.exceptions import BadRequestError, InvalidIdentifierError
from pdfserver.repositories.document_repository import (
    DocumentRecord,
    DocumentRepository,
    validate_fields,
)

logger = get_logger(__name__)

METADATA_FIELDS = ("title", "author", "price", "category", "description")


class UploadState(str, Enum):
    RECEIVING = "receiving"
    STORING = "storing"
    REGISTERING = "registering"
    COMMITTED = "committed"
    FAILED = "failed"


class UploadSource(Protocol):
    """The inbound file part: Starlette's UploadFile satisfies this."""

    filename: Optional[str]
    content_type: Optional[str]
    size: Optional[int]

    async def read(self, size: int = -1) -> bytes:
        ...


@dataclass
class DocumentDownload:
    blob: Blob
    stream: AsyncIterator[bytes]
    record: Optional[DocumentRecord] = None

    @property
    def display_name(self) -> str:
        if self.record is not None and self.record.file_name:
            return self.record.file_name
        return self.blob.original_name or self.blob.filename


def normalize_price(raw: Any) -> float:
    """
    Coerce a form value to a price; missing or non-numeric input means free.
    """
    if raw is None or isinstance(raw, bool):
        return 0.0
    try:
        price = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(price):
        return 0.0
    return price


class DocumentService:
    def __init__(
        self,
        registry: BlobRegistry,
        catalog: DocumentRepository,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
    ):
        self.registry = registry
        self.catalog = catalog
        self.max_upload_bytes = max_upload_bytes

    async def upload_document(
        self,
        upload: Optional[UploadSource],
        fields: Dict[str, Any],
    ) -> DocumentRecord:
        """
        Store an uploaded file and create its metadata record.

        Args:
            upload: The file part, or None if the request carried none
            fields: Raw form fields (title, author, price, category, description)

        Returns:
            The committed metadata record

        Raises:
            BadRequestError: No file part
            UploadTooLargeError: File exceeds the upload cap
            ValidationError: Metadata constraints violated
            StorageFailureError: Chunks could not be stored
        """
        upload_id = generate_uuid()[:8]
        state = self._transition(upload_id, UploadState.RECEIVING)

        try:
            if upload is None:
                raise BadRequestError("No file uploaded")

            if upload.size is not None and upload.size > self.max_upload_bytes:
                raise UploadTooLargeError(self.max_upload_bytes)

            metadata = {name: fields.get(name) for name in METADATA_FIELDS}
            metadata["price"] = normalize_price(metadata["price"])
            validate_fields(metadata)

            state = self._transition(upload_id, UploadState.STORING)
            blob = await self.registry.create(
                upload,
                original_name=upload.filename,
                content_type=upload.content_type,
                max_bytes=self.max_upload_bytes,
            )
            logger.info(f"File stored as blob {blob.blob_id} [upload={upload_id}]")

            state = self._transition(upload_id, UploadState.REGISTERING)
            try:
                record = self.catalog.create({
                    **metadata,
                    "file_id": blob.blob_id,
                    "file_name": upload.filename,
                })
            except Exception:
                logger.warning(
                    f"Blob {blob.blob_id} left unreferenced after catalog failure [upload={upload_id}]"
                )
                raise
        except Exception as e:
            logger.error(f"Upload failed in state {state.value}: {e} [upload={upload_id}]")
            self._transition(upload_id, UploadState.FAILED)
            raise

        self._transition(upload_id, UploadState.COMMITTED)
        return record

    def list_documents(self) -> List[DocumentRecord]:
        return self.catalog.list()

    def get_document(self, document_id: str) -> DocumentRecord:
        return self.catalog.get(document_id)

    def open_document_stream(self, identifier: str) -> DocumentDownload:
        """
        Resolve an id to a blob and open its content stream.

        The id is tried as a metadata record id first; if no record has it,
        it is treated as a blob id, which is what the record's fileId holds.

        Raises:
            InvalidIdentifierError: If the id is malformed
            BlobNotFoundError: If neither a record nor a blob matches
        """
        normalized = normalize_identifier(identifier)
        if normalized is None:
            raise InvalidIdentifierError("Invalid document ID")

        record = self.catalog.find(normalized)
        blob_id = record.file_id if record is not None else normalized

        blob, stream = self.registry.open_stream(blob_id)
        if record is None:
            record = self.catalog.find_by_blob(blob_id)

        logger.info(f"Streaming blob {blob_id} ({blob.length} bytes, {blob.chunk_count} chunks)")
        return DocumentDownload(blob=blob, stream=stream, record=record)

    def delete_document(self, document_id: str) -> DocumentRecord:
        """
        Delete a metadata record together with its blob.

        Blob cleanup is best-effort: a failure there is logged and the record
        is still deleted.

        Raises:
            DocumentNotFoundError: If the record does not exist
        """
        record = self.catalog.get(document_id)

        try:
            if not self.registry.delete(record.file_id):
                logger.warning(f"Blob {record.file_id} of document {record.document_id} was already gone")
        except Exception as e:
            logger.warning(f"File cleanup warning for blob {record.file_id}: {e}")

        self.catalog.delete(record.document_id)
        return record

    @staticmethod
    def _transition(upload_id: str, state: UploadState) -> UploadState:
        logger.info(f"Upload {upload_id} -> {state.value}")
        return state
