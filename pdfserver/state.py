"""Application state: the storage backend and its readiness."""

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from fastapi import Request

from blobstore.blob_registry import BlobRegistry
from blobstore.chunk_store import ChunkStore
from blobstore.database import Database
from common.logging_config import get_logger
from pdfserver.database import init_database
from pdfserver.exceptions import ServiceUnavailableError
from pdfserver.repositories.document_repository import DocumentRepository
from pdfserver.services.document_service import DocumentService

logger = get_logger(__name__)


@dataclass(frozen=True)
class NotReady:
    reason: str


@dataclass(frozen=True)
class StorageBackend:
    database: Database
    chunk_store: ChunkStore
    registry: BlobRegistry
    catalog: DocumentRepository
    service: DocumentService


def build_backend(
    database_path: Union[str, Path],
    chunks_dir: Union[str, Path],
    chunk_size: int,
    max_upload_bytes: int,
) -> StorageBackend:
    """
    Create the schema and wire the storage components together.

    Raises:
        sqlite3.Error, OSError: If the database or chunk directory is unusable
    """
    database = Database(database_path)
    init_database(database)

    chunk_store = ChunkStore(database, Path(chunks_dir), chunk_size=chunk_size)
    chunk_store.remove_orphan_files()
    registry = BlobRegistry(database, chunk_store)
    catalog = DocumentRepository(database)
    service = DocumentService(registry, catalog, max_upload_bytes=max_upload_bytes)

    return StorageBackend(
        database=database,
        chunk_store=chunk_store,
        registry=registry,
        catalog=catalog,
        service=service,
    )


class AppState:
    """
    Holds the backend once startup has built it.

    Until then every storage request is refused with ServiceUnavailableError.
    """

    def __init__(self):
        self.backend: Union[StorageBackend, NotReady] = NotReady("Storage backend not initialized")

    @property
    def is_ready(self) -> bool:
        return isinstance(self.backend, StorageBackend)

    def mark_ready(self, backend: StorageBackend) -> None:
        self.backend = backend
        logger.info(f"Storage backend ready [database={backend.database.path}]")

    def mark_not_ready(self, reason: str) -> None:
        self.backend = NotReady(reason)

    def require_service(self) -> DocumentService:
        """
        Raises:
            ServiceUnavailableError: If startup has not completed
        """
        if isinstance(self.backend, NotReady):
            raise ServiceUnavailableError("Storage backend not ready")
        return self.backend.service


def get_app_state(request: Request) -> AppState:
    """FastAPI dependency returning the application's state object."""
    return request.app.state.pdfvault
