"""Shared pytest fixtures for all tests."""

from typing import AsyncIterator, Optional

import pytest
from fastapi.testclient import TestClient

from blobstore.blob_registry import BlobRegistry
from blobstore.chunk_store import ChunkStore
from blobstore.database import Database
from pdfserver.database import init_database
from pdfserver.main import create_app
from pdfserver.repositories.document_repository import DocumentRepository
from pdfserver.services.document_service import DocumentService

TEST_CHUNK_SIZE = 8


class ByteStream:
    """
    Async byte stream over an in-memory payload.

    Args:
        data: Payload to serve
        max_piece: Cap on bytes returned per read, to simulate short reads
    """

    def __init__(self, data: bytes, max_piece: Optional[int] = None):
        self._data = data
        self._offset = 0
        self._max_piece = max_piece

    async def read(self, size: int = -1) -> bytes:
        remaining = len(self._data) - self._offset
        if size < 0 or size > remaining:
            size = remaining
        if self._max_piece is not None:
            size = min(size, self._max_piece)
        piece = self._data[self._offset:self._offset + size]
        self._offset += len(piece)
        return piece


class FakeUpload(ByteStream):
    """Stand-in for an UploadFile part."""

    def __init__(self, data: bytes, filename: str = "report.pdf", content_type: str = "application/pdf"):
        super().__init__(data)
        self.filename = filename
        self.content_type = content_type
        self.size = len(data)


async def collect(stream: AsyncIterator[bytes]) -> bytes:
    """Drain an async chunk stream into one bytes object."""
    return b"".join([piece async for piece in stream])


@pytest.fixture
def database(tmp_path) -> Database:
    """
    Create a temporary database with the full schema.
    """
    db = Database(tmp_path / "test.db")
    init_database(db)
    return db


@pytest.fixture
def chunks_dir(tmp_path):
    return tmp_path / "chunks"


@pytest.fixture
def chunk_store(database, chunks_dir) -> ChunkStore:
    return ChunkStore(database, chunks_dir, chunk_size=TEST_CHUNK_SIZE)


@pytest.fixture
def registry(database, chunk_store) -> BlobRegistry:
    return BlobRegistry(database, chunk_store)


@pytest.fixture
def catalog(database) -> DocumentRepository:
    return DocumentRepository(database)


@pytest.fixture
def document_service(registry, catalog) -> DocumentService:
    return DocumentService(registry, catalog, max_upload_bytes=1024)


@pytest.fixture
def app(tmp_path):
    """
    Application wired to a temporary database and chunk directory.
    """
    return create_app(
        database_path=tmp_path / "app.db",
        chunks_dir=tmp_path / "app_chunks",
        chunk_size=TEST_CHUNK_SIZE,
        max_upload_bytes=1024,
    )


@pytest.fixture
def client(app):
    """Create FastAPI test client with startup completed."""
    with TestClient(app) as test_client:
        yield test_client
