"""Tests for the upload, retrieval and deletion pipelines."""

import pytest

from blobstore.chunk_storage import list_all_chunks
from blobstore.exceptions import BlobNotFoundError, StorageFailureError, UploadTooLargeError
from pdfserver.exceptions import (
    BadRequestError,
    DocumentNotFoundError,
    InvalidIdentifierError,
    ValidationError,
)
from pdfserver.services.document_service import normalize_price
from conftest import FakeUpload, collect


def count_blobs(database) -> int:
    with database.connection() as conn:
        return conn.execute("SELECT COUNT(*) FROM blobs").fetchone()[0]


class TestNormalizePrice:

    @pytest.mark.parametrize("raw, expected", [
        (None, 0.0),
        ("", 0.0),
        ("abc", 0.0),
        ("nan", 0.0),
        ("inf", 0.0),
        ("15", 15.0),
        ("2.5", 2.5),
        (7, 7.0),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_price(raw) == expected


class TestUpload:

    @pytest.mark.asyncio
    async def test_upload_commits_record_and_blob(self, document_service, registry):
        record = await document_service.upload_document(
            FakeUpload(b"%PDF-1.4 hello", filename="hello.pdf"),
            {"title": "Hello", "category": "Greetings", "price": "15"},
        )

        assert record.locked is True
        assert record.price == 15
        assert record.file_name == "hello.pdf"
        blob = registry.resolve(record.file_id)
        assert blob.length == 14
        assert blob.filename != "hello.pdf"

    @pytest.mark.asyncio
    async def test_non_numeric_price_is_free(self, document_service):
        record = await document_service.upload_document(
            FakeUpload(b"x"),
            {"title": "A", "category": "B", "price": "free"},
        )

        assert record.price == 0
        assert record.locked is False

    @pytest.mark.asyncio
    async def test_missing_file(self, document_service):
        with pytest.raises(BadRequestError):
            await document_service.upload_document(None, {"title": "A", "category": "B"})

    @pytest.mark.asyncio
    async def test_validation_fails_before_storing(self, document_service, database, chunks_dir):
        with pytest.raises(ValidationError):
            await document_service.upload_document(FakeUpload(b"content"), {"title": "A"})

        assert count_blobs(database) == 0
        assert list_all_chunks(chunks_dir) == []

    @pytest.mark.asyncio
    async def test_oversized_upload_rejected_before_chunking(self, document_service, chunks_dir):
        with pytest.raises(UploadTooLargeError):
            await document_service.upload_document(
                FakeUpload(b"x" * 2048),
                {"title": "A", "category": "B"},
            )

        assert list_all_chunks(chunks_dir) == []

    @pytest.mark.asyncio
    async def test_storage_failure_creates_no_record(self, document_service, catalog, registry, monkeypatch):
        async def failing_create(*args, **kwargs):
            raise StorageFailureError("disk full")

        monkeypatch.setattr(registry, "create", failing_create)

        with pytest.raises(StorageFailureError):
            await document_service.upload_document(FakeUpload(b"x"), {"title": "A", "category": "B"})

        assert catalog.list() == []

    @pytest.mark.asyncio
    async def test_catalog_failure_leaves_blob(self, document_service, catalog, database, monkeypatch):
        def failing_create(fields, created_at=None):
            raise RuntimeError("catalog unavailable")

        monkeypatch.setattr(catalog, "create", failing_create)

        with pytest.raises(RuntimeError):
            await document_service.upload_document(FakeUpload(b"x"), {"title": "A", "category": "B"})

        assert count_blobs(database) == 1


class TestRetrieval:

    @pytest.mark.asyncio
    async def test_stream_by_document_id(self, document_service):
        payload = b"%PDF" + bytes(range(40))
        record = await document_service.upload_document(
            FakeUpload(payload, filename="bytes.pdf"),
            {"title": "Bytes", "category": "Test"},
        )

        download = document_service.open_document_stream(record.document_id)

        assert download.display_name == "bytes.pdf"
        assert await collect(download.stream) == payload

    @pytest.mark.asyncio
    async def test_stream_by_blob_id(self, document_service):
        record = await document_service.upload_document(
            FakeUpload(b"blob-addressed"),
            {"title": "Blob", "category": "Test"},
        )

        download = document_service.open_document_stream(record.file_id)

        assert download.record.document_id == record.document_id
        assert await collect(download.stream) == b"blob-addressed"

    def test_malformed_id(self, document_service):
        with pytest.raises(InvalidIdentifierError):
            document_service.open_document_stream("definitely not an id")

    def test_unknown_id(self, document_service):
        with pytest.raises(BlobNotFoundError):
            document_service.open_document_stream("77777777-7777-7777-7777-777777777777")


class TestDeletion:

    @pytest.mark.asyncio
    async def test_delete_removes_record_and_blob(self, document_service, registry, catalog, chunks_dir):
        record = await document_service.upload_document(
            FakeUpload(b"z" * 20),
            {"title": "Gone", "category": "Test"},
        )

        document_service.delete_document(record.document_id)

        assert catalog.find(record.document_id) is None
        assert not registry.exists(record.file_id)
        assert list_all_chunks(chunks_dir) == []

    @pytest.mark.asyncio
    async def test_blob_cleanup_failure_is_tolerated(self, document_service, registry, catalog, monkeypatch):
        record = await document_service.upload_document(
            FakeUpload(b"z"),
            {"title": "Sticky", "category": "Test"},
        )

        def failing_delete(blob_id):
            raise StorageFailureError("permission denied")

        monkeypatch.setattr(registry, "delete", failing_delete)

        document_service.delete_document(record.document_id)

        assert catalog.find(record.document_id) is None
        assert registry.exists(record.file_id)

    @pytest.mark.asyncio
    async def test_delete_with_blob_already_gone(self, document_service, registry, catalog):
        record = await document_service.upload_document(
            FakeUpload(b"z"),
            {"title": "Orphan", "category": "Test"},
        )
        registry.delete(record.file_id)

        document_service.delete_document(record.document_id)

        assert catalog.find(record.document_id) is None

    def test_delete_unknown(self, document_service):
        with pytest.raises(DocumentNotFoundError):
            document_service.delete_document("88888888-8888-8888-8888-888888888888")
