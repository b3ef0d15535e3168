"""Tests for the PDF API endpoints."""

import pytest
from fastapi.testclient import TestClient

from blobstore.chunk_storage import get_chunk_path
from blobstore.exceptions import StorageFailureError
from pdfserver.main import create_app

PDF_BYTES = b"%PDF-1.4\n" + bytes(range(256)) + b"\n%%EOF"


def upload(client, content=PDF_BYTES, filename="lecture.pdf", **fields):
    data = {"title": "Lecture 1", "category": "Physics"}
    data.update(fields)
    return client.post(
        '/api/pdfs',
        files={'file': (filename, content, 'application/pdf')},
        data=data,
    )


def test_root_endpoint(client):
    response = client.get('/')
    assert response.status_code == 200
    assert response.json()['status'] == 'running'


def test_health_and_ready(client):
    assert client.get('/health').json()['status'] == 'healthy'
    assert client.get('/ready').json() == {'ready': True}


def test_request_id_header(client):
    response = client.get('/health')
    assert response.headers.get('X-Request-ID')


def test_upload_list_download_delete(client):
    """Full lifecycle of one document."""
    response = upload(client)
    assert response.status_code == 201
    created = response.json()
    assert created['locked'] is False
    assert created['price'] == 0
    assert created['author'] == 'Unknown'
    assert created['fileName'] == 'lecture.pdf'
    assert created['_id'] == created['id']

    listed = client.get('/api/pdfs').json()
    assert [doc['id'] for doc in listed] == [created['id']]

    by_document = client.get(f"/api/pdfs/file/{created['id']}")
    assert by_document.status_code == 200
    assert by_document.headers['content-type'] == 'application/pdf'
    assert by_document.content == PDF_BYTES

    by_blob = client.get(f"/api/pdfs/file/{created['fileId']}")
    assert by_blob.status_code == 200
    assert by_blob.content == PDF_BYTES

    deleted = client.delete(f"/api/pdfs/{created['id']}")
    assert deleted.status_code == 200
    assert deleted.json() == {'message': 'PDF deleted successfully'}

    assert client.get('/api/pdfs').json() == []
    assert client.get(f"/api/pdfs/file/{created['fileId']}").status_code == 404


def test_paid_upload_is_locked(client):
    created = upload(client, price='15', author='Feynman').json()
    assert created['locked'] is True
    assert created['price'] == 15
    assert created['author'] == 'Feynman'


def test_list_newest_first(client):
    first = upload(client, title='First').json()
    second = upload(client, title='Second').json()

    listed = [doc['id'] for doc in client.get('/api/pdfs').json()]

    assert listed == [second['id'], first['id']]


def test_get_single_document(client):
    created = upload(client, description='Kinematics').json()

    response = client.get(f"/api/pdfs/{created['id']}")

    assert response.status_code == 200
    assert response.json()['description'] == 'Kinematics'


def test_content_disposition_uses_original_name(client):
    created = upload(client, filename='lecture notes.pdf').json()

    response = client.get(f"/api/pdfs/file/{created['id']}")

    assert "filename*=UTF-8''lecture%20notes.pdf" in response.headers['content-disposition']


def test_upload_without_file(client):
    response = client.post('/api/pdfs', data={'title': 'T', 'category': 'C'})
    assert response.status_code == 400
    assert response.json()['error'] == 'No file uploaded'


def test_upload_missing_title(client):
    response = client.post(
        '/api/pdfs',
        files={'file': ('a.pdf', PDF_BYTES, 'application/pdf')},
        data={'category': 'C'},
    )
    assert response.status_code == 400
    assert client.get('/api/pdfs').json() == []


def test_upload_too_large(client):
    response = upload(client, content=b'x' * 2048)
    assert response.status_code == 413
    assert client.get('/api/pdfs').json() == []


def test_request_body_over_limit_rejected(client):
    response = upload(client, content=b'x' * 100_000)
    assert response.status_code == 413
    assert response.json()['error'] == 'Upload too large'


def test_download_malformed_id(client):
    response = client.get('/api/pdfs/file/not-a-valid-id')
    assert response.status_code == 500
    assert response.json() == {'error': 'Invalid document ID'}


def test_download_unknown_id(client):
    response = client.get('/api/pdfs/file/99999999-9999-9999-9999-999999999999')
    assert response.status_code == 404


def test_get_unknown_document(client):
    response = client.get('/api/pdfs/99999999-9999-9999-9999-999999999999')
    assert response.status_code == 404
    assert response.json() == {'error': 'PDF not found'}


def test_delete_unknown_document(client):
    response = client.delete('/api/pdfs/99999999-9999-9999-9999-999999999999')
    assert response.status_code == 404
    assert response.json() == {'error': 'PDF not found'}


def test_delete_tolerates_missing_file(client):
    created = upload(client).json()
    backend = client.app.state.pdfvault.backend
    backend.registry.delete(created['fileId'])

    response = client.delete(f"/api/pdfs/{created['id']}")

    assert response.status_code == 200
    assert client.get('/api/pdfs').json() == []


def test_requests_before_startup_are_refused(app):
    """Without entering the lifespan the backend is never built."""
    client = TestClient(app)
    some_id = '99999999-9999-9999-9999-999999999999'

    assert client.get('/api/pdfs').status_code == 503
    assert upload(client).status_code == 503
    assert client.get(f'/api/pdfs/{some_id}').status_code == 503
    assert client.get(f'/api/pdfs/file/{some_id}').status_code == 503
    assert client.delete(f'/api/pdfs/{some_id}').status_code == 503
    assert client.get('/ready').status_code == 503
    assert client.get('/health').status_code == 200


def test_empty_file_round_trip(client):
    response = upload(client, content=b'', filename='blank.pdf')
    assert response.status_code == 201
    created = response.json()

    download = client.get(f"/api/pdfs/file/{created['id']}")

    assert download.status_code == 200
    assert download.headers['content-length'] == '0'
    assert download.content == b''


def raised_storage_failure(exc: BaseException) -> bool:
    """True if exc is, wraps or groups a StorageFailureError."""
    if isinstance(exc, StorageFailureError):
        return True
    if exc.__cause__ is not None and raised_storage_failure(exc.__cause__):
        return True
    return any(raised_storage_failure(inner) for inner in getattr(exc, 'exceptions', ()))


def test_download_aborts_when_chunk_missing(client):
    """A lost chunk ends the transfer with an error rather than a short body."""
    created = upload(client).json()
    chunk_store = client.app.state.pdfvault.backend.chunk_store
    last_chunk = chunk_store.get_chunks(created['fileId'])[-1]
    get_chunk_path(chunk_store.chunks_dir, last_chunk.chunk_id).unlink()

    with pytest.raises(Exception) as exc_info:
        client.get(f"/api/pdfs/file/{created['id']}")

    assert raised_storage_failure(exc_info.value)


def test_startup_removes_orphaned_chunk_files(tmp_path):
    chunks_dir = tmp_path / "app_chunks"
    chunks_dir.mkdir()
    (chunks_dir / "stray.chk").write_bytes(b"orphan")

    app = create_app(
        database_path=tmp_path / "app.db",
        chunks_dir=chunks_dir,
        chunk_size=8,
        max_upload_bytes=1024,
    )
    with TestClient(app) as client:
        assert client.get('/ready').status_code == 200

    assert not (chunks_dir / "stray.chk").exists()
