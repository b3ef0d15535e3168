"""Document API routes."""

from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from blobstore.exceptions import BlobStoreError, UploadTooLargeError
from common.constants import PDF_CONTENT_TYPE
from common.logging_config import get_logger
from pdfserver.exceptions import BadRequestError, OperationFailedError, PdfVaultError
from pdfserver.schemas.common import ErrorResponse
from pdfserver.schemas.documents import DeleteDocumentResponse, DocumentResponse
from pdfserver.state import AppState, get_app_state

logger = get_logger(__name__)

router = APIRouter(prefix="/api/pdfs", tags=["PDFs"])


@router.post(
    "",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def upload_pdf(
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    app_state: AppState = Depends(get_app_state),
):
    """
    Upload a PDF with its metadata.

    Parameters:
        - file: The document (multipart/form-data)
        - title, category: required
        - author, price, description: optional

    Returns:
        - The created metadata record

    Raises:
        - 400: No file part, or missing title/category
        - 413: File too large
        - 500: Storage or database failure
        - 503: Storage backend not ready
    """
    logger.info("Received upload request")

    if file is None:
        raise BadRequestError("No file uploaded")

    document_service = app_state.require_service()

    try:
        record = await document_service.upload_document(
            file,
            {
                "title": title,
                "author": author,
                "price": price,
                "category": category,
                "description": description,
            },
        )
    except (PdfVaultError, UploadTooLargeError):
        raise
    except Exception as e:
        logger.error(f"Upload workflow failure: {e}", exc_info=True)
        raise OperationFailedError("Failed to process PDF upload", details=str(e)) from e

    return DocumentResponse.from_record(record)


@router.get("", response_model=List[DocumentResponse])
async def list_pdfs(app_state: AppState = Depends(get_app_state)):
    """
    Fetch all PDF metadata, newest first.
    """
    document_service = app_state.require_service()

    try:
        records = document_service.list_documents()
    except Exception as e:
        logger.error(f"Failed to list documents: {e}", exc_info=True)
        raise OperationFailedError("Failed to fetch PDFs", details=str(e)) from e

    return [DocumentResponse.from_record(record) for record in records]


@router.get(
    "/file/{document_id}",
    response_class=StreamingResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def stream_pdf(document_id: str, app_state: AppState = Depends(get_app_state)):
    """
    Stream a PDF's content.

    Parameters:
        - document_id: Metadata record id, or the record's fileId

    Returns:
        - StreamingResponse with the raw file bytes

    Raises:
        - 404: No content stored under this id
        - 500: Malformed id
        - 503: Storage backend not ready
    """
    document_service = app_state.require_service()

    download = document_service.open_document_stream(document_id)

    return StreamingResponse(
        download.stream,
        media_type=PDF_CONTENT_TYPE,
        headers={
            "Content-Length": str(download.blob.length),
            "Content-Disposition": f"inline; filename*=UTF-8''{quote(download.display_name)}",
        },
    )


@router.get("/{document_id}", response_model=DocumentResponse, responses={404: {"model": ErrorResponse}})
async def get_pdf(document_id: str, app_state: AppState = Depends(get_app_state)):
    """
    Fetch a single PDF metadata record.
    """
    document_service = app_state.require_service()
    return DocumentResponse.from_record(document_service.get_document(document_id))


@router.delete(
    "/{document_id}",
    response_model=DeleteDocumentResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def delete_pdf(document_id: str, app_state: AppState = Depends(get_app_state)):
    """
    Delete a PDF's metadata record and its stored file.

    File cleanup is best-effort; the metadata deletion is the outcome reported.

    Raises:
        - 404: Record not found
        - 500: Database failure
    """
    document_service = app_state.require_service()

    try:
        record = await run_in_threadpool(document_service.delete_document, document_id)
    except (PdfVaultError, BlobStoreError):
        raise
    except Exception as e:
        logger.error(f"Failed to delete document {document_id}: {e}", exc_info=True)
        raise OperationFailedError("Failed to delete PDF", details=str(e)) from e

    logger.info(f"PDF deleted: {record.title} [document_id={record.document_id}]")
    return DeleteDocumentResponse(message="PDF deleted successfully")
