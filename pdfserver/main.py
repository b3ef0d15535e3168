"""Entry point for the PDF server."""

import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Union

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from blobstore.exceptions import BlobNotFoundError, BlobStoreError, UploadTooLargeError
from common.logging_config import setup_logging
from pdfserver import config
from pdfserver.exceptions import (
    BadRequestError,
    DocumentNotFoundError,
    InvalidIdentifierError,
    OperationFailedError,
    PdfVaultError,
    ServiceUnavailableError,
    ValidationError,
)
from pdfserver.middleware import RequestSizeLimitMiddleware, log_requests
from pdfserver.routes.document_routes import router as document_router
from pdfserver.state import AppState, build_backend, get_app_state

logger = setup_logging('pdfserver')


def _request_id(request: Request) -> str:
    return getattr(request.state, 'request_id', 'unknown')


async def bad_request_handler(request: Request, exc: BadRequestError):
    logger.warning(f"Bad request: {exc} [request_id={_request_id(request)}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": str(exc)}
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Malformed request: {exc} [request_id={_request_id(request)}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Malformed request", "details": str(exc.errors())}
    )


async def validation_error_handler(request: Request, exc: ValidationError):
    logger.warning(f"Validation error: {exc} [request_id={_request_id(request)}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation failed", "details": str(exc)}
    )


async def document_not_found_handler(request: Request, exc: DocumentNotFoundError):
    logger.warning(f"Document not found: {exc} [request_id={_request_id(request)}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "PDF not found"}
    )


async def blob_not_found_handler(request: Request, exc: BlobNotFoundError):
    logger.warning(f"Blob not found: {exc} [request_id={_request_id(request)}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "Document content not found"}
    )


async def upload_too_large_handler(request: Request, exc: UploadTooLargeError):
    logger.warning(f"Upload too large: {exc} [request_id={_request_id(request)}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        content={"error": "Upload too large", "details": str(exc)}
    )


async def service_unavailable_handler(request: Request, exc: ServiceUnavailableError):
    logger.warning(f"Service unavailable: {exc} [request_id={_request_id(request)}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": str(exc)}
    )


async def invalid_identifier_handler(request: Request, exc: InvalidIdentifierError):
    logger.warning(f"Invalid identifier: {exc} [request_id={_request_id(request)}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Invalid document ID"}
    )


async def operation_failed_handler(request: Request, exc: OperationFailedError):
    logger.error(f"Operation failed: {exc.message} [request_id={_request_id(request)}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": exc.message, "details": exc.details}
    )


async def internal_error_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled server error: {exc} [request_id={_request_id(request)}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "An internal server error occurred", "details": str(exc)}
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BadRequestError, bad_request_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(DocumentNotFoundError, document_not_found_handler)
    app.add_exception_handler(BlobNotFoundError, blob_not_found_handler)
    app.add_exception_handler(UploadTooLargeError, upload_too_large_handler)
    app.add_exception_handler(ServiceUnavailableError, service_unavailable_handler)
    app.add_exception_handler(InvalidIdentifierError, invalid_identifier_handler)
    app.add_exception_handler(OperationFailedError, operation_failed_handler)
    app.add_exception_handler(BlobStoreError, internal_error_handler)
    app.add_exception_handler(PdfVaultError, internal_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)


def create_app(
    database_path: Optional[Union[str, Path]] = None,
    chunks_dir: Optional[Union[str, Path]] = None,
    chunk_size: Optional[int] = None,
    max_upload_bytes: Optional[int] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Arguments override the environment-derived settings in pdfserver.config.
    The storage backend is built during startup; requests that arrive before
    it is ready get 503.
    """
    database_path = database_path or config.DATABASE_PATH
    chunks_dir = chunks_dir or config.CHUNKS_DIR
    chunk_size = chunk_size or config.CHUNK_SIZE
    max_upload_bytes = max_upload_bytes or config.MAX_UPLOAD_SIZE

    app_state = AppState()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("PDF server starting up...")
        try:
            backend = build_backend(database_path, chunks_dir, chunk_size, max_upload_bytes)
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Storage backend initialization failed: {e}", exc_info=True)
            app_state.mark_not_ready(str(e))
        else:
            app_state.mark_ready(backend)

        yield

        logger.info("PDF server shutting down...")
        app_state.mark_not_ready("Server shutting down")

    app = FastAPI(
        title="PDF Vault",
        description="Chunked storage service for PDF documents and their metadata",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.pdfvault = app_state

    app.middleware("http")(log_requests)
    app.add_middleware(
        RequestSizeLimitMiddleware,
        max_bytes=max_upload_bytes + config.MULTIPART_OVERHEAD_BYTES,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(document_router)

    @app.get("/")
    async def root():
        """
        Root endpoint for health check.
        """
        return {"message": "PDF Vault API", "status": "running"}

    @app.get("/health")
    async def health_check():
        """
        Liveness probe; 200 whenever the process is serving.
        """
        return {"status": "healthy", "service": "pdfserver"}

    @app.get("/ready")
    async def ready_check(request: Request):
        """
        Readiness probe; 503 until the storage backend is initialized.
        """
        state = get_app_state(request)
        if state.is_ready:
            return {"ready": True}
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ready": False, "reason": state.backend.reason}
        )

    return app


app = create_app()


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "pdfserver.main:app",
        host=config.SERVER_HOST,
        port=config.SERVER_PORT,
    )


if __name__ == "__main__":
    main()
