"""API routes package."""

from pdfserver.routes.document_routes import router as document_router

__all__ = ["document_router"]
