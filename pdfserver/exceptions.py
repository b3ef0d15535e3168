"""Custom exception classes for the PDF server."""

from typing import Optional


class PdfVaultError(Exception):
    """
    Base exception class for all service-level errors.
    """
    pass


class BadRequestError(PdfVaultError):
    """
    Raised when required request input is missing or malformed.
    """
    pass


class ValidationError(PdfVaultError):
    """
    Raised when document metadata violates field constraints.
    """

    def __init__(self, message: str, fields: Optional[list] = None):
        super().__init__(message)
        self.fields = fields or []


class DocumentNotFoundError(PdfVaultError):
    """
    Raised when a document id does not resolve to a metadata record.
    """
    pass


class InvalidIdentifierError(PdfVaultError):
    """
    Raised when a file retrieval id is not a well-formed identifier.
    """
    pass


class ServiceUnavailableError(PdfVaultError):
    """
    Raised when a request arrives before the storage backend is initialized.
    """
    pass


class OperationFailedError(PdfVaultError):
    """
    Raised by a route when an unexpected fault aborts its operation.
    """

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
