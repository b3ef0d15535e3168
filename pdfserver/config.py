"""Configuration settings for the PDF server."""

import os

from common.constants import (
    CHUNK_SIZE_BYTES,
    DEFAULT_CHUNKS_DIR,
    DEFAULT_DATABASE_PATH,
    DEFAULT_PORT,
    MAX_UPLOAD_BYTES,
)


DATABASE_PATH = os.environ.get("PDFVAULT_DATABASE_PATH", DEFAULT_DATABASE_PATH)

CHUNKS_DIR = os.environ.get("PDFVAULT_CHUNKS_DIR", DEFAULT_CHUNKS_DIR)

SERVER_HOST = os.environ.get("PDFVAULT_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("PORT", str(DEFAULT_PORT)))

CHUNK_SIZE = int(os.environ.get("PDFVAULT_CHUNK_SIZE", str(CHUNK_SIZE_BYTES)))

MAX_UPLOAD_SIZE = int(os.environ.get("PDFVAULT_MAX_UPLOAD_BYTES", str(MAX_UPLOAD_BYTES)))

# Room for multipart boundaries and form fields on top of the file itself
MULTIPART_OVERHEAD_BYTES = 64 * 1024

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("PDFVAULT_CORS_ORIGINS", "*").split(",")
    if origin.strip()
]
