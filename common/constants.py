"""Project-wide constants (chunk size, upload limits, default ports)."""

CHUNK_SIZE_BYTES: int = 255 * 1024  # 255 KiB default chunk size

MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024  # 20 MiB upload cap

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"

PDF_CONTENT_TYPE: str = "application/pdf"

DEFAULT_AUTHOR: str = "Unknown"

DEFAULT_DATABASE_PATH: str = "./data/pdfvault.db"

DEFAULT_CHUNKS_DIR: str = "./data/chunks"

DEFAULT_PORT: int = 5000
