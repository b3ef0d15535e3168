"""SQLite connection management and the blob/chunk schema."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Union


class Database:
    """
    Location of the sqlite file shared by the blob store and the catalog.

    Every caller opens its own short-lived connection; nothing is shared
    between concurrent requests.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def ensure_parent(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.
        """
        conn = sqlite3.connect(self.path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()


def init_blob_schema(database: Database) -> None:
    """
    Create the blob and chunk tables if they don't exist.

    Chunk rows carry no foreign key to blobs: chunks are committed before
    their blob row, and the blob row is what makes a blob visible.
    """
    database.ensure_parent()

    with database.connection() as conn:
        cursor = conn.cursor()

        cursor.execute("PRAGMA journal_mode=WAL")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS blobs (
                blob_id TEXT PRIMARY KEY,
                filename TEXT NOT NULL,
                original_name TEXT,
                length INTEGER NOT NULL,
                content_type TEXT NOT NULL,
                chunk_size INTEGER NOT NULL,
                chunk_count INTEGER NOT NULL,
                checksum TEXT NOT NULL,
                uploaded_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS chunks (
                chunk_id TEXT PRIMARY KEY,
                blob_id TEXT NOT NULL,
                sequence INTEGER NOT NULL,
                size INTEGER NOT NULL,
                checksum TEXT NOT NULL,
                UNIQUE(blob_id, sequence)
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_chunks_blob_id ON chunks(blob_id)
        """)

        conn.commit()
