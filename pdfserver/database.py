"""Database schema for the metadata catalog."""

from blobstore.database import Database, init_blob_schema


def init_database(database: Database) -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    init_blob_schema(database)

    with database.connection() as conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                document_id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                price REAL NOT NULL DEFAULT 0,
                category TEXT NOT NULL,
                description TEXT,
                file_id TEXT NOT NULL,
                file_name TEXT,
                created_at TEXT NOT NULL,
                locked INTEGER NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_documents_created_at ON documents(created_at)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_documents_file_id ON documents(file_id)
        """)

        conn.commit()
