"""Manages chunk payload files on disk: write, read and delete by chunk id."""

import os
from pathlib import Path


CHUNK_FILE_SUFFIX = ".chk"
TEMP_FILE_SUFFIX = ".tmp"


def ensure_chunks_directory(chunks_dir: Path) -> None:
    """Ensure chunks directory exists."""
    chunks_dir.mkdir(parents=True, exist_ok=True)


def get_chunk_path(chunks_dir: Path, chunk_id: str) -> Path:
    """
    Get file path for a chunk.

    Args:
        chunks_dir: Directory holding chunk payloads
        chunk_id: UUID of the chunk

    Returns:
        Path object for chunk file
    """
    return chunks_dir / f"{chunk_id}{CHUNK_FILE_SUFFIX}"


def write_chunk(chunks_dir: Path, chunk_id: str, data: bytes) -> Path:
    """
    Write chunk data to disk and flush it to stable storage.

    The payload is written to a temporary name and renamed into place, so a
    reader never observes a half-written chunk file.

    Args:
        chunks_dir: Directory holding chunk payloads
        chunk_id: UUID of the chunk
        data: Raw chunk data (at most one chunk size)

    Returns:
        Path of the written file

    Raises:
        OSError: If write operation fails
    """
    ensure_chunks_directory(chunks_dir)
    filepath = get_chunk_path(chunks_dir, chunk_id)
    tmp_path = filepath.with_suffix(TEMP_FILE_SUFFIX)
    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, filepath)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
    return filepath


def read_chunk(chunks_dir: Path, chunk_id: str) -> bytes:
    """
    Read entire chunk from disk.

    Raises:
        FileNotFoundError: If chunk does not exist
        OSError: If read operation fails
    """
    return get_chunk_path(chunks_dir, chunk_id).read_bytes()


def delete_chunk(chunks_dir: Path, chunk_id: str) -> bool:
    """
    Delete chunk file from disk.

    Returns:
        True if file was deleted, False if it didn't exist
    """
    filepath = get_chunk_path(chunks_dir, chunk_id)
    try:
        filepath.unlink()
    except FileNotFoundError:
        return False
    return True


def list_all_chunks(chunks_dir: Path) -> list[str]:
    """
    List all chunk IDs in storage directory.

    Returns:
        List of chunk IDs (without .chk extension)
    """
    if not chunks_dir.exists():
        return []
    return [filepath.stem for filepath in chunks_dir.glob(f"*{CHUNK_FILE_SUFFIX}")]


def remove_partial_writes(chunks_dir: Path) -> int:
    """
    Delete temporary files left by writes interrupted before their rename.

    Returns:
        Number of files removed
    """
    if not chunks_dir.exists():
        return 0
    removed = 0
    for filepath in chunks_dir.glob(f"*{TEMP_FILE_SUFFIX}"):
        filepath.unlink(missing_ok=True)
        removed += 1
    return removed
