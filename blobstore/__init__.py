"""Chunked blob storage engine: chunk store, blob registry and schema."""
