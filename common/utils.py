"""Identifier and timestamp helpers shared by the storage engine and the service."""

import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_uuid() -> str:
    """
    Generate a new UUID4 string.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())


def normalize_identifier(value: Optional[str]) -> Optional[str]:
    """
    Parse a client-supplied identifier into canonical UUID form.

    Args:
        value: Raw identifier (any form accepted by uuid.UUID)

    Returns:
        Canonical lowercase hyphenated UUID, or None if the value is malformed
    """
    if not value:
        return None
    try:
        return str(uuid.UUID(value.strip()))
    except (ValueError, AttributeError):
        return None


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)
