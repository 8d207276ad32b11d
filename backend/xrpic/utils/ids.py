"""Identifier helpers."""

import uuid


def new_uuid() -> uuid.UUID:
    """Return a new random UUID v4 for a result record."""
    return uuid.uuid4()
