# packshift/core/ids.py
from __future__ import annotations
import uuid6

__all__ = ["uuidv7"]



def uuidv7(*, prefix: str = "") -> str:
    """Time-ordered UUIDv7 string, optionally prefixed. Used for run ids in logs."""
    return prefix + str(uuid6.uuid7())
