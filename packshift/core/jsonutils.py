# packshift/core/jsonutils.py
from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import is_dataclass, fields
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

__all__ = ["safeJsonDumps", "toJsonable"]



def toJsonable(obj: Any, *, _depth: int = 0, _maxDepth: int = 32) -> Any:
    """
    Converts dataclasses, pydantic models, enums, dates and paths into plain
    JSON-compatible values. Depth-limited so cyclic objects cannot hang it.
    """
    if _depth > _maxDepth:
        return "<max-depth>"
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Path):
        return obj.as_posix()
    if hasattr(obj, "model_dump"):
        return toJsonable(obj.model_dump(by_alias=True, exclude_none=True), _depth=_depth + 1)
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: toJsonable(getattr(obj, f.name), _depth=_depth + 1) for f in fields(obj)}
    if isinstance(obj, Mapping):
        return {str(key): toJsonable(value, _depth=_depth + 1) for key, value in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [toJsonable(value, _depth=_depth + 1) for value in obj]
    return repr(obj)



def safeJsonDumps(obj: object, *, indent: int | None = None) -> str:
    """
    Serializes an object to JSON. Compact separators unless `indent` is given.
    Falls back to toJsonable when direct encoding fails.
    """
    separators = (",", ":") if indent is None else None
    try:
        return json.dumps(obj, ensure_ascii=False, allow_nan=False, separators=separators, indent=indent)
    except (TypeError, ValueError):
        return json.dumps(toJsonable(obj), ensure_ascii=False, allow_nan=False, separators=separators, indent=indent)
