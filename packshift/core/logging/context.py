# packshift/core/logging/context.py
from __future__ import annotations
import contextvars

# Per-run / per-project log context. asyncio tasks copy it on creation, so a
# project id set inside one resolution task never leaks into another.
_logContextVar: contextvars.ContextVar[dict[str, object] | None] = contextvars.ContextVar("packshift.logctx", default=None)

def setLogContext(**kvs):
    """Set or update per-log context values (runId, projectId, etc.)."""
    current = dict(_logContextVar.get() or {}) # use copy
    for key, value in kvs.items():
        if value is not None:
            current[key] = value
    _logContextVar.set(current)

def clearLogContext():
    """Clear context after a run is fully handled."""
    _logContextVar.set(None)

def getLogContext():
    """Return current context dict or None."""
    return _logContextVar.get()
