# packshift/core/logging/formatters.py
from __future__ import annotations

import logging
from datetime import datetime, timezone

from packshift.core.jsonutils import safeJsonDumps
from packshift.core.redaction import redactText
from .context import getLogContext

# Context keys shown inline, in this order
CONTEXT_TAG_KEYS = ("runId", "projectId")



def contextTag(ctx: dict[str, object] | None) -> str:
    """Console suffix such as ' [run-.../AANobbMI]'; empty without run or project context."""
    if not ctx:
        return ""
    parts = [str(ctx[key]) for key in CONTEXT_TAG_KEYS if ctx.get(key)]
    return " [" + "/".join(parts) + "]" if parts else ""



class RedactingFormatter(logging.Formatter):
    """
    Wraps another formatter and redacts the final formatted string.
    """
    def __init__(self, inner: logging.Formatter):
        super().__init__()
        self._inner = inner

    def format(self, record: logging.LogRecord) -> str:
        rendered = self._inner.format(record)
        try:
            return redactText(rendered)
        except Exception:
            # Never crash logging due to redaction failure
            return rendered



class JsonFormatter(logging.Formatter):
    """
    One JSON object per line for the log file. runId / projectId are lifted
    to the top level so a run can be grepped without parsing `ctx`.
    """
    def format(self, record: logging.LogRecord) -> str:
        ctx = getLogContext() or {}
        base: dict[str, object] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in CONTEXT_TAG_KEYS:
            if ctx.get(key):
                base[key] = ctx[key]
        base["ctx"] = ctx

        if record.exc_info:
            excType, excValue = record.exc_info[0], record.exc_info[1]
            base["exc"] = {
                "type": getattr(excType, "__name__", "Error"),
                "message": str(excValue),
                "stack": self.formatException(record.exc_info),
            }

        return safeJsonDumps(base)



class DevFormatter(logging.Formatter):
    """LEVEL: [logger] message [runId/projectId]"""
    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)
        if record.stack_info:
            msg += "\n" + str(record.stack_info)
        return f"{record.levelname}: [{record.name}] {msg}{contextTag(getLogContext())}"
