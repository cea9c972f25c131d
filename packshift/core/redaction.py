# packshift/core/redaction.py
from __future__ import annotations

import re

__all__ = ["redactText"]



# Precompiled sensitive-data regex patterns
_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Bearer or Authorization headers
    (re.compile(r"(?iu)(Bearer\s+)[A-Za-z0-9._\-]+"), r"\1***"),
    (re.compile(r"(?iu)(Authorization['\"]?\s*[:=]\s*['\"]?)(?!Bearer)[A-Za-z0-9._\-]+"), r"\1***"),

    # GitHub personal access / fine-grained tokens
    (re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b"), "gh*_***"),
    (re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}\b"), "github_pat_***"),

    # Token-style key/value pairs
    (re.compile(r'(?iu)("(?:api[_\-]?key|token|githubToken)"\s*:\s*")[^"]+(")'), r"\1***\2"),

    # Query parameter forms like token=abcdef
    (re.compile(r"(?iu)(token=)[^&\s]+"), r"\1***"),
]



def redactText(text: str) -> str:
    """Return sanitized text with sensitive substrings replaced by ***."""
    if not text:
        return text
    out = text
    for pattern, repl in _SENSITIVE_PATTERNS:
        out = pattern.sub(repl, out)
    return out
