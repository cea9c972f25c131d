# tests/packshift/core/test_logging.py
from __future__ import annotations
import json
import logging
import sys
from dataclasses import dataclass
from enum import Enum

import pytest

from packshift.core.jsonutils import safeJsonDumps, toJsonable
from packshift.core.logging import clearLogContext, getLogContext, setLogContext
from packshift.core.logging.formatters import DevFormatter, JsonFormatter, RedactingFormatter, contextTag
from packshift.core.redaction import redactText


@pytest.fixture(autouse=True)
def _reset_context():
    clearLogContext()
    yield
    clearLogContext()


def _record(msg: str, *args, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord("packshift.test", logging.WARNING, __file__, 1, msg, args, exc_info)


# ----------------------------------------
# Redaction
# ----------------------------------------

def test_redactText_bearer_and_github_tokens():
    text = "Authorization: Bearer abc.def-123 and ghp_" + "a" * 30
    out = redactText(text)
    assert "abc.def-123" not in out
    assert "Bearer ***" in out
    assert "ghp_" + "a" * 30 not in out


def test_redactText_json_token_and_query_param():
    out = redactText('{"githubToken": "s3cret"} https://x.example/?token=zzz&page=2')
    assert "s3cret" not in out
    assert "zzz" not in out
    assert "page=2" in out


def test_redactText_leaves_plain_text_alone():
    assert redactText("Resolved 4 of 5 hash(es)") == "Resolved 4 of 5 hash(es)"
    assert redactText("") == ""


# ----------------------------------------
# Context + formatters
# ----------------------------------------

def test_setLogContext_merges_and_skips_none():
    setLogContext(runId="r1")
    setLogContext(projectId="P1", other=None)
    assert getLogContext() == {"runId": "r1", "projectId": "P1"}


def test_devFormatter_appends_context():
    setLogContext(runId="r1", projectId="AANobbMI")
    line = DevFormatter().format(_record("Lookup for %s failed", "AANobbMI"))
    assert line == "WARNING: [packshift.test] Lookup for AANobbMI failed [r1/AANobbMI]"


def test_jsonFormatter_emits_one_json_object():
    setLogContext(runId="r2")
    try:
        raise ValueError("boom")
    except ValueError:
        record = _record("failed", exc_info=sys.exc_info())
    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "warning"
    assert payload["logger"] == "packshift.test"
    assert payload["ctx"] == {"runId": "r2"}
    assert payload["runId"] == "r2"
    assert "projectId" not in payload
    assert payload["time"].endswith("+00:00")
    assert payload["exc"]["type"] == "ValueError"
    assert payload["exc"]["message"] == "boom"


def test_redactingFormatter_scrubs_inner_output():
    formatter = RedactingFormatter(logging.Formatter("%(message)s"))
    assert formatter.format(_record("using Bearer tok123")) == "using Bearer ***"


# ----------------------------------------
# JSON helpers
# ----------------------------------------

class Color(Enum):
    RED = "red"


@dataclass(frozen=True, slots=True)
class Point:
    x: int
    color: Color


def test_toJsonable_handles_slotted_dataclasses_and_enums():
    assert toJsonable({"p": Point(1, Color.RED), "t": (1, 2)}) == {"p": {"x": 1, "color": "red"}, "t": [1, 2]}


def test_safeJsonDumps_falls_back_for_unencodable():
    assert json.loads(safeJsonDumps({"p": Point(2, Color.RED)})) == {"p": {"x": 2, "color": "red"}}
    assert safeJsonDumps({"a": 1}) == '{"a":1}'


def test_contextTag_orders_run_before_project():
    assert contextTag({"projectId": "P", "runId": "R", "other": "x"}) == " [R/P]"
    assert contextTag({"other": "x"}) == ""
    assert contextTag(None) == ""
