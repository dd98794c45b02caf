from __future__ import annotations

import io
import json
import logging

import pytest

from spore_sdk import logging as slog


@pytest.fixture(autouse=True)
def _isolated_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    slog.clear_context()
    yield
    slog.clear_context()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_trace_scope_binds_and_restores():
    slog.bind(segment=1)
    with slog.trace_scope("abc") as tid:
        assert tid == "abc"
        slog.bind(spore_id=b"\x01\x02")
        assert slog.context() == {"segment": 1, "trace_id": "abc", "spore_id": "0x0102"}
    assert slog.context() == {"segment": 1}
    slog.unbind("segment")
    assert slog.context() == {}


def test_json_lines_carry_context_and_extras():
    buf = io.StringIO()
    slog.configure(json=True, level="DEBUG", stream=buf)
    with slog.trace_scope("t1"):
        slog.bind(spore_id="0xaa")
        slog.get_logger("spore_sdk.test").info("root %s", "confirmed", extra={"tx_hash": "0xbb"})

    line = json.loads(buf.getvalue().strip())
    assert line["msg"] == "root confirmed"
    assert line["level"] == "INFO"
    assert line["trace_id"] == "t1"
    assert line["spore_id"] == "0xaa"
    assert line["tx_hash"] == "0xbb"


def test_text_lines_and_level_filter():
    buf = io.StringIO()
    slog.configure(json=False, level="WARNING", stream=buf)
    log = slog.get_logger("spore_sdk.test")
    log.info("hidden")
    with slog.trace_scope("t2"):
        log.warning("segment refused", extra={"segment": 4})

    out = buf.getvalue()
    assert "hidden" not in out
    assert "trace_id=t2" in out
    assert "segment=4" in out
    assert out.rstrip().endswith("| segment refused")
    assert logging.getLogger("httpx").level == logging.WARNING
