"""Tests for structured logging and correlation IDs."""
import io
import json
import logging

import pytest

from app.core.logging import (
    ColoredFormatter,
    JSONFormatter,
    configure_logging,
    correlation_scope,
    get_correlation_id,
)


def make_record(msg="Settled pick", **extra):
    record = logging.LogRecord("app.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelationScope:

    def test_prefix_and_reset(self):
        with correlation_scope("resolve") as run_id:
            assert run_id.startswith("resolve-")
            assert get_correlation_id() == run_id
        assert get_correlation_id() == ""

    def test_nested_scopes_restore_outer(self):
        with correlation_scope("outer") as outer:
            with correlation_scope("inner"):
                pass
            assert get_correlation_id() == outer

    def test_reset_on_error(self):
        with pytest.raises(RuntimeError):
            with correlation_scope("resolve"):
                raise RuntimeError("boom")
        assert get_correlation_id() == ""


class TestFormatters:

    def test_json_fields(self):
        with correlation_scope("resolve") as run_id:
            line = JSONFormatter().format(make_record(pick_id="p1"))

        data = json.loads(line)
        assert data["level"] == "INFO"
        assert data["logger"] == "app.test"
        assert data["message"] == "Settled pick"
        assert data["correlation_id"] == run_id
        assert data["extra"] == {"pick_id": "p1"}

    def test_colored_includes_correlation_id(self):
        with correlation_scope("resolve") as run_id:
            line = ColoredFormatter().format(make_record())
        assert f"[{run_id}]" in line

    def test_configure_logging_json(self):
        stream = io.StringIO()
        root = logging.getLogger()
        previous = root.handlers[:], root.level
        try:
            configure_logging(level="DEBUG", json_output=True, handler=logging.StreamHandler(stream))
            logging.getLogger("app.test").info("hello")
        finally:
            root.handlers[:] = previous[0]
            root.setLevel(previous[1])

        assert json.loads(stream.getvalue())["message"] == "hello"
