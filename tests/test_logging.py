"""Tests for the structured logging system (certification_kernel/logging_config.py)."""

import json
import logging
from datetime import datetime, timezone
from io import StringIO
from uuid import uuid4

import pytest

from certification_kernel.domain.status_registry import Phase
from certification_kernel.exceptions import StaleTransitionError
from certification_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "certification_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("moved", extra={"version": 3, "to_status": "submitted"})

        record = _parse_log(stream)
        assert record["version"] == 3
        assert record["to_status"] == "submitted"

    def test_context_wins_over_extra(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(project_id="from-context"):
            get_logger("test").info("clash", extra={"project_id": "from-extra"})

        assert _parse_log(stream)["project_id"] == "from-context"

    def test_kernel_exception_fields(self):
        """Kernel exceptions carry .code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise StaleTransitionError("report", "r-1", "verified_by_admin_team", "approved_by_pl")
        except StaleTransitionError:
            get_logger("test").error("lost_race", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "StaleTransitionError"
        assert record["exc_code"] == StaleTransitionError.code
        assert record["exc_expected_status"] == "verified_by_admin_team"
        assert record["exc_actual_status"] == "approved_by_pl"
        assert "traceback" in record

    def test_plain_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record

    def test_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        when = datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)
        get_logger("test").info("typed", extra={
            "entity_id": uid,
            "occurred_at": when,
            "phase": Phase.FIELD_WORK,
            "roles": frozenset({"inspector", "drafter"}),
            "blockers": ("fire-02",),
        })

        record = _parse_log(stream)
        assert record["entity_id"] == str(uid)
        assert record["occurred_at"] == when.isoformat()
        assert record["phase"] == int(Phase.FIELD_WORK)
        assert record["roles"] == ["drafter", "inspector"]
        assert record["blockers"] == ["fire-02"]

    def test_unknown_objects_stringified(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        class Opaque:
            def __str__(self):
                return "opaque-value"

        get_logger("test").info("odd", extra={"thing": Opaque()})
        assert _parse_log(stream)["thing"] == "opaque-value"

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_bind_and_get(self):
        with LogContext.bind(correlation_id="x", project_id="p"):
            assert LogContext.get_all() == {"correlation_id": "x", "project_id": "p"}
        assert LogContext.get_all() == {}

    def test_clear(self):
        with LogContext.bind(correlation_id="x"):
            LogContext.clear()
            assert LogContext.get_all() == {}

    def test_nested_bind_restores_outer(self):
        with LogContext.bind(correlation_id="outer", entity_id="e-1"):
            with LogContext.bind(correlation_id="inner"):
                assert LogContext.get_all() == {"correlation_id": "inner", "entity_id": "e-1"}
            assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_skips_none_and_stringifies(self):
        actor = uuid4()
        with LogContext.bind(actor_id=actor, project_id=None):
            ctx = LogContext.get_all()
        assert ctx == {"actor_id": str(actor)}
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(KeyError):
            LogContext.bind(trace_id="t")


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("certification_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.schedule").name == "certification_kernel.services.schedule"

    def test_level_accepts_name(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="DEBUG")
        get_logger("deep.nested").debug("hierarchy_test")
        record = _parse_log(stream)
        assert record["logger"] == "certification_kernel.deep.nested"
