# ============================================================================
# STRUCTURED LOGGING TESTS
# ============================================================================
# STATUS: Tests - Context propagation and formatters
# PURPOSE: Verify key/value fields reach both output formats
# ============================================================================
"""
Structured Logging Tests

Run with:
    pytest tests/test_logging.py -v
"""

import asyncio
import json
import logging

import pytest

from core.logging import (
    ComponentType,
    HumanFormatter,
    StructuredFormatter,
    get_current_context,
    get_logger,
    log_context,
    parse_level,
)


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def captured():
    handler = _ListHandler()
    base = logging.getLogger("tests.logging")
    base.addHandler(handler)
    base.setLevel(logging.DEBUG)
    base.propagate = False
    yield handler
    base.removeHandler(handler)


class TestLogContext:
    def test_nested_context_merges_and_restores(self):
        with log_context(job_id="j1", tenant_id="t1"):
            with log_context(worker_id="w1", attempt=2):
                ctx = get_current_context()
                assert ctx.job_id == "j1"
                assert ctx.worker_id == "w1"
                assert ctx.extra == {"attempt": 2}
            assert get_current_context().worker_id is None
        assert get_current_context().job_id is None

    def test_values_are_stringified(self):
        from uuid import uuid4
        tenant = uuid4()
        with log_context(tenant_id=tenant):
            assert get_current_context().tenant_id == str(tenant)

    def test_tasks_do_not_share_context(self):
        seen = {}

        async def worker(name):
            with log_context(job_id=name):
                await asyncio.sleep(0)
                seen[name] = get_current_context().job_id

        async def run_both():
            await asyncio.gather(worker("a"), worker("b"))

        asyncio.run(run_both())
        assert seen == {"a": "a", "b": "b"}


class TestContextLogger:
    def test_fields_carry_context_component_and_extra(self, captured):
        logger = get_logger("tests.logging", ComponentType.SERVICE)
        with log_context(job_id="j1"):
            logger.info("hello", extra={"outcome": "reused"})

        record = captured.records[0]
        assert record.fields["job_id"] == "j1"
        assert record.fields["component"] == "service"
        assert record.fields["outcome"] == "reused"

    def test_call_site_extra_wins(self, captured):
        logger = get_logger("tests.logging")
        with log_context(tenant_id="outer"):
            logger.warning("x", extra={"tenant_id": "inner"})
        assert captured.records[0].fields["tenant_id"] == "inner"


class TestFormatters:
    def _record(self, fields):
        record = logging.LogRecord("svc", logging.INFO, __file__, 10, "done", (), None)
        record.fields = fields
        return record

    def test_json_output_flattens_fields(self):
        line = StructuredFormatter().format(self._record({"job_id": "j1", "claimed": 3}))
        data = json.loads(line)
        assert data["message"] == "done"
        assert data["level"] == "INFO"
        assert data["job_id"] == "j1"
        assert data["claimed"] == 3

    def test_json_fields_do_not_clobber_message(self):
        line = StructuredFormatter().format(self._record({"message": "spoofed"}))
        assert json.loads(line)["message"] == "done"

    def test_human_output_appends_pairs(self):
        line = HumanFormatter().format(self._record({"job_id": "j1"}))
        assert "svc: done" in line
        assert "job_id=j1" in line


class TestParseLevel:
    def test_names(self):
        assert parse_level("DEBUG") == logging.DEBUG
        assert parse_level("warn") == logging.WARNING
        assert parse_level("WARNING") == logging.WARNING
        assert parse_level(logging.ERROR) == logging.ERROR

    def test_unknown_falls_back_to_info(self):
        assert parse_level("chatty") == logging.INFO
