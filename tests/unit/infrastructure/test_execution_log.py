"""Unit tests for the structlog execution record sink."""

import time
from datetime import UTC, datetime
from unittest.mock import MagicMock

from structlog.testing import capture_logs

from sfa.infrastructure.logging.execution_log import (
    NullExecutionLog,
    StructlogExecutionLog,
    build_record,
    summarize,
)


def _record(**overrides):
    values = dict(
        agent="echo",
        version="1.0.0",
        exit_code=0,
        start_time=datetime(2026, 1, 1, tzinfo=UTC),
        started_monotonic=time.monotonic(),
        depth=1,
        call_chain=("root", "echo"),
        session_id="sess",
        input_text="in",
        output_text="out",
    )
    values.update(overrides)
    return build_record(**values)


class TestSummaries:
    def test_short_text_untouched(self):
        assert summarize("abc") == "abc"

    def test_long_text_truncated(self):
        summary = summarize("x" * 600)
        assert len(summary) == 500
        assert summary.endswith("...")

    def test_build_record_truncates(self):
        record = _record(input_text="i" * 1000, meta={"mcpTool": "explain"})
        assert len(record.input_summary) == 500
        assert record.meta == {"mcpTool": "explain"}
        assert record.duration_ms >= 0


class TestStructlogExecutionLog:
    def test_emits_agent_execution_event(self):
        with capture_logs() as logs:
            StructlogExecutionLog().record(_record(exit_code=3))

        event = next(entry for entry in logs if entry["event"] == "agent_execution")
        assert event["agent"] == "echo"
        assert event["exit_code"] == 3
        assert event["call_chain"] == ["root", "echo"]
        assert event["session_id"] == "sess"
        assert event["start_time"].startswith("2026-01-01")

    def test_sink_failure_is_swallowed(self):
        broken = MagicMock()
        broken.info.side_effect = RuntimeError("disk full")

        with capture_logs() as logs:
            StructlogExecutionLog(logger=broken).record(_record())

        assert any(entry["event"] == "execution_log.record_failed" for entry in logs)

    def test_null_sink(self):
        assert NullExecutionLog().record(_record()) is None
