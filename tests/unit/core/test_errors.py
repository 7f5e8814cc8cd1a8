"""Unit tests for the error taxonomy."""

from sfa.core.domain.errors import (
    DepthExceededError,
    GuardrailViolation,
    HandlerError,
    LoopDetectedError,
    ProcessSpawnError,
    SfaError,
    TimeoutExceededError,
    UsageError,
    format_seconds,
)


class TestErrorTaxonomy:
    def test_guardrails_share_base(self):
        assert issubclass(DepthExceededError, GuardrailViolation)
        assert issubclass(LoopDetectedError, GuardrailViolation)
        assert issubclass(GuardrailViolation, SfaError)

    def test_depth_exceeded_message(self):
        error = DepthExceededError(4, 5)
        assert "Maximum invocation depth reached (5)" in str(error)
        assert "depth 5" in str(error)
        assert error.details == {"depth": 4, "max_depth": 5}

    def test_loop_detected_chain(self):
        error = LoopDetectedError(["a", "b"], "a")
        assert error.chain == ["a", "b", "a"]
        assert error.message == "Loop detected: a → b → a"
        assert error.code == "loop_detected"

    def test_timeout_message(self):
        assert TimeoutExceededError(120).message == "Timeout after 120s"
        assert TimeoutExceededError(0.5).message == "Timeout after 0.5s"
        assert TimeoutExceededError(None).message == "Timeout after ?s"

    def test_spawn_error(self):
        error = ProcessSpawnError("missing-agent", "No such file or directory")
        assert error.message == "Failed to invoke missing-agent: No such file or directory"
        assert error.details["target"] == "missing-agent"
        assert error.code == "spawn_failed"

    def test_handler_error_carries_tool(self):
        error = HandlerError("bad", tool_name="explain")
        assert error.tool_name == "explain"
        assert error.details == {"tool_name": "explain"}

    def test_usage_error_code(self):
        assert UsageError("nope").code == "invalid_usage"

    def test_base_defaults(self):
        error = SfaError("plain")
        assert error.details == {}
        assert error.code == "sfa_error"


def test_format_seconds():
    assert format_seconds(3.0) == "3"
    assert format_seconds(2.5) == "2.5"
