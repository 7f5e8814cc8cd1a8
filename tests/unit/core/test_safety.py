"""
Unit tests for recursion safety state.

Covers initialization from the coordination namespace, the self-loop
check, depth/loop guardrails and child derivation.
"""

import uuid

import pytest

from sfa.core.domain.errors import DepthExceededError, GuardrailViolation, LoopDetectedError
from sfa.core.domain.safety import (
    DEFAULT_MAX_DEPTH,
    ENV_CALL_CHAIN,
    ENV_DEPTH,
    ENV_MAX_DEPTH,
    ENV_SESSION_ID,
    SafetyState,
    check_depth_limit,
    check_loop,
    coordination_env,
    derive_child,
    init_safety,
    parse_call_chain,
)


class TestInitSafety:
    """Test building the process SafetyState."""

    def test_top_level_defaults(self):
        environ: dict[str, str] = {}
        state = init_safety("alpha", environ)

        assert state.depth == 0
        assert state.max_depth == DEFAULT_MAX_DEPTH
        assert state.call_chain == ("alpha",)
        uuid.UUID(state.session_id, version=4)

    def test_inherits_coordination_values(self):
        environ = {
            ENV_DEPTH: "2",
            ENV_MAX_DEPTH: "7",
            ENV_CALL_CHAIN: "root,middle",
            ENV_SESSION_ID: "abc",
        }
        state = init_safety("leaf", environ)

        assert state.depth == 2
        assert state.max_depth == 7
        assert state.call_chain == ("root", "middle", "leaf")
        assert state.session_id == "abc"

    def test_session_id_generated_only_when_absent(self):
        environ = {ENV_SESSION_ID: "existing"}
        assert init_safety("a", environ).session_id == "existing"

    def test_explicit_max_depth_wins(self):
        environ = {ENV_MAX_DEPTH: "9"}
        assert init_safety("a", environ, max_depth_override=3).max_depth == 3

    def test_configured_default_below_inherited(self):
        assert init_safety("a", {}, default_max_depth=2).max_depth == 2
        assert init_safety("a", {ENV_MAX_DEPTH: "9"}, default_max_depth=2).max_depth == 9

    def test_republishes_into_environment(self):
        environ = {ENV_CALL_CHAIN: "root"}
        state = init_safety("child", environ)

        assert environ[ENV_CALL_CHAIN] == "root,child"
        assert environ[ENV_DEPTH] == "0"
        assert environ[ENV_MAX_DEPTH] == str(DEFAULT_MAX_DEPTH)
        assert environ[ENV_SESSION_ID] == state.session_id

    def test_chain_grows_by_exactly_own_name(self):
        environ = {ENV_CALL_CHAIN: "a,b,c"}
        state = init_safety("d", environ)
        assert len(state.call_chain) == 4
        assert state.call_chain[-1] == "d"

    def test_self_loop_detected_before_anything_else(self):
        environ = {ENV_CALL_CHAIN: "a,b", ENV_DEPTH: "2"}

        with pytest.raises(LoopDetectedError) as exc_info:
            init_safety("a", environ)

        assert exc_info.value.chain == ["a", "b", "a"]
        assert "a → b → a" in str(exc_info.value)
        assert environ[ENV_CALL_CHAIN] == "a,b"

    def test_garbage_depth_falls_back_to_default(self):
        environ = {ENV_DEPTH: "not-a-number"}
        assert init_safety("a", environ).depth == 0


class TestGuardrails:
    """Test depth and loop checks."""

    @pytest.mark.parametrize("depth,max_depth", [(4, 5), (5, 5), (0, 1), (9, 3)])
    def test_depth_limit_reached(self, depth, max_depth):
        state = SafetyState(depth=depth, max_depth=max_depth)
        with pytest.raises(DepthExceededError) as exc_info:
            check_depth_limit(state)
        assert isinstance(exc_info.value, GuardrailViolation)
        assert exc_info.value.code == "depth_exceeded"

    @pytest.mark.parametrize("depth,max_depth", [(0, 5), (3, 5), (0, 2)])
    def test_depth_limit_ok(self, depth, max_depth):
        check_depth_limit(SafetyState(depth=depth, max_depth=max_depth))

    def test_loop_detected(self):
        state = SafetyState(depth=1, max_depth=5, call_chain=("parent", "child"))
        with pytest.raises(LoopDetectedError) as exc_info:
            check_loop(state, "parent")
        assert exc_info.value.chain == ["parent", "child", "parent"]

    def test_no_loop_for_new_target(self):
        check_loop(SafetyState(depth=1, max_depth=5, call_chain=("parent",)), "other")

    def test_checks_are_independent(self):
        # Depth says fine, chain says loop: the loop check still fires.
        state = SafetyState(depth=0, max_depth=5, call_chain=("a", "b", "c", "d", "e", "f"))
        check_depth_limit(state)
        with pytest.raises(LoopDetectedError):
            check_loop(state, "c")


class TestDeriveChild:
    """Test child state derivation."""

    def test_increments_depth_only(self):
        state = SafetyState(depth=2, max_depth=5, call_chain=("a", "b", "c"), session_id="s")
        child = derive_child(state)

        assert child.depth == 3
        assert child.max_depth == 5
        assert child.call_chain == ("a", "b", "c")
        assert child.session_id == "s"

    def test_parent_unchanged(self):
        state = SafetyState(depth=0, max_depth=5, call_chain=("a",), session_id="s")
        derive_child(state)
        assert state.depth == 0

    def test_to_env(self):
        env = derive_child(SafetyState(depth=2, max_depth=5, call_chain=("a", "b"), session_id="s")).to_env()
        assert env == {
            ENV_DEPTH: "3",
            ENV_MAX_DEPTH: "5",
            ENV_CALL_CHAIN: "a,b",
            ENV_SESSION_ID: "s",
        }


class TestHelpers:
    def test_parse_call_chain(self):
        assert parse_call_chain(None) == ()
        assert parse_call_chain("") == ()
        assert parse_call_chain("a,b") == ("a", "b")

    def test_coordination_env_filters_prefix(self):
        environ = {"SFA_DEPTH": "1", "SFA_CUSTOM": "x", "PATH": "/bin", "MY_SECRET": "s"}
        assert coordination_env(environ) == {"SFA_DEPTH": "1", "SFA_CUSTOM": "x"}
