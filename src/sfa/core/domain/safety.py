"""
Recursion safety and session identity.

A ``SafetyState`` is built once per process from the coordination
namespace (``SFA_*`` environment variables) and never mutated afterwards.
Children receive a derived copy serialised back into the same namespace.

``depth`` and ``call_chain`` are tracked independently: depth bounds
nesting, the chain bounds cycles. Inconsistent inherited values are not
reconciled; both checks run on their own.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field, replace
from uuid import uuid4

from sfa.core.domain.errors import DepthExceededError, LoopDetectedError

ENV_DEPTH = "SFA_DEPTH"
ENV_MAX_DEPTH = "SFA_MAX_DEPTH"
ENV_CALL_CHAIN = "SFA_CALL_CHAIN"
ENV_SESSION_ID = "SFA_SESSION_ID"
COORDINATION_PREFIX = "SFA_"

DEFAULT_MAX_DEPTH = 5
CHAIN_SEPARATOR = ","


@dataclass(frozen=True)
class SafetyState:
    """Depth, call chain and session identity of one agent process."""

    depth: int
    max_depth: int
    call_chain: tuple[str, ...] = field(default_factory=tuple)
    session_id: str = ""

    def to_env(self) -> dict[str, str]:
        """Serialise into coordination-namespace variables."""
        return {
            ENV_DEPTH: str(self.depth),
            ENV_MAX_DEPTH: str(self.max_depth),
            ENV_CALL_CHAIN: CHAIN_SEPARATOR.join(self.call_chain),
            ENV_SESSION_ID: self.session_id,
        }


def init_safety(
    agent_name: str,
    environ: MutableMapping[str, str],
    max_depth_override: int | None = None,
    *,
    default_max_depth: int = DEFAULT_MAX_DEPTH,
) -> SafetyState:
    """
    Build the process SafetyState from inherited coordination data.

    The self-loop check runs before anything else. On success the agent's
    own name is appended to the chain and the resulting state is written
    back into ``environ`` so children spawned without helper functions
    still inherit it.

    Args:
        agent_name: Name of the agent starting up.
        environ: Process environment (read, then updated in place).
        max_depth_override: Explicit ``--max-depth`` value, wins over the
            inherited ``SFA_MAX_DEPTH``.
        default_max_depth: Used when neither an override nor an
            inherited value is present.

    Returns:
        The immutable SafetyState for this process.

    Raises:
        LoopDetectedError: If ``agent_name`` already appears in the
            inherited call chain.
    """
    depth = _parse_int(environ.get(ENV_DEPTH), 0)
    if max_depth_override is not None:
        max_depth = int(max_depth_override)
    else:
        max_depth = _parse_int(environ.get(ENV_MAX_DEPTH), default_max_depth)
    parent_chain = parse_call_chain(environ.get(ENV_CALL_CHAIN))

    if agent_name in parent_chain:
        raise LoopDetectedError(list(parent_chain), agent_name)

    session_id = environ.get(ENV_SESSION_ID) or str(uuid4())
    state = SafetyState(
        depth=depth,
        max_depth=max_depth,
        call_chain=(*parent_chain, agent_name),
        session_id=session_id,
    )
    environ.update(state.to_env())
    return state


def check_depth_limit(state: SafetyState) -> None:
    """Refuse to spawn when the child would reach ``max_depth``."""
    if state.depth + 1 >= state.max_depth:
        raise DepthExceededError(state.depth, state.max_depth)


def check_loop(state: SafetyState, target_name: str) -> None:
    """Refuse to spawn a target that is already on the call chain."""
    if target_name in state.call_chain:
        raise LoopDetectedError(list(state.call_chain), target_name)


def derive_child(state: SafetyState) -> SafetyState:
    """
    State handed to a spawned child.

    Depth is incremented; the chain is forwarded unchanged because the
    child appends its own name during its ``init_safety``.
    """
    return replace(state, depth=state.depth + 1)


def parse_call_chain(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(raw.split(CHAIN_SEPARATOR))


def coordination_env(environ: Mapping[str, str]) -> dict[str, str]:
    """Every coordination-namespace variable present in ``environ``."""
    return {key: value for key, value in environ.items() if key.startswith(COORDINATION_PREFIX)}


def _parse_int(raw: str | None, default: int) -> int:
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default
