"""Protocol for spawning subagents."""

from __future__ import annotations

from typing import Protocol

from sfa.core.domain.cancellation import CancellationScope
from sfa.core.domain.invocation import InvokeOptions, InvokeResult
from sfa.core.domain.safety import SafetyState


class InvokerProtocol(Protocol):
    """Spawn another agent as a subprocess under a derived SafetyState."""

    async def invoke(
        self,
        target_name: str,
        caller_safety: SafetyState,
        remaining_budget_ms: int | None,
        cancel_scope: CancellationScope | None,
        options: InvokeOptions | None = None,
    ) -> InvokeResult:
        """
        Run ``target_name`` to completion and capture its output.

        Raises:
            DepthExceededError: Before any process exists.
            LoopDetectedError: Before any process exists.
            ProcessSpawnError: If the executable cannot be started.
        """
        ...
