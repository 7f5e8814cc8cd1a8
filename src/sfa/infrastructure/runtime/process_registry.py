"""
Live child-process registry.

Every spawned subagent is registered for its lifetime. When the parent
program exits, an ``atexit`` hook sends SIGTERM to whatever is still
registered. This is best-effort: a parent killed with SIGKILL runs no
exit hooks at all.
"""

from __future__ import annotations

import atexit
import os
import signal
import threading

import structlog

logger = structlog.get_logger(__name__)


class ChildProcessRegistry:
    """Set of live child pids with a single exit hook."""

    def __init__(self) -> None:
        self._pids: set[int] = set()
        self._lock = threading.Lock()
        self._hook_installed = False

    def __len__(self) -> int:
        return len(self._pids)

    def __contains__(self, pid: object) -> bool:
        return pid in self._pids

    def snapshot(self) -> frozenset[int]:
        with self._lock:
            return frozenset(self._pids)

    def register(self, pid: int) -> None:
        self.install_exit_hook()
        with self._lock:
            self._pids.add(pid)

    def unregister(self, pid: int) -> None:
        with self._lock:
            self._pids.discard(pid)

    def install_exit_hook(self) -> None:
        if self._hook_installed:
            return
        self._hook_installed = True
        atexit.register(self.terminate_all)

    def terminate_all(self, sig: signal.Signals = signal.SIGTERM) -> int:
        """Signal every registered child. Returns how many were signalled."""
        signalled = 0
        for pid in self.snapshot():
            try:
                os.kill(pid, sig)
                signalled += 1
            except (ProcessLookupError, PermissionError):
                self.unregister(pid)
        if signalled:
            logger.info("process_registry.terminated_children", count=signalled, signal=sig.name)
        return signalled


_registry: ChildProcessRegistry | None = None


def get_process_registry() -> ChildProcessRegistry:
    """Process-wide registry instance."""
    global _registry
    if _registry is None:
        _registry = ChildProcessRegistry()
    return _registry
