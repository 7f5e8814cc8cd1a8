"""Process-level runtime adapters: signal fan-out and child registry."""

from sfa.infrastructure.runtime.process_registry import ChildProcessRegistry, get_process_registry
from sfa.infrastructure.runtime.signals import SignalRouter, bind_scope_to_signals, get_signal_router

__all__ = [
    "ChildProcessRegistry",
    "SignalRouter",
    "bind_scope_to_signals",
    "get_process_registry",
    "get_signal_router",
]
