"""
OS signal fan-out.

SIGINT and SIGTERM are process-wide, but several cancellation scopes (or a
scope and a tool server) may want to react to them independently. The
router installs one handler per signal on the running event loop while at
least one subscriber exists and dispatches every delivery to all current
subscribers. Installing and removing are both idempotent.
"""

from __future__ import annotations

import asyncio
import itertools
import signal
from collections.abc import Callable

import structlog

from sfa.core.domain.cancellation import CancellationScope
from sfa.core.domain.enums import CancelReason

logger = structlog.get_logger(__name__)

SignalCallback = Callable[[signal.Signals], None]

HANDLED_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class SignalRouter:
    """Dispatch SIGINT/SIGTERM deliveries to independent subscribers."""

    def __init__(self, signals: tuple[signal.Signals, ...] = HANDLED_SIGNALS) -> None:
        self._signals = signals
        self._subscribers: dict[int, SignalCallback] = {}
        self._keys = itertools.count()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous: dict[signal.Signals, object] = {}
        self._logger = logger.bind(component="signal_router")

    @property
    def installed(self) -> bool:
        return self._loop is not None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: SignalCallback) -> Callable[[], None]:
        """
        Register ``callback`` for every handled signal.

        Returns:
            An unsubscribe function; calling it more than once is a no-op.
        """
        key = next(self._keys)
        self._subscribers[key] = callback
        self.install()

        def unsubscribe() -> None:
            if self._subscribers.pop(key, None) is not None and not self._subscribers:
                self.uninstall()

        return unsubscribe

    def install(self) -> None:
        loop = asyncio.get_running_loop()
        if self._loop is loop:
            return
        if self._loop is not None:
            self.uninstall()
        for sig in self._signals:
            try:
                loop.add_signal_handler(sig, self.dispatch, sig)
            except (NotImplementedError, RuntimeError):
                # No loop-level signal support (e.g. Windows); fall back to
                # the process handler and hop onto the loop thread.
                self._previous[sig] = signal.signal(
                    sig,
                    lambda signum, _frame: loop.call_soon_threadsafe(
                        self.dispatch, signal.Signals(signum)
                    ),
                )
        self._loop = loop
        self._logger.debug("signal_router.installed", signals=[s.name for s in self._signals])

    def uninstall(self) -> None:
        loop, self._loop = self._loop, None
        if loop is None:
            return
        for sig in self._signals:
            if sig in self._previous:
                signal.signal(sig, self._previous.pop(sig))  # type: ignore[arg-type]
                continue
            if loop.is_closed():
                continue
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                pass
        self._logger.debug("signal_router.uninstalled")

    def dispatch(self, sig: signal.Signals) -> None:
        self._logger.debug("signal_router.received", signal=sig.name, subscribers=len(self._subscribers))
        for callback in list(self._subscribers.values()):
            try:
                callback(sig)
            except Exception as exc:
                self._logger.warning(
                    "signal_router.callback_failed",
                    signal=sig.name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )


def reason_for_signal(sig: signal.Signals) -> CancelReason:
    if sig == signal.SIGINT:
        return CancelReason.INTERRUPT
    return CancelReason.TERMINATE


def bind_scope_to_signals(scope: CancellationScope, router: SignalRouter) -> None:
    """Cancel ``scope`` on SIGINT/SIGTERM until the scope is closed."""
    unsubscribe = router.subscribe(lambda sig: scope.cancel(reason_for_signal(sig)))
    scope.add_finalizer(unsubscribe)


_router: SignalRouter | None = None


def get_signal_router() -> SignalRouter:
    """Process-wide router instance."""
    global _router
    if _router is None:
        _router = SignalRouter()
    return _router
