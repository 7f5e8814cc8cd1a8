"""
Cancellation Scope

A cancellable, optionally time-bounded unit of work. One scope exists for
the whole top-level execution, or one per tool call in server mode.

Cancellation is cooperative: observers poll ``cancelled``, await
``wait()`` or register a callback. Only the subprocess layer turns a
cancelled scope into an OS-level terminate/kill.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable

import structlog

from sfa.core.domain.enums import CancelReason
from sfa.core.domain.errors import InvocationCancelledError, TimeoutExceededError

logger = structlog.get_logger(__name__)

CancelCallback = Callable[[CancelReason], None]


class CancellationScope:
    """Cancellation signal with an optional deadline.

    Must be created inside a running event loop. ``close()`` (or leaving
    the ``async with`` block) releases the deadline timer, drops the
    registered callbacks and runs finalizers such as signal unsubscription.
    """

    _ids = itertools.count(1)

    def __init__(self, timeout: float | None = None, *, name: str | None = None) -> None:
        self._loop = asyncio.get_running_loop()
        self._event = asyncio.Event()
        self._reason: CancelReason | None = None
        self._timeout = timeout
        self._callbacks: dict[int, CancelCallback] = {}
        self._keys = itertools.count()
        self._finalizers: list[Callable[[], None]] = []
        self._closed = False
        self.name = name or f"scope-{next(self._ids)}"

        self._deadline: float | None = None
        self._timer: asyncio.TimerHandle | None = None
        if timeout is not None:
            self._deadline = self._loop.time() + timeout
            self._timer = self._loop.call_later(max(timeout, 0), self.cancel, CancelReason.TIMEOUT)

    async def __aenter__(self) -> "CancellationScope":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> CancelReason | None:
        return self._reason

    @property
    def timed_out(self) -> bool:
        return self._reason is CancelReason.TIMEOUT

    @property
    def timeout(self) -> float | None:
        return self._timeout

    @property
    def closed(self) -> bool:
        return self._closed

    def remaining(self) -> float | None:
        """Seconds left before the deadline, ``None`` when unbounded."""
        if self._deadline is None:
            return None
        return max(self._deadline - self._loop.time(), 0.0)

    def remaining_ms(self) -> int | None:
        remaining = self.remaining()
        if remaining is None:
            return None
        return int(remaining * 1000)

    def cancel(self, reason: CancelReason = CancelReason.CALLER) -> bool:
        """Fire cancellation. Returns False when the scope already fired."""
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        logger.debug("cancellation_scope.cancelled", scope=self.name, reason=reason.value)
        for callback in list(self._callbacks.values()):
            self._run_callback(callback)
        return True

    def add_callback(self, callback: CancelCallback) -> Callable[[], None]:
        """
        React to cancellation.

        The callback runs immediately when the scope already fired.

        Returns:
            A function removing the callback again (safe to call twice).
        """
        if self._event.is_set():
            self._run_callback(callback)
            return lambda: None
        key = next(self._keys)
        self._callbacks[key] = callback

        def remove() -> None:
            self._callbacks.pop(key, None)

        return remove

    def add_finalizer(self, finalizer: Callable[[], None]) -> None:
        """Run ``finalizer`` when the scope is closed."""
        if self._closed:
            finalizer()
            return
        self._finalizers.append(finalizer)

    async def wait(self) -> CancelReason:
        await self._event.wait()
        assert self._reason is not None
        return self._reason

    def raise_if_cancelled(self) -> None:
        """Raise the domain error matching the cancellation reason."""
        if not self._event.is_set():
            return
        if self.timed_out:
            raise TimeoutExceededError(self._timeout)
        raise InvocationCancelledError(
            f"Cancelled ({self._reason.value if self._reason else 'unknown'})",
            details={"scope": self.name},
        )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._callbacks.clear()
        finalizers, self._finalizers = self._finalizers, []
        for finalizer in finalizers:
            try:
                finalizer()
            except Exception as exc:
                logger.warning("cancellation_scope.finalizer_failed", scope=self.name, error=str(exc))

    def _run_callback(self, callback: CancelCallback) -> None:
        assert self._reason is not None
        try:
            callback(self._reason)
        except Exception as exc:
            logger.warning(
                "cancellation_scope.callback_failed",
                scope=self.name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
