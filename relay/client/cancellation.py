"""Cooperative cancellation for one explanation session.

A single token is shared by the network request and the timeout timer. The
first ``cancel()`` wins and records its reason; later calls are no-ops. Every
suspension point awaits through ``CancellationToken.guard`` so it is
interrupted as soon as the token fires.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from relay.client.exceptions import CancelledByUserError, StreamError, StreamTimeoutError

T = TypeVar("T")


class CancelReason(str, Enum):
    USER = "user"
    TIMEOUT = "timeout"
    SUPERSEDED = "superseded"


class CancellationToken:
    """Abort signal shared by everything in one session."""

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[CancelReason] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[CancelReason]:
        return self._reason

    def cancel(self, reason: CancelReason = CancelReason.USER) -> bool:
        """Abort the token. Returns False if it was already aborted."""
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    def error(self) -> StreamError:
        if self._reason is CancelReason.TIMEOUT:
            return StreamTimeoutError()
        reason = self._reason.value if self._reason else CancelReason.USER.value
        return CancelledByUserError(reason)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise self.error()

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(
        self,
        awaitable: Awaitable[T],
        discard: Optional[Callable[[Any], Awaitable[None]]] = None,
    ) -> T:
        """Await ``awaitable`` unless the token fires first.

        If the token fires first the awaitable is cancelled and the matching
        StreamError is raised. A result that lands anyway while it is being
        cancelled is handed to ``discard`` so resources such as an open
        response are not leaked.
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is None and discard is not None:
            await discard(task.result())
        raise self.error()


class CancellationController:
    """Owns a session's token and its wall-clock timer.

    ``arm()`` schedules a timeout that aborts the token; ``disarm()`` clears
    it. Explicit cancellation and the timer abort the same token, so
    whichever comes first decides the reason.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self.token = CancellationToken()
        self._timeout_handle: Optional[asyncio.TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._timeout_handle is not None

    def arm(self) -> None:
        if self.timeout is None or self._timeout_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._timeout_handle = loop.call_later(
            self.timeout, self.token.cancel, CancelReason.TIMEOUT
        )

    def disarm(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def cancel(self, reason: CancelReason = CancelReason.USER) -> bool:
        return self.token.cancel(reason)
