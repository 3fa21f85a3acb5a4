"""
Cooperative cancellation for copy operations.

Provides a token that callers use to request cancellation, checked by the copy
at each of its suspension points, and a helper that lets teardown code finish
even when the surrounding task is cancelled while it runs.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from safecopy.config.logging_config import get_logger
from safecopy.errors import CopyCancelledError

log = get_logger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    A flag that signals a running copy to stop at its next suspension point.

    Cancelling a token never skips cleanup: the copy raises
    CopyCancelledError from inside its resource scope, so both streams are
    still released before the error reaches the caller.

    Example:
        token = CancellationToken()
        task = asyncio.create_task(copy(src, dst, token=token))

        token.cancel()
        try:
            await task
        except CopyCancelledError:
            print("copy stopped, both files closed")
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._event: asyncio.Event | None = None
        self._callbacks: list[Callable[[], Any]] = []

    def cancel(self) -> None:
        """Request cancellation. Calling it more than once has no further effect."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._event is not None:
            self._event.set()
        for callback in list(self._callbacks):
            try:
                callback()
            except Exception:
                log.exception("Cancellation callback %r failed", callback)

    def is_cancelled(self) -> bool:
        """Return True if cancellation has been requested."""
        return self._cancelled

    def add_callback(self, callback: Callable[[], Any]) -> Callable[[], None]:
        """
        Register a callable to run when the token is cancelled.

        If the token is already cancelled the callback runs immediately.

        Returns:
            A function that removes the callback when called.
        """
        if self._cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def raise_if_cancelled(self) -> None:
        """
        Raise CopyCancelledError if cancellation has been requested.

        Raises:
            CopyCancelledError: If the token has been cancelled.
        """
        if self._cancelled:
            raise CopyCancelledError()

    async def wait_for_cancelled(self) -> None:
        """Wait until the token is cancelled."""
        if self._cancelled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"CancellationToken({state})"


async def run_to_completion(
    action: Callable[[], Awaitable[T]],
    discard: Callable[[T], Awaitable[Any]] | None = None,
) -> T:
    """
    Run ``action()`` to completion even if the calling task is cancelled.

    The action runs in its own task, which the caller's cancellation never
    reaches. If the caller is cancelled while waiting, the wait resumes until
    the action finishes and asyncio.CancelledError is raised afterwards, so the
    cancellation is delivered late but never lost. That holds when the action
    fails too: its exception is logged and chained as the ``__cause__`` of the
    CancelledError instead of replacing it.

    Args:
        action: Zero-argument coroutine function to run.
        discard: Called with the action's result when the caller was cancelled
                 in the meantime, so a freshly acquired handle is not leaked.

    Raises:
        asyncio.CancelledError: If the caller was cancelled during the wait,
                                or the action itself was cancelled.
        Exception: Whatever the action raised, if the caller was not cancelled.
    """
    task = asyncio.ensure_future(action())
    interrupted = False
    while not task.done():
        try:
            # wait() never cancels the task it waits on
            await asyncio.wait({task})
        except asyncio.CancelledError:
            interrupted = True

    if not interrupted:
        return task.result()
    if task.cancelled():
        raise asyncio.CancelledError()

    error = task.exception()
    if error is not None:
        log.warning("Action failed after its caller was cancelled: %s", error)
        raise asyncio.CancelledError() from error

    if discard is not None:
        result = task.result()
        try:
            await run_to_completion(lambda: discard(result))
        except Exception:
            log.exception("Failed to discard result of a cancelled action")
    raise asyncio.CancelledError()


__all__ = [
    "CancellationToken",
    "run_to_completion",
]
