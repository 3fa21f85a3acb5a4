import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

from safecopy.config.logging_config import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class Guard:
    """
    A single-permit async semaphore that serializes guarded sections.

    One copy operation owns one guard. The release of the input stream, the
    release of the output stream and the transfer loop all run under it, so
    no stream is closed while bytes are in flight and the two closes never
    overlap.

    Waiting for the permit suspends the current task without blocking the
    event loop thread. Waiters are woken in FIFO order.

    Example:
        guard = Guard()

        # Using async context manager
        async with guard.permit("transfer"):
            await copy_bytes()

        # Running a coroutine function under the permit
        await guard.with_permit(stream.close, label="close")
    """

    def __init__(self, permits: int = 1):
        """
        Initialize the guard.

        Args:
            permits (int): Number of permits. Only 1 is supported.

        Raises:
            ValueError: If permits is not 1.
        """
        if permits != 1:
            raise ValueError("Guard supports exactly one permit")
        self._semaphore = asyncio.Semaphore(permits)
        self._holder: Optional[str] = None

    @property
    def available(self) -> int:
        """Return 1 if the permit is free, 0 if it is held."""
        return 0 if self._semaphore.locked() else 1

    @property
    def holder(self) -> Optional[str]:
        """Label of the section currently holding the permit, if any."""
        return self._holder

    def locked(self) -> bool:
        """Return True if the permit cannot be acquired immediately."""
        return self._semaphore.locked()

    async def acquire(self, timeout: Optional[float] = None) -> bool:
        """
        Acquire the permit with an optional timeout.

        Args:
            timeout (Optional[float]): Maximum time to wait in seconds. If None (default),
                                      wait indefinitely. If <= 0, attempt to acquire
                                      without waiting.

        Returns:
            bool: True if the permit was acquired, False if the timeout expired.

        Raises:
            asyncio.CancelledError: If the waiting task is cancelled. The permit
                                    is not taken in that case.
        """
        if timeout is None:
            await self._semaphore.acquire()
            return True

        if timeout <= 0:
            if self._semaphore.locked():
                return False
            await self._semaphore.acquire()
            return True

        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def release(self) -> None:
        """Return the permit and wake one waiter.

        Raises:
            ValueError: If the permit is not currently held.
        """
        if not self._semaphore.locked():
            raise ValueError("Guard released more times than acquired")
        self._semaphore.release()

    @asynccontextmanager
    async def permit(self, label: Optional[str] = None) -> AsyncIterator["Guard"]:
        """Hold the permit for the duration of the block.

        The permit is returned on every exit path: normal completion, an
        exception, or cancellation of the block.
        """
        await self.acquire()
        self._holder = label
        try:
            self._on_enter(label)
            log.debug("Guard acquired by %s", label or "anonymous section")
            yield self
        finally:
            self._on_exit(label)
            self._holder = None
            self.release()
            log.debug("Guard released by %s", label or "anonymous section")

    async def with_permit(self, action: Callable[[], Awaitable[T]], label: Optional[str] = None) -> T:
        """Run ``action()`` while holding the permit and return its result."""
        async with self.permit(label):
            return await action()

    def _on_enter(self, label: Optional[str]) -> None:
        """Called right after the permit is taken. Override to instrument."""

    def _on_exit(self, label: Optional[str]) -> None:
        """Called right before the permit is returned. Override to instrument."""

    async def __aenter__(self) -> "Guard":
        await self.acquire()
        try:
            self._on_enter(None)
        except BaseException:
            self.release()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            self._on_exit(None)
        finally:
            self.release()

    def __repr__(self) -> str:
        state = "locked" if self.locked() else "unlocked"
        return f"Guard({state})"
