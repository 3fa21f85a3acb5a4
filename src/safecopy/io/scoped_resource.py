"""
Scoped acquisition and release of stream handles.

A ScopedResource pairs an acquire step with a release step. Entering
`use()` acquires a handle; leaving it releases the handle on every exit path,
including cancellation of the surrounding task. Release never raises:
failures are wrapped in ReleaseError, logged, and kept on the resource.

Example:
    guard = Guard()
    async with open_pair("in.bin", "out.bin", guard).use() as (src, dst):
        async with guard.permit("transfer"):
            await transfer(src, dst)
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Generic, Optional, TypeVar

from safecopy.concurrency.cancellation import run_to_completion
from safecopy.concurrency.guard import Guard
from safecopy.config.logging_config import get_logger
from safecopy.errors import AcquisitionError, ReleaseError
from safecopy.io.streams import StrPath, open_file

log = get_logger(__name__)

H = TypeVar("H")
A = TypeVar("A")
B = TypeVar("B")


class ScopedResource(Generic[H]):
    """An acquire step and a release step for a single handle.

    Attributes:
        name: Label used in logs and release errors.
        release_errors: Every ReleaseError absorbed by this resource.
    """

    def __init__(
        self,
        acquire: Callable[[], Awaitable[H]],
        release: Callable[[H], Awaitable[None]],
        name: str = "resource",
    ):
        self._acquire = acquire
        self._release = release
        self.name = name
        self.release_errors: list[ReleaseError] = []
        self._on_acquire: list[Callable[[], None]] = []
        self._on_release: list[Callable[[], None]] = []

    @classmethod
    def make(
        cls,
        acquire: Callable[[], Awaitable[H]],
        release: Callable[[H], Awaitable[None]],
        name: str = "resource",
    ) -> "ScopedResource[H]":
        return cls(acquire, release, name)

    @classmethod
    def from_closeable(cls, acquire: Callable[[], Awaitable[H]], name: str = "resource") -> "ScopedResource[H]":
        """Build a resource released by awaiting the handle's ``close()``."""

        async def close(handle: H) -> None:
            await handle.close()  # type: ignore[attr-defined]

        return cls(acquire, close, name)

    def on_acquire(self, callback: Callable[[], None]) -> "ScopedResource[H]":
        """Register a callback run right before acquisition starts."""
        self._on_acquire.append(callback)
        return self

    def on_release(self, callback: Callable[[], None]) -> "ScopedResource[H]":
        """Register a callback run right before release starts."""
        self._on_release.append(callback)
        return self

    async def acquire(self) -> H:
        for callback in self._on_acquire:
            callback()
        return await self._acquire()

    async def release(self, handle: H) -> None:
        """Release ``handle``. Runs to completion even if the caller is cancelled.

        Raises:
            asyncio.CancelledError: After the release finished, if the caller
                                    was cancelled while waiting for it. A close
                                    failure in that window is still recorded.
        """
        for callback in self._on_release:
            callback()
        try:
            await run_to_completion(lambda: self._release(handle))
        except asyncio.CancelledError as e:
            if isinstance(e.__cause__, Exception):
                self._record(ReleaseError(self.name, e.__cause__))
            raise
        except Exception as e:
            self._record(ReleaseError(self.name, e))

    def _record(self, error: ReleaseError) -> None:
        self.release_errors.append(error)
        log.warning("%s", error.message)

    @asynccontextmanager
    async def use(self) -> AsyncIterator[H]:
        handle = await self.acquire()
        try:
            yield handle
        finally:
            await self.release(handle)

    def __repr__(self) -> str:
        return f"ScopedResource({self.name!r})"


class ComposedResource(Generic[A, B]):
    """Two resources acquired in order and released in reverse order.

    If the second acquisition fails, the first handle is released before the
    error propagates.
    """

    def __init__(self, first: ScopedResource[A], second: ScopedResource[B]):
        self.first = first
        self.second = second

    @property
    def release_errors(self) -> list[ReleaseError]:
        return self.second.release_errors + self.first.release_errors

    @asynccontextmanager
    async def use(self) -> AsyncIterator[tuple[A, B]]:
        async with self.first.use() as first_handle:
            async with self.second.use() as second_handle:
                yield first_handle, second_handle

    def __repr__(self) -> str:
        return f"ComposedResource({self.first.name!r}, {self.second.name!r})"


def open_scoped(path: StrPath, guard: Guard, mode: str) -> ScopedResource:
    """
    Build a ScopedResource for a file stream.

    Opening does not touch the guard. Closing runs under ``guard`` so it
    cannot overlap the transfer loop or the other stream's close.

    Raises (on acquire):
        AcquisitionError: If the file cannot be opened.
    """
    name = str(path)

    async def close(handle) -> None:
        await handle.close()

    async def acquire():
        try:
            # An open still running in a worker thread when the task is
            # cancelled gets closed instead of leaked.
            handle = await run_to_completion(lambda: open_file(path, mode), discard=close)
        except OSError as e:
            raise AcquisitionError(path, e) from e
        log.debug("Opened %s (%s)", name, mode)
        return handle

    async def release(handle) -> None:
        await guard.with_permit(handle.close, label=f"close {name}")
        log.debug("Closed %s", name)

    return ScopedResource(acquire, release, name)


def open_input(path: StrPath, guard: Guard) -> ScopedResource:
    return open_scoped(path, guard, "rb")


def open_output(path: StrPath, guard: Guard) -> ScopedResource:
    return open_scoped(path, guard, "wb")


def open_pair(source: StrPath, destination: StrPath, guard: Guard) -> ComposedResource:
    """Pair an input resource for ``source`` with an output resource for ``destination``."""
    return ComposedResource(open_input(source, guard), open_output(destination, guard))


def guarded(handle: H, guard: Guard, name: Optional[str] = None) -> ScopedResource[H]:
    """Wrap an already-open stream so that it is closed once, under ``guard``."""
    label = name or repr(handle)

    async def acquire() -> H:
        return handle

    async def release(h: H) -> None:
        await guard.with_permit(h.close, label=f"close {label}")  # type: ignore[attr-defined]

    return ScopedResource(acquire, release, label)


__all__ = [
    "ComposedResource",
    "ScopedResource",
    "guarded",
    "open_input",
    "open_output",
    "open_pair",
    "open_scoped",
]
