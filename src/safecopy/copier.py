"""
Copy orchestration.

A copy acquires the source and destination as one composed resource, runs
the transfer loop while holding a fresh single-permit Guard, and releases the
destination then the source. Both releases also take the guard, so neither
can overlap the transfer or each other. Cancellation, by task cancellation or
by a CancellationToken, still runs the full teardown.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from safecopy.concurrency.cancellation import CancellationToken
from safecopy.concurrency.guard import Guard
from safecopy.config.environment import Environment
from safecopy.config.logging_config import get_logger
from safecopy.io.scoped_resource import ComposedResource, guarded, open_pair
from safecopy.io.streams import InputStream, OutputStream, StrPath
from safecopy.io.transfer import transfer
from safecopy.types import CopyOptions, CopyState

log = get_logger(__name__)

StateCallback = Callable[[CopyState], Any]


def _resolve_buffer_size(buffer_size: Optional[int]) -> int:
    if buffer_size is None:
        buffer_size = Environment.get_buffer_size()
    return CopyOptions(buffer_size=buffer_size).buffer_size


async def _run(
    pair: ComposedResource,
    guard: Guard,
    buffer_size: int,
    token: Optional[CancellationToken],
    on_state: Optional[StateCallback],
    check_before_acquire: bool = True,
) -> int:
    def notify(state: CopyState) -> None:
        log.debug("Copy state: %s", state.value)
        if on_state is not None:
            on_state(state)

    def checkpoint() -> None:
        if token is not None:
            token.raise_if_cancelled()

    pair.first.on_acquire(lambda: notify(CopyState.ACQUIRING_INPUT))
    pair.second.on_acquire(lambda: notify(CopyState.ACQUIRING_OUTPUT))
    if check_before_acquire:
        pair.first.on_acquire(checkpoint)
        pair.second.on_acquire(checkpoint)
    pair.second.on_release(lambda: notify(CopyState.RELEASING_OUTPUT))
    pair.first.on_release(lambda: notify(CopyState.RELEASING_INPUT))

    notify(CopyState.IDLE)
    try:
        async with pair.use() as (source, destination):
            checkpoint()
            async with guard.permit("transfer"):
                notify(CopyState.TRANSFERRING)
                return await transfer(source, destination, buffer_size, token)
    finally:
        notify(CopyState.DONE)


async def copy(
    source: StrPath,
    destination: StrPath,
    *,
    buffer_size: Optional[int] = None,
    token: Optional[CancellationToken] = None,
    on_state: Optional[StateCallback] = None,
) -> int:
    """
    Copy the file at ``source`` to ``destination``.

    Args:
        source: Path of the file to read.
        destination: Path of the file to create or truncate.
        buffer_size: Transfer buffer size in bytes. Defaults to the
                     configured SAFECOPY_BUFFER_SIZE (10 KiB).
        token: Optional cancellation token, checked at every suspension point.
        on_state: Called with each CopyState the operation passes through.

    Returns:
        int: Number of bytes copied.

    Raises:
        AcquisitionError: If either file cannot be opened.
        TransferError: If a read or write fails.
        CopyCancelledError: If ``token`` is cancelled.
        asyncio.CancelledError: If the task running the copy is cancelled.
    """
    size = _resolve_buffer_size(buffer_size)
    guard = Guard()
    count = await _run(open_pair(source, destination, guard), guard, size, token, on_state)
    log.info("Copied %d bytes from %s to %s", count, source, destination)
    return count


async def copy_streams(
    source: InputStream,
    destination: OutputStream,
    *,
    buffer_size: Optional[int] = None,
    token: Optional[CancellationToken] = None,
    on_state: Optional[StateCallback] = None,
) -> int:
    """
    Copy between two already-open streams and close both exactly once.

    Follows the same guard and teardown protocol as `copy`. Use it when the
    streams come from somewhere other than the local file system. The streams
    are already open, so the token is first checked once both are held and a
    cancelled token still closes them.
    """
    size = _resolve_buffer_size(buffer_size)
    guard = Guard()
    pair = ComposedResource(
        guarded(source, guard, "source"),
        guarded(destination, guard, "destination"),
    )
    return await _run(pair, guard, size, token, on_state, check_before_acquire=False)


def copy_file(source: StrPath, destination: StrPath, **kwargs: Any) -> int:
    """Synchronous wrapper around `copy` for callers without an event loop."""
    return asyncio.run(copy(source, destination, **kwargs))


__all__ = [
    "copy",
    "copy_file",
    "copy_streams",
]
