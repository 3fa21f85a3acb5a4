"""
The byte-copying loop.

`transfer` is expected to run while the caller holds the copy's Guard, so
neither stream can be closed underneath it. Each read and write runs to
completion even if the task is cancelled, so the Guard is never given back
while an executor-backed call is still moving bytes.
"""

from __future__ import annotations

from typing import Optional

from safecopy.concurrency.cancellation import CancellationToken, run_to_completion
from safecopy.config.environment import DEFAULT_BUFFER_SIZE
from safecopy.config.logging_config import get_logger
from safecopy.errors import TransferError
from safecopy.io.streams import InputStream, OutputStream

log = get_logger(__name__)


async def _fill(source: InputStream, buffer: bytearray) -> int:
    readinto = getattr(source, "readinto", None)
    if readinto is not None:
        return (await readinto(buffer)) or 0
    chunk = await source.read(len(buffer))  # type: ignore[attr-defined]
    n = len(chunk)
    if n > len(buffer):
        raise OSError(f"read({len(buffer)}) returned {n} bytes")
    buffer[:n] = chunk
    return n


async def transfer(
    source: InputStream,
    destination: OutputStream,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    token: Optional[CancellationToken] = None,
) -> int:
    """
    Copy everything from ``source`` to ``destination``.

    One buffer of ``buffer_size`` bytes is allocated per call and reused for
    every read. The loop ends when a read returns 0 bytes. The destination
    receives an independent ``bytes`` copy of each chunk, so it may keep a
    reference to what it was given.

    Args:
        source: Stream to read from.
        destination: Stream to write to.
        buffer_size: Size of the reusable buffer in bytes.
        token: Checked before every read and write.

    Returns:
        int: Total number of bytes copied.

    Raises:
        ValueError: If buffer_size is not positive.
        TransferError: If a read or write fails, or a read returns more bytes
                       than requested. Bytes already written stay in the
                       destination.
        CopyCancelledError: If the token is cancelled.
        asyncio.CancelledError: If the task is cancelled. Raised once the read
                                or write in progress has finished.
    """
    if buffer_size <= 0:
        raise ValueError("buffer_size must be a positive integer")

    buffer = bytearray(buffer_size)
    view = memoryview(buffer)
    total = 0
    log.debug("Transfer started with a %d byte buffer", buffer_size)

    try:
        while True:
            if token is not None:
                token.raise_if_cancelled()
            amount = await run_to_completion(lambda: _fill(source, buffer))
            if amount <= 0:
                break
            if token is not None:
                token.raise_if_cancelled()
            chunk = bytes(view[:amount])
            await run_to_completion(lambda: destination.write(chunk))
            total += amount
    except OSError as e:
        raise TransferError(e, bytes_copied=total) from e

    log.debug("Transfer finished: %d bytes", total)
    return total
