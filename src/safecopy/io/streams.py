"""
Stream handles used by the copy core.

The core only needs an input that can fill a buffer and an output that can
take bytes, both closable and awaitable. Files are opened with aiofiles so
the blocking open/read/write/close calls run in a worker thread instead of
on the event loop.
"""

from __future__ import annotations

import io
import os
from typing import Protocol, Union, runtime_checkable

import aiofiles

StrPath = Union[str, "os.PathLike[str]"]


@runtime_checkable
class InputStream(Protocol):
    async def readinto(self, buffer: bytearray, /) -> int:
        """Read up to ``len(buffer)`` bytes into ``buffer``. Return 0 at end of input."""
        ...

    async def close(self) -> None: ...


@runtime_checkable
class OutputStream(Protocol):
    async def write(self, data: bytes | memoryview, /) -> int | None: ...

    async def close(self) -> None: ...


async def open_file(path: StrPath, mode: str):
    """Open ``path`` for async binary I/O.

    Raises:
        OSError: If the underlying open call fails.
    """
    if "b" not in mode:
        raise ValueError(f"Binary mode required, got {mode!r}")
    return await aiofiles.open(os.fspath(path), mode)


class BytesInputStream:
    """An in-memory InputStream over a bytes payload."""

    def __init__(self, data: bytes = b""):
        self._buffer = io.BytesIO(data)
        self.close_count = 0

    @property
    def closed(self) -> bool:
        return self._buffer.closed

    async def readinto(self, buffer: bytearray) -> int:
        return self._buffer.readinto(buffer)

    async def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)

    async def close(self) -> None:
        self.close_count += 1
        self._buffer.close()


class BytesOutputStream:
    """An in-memory OutputStream. ``getvalue()`` stays usable after close."""

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self._value = b""
        self.close_count = 0

    @property
    def closed(self) -> bool:
        return self._buffer.closed

    async def write(self, data: bytes | memoryview) -> int:
        return self._buffer.write(data)

    def getvalue(self) -> bytes:
        if self._buffer.closed:
            return self._value
        return self._buffer.getvalue()

    async def close(self) -> None:
        self.close_count += 1
        if not self._buffer.closed:
            self._value = self._buffer.getvalue()
        self._buffer.close()


__all__ = [
    "BytesInputStream",
    "BytesOutputStream",
    "InputStream",
    "OutputStream",
    "StrPath",
    "open_file",
]
