"""
Error taxonomy for copy operations.

Acquisition and transfer errors propagate to the caller. Release errors are
created and logged by the resource layer but never raised past it.
"""

from __future__ import annotations

import os


class CopyError(Exception):
    """Base exception for copy failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class AcquisitionError(CopyError):
    """Raised when the source or destination cannot be opened."""

    def __init__(self, path: str | os.PathLike[str], cause: BaseException):
        self.path = os.fspath(path)
        self.cause = cause
        super().__init__(f"Cannot open '{self.path}': {_describe(cause)}")


class TransferError(CopyError):
    """Raised when a read or write fails mid-copy.

    ``bytes_copied`` is the amount written before the failure. It is kept for
    diagnostics only; a failed copy never reports a count.
    """

    def __init__(self, cause: BaseException, bytes_copied: int = 0):
        self.cause = cause
        self.bytes_copied = bytes_copied
        super().__init__(f"Transfer failed after {bytes_copied} bytes: {_describe(cause)}")


class ReleaseError(CopyError):
    """A handle failed to close. Recorded and logged, never propagated."""

    def __init__(self, path: str, cause: BaseException):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to close '{path}': {_describe(cause)}")


class CopyCancelledError(CopyError):
    """Raised when a copy is cancelled through a CancellationToken."""

    def __init__(self, message: str = "Copy was cancelled"):
        super().__init__(message)


def _describe(cause: BaseException) -> str:
    if isinstance(cause, OSError) and cause.strerror:
        return cause.strerror
    return str(cause) or type(cause).__name__


__all__ = [
    "AcquisitionError",
    "CopyCancelledError",
    "CopyError",
    "ReleaseError",
    "TransferError",
]
