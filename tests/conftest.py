import os
import time
from dataclasses import dataclass, field
from typing import Optional

import pytest

from safecopy.concurrency.guard import Guard
from safecopy.config.environment import Environment


@dataclass
class GuardSection:
    label: Optional[str]
    entered_at: float
    exited_at: float = 0.0


class RecordingGuard(Guard):
    """A Guard that records when each guarded section starts and ends."""

    def __init__(self) -> None:
        super().__init__()
        self.sections: list[GuardSection] = []
        self._open: list[GuardSection] = []

    def _on_enter(self, label):
        section = GuardSection(label, time.perf_counter())
        self.sections.append(section)
        self._open.append(section)
        assert len(self._open) == 1, "guarded sections overlap"

    def _on_exit(self, label):
        section = self._open.pop()
        section.exited_at = time.perf_counter()

    @property
    def labels(self) -> list[Optional[str]]:
        return [s.label for s in self.sections]

    def assert_no_overlap(self) -> None:
        ordered = sorted(self.sections, key=lambda s: s.entered_at)
        for earlier, later in zip(ordered, ordered[1:]):
            assert earlier.exited_at <= later.entered_at, f"{earlier.label} overlaps {later.label}"


class FailingOutputStream:
    """Output stream that fails on the Nth write and optionally on close."""

    def __init__(self, fail_on_write: int = 1, fail_on_close: bool = False):
        self.fail_on_write = fail_on_write
        self.fail_on_close = fail_on_close
        self.writes: list[bytes] = []
        self.close_count = 0

    async def write(self, data) -> int:
        if len(self.writes) + 1 >= self.fail_on_write:
            raise OSError(28, "No space left on device")
        self.writes.append(bytes(data))
        return len(data)

    async def close(self) -> None:
        self.close_count += 1
        if self.fail_on_close:
            raise OSError(5, "Input/output error")


class FailingInputStream:
    """Input stream that yields some data and then fails on close."""

    def __init__(self, data: bytes = b"", fail_on_close: bool = False):
        self.data = data
        self.offset = 0
        self.fail_on_close = fail_on_close
        self.close_count = 0

    async def readinto(self, buffer) -> int:
        chunk = self.data[self.offset : self.offset + len(buffer)]
        buffer[: len(chunk)] = chunk
        self.offset += len(chunk)
        return len(chunk)

    async def close(self) -> None:
        self.close_count += 1
        if self.fail_on_close:
            raise OSError(5, "Input/output error")


@pytest.fixture
def recording_guard() -> RecordingGuard:
    return RecordingGuard()


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    """Keep buffer size and log level settings from leaking into tests."""
    for key in ("SAFECOPY_BUFFER_SIZE", "LOG_LEVEL", "DEBUG"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ENV", "test")
    Environment.reset()
    yield
    Environment.reset()


@pytest.fixture
def make_file(tmp_path):
    def _make(name: str, size: int) -> str:
        path = tmp_path / name
        path.write_bytes(os.urandom(size))
        return str(path)

    return _make
