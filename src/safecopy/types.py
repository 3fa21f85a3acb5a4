from enum import Enum

from pydantic import BaseModel, Field

from safecopy.config.environment import DEFAULT_BUFFER_SIZE


class CopyState(str, Enum):
    """Lifecycle of a single copy operation."""

    IDLE = "idle"
    ACQUIRING_INPUT = "acquiring_input"
    ACQUIRING_OUTPUT = "acquiring_output"
    TRANSFERRING = "transferring"
    RELEASING_OUTPUT = "releasing_output"
    RELEASING_INPUT = "releasing_input"
    DONE = "done"


class CopyOptions(BaseModel):
    buffer_size: int = Field(default=DEFAULT_BUFFER_SIZE, gt=0, description="Transfer buffer size in bytes")


class CopyReport(BaseModel):
    source: str
    destination: str
    bytes_copied: int = Field(ge=0)
    duration_s: float = Field(ge=0)
