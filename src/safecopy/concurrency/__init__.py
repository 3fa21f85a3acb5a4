from .cancellation import CancellationToken, run_to_completion
from .guard import Guard

__all__ = [
    "CancellationToken",
    "Guard",
    "run_to_completion",
]
