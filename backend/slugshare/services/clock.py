"""Wall clock in epoch milliseconds. Injected so tests can move time."""
import time
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)
