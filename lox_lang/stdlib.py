import time
from typing import Callable, Optional

from .models import NativeFunction
from .scope import Environment


class StdLib:
    """The fixed set of native functions visible to every program."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self.clock = clock if clock is not None else time.perf_counter

    def register_into(self, environment: Environment) -> None:
        environment.define("clock", NativeFunction("clock", 0, self._clock))

    def _clock(self) -> float:
        return float(self.clock())
