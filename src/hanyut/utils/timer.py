"""Wall-clock timing of simulation stages."""

import time
from contextlib import contextmanager
from typing import Dict


class Timer:
    """Accumulates named wall-clock timings."""

    def __init__(self):
        self.times: Dict[str, float] = {}
        self._starts: Dict[str, float] = {}

    def start(self, name: str):
        self._starts[name] = time.perf_counter()

    def stop(self, name: str) -> float:
        """Stop timer `name` and return the elapsed seconds."""
        if name not in self._starts:
            raise KeyError(f"Timer '{name}' was not started")
        elapsed = time.perf_counter() - self._starts.pop(name)
        self.times[name] = self.times.get(name, 0.0) + elapsed
        return elapsed

    @contextmanager
    def time_section(self, name: str):
        """Time the enclosed block under `name`."""
        self.start(name)
        try:
            yield
        finally:
            self.stop(name)

    def get_times(self) -> Dict[str, float]:
        return dict(self.times)
