from __future__ import annotations

import time
from contextlib import contextmanager


class Counter:
    def __init__(self) -> None:
        self.value = 0

    def inc(self, n: int = 1) -> None:
        self.value += n


class Gauge:
    def __init__(self) -> None:
        self.value = 0

    def set(self, v: int) -> None:
        self.value = v


class Timer:
    """Wall-clock timer.

    ``last_ms`` holds the most recent sample; ``count`` and ``total_ms``
    accumulate across all samples so an average can be derived.
    """

    def __init__(self) -> None:
        self.last_ms: float | None = None
        self.count = 0
        self.total_ms = 0.0
        self._start: float | None = None

    def start(self) -> None:
        self._start = time.perf_counter()

    def stop(self) -> float | None:
        if self._start is None:
            return None
        end = time.perf_counter()
        self.last_ms = (end - self._start) * 1000
        self.count += 1
        self.total_ms += self.last_ms
        self._start = None
        return self.last_ms

    @property
    def mean_ms(self) -> float | None:
        if not self.count:
            return None
        return self.total_ms / self.count

    @contextmanager
    def time(self):  # noqa: ANN201 (to keep it lightweight)
        self.start()
        try:
            yield
        finally:
            self.stop()


requests_total = Counter()
requests_dropped_total = Counter()
requests_rejected_total = Counter()
response_failures_total = Counter()
store_keys = Gauge()
request_latency_ms = Timer()
