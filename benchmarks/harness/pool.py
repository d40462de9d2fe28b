"""Bounded-parallelism runner for a fixed number of work units.

K worker threads share one counter: each claims the next unclaimed index in
[0, total_operations), runs one unit of work for it, and records a
Measurement. Every index is attempted exactly once. Completion order, and
therefore measurement order, is nondeterministic.

A unit that raises is recorded as a failed Measurement and is not retried
here; wrap the call in a RetryExecutor inside the unit to absorb transient
backend errors. There is no cancellation: run() returns only after the pool
has drained.
"""

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from benchmarks.harness.errors import ConfigurationError
from benchmarks.harness.models import Measurement

log = logging.getLogger(__name__)


@dataclass
class PoolResult:
    measurements: list[Measurement] = field(default_factory=list)
    attempted_indices: list[int] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def successes(self) -> int:
        return sum(1 for m in self.measurements if m.success)

    @property
    def errors(self) -> int:
        return sum(1 for m in self.measurements if not m.success)

    @property
    def latencies_ms(self) -> list[float]:
        """Latencies of successful units only."""
        return [m.latency_ms for m in self.measurements if m.success]


class ConcurrencyPool:
    def __init__(self, concurrency: int) -> None:
        if concurrency < 1:
            raise ConfigurationError(f"concurrency must be >= 1, got {concurrency}")
        self.concurrency = concurrency

    def run(
        self,
        total_operations: int,
        work: Callable[[int], Any],
        on_complete: Callable[[int], None] | None = None,
    ) -> PoolResult:
        """Run `work(index)` once per index using up to `concurrency` threads.

        `on_complete(n_done)` is called after each unit, from the worker thread.
        """
        if total_operations < 0:
            raise ConfigurationError(f"total_operations must be >= 0, got {total_operations}")

        result = PoolResult()
        lock = threading.Lock()
        next_index = 0

        def claim() -> int | None:
            nonlocal next_index
            with lock:
                if next_index >= total_operations:
                    return None
                index = next_index
                next_index += 1
                result.attempted_indices.append(index)
                return index

        def worker() -> None:
            while (index := claim()) is not None:
                t0 = time.perf_counter()
                try:
                    work(index)
                except Exception as e:
                    log.debug("    unit %d failed: %s", index, e)
                    m = Measurement((time.perf_counter() - t0) * 1000, False, type(e).__name__)
                else:
                    m = Measurement((time.perf_counter() - t0) * 1000, True)
                with lock:
                    result.measurements.append(m)
                    done = len(result.measurements)
                if on_complete is not None:
                    on_complete(done)

        n_workers = min(self.concurrency, total_operations)
        t0 = time.perf_counter()
        if n_workers > 0:
            with ThreadPoolExecutor(max_workers=n_workers, thread_name_prefix="bench-worker") as executor:
                futures = [executor.submit(worker) for _ in range(n_workers)]
                for f in futures:
                    f.result()
        result.duration_s = time.perf_counter() - t0
        return result
