"""Base Orchestrator ABC for all benchmark state machines.

An Orchestrator drives one benchmark kind against one backend. The harness
walks it through CONFIGURE -> MEASURE -> AGGREGATE -> PERSIST -> CLEANUP;
orchestrators that support resumption do their RESUME step at the start of
measure(), and every orchestrator runs its own WARMUP inside measure().

Subclasses MUST implement:
    category            — 'latency', 'throughput', 'upsert', 'recall'
    label               — human-readable description
    measure()           — warm up and record raw measurements
    summarize()         — one summary dict per completed configuration
    raw_measurements()  — every recorded measurement, JSON-serialisable

Subclasses MAY override:
    configure()         — validate parameters before any network call
    params_dict()       — run parameters for the artifact metadata
    print_summary()     — human-readable results table
    cleanup()           — remove transient state after the artifact is written
"""

import logging
import sys
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any

import numpy as np

from benchmarks.harness.backends.base import VectorBackend, VectorNamespace
from benchmarks.harness.common import random_unit_vector, validate_namespaces
from benchmarks.harness.errors import BackendError, ConfigurationError

log = logging.getLogger(__name__)


class ProgressTracker:
    """Time-throttled status line, overwritten in place on stderr.

    Safe to call from worker threads.
    """

    def __init__(self, total: int, interval_s: float = 0.25, stream=None) -> None:
        self._total = total
        self._interval_s = interval_s
        self._stream = stream or sys.stderr
        self._last_write = 0.0
        self._lock = threading.Lock()
        self._dirty = False

    def update(self, current: int, detail: str = "", force: bool = False) -> None:
        """Rewrite the status line if enough time has passed since the last write."""
        now = time.monotonic()
        with self._lock:
            if not force and current < self._total and now - self._last_write < self._interval_s:
                return
            pct = (current / self._total * 100) if self._total > 0 else 100
            self._stream.write(f"\r  [{current}/{self._total}] ({pct:.0f}%) {detail}   ")
            self._stream.flush()
            self._last_write = now
            self._dirty = True

    def finish(self) -> None:
        with self._lock:
            if self._dirty:
                self._stream.write("\n")
                self._stream.flush()
                self._dirty = False


class Orchestrator(ABC):
    """Base class for the four benchmark state machines."""

    def __init__(self, backend: VectorBackend, backend_name: str | None = None) -> None:
        self.backend = backend
        self.backend_name = backend_name or getattr(backend, "name", type(backend).__name__)

    @property
    @abstractmethod
    def category(self) -> str:
        """Benchmark kind: 'latency', 'throughput', 'upsert' or 'recall'."""

    @property
    @abstractmethod
    def label(self) -> str:
        """Human-readable description, e.g. 'Latency: tpuf / 5 namespaces / 50 queries'."""

    def configure(self) -> dict[str, Any]:
        """Validate parameters. Raises ConfigurationError before any network call."""
        return self.params_dict()

    @abstractmethod
    def measure(self) -> None:
        """Run warmup and measurement, keeping raw results on the instance."""

    @abstractmethod
    def summarize(self) -> list[dict[str, Any]]:
        """Aggregate raw results into one summary per completed configuration."""

    @abstractmethod
    def raw_measurements(self) -> list[dict[str, Any]]:
        """Every recorded measurement, as JSON-serialisable dicts."""

    def params_dict(self) -> dict[str, Any]:
        """Run parameters as a flat dict for the artifact metadata."""
        return {}

    def print_summary(self, summaries: list[dict[str, Any]]) -> None:
        """Print a results table to stdout."""

    def cleanup(self) -> None:
        """Remove transient state once the artifact has been persisted."""

    @contextmanager
    def step(self, name: str):
        """Context manager that logs entry/exit of a named step with elapsed time."""
        log.info("  [STEP] %s ...", name)
        t0 = time.perf_counter()
        try:
            yield
        except Exception:
            elapsed = time.perf_counter() - t0
            log.info("  [STEP] %s failed (%.1fs)", name, elapsed)
            raise
        else:
            elapsed = time.perf_counter() - t0
            log.info("  [STEP] %s done (%.1fs)", name, elapsed)

    def progress(self, total: int, interval_s: float = 0.25) -> ProgressTracker:
        """Create an in-place status line for loop reporting."""
        return ProgressTracker(total, interval_s=interval_s)


def require_positive(**values: int) -> None:
    """Raise ConfigurationError naming the first parameter that is not >= 1."""
    for name, value in values.items():
        if value < 1:
            raise ConfigurationError(f"{name} must be >= 1, got {value}")


def require_non_negative(**values: float) -> None:
    for name, value in values.items():
        if value < 0:
            raise ConfigurationError(f"{name} must be >= 0, got {value}")


class QueryOrchestrator(Orchestrator):
    """Shared per-namespace probe for the query benchmarks (latency, throughput).

    The probe checks the namespace is non-empty, then runs a top-1 query with a
    random unit vector and reuses the returned document's vector as the query
    for every measured call.
    """

    def __init__(
        self,
        backend: VectorBackend,
        namespaces: list[str],
        top_k: int,
        warmup_queries: int,
        backend_name: str | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        super().__init__(backend, backend_name)
        self.namespaces = list(namespaces)
        self.top_k = top_k
        self.warmup_queries = warmup_queries
        self.skipped: dict[str, str] = {}
        self._rng = rng or np.random.default_rng()

    def configure(self) -> dict[str, Any]:
        validate_namespaces(self.namespaces)
        require_positive(top_k=self.top_k)
        require_non_negative(warmup_queries=self.warmup_queries)
        return super().configure()

    def probe(self, ns: VectorNamespace, dimensions: int) -> list[float] | None:
        """Return a real stored vector to query with, or None (with the reason recorded) to skip."""
        try:
            stats = ns.stats()
            if not stats.approx_row_count:
                return self._skip(ns.name, "namespace is empty")
            results = ns.query(random_unit_vector(dimensions, self._rng), top_k=1, include_vector=True)
        except BackendError as e:
            return self._skip(ns.name, f"{type(e).__name__}: {e}")
        if not results or not results[0].vector:
            return self._skip(ns.name, "probe query returned no vector")
        return list(results[0].vector)

    def _skip(self, namespace: str, reason: str) -> None:
        log.warning("  %s: Skipped (%s)", namespace, reason)
        self.skipped[namespace] = reason
        return None

    def warmup(self, ns: VectorNamespace, vector: list[float]) -> None:
        """Sequential discarded queries."""
        for _ in range(self.warmup_queries):
            ns.query(vector, top_k=self.top_k)
