"""Single-query latency benchmark.

Per namespace: probe for a real stored vector, run warmup queries, then
`num_queries` strictly sequential timed queries separated by a fixed delay.
Namespaces are reported in ascending order of median latency.

A namespace whose probe fails is skipped. A backend error during its warmup
or timed queries also skips it; its partial latencies are discarded.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

import numpy as np

from benchmarks.harness.backends.base import VectorBackend
from benchmarks.harness.common import (
    LATENCY_DELAY_MS,
    LATENCY_NUM_QUERIES,
    LATENCY_TOP_K,
    LATENCY_WARMUP_QUERIES,
    NAMESPACES,
    dimensions_for,
)
from benchmarks.harness.errors import BackendError
from benchmarks.harness.models import Measurement
from benchmarks.harness.stats import mean, percentile
from benchmarks.harness.treatments.base import QueryOrchestrator, require_non_negative, require_positive

log = logging.getLogger(__name__)


class LatencyOrchestrator(QueryOrchestrator):
    def __init__(
        self,
        backend: VectorBackend,
        namespaces: list[str] | None = None,
        num_queries: int = LATENCY_NUM_QUERIES,
        top_k: int = LATENCY_TOP_K,
        warmup_queries: int = LATENCY_WARMUP_QUERIES,
        delay_ms: float = LATENCY_DELAY_MS,
        backend_name: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: np.random.Generator | None = None,
    ) -> None:
        super().__init__(
            backend,
            namespaces if namespaces is not None else NAMESPACES,
            top_k=top_k,
            warmup_queries=warmup_queries,
            backend_name=backend_name,
            rng=rng,
        )
        self.num_queries = num_queries
        self.delay_ms = delay_ms
        self._sleep = sleep
        # namespace -> (dimensions, measurements) for fully measured namespaces only
        self._results: dict[str, tuple[int, list[Measurement]]] = {}

    @property
    def category(self) -> str:
        return "latency"

    @property
    def label(self) -> str:
        return f"Latency: {self.backend_name} / {len(self.namespaces)} namespaces / {self.num_queries} queries"

    def params_dict(self) -> dict[str, Any]:
        return {
            "namespaces": self.namespaces,
            "num_queries": self.num_queries,
            "top_k": self.top_k,
            "warmup_queries": self.warmup_queries,
            "delay_ms": self.delay_ms,
        }

    def configure(self) -> dict[str, Any]:
        require_positive(num_queries=self.num_queries)
        require_non_negative(delay_ms=self.delay_ms)
        return super().configure()

    def measure(self) -> None:
        for name in self.namespaces:
            ns = self.backend.namespace(name)
            vector = self.probe(ns, dimensions_for(name))
            if vector is None:
                continue
            log.info("  %s (%dd): Running %d queries...", name, len(vector), self.num_queries)
            try:
                self.warmup(ns, vector)
                measurements = self._timed_queries(ns, vector)
            except BackendError as e:
                self._skip(name, f"query failed mid-run: {e}")
                continue
            self._results[name] = (len(vector), measurements)

    def _timed_queries(self, ns, vector: list[float]) -> list[Measurement]:
        tracker = self.progress(self.num_queries)
        measurements: list[Measurement] = []
        try:
            for i in range(self.num_queries):
                t0 = time.perf_counter()
                ns.query(vector, top_k=self.top_k)
                measurements.append(Measurement((time.perf_counter() - t0) * 1000, True))
                tracker.update(i + 1, ns.name)
                if self.delay_ms > 0:
                    self._sleep(self.delay_ms / 1000)
        finally:
            tracker.finish()
        return measurements

    def raw_measurements(self) -> list[dict[str, Any]]:
        return [
            {"namespace": name, "query": i + 1, **m.to_dict()}
            for name, (_, measurements) in self._results.items()
            for i, m in enumerate(measurements)
        ]

    def summarize(self) -> list[dict[str, Any]]:
        summaries = []
        for name, (dimensions, measurements) in self._results.items():
            latencies = [m.latency_ms for m in measurements]
            summary = {
                "backend": self.backend_name,
                "namespace": name,
                "dimensions": dimensions,
                "mean_ms": mean(latencies),
                "median_ms": percentile(latencies, 50),
                "p95_ms": percentile(latencies, 95),
                "min_ms": min(latencies),
                "max_ms": max(latencies),
                "latencies_ms": latencies,
            }
            log.info(
                "    %s: Mean: %.0fms, Median: %.0fms, P95: %.0fms",
                name,
                summary["mean_ms"],
                summary["median_ms"],
                summary["p95_ms"],
            )
            summaries.append(summary)
        summaries.sort(key=lambda s: s["median_ms"])
        return summaries

    def print_summary(self, summaries: list[dict[str, Any]]) -> None:
        print("\n" + "=" * 80)
        print("RESULTS SUMMARY (sorted by median latency)")
        print("=" * 80)
        print()
        print("| Namespace    | Dims |   Mean |  Median |   P95 |   Min |   Max |")
        print("|--------------|------|--------|---------|-------|-------|-------|")
        for s in summaries:
            print(
                f"| {s['namespace']:<12s} | {s['dimensions']:>4d} | {s['mean_ms']:>4.0f}ms | {s['median_ms']:>5.0f}ms "
                f"| {s['p95_ms']:>3.0f}ms | {s['min_ms']:>3.0f}ms | {s['max_ms']:>3.0f}ms |"
            )
        for name, reason in self.skipped.items():
            print(f"  skipped {name}: {reason}")
