"""Throughput benchmark: queries per second under concurrent load.

Per namespace: probe, sequential warmup (to establish connections), then
`total_queries` queries dispatched through a ConcurrencyPool. QPS counts only
successful queries over the wall-clock time of the whole pool drain. Failed
queries are counted as errors and excluded from the latency percentiles.
Namespaces are reported in descending order of QPS.
"""

import logging
from typing import Any

import numpy as np

from benchmarks.harness.backends.base import VectorBackend
from benchmarks.harness.common import (
    NAMESPACES,
    THROUGHPUT_CONCURRENCY,
    THROUGHPUT_TOP_K,
    THROUGHPUT_TOTAL_QUERIES,
    THROUGHPUT_WARMUP_QUERIES,
    dimensions_for,
)
from benchmarks.harness.errors import BackendError
from benchmarks.harness.pool import ConcurrencyPool, PoolResult
from benchmarks.harness.stats import mean, percentile
from benchmarks.harness.treatments.base import QueryOrchestrator, require_positive

log = logging.getLogger(__name__)


class ThroughputOrchestrator(QueryOrchestrator):
    def __init__(
        self,
        backend: VectorBackend,
        namespaces: list[str] | None = None,
        total_queries: int = THROUGHPUT_TOTAL_QUERIES,
        top_k: int = THROUGHPUT_TOP_K,
        concurrency: int = THROUGHPUT_CONCURRENCY,
        warmup_queries: int = THROUGHPUT_WARMUP_QUERIES,
        backend_name: str | None = None,
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
        self.total_queries = total_queries
        self.concurrency = concurrency
        self._results: dict[str, tuple[int, PoolResult]] = {}

    @property
    def category(self) -> str:
        return "throughput"

    @property
    def label(self) -> str:
        return (
            f"Throughput: {self.backend_name} / {len(self.namespaces)} namespaces / "
            f"{self.total_queries} queries @ concurrency {self.concurrency}"
        )

    def params_dict(self) -> dict[str, Any]:
        return {
            "namespaces": self.namespaces,
            "total_queries": self.total_queries,
            "top_k": self.top_k,
            "concurrency": self.concurrency,
            "warmup_queries": self.warmup_queries,
        }

    def configure(self) -> dict[str, Any]:
        require_positive(total_queries=self.total_queries, concurrency=self.concurrency)
        return super().configure()

    def measure(self) -> None:
        pool = ConcurrencyPool(self.concurrency)
        for name in self.namespaces:
            ns = self.backend.namespace(name)
            vector = self.probe(ns, dimensions_for(name))
            if vector is None:
                continue
            log.info(
                "  %s (%dd): Running %d queries with concurrency %d...",
                name,
                len(vector),
                self.total_queries,
                self.concurrency,
            )
            log.info("    Warming up (%d queries)...", self.warmup_queries)
            try:
                self.warmup(ns, vector)
            except BackendError as e:
                self._skip(name, f"warmup failed: {e}")
                continue

            tracker = self.progress(self.total_queries)
            try:
                result = pool.run(
                    self.total_queries,
                    lambda _i: ns.query(vector, top_k=self.top_k),
                    on_complete=lambda done: tracker.update(done, name),
                )
            finally:
                tracker.finish()
            self._results[name] = (len(vector), result)

    def raw_measurements(self) -> list[dict[str, Any]]:
        return [
            {"namespace": name, **m.to_dict()}
            for name, (_, result) in self._results.items()
            for m in result.measurements
        ]

    def summarize(self) -> list[dict[str, Any]]:
        summaries = []
        for name, (dimensions, result) in self._results.items():
            latencies = result.latencies_ms
            successes = result.successes
            summary = {
                "backend": self.backend_name,
                "namespace": name,
                "dimensions": dimensions,
                "concurrency": self.concurrency,
                "total_queries": successes,
                "errors": result.errors,
                "duration_seconds": result.duration_s,
                "qps": successes / result.duration_s if result.duration_s > 0 else 0.0,
                "avg_latency_ms": mean(latencies) if latencies else 0.0,
                "p50_latency_ms": percentile(latencies, 50) if latencies else 0.0,
                "p95_latency_ms": percentile(latencies, 95) if latencies else 0.0,
                "p99_latency_ms": percentile(latencies, 99) if latencies else 0.0,
            }
            log.info(
                "    %s: QPS: %.1f, Avg latency: %.0fms, P95: %.0fms, Errors: %d",
                name,
                summary["qps"],
                summary["avg_latency_ms"],
                summary["p95_latency_ms"],
                summary["errors"],
            )
            summaries.append(summary)
        summaries.sort(key=lambda s: s["qps"], reverse=True)
        return summaries

    def print_summary(self, summaries: list[dict[str, Any]]) -> None:
        print("\n" + "=" * 100)
        print("RESULTS SUMMARY (sorted by QPS)")
        print("=" * 100)
        print()
        print("| Namespace    | Dims |   QPS | Avg Lat |   P50 |   P95 |   P99 | Errors |")
        print("|--------------|------|-------|---------|-------|-------|-------|--------|")
        for s in summaries:
            print(
                f"| {s['namespace']:<12s} | {s['dimensions']:>4d} | {s['qps']:>5.1f} | {s['avg_latency_ms']:>5.0f}ms "
                f"| {s['p50_latency_ms']:>3.0f}ms | {s['p95_latency_ms']:>3.0f}ms | {s['p99_latency_ms']:>3.0f}ms "
                f"| {s['errors']:>6d} |"
            )
        for name, reason in self.skipped.items():
            print(f"  skipped {name}: {reason}")
