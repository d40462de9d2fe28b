"""Upsert benchmark: write throughput into a single namespace.

Generates `total_records` synthetic documents with unit-normalised random
vectors of the namespace's dimensionality, then writes them in fixed-size
batches strictly one after another, timing each batch. The first batch tells
the backend it may perform schema/index setup.

Not resumable: any backend error aborts the run and nothing is persisted.
Records are left in place afterwards; use the backend's delete_all to remove
them.
"""

import logging
import math
import time
from typing import Any

import numpy as np

from benchmarks.harness.backends.base import Record, VectorBackend
from benchmarks.harness.common import (
    SYNTHETIC_TEXT,
    UPSERT_BATCH_SIZE,
    UPSERT_TOTAL_RECORDS,
    dimensions_for,
    random_unit_vectors,
)
from benchmarks.harness.models import Measurement
from benchmarks.harness.stats import mean, percentile
from benchmarks.harness.treatments.base import Orchestrator, require_positive

log = logging.getLogger(__name__)


def generate_synthetic_records(count: int, dimensions: int, rng: np.random.Generator | None = None) -> list[Record]:
    """Synthetic documents with ids unique to this run."""
    run_id = int(time.time() * 1000)
    vectors = random_unit_vectors(count, dimensions, rng)
    return [
        Record(
            id=f"benchmark-{run_id}-{i}",
            title=f"Benchmark Document {i}",
            text=SYNTHETIC_TEXT.format(i=i),
            vector=vectors[i].tolist(),
        )
        for i in range(count)
    ]


class UpsertOrchestrator(Orchestrator):
    def __init__(
        self,
        backend: VectorBackend,
        namespace: str,
        total_records: int = UPSERT_TOTAL_RECORDS,
        batch_size: int = UPSERT_BATCH_SIZE,
        backend_name: str | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        super().__init__(backend, backend_name)
        self.namespace = namespace
        self.total_records = total_records
        self.batch_size = batch_size
        self._rng = rng
        self._dimensions = 0
        self._batch_measurements: list[Measurement] = []
        self._duration_s = 0.0

    @property
    def category(self) -> str:
        return "upsert"

    @property
    def label(self) -> str:
        return f"Upsert: {self.backend_name} / {self.namespace} / {self.total_records} records"

    @property
    def num_batches(self) -> int:
        return math.ceil(self.total_records / self.batch_size)

    def params_dict(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "dimensions": self._dimensions,
            "total_records": self.total_records,
            "batch_size": self.batch_size,
        }

    def configure(self) -> dict[str, Any]:
        self._dimensions = dimensions_for(self.namespace)
        require_positive(total_records=self.total_records, batch_size=self.batch_size)
        return super().configure()

    def measure(self) -> None:
        with self.step("generate synthetic records"):
            records = generate_synthetic_records(self.total_records, self._dimensions, self._rng)
            log.info("  Generated %d records (%dd)", len(records), self._dimensions)

        self.backend.ensure_namespace(self.namespace)
        ns = self.backend.namespace(self.namespace)

        log.info("  Upserting in %d batches...", self.num_batches)
        tracker = self.progress(self.num_batches)
        start = time.perf_counter()
        try:
            for batch_num, offset in enumerate(range(0, len(records), self.batch_size), start=1):
                batch = records[offset : offset + self.batch_size]
                t0 = time.perf_counter()
                ns.upsert(batch, is_first_batch=offset == 0)
                t1 = time.perf_counter()
                self._batch_measurements.append(Measurement((t1 - t0) * 1000, True))
                rate = (offset + len(batch)) / (t1 - start) if t1 > start else 0.0
                tracker.update(batch_num, f"{rate:.0f} records/sec")
        finally:
            tracker.finish()
        self._duration_s = time.perf_counter() - start

    def raw_measurements(self) -> list[dict[str, Any]]:
        return [
            {"namespace": self.namespace, "batch": i + 1, **m.to_dict()} for i, m in enumerate(self._batch_measurements)
        ]

    def summarize(self) -> list[dict[str, Any]]:
        latencies = [m.latency_ms for m in self._batch_measurements]
        summary = {
            "backend": self.backend_name,
            "namespace": self.namespace,
            "dimensions": self._dimensions,
            "total_records": self.total_records,
            "batch_size": self.batch_size,
            "num_batches": len(latencies),
            "duration_seconds": self._duration_s,
            "records_per_second": self.total_records / self._duration_s if self._duration_s > 0 else 0.0,
            "avg_batch_latency_ms": mean(latencies),
            "p95_batch_latency_ms": percentile(latencies, 95),
            "batch_latencies_ms": latencies,
        }
        return [summary]

    def print_summary(self, summaries: list[dict[str, Any]]) -> None:
        s = summaries[0]
        print("Results:")
        print(f"  Total duration: {s['duration_seconds']:.2f}s")
        print(f"  Records/second: {s['records_per_second']:.1f}")
        print(f"  Avg batch latency: {s['avg_batch_latency_ms']:.0f}ms")
        print(f"  P95 batch latency: {s['p95_batch_latency_ms']:.0f}ms")
