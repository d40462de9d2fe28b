"""Recall benchmark: ANN recall against exhaustive search, swept over top_k.

Iterates namespaces x top_k_values. For each pair it calls the backend's
recall probe `runs` times (each call evaluates `num` server-generated queries),
spacing calls by a fixed delay and retrying transient errors. When a pair's
runs are all recorded the checkpoint is saved, so an interrupted sweep resumes
at the first incomplete pair. Pairs already complete in the checkpoint are
never re-measured.

Any non-transient error, or a transient one that outlives its retries, ends
the run; the checkpoint from the last completed pair survives for the restart.
The checkpoint is removed only after the results artifact has been written.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from benchmarks.harness.backends.base import RecallStats, VectorBackend, supports_recall
from benchmarks.harness.checkpoint import Checkpoint, CheckpointStore
from benchmarks.harness.common import (
    NAMESPACES,
    RECALL_DELAY_MS,
    RECALL_NUM,
    RECALL_RUNS,
    RECALL_TOP_K_VALUES,
    validate_namespaces,
)
from benchmarks.harness.errors import ConfigurationError
from benchmarks.harness.models import RunConfig
from benchmarks.harness.retry import RetryExecutor
from benchmarks.harness.stats import describe, mean, median, sample_std
from benchmarks.harness.treatments.base import Orchestrator, require_non_negative, require_positive

log = logging.getLogger(__name__)


def _std(xs: list[float]) -> float:
    return sample_std(xs) if len(xs) >= 2 else 0.0


def summarize_runs(runs: list[dict[str, Any]]) -> dict[str, Any]:
    """Roll up every recorded run of one (namespace, top_k) pair."""
    recalls = [r["avg_recall"] for r in runs]
    ann_counts = [r["avg_ann_count"] for r in runs]
    exhaustive_counts = [r["avg_exhaustive_count"] for r in runs]
    latencies = [r["latency_ms"] for r in runs]
    recall = describe(recalls)
    return {
        "namespace": runs[0]["namespace"],
        "top_k": runs[0]["top_k"],
        "runs": len(runs),
        "recall": {
            "mean": recall["mean"],
            "std": recall["std"],
            "ci95_lower": recall["ci95_lower"],
            "ci95_upper": recall["ci95_upper"],
            "min": recall["min"],
            "max": recall["max"],
            "median": recall["median"],
        },
        "avg_ann_count": {"mean": mean(ann_counts), "std": _std(ann_counts)},
        "avg_exhaustive_count": {"mean": mean(exhaustive_counts), "std": _std(exhaustive_counts)},
        "latency_ms": {"mean": mean(latencies), "std": _std(latencies), "median": median(latencies)},
    }


class RecallOrchestrator(Orchestrator):
    def __init__(
        self,
        backend: VectorBackend,
        namespaces: list[str] | None = None,
        top_k_values: list[int] | None = None,
        runs: int = RECALL_RUNS,
        num: int = RECALL_NUM,
        delay_ms: float = RECALL_DELAY_MS,
        checkpoint_store: CheckpointStore | None = None,
        retry: RetryExecutor | None = None,
        backend_name: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not supports_recall(backend):
            name = backend_name or getattr(backend, "name", type(backend).__name__)
            raise ConfigurationError(f"The recall benchmark needs a backend with a recall probe; {name} has none")
        super().__init__(backend, backend_name)
        # Repeats would yield duplicate summaries for one pair
        self.namespaces = list(dict.fromkeys(namespaces if namespaces is not None else NAMESPACES))
        self.top_k_values = list(dict.fromkeys(top_k_values if top_k_values is not None else RECALL_TOP_K_VALUES))
        self.runs = runs
        self.num = num
        self.delay_ms = delay_ms
        self.store = checkpoint_store or CheckpointStore()
        self._retry = retry or RetryExecutor(sleep=sleep)
        self._sleep = sleep
        self._checkpoint = Checkpoint()
        self.probe_calls = 0

    @property
    def category(self) -> str:
        return "recall"

    @property
    def label(self) -> str:
        return (
            f"Recall: {self.backend_name} / {len(self.namespaces)} namespaces x "
            f"{len(self.top_k_values)} top_k values / {self.runs} runs"
        )

    @property
    def total_calls(self) -> int:
        return len(self.namespaces) * len(self.top_k_values) * self.runs

    def run_configs(self) -> list[RunConfig]:
        """One RunConfig per (namespace, top_k) pair, in sweep order."""
        return [
            RunConfig(namespace=ns, top_k=k, total_operations=self.runs, extra_params={"num": self.num})
            for ns in self.namespaces
            for k in self.top_k_values
        ]

    def params_dict(self) -> dict[str, Any]:
        return {
            "num": self.num,
            "runs_per_config": self.runs,
            "top_k_values": self.top_k_values,
            "namespaces": self.namespaces,
            "total_calls": self.total_calls,
            "delay_ms": self.delay_ms,
        }

    def configure(self) -> dict[str, Any]:
        validate_namespaces(self.namespaces)
        if not self.top_k_values:
            raise ConfigurationError("top_k_values must not be empty")
        for k in self.top_k_values:
            require_positive(top_k=k)
        require_positive(runs=self.runs, num=self.num)
        require_non_negative(delay_ms=self.delay_ms)
        return super().configure()

    def measure(self) -> None:
        checkpoint = self.store.load()
        self._checkpoint = checkpoint
        configs = self.run_configs()
        already_done = sum(1 for c in configs if checkpoint.is_complete(c.config_key))
        if already_done:
            log.info("  Resuming from checkpoint (%d/%d configs completed)", already_done, len(configs))

        log.info("  Namespaces: %s", ", ".join(self.namespaces))
        log.info("  top_k values: %s", ", ".join(str(k) for k in self.top_k_values))
        log.info("  Queries per call (num): %d, runs per config: %d", self.num, self.runs)
        log.info("  Total API calls: %d, delay between calls: %gms", self.total_calls, self.delay_ms)

        tracker = self.progress(self.total_calls)
        completed = already_done * self.runs
        try:
            for config in configs:
                if checkpoint.is_complete(config.config_key):
                    continue
                pair_runs: list[dict[str, Any]] = []
                for run in range(config.total_operations):
                    completed += 1
                    detail = f"{config.namespace} top_k={config.top_k} run={run + 1}/{config.total_operations}"
                    tracker.update(completed, detail, force=True)
                    stats, latency_ms = self._probe(config, tracker, completed, detail)
                    pair_runs.append(
                        {
                            "namespace": config.namespace,
                            "top_k": config.top_k,
                            "run": run + 1,
                            "avg_recall": stats.avg_recall,
                            "avg_ann_count": stats.avg_ann_count,
                            "avg_exhaustive_count": stats.avg_exhaustive_count,
                            "latency_ms": round(latency_ms),
                        }
                    )
                    if completed < self.total_calls and self.delay_ms > 0:
                        self._sleep(self.delay_ms / 1000)
                checkpoint.mark_complete(config.config_key, pair_runs)
                self.store.save(checkpoint)
        finally:
            tracker.finish()

    def _probe(self, config: RunConfig, tracker, completed: int, detail: str) -> tuple[RecallStats, float]:
        """One logical recall call; latency covers only the attempt that succeeded."""

        def attempt() -> tuple[RecallStats, float]:
            self.probe_calls += 1
            t0 = time.perf_counter()
            stats = self.backend.recall(config.namespace, num=self.num, top_k=config.top_k)
            return stats, (time.perf_counter() - t0) * 1000

        def on_retry(n: int, error: BaseException, delay_ms: float) -> None:
            status = getattr(error, "status", None) or type(error).__name__
            tracker.update(completed, f"{detail} ({status}, retry {n}/{self._retry.policy.max_retries})", force=True)

        return self._retry(attempt, on_retry=on_retry)

    def _runs_for(self, config: RunConfig) -> list[dict[str, Any]]:
        return [
            r
            for r in self._checkpoint.accumulated_measurements
            if r.get("namespace") == config.namespace and r.get("top_k") == config.top_k
        ]

    def raw_measurements(self) -> list[dict[str, Any]]:
        runs: list[dict[str, Any]] = []
        for config in self.run_configs():
            if self._checkpoint.is_complete(config.config_key):
                runs.extend(self._runs_for(config))
        return runs

    def summarize(self) -> list[dict[str, Any]]:
        summaries = []
        for config in self.run_configs():
            if not self._checkpoint.is_complete(config.config_key):
                continue
            summaries.append(summarize_runs(self._runs_for(config)))
        return summaries

    def cleanup(self) -> None:
        self.store.clear()

    def print_summary(self, summaries: list[dict[str, Any]]) -> None:
        print("Results Summary:")
        print("─" * 90)
        print(
            f"{'Namespace':<15s} {'top_k':>6s} {'Recall':>8s} {'± 95% CI':>20s} {'Std':>8s} "
            f"{'ANN':>8s} {'Exh':>8s} {'Latency':>10s}"
        )
        print("─" * 90)
        for s in summaries:
            r = s["recall"]
            ci = f"[{r['ci95_lower']:.4f}, {r['ci95_upper']:.4f}]"
            print(
                f"{s['namespace']:<15s} {s['top_k']:>6d} {r['mean']:>8.4f} {ci:>20s} {r['std']:>8.4f} "
                f"{s['avg_ann_count']['mean']:>8.1f} {s['avg_exhaustive_count']['mean']:>8.1f} "
                f"{s['latency_ms']['mean']:>8.0f}ms"
            )
        print("─" * 90)
