"""Benchmark execution harness.

Executes a single Orchestrator:
1. CONFIGURE — validates parameters (no network I/O)
2. MEASURE   — orchestrator resumes (if it can), warms up and measures
3. AGGREGATE — orchestrator rolls raw measurements up into summaries
4. PERSIST   — writes one JSON artifact {metadata, raw_measurements, summaries}
5. CLEANUP   — orchestrator removes transient state (e.g. its checkpoint)

On failure at any stage nothing is written and the error propagates; state an
orchestrator persisted along the way (a recall checkpoint) is left in place.
"""

import logging
import time
from pathlib import Path
from typing import Any

from benchmarks.harness.common import RESULTS_DIR, platform_info, write_json
from benchmarks.harness.treatments.base import Orchestrator

log = logging.getLogger(__name__)


def default_output_path(category: str, backend_name: str, results_dir: Path | None = None) -> Path:
    """Timestamped artifact path, e.g. latency-benchmark-tpuf-2026-01-01T00-00-00-000000+00-00.json."""
    results_dir = results_dir or RESULTS_DIR
    stamp = platform_info()["timestamp"].replace(":", "-").replace(".", "-")
    return results_dir / f"{category}-benchmark-{backend_name}-{stamp}.json"


def _phase(name: str, fn, *args):
    log.info("  [%s]", name)
    t0 = time.perf_counter()
    try:
        result = fn(*args)
    except Exception as e:
        log.error("  %s failed: %s", name.capitalize(), e)
        raise
    log.info("  [%s] done (%.1fs)", name, time.perf_counter() - t0)
    return result


def run_benchmark(
    orchestrator: Orchestrator,
    output: str | Path | None = None,
    results_dir: Path | None = None,
) -> dict[str, Any]:
    """Execute one benchmark end to end and write its results artifact.

    Args:
        orchestrator: The Orchestrator instance to execute.
        output: Artifact path. Defaults to a timestamped file in results_dir.
        results_dir: Override for RESULTS_DIR (useful in tests).

    Returns:
        The complete artifact that was written.
    """
    log.info("Running: %s", orchestrator.label)

    config = _phase("CONFIGURE", orchestrator.configure)
    _phase("MEASURE", orchestrator.measure)
    summaries = _phase("AGGREGATE", orchestrator.summarize)

    info = platform_info()
    artifact = {
        "metadata": {
            "timestamp": info["timestamp"],
            "category": orchestrator.category,
            "backend": orchestrator.backend_name,
            "platform": info["platform"],
            "python_version": info["python_version"],
            "config": config,
        },
        "raw_measurements": orchestrator.raw_measurements(),
        "summaries": summaries,
    }

    if output:
        path = Path(output)
    else:
        path = default_output_path(orchestrator.category, orchestrator.backend_name, results_dir)
    _phase("PERSIST", write_json, path, artifact)

    orchestrator.print_summary(summaries)
    log.info("  Results written to: %s", path)

    orchestrator.cleanup()
    return artifact
