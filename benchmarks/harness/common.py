"""Shared utilities and configuration for the benchmark harness.

Holds path constants, benchmark defaults, the namespace registry, synthetic
vector generation, platform identification and JSON I/O.
"""

import datetime
import json
import logging
import os
import platform
import sys
from pathlib import Path
from typing import Any

import numpy as np

from benchmarks.harness.errors import ConfigurationError

log = logging.getLogger(__name__)

# ── Path constants ─────────────────────────────────────────────────


BENCHMARKS_ROOT = Path(__file__).resolve().parent.parent  # benchmarks/
PROJECT_ROOT = BENCHMARKS_ROOT.parent  # project root

DATA_DIR = Path(os.environ.get("VDB_BENCH_DATA_DIR", str(PROJECT_ROOT / "data")))
RESULTS_DIR = Path(os.environ.get("VDB_BENCH_RESULTS_DIR", str(DATA_DIR)))
CHECKPOINT_PATH = DATA_DIR / "recall-benchmark-checkpoint.json"

# ── Namespaces ─────────────────────────────────────────────────────

# One namespace per embedding model of the Wikipedia dataset
NAMESPACES: list[str] = [
    "wiki-openai",
    "wiki-minilm",
    "wiki-gte",
    "wiki-3-small",
    "wiki-3-large",
]

DIMENSION_MAP: dict[str, int] = {
    "wiki-openai": 1536,
    "wiki-minilm": 384,
    "wiki-gte": 384,
    "wiki-3-small": 512,
    "wiki-3-large": 1024,
}

# ── Benchmark defaults ─────────────────────────────────────────────

LATENCY_NUM_QUERIES = 50
LATENCY_TOP_K = 10
LATENCY_WARMUP_QUERIES = 5
LATENCY_DELAY_MS = 50

THROUGHPUT_TOTAL_QUERIES = 500
THROUGHPUT_TOP_K = 10
THROUGHPUT_CONCURRENCY = 10
THROUGHPUT_WARMUP_QUERIES = 20

UPSERT_TOTAL_RECORDS = 10_000
UPSERT_BATCH_SIZE = 256

RECALL_TOP_K_VALUES: list[int] = [1, 5, 10, 20, 50, 100]
RECALL_NUM = 20
RECALL_RUNS = 20
RECALL_DELAY_MS = 150

RETRY_MAX_RETRIES = 3
RETRY_BASE_DELAY_MS = 1000

SYNTHETIC_TEXT = (
    "This is synthetic benchmark document number {i}. It contains some text for testing upsert "
    "performance. The content is meaningless but ensures we're testing realistic document sizes "
    "with typical metadata. Lorem ipsum dolor sit amet, consectetur adipiscing elit."
)


def dimensions_for(namespace: str) -> int:
    """Vector dimensionality of a known namespace."""
    try:
        return DIMENSION_MAP[namespace]
    except KeyError:
        raise ConfigurationError(f"Unknown namespace: {namespace}. Valid: {', '.join(NAMESPACES)}") from None


def validate_namespaces(namespaces: list[str]) -> list[str]:
    """Return namespaces unchanged, or raise ConfigurationError on the first unknown one."""
    for ns in namespaces:
        dimensions_for(ns)
    return list(namespaces)


# ── Vector utilities ───────────────────────────────────────────────


def random_unit_vectors(count: int, dim: int, rng: np.random.Generator | None = None) -> np.ndarray:
    """Uniform [-1, 1) random vectors, L2-normalised row-wise. Shape [count, dim], float32."""
    rng = rng or np.random.default_rng()
    vectors = rng.uniform(-1.0, 1.0, size=(count, dim)).astype(np.float32)
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return vectors / norms


def random_unit_vector(dim: int, rng: np.random.Generator | None = None) -> list[float]:
    """A single random unit vector as a plain list (JSON/SDK friendly)."""
    return random_unit_vectors(1, dim, rng)[0].tolist()


# ── Platform ───────────────────────────────────────────────────────


def utc_now_iso() -> str:
    return datetime.datetime.now(datetime.UTC).isoformat()


def platform_info() -> dict[str, str]:
    """Return platform identification dict."""
    return {
        "platform": f"{sys.platform}-{platform.machine()}",
        "python_version": platform.python_version(),
        "timestamp": utc_now_iso(),
    }


# ── JSON I/O ───────────────────────────────────────────────────────


def write_json(path: str | Path, document: dict[str, Any]) -> Path:
    """Write one indented JSON document, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, indent=2, default=str) + "\n", encoding="utf-8")
    return path


def read_json(path: str | Path) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))
