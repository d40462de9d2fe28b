"""Shared fixtures for benchmark harness tests."""

import subprocess
import sys
import threading
import time

import numpy as np
import pytest

from benchmarks.harness.backends.base import (
    NamespaceStats,
    QueryResult,
    RecallProbe,
    RecallStats,
    Record,
    VectorBackend,
    VectorNamespace,
)
from benchmarks.harness.checkpoint import CheckpointStore
from benchmarks.harness.common import PROJECT_ROOT, dimensions_for, random_unit_vectors
from benchmarks.harness.errors import PermanentBackendError, ResourceNotFound


def run_cli(*args, timeout=30, env=None):
    """Run benchmarks.harness.cli as a subprocess from the project root."""
    return subprocess.run(
        [sys.executable, "-m", "benchmarks.harness.cli", *args],
        capture_output=True,
        text=True,
        timeout=timeout,
        cwd=PROJECT_ROOT,
        env=env,
    )


class FakeNamespace(VectorNamespace):
    """In-memory namespace that counts calls and can inject failures.

    `fail_when(call_number)` is consulted before every query (1-based, counted
    across probe, warmup and measured queries) and raises whatever it returns.
    `query_delay_s` makes every query take at least that long.
    """

    def __init__(self, name, missing=False, query_delay_s=0.0, fail_when=None):
        super().__init__(name)
        self.rows: dict[str, Record] = {}
        self.missing = missing
        self.query_delay_s = query_delay_s
        self.fail_when = fail_when
        self.query_calls = 0
        self.upsert_calls: list[tuple[int, bool]] = []
        self._lock = threading.Lock()

    def seed(self, count, rng=None):
        vectors = random_unit_vectors(count, dimensions_for(self.name), rng or np.random.default_rng(0))
        for i in range(count):
            doc_id = f"doc-{i}"
            self.rows[doc_id] = Record(doc_id, f"Title {i}", f"Text {i}", vectors[i].tolist())
        return self

    def upsert(self, records, is_first_batch=False):
        self.upsert_calls.append((len(records), is_first_batch))
        for r in records:
            self.rows[r.id] = r

    def query(self, vector, top_k, include_vector=False):
        with self._lock:
            self.query_calls += 1
            n = self.query_calls
        if self.missing:
            raise ResourceNotFound(f"{self.name} does not exist")
        if self.fail_when is not None:
            error = self.fail_when(n)
            if error is not None:
                raise error
        if self.query_delay_s:
            time.sleep(self.query_delay_s)
        return [
            QueryResult(r.id, 0.0, r.title, r.text, list(r.vector) if include_vector else None)
            for r in list(self.rows.values())[:top_k]
        ]

    def fetch_by_id(self, doc_id):
        if self.missing:
            raise ResourceNotFound(f"{self.name} does not exist")
        r = self.rows.get(doc_id)
        return QueryResult(r.id, 0.0, r.title, r.text, list(r.vector)) if r else None

    def stats(self):
        if self.missing:
            raise ResourceNotFound(f"{self.name} does not exist")
        return NamespaceStats(approx_row_count=len(self.rows))

    def delete_all(self):
        if self.missing:
            raise ResourceNotFound(f"{self.name} does not exist")
        self.rows.clear()


class FakeBackend(VectorBackend):
    """Query-only backend: no recall probe."""

    name = "fake"

    def __init__(self):
        self.namespaces: dict[str, FakeNamespace] = {}
        self.ensured: list[str] = []

    def add(self, ns: FakeNamespace) -> FakeNamespace:
        self.namespaces[ns.name] = ns
        return ns

    def namespace(self, name):
        if name not in self.namespaces:
            self.namespaces[name] = FakeNamespace(name)
        return self.namespaces[name]

    def ensure_namespace(self, name):
        self.ensured.append(name)


class FakeRecallBackend(FakeBackend, RecallProbe):
    """Backend with a scripted recall probe.

    `errors` are raised in order by successive probe calls before any
    succeed; `fail_after` makes every call past that count fail permanently.
    """

    def __init__(self, errors=None, fail_after=None):
        super().__init__()
        self.recall_calls: list[tuple[str, int]] = []
        self.errors = list(errors or [])
        self.fail_after = fail_after

    def recall(self, namespace, num, top_k):
        self.recall_calls.append((namespace, top_k))
        if self.errors:
            raise self.errors.pop(0)
        if self.fail_after is not None and len(self.recall_calls) > self.fail_after:
            raise PermanentBackendError("probe rejected", status=400)
        k = float(top_k)
        return RecallStats(avg_recall=k / (k + 1), avg_ann_count=k, avg_exhaustive_count=k)


class RecordingSleep:
    """Drop-in for time.sleep that records requested durations instead of sleeping."""

    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def tmp_results_dir(tmp_path):
    """Temporary results directory for test isolation."""
    results = tmp_path / "results"
    results.mkdir()
    return results


@pytest.fixture
def fake_backend():
    backend = FakeBackend()
    backend.add(FakeNamespace("wiki-minilm").seed(5))
    backend.add(FakeNamespace("wiki-gte").seed(5))
    return backend


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def checkpoint_store(tmp_path):
    return CheckpointStore(tmp_path / "checkpoint.json")


@pytest.fixture
def rng():
    return np.random.default_rng(42)
