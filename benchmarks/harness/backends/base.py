"""Backend capability interface consumed by the orchestrators.

A VectorBackend hands out VectorNamespace handles. Orchestrators only ever see
these two abstractions (plus the optional RecallProbe capability); they never
inspect which concrete backend is active.

Adapters translate their SDK's exceptions into the harness error taxonomy via
`translate_error`, so that the RetryExecutor can classify them by HTTP status.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from benchmarks.harness.errors import BackendError, classify_status

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Record:
    id: str
    title: str
    text: str
    vector: list[float]


@dataclass(frozen=True)
class QueryResult:
    id: str
    score: float  # cosine distance (0 = identical)
    title: str
    text: str
    vector: list[float] | None = None


@dataclass(frozen=True)
class NamespaceStats:
    approx_row_count: int


@dataclass(frozen=True)
class RecallStats:
    avg_recall: float
    avg_ann_count: float
    avg_exhaustive_count: float


class VectorNamespace(ABC):
    """Handle on one namespace / index / table of a backend."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    def upsert(self, records: list[Record], is_first_batch: bool = False) -> None:
        """Write records. The first batch of a run may trigger schema/index setup."""

    @abstractmethod
    def query(self, vector: list[float], top_k: int, include_vector: bool = False) -> list[QueryResult]:
        """ANN search, nearest first."""

    @abstractmethod
    def fetch_by_id(self, doc_id: str) -> QueryResult | None:
        """Return the document with this id, or None if absent."""

    @abstractmethod
    def stats(self) -> NamespaceStats:
        """Approximate row count. Raises ResourceNotFound if the namespace does not exist."""

    @abstractmethod
    def delete_all(self) -> None:
        """Remove every row in the namespace."""


class VectorBackend(ABC):
    name: str = "abstract"

    @abstractmethod
    def namespace(self, name: str) -> VectorNamespace:
        """Return a handle on `name`. Must not perform network I/O."""

    def ensure_namespace(self, name: str) -> None:
        """Create the namespace if the backend needs it to exist before writes.

        Default is a no-op for backends that create namespaces on first write.
        """


class RecallProbe(ABC):
    """Optional capability: server-side ANN-vs-exhaustive recall measurement."""

    @abstractmethod
    def recall(self, namespace: str, num: int, top_k: int) -> RecallStats:
        """Evaluate `num` internally generated queries at `top_k`; return averaged overlap."""


def supports_recall(backend: VectorBackend) -> bool:
    return isinstance(backend, RecallProbe)


def retry_after_ms(headers: Any) -> float | None:
    """Parse a Retry-After header (seconds) into milliseconds, if present."""
    if headers is None:
        return None
    value = headers.get("retry-after") if hasattr(headers, "get") else None
    if value is None:
        return None
    try:
        return float(value) * 1000
    except (TypeError, ValueError):
        return None


def translate_error(error: Exception, status: int | None, headers: Any = None) -> BackendError:
    """Wrap an SDK exception in the matching taxonomy error, keeping the status."""
    translated = classify_status(status, f"{type(error).__name__}: {error}", retry_after_ms(headers))
    translated.__cause__ = error
    return translated
