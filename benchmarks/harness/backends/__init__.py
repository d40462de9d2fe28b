"""Vector database backends and the factory that selects one by name.

Adapter modules import their vendor SDK lazily, so only the selected backend's
SDK needs to be installed.
"""

from benchmarks.harness.backends.base import (
    NamespaceStats,
    QueryResult,
    RecallProbe,
    RecallStats,
    Record,
    VectorBackend,
    VectorNamespace,
    supports_recall,
)
from benchmarks.harness.errors import ConfigurationError

BACKENDS: tuple[str, ...] = ("tpuf", "pinecone", "supabase")


def create_backend(name: str) -> VectorBackend:
    """Build the backend registered under `name`.

    Raises ConfigurationError for an unknown name or missing credentials.
    """
    if name == "tpuf":
        from benchmarks.harness.backends.tpuf import create_tpuf_backend

        return create_tpuf_backend()
    if name == "pinecone":
        from benchmarks.harness.backends.pinecone_backend import create_pinecone_backend

        return create_pinecone_backend()
    if name == "supabase":
        from benchmarks.harness.backends.supabase_backend import create_supabase_backend

        return create_supabase_backend()
    raise ConfigurationError(f"Unknown backend: {name}. Valid backends: {', '.join(BACKENDS)}")


__all__ = [
    "BACKENDS",
    "create_backend",
    "NamespaceStats",
    "QueryResult",
    "RecallProbe",
    "RecallStats",
    "Record",
    "VectorBackend",
    "VectorNamespace",
    "supports_recall",
]
