"""Pinecone serverless backend. One index per namespace, named after it.

Environment:
    PINECONE_API_KEY  — required
    PINECONE_REGION   — serverless region for new indexes (default us-east-1)
"""

import logging
import os
from typing import Any

from benchmarks.harness.backends.base import (
    NamespaceStats,
    QueryResult,
    Record,
    VectorBackend,
    VectorNamespace,
    translate_error,
)
from benchmarks.harness.common import dimensions_for
from benchmarks.harness.errors import ConfigurationError

log = logging.getLogger(__name__)

# Serverless upsert limit per request
PINECONE_BATCH_SIZE = 100


class PineconeNamespace(VectorNamespace):
    def __init__(self, client: Any, name: str, api_exception: type[Exception]) -> None:
        super().__init__(name)
        self._index = client.Index(name)
        self._api_exception = api_exception

    def _call(self, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except self._api_exception as e:
            raise translate_error(e, getattr(e, "status", None), getattr(e, "headers", None)) from e

    def upsert(self, records: list[Record], is_first_batch: bool = False) -> None:
        vectors = [
            {"id": r.id, "values": r.vector, "metadata": {"title": r.title, "text": r.text}} for r in records
        ]
        for i in range(0, len(vectors), PINECONE_BATCH_SIZE):
            self._call(self._index.upsert, vectors=vectors[i : i + PINECONE_BATCH_SIZE])

    def query(self, vector: list[float], top_k: int, include_vector: bool = False) -> list[QueryResult]:
        response = self._call(
            self._index.query,
            vector=vector,
            top_k=top_k,
            include_metadata=True,
            include_values=include_vector,
        )
        results = []
        for m in response.matches or []:
            metadata = m.metadata or {}
            results.append(
                QueryResult(
                    id=m.id,
                    score=1 - (m.score or 0.0),  # similarity -> distance
                    title=metadata.get("title") or "Unknown",
                    text=metadata.get("text") or "",
                    vector=list(m.values) if m.values else None,
                )
            )
        return results

    def fetch_by_id(self, doc_id: str) -> QueryResult | None:
        response = self._call(self._index.fetch, ids=[doc_id])
        record = (response.vectors or {}).get(doc_id)
        if record is None:
            return None
        metadata = record.metadata or {}
        return QueryResult(
            id=record.id,
            score=0.0,
            title=metadata.get("title") or "Unknown",
            text=metadata.get("text") or "",
            vector=list(record.values) if record.values else None,
        )

    def stats(self) -> NamespaceStats:
        response = self._call(self._index.describe_index_stats)
        return NamespaceStats(approx_row_count=int(response.total_vector_count or 0))

    def delete_all(self) -> None:
        self._call(self._index.delete, delete_all=True)


class PineconeBackend(VectorBackend):
    name = "pinecone"

    def __init__(self, client: Any, sdk_exceptions: Any, serverless_spec: Any, region: str) -> None:
        self._client = client
        self._exceptions = sdk_exceptions
        self._serverless_spec = serverless_spec
        self._region = region

    def namespace(self, name: str) -> PineconeNamespace:
        return PineconeNamespace(self._client, name, self._exceptions.PineconeApiException)

    def ensure_namespace(self, name: str) -> None:
        if self._client.has_index(name):
            return
        dimension = dimensions_for(name)
        log.info('Creating Pinecone index "%s" (%dd) in %s...', name, dimension, self._region)
        try:
            self._client.create_index(
                name=name,
                dimension=dimension,
                metric="cosine",
                spec=self._serverless_spec(cloud="aws", region=self._region),
            )
        except self._exceptions.PineconeApiException as e:
            raise translate_error(e, getattr(e, "status", None)) from e
        log.info('Index "%s" is ready.', name)


def create_pinecone_backend() -> PineconeBackend:
    api_key = os.environ.get("PINECONE_API_KEY")
    if not api_key:
        raise ConfigurationError("PINECONE_API_KEY environment variable is required")

    from pinecone import Pinecone, ServerlessSpec
    from pinecone import exceptions as pinecone_exceptions

    region = os.environ.get("PINECONE_REGION", "us-east-1")
    return PineconeBackend(Pinecone(api_key=api_key), pinecone_exceptions, ServerlessSpec, region)
