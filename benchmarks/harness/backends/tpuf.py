"""Turbopuffer backend. The only backend exposing the server-side recall probe.

Environment:
    TURBOPUFFER_API_KEY  — required
    TURBOPUFFER_REGION   — optional, SDK default otherwise
"""

import logging
import os
from typing import Any

from benchmarks.harness.backends.base import (
    NamespaceStats,
    QueryResult,
    RecallProbe,
    RecallStats,
    Record,
    VectorBackend,
    VectorNamespace,
    translate_error,
)
from benchmarks.harness.errors import BackendError, ConfigurationError

log = logging.getLogger(__name__)

# Attribute values over 4096 bytes cannot be filtered on; leave room for multi-byte UTF-8
TEXT_LIMIT = 3500

FTS_SCHEMA: dict[str, Any] = {
    field: {
        "type": "string",
        "full_text_search": {"stemming": True, "remove_stopwords": True, "case_sensitive": False},
    }
    for field in ("text", "title")
}


def _row_fields(row: Any) -> dict[str, Any]:
    """Flatten an SDK row object (pydantic model or dict) into a plain dict."""
    if isinstance(row, dict):
        return row
    for dump in ("to_dict", "model_dump"):
        fn = getattr(row, dump, None)
        if callable(fn):
            return fn()
    return dict(vars(row))


def _to_result(row: Any) -> QueryResult:
    fields = _row_fields(row)
    vector = fields.get("vector")
    return QueryResult(
        id=str(fields.get("id")),
        score=float(fields.get("$dist") or 0.0),
        title=fields.get("title") or "Unknown",
        text=fields.get("text") or "",
        vector=list(vector) if vector is not None else None,
    )


class TpufNamespace(VectorNamespace):
    def __init__(self, client: Any, name: str, sdk: Any) -> None:
        super().__init__(name)
        self._ns = client.namespace(name)
        self._sdk = sdk

    def _call(self, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except self._sdk.APIStatusError as e:
            raise translate_error(e, e.status_code, getattr(e.response, "headers", None)) from e
        except self._sdk.APIError as e:
            raise translate_error(e, None) from e

    def upsert(self, records: list[Record], is_first_batch: bool = False) -> None:
        rows = [
            {
                "id": r.id,
                "vector": r.vector,
                "title": r.title,
                "text": r.text[:TEXT_LIMIT],
            }
            for r in records
        ]
        kwargs: dict[str, Any] = {"upsert_rows": rows, "distance_metric": "cosine_distance"}
        if is_first_batch:
            kwargs["schema"] = FTS_SCHEMA
        self._call(self._ns.write, **kwargs)

    def query(self, vector: list[float], top_k: int, include_vector: bool = False) -> list[QueryResult]:
        attributes = ["title", "text"]
        if include_vector:
            attributes.append("vector")
        response = self._call(
            self._ns.query,
            rank_by=("vector", "ANN", vector),
            top_k=top_k,
            include_attributes=attributes,
        )
        return [_to_result(row) for row in (response.rows or [])]

    def fetch_by_id(self, doc_id: str) -> QueryResult | None:
        response = self._call(
            self._ns.query,
            filters=("id", "Eq", doc_id),
            top_k=1,
            include_attributes=["title", "text", "vector"],
        )
        rows = response.rows or []
        return _to_result(rows[0]) if rows else None

    def stats(self) -> NamespaceStats:
        meta = self._call(self._ns.metadata)
        return NamespaceStats(approx_row_count=int(meta.approx_row_count or 0))

    def delete_all(self) -> None:
        self._call(self._ns.delete_all)

    def recall(self, num: int, top_k: int) -> RecallStats:
        response = self._call(self._ns.recall, num=num, top_k=top_k, include_ground_truth=False)
        return RecallStats(
            avg_recall=float(response.avg_recall),
            avg_ann_count=float(response.avg_ann_count),
            avg_exhaustive_count=float(response.avg_exhaustive_count),
        )


class TpufBackend(VectorBackend, RecallProbe):
    name = "tpuf"

    def __init__(self, client: Any, sdk: Any) -> None:
        self._client = client
        self._sdk = sdk

    def namespace(self, name: str) -> TpufNamespace:
        return TpufNamespace(self._client, name, self._sdk)

    def recall(self, namespace: str, num: int, top_k: int) -> RecallStats:
        return self.namespace(namespace).recall(num=num, top_k=top_k)


def create_tpuf_backend() -> TpufBackend:
    api_key = os.environ.get("TURBOPUFFER_API_KEY")
    if not api_key:
        raise ConfigurationError("TURBOPUFFER_API_KEY environment variable is required")

    import turbopuffer

    region = os.environ.get("TURBOPUFFER_REGION") or None
    kwargs: dict[str, Any] = {"api_key": api_key}
    if region:
        log.info("Using Turbopuffer region: %s", region)
        kwargs["region"] = region
    try:
        client = turbopuffer.Turbopuffer(**kwargs)
    except turbopuffer.TurbopufferError as e:
        raise BackendError(f"Could not create Turbopuffer client: {e}") from e
    return TpufBackend(client, turbopuffer)
