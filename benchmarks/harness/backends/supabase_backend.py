"""Supabase (Postgres + pgvector) backend.

Each namespace maps to a table (hyphens become underscores) and a
`match_<table>` SQL function for similarity search. Tables and functions are
not created by the harness; `setup_sql()` prints the DDL to run once in the
Supabase SQL editor.

Environment:
    SUPABASE_URL  — required
    SUPABASE_KEY  — required (service role key for writes)
"""

import json
import logging
import os
from typing import Any

from benchmarks.harness.backends.base import (
    NamespaceStats,
    QueryResult,
    Record,
    VectorBackend,
    VectorNamespace,
)
from benchmarks.harness.common import DIMENSION_MAP, dimensions_for
from benchmarks.harness.errors import ConfigurationError, PermanentBackendError, ResourceNotFound

log = logging.getLogger(__name__)

SUPABASE_BATCH_SIZE = 500
TEXT_LIMIT = 4000

# PostgREST / Postgres error codes
UNDEFINED_TABLE = "42P01"
UNDEFINED_FUNCTION = "42883"


def table_name(namespace: str) -> str:
    return namespace.replace("-", "_")


def _parse_embedding(value: Any) -> list[float] | None:
    """pgvector columns come back as '[0.1,0.2,...]' strings through PostgREST."""
    if value is None:
        return None
    if isinstance(value, str):
        return [float(v) for v in json.loads(value)]
    return [float(v) for v in value]


class SupabaseNamespace(VectorNamespace):
    def __init__(self, client: Any, name: str, api_error: type[Exception]) -> None:
        super().__init__(name)
        self._client = client
        self._table = table_name(name)
        self._api_error = api_error

    def _execute(self, request: Any) -> Any:
        try:
            return request.execute()
        except self._api_error as e:
            code = getattr(e, "code", None)
            if code in (UNDEFINED_TABLE, UNDEFINED_FUNCTION):
                raise ResourceNotFound(f"{self._table}: {getattr(e, 'message', e)}") from e
            raise PermanentBackendError(f"Supabase error on {self._table}: {getattr(e, 'message', e)}") from e

    def upsert(self, records: list[Record], is_first_batch: bool = False) -> None:
        if is_first_batch:
            log.info('Upserting to table "%s" (%dd)', self._table, dimensions_for(self.name))
        for i in range(0, len(records), SUPABASE_BATCH_SIZE):
            rows = [
                {"id": r.id, "title": r.title, "text": r.text[:TEXT_LIMIT], "embedding": r.vector}
                for r in records[i : i + SUPABASE_BATCH_SIZE]
            ]
            self._execute(self._client.table(self._table).upsert(rows, on_conflict="id"))

    def query(self, vector: list[float], top_k: int, include_vector: bool = False) -> list[QueryResult]:
        response = self._execute(
            self._client.rpc(f"match_{self._table}", {"query_embedding": vector, "match_count": top_k})
        )
        return [
            QueryResult(
                id=str(row["id"]),
                score=1 - float(row.get("similarity") or 0.0),
                title=row.get("title") or "Unknown",
                text=row.get("text") or "",
                vector=_parse_embedding(row.get("embedding")) if include_vector else None,
            )
            for row in response.data or []
        ]

    def fetch_by_id(self, doc_id: str) -> QueryResult | None:
        response = self._execute(
            self._client.table(self._table).select("id, title, text, embedding").eq("id", doc_id).limit(1)
        )
        if not response.data:
            return None
        row = response.data[0]
        return QueryResult(
            id=str(row["id"]),
            score=0.0,
            title=row.get("title") or "Unknown",
            text=row.get("text") or "",
            vector=_parse_embedding(row.get("embedding")),
        )

    def stats(self) -> NamespaceStats:
        response = self._execute(self._client.table(self._table).select("*", count="exact", head=True))
        return NamespaceStats(approx_row_count=int(response.count or 0))

    def delete_all(self) -> None:
        self._execute(self._client.table(self._table).delete().neq("id", ""))


class SupabaseBackend(VectorBackend):
    name = "supabase"

    def __init__(self, client: Any, api_error: type[Exception]) -> None:
        self._client = client
        self._api_error = api_error

    def namespace(self, name: str) -> SupabaseNamespace:
        return SupabaseNamespace(self._client, name, self._api_error)


def setup_sql(namespaces: list[str] | None = None) -> str:
    """DDL creating one table, HNSW index and match function per namespace."""
    statements = ["create extension if not exists vector;"]
    for ns in namespaces or list(DIMENSION_MAP):
        table = table_name(ns)
        dim = dimensions_for(ns)
        statements.append(
            f"""
create table if not exists {table} (
  id text primary key,
  title text,
  text text,
  embedding vector({dim})
);

create index if not exists {table}_embedding_idx
  on {table} using hnsw (embedding vector_cosine_ops);

create or replace function match_{table}(query_embedding vector({dim}), match_count int)
returns table (id text, title text, text text, embedding vector({dim}), similarity float)
language sql stable as $$
  select t.id, t.title, t.text, t.embedding, 1 - (t.embedding <=> query_embedding) as similarity
  from {table} t
  order by t.embedding <=> query_embedding
  limit match_count;
$$;"""
        )
    return "\n".join(statements) + "\n"


def create_supabase_backend() -> SupabaseBackend:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not url or not key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY environment variables are required")

    from postgrest.exceptions import APIError
    from supabase import create_client

    return SupabaseBackend(create_client(url, key), APIError)
