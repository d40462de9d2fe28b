"""Tests for the backend factory and the SDK adapters, driven through fake SDK objects."""

from types import SimpleNamespace

import pytest

from benchmarks.harness.backends import create_backend, supports_recall
from benchmarks.harness.backends.base import Record, retry_after_ms
from benchmarks.harness.backends.pinecone_backend import PineconeBackend
from benchmarks.harness.backends.supabase_backend import SupabaseNamespace, _parse_embedding, setup_sql, table_name
from benchmarks.harness.backends.tpuf import FTS_SCHEMA, TEXT_LIMIT, TpufBackend
from benchmarks.harness.errors import (
    ConfigurationError,
    PermanentBackendError,
    ResourceNotFound,
    TransientBackendError,
)


class TestFactory:
    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError, match="Unknown backend: nope"):
            create_backend("nope")

    @pytest.mark.parametrize(
        "name, env_vars",
        [
            ("tpuf", ["TURBOPUFFER_API_KEY"]),
            ("pinecone", ["PINECONE_API_KEY"]),
            ("supabase", ["SUPABASE_URL", "SUPABASE_KEY"]),
        ],
    )
    def test_missing_credentials(self, monkeypatch, name, env_vars):
        for var in env_vars:
            monkeypatch.delenv(var, raising=False)
        with pytest.raises(ConfigurationError, match="environment variable"):
            create_backend(name)


class TestRetryAfter:
    def test_seconds_to_ms(self):
        assert retry_after_ms({"retry-after": "2"}) == 2000

    def test_absent_or_garbage(self):
        assert retry_after_ms(None) is None
        assert retry_after_ms({}) is None
        assert retry_after_ms({"retry-after": "soon"}) is None


# ── Turbopuffer ────────────────────────────────────────────────────


class FakeTpufAPIError(Exception):
    pass


class FakeTpufStatusError(FakeTpufAPIError):
    def __init__(self, status_code, headers=None):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.response = SimpleNamespace(headers=headers or {})


FAKE_TPUF_SDK = SimpleNamespace(APIError=FakeTpufAPIError, APIStatusError=FakeTpufStatusError)


class FakeTpufNamespace:
    def __init__(self):
        self.writes = []
        self.queries = []
        self.error = None

    def _maybe_fail(self):
        if self.error is not None:
            raise self.error

    def write(self, **kwargs):
        self._maybe_fail()
        self.writes.append(kwargs)

    def query(self, **kwargs):
        self._maybe_fail()
        self.queries.append(kwargs)
        return SimpleNamespace(
            rows=[{"id": "a", "$dist": 0.12, "title": "A", "text": "alpha", "vector": [0.6, 0.8]}]
        )

    def metadata(self):
        self._maybe_fail()
        return SimpleNamespace(approx_row_count=1234)

    def delete_all(self):
        self._maybe_fail()

    def recall(self, num, top_k, include_ground_truth):
        self._maybe_fail()
        return SimpleNamespace(avg_recall=0.95, avg_ann_count=top_k, avg_exhaustive_count=top_k)


class FakeTpufClient:
    def __init__(self):
        self.namespaces = {}

    def namespace(self, name):
        return self.namespaces.setdefault(name, FakeTpufNamespace())


class TestTpufAdapter:
    def _backend(self):
        client = FakeTpufClient()
        return TpufBackend(client, FAKE_TPUF_SDK), client

    def test_is_recall_capable(self):
        backend, _ = self._backend()
        assert supports_recall(backend)

    def test_query_maps_rows(self):
        backend, client = self._backend()
        [result] = backend.namespace("wiki-gte").query([0.1, 0.2], top_k=5, include_vector=True)
        assert result.id == "a"
        assert result.score == pytest.approx(0.12)
        assert result.vector == [0.6, 0.8]
        sent = client.namespaces["wiki-gte"].queries[0]
        assert sent["rank_by"] == ("vector", "ANN", [0.1, 0.2])
        assert "vector" in sent["include_attributes"]

    def test_first_batch_carries_schema(self):
        backend, client = self._backend()
        ns = backend.namespace("wiki-gte")
        records = [Record("r1", "T", "x" * (TEXT_LIMIT + 100), [1.0, 0.0])]
        ns.upsert(records, is_first_batch=True)
        ns.upsert(records)
        first, second = client.namespaces["wiki-gte"].writes
        assert first["schema"] == FTS_SCHEMA
        assert "schema" not in second
        assert first["distance_metric"] == "cosine_distance"
        assert len(first["upsert_rows"][0]["text"]) == TEXT_LIMIT

    def test_stats_and_recall(self):
        backend, _ = self._backend()
        assert backend.namespace("wiki-gte").stats().approx_row_count == 1234
        stats = backend.recall("wiki-gte", num=20, top_k=10)
        assert stats.avg_recall == 0.95
        assert stats.avg_ann_count == 10.0

    @pytest.mark.parametrize(
        "status, expected",
        [
            (503, TransientBackendError),
            (429, TransientBackendError),
            (404, ResourceNotFound),
            (400, PermanentBackendError),
        ],
    )
    def test_status_errors_translated(self, status, expected):
        backend, client = self._backend()
        ns = backend.namespace("wiki-gte")
        client.namespaces["wiki-gte"].error = FakeTpufStatusError(status)
        with pytest.raises(expected) as exc_info:
            ns.stats()
        assert exc_info.value.status == status

    def test_retry_after_header_carried(self):
        backend, client = self._backend()
        ns = backend.namespace("wiki-gte")
        client.namespaces["wiki-gte"].error = FakeTpufStatusError(429, {"retry-after": "3"})
        with pytest.raises(TransientBackendError) as exc_info:
            ns.query([0.0], top_k=1)
        assert exc_info.value.retry_after_ms == 3000

    def test_connection_error_is_permanent(self):
        backend, client = self._backend()
        ns = backend.namespace("wiki-gte")
        client.namespaces["wiki-gte"].error = FakeTpufAPIError("connection reset")
        with pytest.raises(PermanentBackendError):
            ns.delete_all()


# ── Pinecone ───────────────────────────────────────────────────────


class FakePineconeApiException(Exception):
    def __init__(self, status):
        super().__init__(f"HTTP {status}")
        self.status = status
        self.headers = {}


class FakePineconeIndex:
    def __init__(self):
        self.upserts = []

    def upsert(self, vectors):
        self.upserts.append(vectors)

    def query(self, **kwargs):
        match = SimpleNamespace(id="a", score=0.9, metadata={"title": "A", "text": "alpha"}, values=[1.0, 0.0])
        return SimpleNamespace(matches=[match])

    def describe_index_stats(self):
        raise FakePineconeApiException(404)


class FakePineconeClient:
    def __init__(self, existing=()):
        self.indexes = {}
        self.existing = set(existing)
        self.created = []

    def Index(self, name):
        return self.indexes.setdefault(name, FakePineconeIndex())

    def has_index(self, name):
        return name in self.existing

    def create_index(self, **kwargs):
        self.created.append(kwargs)


class TestPineconeAdapter:
    def _backend(self, client):
        exceptions = SimpleNamespace(PineconeApiException=FakePineconeApiException)
        return PineconeBackend(client, exceptions, lambda **kw: kw, "us-east-1")

    def test_not_recall_capable(self):
        assert not supports_recall(self._backend(FakePineconeClient()))

    def test_similarity_becomes_distance(self):
        backend = self._backend(FakePineconeClient())
        [result] = backend.namespace("wiki-gte").query([1.0, 0.0], top_k=1, include_vector=True)
        assert result.score == pytest.approx(0.1)
        assert result.vector == [1.0, 0.0]

    def test_upsert_split_into_requests_of_100(self):
        client = FakePineconeClient()
        records = [Record(f"r{i}", "T", "x", [0.0]) for i in range(250)]
        self._backend(client).namespace("wiki-gte").upsert(records, is_first_batch=True)
        assert [len(v) for v in client.indexes["wiki-gte"].upserts] == [100, 100, 50]

    def test_ensure_namespace_creates_missing_index(self):
        client = FakePineconeClient()
        self._backend(client).ensure_namespace("wiki-3-small")
        [created] = client.created
        assert created["dimension"] == 512
        assert created["metric"] == "cosine"
        assert created["spec"] == {"cloud": "aws", "region": "us-east-1"}

    def test_ensure_namespace_skips_existing_index(self):
        client = FakePineconeClient(existing=["wiki-gte"])
        self._backend(client).ensure_namespace("wiki-gte")
        assert client.created == []

    def test_missing_index_is_not_found(self):
        with pytest.raises(ResourceNotFound):
            self._backend(FakePineconeClient()).namespace("wiki-gte").stats()


# ── Supabase ───────────────────────────────────────────────────────


class FakePostgrestError(Exception):
    def __init__(self, code, message="error"):
        super().__init__(message)
        self.code = code
        self.message = message


class FailingRequest:
    def __init__(self, error):
        self.error = error

    def execute(self):
        raise self.error


class TestSupabaseAdapter:
    def test_table_name(self):
        assert table_name("wiki-3-small") == "wiki_3_small"

    def test_parse_embedding(self):
        assert _parse_embedding("[0.5,-1,2]") == [0.5, -1.0, 2.0]
        assert _parse_embedding([1, 2]) == [1.0, 2.0]
        assert _parse_embedding(None) is None

    def test_setup_sql(self):
        sql = setup_sql(["wiki-minilm"])
        assert "create extension if not exists vector;" in sql
        assert "create table if not exists wiki_minilm" in sql
        assert "vector(384)" in sql
        assert "match_wiki_minilm" in sql
        assert "wiki_gte" not in sql

    @pytest.mark.parametrize(
        "code, expected",
        [("42P01", ResourceNotFound), ("42883", ResourceNotFound), ("23505", PermanentBackendError)],
    )
    def test_error_codes(self, code, expected):
        ns = SupabaseNamespace(SimpleNamespace(), "wiki-gte", FakePostgrestError)
        with pytest.raises(expected):
            ns._execute(FailingRequest(FakePostgrestError(code)))
