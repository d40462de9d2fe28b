"""Tests for the CLI: argument parsing in-process, exit codes via subprocess."""

import json
import os

import pytest

from benchmarks.harness.cli import build_parser, main
from benchmarks.harness.common import RECALL_TOP_K_VALUES
from benchmarks.harness.tests.conftest import run_cli


def _env_without(*names):
    return {k: v for k, v in os.environ.items() if k not in names}


class TestParser:
    def test_namespace_comma_list(self):
        args = build_parser().parse_args(["latency", "--namespace", "wiki-gte, wiki-minilm"])
        assert args.namespace == ["wiki-gte", "wiki-minilm"]

    def test_recall_top_k_list(self):
        args = build_parser().parse_args(["recall", "--top-k", "1,10,100"])
        assert args.top_k == [1, 10, 100]

    def test_recall_defaults(self):
        args = build_parser().parse_args(["recall"])
        assert args.top_k == RECALL_TOP_K_VALUES
        assert args.runs == 20
        assert args.num == 20

    def test_global_backend_flag(self):
        args = build_parser().parse_args(["--backend", "pinecone", "throughput", "-c", "4"])
        assert args.backend == "pinecone"
        assert args.concurrency == 4

    def test_upsert_requires_namespace(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["upsert"])

    def test_repeats_dropped_in_order(self):
        argv = ["recall", "--top-k", "10,1,10,01", "--namespace", "wiki-gte,wiki-minilm,wiki-gte"]
        args = build_parser().parse_args(argv)
        assert args.top_k == [10, 1]
        assert args.namespace == ["wiki-gte", "wiki-minilm"]

    def test_query_options(self):
        args = build_parser().parse_args(["query", "-d", "doc-7", "-k", "3"])
        assert args.doc_id == "doc-7"
        assert args.top_k == 3

    def test_query_requires_doc_id(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["query"])

    def test_delete_defaults_to_dry_run(self):
        args = build_parser().parse_args(["delete"])
        assert args.confirm is False
        assert args.namespace is None

    def test_bad_top_k_list(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["recall", "--top-k", "1,x"])


class TestMain:
    def test_unknown_namespace_exits_1(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["latency", "--namespace", "wiki-nope"])
        assert exc_info.value.code == 1

    def test_missing_credentials_exits_1(self, monkeypatch):
        monkeypatch.delenv("TURBOPUFFER_API_KEY", raising=False)
        with pytest.raises(SystemExit) as exc_info:
            main(["--backend", "tpuf", "stats"])
        assert exc_info.value.code == 1

    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit):
            main([])
        assert "latency" in capsys.readouterr().out

    def test_supabase_sql(self, capsys):
        main(["supabase-sql", "--namespace", "wiki-gte"])
        out = capsys.readouterr().out
        assert "create table if not exists wiki_gte" in out

    def test_clear_checkpoint(self, tmp_path, capsys):
        path = tmp_path / "cp.json"
        runs = [
            {"namespace": "wiki-gte", "top_k": k, "run": 1, "avg_recall": 0.9, "avg_ann_count": k,
             "avg_exhaustive_count": k, "latency_ms": 40}
            for k in (1, 5)
        ]
        path.write_text(json.dumps({"raw_runs": runs, "completed_configs": ["wiki-gte:1", "wiki-gte:5"]}))
        main(["clear-checkpoint", "--checkpoint", str(path)])
        assert not path.exists()
        assert "2 completed configs discarded" in capsys.readouterr().out

    def test_delete_unknown_namespace_exits_1(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["delete", "--namespace", "wiki-nope", "--confirm"])
        assert exc_info.value.code == 1

    def test_query_rejects_non_positive_top_k(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["query", "-d", "doc-1", "-k", "0"])
        assert exc_info.value.code == 1

    def test_clear_missing_checkpoint(self, tmp_path, capsys):
        main(["clear-checkpoint", "--checkpoint", str(tmp_path / "none.json")])
        assert "No checkpoint" in capsys.readouterr().out


class TestSubprocess:
    def test_help_lists_subcommands(self):
        result = run_cli("--help")
        assert result.returncode == 0
        for cmd in ("latency", "throughput", "upsert", "recall", "stats", "query", "delete", "clear-checkpoint"):
            assert cmd in result.stdout

    def test_unknown_backend_rejected(self):
        result = run_cli("--backend", "nope", "stats")
        assert result.returncode != 0

    def test_missing_credentials_error_message(self):
        result = run_cli("--backend", "pinecone", "stats", env=_env_without("PINECONE_API_KEY"))
        assert result.returncode == 1
        assert "PINECONE_API_KEY" in result.stderr

    def test_delete_dry_run_needs_no_credentials(self):
        result = run_cli("delete", "--namespace", "wiki-gte", env=_env_without("TURBOPUFFER_API_KEY"))
        assert result.returncode == 0
        assert "  - wiki-gte" in result.stdout
        assert "Run with --confirm" in result.stdout

    def test_confirmed_delete_needs_credentials(self):
        result = run_cli("delete", "--confirm", env=_env_without("TURBOPUFFER_API_KEY"))
        assert result.returncode == 1
        assert "TURBOPUFFER_API_KEY" in result.stderr

    def test_query_without_doc_id_is_usage_error(self):
        result = run_cli("query")
        assert result.returncode == 2
        assert "--doc-id" in result.stderr
