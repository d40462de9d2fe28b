"""CLI entry point: `python -m benchmarks.harness.cli`

Subcommands:
    latency           — Single-query latency per namespace
    throughput        — QPS under concurrent load per namespace
    upsert            — Write throughput into one namespace
    recall            — ANN recall sweep over namespaces x top_k (resumable)
    stats             — Approximate row count per namespace
    query             — Nearest neighbours of a stored document in every namespace
    delete            — Delete namespaces (dry run unless --confirm)
    clear-checkpoint  — Discard a saved recall sweep checkpoint
    supabase-sql      — Print the pgvector DDL the Supabase backend expects
"""

import argparse
import logging
import sys

from benchmarks.harness.backends import BACKENDS
from benchmarks.harness.common import (
    CHECKPOINT_PATH,
    LATENCY_DELAY_MS,
    LATENCY_NUM_QUERIES,
    LATENCY_TOP_K,
    LATENCY_WARMUP_QUERIES,
    NAMESPACES,
    RECALL_DELAY_MS,
    RECALL_NUM,
    RECALL_RUNS,
    RECALL_TOP_K_VALUES,
    THROUGHPUT_CONCURRENCY,
    THROUGHPUT_TOP_K,
    THROUGHPUT_TOTAL_QUERIES,
    THROUGHPUT_WARMUP_QUERIES,
    UPSERT_BATCH_SIZE,
    UPSERT_TOTAL_RECORDS,
    validate_namespaces,
)
from benchmarks.harness.errors import ConfigurationError

log = logging.getLogger(__name__)


def _csv_list(value: str) -> list[str]:
    """Split on commas, dropping blanks and repeats while keeping first-seen order."""
    return list(dict.fromkeys(v.strip() for v in value.split(",") if v.strip()))


def _csv_ints(value: str) -> list[int]:
    try:
        return list(dict.fromkeys(int(v) for v in _csv_list(value)))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated integers, got {value!r}") from None


def _backend(args):
    from benchmarks.harness.backends import create_backend

    return create_backend(args.backend)


def _cmd_latency(args):
    from benchmarks.harness.harness import run_benchmark
    from benchmarks.harness.treatments.latency import LatencyOrchestrator

    namespaces = validate_namespaces(args.namespace or NAMESPACES)
    orchestrator = LatencyOrchestrator(
        _backend(args),
        namespaces=namespaces,
        num_queries=args.queries,
        top_k=args.top_k,
        warmup_queries=args.warmup,
        delay_ms=args.delay,
        backend_name=args.backend,
    )
    run_benchmark(orchestrator, output=args.output)


def _cmd_throughput(args):
    from benchmarks.harness.harness import run_benchmark
    from benchmarks.harness.treatments.throughput import ThroughputOrchestrator

    namespaces = validate_namespaces(args.namespace or NAMESPACES)
    orchestrator = ThroughputOrchestrator(
        _backend(args),
        namespaces=namespaces,
        total_queries=args.queries,
        top_k=args.top_k,
        concurrency=args.concurrency,
        warmup_queries=args.warmup,
        backend_name=args.backend,
    )
    run_benchmark(orchestrator, output=args.output)


def _cmd_upsert(args):
    from benchmarks.harness.harness import run_benchmark
    from benchmarks.harness.treatments.upsert import UpsertOrchestrator

    validate_namespaces([args.namespace])
    orchestrator = UpsertOrchestrator(
        _backend(args),
        namespace=args.namespace,
        total_records=args.records,
        batch_size=args.batch_size,
        backend_name=args.backend,
    )
    run_benchmark(orchestrator, output=args.output)


def _cmd_recall(args):
    from benchmarks.harness.checkpoint import CheckpointStore
    from benchmarks.harness.harness import run_benchmark
    from benchmarks.harness.treatments.recall import RecallOrchestrator

    namespaces = validate_namespaces(args.namespace or NAMESPACES)
    orchestrator = RecallOrchestrator(
        _backend(args),
        namespaces=namespaces,
        top_k_values=args.top_k,
        runs=args.runs,
        num=args.num,
        delay_ms=args.delay,
        checkpoint_store=CheckpointStore(args.checkpoint),
        backend_name=args.backend,
    )
    run_benchmark(orchestrator, output=args.output)


def _cmd_stats(args):
    from benchmarks.harness.admin import print_stats

    backend = _backend(args)
    print_stats(backend, validate_namespaces(args.namespace or NAMESPACES))


def _cmd_query(args):
    from benchmarks.harness.admin import query_by_doc_id

    namespaces = validate_namespaces(args.namespace or NAMESPACES)
    if args.top_k <= 0:
        raise ConfigurationError(f"top_k must be positive, got {args.top_k}")
    query_by_doc_id(_backend(args), args.doc_id, top_k=args.top_k, namespaces=namespaces)


def _cmd_delete(args):
    from benchmarks.harness.admin import delete_namespaces

    namespaces = validate_namespaces([args.namespace] if args.namespace else NAMESPACES)
    backend = _backend(args) if args.confirm else None
    delete_namespaces(backend, namespaces, confirm=args.confirm)


def _cmd_clear_checkpoint(args):
    from benchmarks.harness.checkpoint import CheckpointStore

    store = CheckpointStore(args.checkpoint)
    if not store.exists:
        print(f"No checkpoint at {store.path}")
        return
    checkpoint = store.load()
    store.clear()
    print(f"Removed checkpoint ({len(checkpoint.completed_config_keys)} completed configs discarded)")


def _cmd_supabase_sql(args):
    from benchmarks.harness.backends.supabase_backend import setup_sql

    print(setup_sql(validate_namespaces(args.namespace or NAMESPACES)))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="benchmarks.harness.cli",
        description="Benchmark vector databases seeded with Wikipedia embeddings",
    )
    parser.add_argument("--backend", choices=BACKENDS, default="tpuf", help="Vector backend (default: tpuf)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Subcommand")

    ns_help = f"Comma-separated namespace names (default: all of {', '.join(NAMESPACES)})"

    # ── latency ───────────────────────────────────────────────────
    lat_p = subparsers.add_parser("latency", help="Run single-query latency benchmarks")
    lat_p.add_argument("-q", "--queries", type=int, default=LATENCY_NUM_QUERIES, help="Queries per namespace")
    lat_p.add_argument("-k", "--top-k", type=int, default=LATENCY_TOP_K, help="Results per query")
    lat_p.add_argument("-w", "--warmup", type=int, default=LATENCY_WARMUP_QUERIES, help="Warmup queries before timing")
    lat_p.add_argument("-d", "--delay", type=float, default=LATENCY_DELAY_MS, help="Delay between queries (ms)")
    lat_p.add_argument("--namespace", type=_csv_list, help=ns_help)
    lat_p.add_argument("-o", "--output", help="Output file path for JSON results")

    # ── throughput ────────────────────────────────────────────────
    tp_p = subparsers.add_parser("throughput", help="Run throughput benchmarks (QPS under load)")
    tp_p.add_argument("-q", "--queries", type=int, default=THROUGHPUT_TOTAL_QUERIES, help="Total queries to run")
    tp_p.add_argument("-c", "--concurrency", type=int, default=THROUGHPUT_CONCURRENCY, help="Concurrent queries")
    tp_p.add_argument("-k", "--top-k", type=int, default=THROUGHPUT_TOP_K, help="Results per query")
    tp_p.add_argument(
        "-w", "--warmup", type=int, default=THROUGHPUT_WARMUP_QUERIES, help="Warmup queries before timing"
    )
    tp_p.add_argument("--namespace", type=_csv_list, help=ns_help)
    tp_p.add_argument("-o", "--output", help="Output file path for JSON results")

    # ── upsert ────────────────────────────────────────────────────
    up_p = subparsers.add_parser("upsert", help="Run upsert/write performance benchmarks")
    up_p.add_argument("-n", "--namespace", required=True, help="Namespace to benchmark")
    up_p.add_argument("-r", "--records", type=int, default=UPSERT_TOTAL_RECORDS, help="Total records to upsert")
    up_p.add_argument("-b", "--batch-size", type=int, default=UPSERT_BATCH_SIZE, help="Records per upsert call")
    up_p.add_argument("-o", "--output", help="Output file path for JSON results")

    # ── recall ────────────────────────────────────────────────────
    rc_p = subparsers.add_parser("recall", help="Run recall benchmarks across namespaces and top_k values")
    rc_p.add_argument("-r", "--runs", type=int, default=RECALL_RUNS, help="Runs per configuration")
    rc_p.add_argument("-n", "--num", type=int, default=RECALL_NUM, help="Queries per recall call")
    rc_p.add_argument(
        "-k",
        "--top-k",
        type=_csv_ints,
        default=RECALL_TOP_K_VALUES,
        help=f"Comma-separated top_k values (default: {','.join(str(k) for k in RECALL_TOP_K_VALUES)})",
    )
    rc_p.add_argument("-d", "--delay", type=float, default=RECALL_DELAY_MS, help="Delay between calls (ms)")
    rc_p.add_argument("--namespace", type=_csv_list, help=ns_help)
    rc_p.add_argument("--checkpoint", default=str(CHECKPOINT_PATH), help="Checkpoint file for resumable sweeps")
    rc_p.add_argument("-o", "--output", help="Output file path for JSON results")

    # ── stats ─────────────────────────────────────────────────────
    st_p = subparsers.add_parser("stats", help="Show namespace statistics")
    st_p.add_argument("--namespace", type=_csv_list, help=ns_help)

    # ── query ─────────────────────────────────────────────────────
    q_p = subparsers.add_parser("query", help="Query namespaces using a document's vector")
    q_p.add_argument("-d", "--doc-id", required=True, help="Document ID to use as query source")
    q_p.add_argument("-k", "--top-k", type=int, default=10, help="Results per namespace")
    q_p.add_argument("--namespace", type=_csv_list, help=ns_help)

    # ── delete ────────────────────────────────────────────────────
    del_p = subparsers.add_parser("delete", help="Delete wiki-* namespaces")
    del_p.add_argument("-n", "--namespace", help="Delete only this namespace")
    del_p.add_argument("--confirm", action="store_true", help="Actually delete (required)")

    # ── clear-checkpoint ──────────────────────────────────────────
    cc_p = subparsers.add_parser("clear-checkpoint", help="Discard a saved recall checkpoint")
    cc_p.add_argument("--checkpoint", default=str(CHECKPOINT_PATH), help="Checkpoint file to remove")

    # ── supabase-sql ──────────────────────────────────────────────
    sql_p = subparsers.add_parser("supabase-sql", help="Print SQL for Supabase/pgvector setup")
    sql_p.add_argument("--namespace", type=_csv_list, help=ns_help)

    return parser


COMMANDS = {
    "latency": _cmd_latency,
    "throughput": _cmd_throughput,
    "upsert": _cmd_upsert,
    "recall": _cmd_recall,
    "stats": _cmd_stats,
    "query": _cmd_query,
    "delete": _cmd_delete,
    "clear-checkpoint": _cmd_clear_checkpoint,
    "supabase-sql": _cmd_supabase_sql,
}


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        COMMANDS[args.command](args)
    except ConfigurationError as e:
        log.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
