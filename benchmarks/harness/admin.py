"""Namespace housekeeping: row counts, nearest neighbours of a stored document, deletion.

These run directly against the backend capability interface and print a
human-readable report; they are not timed and write no results artifact.
"""

import logging

from benchmarks.harness.backends.base import QueryResult, VectorBackend
from benchmarks.harness.common import NAMESPACES, dimensions_for
from benchmarks.harness.errors import BackendError, ResourceNotFound

log = logging.getLogger(__name__)


def print_stats(backend: VectorBackend, namespaces: list[str] | None = None) -> dict[str, int | None]:
    """Print the approximate row count of each namespace; None marks a missing one."""
    counts: dict[str, int | None] = {}
    print("\nNamespace Statistics:")
    print("─" * 60)
    for name in namespaces or NAMESPACES:
        try:
            count = backend.namespace(name).stats().approx_row_count
        except ResourceNotFound:
            counts[name] = None
            print(f"{name}: (not found)")
        except BackendError as e:
            print(f"{name}: Error - {e}")
        else:
            counts[name] = count
            print(f"{name}: {count:,} rows")
    return counts


def find_document(backend: VectorBackend, doc_id: str, namespaces: list[str]) -> tuple[str, QueryResult] | None:
    """First namespace (in order) holding `doc_id` with a stored vector."""
    for name in namespaces:
        try:
            doc = backend.namespace(name).fetch_by_id(doc_id)
        except ResourceNotFound:
            continue
        except BackendError as e:
            log.debug("  fetch %s from %s failed: %s", doc_id, name, e)
            continue
        if doc is not None and doc.vector:
            return name, doc
    return None


def query_by_doc_id(
    backend: VectorBackend,
    doc_id: str,
    top_k: int = 10,
    namespaces: list[str] | None = None,
) -> dict[str, list[QueryResult]]:
    """Use a stored document's vector to query every namespace of matching dimensionality.

    Returns the neighbours per namespace that answered; empty if the document was not found.
    """
    namespaces = list(namespaces or NAMESPACES)
    print(f"\nQuerying with document ID: {doc_id}")
    print("─" * 60)

    found = find_document(backend, doc_id, namespaces)
    if found is None:
        print(f"Document {doc_id} not found in any namespace.")
        return {}
    source_ns, doc = found
    print(f'Source document: "{doc.title}" (from {source_ns})')
    print(f"Vector dimensions: {len(doc.vector)}\n")

    neighbours: dict[str, list[QueryResult]] = {}
    for name in namespaces:
        if dimensions_for(name) != len(doc.vector):
            print(f"{name}: Skipped (dimension mismatch)")
            continue
        try:
            results = backend.namespace(name).query(doc.vector, top_k=top_k)
        except ResourceNotFound:
            continue
        except BackendError as e:
            print(f"{name}: Error - {e}")
            continue
        if results:
            neighbours[name] = results

    for name, results in neighbours.items():
        print(f"\n{name}:")
        print("─" * 60)
        for i, r in enumerate(results, 1):
            print(f"  {i}. [{r.score:.4f}] {r.title}")
    return neighbours


def delete_namespaces(backend: VectorBackend | None, namespaces: list[str], confirm: bool = False) -> list[str]:
    """Delete every row of each namespace. Without `confirm` only lists what would go.

    `backend` may be None for the unconfirmed listing. Returns the namespaces deleted.
    """
    if not confirm:
        print("\nThe following namespaces would be deleted:")
        for name in namespaces:
            print(f"  - {name}")
        print("\nRun with --confirm to actually delete.")
        return []

    deleted = []
    print("\nDeleting namespaces...")
    for name in namespaces:
        try:
            backend.namespace(name).delete_all()
        except ResourceNotFound:
            print(f"  Skipped: {name} (not found)")
        except BackendError as e:
            print(f"  Error deleting {name}: {e}")
        else:
            deleted.append(name)
            print(f"  Deleted: {name}")
    return deleted
