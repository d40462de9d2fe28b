"""Durable sweep progress for resumable multi-configuration benchmarks.

The checkpoint records which configuration keys have fully completed together
with every raw run recorded so far. It is rewritten in full after each
configuration completes and removed once the sweep's results are persisted.
A configuration interrupted part-way is re-run from its first repetition.

A missing or unreadable checkpoint file is treated as an empty checkpoint.
Only one process may target a given path at a time; there is no locking.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from benchmarks.harness.common import CHECKPOINT_PATH
from benchmarks.harness.errors import CorruptCheckpoint
from benchmarks.harness.models import config_key

log = logging.getLogger(__name__)

RUN_NUMERIC_FIELDS = ("avg_recall", "avg_ann_count", "avg_exhaustive_count", "latency_ms")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_run(i: int, run: Any) -> None:
    if not isinstance(run, dict):
        raise CorruptCheckpoint(f"raw_runs[{i}] is not an object")
    if not isinstance(run.get("namespace"), str):
        raise CorruptCheckpoint(f"raw_runs[{i}] has no string namespace")
    top_k = run.get("top_k")
    if not isinstance(top_k, int) or isinstance(top_k, bool):
        raise CorruptCheckpoint(f"raw_runs[{i}] has no integer top_k")
    for name in RUN_NUMERIC_FIELDS:
        if not _is_number(run.get(name)):
            raise CorruptCheckpoint(f"raw_runs[{i}].{name} is missing or not a number")


@dataclass
class Checkpoint:
    completed_config_keys: set[str] = field(default_factory=set)
    accumulated_measurements: list[dict[str, Any]] = field(default_factory=list)

    def is_complete(self, key: str) -> bool:
        return key in self.completed_config_keys

    def mark_complete(self, key: str, measurements: list[dict[str, Any]]) -> None:
        """Record a finished configuration along with all of its runs."""
        self.accumulated_measurements.extend(measurements)
        self.completed_config_keys.add(key)

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw_runs": list(self.accumulated_measurements),
            "completed_configs": sorted(self.completed_config_keys),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Checkpoint":
        """Rebuild a checkpoint, raising CorruptCheckpoint on any malformed run.

        A completed key with no recorded runs is dropped so that its pair is
        measured again.
        """
        if not isinstance(data, dict):
            raise CorruptCheckpoint(f"expected a JSON object, got {type(data).__name__}")
        raw_runs = data.get("raw_runs", [])
        completed = data.get("completed_configs", [])
        if not isinstance(raw_runs, list):
            raise CorruptCheckpoint("raw_runs must be a list of objects")
        for i, run in enumerate(raw_runs):
            _check_run(i, run)
        if not isinstance(completed, list) or not all(isinstance(k, str) for k in completed):
            raise CorruptCheckpoint("completed_configs must be a list of strings")

        recorded = {config_key(r["namespace"], r["top_k"]) for r in raw_runs}
        orphaned = sorted(k for k in completed if k not in recorded)
        if orphaned:
            log.warning("  Checkpoint lists %s as complete without runs; they will be re-measured", ", ".join(orphaned))
        return cls(
            completed_config_keys={k for k in completed if k in recorded},
            accumulated_measurements=list(raw_runs),
        )


class CheckpointStore:
    """Load / save / clear a Checkpoint at a fixed path."""

    def __init__(self, path: str | Path = CHECKPOINT_PATH) -> None:
        self.path = Path(path)

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Checkpoint:
        if not self.path.exists():
            return Checkpoint()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return Checkpoint.from_dict(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, CorruptCheckpoint) as e:
            log.warning("  Ignoring unreadable checkpoint %s (%s); starting fresh", self.path, e)
            return Checkpoint()

    def save(self, checkpoint: Checkpoint) -> None:
        """Overwrite the stored checkpoint. The previous file survives a failed write."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(checkpoint.to_dict()), encoding="utf-8")
        os.replace(tmp_path, self.path)
        log.debug("  Checkpoint saved: %d configs complete", len(checkpoint.completed_config_keys))

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            log.info("  Checkpoint removed: %s", self.path)
