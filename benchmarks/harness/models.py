"""Records passed between the pool, the orchestrators and the report writer."""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class Measurement:
    """One observed call outcome."""

    latency_ms: float
    success: bool
    error_kind: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        if d["error_kind"] is None:
            del d["error_kind"]
        return d


@dataclass(frozen=True)
class RunConfig:
    """Identity and sizing of one benchmark unit."""

    namespace: str
    total_operations: int
    warmup_operations: int = 0
    top_k: int | None = None
    concurrency: int | None = None
    extra_params: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @property
    def config_key(self) -> str:
        """Checkpoint key: 'namespace:top_k', or just the namespace when top_k is unset."""
        if self.top_k is None:
            return self.namespace
        return config_key(self.namespace, self.top_k)


def config_key(namespace: str, top_k: int) -> str:
    return f"{namespace}:{top_k}"
