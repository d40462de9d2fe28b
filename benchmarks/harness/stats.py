"""Summary statistics over raw benchmark measurements.

All functions take a nonempty sequence of floats. Percentiles use the
nearest-rank method (an element of the sample is returned, never an
interpolation). The 95% confidence interval uses a fixed t of 2.093 for every
sample smaller than 30, which is exact only for 19 degrees of freedom.
"""

import math
from collections.abc import Sequence
from typing import Any

from benchmarks.harness.errors import InsufficientSample

T_LARGE_SAMPLE = 1.96
T_SMALL_SAMPLE = 2.093
LARGE_SAMPLE_MIN = 30


def _require(xs: Sequence[float], minimum: int, what: str) -> None:
    if len(xs) < minimum:
        raise InsufficientSample(f"{what} needs at least {minimum} sample(s), got {len(xs)}")


def mean(xs: Sequence[float]) -> float:
    _require(xs, 1, "mean")
    return sum(xs) / len(xs)


def sample_std(xs: Sequence[float]) -> float:
    """Bessel-corrected standard deviation (divisor n-1)."""
    _require(xs, 2, "sample_std")
    m = mean(xs)
    variance = sum((x - m) ** 2 for x in xs) / (len(xs) - 1)
    return math.sqrt(variance)


def median(xs: Sequence[float]) -> float:
    _require(xs, 1, "median")
    ordered = sorted(xs)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def percentile(xs: Sequence[float], p: float) -> float:
    """Nearest-rank percentile: sorted[ceil(p/100 * n) - 1], index clamped to [0, n-1]."""
    _require(xs, 1, "percentile")
    ordered = sorted(xs)
    idx = math.ceil(p / 100 * len(ordered)) - 1
    idx = min(max(idx, 0), len(ordered) - 1)
    return ordered[idx]


def ci95(xs: Sequence[float]) -> tuple[float, float]:
    """Return (lower, upper) of mean ± t * std/sqrt(n)."""
    m = mean(xs)
    se = sample_std(xs) / math.sqrt(len(xs))
    t = T_LARGE_SAMPLE if len(xs) >= LARGE_SAMPLE_MIN else T_SMALL_SAMPLE
    return m - t * se, m + t * se


def describe(xs: Sequence[float]) -> dict[str, Any]:
    """One-shot rollup used by the report tables.

    A single sample has no spread: std is reported as 0.0 and the CI collapses
    onto the mean.
    """
    _require(xs, 1, "describe")
    m = mean(xs)
    if len(xs) >= 2:
        std = sample_std(xs)
        lower, upper = ci95(xs)
    else:
        std = 0.0
        lower, upper = m, m
    return {
        "n": len(xs),
        "mean": m,
        "std": std,
        "median": median(xs),
        "min": min(xs),
        "max": max(xs),
        "p50": percentile(xs, 50),
        "p95": percentile(xs, 95),
        "p99": percentile(xs, 99),
        "ci95_lower": lower,
        "ci95_upper": upper,
    }
