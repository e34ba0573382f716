"""
Network measurement statistics.

Pure functions and a small accumulator class -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import math
import statistics
from enum import Enum
from typing import Dict, List, Sequence, Tuple


class Reducer(str, Enum):
    """How per-bucket rates collapse into one throughput figure."""

    P95 = "p95"
    PEAK = "peak"

    @classmethod
    def parse(cls, value: "str | Reducer") -> "Reducer":
        if isinstance(value, Reducer):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown percentile mode {value!r} (expected 'p95' or 'peak')"
            ) from None


# ---------------------------------------------------------------------------
# Rate buckets
# ---------------------------------------------------------------------------

class RateBucketAggregator:
    """
    Accumulates byte counts into fixed-width time buckets.

    One instance is shared by every stream of a single probe invocation.
    All increments happen on the event loop thread, so plain dict updates
    are safe.  Summation makes the reduced rate independent of the order
    in which streams report their chunks.
    """

    def __init__(self, bucket_width_ms: float) -> None:
        if bucket_width_ms <= 0:
            raise ValueError("bucket_width_ms must be positive")
        self.bucket_width_ms = bucket_width_ms
        self.buckets: Dict[int, int] = {}
        self.total_bytes = 0

    def bucket_index(self, elapsed_ms: float) -> int:
        return int(math.floor(max(0.0, elapsed_ms) / self.bucket_width_ms))

    def record(self, elapsed_ms: float, byte_count: int, bucketed: bool = True) -> None:
        """
        Count *byte_count* bytes observed *elapsed_ms* after probe start.

        Bytes always count toward ``total_bytes``; with ``bucketed=False``
        (background tab, hidden window) they stay out of the rate buckets.
        """
        if byte_count <= 0:
            return
        self.total_bytes += byte_count
        if bucketed:
            idx = self.bucket_index(elapsed_ms)
            self.buckets[idx] = self.buckets.get(idx, 0) + byte_count

    def rates(self, warmup_ms: float = 0.0) -> List[float]:
        """Per-bucket Mbps for buckets at or after the warm-up cutoff."""
        cutoff = int(math.floor(max(0.0, warmup_ms) / self.bucket_width_ms))
        seconds = self.bucket_width_ms / 1000
        return [
            bytes_ * 8 / 1e6 / seconds
            for idx, bytes_ in sorted(self.buckets.items())
            if idx >= cutoff
        ]

    def reduce(
        self,
        warmup_ms: float,
        reducer: "Reducer | str" = Reducer.P95,
        elapsed_seconds: float = 0.0,
    ) -> float:
        """
        Reduce the post-warm-up buckets to a single Mbps figure.

        Falls back to the whole-run average when no bucket survives the
        warm-up cut, e.g. when the run was shorter than the warm-up.
        """
        rates = self.rates(warmup_ms)
        if not rates:
            if elapsed_seconds <= 0:
                return 0.0
            return self.total_bytes * 8 / 1e6 / elapsed_seconds

        if Reducer.parse(reducer) is Reducer.PEAK:
            return max(rates)
        return nearest_rank_percentile(rates, 95)


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(value, hi))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (``round`` rounds to even)."""
    return int(math.floor(value + 0.5))


def percentile_index(n: int, percentile: float) -> int:
    """Index of the floor-rank percentile in a sorted list of *n* values."""
    if n <= 0:
        return 0
    return int(clamp(math.floor(percentile / 100 * (n - 1)), 0, n - 1))


def nearest_rank_percentile(samples: Sequence[float], percentile: float) -> float:
    """Floor-rank percentile: no interpolation between neighbours."""
    if not samples:
        return 0.0
    ordered = sorted(samples)
    return ordered[percentile_index(len(ordered), percentile)]


def median_sample(samples: Sequence[float]) -> float:
    """Middle element; the upper of the two middle elements for even counts."""
    if not samples:
        return 0.0
    ordered = sorted(samples)
    return ordered[len(ordered) // 2]


def median_and_mean(samples: Sequence[float]) -> Tuple[float, float]:
    if not samples:
        return 0.0, 0.0
    return median_sample(samples), statistics.mean(samples)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
