"""
HTTP round-trip latency sampling.

Probe flow::

    1. GET {url}?_={token}      (sequential, never concurrent)
    2. Time start-to-settle with perf_counter
    3. Any response counts; a failed request counts as a 1000 ms penalty
    4. Repeat for the desired number of samples, then reduce
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List

import aiohttp

from .constants import COMMON_HEADERS, DEFAULT_PING_COUNT, PING_PENALTY_MS, PING_TIMEOUT
from .stats import median_and_mean
from .throughput import cache_bust

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LatencyResult:
    """Reduced latency estimate from one sampling run."""

    median_ms: float = 0.0
    mean_ms: float = 0.0
    samples: List[float] = field(default_factory=list)
    failures: int = 0

    def to_dict(self) -> dict:
        return {
            "median_ms": round(self.median_ms, 1),
            "mean_ms": round(self.mean_ms, 1),
            "samples": [round(s, 1) for s in self.samples],
            "failures": self.failures,
        }


def summarize_samples(samples: List[float], failures: int = 0) -> LatencyResult:
    """Sort *samples* and reduce them to median (upper-middle) and mean."""
    ordered = sorted(samples)
    median, mean = median_and_mean(ordered)
    return LatencyResult(median_ms=median, mean_ms=mean, samples=ordered, failures=failures)


# ---------------------------------------------------------------------------
# Sampler
# ---------------------------------------------------------------------------

class LatencySampler:
    """Time a handful of lightweight sequential GETs."""

    def __init__(self, timeout: float = PING_TIMEOUT) -> None:
        self.timeout = timeout

    async def measure(self, url: str, count: int = DEFAULT_PING_COUNT) -> LatencyResult:
        count = max(1, count)
        samples: List[float] = []
        failures = 0

        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(headers=COMMON_HEADERS, timeout=timeout) as session:
            for i in range(count):
                ms = await self._probe_once(session, cache_bust(url, i))
                if ms is None:
                    failures += 1
                    ms = PING_PENALTY_MS
                samples.append(ms)

        result = summarize_samples(samples, failures)
        logger.info(
            "latency: median %.1f ms, mean %.1f ms (%d/%d failed)",
            result.median_ms, result.mean_ms, failures, count,
        )
        return result

    @staticmethod
    async def _probe_once(session: aiohttp.ClientSession, url: str):
        """Return the round-trip in ms, or None when the request failed."""
        start = time.perf_counter()
        try:
            async with session.get(url, allow_redirects=False) as resp:
                await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.debug("latency probe %s failed: %s", url, exc)
            return None
        return (time.perf_counter() - start) * 1000
