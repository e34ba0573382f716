"""
Shared machinery for the download and upload probes.

A probe fans out N concurrent HTTP transfers against one URL for a bounded
time, feeds every chunk into a shared :class:`RateBucketAggregator`, joins
the streams and reduces the buckets to a single Mbps figure.  Subclasses
only implement the per-stream transfer.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import aiohttp

from .constants import (
    BUCKET_WIDTH_MS,
    COMMON_HEADERS,
    MAX_STREAMS,
    MIN_ELAPSED_SECONDS,
    MIN_STREAMS,
    WARMUP_SECONDS,
)
from .stats import RateBucketAggregator, Reducer

logger = logging.getLogger(__name__)

_token_counter = itertools.count()


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one probe invocation."""

    throughput_mbps: float = 0.0
    elapsed_seconds: float = MIN_ELAPSED_SECONDS
    total_bytes: int = 0
    completed: bool = True
    streams: int = 0

    def to_dict(self) -> dict:
        return {
            "throughput_mbps": round(self.throughput_mbps, 2),
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "total_bytes": self.total_bytes,
            "completed": self.completed,
            "streams": self.streams,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def cache_bust(url: str, index: int = 0) -> str:
    """Append a unique ``_=`` query parameter so no cache can answer."""
    token = f"{int(time.time() * 1000)}-{next(_token_counter)}-{index}"
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}_={token}"


def _always_visible() -> bool:
    return True


# ---------------------------------------------------------------------------
# Probe base
# ---------------------------------------------------------------------------

class ThroughputProbe:
    """
    Base class for parallel-stream throughput probes.

    *is_visible* reports whether the foreground is currently visible.  While
    it returns False, bytes still count toward the total but are kept out
    of the rate buckets so a throttled background window does not drag the
    percentile down.
    """

    direction = "transfer"

    def __init__(self, is_visible: Optional[Callable[[], bool]] = None) -> None:
        self.is_visible = is_visible or _always_visible

    async def run(
        self,
        url: str,
        max_seconds: float,
        parallel_streams: int = MIN_STREAMS,
        warmup_seconds: float = WARMUP_SECONDS,
        bucket_width_ms: float = BUCKET_WIDTH_MS,
        reducer: "Reducer | str" = Reducer.P95,
    ) -> ProbeResult:
        if not url:
            return ProbeResult()

        streams = max(MIN_STREAMS, min(parallel_streams, MAX_STREAMS))
        reducer = Reducer.parse(reducer)
        aggregator = RateBucketAggregator(bucket_width_ms)

        start = time.perf_counter()
        deadline = start + max_seconds

        connector = aiohttp.TCPConnector(
            limit=streams,
            limit_per_host=streams,
            force_close=False,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, connect=5, sock_read=5)

        async with aiohttp.ClientSession(
            headers=COMMON_HEADERS,
            connector=connector,
            timeout=timeout,
        ) as session:
            await asyncio.gather(
                *[
                    self._guarded_stream(session, url, i, aggregator, start, deadline)
                    for i in range(streams)
                ]
            )

        elapsed = max(time.perf_counter() - start, MIN_ELAPSED_SECONDS)
        mbps = aggregator.reduce(warmup_seconds * 1000, reducer, elapsed)

        logger.info(
            "%s probe: %.2f Mbps (%d bytes, %d streams, %.2f s)",
            self.direction, mbps, aggregator.total_bytes, streams, elapsed,
        )
        return ProbeResult(
            throughput_mbps=max(0.0, mbps),
            elapsed_seconds=elapsed,
            total_bytes=aggregator.total_bytes,
            completed=True,
            streams=streams,
        )

    # -- Internals ----------------------------------------------------------

    async def _guarded_stream(
        self,
        session: aiohttp.ClientSession,
        url: str,
        index: int,
        aggregator: RateBucketAggregator,
        start: float,
        deadline: float,
    ) -> None:
        """Run one stream; a failing stream contributes what it got so far."""
        try:
            await self._stream(session, cache_bust(url, index), aggregator, start, deadline)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.debug("%s stream %d failed: %s", self.direction, index, exc)

    def _count(self, aggregator: RateBucketAggregator, now: float, start: float, n: int) -> None:
        aggregator.record((now - start) * 1000, n, bucketed=self.is_visible())

    async def _stream(
        self,
        session: aiohttp.ClientSession,
        url: str,
        aggregator: RateBucketAggregator,
        start: float,
        deadline: float,
    ) -> None:
        raise NotImplementedError
