"""
Download throughput probe.

Each stream issues one cache-busted GET and reads the body in ``CHUNK_SIZE``
pieces until the body ends or the stream's deadline passes.  A short body
simply yields a short measurement; streams are not restarted.
"""
from __future__ import annotations

import time

import aiohttp

from .constants import CHUNK_SIZE
from .stats import RateBucketAggregator
from .throughput import ProbeResult, ThroughputProbe

__all__ = ["DownloadProbe", "ProbeResult"]


class DownloadProbe(ThroughputProbe):
    """Parallel GET streams against a large-body endpoint."""

    direction = "download"

    async def _stream(
        self,
        session: aiohttp.ClientSession,
        url: str,
        aggregator: RateBucketAggregator,
        start: float,
        deadline: float,
    ) -> None:
        async with session.get(url, headers={"Accept-Encoding": "identity"}) as resp:
            async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                now = time.perf_counter()
                if now >= deadline:
                    break
                self._count(aggregator, now, start, len(chunk))
