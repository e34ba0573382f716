"""
Upload throughput probe.

Uses HTTP POST with a chunked body that is generated on demand: the body
generator yields zero-filled ``CHUNK_SIZE`` chunks until the stream's
deadline, then ends the body.  Each chunk is counted the moment it is
handed to the transport.
"""
from __future__ import annotations

import asyncio
import time
from typing import AsyncIterator, Callable, Optional

import aiohttp

from .constants import CHUNK_SIZE, UPLOAD_CONTENT_TYPE, UPLOAD_YIELD_INTERVAL
from .stats import RateBucketAggregator
from .throughput import ProbeResult, ThroughputProbe

__all__ = ["UploadProbe", "ProbeResult"]


class UploadProbe(ThroughputProbe):
    """Parallel streaming POSTs of generated data."""

    direction = "upload"

    def __init__(self, is_visible: Optional[Callable[[], bool]] = None) -> None:
        super().__init__(is_visible)
        self._chunk = bytes(CHUNK_SIZE)

    async def _body(
        self,
        aggregator: RateBucketAggregator,
        start: float,
        deadline: float,
    ) -> AsyncIterator[bytes]:
        since_yield = 0
        while True:
            now = time.perf_counter()
            if now >= deadline:
                return
            self._count(aggregator, now, start, len(self._chunk))

            # Let the other streams run when the transport never blocks.
            since_yield += len(self._chunk)
            if since_yield >= UPLOAD_YIELD_INTERVAL:
                since_yield = 0
                await asyncio.sleep(0)

            yield self._chunk

    async def _stream(
        self,
        session: aiohttp.ClientSession,
        url: str,
        aggregator: RateBucketAggregator,
        start: float,
        deadline: float,
    ) -> None:
        async with session.post(
            url,
            data=self._body(aggregator, start, deadline),
            headers={"Content-Type": UPLOAD_CONTENT_TYPE},
        ) as resp:
            await resp.read()
