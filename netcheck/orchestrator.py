"""
Test-run orchestration.

Runs the phases in a fixed order::

    IDLE -> LATENCY -> DOWNLOAD -> UPLOAD -> FINALIZE -> DONE

Progress is reported once per finished phase from fixed weights, never
from inside a phase.  A run may only start from IDLE or DONE; a start
request while a run is active is dropped.  The finalize phase builds one
immutable :class:`TestRunResult` from values already in hand and passes
that same object to the completion callback.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import urlsplit

from .config import TestConfig
from .constants import (
    DEFAULT_LATENCY_URL,
    DEFAULT_PING_COUNT,
    HINT_DOWNLINK_SCALE,
    LATENCY_PATH,
    PHASE_WEIGHTS,
    RAMP_TICK_SECONDS,
    SIMULATED_BASELINE_MBPS,
    SIMULATED_UPLOAD_RATIO,
)
from .download import DownloadProbe
from .grading import QualityAssessment, QualityClassifier
from .hints import NO_HINT, ConnectionHint
from .latency import LatencySampler
from .provider import ProviderInfo
from .stats import clamp, round_half_up
from .upload import UploadProbe

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    IDLE = "idle"
    LATENCY = "latency"
    DOWNLOAD = "download"
    UPLOAD = "upload"
    FINALIZE = "finalize"
    DONE = "done"


_WEIGHTS = dict(PHASE_WEIGHTS)
_STARTABLE = (RunPhase.IDLE, RunPhase.DONE)


# ---------------------------------------------------------------------------
# State and result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TestRunResult:
    """Snapshot handed to the completion callback."""

    __test__ = False

    download_mbps: int
    upload_mbps: int
    ping_ms: int
    quality: str
    quality_score: int
    signal_bars: int
    download_measured: bool
    upload_measured: bool
    effective_type: Optional[str] = None
    downlink_mbps: Optional[float] = None
    rtt_ms: Optional[float] = None
    provider: Optional[str] = None
    ip: Optional[str] = None
    server_host: Optional[str] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "download_mbps": self.download_mbps,
            "upload_mbps": self.upload_mbps,
            "ping_ms": self.ping_ms,
            "quality": self.quality,
            "quality_score": self.quality_score,
            "signal_bars": self.signal_bars,
            "download_measured": self.download_measured,
            "upload_measured": self.upload_measured,
            "effective_type": self.effective_type,
            "downlink_mbps": self.downlink_mbps,
            "rtt_ms": self.rtt_ms,
            "provider": self.provider,
            "ip": self.ip,
            "server_host": self.server_host,
            "timestamp": self.timestamp,
        }


@dataclass
class RunState:
    """Mutable per-orchestrator state; one instance lives per orchestrator."""

    phase: RunPhase = RunPhase.IDLE
    progress: int = 0
    ping_ms: int = 0
    download_mbps: int = 0
    upload_mbps: int = 0
    result: Optional[TestRunResult] = None

    @property
    def active(self) -> bool:
        return self.phase not in _STARTABLE


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def server_host(*urls: Optional[str]) -> Optional[str]:
    """Display host for the first non-empty URL; None when unparseable."""
    url = next((u for u in urls if u), None)
    if not url:
        return None
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    if host in ("localhost", "127.0.0.1"):
        return "Local test server"
    return host


def latency_target(config: TestConfig) -> str:
    """Explicit latency URL, else the target origin's favicon, else default."""
    if config.latency_url:
        return config.latency_url
    for url in (config.target_download_url, config.target_upload_url):
        if not url:
            continue
        try:
            parts = urlsplit(url)
        except ValueError:
            continue
        if parts.scheme and parts.netloc:
            return f"{parts.scheme}://{parts.netloc}{LATENCY_PATH}"
    return DEFAULT_LATENCY_URL


def simulated_baseline(downlink_hint_mbps: float, duration_seconds: float) -> float:
    return (downlink_hint_mbps or SIMULATED_BASELINE_MBPS) * max(1.0, duration_seconds / 3.5)


async def simulate_ramp(
    baseline: float,
    ramp_seconds: float,
    on_value: Optional[Callable[[int], None]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    tick: float = RAMP_TICK_SECONDS,
) -> int:
    """
    Placeholder figures for an unconfigured target.

    Steps linearly from 50 % toward 175 % of *baseline* over *ramp_seconds*,
    one value per tick; the last value is exactly 175 %.
    These numbers are not measurements.
    """
    steps = max(1, math.ceil(ramp_seconds / tick))
    for i in range(1, steps + 1):
        await sleep(tick)
        p = clamp(i / steps, 0.0, 1.0)
        value = round_half_up(baseline * (0.5 + p * 1.25))
        if on_value:
            on_value(value)
    return value


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class TestOrchestrator:
    """
    Sequences latency, download and upload measurements into one result.

    Hint and provider state are fields of the orchestrator; the hint
    subscription is registered here and removed by :meth:`close`.
    """

    __test__ = False

    def __init__(
        self,
        config: Optional[TestConfig] = None,
        *,
        hint_source=None,
        provider_lookup=None,
        on_complete: Optional[Callable[[TestRunResult], None]] = None,
        on_progress: Optional[Callable[[RunPhase, int], None]] = None,
        on_metric: Optional[Callable[[str, int], None]] = None,
        latency_sampler: Optional[LatencySampler] = None,
        download_probe: Optional[DownloadProbe] = None,
        upload_probe: Optional[UploadProbe] = None,
        classifier: Optional[QualityClassifier] = None,
        ping_count: int = DEFAULT_PING_COUNT,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config or TestConfig()
        self.state = RunState()
        self.on_complete = on_complete
        self.on_progress = on_progress
        self.on_metric = on_metric
        self.latency_sampler = latency_sampler or LatencySampler()
        self.download_probe = download_probe or DownloadProbe()
        self.upload_probe = upload_probe or UploadProbe()
        self.classifier = classifier or QualityClassifier()
        self.ping_count = ping_count
        self._sleep = sleep

        self._provider_lookup = provider_lookup
        self._provider: Optional[ProviderInfo] = None
        self._provider_task: Optional[asyncio.Task] = None

        self._hint_source = hint_source
        self.hint: ConnectionHint = hint_source.current() if hint_source else NO_HINT
        if hint_source is not None:
            hint_source.subscribe(self._on_hint)
        self.quality = self._classify(0)

    # -- Lifecycle ----------------------------------------------------------

    def close(self) -> None:
        """Unregister from the hint source and drop a pending lookup."""
        if self._hint_source is not None:
            self._hint_source.unsubscribe(self._on_hint)
            self._hint_source = None
        if self._provider_task is not None and not self._provider_task.done():
            self._provider_task.cancel()

    def __enter__(self) -> TestOrchestrator:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()

    # -- Live quality -------------------------------------------------------

    def _on_hint(self, hint: ConnectionHint) -> None:
        self.hint = hint
        self.quality = self._classify(self.state.ping_ms)

    def _classify(self, ping_ms: float) -> QualityAssessment:
        return self.classifier.classify(
            (self.hint.downlink_mbps or 0.0) * HINT_DOWNLINK_SCALE,
            self.hint.rtt_ms or 0.0,
            ping_ms,
        )

    # -- Run ----------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self.state.active

    async def run(self) -> Optional[TestRunResult]:
        """Execute one full run; returns None if a run is already active."""
        if self.state.active:
            logger.debug("start ignored: run already in %s", self.state.phase.value)
            return None

        # Claim the state before the first await so a concurrent start sees it.
        self.state = RunState(phase=RunPhase.LATENCY)
        try:
            return await self._run()
        finally:
            if self.state.phase is not RunPhase.DONE:
                self.state.phase = RunPhase.IDLE

    async def _run(self) -> TestRunResult:
        self._start_provider_lookup()
        cfg = self.config
        completed = 0.0

        def advance(phase: RunPhase) -> None:
            nonlocal completed
            completed += _WEIGHTS[phase.value]
            self.state.progress = min(100, round_half_up(completed * 100))
            logger.info("phase %s finished (%d%%)", phase.value, self.state.progress)
            if self.on_progress:
                self.on_progress(phase, self.state.progress)

        # Latency
        latency = await self.latency_sampler.measure(latency_target(cfg), self.ping_count)
        ping_ms = round_half_up(latency.median_ms)
        self.state.ping_ms = ping_ms
        self.quality = self._classify(ping_ms)
        self._emit("ping", ping_ms)
        advance(RunPhase.LATENCY)

        # Download
        self.state.phase = RunPhase.DOWNLOAD
        download_measured = bool(cfg.target_download_url)
        if download_measured:
            download_mbps = await self._best_of_passes(
                self.download_probe, cfg.target_download_url, cfg.parallel_streams
            )
        else:
            download_mbps = await simulate_ramp(
                simulated_baseline(self.hint.downlink_mbps, cfg.duration_seconds),
                min(15.0, max(2.0, cfg.duration_seconds * 0.9)),
                on_value=lambda v: self._emit("download", v),
                sleep=self._sleep,
            )
        self.state.download_mbps = download_mbps
        self._emit("download", download_mbps)
        advance(RunPhase.DOWNLOAD)

        # Upload
        self.state.phase = RunPhase.UPLOAD
        upload_measured = bool(cfg.target_upload_url)
        if upload_measured:
            upload_mbps = await self._best_of_passes(
                self.upload_probe, cfg.target_upload_url, cfg.upload_streams
            )
        else:
            upload_mbps = await simulate_ramp(
                simulated_baseline(self.hint.downlink_mbps, cfg.duration_seconds)
                * SIMULATED_UPLOAD_RATIO,
                min(12.0, max(1.6, cfg.duration_seconds * 0.8)),
                on_value=lambda v: self._emit("upload", v),
                sleep=self._sleep,
            )
        self.state.upload_mbps = upload_mbps
        self._emit("upload", upload_mbps)
        advance(RunPhase.UPLOAD)

        # Finalize
        self.state.phase = RunPhase.FINALIZE
        result = self._finalize(ping_ms, download_mbps, upload_mbps,
                                download_measured, upload_measured)
        advance(RunPhase.FINALIZE)

        self.state.progress = 100
        self.state.result = result
        self.state.phase = RunPhase.DONE
        if self.on_complete:
            self.on_complete(result)
        return result

    # -- Internals ----------------------------------------------------------

    def _emit(self, metric: str, value: int) -> None:
        if self.on_metric:
            self.on_metric(metric, value)

    async def _best_of_passes(self, probe, url: str, streams: int) -> int:
        cfg = self.config
        best = 0.0
        for i in range(max(1, cfg.passes)):
            res = await probe.run(
                url,
                cfg.duration_seconds,
                streams,
                cfg.warmup_seconds,
                cfg.bucket_width_ms,
                cfg.percentile_mode,
            )
            logger.debug("%s pass %d: %.2f Mbps", probe.direction, i + 1, res.throughput_mbps)
            best = max(best, res.throughput_mbps)
        return round_half_up(best)

    def _start_provider_lookup(self) -> None:
        if self._provider_lookup is None or self._provider is not None:
            return
        if self._provider_task is not None and not self._provider_task.done():
            return
        self._provider_task = asyncio.ensure_future(self._provider_lookup.lookup())

    def _collect_provider(self) -> ProviderInfo:
        """Take the lookup result if it is ready; never wait for it."""
        if self._provider is not None:
            return self._provider
        task = self._provider_task
        if task is None:
            return ProviderInfo()
        if not task.done():
            task.cancel()
            self._provider_task = None
            logger.debug("provider lookup not ready at finalize")
            return ProviderInfo()
        self._provider_task = None
        if task.cancelled() or task.exception() is not None:
            logger.debug("provider lookup failed: %r", None if task.cancelled() else task.exception())
            return ProviderInfo()
        info = task.result()
        if info.found:
            self._provider = info
        return info

    def _finalize(
        self,
        ping_ms: int,
        download_mbps: int,
        upload_mbps: int,
        download_measured: bool,
        upload_measured: bool,
    ) -> TestRunResult:
        hint = self.hint
        quality = self._classify(ping_ms)
        self.quality = quality
        provider = self._collect_provider()
        return TestRunResult(
            download_mbps=download_mbps,
            upload_mbps=upload_mbps,
            ping_ms=ping_ms,
            quality=quality.label.value,
            quality_score=quality.score,
            signal_bars=quality.signal_bars,
            download_measured=download_measured,
            upload_measured=upload_measured,
            effective_type=hint.effective_type,
            downlink_mbps=hint.downlink_mbps if self._hint_source is not None else None,
            rtt_ms=hint.rtt_ms if self._hint_source is not None else None,
            provider=provider.name,
            ip=provider.ip,
            server_host=server_host(self.config.target_download_url, self.config.target_upload_url),
        )
