"""Network quality check library -- probes, aggregation, grading, orchestration."""

from .config import TestConfig
from .download import DownloadProbe
from .grading import QualityAssessment, QualityClassifier, QualityLabel, classify, signal_bars
from .hints import ConnectionHint, StaticHintSource
from .latency import LatencyResult, LatencySampler
from .orchestrator import RunPhase, RunState, TestOrchestrator, TestRunResult, server_host
from .provider import ProviderInfo, ProviderLookup
from .stats import (
    RateBucketAggregator,
    Reducer,
    format_latency,
    format_speed,
    median_sample,
    nearest_rank_percentile,
)
from .throughput import ProbeResult, ThroughputProbe
from .upload import UploadProbe

__all__ = [
    "ConnectionHint",
    "DownloadProbe",
    "LatencyResult",
    "LatencySampler",
    "ProbeResult",
    "ProviderInfo",
    "ProviderLookup",
    "QualityAssessment",
    "QualityClassifier",
    "QualityLabel",
    "RateBucketAggregator",
    "Reducer",
    "RunPhase",
    "RunState",
    "StaticHintSource",
    "TestConfig",
    "TestOrchestrator",
    "TestRunResult",
    "ThroughputProbe",
    "UploadProbe",
    "classify",
    "format_latency",
    "format_speed",
    "median_sample",
    "nearest_rank_percentile",
    "server_host",
    "signal_bars",
]
