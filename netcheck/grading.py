"""
Connection quality grading.

Blends a cheap bandwidth hint with latency into a 0-100 score, a label
and a four-bar signal indicator.  Independent of the measured
throughput so it can be recomputed live whenever a hint changes.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from .stats import clamp, round_half_up


class QualityLabel(str, Enum):
    POOR = "Poor"
    FAIR = "Fair"
    GOOD = "Good"
    EXCELLENT = "Excellent"


# ---------------------------------------------------------------------------
# Grading
# ---------------------------------------------------------------------------

_THRESHOLDS = [
    (80, QualityLabel.EXCELLENT, "good"),
    (60, QualityLabel.GOOD,      "good"),
    (40, QualityLabel.FAIR,      "fair"),
    (0,  QualityLabel.POOR,      "poor"),
]

BANDWIDTH_WEIGHT = 0.6
LATENCY_WEIGHT = 0.4
BANDWIDTH_CEILING_MBPS = 100.0
LATENCY_WINDOW_MS = 200.0
SIGNAL_BARS = 4


@dataclass(frozen=True)
class QualityAssessment:
    """Score in [0, 100] with its discrete label."""

    score: int = 0
    label: QualityLabel = QualityLabel.POOR

    @property
    def tone(self) -> str:
        return _tone_for(self.label)

    @property
    def signal_bars(self) -> int:
        return signal_bars(self.score)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "label": self.label.value,
            "signal_bars": self.signal_bars,
        }


def label_for_score(score: int) -> QualityLabel:
    for threshold, label, _ in _THRESHOLDS:
        if score >= threshold:
            return label
    return QualityLabel.POOR


def _tone_for(label: QualityLabel) -> str:
    for _, candidate, tone in _THRESHOLDS:
        if candidate is label:
            return tone
    return "poor"


def effective_latency(rtt_hint_ms: float, measured_ping_ms: float) -> float:
    """Measured ping wins; the rtt hint is the fallback; otherwise zero."""
    if measured_ping_ms and measured_ping_ms > 0:
        return measured_ping_ms
    if rtt_hint_ms and rtt_hint_ms > 0:
        return rtt_hint_ms
    return 0.0


def classify(
    downlink_hint_mbps: float = 0.0,
    rtt_hint_ms: float = 0.0,
    measured_ping_ms: float = 0.0,
) -> QualityAssessment:
    """
    Score = 60 % bandwidth hint (saturating at 100 Mbps) + 40 % inverted
    latency over a 0-200 ms window, rounded half-up and clamped to 0..100.
    """
    latency = effective_latency(rtt_hint_ms, measured_ping_ms)
    bandwidth_part = clamp(downlink_hint_mbps or 0.0, 0, BANDWIDTH_CEILING_MBPS) / BANDWIDTH_CEILING_MBPS
    latency_part = clamp(LATENCY_WINDOW_MS - latency, 0, LATENCY_WINDOW_MS) / LATENCY_WINDOW_MS

    raw = bandwidth_part * BANDWIDTH_WEIGHT * 100 + latency_part * LATENCY_WEIGHT * 100
    score = int(clamp(round_half_up(raw), 0, 100))
    return QualityAssessment(score=score, label=label_for_score(score))


def signal_bars(score: int) -> int:
    """Filled bars out of four; never fewer than one."""
    return max(1, math.ceil(clamp(score, 0, 100) / 100 * SIGNAL_BARS))


class QualityClassifier:
    """Callable wrapper so the orchestrator can take a replaceable classifier."""

    def classify(
        self,
        downlink_hint_mbps: float = 0.0,
        rtt_hint_ms: float = 0.0,
        measured_ping_ms: float = 0.0,
    ) -> QualityAssessment:
        return classify(downlink_hint_mbps, rtt_hint_ms, measured_ping_ms)
