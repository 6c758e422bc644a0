"""Dynamic range analysis: peak/RMS spread, level histogram, loudness range."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ripaudit.analysis.loader import AudioBuffer
from ripaudit.analysis.settings import ScoringThresholds

HISTOGRAM_BINS = 100
LOUDNESS_WINDOW_S = 0.25


@dataclass(frozen=True)
class DynamicRangeResult:
    score: float = 0.0
    peak_db: float = 0.0
    rms_db: float = 0.0
    dynamic_range_db: float = 0.0
    loudness_range: float = 0.0
    compression_ratio: float = 0.0
    dynamic_variation: float = 0.0
    quiet_sample_count: int = 0
    loud_sample_count: int = 0
    is_over_compressed: bool = False
    issues: tuple[str, ...] = ()


def windowed_rms(level: np.ndarray, window: int, hop: int) -> np.ndarray:
    """RMS of windows starting every `hop` samples while start + window < n."""
    n = len(level)
    if window <= 0 or hop <= 0 or n <= window:
        return np.empty(0)
    starts = np.arange(0, n - window, hop)
    csum = np.concatenate(([0.0], np.cumsum(level * level)))
    energy = (csum[starts + window] - csum[starts]) / window
    return np.sqrt(np.maximum(energy, 0.0))


def loudness_range(level: np.ndarray, sample_rate: int) -> float:
    """Spread between the 10th and 95th percentile of short-term loudness."""
    window = int(sample_rate * LOUDNESS_WINDOW_S)
    rms = windowed_rms(level, window, window // 2)
    if len(rms) == 0:
        return 0.0
    loudness = np.sort(-0.691 + 10 * np.log10(rms + 1e-10))
    p10 = loudness[int(len(loudness) * 0.10)]
    p95 = loudness[min(int(len(loudness) * 0.95), len(loudness) - 1)]
    return float(p95 - p10)


def analyze_dynamics(
    buffer: AudioBuffer, thresholds: ScoringThresholds | None = None
) -> DynamicRangeResult:
    """Score dynamic range of a track (0-100)."""
    th = thresholds or ScoringThresholds()
    level = buffer.level()
    if len(level) == 0:
        return DynamicRangeResult()

    peak = float(np.max(level))
    rms = float(np.sqrt(np.mean(level ** 2)))
    peak_db = float(20 * np.log10(peak + 1e-10))
    rms_db = float(20 * np.log10(rms + 1e-10))
    dr = peak_db - rms_db

    compression_ratio = 0.0
    variation = 0.0
    quiet = loud = 0
    if peak > 0:
        bins = np.minimum(HISTOGRAM_BINS - 1, (level / peak * HISTOGRAM_BINS).astype(np.int64))
        hist = np.bincount(bins, minlength=HISTOGRAM_BINS)
        quiet = int(hist[: HISTOGRAM_BINS // 4].sum())
        loud = int(hist[HISTOGRAM_BINS * 3 // 4 :].sum())
        if quiet > 0:
            compression_ratio = loud / quiet
        variation = float(np.count_nonzero(hist > len(level) // 1000))

    lra = loudness_range(level, buffer.sample_rate)

    issues: list[str] = []
    over_compressed = False
    if dr < th.over_compressed_db:
        over_compressed = True
        issues.append(f"Very low dynamic range ({dr:.1f} dB) suggests extreme compression")
    elif dr < th.heavily_compressed_db:
        issues.append(
            f"Low dynamic range ({dr:.1f} dB) - heavily compressed but within acceptable range"
        )
    if compression_ratio > th.compression_ratio_limit:
        issues.append(f"High compression ratio ({compression_ratio:.1f}:1) detected")

    score = (dr - th.dynamic_range_floor_db) * th.dynamic_range_slope

    return DynamicRangeResult(
        score=float(np.clip(score, 0, 100)),
        peak_db=peak_db,
        rms_db=rms_db,
        dynamic_range_db=dr,
        loudness_range=lra,
        compression_ratio=compression_ratio,
        dynamic_variation=variation,
        quiet_sample_count=quiet,
        loud_sample_count=loud,
        is_over_compressed=over_compressed,
        issues=tuple(issues),
    )
