"""Clipping detection: runs of samples at or above full-scale threshold."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ripaudit.analysis.loader import AudioBuffer
from ripaudit.analysis.settings import ScoringThresholds

DEFAULT_CLIP_THRESHOLD = 0.95


@dataclass(frozen=True)
class ClippingResult:
    penalty: float = 0.0
    clipped_samples: int = 0
    clipping_pct: float = 0.0
    clipping_events: int = 0
    max_consecutive: int = 0
    avg_clip_duration_ms: float = 0.0
    has_sustained_clipping: bool = False
    true_peak_db: float = -200.0
    has_intersample_peaks: bool = False
    issues: tuple[str, ...] = ()


def clip_runs(samples: np.ndarray, threshold: float) -> np.ndarray:
    """Lengths of each contiguous run where |x| >= threshold."""
    mask = np.abs(samples) >= threshold
    if not mask.any():
        return np.empty(0, dtype=np.int64)
    edges = np.diff(np.concatenate(([0], mask.astype(np.int8), [0])))
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)
    return ends - starts


def analyze_clipping(
    buffer: AudioBuffer,
    threshold: float = DEFAULT_CLIP_THRESHOLD,
    thresholds: ScoringThresholds | None = None,
) -> ClippingResult:
    """Penalty in [-100, 0] for digital clipping."""
    th = thresholds or ScoringThresholds()
    n = buffer.num_samples
    if n == 0:
        return ClippingResult()

    runs = [clip_runs(buffer.left, threshold), clip_runs(buffer.right, threshold)]
    clipped = int(sum(int(r.sum()) for r in runs))
    events = int(sum(len(r) for r in runs))
    max_run = int(max((int(r.max()) for r in runs if len(r)), default=0))

    pct = clipped / (n * 2) * 100
    avg_ms = (clipped / events) / buffer.sample_rate * 1000 if events else 0.0
    sustained = max_run > buffer.sample_rate * th.sustained_clipping_ms / 1000

    peak = float(max(np.max(np.abs(buffer.left)), np.max(np.abs(buffer.right))))
    true_peak_db = float(20 * np.log10(peak * th.true_peak_oversample + 1e-10))
    intersample = true_peak_db > 0.0

    penalty = 0.0
    issues: list[str] = []
    if pct > th.significant_clipping_pct:
        penalty -= min(th.significant_clipping_max_penalty, pct * th.significant_clipping_slope)
        issues.append(f"Significant digital clipping detected: {pct:.2f}% of samples")
    elif pct > th.moderate_clipping_pct:
        penalty -= min(th.moderate_clipping_max_penalty, pct * th.moderate_clipping_slope)
        issues.append(f"Moderate clipping detected: {pct:.2f}% of samples - likely from mastering")
    if sustained:
        penalty -= th.sustained_clipping_penalty
        issues.append(f"Sustained clipping detected: {max_run} consecutive samples")
    if true_peak_db > th.true_peak_limit_db:
        penalty -= th.true_peak_penalty
        issues.append(f"Extreme intersample peaks detected: {true_peak_db:.1f} dBTP")

    return ClippingResult(
        penalty=float(np.clip(penalty, -100, 0)),
        clipped_samples=clipped,
        clipping_pct=pct,
        clipping_events=events,
        max_consecutive=max_run,
        avg_clip_duration_ms=avg_ms,
        has_sustained_clipping=sustained,
        true_peak_db=true_peak_db,
        has_intersample_peaks=intersample,
        issues=tuple(issues),
    )
