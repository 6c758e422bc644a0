"""Stereo channel quality: mono detection, correlation, balance, polarity."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ripaudit.analysis.loader import AudioBuffer
from ripaudit.analysis.settings import ScoringThresholds

MONO_SCORE = 50.0


@dataclass(frozen=True)
class ChannelResult:
    score: float = 0.0
    is_mono: bool = False
    is_pseudo_stereo: bool = False
    stereo_width: float = 0.0
    correlation: float = 0.0
    balance: float = 0.0
    phase_coherence: float = 0.0
    level_difference_db: float = 0.0
    has_phase_issues: bool = False
    has_imbalance: bool = False
    has_polarity_inversion: bool = False
    issues: tuple[str, ...] = ()


def is_effectively_mono(buffer: AudioBuffer, th: ScoringThresholds) -> bool:
    n = buffer.num_samples
    if n == 0:
        return True
    diff = np.abs(buffer.left.astype(np.float64) - buffer.right.astype(np.float64))
    return np.count_nonzero(diff > th.mono_sample_tolerance) / n < th.mono_fraction


def analyze_channels(
    buffer: AudioBuffer, thresholds: ScoringThresholds | None = None
) -> ChannelResult:
    """Score stereo image of a track (0-100, 50 for mono)."""
    th = thresholds or ScoringThresholds()
    if is_effectively_mono(buffer, th):
        return ChannelResult(
            score=MONO_SCORE,
            is_mono=True,
            correlation=1.0,
            phase_coherence=1.0,
            issues=("Audio is mono",),
        )

    left = buffer.left.astype(np.float64)
    right = buffer.right.astype(np.float64)

    rms_l = float(np.sqrt(np.mean(left * left)))
    rms_r = float(np.sqrt(np.mean(right * right)))
    denom = rms_l * rms_r
    corr = float(np.mean(left * right) / denom) if denom > 0 else 0.0

    abs_l = float(np.mean(np.abs(left)))
    abs_r = float(np.mean(np.abs(right)))
    balance = (abs_r - abs_l) / (abs_r + abs_l) if abs_r + abs_l > 0 else 0.0
    level_diff = 0.0
    if min(abs_l, abs_r) > 0:
        level_diff = float(20 * np.log10(max(abs_l, abs_r) / min(abs_l, abs_r)))

    width = max(0.0, 1.0 - abs(corr))
    pseudo = th.pseudo_stereo_min_corr < corr < th.pseudo_stereo_max_corr
    phase_issues = corr < th.phase_issue_corr
    imbalance = abs(balance) > th.imbalance_limit
    polarity = corr < th.polarity_corr

    score = 100.0
    issues: list[str] = []
    if pseudo:
        score -= th.pseudo_stereo_penalty
        issues.append("Pseudo-stereo detected (channels nearly identical)")
    if phase_issues:
        score -= th.phase_issue_penalty
        issues.append(f"Phase issues detected (correlation {corr:.2f})")
    if imbalance:
        score -= th.imbalance_penalty
        side = "right" if balance > 0 else "left"
        issues.append(f"Channel imbalance detected ({side} channel louder)")
    if polarity:
        score -= th.polarity_penalty
        issues.append("Possible polarity inversion between channels")
    if level_diff > th.level_difference_db:
        score -= th.level_difference_penalty
        issues.append(f"Channel level difference of {level_diff:.1f} dB")
    if width < th.narrow_width:
        score -= th.narrow_width_penalty
        issues.append("Very narrow stereo image")

    return ChannelResult(
        score=max(0.0, score),
        is_mono=False,
        is_pseudo_stereo=pseudo,
        stereo_width=width,
        correlation=corr,
        balance=balance,
        phase_coherence=abs(corr),
        level_difference_db=level_diff,
        has_phase_issues=phase_issues,
        has_imbalance=imbalance,
        has_polarity_inversion=polarity,
        issues=tuple(issues),
    )
