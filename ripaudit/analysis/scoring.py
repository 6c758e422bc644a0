"""Score aggregation: weighted overall score, notes and issue list."""

from __future__ import annotations

import numpy as np

from ripaudit.analysis.channels import ChannelResult
from ripaudit.analysis.clipping import ClippingResult
from ripaudit.analysis.dynamics import DynamicRangeResult
from ripaudit.analysis.noise import NoiseFloorResult
from ripaudit.analysis.settings import WEIGHT_TOTAL, AnalysisSettings
from ripaudit.analysis.spectral import SpectralResult

QUALITY_BANDS: tuple[tuple[float, str], ...] = (
    (85.0, "Excellent quality audio - no significant issues detected"),
    (70.0, "Good quality audio - minor issues may be present"),
    (55.0, "Acceptable quality audio - some degradation detected"),
    (35.0, "Poor quality audio - significant issues detected"),
    (0.0, "Very poor quality audio - re-rip strongly recommended"),
)


def overall_score(
    spectral: SpectralResult,
    dynamics: DynamicRangeResult,
    clipping: ClippingResult,
    noise: NoiseFloorResult,
    channels: ChannelResult,
    settings: AnalysisSettings,
) -> float:
    """Weighted mean of the sub-scores, clamped to [0, 100]."""
    weighted = (
        spectral.score * settings.spectral_weight
        + dynamics.score * settings.dynamic_range_weight
        + max(0.0, 100.0 + clipping.penalty) * settings.clipping_weight
        + noise.score * settings.noise_floor_weight
        + channels.score * settings.channel_weight
    )
    return float(np.clip(weighted / WEIGHT_TOTAL, 0, 100))


def quality_band(score: float) -> str:
    for floor, text in QUALITY_BANDS:
        if score >= floor:
            return text
    return QUALITY_BANDS[-1][1]


def build_notes(
    score: float,
    spectral: SpectralResult,
    dynamics: DynamicRangeResult,
    clipping: ClippingResult,
    settings: AnalysisSettings,
) -> str:
    """Band summary plus high-severity flags, joined with "; "."""
    th = settings.thresholds
    notes = [quality_band(score)]
    if spectral.has_lossy_artifacts:
        notes.append("Source appears to be compressed audio (MP3/AAC)")
    if dynamics.is_over_compressed:
        notes.append("Audio shows signs of heavy dynamic range compression")
    if clipping.clipping_pct > th.significant_clipping_pct:
        notes.append("Significant digital clipping detected - original source may be damaged")
    elif clipping.clipping_pct > th.moderate_clipping_pct:
        notes.append("Moderate clipping detected - likely from mastering process")
    return "; ".join(notes)


def collect_issues(
    spectral: SpectralResult,
    dynamics: DynamicRangeResult,
    clipping: ClippingResult,
    noise: NoiseFloorResult,
    channels: ChannelResult,
) -> tuple[str, ...]:
    return (
        spectral.issues + dynamics.issues + clipping.issues + noise.issues + channels.issues
    )
