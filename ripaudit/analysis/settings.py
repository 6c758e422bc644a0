"""Run-time analysis settings and scoring thresholds.

All heuristic constants used by the analyzers live on ScoringThresholds so
that a caller can tune them without touching analyzer code.
"""

from __future__ import annotations

import os
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

WEIGHT_TOTAL = 100.0


class AnalysisScope(StrEnum):
    ALL = "all"
    IDS = "ids"
    CATEGORIES = "categories"


class ScoringThresholds(BaseModel):
    """Heuristic anchors for the five analyzers."""

    model_config = ConfigDict(frozen=True)

    # Spectral
    rolloff_ratio: float = 0.707
    rolloff_floor_hz: float = 4000.0
    rolloff_ceiling_hz: float = 14000.0
    hf_content_start_hz: float = 15000.0
    hf_content_scale: float = 20.0  # score points per % of HF energy
    lossy_artifact_discount: float = 0.5
    lossy_cutoff_ratio: float = 0.1  # 16 kHz band vs 14 kHz band
    lossy_cutoff_confidence: float = 0.8
    lossy_air_ratio: float = 0.05  # 20 kHz band vs 14 kHz band
    lossy_air_confidence: float = 0.6
    lossy_low_mid_ratio: float = 10.0
    lossy_low_mid_confidence: float = 0.4

    # Dynamics
    dynamic_range_floor_db: float = 3.0
    dynamic_range_slope: float = 8.33
    over_compressed_db: float = 4.0
    heavily_compressed_db: float = 6.0
    compression_ratio_limit: float = 10.0

    # Clipping
    moderate_clipping_pct: float = 3.0
    significant_clipping_pct: float = 5.0
    sustained_clipping_ms: float = 10.0
    true_peak_oversample: float = 1.05
    true_peak_limit_db: float = 1.0
    significant_clipping_slope: float = 8.0
    significant_clipping_max_penalty: float = 50.0
    moderate_clipping_slope: float = 3.0
    moderate_clipping_max_penalty: float = 15.0
    sustained_clipping_penalty: float = 30.0
    true_peak_penalty: float = 5.0

    # Noise floor
    snr_low_db: float = 12.0
    snr_low_score: float = 80.0
    snr_high_db: float = 32.0
    snr_high_score: float = 100.0
    fallback_noise_floor_db: float = -80.0
    very_poor_noise_floor_db: float = -30.0
    poor_noise_floor_db: float = -35.0
    noise_variation_db: float = 10.0
    hum_prominence_db: float = 12.0
    hiss_hf_fraction: float = 0.4
    hiss_min_floor_db: float = -60.0
    very_poor_noise_factor: float = 0.6
    poor_noise_factor: float = 0.8
    hiss_factor: float = 0.8
    hum_factor: float = 0.9

    # Channels
    mono_sample_tolerance: float = 0.001
    mono_fraction: float = 0.01
    pseudo_stereo_min_corr: float = 0.95
    pseudo_stereo_max_corr: float = 0.999
    phase_issue_corr: float = -0.5
    polarity_corr: float = -0.8
    imbalance_limit: float = 0.2
    level_difference_db: float = 3.0
    narrow_width: float = 0.05
    pseudo_stereo_penalty: float = 20.0
    phase_issue_penalty: float = 30.0
    imbalance_penalty: float = 15.0
    polarity_penalty: float = 25.0
    level_difference_penalty: float = 10.0
    narrow_width_penalty: float = 10.0

    @model_validator(mode="after")
    def _check_anchors(self) -> ScoringThresholds:
        if self.snr_high_db <= self.snr_low_db:
            raise ValueError("snr_high_db must be greater than snr_low_db")
        if self.rolloff_ceiling_hz <= self.rolloff_floor_hz:
            raise ValueError("rolloff_ceiling_hz must be greater than rolloff_floor_hz")
        if self.pseudo_stereo_min_corr >= self.pseudo_stereo_max_corr:
            raise ValueError("pseudo_stereo_min_corr must be less than pseudo_stereo_max_corr")
        if self.poor_noise_floor_db > self.very_poor_noise_floor_db:
            raise ValueError("poor_noise_floor_db must not exceed very_poor_noise_floor_db")
        if self.moderate_clipping_pct > self.significant_clipping_pct:
            raise ValueError("moderate_clipping_pct must not exceed significant_clipping_pct")
        return self


class AnalysisSettings(BaseModel):
    """Caller-supplied configuration for one analysis run."""

    model_config = ConfigDict(frozen=True)

    scope: AnalysisScope = AnalysisScope.ALL
    media_ids: tuple[int, ...] = ()
    include_categories: tuple[str, ...] = ()
    exclude_categories: tuple[str, ...] = ()

    max_concurrent_analyses: int = Field(default_factory=lambda: os.cpu_count() or 1, ge=1)
    max_file_size_mb: int = Field(default=500, gt=0)
    skip_large_files: bool = True
    max_analysis_seconds: float = Field(default=300.0, gt=0)
    chunk_seconds: float = Field(default=30.0, gt=0)

    rerip_threshold: float = Field(default=60.0, ge=0, le=100)
    clipping_threshold: float = Field(default=0.95, gt=0, le=1.0)
    noise_floor_threshold_db: float = Field(default=-40.0, lt=0)

    spectral_weight: float = Field(default=40.0, ge=0)
    dynamic_range_weight: float = Field(default=20.0, ge=0)
    clipping_weight: float = Field(default=20.0, ge=0)
    noise_floor_weight: float = Field(default=10.0, ge=0)
    channel_weight: float = Field(default=10.0, ge=0)

    thresholds: ScoringThresholds = Field(default_factory=ScoringThresholds)

    catalog_request_delay_s: float = Field(default=0.25, ge=0)
    catalog_max_retries: int = Field(default=2, ge=0)
    catalog_retry_base_delay_s: float = Field(default=2.0, ge=0)

    @property
    def weight_total(self) -> float:
        return (
            self.spectral_weight
            + self.dynamic_range_weight
            + self.clipping_weight
            + self.noise_floor_weight
            + self.channel_weight
        )

    @model_validator(mode="after")
    def _check_weights(self) -> AnalysisSettings:
        if abs(self.weight_total - WEIGHT_TOTAL) > 1e-6:
            raise ValueError(
                f"Score weights must sum to {WEIGHT_TOTAL:g}, got {self.weight_total:g}"
            )
        return self

    @model_validator(mode="after")
    def _check_scope(self) -> AnalysisSettings:
        if self.scope == AnalysisScope.IDS and not self.media_ids:
            raise ValueError("scope 'ids' requires at least one media id")
        if self.scope == AnalysisScope.CATEGORIES and not (
            self.include_categories or self.exclude_categories
        ):
            raise ValueError("scope 'categories' requires an include or exclude list")
        return self

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024
