"""Tests for settings validation, score aggregation and the track processor."""

from __future__ import annotations

import numpy as np
import pytest
from pydantic import ValidationError

from conftest import SR, sine, stereo, write_wav
from ripaudit.analysis.channels import ChannelResult
from ripaudit.analysis.clipping import ClippingResult
from ripaudit.analysis.dynamics import DynamicRangeResult
from ripaudit.analysis.noise import NoiseFloorResult
from ripaudit.analysis.processor import TrackProcessor
from ripaudit.analysis.scoring import build_notes, overall_score, quality_band
from ripaudit.analysis.settings import AnalysisScope, AnalysisSettings, ScoringThresholds
from ripaudit.analysis.spectral import SpectralResult


def _subs(spectral=100.0, dynamics=100.0, penalty=0.0, noise=100.0, channels=100.0):
    return (
        SpectralResult(score=spectral),
        DynamicRangeResult(score=dynamics),
        ClippingResult(penalty=penalty),
        NoiseFloorResult(score=noise),
        ChannelResult(score=channels),
    )


# ── Settings ─────────────────────────────────────────────


def test_default_settings() -> None:
    s = AnalysisSettings()
    assert s.weight_total == 100
    assert s.rerip_threshold == 60
    assert s.clipping_threshold == 0.95
    assert s.max_concurrent_analyses >= 1
    assert s.max_file_size_bytes == 500 * 1024 * 1024


def test_weights_must_sum_to_100() -> None:
    with pytest.raises(ValidationError):
        AnalysisSettings(spectral_weight=50)


def test_reweighted_settings_accepted() -> None:
    s = AnalysisSettings(spectral_weight=30, channel_weight=20)
    assert s.weight_total == 100


def test_ids_scope_requires_ids() -> None:
    with pytest.raises(ValidationError):
        AnalysisSettings(scope=AnalysisScope.IDS)
    assert AnalysisSettings(scope=AnalysisScope.IDS, media_ids=(1, 2)).media_ids == (1, 2)


def test_settings_are_frozen() -> None:
    s = AnalysisSettings()
    with pytest.raises(ValidationError):
        s.rerip_threshold = 10


@pytest.mark.parametrize(
    "anchors",
    [
        {"snr_low_db": 20.0, "snr_high_db": 20.0},
        {"snr_low_db": 30.0, "snr_high_db": 10.0},
        {"rolloff_floor_hz": 14000.0, "rolloff_ceiling_hz": 14000.0},
        {"pseudo_stereo_min_corr": 0.999, "pseudo_stereo_max_corr": 0.95},
        {"poor_noise_floor_db": -20.0},
        {"moderate_clipping_pct": 6.0},
    ],
)
def test_inconsistent_thresholds_rejected(anchors) -> None:
    """Anchors that would collapse a ramp or invert a band are refused."""
    with pytest.raises(ValidationError):
        ScoringThresholds(**anchors)


def test_thresholds_validated_inside_settings() -> None:
    with pytest.raises(ValidationError):
        AnalysisSettings(thresholds={"snr_low_db": 20.0, "snr_high_db": 20.0})
    s = AnalysisSettings(thresholds={"snr_low_db": 10.0, "snr_high_db": 30.0})
    assert s.thresholds.snr_high_db == 30.0


# ── Aggregation ──────────────────────────────────────────


def test_perfect_subscores_give_100() -> None:
    assert overall_score(*_subs(), AnalysisSettings()) == pytest.approx(100)


def test_clipping_penalty_weighted() -> None:
    """A -50 penalty costs half of the 20% clipping weight."""
    score = overall_score(*_subs(penalty=-50), AnalysisSettings())
    assert score == pytest.approx(90)


def test_overall_is_clamped() -> None:
    score = overall_score(*_subs(0, 0, -100, 0, 0), AnalysisSettings())
    assert score == 0


def test_weighted_mix() -> None:
    score = overall_score(*_subs(50, 100, 0, 0, 50), AnalysisSettings())
    assert score == pytest.approx(0.4 * 50 + 0.2 * 100 + 0.2 * 100 + 0.0 + 0.1 * 50)


def test_quality_bands() -> None:
    assert quality_band(90).startswith("Excellent")
    assert quality_band(85).startswith("Excellent")
    assert quality_band(70).startswith("Good")
    assert quality_band(60).startswith("Acceptable")
    assert quality_band(40).startswith("Poor")
    assert quality_band(10).startswith("Very poor")


def test_notes_include_flags() -> None:
    notes = build_notes(
        40,
        SpectralResult(has_lossy_artifacts=True),
        DynamicRangeResult(is_over_compressed=True),
        ClippingResult(clipping_pct=6.0),
        AnalysisSettings(),
    )
    parts = notes.split("; ")
    assert parts[0].startswith("Poor")
    assert "Source appears to be compressed audio (MP3/AAC)" in parts
    assert "Audio shows signs of heavy dynamic range compression" in parts
    assert any("Significant digital clipping" in p for p in parts)


# ── Processor ────────────────────────────────────────────


def test_processor_is_idempotent(music_like, backend) -> None:
    """Same buffer twice gives identical scores and sub-results."""
    proc = TrackProcessor(AnalysisSettings(), backend)
    a = proc.analyze_buffer(music_like, track_id=1)
    b = proc.analyze_buffer(music_like, track_id=1)

    assert a.overall_score == b.overall_score
    assert a.spectral == b.spectral
    assert a.dynamics == b.dynamics
    assert a.clipping == b.clipping
    assert a.noise == b.noise
    assert a.channels == b.channels
    assert a.issues == b.issues


def test_processor_scores_in_range(music_like, backend) -> None:
    result = TrackProcessor(AnalysisSettings(), backend).analyze_buffer(music_like)
    assert result.success
    assert 0 <= result.overall_score <= 100
    for sub in (result.spectral, result.dynamics, result.noise, result.channels):
        assert 0 <= sub.score <= 100
    assert -100 <= result.clipping.penalty <= 0
    assert result.notes


def test_processor_rerip_threshold(backend) -> None:
    tone = sine(440, 2.0, 0.5)
    buf = stereo(tone, tone)
    low = TrackProcessor(AnalysisSettings(rerip_threshold=0), backend).analyze_buffer(buf)
    high = TrackProcessor(AnalysisSettings(rerip_threshold=100), backend).analyze_buffer(buf)
    assert not low.recommend_rerip
    assert high.recommend_rerip


def test_processor_missing_file_is_failed_result(tmp_path, backend) -> None:
    proc = TrackProcessor(AnalysisSettings(), backend)
    result = proc.analyze_track(tmp_path / "missing.flac", track_id=7, title="Gone")

    assert not result.success
    assert result.track_id == 7
    assert "File not found" in result.error
    assert result.overall_score == 0


def test_processor_size_cap_respects_skip_flag(tmp_path, backend) -> None:
    path = write_wav(tmp_path / "t.wav", sine(440, 1.0))
    small = TrackProcessor(
        AnalysisSettings(max_file_size_mb=1, skip_large_files=True), backend
    ).analyze_track(path, 1)
    assert small.success

    big = write_wav(tmp_path / "big.wav", np.zeros((SR * 4, 2)))
    rejected = TrackProcessor(
        AnalysisSettings(max_file_size_mb=1, skip_large_files=True), backend
    ).analyze_track(big, 2)
    allowed = TrackProcessor(
        AnalysisSettings(max_file_size_mb=1, skip_large_files=False), backend
    ).analyze_track(big, 3)
    assert not rejected.success
    assert "File too large" in rejected.error
    assert allowed.success


def test_processor_decodes_file(tmp_path, backend) -> None:
    left = sine(440, 2.0, 0.4)
    right = sine(660, 2.0, 0.4)
    path = write_wav(tmp_path / "Artist - Song.wav", np.column_stack([left, right]))

    result = TrackProcessor(AnalysisSettings(), backend).analyze_track(
        path, 3, title="Song", artist="Artist"
    )
    assert result.success
    assert result.duration_s == pytest.approx(2.0)
    assert result.display_name == "Artist - Song"
    assert result.to_dict()["track_id"] == 3
