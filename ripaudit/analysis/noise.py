"""Noise floor analysis: quiet passages, SNR, hum and tape hiss.

The floor is measured from passages where the windowed level stays under
the detection threshold for longer than 250 ms. Hum and hiss are judged
from the averaged spectrum of those same passages.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from ripaudit.analysis.dynamics import windowed_rms
from ripaudit.analysis.loader import AudioBuffer
from ripaudit.analysis.settings import ScoringThresholds
from ripaudit.analysis.spectral import average_spectrum

DEFAULT_NOISE_THRESHOLD_DB = -40.0
WINDOW_S = 0.1
MIN_PASSAGE_S = 0.25
MAX_NOISE_SPECTRUM_S = 10.0
HUM_FREQUENCIES = (50.0, 60.0)
HUM_BAND_HZ = (20.0, 200.0)
LOW_BAND_HZ = 100.0
HIGH_BAND_HZ = 10000.0


@dataclass(frozen=True)
class NoiseFloorResult:
    score: float = 0.0
    noise_floor_db: float = 0.0
    snr_db: float = 0.0
    noise_variation_db: float = 0.0
    quiet_passages: int = 0
    average_quiet_db: float = 0.0
    quietest_db: float = 0.0
    lf_noise_db: float = -200.0
    hf_noise_db: float = -200.0
    has_hum: bool = False
    hum_level_db: float = 0.0
    has_tape_hiss: bool = False
    issues: tuple[str, ...] = ()


@dataclass(frozen=True)
class QuietPassage:
    start: int
    end: int
    level_db: float


# ── Passage detection ────────────────────────────────────


def find_quiet_passages(
    level: npt.NDArray[np.float64], sample_rate: int, threshold_db: float
) -> list[QuietPassage]:
    """Contiguous quiet regions longer than MIN_PASSAGE_S."""
    window = int(sample_rate * WINDOW_S)
    hop = max(1, window // 2)
    rms = windowed_rms(level, window, hop)
    if len(rms) == 0:
        return []

    threshold = 10 ** (threshold_db / 20)
    min_len = int(sample_rate * MIN_PASSAGE_S)
    spans: list[tuple[int, int]] = []
    start: int | None = None
    for idx, value in enumerate(rms):
        pos = idx * hop
        if value < threshold:
            if start is None:
                start = pos
        elif start is not None:
            if pos - start > min_len:
                spans.append((start, pos))
            start = None
    if start is not None and len(level) - start > min_len:
        spans.append((start, len(level)))

    passages = []
    for s, e in spans:
        seg = level[s:e]
        seg_rms = float(np.sqrt(np.mean(seg * seg)))
        passages.append(QuietPassage(s, e, float(20 * np.log10(seg_rms + 1e-10))))
    return passages


def _band_level_db(spectrum: np.ndarray, freq_per_bin: float, lo: float, hi: float) -> float:
    band = spectrum[int(lo / freq_per_bin) : int(hi / freq_per_bin) + 1]
    if len(band) == 0:
        return -200.0
    # single-sided amplitude, Hann coherent gain 0.5
    scale = 4.0 / (2 * len(spectrum))
    return float(20 * np.log10(np.mean(band) * scale + 1e-10))


def _detect_hum_and_hiss(
    buffer: AudioBuffer, passages: list[QuietPassage], th: ScoringThresholds
) -> tuple[bool, float, float, float, float]:
    """Returns (has_hum, hum_prominence_db, hf_fraction, lf_db, hf_db)."""
    if not passages:
        return False, 0.0, 0.0, -200.0, -200.0

    mono = buffer.mono()
    budget = int(buffer.sample_rate * MAX_NOISE_SPECTRUM_S)
    pieces = []
    for p in passages:
        if budget <= 0:
            break
        piece = mono[p.start : min(p.end, p.start + budget)]
        pieces.append(piece)
        budget -= len(piece)
    spectrum = average_spectrum(np.concatenate(pieces))
    if spectrum is None:
        return False, 0.0, 0.0, -200.0, -200.0

    fpb = buffer.nyquist / len(spectrum)

    hum_db = 0.0
    ref_band = spectrum[int(HUM_BAND_HZ[0] / fpb) : int(HUM_BAND_HZ[1] / fpb) + 1]
    reference = float(np.median(ref_band)) if len(ref_band) else 0.0
    for freq in HUM_FREQUENCIES:
        b = int(round(freq / fpb))
        peak = float(np.max(spectrum[max(0, b - 1) : b + 2]))
        if peak <= 0:
            continue
        prominence = float(20 * np.log10(peak / max(reference, 1e-12)))
        hum_db = max(hum_db, prominence)
    has_hum = hum_db > th.hum_prominence_db

    power = spectrum ** 2
    total = float(np.sum(power))
    hf_fraction = float(np.sum(power[int(HIGH_BAND_HZ / fpb) :]) / total) if total > 0 else 0.0

    lf_db = _band_level_db(spectrum, fpb, 0.0, LOW_BAND_HZ)
    hf_db = _band_level_db(spectrum, fpb, HIGH_BAND_HZ, buffer.nyquist)
    return has_hum, hum_db, hf_fraction, lf_db, hf_db


# ── Analysis ─────────────────────────────────────────────


def snr_score(snr_db: float, th: ScoringThresholds) -> float:
    """Linear ramp through (snr_low_db, snr_low_score) and (snr_high_db, snr_high_score)."""
    slope = (th.snr_high_score - th.snr_low_score) / (th.snr_high_db - th.snr_low_db)
    return float(np.clip(th.snr_low_score + (snr_db - th.snr_low_db) * slope, 0, 100))


def analyze_noise_floor(
    buffer: AudioBuffer,
    threshold_db: float = DEFAULT_NOISE_THRESHOLD_DB,
    thresholds: ScoringThresholds | None = None,
) -> NoiseFloorResult:
    """Score background noise of a track (0-100)."""
    th = thresholds or ScoringThresholds()
    level = buffer.level()
    if len(level) == 0:
        return NoiseFloorResult()

    passages = find_quiet_passages(level, buffer.sample_rate, threshold_db)
    levels = np.array([p.level_db for p in passages])

    floor = float(np.mean(levels)) if len(levels) else th.fallback_noise_floor_db
    if floor < -120:
        floor = th.fallback_noise_floor_db
    quietest = float(np.min(levels)) if len(levels) else floor
    variation = float(np.std(levels)) if len(levels) > 1 else 0.0

    signal_db = float(20 * np.log10(np.sqrt(np.mean(level * level)) + 1e-10))
    snr = signal_db - floor

    has_hum, hum_db, hf_fraction, lf_db, hf_db = _detect_hum_and_hiss(buffer, passages, th)
    has_hiss = hf_fraction > th.hiss_hf_fraction and floor > th.hiss_min_floor_db

    issues: list[str] = []
    if floor > th.very_poor_noise_floor_db:
        issues.append("High noise floor suggests poor recording conditions or equipment")
    if variation > th.noise_variation_db:
        issues.append("Variable noise floor suggests inconsistent recording conditions")
    if has_hum:
        issues.append(f"Mains hum detected ({hum_db:.1f} dB above surrounding noise)")
    if has_hiss:
        issues.append("Broadband high-frequency hiss detected in quiet passages")

    score = snr_score(snr, th)
    if floor > th.very_poor_noise_floor_db:
        score *= th.very_poor_noise_factor
        issues.append(f"Very poor noise floor: {floor:.1f} dB")
    elif floor > th.poor_noise_floor_db:
        score *= th.poor_noise_factor
        issues.append(f"Poor noise floor: {floor:.1f} dB")
    if has_hiss:
        score *= th.hiss_factor
    if has_hum:
        score *= th.hum_factor

    return NoiseFloorResult(
        score=float(np.clip(score, 0, 100)),
        noise_floor_db=floor,
        snr_db=snr,
        noise_variation_db=variation,
        quiet_passages=len(passages),
        average_quiet_db=float(np.mean(levels)) if len(levels) else floor,
        quietest_db=quietest,
        lf_noise_db=lf_db,
        hf_noise_db=hf_db,
        has_hum=has_hum,
        hum_level_db=hum_db if has_hum else 0.0,
        has_tape_hiss=has_hiss,
        issues=tuple(issues),
    )
