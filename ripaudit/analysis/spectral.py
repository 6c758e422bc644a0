"""Spectral analysis: bandwidth, HF content and lossy-codec fingerprints.

A windowed FFT is averaged over the whole track. Lossy encoders leave a
sharp shelf in that average (typically at 16 kHz for MP3 at modest
bitrates), which is what the artifact heuristic looks for.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
from numpy.lib.stride_tricks import sliding_window_view
from scipy.signal import windows

from ripaudit.analysis.loader import AudioBuffer
from ripaudit.analysis.settings import ScoringThresholds

FFT_SIZE = 8192
HOP_SIZE = FFT_SIZE // 4
FRAME_BATCH = 64

LOSSY_CUTOFF_HZ = 16000.0
LOSSY_REFERENCE_HZ = 14000.0
LOSSY_AIR_HZ = 20000.0
HF_NOISE_START_HZ = 10000.0


@dataclass(frozen=True)
class SpectralResult:
    score: float = 0.0
    rolloff_hz: float = 0.0
    hf_content_pct: float = 0.0
    centroid_hz: float = 0.0
    bandwidth_hz: float = 0.0
    smoothness: float = 0.0
    hf_noise: float = 0.0
    has_lossy_artifacts: bool = False
    artifact_confidence: float = 0.0
    suspicious_frequencies: tuple[float, ...] = ()
    issues: tuple[str, ...] = ()


# ── Spectrum ─────────────────────────────────────────────


def average_spectrum(
    signal: npt.NDArray[np.float64],
    fft_size: int = FFT_SIZE,
    hop: int | None = None,
) -> npt.NDArray[np.float64] | None:
    """Mean magnitude spectrum (fft_size // 2 bins) over Hann-windowed frames.

    Frames start every `hop` samples while start + fft_size < len(signal).
    Returns None when the signal is too short for a single frame.
    """
    hop = hop or fft_size // 4
    if len(signal) <= fft_size:
        return None
    n_frames = (len(signal) - fft_size - 1) // hop + 1
    window = windows.hann(fft_size, sym=True)
    frames = sliding_window_view(signal, fft_size)[::hop][:n_frames]

    total = np.zeros(fft_size // 2, dtype=np.float64)
    for start in range(0, n_frames, FRAME_BATCH):
        batch = frames[start:start + FRAME_BATCH] * window
        mags = np.abs(np.fft.rfft(batch, axis=1))[:, : fft_size // 2]
        total += mags.sum(axis=0)
    return total / n_frames


def _band_mean(spectrum: np.ndarray, start: int, width: int) -> float:
    band = spectrum[start:start + width]
    return float(np.mean(band)) if len(band) else 0.0


def _rolloff(spectrum: np.ndarray, freq_per_bin: float, nyquist: float, ratio: float) -> float:
    n = len(spectrum)
    quarter = n // 4
    peak = float(np.max(spectrum[quarter:])) if n > quarter else 0.0
    threshold = peak * ratio
    above = np.nonzero(spectrum[quarter:] > threshold)[0]
    if len(above) == 0:
        return nyquist
    return float((quarter + above[-1]) * freq_per_bin)


def _detect_lossy_artifacts(
    spectrum: np.ndarray, freq_per_bin: float, th: ScoringThresholds
) -> tuple[bool, float, list[float], list[str]]:
    n = len(spectrum)
    has_artifacts = False
    confidence = 0.0
    suspicious: list[float] = []
    issues: list[str] = []

    c14 = int(LOSSY_REFERENCE_HZ / freq_per_bin)
    c16 = int(LOSSY_CUTOFF_HZ / freq_per_bin)
    c20 = int(LOSSY_AIR_HZ / freq_per_bin)
    if c16 < n and c20 < n:
        e14 = _band_mean(spectrum, c14, 100)
        e16 = _band_mean(spectrum, c16, 100)
        e20 = _band_mean(spectrum, c20, 50)
        if e14 > 0 and e16 / e14 < th.lossy_cutoff_ratio:
            has_artifacts = True
            confidence = th.lossy_cutoff_confidence
            suspicious.append(LOSSY_CUTOFF_HZ)
            issues.append("Sharp frequency cutoff at ~16kHz suggests MP3 encoding")
        elif e14 > 0 and e20 / e14 < th.lossy_air_ratio:
            has_artifacts = True
            confidence = th.lossy_air_confidence
            issues.append("High frequency rolloff suggests compressed source")

    low = spectrum[: n // 8]
    mid = spectrum[n // 4 : n // 2]
    low = low[low > 0]
    mid = mid[mid > 0]
    if len(low) and len(mid):
        low_mean = float(np.mean(low))
        mid_mean = float(np.mean(mid))
        if mid_mean > 0 and low_mean / mid_mean > th.lossy_low_mid_ratio:
            issues.append("Unusual noise distribution suggests digital compression artifacts")
            confidence = max(confidence, th.lossy_low_mid_confidence)

    return has_artifacts, confidence, suspicious, issues


# ── Analysis ─────────────────────────────────────────────


def analyze_spectral(
    buffer: AudioBuffer, thresholds: ScoringThresholds | None = None
) -> SpectralResult:
    """Score frequency content of a track (0-100)."""
    th = thresholds or ScoringThresholds()
    spectrum = average_spectrum(buffer.mono())
    if spectrum is None:
        return SpectralResult(issues=("Unable to perform spectral analysis - file too short",))

    nyquist = buffer.nyquist
    n = len(spectrum)
    freq_per_bin = nyquist / n
    freqs = np.arange(n) * freq_per_bin
    total = float(np.sum(spectrum))

    rolloff = _rolloff(spectrum, freq_per_bin, nyquist, th.rolloff_ratio)

    hf_pct = 0.0
    hf_start = int(th.hf_content_start_hz / freq_per_bin)
    if hf_start < n and total > 0:
        hf_pct = float(np.sum(spectrum[hf_start:]) / total * 100)

    centroid = bandwidth = 0.0
    if total > 0:
        centroid = float(np.sum(freqs * spectrum) / total)
        bandwidth = float(np.sqrt(np.sum((freqs - centroid) ** 2 * spectrum) / total))

    mean = float(np.mean(spectrum))
    smoothness = 100.0 - min(100.0, float(np.std(spectrum)) / mean * 100) if mean > 0 else 0.0

    hf_noise = 0.0
    hf_band = spectrum[int(HF_NOISE_START_HZ / freq_per_bin):]
    if len(hf_band) and np.mean(hf_band) > 0:
        hf_noise = float(np.std(hf_band) / np.mean(hf_band))

    has_artifacts, confidence, suspicious, issues = _detect_lossy_artifacts(
        spectrum, freq_per_bin, th
    )

    span = th.rolloff_ceiling_hz - th.rolloff_floor_hz
    rolloff_score = float(np.clip((rolloff - th.rolloff_floor_hz) / span * 100, 0, 100))
    hf_score = min(100.0, hf_pct * th.hf_content_scale)
    score = (rolloff_score + hf_score) / 2
    if has_artifacts:
        score *= 1 - confidence * th.lossy_artifact_discount

    return SpectralResult(
        score=float(np.clip(score, 0, 100)),
        rolloff_hz=rolloff,
        hf_content_pct=hf_pct,
        centroid_hz=centroid,
        bandwidth_hz=bandwidth,
        smoothness=smoothness,
        hf_noise=hf_noise,
        has_lossy_artifacts=has_artifacts,
        artifact_confidence=confidence,
        suspicious_frequencies=tuple(suspicious),
        issues=tuple(issues),
    )
