"""Shared fixtures: synthetic signals and temporary WAV files."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from ripaudit.analysis.loader import AudioBuffer, DecoderBackend

SR = 44100


def sine(freq: float, duration_s: float, amplitude: float = 0.5, sr: int = SR) -> np.ndarray:
    t = np.arange(int(sr * duration_s)) / sr
    return amplitude * np.sin(2 * np.pi * freq * t)


def stereo(left: np.ndarray, right: np.ndarray, sr: int = SR) -> AudioBuffer:
    return AudioBuffer.from_array(np.column_stack([left, right]), sr)


def write_wav(path: Path, data: np.ndarray, sr: int = SR) -> Path:
    sf.write(str(path), data.astype(np.float32), sr, subtype="FLOAT")
    return path


@pytest.fixture
def backend() -> DecoderBackend:
    b = DecoderBackend()
    b.initialize()
    return b


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def music_like(rng: np.random.Generator) -> AudioBuffer:
    """Six seconds of decorrelated broadband stereo with a quiet gap."""
    n = SR * 6
    left = rng.normal(0, 0.1, n)
    right = 0.5 * left + rng.normal(0, 0.1, n)
    envelope = np.ones(n)
    envelope[SR * 2 : SR * 3] = 0.01
    return stereo(left * envelope, right * envelope)
