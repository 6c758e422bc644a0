"""Sample loader: decodes a track into a stereo float buffer.

Decoding goes through libsndfile (via soundfile) wrapped in DecoderBackend,
which must be initialized explicitly before the first track is opened.
Audio is read in fixed-length chunks and capped at a maximum duration.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import numpy.typing as npt
import soundfile as sf
import structlog

from ripaudit.errors import (
    AudioFileNotFoundError,
    DecodeError,
    DecoderNotInitializedError,
    FileTooLargeError,
    UnsupportedFormatError,
)

logger = structlog.get_logger()

DEFAULT_MAX_SECONDS = 300.0
DEFAULT_CHUNK_SECONDS = 30.0


# ── Types ────────────────────────────────────────────────


@dataclass(frozen=True)
class AudioBuffer:
    """Decoded audio, always two channels of equal length.

    Mono sources are duplicated into the right channel. The sample arrays
    are made read-only on construction.
    """

    left: npt.NDArray[np.float32]
    right: npt.NDArray[np.float32]
    sample_rate: int
    channels: int = 2

    def __post_init__(self) -> None:
        if len(self.left) != len(self.right):
            raise ValueError("left and right channels must have equal length")
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        self.left.flags.writeable = False
        self.right.flags.writeable = False

    @property
    def num_samples(self) -> int:
        return len(self.left)

    @property
    def duration_s(self) -> float:
        return self.num_samples / self.sample_rate

    @property
    def nyquist(self) -> float:
        return self.sample_rate / 2.0

    def mono(self) -> npt.NDArray[np.float64]:
        """Signed mono mix (L + R) / 2 in float64."""
        return (self.left.astype(np.float64) + self.right.astype(np.float64)) / 2.0

    def level(self) -> npt.NDArray[np.float64]:
        """Rectified mono level (|L| + |R|) / 2 in float64."""
        return (np.abs(self.left.astype(np.float64)) + np.abs(self.right.astype(np.float64))) / 2.0

    @classmethod
    def from_array(cls, data: np.ndarray, sample_rate: int) -> AudioBuffer:
        """Build a buffer from a (samples,) or (samples, channels) array."""
        arr = np.asarray(data, dtype=np.float32)
        if arr.ndim == 1:
            return cls(arr.copy(), arr.copy(), sample_rate, channels=1)
        if arr.shape[1] == 1:
            return cls(arr[:, 0].copy(), arr[:, 0].copy(), sample_rate, channels=1)
        return cls(
            np.ascontiguousarray(arr[:, 0]),
            np.ascontiguousarray(arr[:, 1]),
            sample_rate,
            channels=arr.shape[1],
        )


@dataclass
class DecoderBackend:
    """Handle to the native decode library.

    The orchestrator owns a backend and calls initialize() once, before any
    track is loaded.
    """

    library_version: str = ""
    formats: dict[str, str] = field(default_factory=dict)
    _initialized: bool = field(default=False, init=False, repr=False)

    def initialize(self) -> None:
        if self._initialized:
            return
        self.library_version = sf.__libsndfile_version__
        self.formats = dict(sf.available_formats())
        self._initialized = True
        logger.info(
            "decoder.initialized",
            libsndfile=self.library_version,
            formats=len(self.formats),
        )

    @property
    def initialized(self) -> bool:
        return self._initialized

    def open(self, path: Path) -> sf.SoundFile:
        if not self._initialized:
            raise DecoderNotInitializedError("Decoder backend has not been initialized")
        try:
            return sf.SoundFile(str(path))
        except (RuntimeError, TypeError) as e:
            # soundfile raises LibsndfileError (a RuntimeError) for unknown formats
            raise UnsupportedFormatError(
                "Unsupported or unreadable audio format", str(path), str(e)
            ) from e


# ── Loading ──────────────────────────────────────────────


def check_file(path: Path, max_file_size_bytes: int | None = None) -> int:
    """Validate existence and size of a track file. Returns size in bytes."""
    if not path.is_file():
        raise AudioFileNotFoundError("File not found", str(path))
    size = path.stat().st_size
    if max_file_size_bytes is not None and size > max_file_size_bytes:
        size_mb = size / (1024 * 1024)
        raise FileTooLargeError(f"File too large ({size_mb:.1f} MB)", str(path), size_mb)
    return size


def load_audio(
    path: Path | str,
    backend: DecoderBackend,
    max_seconds: float = DEFAULT_MAX_SECONDS,
    chunk_seconds: float = DEFAULT_CHUNK_SECONDS,
    max_file_size_bytes: int | None = None,
    should_cancel: Callable[[], None] | None = None,
) -> AudioBuffer:
    """Decode a track into an AudioBuffer.

    Args:
        path: Track file.
        backend: Initialized decoder backend.
        max_seconds: Analysis cap; longer files are truncated to their start.
        chunk_seconds: Length of each sequential read.
        max_file_size_bytes: Reject files above this size (None disables).
        should_cancel: Called before every chunk; raises to abort.

    Raises:
        AudioFileNotFoundError, FileTooLargeError, UnsupportedFormatError,
        DecodeError, DecoderNotInitializedError.
    """
    path = Path(path)
    check_file(path, max_file_size_bytes)

    with backend.open(path) as f:
        sr = int(f.samplerate)
        channels = int(f.channels)
        limit = int(max_seconds * sr)
        chunk = max(1, int(chunk_seconds * sr))
        total = int(f.frames) if f.frames > 0 else limit

        if total > limit:
            logger.info(
                "loader.truncated",
                file=path.name,
                duration_s=round(total / sr, 1),
                analyzed_s=max_seconds,
            )
        target = min(total, limit)

        lefts: list[np.ndarray] = []
        rights: list[np.ndarray] = []
        read = 0
        try:
            while read < target:
                if should_cancel is not None:
                    should_cancel()
                block = f.read(min(chunk, target - read), dtype="float32", always_2d=True)
                if len(block) == 0:
                    break
                lefts.append(block[:, 0].copy())
                rights.append(block[:, 1].copy() if channels > 1 else block[:, 0].copy())
                read += len(block)
        except MemoryError as e:
            raise DecodeError("Out of memory while decoding", str(path)) from e
        except RuntimeError as e:
            raise DecodeError("Decode failed", str(path), str(e)) from e

    if read == 0:
        raise DecodeError("No audio samples decoded", str(path))

    return AudioBuffer(
        left=np.concatenate(lefts),
        right=np.concatenate(rights),
        sample_rate=sr,
        channels=channels,
    )
