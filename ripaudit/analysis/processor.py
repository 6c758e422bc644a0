"""Per-track pipeline: load → five analyzers → aggregate.

TrackProcessor is synchronous and CPU-bound; the orchestrator runs it in
worker threads.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from ripaudit.analysis.channels import ChannelResult, analyze_channels
from ripaudit.analysis.clipping import ClippingResult, analyze_clipping
from ripaudit.analysis.dynamics import DynamicRangeResult, analyze_dynamics
from ripaudit.analysis.loader import AudioBuffer, DecoderBackend, load_audio
from ripaudit.analysis.noise import NoiseFloorResult, analyze_noise_floor
from ripaudit.analysis.scoring import build_notes, collect_issues, overall_score
from ripaudit.analysis.settings import AnalysisSettings
from ripaudit.analysis.spectral import SpectralResult, analyze_spectral
from ripaudit.errors import AnalysisCancelled, RipAuditError

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TrackQualityResult:
    """Outcome of analysing one track."""

    track_id: int
    title: str = ""
    artist: str = ""
    file_path: str = ""
    duration_s: float = 0.0
    overall_score: float = 0.0
    spectral: SpectralResult = field(default_factory=SpectralResult)
    dynamics: DynamicRangeResult = field(default_factory=DynamicRangeResult)
    clipping: ClippingResult = field(default_factory=ClippingResult)
    noise: NoiseFloorResult = field(default_factory=NoiseFloorResult)
    channels: ChannelResult = field(default_factory=ChannelResult)
    success: bool = False
    error: str = ""
    processing_time_s: float = 0.0
    analyzed_at: datetime = field(default_factory=_utcnow)
    recommend_rerip: bool = False
    issues: tuple[str, ...] = ()
    notes: str = ""

    @property
    def display_name(self) -> str:
        if self.artist:
            return f"{self.artist} - {self.title}"
        return self.title or str(self.track_id)

    @classmethod
    def failed(
        cls,
        track_id: int,
        error: str,
        title: str = "",
        artist: str = "",
        file_path: str = "",
        processing_time_s: float = 0.0,
    ) -> TrackQualityResult:
        return cls(
            track_id=track_id,
            title=title,
            artist=artist,
            file_path=file_path,
            success=False,
            error=error,
            processing_time_s=processing_time_s,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["analyzed_at"] = self.analyzed_at.isoformat()
        for key in ("spectral", "dynamics", "clipping", "noise", "channels"):
            data[key]["issues"] = list(data[key]["issues"])
        data["spectral"]["suspicious_frequencies"] = list(
            data["spectral"]["suspicious_frequencies"]
        )
        data["issues"] = list(self.issues)
        return data


class TrackProcessor:
    """Runs the full analysis pipeline for single tracks."""

    def __init__(self, settings: AnalysisSettings, backend: DecoderBackend) -> None:
        self.settings = settings
        self.backend = backend

    def analyze_buffer(
        self,
        buffer: AudioBuffer,
        track_id: int = 0,
        title: str = "",
        artist: str = "",
        file_path: str = "",
    ) -> TrackQualityResult:
        """Score an already-decoded buffer. Pure with respect to its inputs."""
        s = self.settings
        th = s.thresholds
        start = time.perf_counter()

        spectral = analyze_spectral(buffer, th)
        dynamics = analyze_dynamics(buffer, th)
        clipping = analyze_clipping(buffer, s.clipping_threshold, th)
        noise = analyze_noise_floor(buffer, s.noise_floor_threshold_db, th)
        channels = analyze_channels(buffer, th)

        score = overall_score(spectral, dynamics, clipping, noise, channels, s)
        return TrackQualityResult(
            track_id=track_id,
            title=title,
            artist=artist,
            file_path=file_path,
            duration_s=buffer.duration_s,
            overall_score=score,
            spectral=spectral,
            dynamics=dynamics,
            clipping=clipping,
            noise=noise,
            channels=channels,
            success=True,
            processing_time_s=time.perf_counter() - start,
            recommend_rerip=score < s.rerip_threshold,
            issues=collect_issues(spectral, dynamics, clipping, noise, channels),
            notes=build_notes(score, spectral, dynamics, clipping, s),
        )

    def analyze_track(
        self,
        file_path: str | Path,
        track_id: int,
        title: str = "",
        artist: str = "",
        should_cancel: Callable[[], None] | None = None,
    ) -> TrackQualityResult:
        """Decode and score one file. Failures become unsuccessful results.

        AnalysisCancelled propagates to the caller.
        """
        s = self.settings
        start = time.perf_counter()
        try:
            buffer = load_audio(
                file_path,
                self.backend,
                max_seconds=s.max_analysis_seconds,
                chunk_seconds=s.chunk_seconds,
                max_file_size_bytes=s.max_file_size_bytes if s.skip_large_files else None,
                should_cancel=should_cancel,
            )
            if should_cancel is not None:
                should_cancel()
            result = self.analyze_buffer(buffer, track_id, title, artist, str(file_path))
        except AnalysisCancelled:
            raise
        except RipAuditError as e:
            logger.warning("processor.track_failed", track_id=track_id, error=str(e))
            return TrackQualityResult.failed(
                track_id, str(e), title, artist, str(file_path), time.perf_counter() - start
            )
        except Exception as e:
            logger.exception("processor.track_error", track_id=track_id)
            return TrackQualityResult.failed(
                track_id,
                f"Analysis failed: {e}",
                title,
                artist,
                str(file_path),
                time.perf_counter() - start,
            )

        elapsed = time.perf_counter() - start
        logger.info(
            "processor.track_complete",
            track_id=track_id,
            score=round(result.overall_score, 1),
            rerip=result.recommend_rerip,
            elapsed_s=round(elapsed, 2),
        )
        return replace(result, processing_time_s=elapsed)
