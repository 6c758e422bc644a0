"""CSV export of quality reports.

Three flavours: the full per-track sheet, a short re-rip worklist and a
Metric/Value summary. Each has a text-stream writer and a path wrapper.
"""

from __future__ import annotations

import csv
from collections.abc import Callable
from pathlib import Path
from typing import Any, TextIO

import structlog

from ripaudit.analysis.processor import TrackQualityResult
from ripaudit.report import QualityReport

logger = structlog.get_logger()


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _duration(seconds: float) -> str:
    minutes, secs = divmod(int(round(seconds)), 60)
    return f"{minutes}:{secs:02d}"


RESULT_COLUMNS: tuple[tuple[str, Callable[[TrackQualityResult], Any]], ...] = (
    ("Media ID", lambda r: r.track_id),
    ("Title", lambda r: r.title),
    ("Artist", lambda r: r.artist),
    ("File Path", lambda r: r.file_path),
    ("Duration", lambda r: _duration(r.duration_s)),
    ("Overall Quality Score", lambda r: f"{r.overall_score:.1f}"),
    ("Spectral Score", lambda r: f"{r.spectral.score:.1f}"),
    ("Dynamic Range Score", lambda r: f"{r.dynamics.score:.1f}"),
    ("Clipping Penalty", lambda r: f"{r.clipping.penalty:.1f}"),
    ("Noise Floor Score", lambda r: f"{r.noise.score:.1f}"),
    ("Channel Score", lambda r: f"{r.channels.score:.1f}"),
    ("Recommend Re-rip", lambda r: _yes_no(r.recommend_rerip)),
    ("Frequency Rolloff (Hz)", lambda r: f"{r.spectral.rolloff_hz:.0f}"),
    ("High Frequency Content (%)", lambda r: f"{r.spectral.hf_content_pct:.2f}"),
    ("Has MP3 Artifacts", lambda r: _yes_no(r.spectral.has_lossy_artifacts)),
    ("MP3 Artifact Confidence (%)", lambda r: f"{r.spectral.artifact_confidence * 100:.0f}"),
    ("Dynamic Range (dB)", lambda r: f"{r.dynamics.dynamic_range_db:.1f}"),
    ("Peak Level (dB)", lambda r: f"{r.dynamics.peak_db:.1f}"),
    ("RMS Level (dB)", lambda r: f"{r.dynamics.rms_db:.1f}"),
    ("Loudness Range (LU)", lambda r: f"{r.dynamics.loudness_range:.1f}"),
    ("Is Over Compressed", lambda r: _yes_no(r.dynamics.is_over_compressed)),
    ("Clipping Percentage", lambda r: f"{r.clipping.clipping_pct:.3f}"),
    ("Clipping Events", lambda r: r.clipping.clipping_events),
    ("Has Sustained Clipping", lambda r: _yes_no(r.clipping.has_sustained_clipping)),
    ("True Peak (dBTP)", lambda r: f"{r.clipping.true_peak_db:.1f}"),
    ("Noise Floor (dB)", lambda r: f"{r.noise.noise_floor_db:.1f}"),
    ("Signal to Noise Ratio (dB)", lambda r: f"{r.noise.snr_db:.1f}"),
    ("Has Tape Hiss", lambda r: _yes_no(r.noise.has_tape_hiss)),
    ("Has Hum", lambda r: _yes_no(r.noise.has_hum)),
    ("Is Mono", lambda r: _yes_no(r.channels.is_mono)),
    ("Stereo Width", lambda r: f"{r.channels.stereo_width:.3f}"),
    ("Channel Correlation", lambda r: f"{r.channels.correlation:.3f}"),
    ("Has Phase Issues", lambda r: _yes_no(r.channels.has_phase_issues)),
    ("Quality Issues", lambda r: "; ".join(r.issues)),
    ("Notes", lambda r: r.notes),
    ("Processing Time", lambda r: f"{r.processing_time_s:.2f}s"),
    ("Analyzed Date/Time", lambda r: r.analyzed_at.strftime("%Y-%m-%d %H:%M:%S")),
)

RERIP_COLUMNS: tuple[tuple[str, Callable[[TrackQualityResult], Any]], ...] = (
    ("Media ID", lambda r: r.track_id),
    ("Title", lambda r: r.title),
    ("Artist", lambda r: r.artist),
    ("File Path", lambda r: r.file_path),
    ("Overall Quality Score", lambda r: f"{r.overall_score:.1f}"),
    ("Primary Issues", lambda r: "; ".join(r.issues[:3])),
)


def _selected(
    report: QualityReport, only_problematic: bool, minimum_score: float | None
) -> list[TrackQualityResult]:
    rows = [r for r in report.results if r.success]
    if only_problematic:
        rows = [r for r in rows if r.recommend_rerip]
    if minimum_score is not None:
        rows = [r for r in rows if r.overall_score >= minimum_score]
    return sorted(rows, key=lambda r: r.overall_score)


def write_results_csv(
    report: QualityReport,
    stream: TextIO,
    only_problematic: bool = False,
    minimum_score: float | None = None,
) -> int:
    """Write successful results, lowest score first. Returns rows written."""
    rows = _selected(report, only_problematic, minimum_score)
    writer = csv.writer(stream)
    writer.writerow([name for name, _ in RESULT_COLUMNS])
    for r in rows:
        writer.writerow([getter(r) for _, getter in RESULT_COLUMNS])
    return len(rows)


def write_rerip_csv(report: QualityReport, stream: TextIO) -> int:
    rows = report.rerip_candidates()
    writer = csv.writer(stream)
    writer.writerow([name for name, _ in RERIP_COLUMNS])
    for r in rows:
        writer.writerow([getter(r) for _, getter in RERIP_COLUMNS])
    return len(rows)


def write_summary_csv(report: QualityReport, stream: TextIO) -> None:
    writer = csv.writer(stream)
    writer.writerow(["Metric", "Value"])
    writer.writerow(["Status", str(report.status)])
    writer.writerow(["Generated", report.generated_at.strftime("%Y-%m-%d %H:%M:%S")])
    writer.writerow(["Total Tracks Analyzed", report.total_tracks_analyzed])
    writer.writerow(["Successful Analyses", report.successful_analyses])
    writer.writerow(["Failed Analyses", report.failed_analyses])
    writer.writerow(["Unresolved Tracks", len(report.unresolved)])
    writer.writerow(["Average Quality Score", f"{report.average_score:.1f}"])
    writer.writerow(["Median Quality Score", f"{report.median_score:.1f}"])
    writer.writerow(["Tracks Needing Re-rip", report.tracks_needing_rerip])
    writer.writerow(["Percentage Needing Re-rip", f"{report.percentage_needing_rerip:.1f}%"])
    writer.writerow(["Total Processing Time (s)", f"{report.total_processing_time_s:.1f}"])
    writer.writerow([])
    writer.writerow(["Quality Distribution", ""])
    for label, count in report.quality_distribution.items():
        writer.writerow([label, count])
    writer.writerow([])
    writer.writerow(["Common Issues", "Count"])
    for issue, count in report.common_issues.items():
        writer.writerow([issue, count])


def export_results(
    report: QualityReport,
    path: Path | str,
    only_problematic: bool = False,
    minimum_score: float | None = None,
) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        count = write_results_csv(report, f, only_problematic, minimum_score)
    logger.info("export.results", path=str(path), rows=count)
    return path


def export_rerip_list(report: QualityReport, path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        count = write_rerip_csv(report, f)
    logger.info("export.rerip_list", path=str(path), rows=count)
    return path


def export_summary(report: QualityReport, path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        write_summary_csv(report, f)
    logger.info("export.summary", path=str(path))
    return path
