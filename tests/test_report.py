"""Tests for report statistics and CSV export."""

from __future__ import annotations

import csv
import io

import pytest

from ripaudit.analysis.processor import TrackQualityResult
from ripaudit.catalog import CatalogTrack, UnresolvedTrack
from ripaudit.export import (
    RESULT_COLUMNS,
    export_results,
    export_summary,
    write_rerip_csv,
    write_results_csv,
)
from ripaudit.report import RunStatus, build_report, distribution_bucket


def _ok(track_id: int, score: float, issues: tuple[str, ...] = (), threshold: float = 60) -> TrackQualityResult:
    return TrackQualityResult(
        track_id=track_id,
        title=f"T{track_id}",
        artist="A",
        overall_score=score,
        success=True,
        recommend_rerip=score < threshold,
        issues=issues,
    )


def _sample_results() -> list[TrackQualityResult]:
    return [
        _ok(1, 95, ("Audio is mono",)),
        _ok(2, 80, ("Audio is mono", "High compression ratio (12.0:1) detected")),
        _ok(3, 65),
        _ok(4, 45, ("Sharp frequency cutoff at ~16kHz suggests MP3 encoding",)),
        _ok(5, 20, ("Sharp frequency cutoff at ~16kHz suggests MP3 encoding", "Audio is mono")),
        TrackQualityResult.failed(6, "File not found"),
    ]


# ── Statistics ───────────────────────────────────────────


def test_report_counts_and_stats() -> None:
    report = build_report(_sample_results(), elapsed_s=12.5)

    assert report.total_tracks_analyzed == 6
    assert report.successful_analyses == 5
    assert report.failed_analyses == 1
    assert report.average_score == pytest.approx(61.0)
    assert report.median_score == pytest.approx(65.0)
    assert report.tracks_needing_rerip == 2
    assert report.percentage_needing_rerip == pytest.approx(40.0)
    assert report.total_processing_time_s == 12.5


def test_distribution_buckets() -> None:
    report = build_report(_sample_results())
    assert report.quality_distribution == {
        "Excellent (90-100)": 1,
        "Good (75-89)": 1,
        "Fair (60-74)": 1,
        "Poor (40-59)": 1,
        "Very Poor (0-39)": 1,
    }
    assert distribution_bucket(90) == "Excellent (90-100)"
    assert distribution_bucket(89.9) == "Good (75-89)"


def test_common_issues_ranked() -> None:
    report = build_report(_sample_results())
    issues = list(report.common_issues.items())
    assert issues[0] == ("Audio is mono", 3)
    assert issues[1][1] == 2


def test_failed_results_excluded_from_stats() -> None:
    report = build_report([TrackQualityResult.failed(1, "x")])
    assert report.average_score == 0
    assert report.median_score == 0
    assert report.percentage_needing_rerip == 0


def test_rerip_candidates_worst_first() -> None:
    report = build_report(_sample_results())
    assert [r.track_id for r in report.rerip_candidates()] == [5, 4]


def test_tracks_with_issue_case_insensitive() -> None:
    report = build_report(_sample_results())
    assert {r.track_id for r in report.tracks_with_issue("mp3 ENCODING")} == {4, 5}


def test_report_to_dict_includes_unresolved() -> None:
    unresolved = [UnresolvedTrack(CatalogTrack(9, "Lost"), "File not found: /x.wav")]
    report = build_report(_sample_results(), status=RunStatus.CANCELLED, unresolved=unresolved)
    data = report.to_dict()

    assert data["status"] == "cancelled"
    assert data["unresolved_tracks"] == 1
    assert data["unresolved"][0]["track_id"] == 9
    assert len(data["results"]) == 6
    assert "results" not in report.to_dict(include_results=False)


# ── CSV export ───────────────────────────────────────────


def test_results_csv_sorted_and_successful_only() -> None:
    buf = io.StringIO()
    count = write_results_csv(build_report(_sample_results()), buf)
    rows = list(csv.DictReader(io.StringIO(buf.getvalue())))

    assert count == 5
    assert list(rows[0].keys()) == [name for name, _ in RESULT_COLUMNS]
    assert [r["Media ID"] for r in rows] == ["5", "4", "3", "2", "1"]
    assert rows[0]["Recommend Re-rip"] == "Yes"
    assert rows[-1]["Recommend Re-rip"] == "No"


def test_results_csv_filters() -> None:
    report = build_report(_sample_results())
    buf = io.StringIO()
    assert write_results_csv(report, buf, only_problematic=True) == 2
    buf = io.StringIO()
    assert write_results_csv(report, buf, minimum_score=70) == 2


def test_rerip_csv() -> None:
    buf = io.StringIO()
    assert write_rerip_csv(build_report(_sample_results()), buf) == 2
    lines = buf.getvalue().strip().splitlines()
    assert lines[0].startswith("Media ID,Title")


def test_export_files(tmp_path) -> None:
    report = build_report(_sample_results())
    results = export_results(report, tmp_path / "out" / "results.csv")
    summary = export_summary(report, tmp_path / "out" / "summary.csv")

    assert results.exists()
    text = summary.read_text(encoding="utf-8")
    assert "Metric,Value" in text
    assert "Tracks Needing Re-rip,2" in text
    assert "Excellent (90-100),1" in text
