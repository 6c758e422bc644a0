"""Run-level quality report: summary statistics over track results."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

import numpy as np

from ripaudit.analysis.processor import TrackQualityResult
from ripaudit.catalog import UnresolvedTrack

TOP_ISSUES = 10

DISTRIBUTION_BUCKETS: tuple[tuple[str, float], ...] = (
    ("Excellent (90-100)", 90.0),
    ("Good (75-89)", 75.0),
    ("Fair (60-74)", 60.0),
    ("Poor (40-59)", 40.0),
    ("Very Poor (0-39)", 0.0),
)


class RunStatus(StrEnum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def distribution_bucket(score: float) -> str:
    for label, floor in DISTRIBUTION_BUCKETS:
        if score >= floor:
            return label
    return DISTRIBUTION_BUCKETS[-1][0]


@dataclass(frozen=True)
class QualityReport:
    """Results of one analysis run plus aggregate statistics.

    Statistics cover successful results only. Tracks dropped before
    analysis are listed in `unresolved` and are not counted as failures.
    """

    results: tuple[TrackQualityResult, ...] = ()
    status: RunStatus = RunStatus.COMPLETED
    message: str = ""
    unresolved: tuple[UnresolvedTrack, ...] = ()
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    total_processing_time_s: float = 0.0
    total_tracks_analyzed: int = 0
    successful_analyses: int = 0
    failed_analyses: int = 0
    average_score: float = 0.0
    median_score: float = 0.0
    tracks_needing_rerip: int = 0
    percentage_needing_rerip: float = 0.0
    quality_distribution: dict[str, int] = field(default_factory=dict)
    common_issues: dict[str, int] = field(default_factory=dict)

    @property
    def successful_results(self) -> list[TrackQualityResult]:
        return [r for r in self.results if r.success]

    @property
    def failed_results(self) -> list[TrackQualityResult]:
        return [r for r in self.results if not r.success]

    def rerip_candidates(self) -> list[TrackQualityResult]:
        """Successful tracks flagged for re-rip, worst first."""
        flagged = [r for r in self.results if r.success and r.recommend_rerip]
        return sorted(flagged, key=lambda r: r.overall_score)

    def tracks_with_issue(self, text: str) -> list[TrackQualityResult]:
        """Successful tracks whose issues contain `text` (case-insensitive)."""
        needle = text.lower()
        return [
            r for r in self.results
            if r.success and any(needle in issue.lower() for issue in r.issues)
        ]

    def summary(self) -> dict[str, Any]:
        return {
            "status": str(self.status),
            "message": self.message,
            "generated_at": self.generated_at.isoformat(),
            "total_tracks_analyzed": self.total_tracks_analyzed,
            "successful_analyses": self.successful_analyses,
            "failed_analyses": self.failed_analyses,
            "unresolved_tracks": len(self.unresolved),
            "average_score": round(self.average_score, 2),
            "median_score": round(self.median_score, 2),
            "tracks_needing_rerip": self.tracks_needing_rerip,
            "percentage_needing_rerip": round(self.percentage_needing_rerip, 2),
            "total_processing_time_s": round(self.total_processing_time_s, 2),
            "quality_distribution": dict(self.quality_distribution),
            "common_issues": dict(self.common_issues),
        }

    def to_dict(self, include_results: bool = True) -> dict[str, Any]:
        data = self.summary()
        data["unresolved"] = [u.to_dict() for u in self.unresolved]
        if include_results:
            data["results"] = [r.to_dict() for r in self.results]
        return data


def build_report(
    results: Iterable[TrackQualityResult],
    status: RunStatus = RunStatus.COMPLETED,
    unresolved: Iterable[UnresolvedTrack] = (),
    elapsed_s: float = 0.0,
    message: str = "",
) -> QualityReport:
    """Aggregate track results into a QualityReport."""
    results = tuple(results)
    ok = [r for r in results if r.success]
    scores = np.array([r.overall_score for r in ok], dtype=np.float64)
    rerip = sum(1 for r in ok if r.recommend_rerip)

    distribution = {label: 0 for label, _ in DISTRIBUTION_BUCKETS}
    for r in ok:
        distribution[distribution_bucket(r.overall_score)] += 1

    issue_counts = Counter(issue for r in ok for issue in r.issues)

    return QualityReport(
        results=results,
        status=status,
        message=message,
        unresolved=tuple(unresolved),
        total_processing_time_s=elapsed_s,
        total_tracks_analyzed=len(results),
        successful_analyses=len(ok),
        failed_analyses=len(results) - len(ok),
        average_score=float(np.mean(scores)) if len(scores) else 0.0,
        median_score=float(np.median(scores)) if len(scores) else 0.0,
        tracks_needing_rerip=rerip,
        percentage_needing_rerip=rerip / len(ok) * 100 if ok else 0.0,
        quality_distribution=distribution,
        common_issues=dict(issue_counts.most_common(TOP_ISSUES)),
    )
