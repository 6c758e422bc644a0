"""RIPAUDIT Orchestrator: library-wide quality analysis runs.

Discover tracks → resolve paths (sequential, paced) → analyze with bounded
concurrency → build the QualityReport. Progress and phase changes are
reported through callbacks; a CancellationToken stops the run early and
yields a partial report.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol

import structlog

from ripaudit.analysis.loader import DecoderBackend
from ripaudit.analysis.processor import TrackProcessor, TrackQualityResult
from ripaudit.analysis.settings import AnalysisScope, AnalysisSettings
from ripaudit.catalog import CatalogTrack, ResolvedTrack, TrackCatalog, UnresolvedTrack
from ripaudit.errors import AnalysisCancelled, CatalogError, RateLimitedError
from ripaudit.report import QualityReport, RunStatus, build_report

logger = structlog.get_logger()


# ── Types ────────────────────────────────────────────────


class RunPhase(StrEnum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    RESOLVING = "resolving"
    ANALYZING = "analyzing"
    REPORTING = "reporting"
    DONE = "done"
    CANCELLED = "cancelled"


class CancellationToken:
    """Thread-safe cancel flag shared by the event loop and worker threads."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("Analysis cancelled")


@dataclass
class AnalysisProgress:
    """Snapshot passed to progress callbacks."""

    phase: RunPhase = RunPhase.IDLE
    total_tracks: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    current_track: str = ""
    elapsed_s: float = 0.0
    tracks_per_second: float = 0.0
    eta_s: float | None = None

    @property
    def percentage(self) -> float:
        return self.processed / self.total_tracks * 100 if self.total_tracks else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": str(self.phase),
            "total_tracks": self.total_tracks,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "current_track": self.current_track,
            "percentage": round(self.percentage, 1),
            "elapsed_s": round(self.elapsed_s, 2),
            "tracks_per_second": round(self.tracks_per_second, 3),
            "eta_s": round(self.eta_s, 1) if self.eta_s is not None else None,
        }


class TrackAnalyzer(Protocol):
    def analyze_track(
        self,
        file_path: str | Path,
        track_id: int,
        title: str = "",
        artist: str = "",
        should_cancel: Callable[[], None] | None = None,
    ) -> TrackQualityResult: ...


ProgressCallback = Callable[[AnalysisProgress], None]
StatusCallback = Callable[[str], None]


@dataclass
class _RunState:
    token: CancellationToken
    started: float = field(default_factory=time.perf_counter)
    progress: AnalysisProgress = field(default_factory=AnalysisProgress)

    def elapsed(self) -> float:
        return time.perf_counter() - self.started


# ── Service ──────────────────────────────────────────────


class QualityAnalysisService:
    """Runs quality analysis over a catalog.

    The decoder backend is initialized here, before any track is loaded.
    A custom `processor` can replace the DSP pipeline (tests use this).
    """

    def __init__(
        self,
        catalog: TrackCatalog,
        settings: AnalysisSettings | None = None,
        backend: DecoderBackend | None = None,
        processor: TrackAnalyzer | None = None,
        on_progress: ProgressCallback | None = None,
        on_status: StatusCallback | None = None,
    ) -> None:
        self.catalog = catalog
        self.settings = settings or AnalysisSettings()
        self.backend = backend or DecoderBackend()
        self.backend.initialize()
        self.processor: TrackAnalyzer = processor or TrackProcessor(self.settings, self.backend)
        self.on_progress = on_progress
        self.on_status = on_status
        self.phase = RunPhase.IDLE

    # ── Callbacks ──

    def _set_phase(self, state: _RunState, phase: RunPhase, message: str) -> None:
        self.phase = phase
        state.progress.phase = phase
        logger.info("orchestrator.phase", phase=str(phase), message=message)
        if self.on_status is not None:
            self.on_status(message)

    def _emit_progress(self, state: _RunState) -> None:
        p = state.progress
        p.elapsed_s = state.elapsed()
        p.tracks_per_second = p.processed / p.elapsed_s if p.elapsed_s > 0 else 0.0
        remaining = p.total_tracks - p.processed
        p.eta_s = remaining / p.tracks_per_second if p.tracks_per_second > 0 else None
        if self.on_progress is not None:
            self.on_progress(p)

    # ── Phases ──

    def _discover(self) -> list[CatalogTrack]:
        s = self.settings
        if s.scope == AnalysisScope.IDS:
            return self.catalog.list_tracks(list(s.media_ids))

        tracks = self.catalog.list_tracks()
        if s.scope == AnalysisScope.CATEGORIES:
            include = {c.lower() for c in s.include_categories}
            exclude = {c.lower() for c in s.exclude_categories}
            filtered = []
            for t in tracks:
                cats = {c.lower() for c in t.categories}
                if include and not cats & include:
                    continue
                if cats & exclude:
                    continue
                filtered.append(t)
            tracks = filtered
        return tracks

    async def _resolve_one(self, track: CatalogTrack, token: CancellationToken) -> str:
        s = self.settings
        attempt = 0
        while True:
            try:
                return await asyncio.to_thread(self.catalog.resolve_path, track.track_id)
            except RateLimitedError as e:
                if attempt >= s.catalog_max_retries:
                    raise
                delay = s.catalog_retry_base_delay_s * (2 ** attempt)
                if e.retry_after is not None:
                    delay = max(delay, e.retry_after)
                attempt += 1
                logger.warning(
                    "orchestrator.rate_limited",
                    track_id=track.track_id,
                    attempt=attempt,
                    delay_s=delay,
                )
                await asyncio.sleep(delay)
                token.raise_if_cancelled()

    def _drop(
        self, unresolved: list[UnresolvedTrack], track: CatalogTrack, reason: str
    ) -> None:
        logger.info("orchestrator.track_unresolved", track_id=track.track_id, reason=reason)
        unresolved.append(UnresolvedTrack(track, reason))

    async def _resolve(
        self,
        tracks: Sequence[CatalogTrack],
        token: CancellationToken,
        unresolved: list[UnresolvedTrack],
    ) -> list[ResolvedTrack]:
        """Resolve file paths in catalog order; dropped tracks go to `unresolved`."""
        resolved: list[ResolvedTrack] = []
        delay = self.settings.catalog_request_delay_s
        empty = missing = errors = 0

        for i, track in enumerate(tracks):
            token.raise_if_cancelled()
            if i > 0 and delay > 0:
                await asyncio.sleep(delay)
            try:
                path = await self._resolve_one(track, token)
            except CatalogError as e:
                errors += 1
                self._drop(unresolved, track, f"Lookup failed: {e}")
                continue

            if not path:
                empty += 1
                self._drop(unresolved, track, "No file path in catalog")
            elif not Path(path).exists():
                missing += 1
                self._drop(unresolved, track, f"File not found: {path}")
            else:
                resolved.append(ResolvedTrack(track, path))

        logger.info(
            "orchestrator.resolved",
            requested=len(tracks),
            resolved=len(resolved),
            empty_path=empty,
            missing_file=missing,
            lookup_errors=errors,
        )
        return resolved

    async def _analyze(
        self, tracks: Sequence[ResolvedTrack], state: _RunState
    ) -> list[TrackQualityResult]:
        token = state.token
        progress = state.progress
        progress.total_tracks = len(tracks)
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_analyses)
        slots: list[TrackQualityResult | None] = [None] * len(tracks)

        async def worker(index: int, item: ResolvedTrack) -> None:
            async with semaphore:
                if token.cancelled:
                    return
                track = item.track
                progress.current_track = track.display_name
                try:
                    result = await asyncio.to_thread(
                        self.processor.analyze_track,
                        item.file_path,
                        track.track_id,
                        track.title,
                        track.artist,
                        token.raise_if_cancelled,
                    )
                except AnalysisCancelled:
                    return
                except Exception as e:
                    logger.exception("orchestrator.track_failed", track_id=track.track_id)
                    result = TrackQualityResult.failed(
                        track.track_id,
                        f"Analysis failed: {e}",
                        track.title,
                        track.artist,
                        item.file_path,
                    )

                slots[index] = result
                progress.processed += 1
                if result.success:
                    progress.succeeded += 1
                else:
                    progress.failed += 1
                self._emit_progress(state)

        await asyncio.gather(*(worker(i, t) for i, t in enumerate(tracks)))
        return [r for r in slots if r is not None]

    # ── Entry points ──

    async def run(self, token: CancellationToken | None = None) -> QualityReport:
        """Execute a full analysis run and return its report."""
        state = _RunState(token=token or CancellationToken())
        results: list[TrackQualityResult] = []
        unresolved: list[UnresolvedTrack] = []

        try:
            self._set_phase(state, RunPhase.DISCOVERING, "Discovering tracks...")
            try:
                tracks = await asyncio.to_thread(self._discover)
            except CatalogError as e:
                logger.error("orchestrator.discovery_failed", error=str(e))
                self._set_phase(state, RunPhase.DONE, f"Track discovery failed: {e}")
                return build_report(
                    [], elapsed_s=state.elapsed(), message=f"Track discovery failed: {e}"
                )

            if not tracks:
                self._set_phase(state, RunPhase.DONE, "No tracks found to analyze")
                return build_report([], elapsed_s=state.elapsed(), message="No tracks found")

            self._set_phase(
                state, RunPhase.RESOLVING, f"Resolving file paths for {len(tracks)} tracks..."
            )
            resolved = await self._resolve(tracks, state.token, unresolved)

            self._set_phase(
                state,
                RunPhase.ANALYZING,
                f"Analyzing {len(resolved)} tracks "
                f"({self.settings.max_concurrent_analyses} concurrent)...",
            )
            results = await self._analyze(resolved, state)
            state.token.raise_if_cancelled()
        except AnalysisCancelled:
            self._set_phase(state, RunPhase.CANCELLED, "Analysis cancelled")
            return build_report(
                results,
                status=RunStatus.CANCELLED,
                unresolved=unresolved,
                elapsed_s=state.elapsed(),
                message=f"Cancelled after {len(results)} tracks",
            )

        self._set_phase(state, RunPhase.REPORTING, "Building report...")
        report = build_report(
            results,
            unresolved=unresolved,
            elapsed_s=state.elapsed(),
            message=f"Analyzed {len(results)} tracks",
        )
        logger.info(
            "orchestrator.complete",
            analyzed=report.total_tracks_analyzed,
            failed=report.failed_analyses,
            unresolved=len(report.unresolved),
            average=round(report.average_score, 1),
            elapsed_s=round(report.total_processing_time_s, 1),
        )
        self._set_phase(state, RunPhase.DONE, "Analysis complete")
        return report

    def run_sync(self, token: CancellationToken | None = None) -> QualityReport:
        return asyncio.run(self.run(token))
