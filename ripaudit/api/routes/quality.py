"""API routes for library quality audits.

Start an audit job over a catalog, poll or stream its progress, cancel it
and fetch the finished report as JSON or CSV.
"""

from __future__ import annotations

import asyncio
import io
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from ripaudit.analysis.settings import AnalysisSettings
from ripaudit.api.websocket import manager
from ripaudit.catalog import DirectoryCatalog, TrackCatalog
from ripaudit.export import write_rerip_csv, write_results_csv
from ripaudit.orchestrator import AnalysisProgress, CancellationToken, QualityAnalysisService
from ripaudit.report import QualityReport

logger = structlog.get_logger()

router = APIRouter(prefix="/quality", tags=["quality"])

CatalogFactory = Callable[[str | None], TrackCatalog]


class AnalyzeRequest(BaseModel):
    """Request to audit a library."""

    library_dir: str | None = None
    settings: AnalysisSettings = Field(default_factory=AnalysisSettings)


@dataclass
class QualityJob:
    job_id: str
    token: CancellationToken = field(default_factory=CancellationToken)
    status: str = "pending"  # pending | running | completed | cancelled | failed
    message: str = ""
    error: str = ""
    progress: dict[str, Any] = field(default_factory=dict)
    report: QualityReport | None = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    task: asyncio.Task[None] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status,
            "message": self.message,
            "error": self.error,
            "progress": self.progress,
            "created_at": self.created_at,
            "summary": self.report.summary() if self.report else None,
        }


# In-memory job tracking
_jobs: dict[str, QualityJob] = {}
_background: set[asyncio.Task[None]] = set()


def get_catalog_factory() -> CatalogFactory:
    """Dependency: builds the catalog for a request (overridden in tests)."""
    return lambda library_dir: DirectoryCatalog(library_dir)


def _get_job(job_id: str) -> QualityJob:
    if job_id not in _jobs:
        raise HTTPException(status_code=404, detail="Job not found")
    return _jobs[job_id]


def _get_report(job_id: str) -> QualityReport:
    job = _get_job(job_id)
    if job.report is None:
        raise HTTPException(status_code=409, detail=f"Report not ready (status: {job.status})")
    return job.report


def _push(coro: Any) -> None:
    task = asyncio.get_running_loop().create_task(coro)
    _background.add(task)
    task.add_done_callback(_background.discard)


async def _run_job(job: QualityJob, service: QualityAnalysisService) -> None:
    job.status = "running"
    try:
        report = await service.run(job.token)
    except Exception as e:
        logger.exception("quality_job.failed", job_id=job.job_id)
        job.status = "failed"
        job.error = str(e)
        await manager.send_error(job.job_id, str(e))
        return

    job.report = report
    job.status = str(report.status)
    job.message = report.message
    logger.info("quality_job.finished", job_id=job.job_id, status=job.status)
    await manager.send_complete(job.job_id, report.summary())


# ── Endpoints ───────────────────────────────────────────


@router.post("/analyze")
async def start_analysis(
    req: AnalyzeRequest,
    catalog_factory: CatalogFactory = Depends(get_catalog_factory),
) -> dict[str, Any]:
    """Start an audit job in the background."""
    job = QualityJob(job_id=str(uuid.uuid4())[:8])

    def on_progress(progress: AnalysisProgress) -> None:
        job.progress = progress.to_dict()
        if manager.connection_count(job.job_id):
            _push(manager.send_progress(job.job_id, job.progress, job.message))

    def on_status(message: str) -> None:
        job.message = message
        if manager.connection_count(job.job_id):
            _push(manager.send_status(job.job_id, message))

    catalog = catalog_factory(req.library_dir)
    service = QualityAnalysisService(
        catalog,
        settings=req.settings,
        on_progress=on_progress,
        on_status=on_status,
    )
    _jobs[job.job_id] = job
    job.task = asyncio.create_task(_run_job(job, service))
    logger.info("quality_job.started", job_id=job.job_id, library_dir=req.library_dir)
    return {"job_id": job.job_id, "status": job.status}


@router.get("/jobs")
async def list_jobs() -> list[dict[str, Any]]:
    return [job.to_dict() for job in _jobs.values()]


@router.get("/status/{job_id}")
async def job_status(job_id: str) -> dict[str, Any]:
    return _get_job(job_id).to_dict()


@router.post("/cancel/{job_id}")
async def cancel_job(job_id: str) -> dict[str, Any]:
    """Request cancellation; the job finishes with a partial report."""
    job = _get_job(job_id)
    if job.status in ("pending", "running"):
        job.token.cancel()
        logger.info("quality_job.cancel_requested", job_id=job_id)
    return {"job_id": job_id, "status": job.status, "cancel_requested": job.token.cancelled}


@router.get("/report/{job_id}")
async def get_report(job_id: str, include_results: bool = True) -> dict[str, Any]:
    return _get_report(job_id).to_dict(include_results=include_results)


@router.get("/report/{job_id}/csv")
async def get_report_csv(
    job_id: str, only_problematic: bool = False, min_score: float | None = None
) -> Response:
    report = _get_report(job_id)
    buf = io.StringIO()
    write_results_csv(report, buf, only_problematic=only_problematic, minimum_score=min_score)
    return Response(
        content=buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="quality_{job_id}.csv"'},
    )


@router.get("/rerip/{job_id}")
async def get_rerip_list(job_id: str, as_csv: bool = False) -> Any:
    report = _get_report(job_id)
    if as_csv:
        buf = io.StringIO()
        write_rerip_csv(report, buf)
        return Response(content=buf.getvalue(), media_type="text/csv")
    return [
        {
            "track_id": r.track_id,
            "title": r.title,
            "artist": r.artist,
            "file_path": r.file_path,
            "overall_score": round(r.overall_score, 1),
            "issues": list(r.issues),
        }
        for r in report.rerip_candidates()
    ]
