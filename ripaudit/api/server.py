"""RIPAUDIT FastAPI server: main application."""

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from ripaudit.api.routes.quality import router as quality_router
from ripaudit.api.websocket import websocket_endpoint

app = FastAPI(
    title="RIPAUDIT",
    description="Audio quality audit engine for ripped music libraries.",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(quality_router, prefix="/api")


# WebSocket endpoint
@app.websocket("/ws/{job_id}")
async def ws_endpoint(websocket: WebSocket, job_id: str) -> None:
    """WebSocket for real-time audit job updates."""
    await websocket_endpoint(websocket, job_id)


# ── Public routes ──
@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "service": "ripaudit"}


@app.get("/api/info")
async def info() -> dict[str, object]:
    """System information and capabilities."""
    from ripaudit import __version__

    return {
        "name": "RIPAUDIT",
        "version": __version__,
        "analyzers": {
            "spectral": "Bandwidth, HF content, lossy-codec fingerprints",
            "dynamics": "Peak/RMS range, compression, loudness range",
            "clipping": "Clipped runs, sustained clipping, true peak",
            "noise": "Noise floor, SNR, hum, tape hiss",
            "channels": "Mono, correlation, balance, polarity",
        },
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "quality_analyze": "POST /api/quality/analyze",
            "quality_jobs": "GET /api/quality/jobs",
            "quality_status": "GET /api/quality/status/{job_id}",
            "quality_cancel": "POST /api/quality/cancel/{job_id}",
            "quality_report": "GET /api/quality/report/{job_id}",
            "quality_report_csv": "GET /api/quality/report/{job_id}/csv",
            "quality_rerip": "GET /api/quality/rerip/{job_id}",
            "websocket": "WS /ws/{job_id}",
        },
    }
