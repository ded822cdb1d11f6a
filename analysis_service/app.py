"""FastAPI entry point for the document analysis service.

Endpoints:
- POST /v1/analyze              — Ask a question about one file
- POST /v1/analyze-multiple     — Ask one question across several files
- POST /v1/summarize            — Summarize one file
- POST /v1/extract              — Extract a named kind of data from one file
- GET  /v1/backend/status       — Backend connection snapshot
- POST /v1/backend/reinitialize — Manual restart after reconnects are exhausted
- GET  /liveness                — Health check
- GET  /readiness               — Backend connectivity check

Identity is asserted upstream via the X-User-Id header; every storage key
must sit under that user's prefix.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated, cast

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from google.cloud import storage
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from analysis_service.backend.facade import AnalysisBackend
from analysis_service.config import (
    ANALYSIS_BACKEND_AUTOSTART,
    ANALYSIS_CORS_ALLOW_CREDENTIALS,
    ANALYSIS_CORS_ALLOW_HEADERS,
    ANALYSIS_CORS_ALLOW_METHODS,
    ANALYSIS_CORS_ALLOW_ORIGINS,
    ANALYSIS_STORAGE_BUCKET,
)
from analysis_service.errors import (
    ArtifactNotFound,
    BackendCallFailed,
    BackendTimeout,
    BackendUnavailable,
    ExtractionError,
)
from analysis_service.extraction.types import ArtifactRef
from analysis_service.logging_config import generate_request_id, request_id_var, setup_logging
from analysis_service.models import (
    AnalyzeMultipleRequest,
    AnalyzeMultipleResponse,
    AnalyzeRequest,
    AnalyzeResponse,
    BackendStatus,
    BackendStatusResponse,
    ExtractRequest,
    ExtractResponse,
    HealthResponse,
    SummarizeRequest,
    SummarizeResponse,
)
from analysis_service.orchestrator import AnalysisOrchestrator
from analysis_service.storage import GcsArtifactStorage

logger = logging.getLogger(__name__)


def build_orchestrator() -> AnalysisOrchestrator:
    return AnalysisOrchestrator(
        storage=GcsArtifactStorage(client=storage.Client(), bucket=ANALYSIS_STORAGE_BUCKET or ""),
        backend=AnalysisBackend.from_config(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: start the backend on startup, stop it on shutdown."""
    setup_logging()
    orchestrator = build_orchestrator()
    app.state.orchestrator = orchestrator
    if ANALYSIS_BACKEND_AUTOSTART:
        await orchestrator.start_backend()
    logger.info("Analysis service started")
    yield
    await orchestrator.shutdown()
    logger.info("Analysis service stopped")


app = FastAPI(
    title="Document Analysis API",
    version="0.1.0",
    lifespan=lifespan,
)

# -- Rate limiting ------------------------------------------------------------

limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(status_code=429, content={"detail": "Rate limit exceeded"})


# -- Error mapping ------------------------------------------------------------


@app.exception_handler(ExtractionError)
async def _extraction_error_handler(request: Request, exc: ExtractionError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "kind": exc.kind.value, "reason": exc.reason},
    )


@app.exception_handler(ArtifactNotFound)
async def _not_found_handler(request: Request, exc: ArtifactNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "File not found"})


@app.exception_handler(BackendUnavailable)
async def _unavailable_handler(request: Request, exc: BackendUnavailable) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(BackendTimeout)
async def _timeout_handler(request: Request, exc: BackendTimeout) -> JSONResponse:
    return JSONResponse(status_code=504, content={"detail": str(exc)})


@app.exception_handler(BackendCallFailed)
async def _call_failed_handler(request: Request, exc: BackendCallFailed) -> JSONResponse:
    logger.error("Backend call failed: %s", exc.detail)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


if ANALYSIS_CORS_ALLOW_CREDENTIALS and "*" in ANALYSIS_CORS_ALLOW_ORIGINS:
    raise RuntimeError("Invalid CORS config: wildcard origin cannot be combined with credentials=true")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ANALYSIS_CORS_ALLOW_ORIGINS,
    allow_credentials=ANALYSIS_CORS_ALLOW_CREDENTIALS,
    allow_methods=ANALYSIS_CORS_ALLOW_METHODS,
    allow_headers=ANALYSIS_CORS_ALLOW_HEADERS,
)


# -- Body size limit ----------------------------------------------------------

_MAX_BODY_BYTES = 1 * 1024 * 1024  # 1 MB; requests carry keys and queries only


@app.middleware("http")
async def body_size_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with bodies exceeding the size limit."""
    content_length = request.headers.get("content-length")
    if content_length is not None and int(content_length) > _MAX_BODY_BYTES:
        return JSONResponse(status_code=413, content={"detail": "Request body too large"})
    return await call_next(request)


# -- Request ID middleware ----------------------------------------------------


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Attach a unique request ID for trace correlation."""
    request_id = request.headers.get("x-request-id") or generate_request_id()
    request.state.request_id = request_id
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["x-request-id"] = request_id
    return response


# -- Dependencies -------------------------------------------------------------


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Service is starting")
    return cast(AnalysisOrchestrator, orchestrator)


def get_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_id


def _owned_ref(file_name: str, user_id: str) -> ArtifactRef:
    ref = ArtifactRef.from_key(file_name)
    if ref.owner_id != user_id:
        raise HTTPException(status_code=403, detail="Unauthorized to access this file")
    return ref


def _now() -> datetime:
    return datetime.now(UTC)


# -- Health -------------------------------------------------------------------


@app.get("/liveness", response_model=HealthResponse)
async def liveness() -> HealthResponse:
    return HealthResponse(status="ok")


@app.get("/readiness", response_model=HealthResponse)
async def readiness(
    orchestrator: Annotated[AnalysisOrchestrator, Depends(get_orchestrator)],
) -> HealthResponse:
    status = orchestrator.backend_status()
    if not status["client_configured"]:
        raise HTTPException(status_code=503, detail="Model API credentials not configured")
    if not status["connected"]:
        return HealthResponse(status="degraded", error=f"Analysis backend {status['state']}")
    return HealthResponse(status="ok")


# -- Analysis -----------------------------------------------------------------


@app.post("/v1/analyze", response_model=AnalyzeResponse)
@limiter.limit("30/minute")
async def analyze(
    request: Request,
    body: AnalyzeRequest,
    user_id: Annotated[str, Depends(get_user_id)],
    orchestrator: Annotated[AnalysisOrchestrator, Depends(get_orchestrator)],
) -> AnalyzeResponse:
    ref = _owned_ref(body.file_name, user_id)
    response = await orchestrator.analyze(ref, body.query)
    return AnalyzeResponse(
        file_name=body.file_name, query=body.query, response=response, timestamp=_now()
    )


@app.post("/v1/analyze-multiple", response_model=AnalyzeMultipleResponse)
@limiter.limit("10/minute")
async def analyze_multiple(
    request: Request,
    body: AnalyzeMultipleRequest,
    user_id: Annotated[str, Depends(get_user_id)],
    orchestrator: Annotated[AnalysisOrchestrator, Depends(get_orchestrator)],
) -> AnalyzeMultipleResponse:
    refs = [_owned_ref(name, user_id) for name in body.file_names]
    response = await orchestrator.analyze_many(refs, body.query)
    return AnalyzeMultipleResponse(
        file_names=body.file_names, query=body.query, response=response, timestamp=_now()
    )


@app.post("/v1/summarize", response_model=SummarizeResponse)
@limiter.limit("30/minute")
async def summarize(
    request: Request,
    body: SummarizeRequest,
    user_id: Annotated[str, Depends(get_user_id)],
    orchestrator: Annotated[AnalysisOrchestrator, Depends(get_orchestrator)],
) -> SummarizeResponse:
    ref = _owned_ref(body.file_name, user_id)
    summary = await orchestrator.summarize(ref)
    return SummarizeResponse(file_name=body.file_name, summary=summary, timestamp=_now())


@app.post("/v1/extract", response_model=ExtractResponse)
@limiter.limit("30/minute")
async def extract(
    request: Request,
    body: ExtractRequest,
    user_id: Annotated[str, Depends(get_user_id)],
    orchestrator: Annotated[AnalysisOrchestrator, Depends(get_orchestrator)],
) -> ExtractResponse:
    ref = _owned_ref(body.file_name, user_id)
    data = await orchestrator.extract_data(ref, body.data_type)
    return ExtractResponse(
        file_name=body.file_name, data_type=body.data_type, data=data, timestamp=_now()
    )


# -- Backend ------------------------------------------------------------------


@app.get("/v1/backend/status", response_model=BackendStatusResponse)
async def backend_status(
    user_id: Annotated[str, Depends(get_user_id)],
    orchestrator: Annotated[AnalysisOrchestrator, Depends(get_orchestrator)],
) -> BackendStatusResponse:
    return BackendStatusResponse(
        backend=BackendStatus(**orchestrator.backend_status()), timestamp=_now()
    )


@app.post("/v1/backend/reinitialize", response_model=BackendStatusResponse)
@limiter.limit("5/minute")
async def backend_reinitialize(
    request: Request,
    user_id: Annotated[str, Depends(get_user_id)],
    orchestrator: Annotated[AnalysisOrchestrator, Depends(get_orchestrator)],
) -> BackendStatusResponse:
    await orchestrator.reinitialize_backend()
    return BackendStatusResponse(
        backend=BackendStatus(**orchestrator.backend_status()), timestamp=_now()
    )
