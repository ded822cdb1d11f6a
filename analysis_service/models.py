"""Pydantic request/response schemas for the analysis service API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from analysis_service.config import ANALYSIS_MAX_BATCH_FILES

# -- Analysis -----------------------------------------------------------------


class AnalyzeRequest(BaseModel):
    file_name: str = Field(
        ..., min_length=1, max_length=1024, description="Storage key, e.g. '<user_id>/report.pdf'"
    )
    query: str = Field(..., min_length=1, max_length=10_000, description="Question about the file")


class AnalyzeResponse(BaseModel):
    file_name: str
    query: str
    response: str
    timestamp: datetime


class AnalyzeMultipleRequest(BaseModel):
    file_names: list[str] = Field(
        ...,
        min_length=1,
        max_length=ANALYSIS_MAX_BATCH_FILES,
        description="Storage keys, analyzed together in the given order",
    )
    query: str = Field(..., min_length=1, max_length=10_000)


class AnalyzeMultipleResponse(BaseModel):
    file_names: list[str]
    query: str
    response: str
    timestamp: datetime


class SummarizeRequest(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=1024)


class SummarizeResponse(BaseModel):
    file_name: str
    summary: str
    timestamp: datetime


class ExtractRequest(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=1024)
    data_type: str = Field(
        ..., min_length=1, max_length=200, description="What to extract, e.g. 'dates and amounts'"
    )


class ExtractResponse(BaseModel):
    file_name: str
    data_type: str
    data: str
    timestamp: datetime


# -- Backend ------------------------------------------------------------------


class BackendStatus(BaseModel):
    state: str
    connected: bool
    reconnect_attempts: int
    process_alive: bool
    client_configured: bool


class BackendStatusResponse(BaseModel):
    backend: BackendStatus
    timestamp: datetime


# -- Health -------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    error: str | None = None
