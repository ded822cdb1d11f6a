"""Unit tests for FastAPI endpoints in the analysis service.

Tests cover:
- POST /v1/analyze, /v1/analyze-multiple, /v1/summarize, /v1/extract
- Ownership checks (401 without identity, 403 outside the user's prefix)
- Error mapping (404, 422, 502, 503, 504)
- GET /v1/backend/status and POST /v1/backend/reinitialize
- GET /liveness and GET /readiness
- Body size and request ID middleware

Uses httpx.AsyncClient with ASGITransport. The orchestrator is replaced via
dependency_overrides; nothing touches storage or the model.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from analysis_service.errors import (
    ArtifactNotFound,
    BackendCallFailed,
    BackendTimeout,
    BackendUnavailable,
    ExtractionError,
)
from analysis_service.extraction.types import Kind
from analysis_service.logging_config import request_id_var
from analysis_service.orchestrator import AnalysisOrchestrator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _status(**overrides: Any) -> dict[str, Any]:
    status = {
        "state": "connected",
        "connected": True,
        "reconnect_attempts": 0,
        "process_alive": True,
        "client_configured": True,
    }
    status.update(overrides)
    return status


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def orchestrator() -> MagicMock:
    orch = MagicMock(spec=AnalysisOrchestrator)
    orch.analyze = AsyncMock(return_value="single answer")
    orch.analyze_many = AsyncMock(return_value="batch answer")
    orch.summarize = AsyncMock(return_value="short summary")
    orch.extract_data = AsyncMock(return_value="- 2024-05-01: 42 EUR")
    orch.reinitialize_backend = AsyncMock(return_value=True)
    orch.backend_status.return_value = _status()
    return orch


@pytest.fixture()
def auth_headers(test_user_id: str) -> dict[str, str]:
    return {"X-User-Id": test_user_id}


@pytest.fixture()
async def client(orchestrator: MagicMock):
    """Async httpx client wired to the FastAPI app with a mocked orchestrator."""
    from analysis_service.app import app, get_orchestrator

    # Reset rate limiter state between tests to avoid cross-test interference
    app.state.limiter.reset()
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Health endpoints
# ---------------------------------------------------------------------------


class TestLiveness:
    async def test_liveness_returns_ok(self, client: AsyncClient):
        resp = await client.get("/liveness")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestReadiness:
    async def test_readiness_ok(self, client: AsyncClient):
        resp = await client.get("/readiness")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_readiness_degraded_when_disconnected(
        self, client: AsyncClient, orchestrator: MagicMock
    ):
        orchestrator.backend_status.return_value = _status(
            state="reconnecting", connected=False, process_alive=False, reconnect_attempts=2
        )
        resp = await client.get("/readiness")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "degraded"
        assert "reconnecting" in body["error"]

    async def test_readiness_503_without_credentials(
        self, client: AsyncClient, orchestrator: MagicMock
    ):
        orchestrator.backend_status.return_value = _status(client_configured=False)
        resp = await client.get("/readiness")
        assert resp.status_code == 503


# ---------------------------------------------------------------------------
# Identity and ownership
# ---------------------------------------------------------------------------


class TestOwnership:
    async def test_missing_user_returns_401(self, client: AsyncClient):
        resp = await client.post(
            "/v1/analyze", json={"file_name": "user-123/a.txt", "query": "q"}
        )
        assert resp.status_code == 401

    async def test_blank_user_returns_401(self, client: AsyncClient):
        resp = await client.post(
            "/v1/analyze",
            json={"file_name": "user-123/a.txt", "query": "q"},
            headers={"X-User-Id": "   "},
        )
        assert resp.status_code == 401

    async def test_foreign_key_returns_403(
        self, client: AsyncClient, auth_headers: dict[str, str], orchestrator: MagicMock
    ):
        resp = await client.post(
            "/v1/analyze",
            json={"file_name": "user-456/a.txt", "query": "q"},
            headers=auth_headers,
        )
        assert resp.status_code == 403
        orchestrator.analyze.assert_not_awaited()

    async def test_one_foreign_key_rejects_batch(
        self, client: AsyncClient, auth_headers: dict[str, str], orchestrator: MagicMock
    ):
        resp = await client.post(
            "/v1/analyze-multiple",
            json={"file_names": ["user-123/a.txt", "user-456/b.txt"], "query": "q"},
            headers=auth_headers,
        )
        assert resp.status_code == 403
        orchestrator.analyze_many.assert_not_awaited()


# ---------------------------------------------------------------------------
# Analysis endpoints
# ---------------------------------------------------------------------------


class TestAnalyze:
    async def test_analyze_success(
        self, client: AsyncClient, auth_headers: dict[str, str], orchestrator: MagicMock
    ):
        resp = await client.post(
            "/v1/analyze",
            json={"file_name": "user-123/report.pdf", "query": "Key findings?"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["response"] == "single answer"
        assert body["file_name"] == "user-123/report.pdf"
        assert "timestamp" in body

        ref, query = orchestrator.analyze.await_args.args
        assert ref.key == "user-123/report.pdf"
        assert ref.kind is Kind.PDF
        assert query == "Key findings?"

    async def test_blank_query_returns_422(self, client: AsyncClient, auth_headers: dict[str, str]):
        resp = await client.post(
            "/v1/analyze",
            json={"file_name": "user-123/a.txt", "query": ""},
            headers=auth_headers,
        )
        assert resp.status_code == 422

    async def test_analyze_multiple_preserves_order(
        self, client: AsyncClient, auth_headers: dict[str, str], orchestrator: MagicMock
    ):
        names = ["user-123/b.csv", "user-123/a.txt", "user-123/c.png"]
        resp = await client.post(
            "/v1/analyze-multiple",
            json={"file_names": names, "query": "Compare"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["response"] == "batch answer"
        refs, _ = orchestrator.analyze_many.await_args.args
        assert [r.key for r in refs] == names

    async def test_analyze_multiple_empty_list_returns_422(
        self, client: AsyncClient, auth_headers: dict[str, str]
    ):
        resp = await client.post(
            "/v1/analyze-multiple",
            json={"file_names": [], "query": "q"},
            headers=auth_headers,
        )
        assert resp.status_code == 422

    async def test_summarize(
        self, client: AsyncClient, auth_headers: dict[str, str], orchestrator: MagicMock
    ):
        resp = await client.post(
            "/v1/summarize", json={"file_name": "user-123/notes.txt"}, headers=auth_headers
        )
        assert resp.status_code == 200
        assert resp.json()["summary"] == "short summary"

    async def test_extract(
        self, client: AsyncClient, auth_headers: dict[str, str], orchestrator: MagicMock
    ):
        resp = await client.post(
            "/v1/extract",
            json={"file_name": "user-123/invoice.pdf", "data_type": "dates and amounts"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["data"] == "- 2024-05-01: 42 EUR"
        assert body["data_type"] == "dates and amounts"
        _, data_type = orchestrator.extract_data.await_args.args
        assert data_type == "dates and amounts"


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    @pytest.mark.parametrize(
        "exc, status",
        [
            (ArtifactNotFound("user-123/a.txt"), 404),
            (ExtractionError(Kind.PDF, "PdfReadError: EOF marker not found"), 422),
            (BackendCallFailed("429 RESOURCE_EXHAUSTED: quota"), 502),
            (BackendUnavailable(), 503),
            (BackendTimeout(60), 504),
        ],
    )
    async def test_typed_errors_map_to_status(
        self,
        client: AsyncClient,
        auth_headers: dict[str, str],
        orchestrator: MagicMock,
        exc: Exception,
        status: int,
    ):
        orchestrator.analyze.side_effect = exc
        resp = await client.post(
            "/v1/analyze",
            json={"file_name": "user-123/a.txt", "query": "q"},
            headers=auth_headers,
        )
        assert resp.status_code == status

    async def test_extraction_error_body(
        self, client: AsyncClient, auth_headers: dict[str, str], orchestrator: MagicMock
    ):
        orchestrator.summarize.side_effect = ExtractionError(
            Kind.UNSUPPORTED, "unsupported file type"
        )
        resp = await client.post(
            "/v1/summarize", json={"file_name": "user-123/a.zip"}, headers=auth_headers
        )
        assert resp.status_code == 422
        body = resp.json()
        assert body["kind"] == "unsupported"
        assert body["reason"] == "unsupported file type"

    async def test_missing_orchestrator_returns_503(self, auth_headers: dict[str, str]):
        from analysis_service.app import app

        app.state.limiter.reset()
        app.dependency_overrides.clear()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post(
                "/v1/analyze",
                json={"file_name": "user-123/a.txt", "query": "q"},
                headers=auth_headers,
            )
        assert resp.status_code == 503


# ---------------------------------------------------------------------------
# Backend endpoints
# ---------------------------------------------------------------------------


class TestBackendEndpoints:
    async def test_status(self, client: AsyncClient, auth_headers: dict[str, str]):
        resp = await client.get("/v1/backend/status", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["backend"] == _status()

    async def test_status_requires_identity(self, client: AsyncClient):
        resp = await client.get("/v1/backend/status")
        assert resp.status_code == 401

    async def test_reinitialize(
        self, client: AsyncClient, auth_headers: dict[str, str], orchestrator: MagicMock
    ):
        resp = await client.post("/v1/backend/reinitialize", headers=auth_headers)
        assert resp.status_code == 200
        orchestrator.reinitialize_backend.assert_awaited_once()
        assert resp.json()["backend"]["state"] == "connected"


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


class TestMiddleware:
    async def test_oversized_body_returns_413(self, client: AsyncClient, auth_headers: dict[str, str]):
        resp = await client.post(
            "/v1/analyze",
            content=b"{}",
            headers={**auth_headers, "content-length": str(2 * 1024 * 1024)},
        )
        assert resp.status_code == 413

    async def test_request_id_echoed(self, client: AsyncClient):
        resp = await client.get("/liveness", headers={"x-request-id": "req-abc"})
        assert resp.headers["x-request-id"] == "req-abc"

    async def test_request_id_generated(self, client: AsyncClient):
        resp = await client.get("/liveness")
        assert resp.headers.get("x-request-id")

    async def test_request_id_visible_while_handling(
        self, client: AsyncClient, auth_headers: dict[str, str], orchestrator: MagicMock
    ):
        seen: list[str | None] = []

        async def _analyze(ref: Any, query: str) -> str:
            seen.append(request_id_var.get())
            return "ok"

        orchestrator.analyze.side_effect = _analyze
        resp = await client.post(
            "/v1/analyze",
            json={"file_name": "user-123/a.txt", "query": "q"},
            headers={**auth_headers, "x-request-id": "req-xyz"},
        )
        assert resp.status_code == 200
        assert seen == ["req-xyz"]
        assert request_id_var.get() is None
