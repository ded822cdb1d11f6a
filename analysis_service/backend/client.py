"""Model API channel for analysis requests, using Gemini via google-genai.

This is the payload path; it is independent of the supervised backend
process, whose output is only logged.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import os
from functools import lru_cache
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from analysis_service.backend.types import BackendPrompt
from analysis_service.config import (
    ANALYSIS_CALL_TIMEOUT_SECONDS,
    ANALYSIS_MODEL,
    ANALYSIS_TEMPERATURE,
    VERTEX_LOCATION,
    VERTEX_PROJECT,
)
from analysis_service.errors import BackendCallFailed, BackendTimeout

logger = logging.getLogger(__name__)


def _is_gcp_environment() -> bool:
    """Detect if running on GCP (Cloud Run, GCE, etc.)."""
    return bool(os.getenv("K_SERVICE") or os.getenv("GOOGLE_APPLICATION_CREDENTIALS"))


def is_configured() -> bool:
    return _is_gcp_environment() or bool(os.getenv("GEMINI_API_KEY"))


@lru_cache(maxsize=1)
def _get_gemini_client() -> genai.Client:
    """Cached Gemini client with automatic credential detection."""
    if _is_gcp_environment():
        return genai.Client(
            vertexai=True, project=VERTEX_PROJECT, location=VERTEX_LOCATION
        )
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise BackendCallFailed(
            "GEMINI_API_KEY not set. Set it for local dev or run on GCP for ADC."
        )
    return genai.Client(api_key=api_key)


def build_contents(prompt: BackendPrompt) -> list[Any]:
    """Image bytes (if any) first, then the text part."""
    contents: list[Any] = []
    if prompt.image is not None:
        contents.append(
            types.Part.from_bytes(
                data=base64.b64decode(prompt.image.data_b64),
                mime_type=prompt.image.media_type,
            )
        )
    contents.append(prompt.text)
    return contents


class GeminiAnalysisClient:
    def __init__(
        self,
        *,
        model: str = ANALYSIS_MODEL,
        timeout_seconds: float = ANALYSIS_CALL_TIMEOUT_SECONDS,
        temperature: float = ANALYSIS_TEMPERATURE,
        client: genai.Client | None = None,
    ) -> None:
        self._model = model
        self._timeout = timeout_seconds
        self._temperature = temperature
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or is_configured()

    def _genai(self) -> genai.Client:
        if self._client is None:
            self._client = _get_gemini_client()
        return self._client

    async def generate(self, prompt: BackendPrompt) -> str:
        """Single bounded call. Timeouts and API errors are not retried."""
        client = self._genai()
        config = types.GenerateContentConfig(
            system_instruction=prompt.system_instruction,
            max_output_tokens=prompt.max_output_tokens,
            temperature=self._temperature,
        )

        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=self._model,
                    contents=build_contents(prompt),
                    config=config,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Model call exceeded %.1fs timeout", self._timeout)
            raise BackendTimeout(self._timeout) from e
        except genai_errors.APIError as e:
            logger.error("Model call failed: %s %s", e.code, e.message)
            raise BackendCallFailed(f"{e.code} {e.status or ''}: {e.message}".strip()) from e
        except httpx.TimeoutException as e:
            logger.warning("Model transport timed out: %s", e)
            raise BackendTimeout(self._timeout) from e
        except httpx.HTTPError as e:
            logger.error("Model transport failed: %s: %s", type(e).__name__, e)
            raise BackendCallFailed(f"{type(e).__name__}: {e}") from e

        text = (getattr(response, "text", "") or "").strip()
        if not text:
            finish = None
            candidates = getattr(response, "candidates", None) or []
            if candidates:
                finish = getattr(candidates[0], "finish_reason", None)
            raise BackendCallFailed(f"Empty response from model (finish_reason={finish})")
        return text
