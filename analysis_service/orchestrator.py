"""Analysis orchestration: fetch, extract, build the prompt, call the backend.

Single-artifact calls fail fast on extraction errors. Multi-artifact calls
never let one bad file block the others: a failed file becomes a placeholder
block and the batch still goes out as exactly one backend call.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from analysis_service import prompts
from analysis_service.backend.facade import AnalysisBackend
from analysis_service.backend.types import BackendPrompt, ImageInput
from analysis_service.config import (
    ANALYSIS_MAX_CONTENT_CHARS,
    ANALYSIS_MAX_TOKENS_IMAGE,
    ANALYSIS_MAX_TOKENS_MULTI,
    ANALYSIS_MAX_TOKENS_SINGLE,
)
from analysis_service.errors import ExtractionError
from analysis_service.extraction.registry import ExtractorRegistry, default_registry
from analysis_service.extraction.types import ArtifactRef, ExtractionResult, Kind
from analysis_service.storage import ArtifactStorage

logger = logging.getLogger(__name__)

ERROR_LABEL = "error"

# Image types the model cannot take as inline image data.
_NON_VISION_MEDIA_TYPES = frozenset({"image/svg+xml"})


@dataclass(frozen=True)
class RequestEntry:
    display_name: str
    kind_label: str
    content: str


@dataclass(frozen=True)
class AnalysisRequest:
    """One batched request: one entry per requested artifact, in caller order."""

    entries: tuple[RequestEntry, ...]
    query: str

    def render(self) -> str:
        parts = [f"I have {len(self.entries)} files to analyze:\n\n"]
        for i, entry in enumerate(self.entries, start=1):
            parts.append(f"File {i}: {entry.display_name} ({entry.kind_label})\n")
            parts.append(f"Content: {entry.content}\n\n---\n\n")
        parts.append(f"Question: {self.query}")
        return "".join(parts)


def truncate_content(content: str, limit: int = ANALYSIS_MAX_CONTENT_CHARS) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + prompts.TRUNCATION_MARKER


class AnalysisOrchestrator:
    def __init__(
        self,
        *,
        storage: ArtifactStorage,
        backend: AnalysisBackend,
        registry: ExtractorRegistry | None = None,
        max_content_chars: int = ANALYSIS_MAX_CONTENT_CHARS,
    ) -> None:
        if max_content_chars < 1:
            raise ValueError("max_content_chars must be >= 1")
        self._storage = storage
        self._backend = backend
        self._registry = registry or default_registry()
        self._max_chars = max_content_chars

    # -- Caller-facing operations ---------------------------------------------

    async def analyze(self, ref: ArtifactRef, query: str) -> str:
        result = await self._extract_or_raise(ref)
        if result.kind is Kind.IMAGE:
            return await self._backend.call(_image_prompt(result, query or prompts.DEFAULT_IMAGE_QUERY))

        prompt = BackendPrompt(
            system_instruction=prompts.analyze_instruction(result.kind),
            text=prompts.single_file_prompt(ref.display_name, result.payload, query),
            max_output_tokens=ANALYSIS_MAX_TOKENS_SINGLE,
        )
        return await self._backend.call(prompt)

    async def analyze_many(self, refs: Sequence[ArtifactRef], query: str) -> str:
        if not refs:
            raise ValueError("At least one artifact is required")

        entries = await asyncio.gather(*(self._batch_entry(ref) for ref in refs))
        request = AnalysisRequest(entries=tuple(entries), query=query)
        failed = sum(1 for e in request.entries if e.kind_label == ERROR_LABEL)
        logger.info(
            "Batch analysis: %d files (%d failed extraction)", len(request.entries), failed
        )

        prompt = BackendPrompt(
            system_instruction=prompts.MULTI_FILE_INSTRUCTION,
            text=request.render(),
            max_output_tokens=ANALYSIS_MAX_TOKENS_MULTI,
        )
        return await self._backend.call(prompt)

    async def summarize(self, ref: ArtifactRef) -> str:
        result = await self._extract_or_raise(ref)
        if result.kind is Kind.IMAGE:
            return await self._backend.call(_image_prompt(result, prompts.IMAGE_SUMMARY_QUERY))

        prompt = BackendPrompt(
            system_instruction=prompts.summary_instruction(result.kind),
            text=prompts.summary_prompt(result.payload),
            max_output_tokens=ANALYSIS_MAX_TOKENS_SINGLE,
        )
        return await self._backend.call(prompt)

    async def extract_data(self, ref: ArtifactRef, data_type: str) -> str:
        result = await self._extract_or_raise(ref)
        if result.kind is Kind.IMAGE:
            query = prompts.extraction_prompt(data_type, "the attached image")
            return await self._backend.call(_image_prompt(result, query))

        prompt = BackendPrompt(
            system_instruction=prompts.extraction_instruction(result.kind, data_type),
            text=prompts.extraction_prompt(data_type, result.payload),
            max_output_tokens=ANALYSIS_MAX_TOKENS_SINGLE,
        )
        return await self._backend.call(prompt)

    async def start_backend(self) -> bool:
        ready = await self._backend.ensure_connected()
        if not ready:
            logger.error("Analysis backend failed to start; reconnect policy takes over")
        return ready

    async def reinitialize_backend(self) -> bool:
        logger.info("Manual backend reinitialize requested")
        return await self._backend.restart()

    async def shutdown(self) -> None:
        await self._backend.shutdown()

    def backend_status(self) -> dict[str, Any]:
        status = self._backend.status()
        return {
            "state": status.state.value,
            "connected": status.connected,
            "reconnect_attempts": status.reconnect_attempts,
            "process_alive": status.process_alive,
            "client_configured": self._backend.client_configured,
        }

    # -- Internals ------------------------------------------------------------

    async def _extract(self, ref: ArtifactRef) -> ExtractionResult:
        data = await self._storage.get_bytes(ref)
        if ref.size is None:
            ref = dataclasses.replace(ref, size=len(data))
        return await asyncio.to_thread(self._registry.extract, ref, data)

    async def _extract_or_raise(self, ref: ArtifactRef) -> ExtractionResult:
        result = await self._extract(ref)
        if not result.ok:
            # Not retried: the bytes will not change on a second attempt.
            raise ExtractionError(result.kind, result.reason or "unknown error")
        return result

    async def _batch_entry(self, ref: ArtifactRef) -> RequestEntry:
        try:
            result = await self._extract(ref)
        except Exception as e:
            logger.warning("Error processing file %s: %s", ref.key, e, exc_info=True)
            return RequestEntry(
                display_name=ref.display_name,
                kind_label=ERROR_LABEL,
                content=prompts.failed_file_placeholder(ref.display_name, str(e) or type(e).__name__),
            )

        if not result.ok:
            return RequestEntry(
                display_name=ref.display_name,
                kind_label=ERROR_LABEL,
                content=prompts.failed_file_placeholder(ref.display_name, result.reason or "unknown error"),
            )

        if result.kind is Kind.IMAGE:
            content = prompts.image_placeholder(ref.display_name)
        else:
            content = truncate_content(result.payload, self._max_chars)
        return RequestEntry(display_name=ref.display_name, kind_label=result.kind.value, content=content)


def _image_prompt(result: ExtractionResult, query: str) -> BackendPrompt:
    media_type = result.media_type or "image/jpeg"
    if media_type in _NON_VISION_MEDIA_TYPES:
        raise ExtractionError(result.kind, f"{media_type} images cannot be sent for image analysis")
    return BackendPrompt(
        text=query,
        image=ImageInput(data_b64=result.payload, media_type=media_type),
        max_output_tokens=ANALYSIS_MAX_TOKENS_IMAGE,
    )
