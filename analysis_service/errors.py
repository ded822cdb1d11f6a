"""Typed errors surfaced by the analysis core.

The HTTP layer maps each of these to a status code; nothing in the core
returns a generic failure string in their place.
"""

from __future__ import annotations

from analysis_service.extraction.types import Kind


class AnalysisError(Exception):
    """Base class for every error the analysis core raises to callers."""


class ExtractionError(AnalysisError):
    def __init__(self, kind: Kind, reason: str) -> None:
        super().__init__(f"Could not extract {kind.value} content: {reason}")
        self.kind = kind
        self.reason = reason


class ArtifactNotFound(AnalysisError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Artifact not found: {key}")
        self.key = key


class BackendUnavailable(AnalysisError):
    def __init__(self, message: str = "Analysis backend is not connected") -> None:
        super().__init__(message)


class BackendTimeout(AnalysisError):
    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Analysis backend did not respond within {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class BackendCallFailed(AnalysisError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Analysis backend call failed: {detail}")
        self.detail = detail
