from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Kind(str, Enum):
    IMAGE = "image"
    PDF = "pdf"
    PLAIN_TEXT = "text"
    CSV = "csv"
    RICH_DOCUMENT = "docx"
    UNSUPPORTED = "unsupported"


class ExtractionStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"


@dataclass(frozen=True)
class ArtifactRef:
    key: str  # <owner_id>/<name>, as stored by the upload side
    display_name: str
    kind: Kind
    size: int | None  # byte length; None until the bytes are fetched

    @classmethod
    def from_key(cls, key: str, *, size: int | None = None) -> ArtifactRef:
        # classify imports Kind from this module
        from analysis_service.extraction.classify import classify

        name = display_name_for(key)
        return cls(key=key, display_name=name, kind=classify(name), size=size)

    @property
    def owner_id(self) -> str:
        owner, sep, _ = self.key.partition("/")
        return owner if sep else ""


@dataclass(frozen=True)
class ExtractionResult:
    ref: ArtifactRef
    kind: Kind
    payload: str
    status: ExtractionStatus
    reason: str | None = None
    media_type: str | None = None  # set for images, routes to the vision path
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is ExtractionStatus.OK

    @classmethod
    def success(
        cls,
        *,
        ref: ArtifactRef,
        kind: Kind,
        payload: str,
        media_type: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> ExtractionResult:
        return cls(
            ref=ref,
            kind=kind,
            payload=payload,
            status=ExtractionStatus.OK,
            media_type=media_type,
            meta=meta or {},
        )

    @classmethod
    def failure(cls, *, ref: ArtifactRef, kind: Kind, reason: str) -> ExtractionResult:
        return cls(
            ref=ref,
            kind=kind,
            payload="",
            status=ExtractionStatus.FAILED,
            reason=reason,
        )


def display_name_for(key: str) -> str:
    base = key.split("/")[-1]
    if not base:
        return key
    return base
