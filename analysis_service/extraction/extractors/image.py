from __future__ import annotations

import base64

from analysis_service.extraction.classify import media_type_for
from analysis_service.extraction.extractors.base import Extractor
from analysis_service.extraction.types import ArtifactRef, ExtractionResult, Kind


def _detect_image_media_type(data: bytes) -> str:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if data.startswith(b"RIFF") and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


class ImageExtractor(Extractor):
    """No text extraction: the raw bytes go to the vision request path."""

    kind = Kind.IMAGE

    def extract(self, *, ref: ArtifactRef, data: bytes) -> ExtractionResult:
        media_type = media_type_for(ref.display_name)
        if not media_type.startswith("image/"):
            media_type = _detect_image_media_type(data)
        return ExtractionResult.success(
            ref=ref,
            kind=self.kind,
            payload=base64.b64encode(data).decode("ascii"),
            media_type=media_type,
            meta={"strategy": "base64", "bytes": len(data)},
        )
