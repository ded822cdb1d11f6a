from __future__ import annotations

from analysis_service.extraction.extractors.base import Extractor
from analysis_service.extraction.types import ArtifactRef, ExtractionResult, Kind


class TextExtractor(Extractor):
    kind = Kind.PLAIN_TEXT

    def extract(self, *, ref: ArtifactRef, data: bytes) -> ExtractionResult:
        # Verbatim: invalid sequences become U+FFFD, text files never hard-fail
        text = data.decode("utf-8", errors="replace")
        return ExtractionResult.success(
            ref=ref,
            kind=self.kind,
            payload=text,
            meta={"strategy": "text"},
        )
