from __future__ import annotations

import io
import logging

from pypdf import PdfReader

from analysis_service.extraction.extractors.base import Extractor
from analysis_service.extraction.types import ArtifactRef, ExtractionResult, Kind

logger = logging.getLogger(__name__)


class PdfExtractor(Extractor):
    kind = Kind.PDF

    def extract(self, *, ref: ArtifactRef, data: bytes) -> ExtractionResult:
        # Parser errors propagate; the registry turns them into a failed result.
        r = PdfReader(io.BytesIO(data), strict=False)
        pages = len(r.pages)
        parts: list[str] = []
        for p in r.pages:
            t = p.extract_text() or ""
            if t.strip():
                parts.append(t)
        text = "\n".join(parts)
        if not text:
            logger.info("PDF %s parsed but contains no extractable text", ref.display_name)
        return ExtractionResult.success(
            ref=ref,
            kind=self.kind,
            payload=text,
            meta={"strategy": "pypdf", "pages": pages},
        )
