from __future__ import annotations

import logging
from collections.abc import Iterable

from analysis_service.extraction.classify import classify, media_type_for
from analysis_service.extraction.extractors.base import Extractor
from analysis_service.extraction.extractors.csv import CsvExtractor
from analysis_service.extraction.extractors.docx import DocxExtractor
from analysis_service.extraction.extractors.image import ImageExtractor
from analysis_service.extraction.extractors.pdf import PdfExtractor
from analysis_service.extraction.extractors.text import TextExtractor
from analysis_service.extraction.types import ArtifactRef, ExtractionResult, Kind

__all__ = ["ExtractorRegistry", "classify", "default_registry", "media_type_for"]

logger = logging.getLogger(__name__)

UNSUPPORTED_REASON = "unsupported file type"


class ExtractorRegistry:
    """Maps every supported Kind to exactly one extraction strategy."""

    def __init__(self, extractors: Iterable[Extractor]) -> None:
        table: dict[Kind, Extractor] = {}
        for ex in extractors:
            if ex.kind is Kind.UNSUPPORTED:
                raise ValueError("UNSUPPORTED never has an extraction strategy")
            if ex.kind in table:
                raise ValueError(f"Duplicate extractor for kind {ex.kind.value!r}")
            table[ex.kind] = ex

        missing = [k.value for k in Kind if k is not Kind.UNSUPPORTED and k not in table]
        if missing:
            raise ValueError(f"No extractor registered for: {', '.join(missing)}")
        self._table = table

    def extract(self, ref: ArtifactRef, data: bytes) -> ExtractionResult:
        """Run the strategy for ``ref.kind``. Never raises."""
        if ref.kind is Kind.UNSUPPORTED:
            return ExtractionResult.failure(ref=ref, kind=ref.kind, reason=UNSUPPORTED_REASON)

        extractor = self._table[ref.kind]
        try:
            return extractor.extract(ref=ref, data=data)
        except Exception as e:
            logger.warning(
                "Extraction failed for %s (%s): %s: %s",
                ref.display_name,
                ref.kind.value,
                type(e).__name__,
                e,
            )
            return ExtractionResult.failure(
                ref=ref,
                kind=ref.kind,
                reason=f"{type(e).__name__}: {e}" if str(e) else type(e).__name__,
            )


def default_registry() -> ExtractorRegistry:
    return ExtractorRegistry(
        [
            ImageExtractor(),
            PdfExtractor(),
            TextExtractor(),
            CsvExtractor(),
            DocxExtractor(),
        ]
    )

