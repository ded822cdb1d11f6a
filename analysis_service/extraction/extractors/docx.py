from __future__ import annotations

import io

import docx  # python-docx

from analysis_service.extraction.extractors.base import Extractor
from analysis_service.extraction.types import ArtifactRef, ExtractionResult, Kind


class DocxExtractor(Extractor):
    kind = Kind.RICH_DOCUMENT

    def extract(self, *, ref: ArtifactRef, data: bytes) -> ExtractionResult:
        f = io.BytesIO(data)
        d = docx.Document(f)
        parts: list[str] = []
        for p in d.paragraphs:
            if p.text and p.text.strip():
                parts.append(p.text)
        for table in d.tables:
            for row in table.rows:
                cells = [c.text.strip() for c in row.cells if c.text and c.text.strip()]
                if cells:
                    parts.append("\t".join(cells))
        return ExtractionResult.success(
            ref=ref,
            kind=self.kind,
            payload="\n".join(parts),
            meta={"strategy": "docx"},
        )
