from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from analysis_service.extraction.types import ArtifactRef, ExtractionResult, Kind


class Extractor(ABC):
    kind: ClassVar[Kind]

    @abstractmethod
    def extract(self, *, ref: ArtifactRef, data: bytes) -> ExtractionResult: ...
