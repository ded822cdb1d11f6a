from __future__ import annotations

import csv
import io
import json
import logging

from analysis_service.extraction.extractors.base import Extractor
from analysis_service.extraction.types import ArtifactRef, ExtractionResult, Kind

logger = logging.getLogger(__name__)

# Give up on the rest of the stream after this many malformed records in a row
_MAX_CONSECUTIVE_ERRORS = 50


def _to_row(header: list[str], record: list[str]) -> dict[str, str]:
    row: dict[str, str] = {}
    for i, value in enumerate(record):
        if i < len(header):
            row[header[i]] = value
        else:
            row[f"_extra_{i - len(header) + 1}"] = value
    return row


class CsvExtractor(Extractor):
    """Best-effort tabular parse that always resolves.

    The first non-empty record is the header. Records with a different column
    count are kept, malformed records are skipped, and if the stream becomes
    unreadable the rows parsed so far are returned.
    """

    kind = Kind.CSV

    def extract(self, *, ref: ArtifactRef, data: bytes) -> ExtractionResult:
        text = data.decode("utf-8-sig", errors="replace")
        reader = csv.reader(io.StringIO(text, newline=""), strict=True)

        header: list[str] | None = None
        rows: list[dict[str, str]] = []
        skipped = 0
        consecutive = 0
        aborted = False

        while True:
            try:
                record = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                skipped += 1
                consecutive += 1
                logger.warning(
                    "CSV parsing error in %s near line %d (continuing with partial data): %s",
                    ref.display_name,
                    reader.line_num,
                    e,
                )
                if consecutive >= _MAX_CONSECUTIVE_ERRORS:
                    aborted = True
                    break
                continue

            consecutive = 0
            if not record:
                continue
            if header is None:
                header = record
                continue
            rows.append(_to_row(header, record))

        return ExtractionResult.success(
            ref=ref,
            kind=self.kind,
            payload=json.dumps(rows, indent=2, ensure_ascii=False),
            meta={
                "strategy": "csv",
                "rows": len(rows),
                "skipped_records": skipped,
                "partial": skipped > 0 or aborted,
            },
        )
