"""Unit tests for classification and the extractor registry."""

from __future__ import annotations

import pytest

from analysis_service.extraction.extractors.base import Extractor
from analysis_service.extraction.extractors.text import TextExtractor
from analysis_service.extraction.registry import (
    UNSUPPORTED_REASON,
    ExtractorRegistry,
    classify,
    default_registry,
    media_type_for,
)
from analysis_service.extraction.types import (
    ArtifactRef,
    ExtractionResult,
    ExtractionStatus,
    Kind,
)


class _Exploding(Extractor):
    kind = Kind.PLAIN_TEXT

    def extract(self, *, ref: ArtifactRef, data: bytes) -> ExtractionResult:
        raise RuntimeError("boom")


class _Stub(Extractor):
    def __init__(self, kind: Kind) -> None:
        self.kind = kind  # type: ignore[misc]

    def extract(self, *, ref: ArtifactRef, data: bytes) -> ExtractionResult:
        return ExtractionResult.success(ref=ref, kind=self.kind, payload="stub")


def _all_stubs(*, skip: Kind | None = None) -> list[Extractor]:
    return [_Stub(k) for k in Kind if k is not Kind.UNSUPPORTED and k is not skip]


# ===========================================================================
# classify / media_type_for
# ===========================================================================


class TestClassify:
    @pytest.mark.parametrize(
        "name, kind",
        [
            ("photo.jpg", Kind.IMAGE),
            ("photo.JPEG", Kind.IMAGE),
            ("icon.png", Kind.IMAGE),
            ("anim.gif", Kind.IMAGE),
            ("pic.webp", Kind.IMAGE),
            ("report.pdf", Kind.PDF),
            ("notes.txt", Kind.PLAIN_TEXT),
            ("data.csv", Kind.CSV),
            ("memo.docx", Kind.RICH_DOCUMENT),
            ("archive.tar.gz", Kind.UNSUPPORTED),
            ("legacy.doc", Kind.RICH_DOCUMENT),
            ("Makefile", Kind.UNSUPPORTED),
            ("", Kind.UNSUPPORTED),
        ],
    )
    def test_suffix_classification(self, name: str, kind: Kind) -> None:
        assert classify(name) is kind

    def test_only_last_suffix_counts(self) -> None:
        assert classify("report.pdf.txt") is Kind.PLAIN_TEXT
        assert classify("user-1/dir.csv/notes") is Kind.UNSUPPORTED

    def test_media_types(self) -> None:
        assert media_type_for("a.png") == "image/png"
        assert media_type_for("a.JPG") == "image/jpeg"
        assert media_type_for("a.pdf") == "application/pdf"
        assert media_type_for("a.unknown") == "application/octet-stream"


class TestArtifactRef:
    def test_from_key_derives_display_name_and_kind(self) -> None:
        ref = ArtifactRef.from_key("user-123/reports/q3.pdf")

        assert ref.display_name == "q3.pdf"
        assert ref.kind is Kind.PDF
        assert ref.owner_id == "user-123"

    def test_key_without_prefix_has_no_owner(self) -> None:
        assert ArtifactRef.from_key("loose.txt").owner_id == ""


# ===========================================================================
# ExtractorRegistry
# ===========================================================================


class TestRegistryConstruction:
    def test_default_registry_covers_every_kind(self) -> None:
        registry = default_registry()
        for kind in Kind:
            ref = ArtifactRef(key=f"u/x.{kind.value}", display_name="x", kind=kind, size=None)
            # Dispatch must never raise, whatever the bytes.
            result = registry.extract(ref, b"")
            assert result.kind is kind

    def test_missing_kind_rejected(self) -> None:
        with pytest.raises(ValueError, match="No extractor registered"):
            ExtractorRegistry(_all_stubs(skip=Kind.CSV))

    def test_duplicate_kind_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate"):
            ExtractorRegistry([*_all_stubs(), _Stub(Kind.PDF)])

    def test_unsupported_strategy_rejected(self) -> None:
        with pytest.raises(ValueError, match="UNSUPPORTED"):
            ExtractorRegistry([*_all_stubs(), _Stub(Kind.UNSUPPORTED)])


class TestRegistryDispatch:
    def test_routes_by_kind(self) -> None:
        result = default_registry().extract(ArtifactRef.from_key("u/notes.txt"), b"plain words")

        assert result.status is ExtractionStatus.OK
        assert result.payload == "plain words"

    def test_unsupported_is_failure_not_exception(self) -> None:
        ref = ArtifactRef.from_key("u/archive.zip")
        result = default_registry().extract(ref, b"PK\x03\x04")

        assert result.status is ExtractionStatus.FAILED
        assert result.kind is Kind.UNSUPPORTED
        assert result.reason == UNSUPPORTED_REASON
        assert result.ref == ref

    def test_strategy_exception_becomes_failure(self) -> None:
        stubs = _all_stubs(skip=Kind.PLAIN_TEXT)
        registry = ExtractorRegistry([*stubs, _Exploding()])

        result = registry.extract(ArtifactRef.from_key("u/notes.txt"), b"x")

        assert not result.ok
        assert result.kind is Kind.PLAIN_TEXT
        assert result.reason == "RuntimeError: boom"

    def test_corrupt_pdf_becomes_failure(self) -> None:
        result = default_registry().extract(ArtifactRef.from_key("u/broken.pdf"), b"NOT_EVEN_PDF")

        assert result.status is ExtractionStatus.FAILED
        assert result.kind is Kind.PDF
        assert result.reason

    def test_text_strategy_is_registered(self) -> None:
        registry = ExtractorRegistry(
            [*_all_stubs(skip=Kind.PLAIN_TEXT), TextExtractor()]
        )
        result = registry.extract(ArtifactRef.from_key("u/a.txt"), b"abc")

        assert result.payload == "abc"
