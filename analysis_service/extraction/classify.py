from __future__ import annotations

from analysis_service.extraction.types import Kind

_KINDS: dict[str, Kind] = {
    "jpg": Kind.IMAGE,
    "jpeg": Kind.IMAGE,
    "png": Kind.IMAGE,
    "gif": Kind.IMAGE,
    "webp": Kind.IMAGE,
    "svg": Kind.IMAGE,
    "pdf": Kind.PDF,
    "txt": Kind.PLAIN_TEXT,
    "csv": Kind.CSV,
    "docx": Kind.RICH_DOCUMENT,
    "doc": Kind.RICH_DOCUMENT,
}

_MEDIA_TYPES: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "pdf": "application/pdf",
    "txt": "text/plain",
    "csv": "text/csv",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "doc": "application/msword",
}

DEFAULT_MEDIA_TYPE = "application/octet-stream"


def suffix_of(name: str) -> str:
    base = name.rsplit("/", 1)[-1]
    if "." not in base:
        return ""
    return base.rsplit(".", 1)[-1].lower()


def classify(display_name: str) -> Kind:
    return _KINDS.get(suffix_of(display_name), Kind.UNSUPPORTED)


def media_type_for(display_name: str) -> str:
    return _MEDIA_TYPES.get(suffix_of(display_name), DEFAULT_MEDIA_TYPE)
