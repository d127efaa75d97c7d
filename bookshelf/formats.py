"""Classification of uploaded files by extension.

The ingest format is decided from the file name alone; the content is
never sniffed.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePath


class IngestFormat(str, Enum):
    PLAIN_TEXT = "txt"
    MARKDOWN = "md"
    PDF = "pdf"
    EPUB = "epub"
    UNSUPPORTED = "unsupported"


_BY_EXTENSION = {
    "txt": IngestFormat.PLAIN_TEXT,
    "md": IngestFormat.MARKDOWN,
    "pdf": IngestFormat.PDF,
    "epub": IngestFormat.EPUB,
}

# Formats whose bytes go to a document extractor instead of being decoded.
BINARY_FORMATS = frozenset({IngestFormat.PDF, IngestFormat.EPUB})


def extension_token(filename: str) -> str:
    """Return the lowercase extension of ``filename`` without the dot."""
    return PurePath(filename).suffix.lstrip(".").lower()


def strip_extension(filename: str) -> str:
    """Return ``filename`` without its last extension."""
    name = PurePath(filename).name
    suffix = PurePath(name).suffix
    return name[: -len(suffix)] if suffix else name


def classify(filename: str) -> IngestFormat:
    """Map ``filename`` onto one of the ingest formats."""
    return _BY_EXTENSION.get(extension_token(filename), IngestFormat.UNSUPPORTED)
