"""Turning uploaded files into chaptered books.

``segment_upload`` is the entry point: it classifies the upload by
extension, splits text formats into chapters with simple rules and hands
binary formats (PDF, EPUB) to a ``DocumentExtractor``. The result is a
candidate book that an administrator reviews before it is published.

Segmentation rules:

* Plain text is split on runs of three or more newlines (two or more
  blank lines). Without such a run the whole file is one chapter.
* Markdown is split on level-1 and level-2 heading lines, which are
  dropped. Text before the first heading is kept as its own chapter.
* PDF and EPUB bytes are passed to the configured extractor. The default
  ``SimulatedExtractor`` does not parse anything and returns fixed
  descriptive chapters; ``EpubArchiveExtractor`` reads real EPUB files.

Whatever the format, a book never ends up without chapters: when no
chapter survives, the raw text becomes the single chapter.
"""

from __future__ import annotations

import logging
import math
import posixpath
import re
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, List, Optional, Union

from bs4 import BeautifulSoup

from .errors import ContentReadError
from .formats import BINARY_FORMATS, IngestFormat, classify, extension_token, strip_extension
from .models import Book, CoverColor

logger = logging.getLogger(__name__)

DEFAULT_AUTHOR = "Uploaded Content"
PDF_AUTHOR = "PDF Document"
CHARS_PER_MINUTE = 1000

_PLAIN_TEXT_BOUNDARY = re.compile(r"\n{3,}")
_MARKDOWN_HEADING = re.compile(r"^#{1,2}\s+.*", re.MULTILINE)
_AUTHOR_SEPARATOR = re.compile(r"[-_]")
_TEXT_BLOCKS = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "blockquote"]

_COVER_COLORS = {
    IngestFormat.PDF: CoverColor.RED,
    IngestFormat.EPUB: CoverColor.PURPLE,
    IngestFormat.MARKDOWN: CoverColor.BLUE,
}


class DocumentExtractor(ABC):
    """Turns the bytes of a binary document into chapter texts.

    Subclasses implement ``extract``. ``title`` is the file name without
    extension, for extractors that mention it in generated text.
    """

    @abstractmethod
    def extract(self, fmt: IngestFormat, data: bytes, title: str) -> List[str]:
        ...


class SimulatedExtractor(DocumentExtractor):
    """Stand-in extractor that emits fixed placeholder chapters.

    Two chapters for PDF, three for EPUB. The bytes are not inspected.
    """

    def extract(self, fmt: IngestFormat, data: bytes, title: str) -> List[str]:
        if fmt is IngestFormat.PDF:
            return [
                f'This is a PDF document titled "{title}".\n\n'
                "PDF text extraction is simulated. A production deployment plugs a "
                "real extractor in here to pull the text out of every page.\n\n"
                "Once extracted, the document is split into chapters and made "
                "available to readers like any other book in the library.",
                "Chapter 2: What a real extractor handles\n\n"
                "- Multi-page documents\n"
                "- Complex layouts and formatting\n"
                "- Embedded fonts and styles\n"
                "- Tables and structured data\n\n"
                "The simulated chapters stand in for that content until a real "
                "extractor is configured.",
            ]
        if fmt is IngestFormat.EPUB:
            return [
                f'Welcome to "{title}"\n\n'
                "This EPUB document has been imported into the digital library. "
                "EPUB parsing is simulated, so these chapters describe the import "
                "rather than reproduce the book.",
                "Chapter 2: EPUB content structure\n\n"
                "A real extractor reads the text of every XHTML document in the "
                "spine and keeps the chapter divisions of the original file.",
                "Chapter 3: Reading experience\n\n"
                "Imported chapters support full-text search, bookmarks, notes and "
                "reading progress tracking like every other book.",
            ]
        raise ValueError(f"No simulated content for format {fmt.value}")


class EpubArchiveExtractor(DocumentExtractor):
    """Extracts chapter text from a real EPUB container.

    The container is a zip archive: ``META-INF/container.xml`` points at
    the package document, whose spine lists the XHTML files in reading
    order. Each spine document with any text becomes a chapter. PDFs are
    delegated to ``fallback``.
    """

    def __init__(self, fallback: Optional[DocumentExtractor] = None) -> None:
        self.fallback = fallback or SimulatedExtractor()

    def extract(self, fmt: IngestFormat, data: bytes, title: str) -> List[str]:
        if fmt is not IngestFormat.EPUB:
            return self.fallback.extract(fmt, data, title)
        try:
            with zipfile.ZipFile(BytesIO(data)) as archive:
                return self._read_spine(archive)
        except (zipfile.BadZipFile, KeyError) as e:
            raise ContentReadError(f"Not a readable EPUB archive: {e}") from e

    def _read_spine(self, archive: zipfile.ZipFile) -> List[str]:
        container = BeautifulSoup(archive.read("META-INF/container.xml"), "xml")
        rootfile = container.find("rootfile")
        if rootfile is None or not rootfile.get("full-path"):
            raise ContentReadError("EPUB container does not name a package document")
        opf_path = rootfile["full-path"]
        opf_dir = posixpath.dirname(opf_path)
        package = BeautifulSoup(archive.read(opf_path), "xml")

        manifest: Dict[str, str] = {}
        for item in package.find_all("item"):
            if item.get("id") and item.get("href"):
                manifest[item["id"]] = posixpath.normpath(posixpath.join(opf_dir, item["href"]))

        chapters: List[str] = []
        for itemref in package.find_all("itemref"):
            href = manifest.get(itemref.get("idref", ""))
            if not href:
                continue
            text = _document_text(archive.read(href))
            if text:
                chapters.append(text)
        return chapters


def _document_text(document: bytes) -> str:
    """Plain text of an XHTML document, paragraphs separated by blank lines."""
    soup = BeautifulSoup(document, "lxml")
    body = soup.body or soup
    for tag in body.find_all(["script", "style"]):
        tag.decompose()
    # Outermost blocks only; a <p> inside <li> or <blockquote> is part of it.
    blocks = [b for b in body.find_all(_TEXT_BLOCKS) if b.find_parent(_TEXT_BLOCKS) is None]
    texts = [b.get_text(separator=" ", strip=True) for b in blocks]
    texts = [t for t in texts if t]
    if not texts:
        fallback = body.get_text(separator=" ", strip=True)
        return fallback
    return "\n\n".join(texts)


@dataclass
class IngestResult:
    """Candidate book produced from an upload, pending admin review."""

    filename: str
    format: IngestFormat
    title: str
    author: str
    description: str
    category: str
    reading_time: str
    cover_color: CoverColor
    chapters: List[str] = field(default_factory=list)

    def to_book(self, **overrides) -> Book:
        """Build an unpublished ``Book`` from the candidate.

        ``overrides`` replaces any of the derived fields, using the
        ``Book`` attribute names.
        """
        fields = {
            "title": self.title,
            "author": self.author,
            "description": self.description,
            "category": self.category,
            "reading_time": self.reading_time,
            "cover_color": self.cover_color,
            "content": list(self.chapters),
            "is_published": False,
        }
        fields.update({k: v for k, v in overrides.items() if v is not None})
        return Book(**fields)


def split_plain_text(text: str) -> List[str]:
    """Split plain text into chapters at runs of three or more newlines."""
    if not _PLAIN_TEXT_BOUNDARY.search(text):
        return [text]
    chapters = [block.strip() for block in _PLAIN_TEXT_BOUNDARY.split(text)]
    chapters = [c for c in chapters if c]
    return chapters or [text]


def split_markdown(text: str) -> List[str]:
    """Split markdown into chapters at ``#`` and ``##`` heading lines.

    Heading lines are removed. Non-blank text before the first heading is
    kept as the first chapter.
    """
    if not _MARKDOWN_HEADING.search(text):
        return [text]
    chapters = [block.strip() for block in _MARKDOWN_HEADING.split(text)]
    chapters = [c for c in chapters if c]
    return chapters or [text]


def reading_time_label(chapters: List[str]) -> str:
    """``"<n> min read"`` at one minute per thousand characters, rounded up."""
    total = sum(len(c) for c in chapters)
    return f"{math.ceil(total / CHARS_PER_MINUTE)} min read"


def split_author_title(stem: str) -> Optional[tuple[str, str]]:
    """Derive ``(author, title)`` from names like ``Author-Some_Title``.

    Returns None when the name has no ``-`` or ``_`` separator.
    """
    parts = _AUTHOR_SEPARATOR.split(stem)
    if len(parts) < 2:
        return None
    author = parts[0].strip()
    title = " ".join(parts[1:]).strip()
    return author, title


def decode_text(data: Union[bytes, str]) -> str:
    """Decode uploaded bytes as UTF-8 text with normalized line endings."""
    if isinstance(data, str):
        text = data
    else:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ContentReadError(f"File is not valid UTF-8 text: {e}") from e
    return text.replace("\r\n", "\n").replace("\r", "\n")


def segment_upload(filename: str, data: Union[bytes, str],
                   extractor: Optional[DocumentExtractor] = None) -> IngestResult:
    """Turn an uploaded file into a candidate book.

    Args:
        filename: Name of the uploaded file; decides the format.
        data: Raw file content. Text formats must decode as UTF-8.
        extractor: Collaborator used for PDF and EPUB content. Defaults to
            ``SimulatedExtractor``.

    Returns:
        An ``IngestResult`` with derived metadata and at least one chapter.

    Raises:
        ContentReadError: The content of a text format cannot be decoded,
            or the extractor cannot read a binary document.
    """
    fmt = classify(filename)
    token = extension_token(filename)
    title = strip_extension(filename)
    author = DEFAULT_AUTHOR
    description = f"Imported from {filename}"

    if fmt in BINARY_FORMATS:
        raw = data.encode("utf-8") if isinstance(data, str) else data
        chapters = (extractor or SimulatedExtractor()).extract(fmt, raw, title)
        split = split_author_title(title)
        if split is not None:
            author, title = split
        elif fmt is IngestFormat.PDF:
            author = PDF_AUTHOR
        if fmt is IngestFormat.PDF:
            description = (f"PDF document imported from {filename}. Content has been "
                           "processed and converted to readable format.")
        else:
            description = (f"EPUB book imported from {filename}. Digital book content "
                           "processed with chapter structure preserved.")
        fallback = ""
    else:
        text = decode_text(data)
        if fmt is IngestFormat.PLAIN_TEXT:
            chapters = split_plain_text(text)
        elif fmt is IngestFormat.MARKDOWN:
            chapters = split_markdown(text)
        else:
            chapters = [text]
        fallback = text

    if not chapters:
        chapters = [fallback]

    result = IngestResult(
        filename=filename,
        format=fmt,
        title=title,
        author=author,
        description=description,
        category=token.upper() if token else "Uploaded",
        reading_time=reading_time_label(chapters),
        cover_color=_COVER_COLORS.get(fmt, CoverColor.GRAY),
        chapters=chapters,
    )
    logger.info("Segmented %s as %s into %d chapter(s)", filename, fmt.value, len(chapters))
    return result
