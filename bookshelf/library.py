"""Book lifecycle: publish, edit, delete and the sample catalogue."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from . import db
from .annotations import cascade_delete_book
from .errors import NotFoundError, ValidationError
from .models import Book, CoverColor

logger = logging.getLogger(__name__)

# Fields an administrator may change on an existing book.
EDITABLE_FIELDS = ("title", "author", "description", "category", "reading_time", "cover_color", "content")


def list_books() -> List[Book]:
    return db.load_records(db.BOOKS, Book)


def published_books() -> List[Book]:
    return [book for book in list_books() if book.is_published]


def get_book(book_id: str) -> Optional[Book]:
    return next((b for b in list_books() if b.id == book_id), None)


def _clean_content(content: List[str]) -> List[str]:
    chapters = [c for c in content if c.strip()]
    if chapters:
        return chapters
    # Never store a book without chapters; keep the raw text instead.
    return ["\n\n".join(content)] if content else [""]


def draft_book(fields: Dict[str, Any]) -> Book:
    """Build an unsaved book from ``fields``.

    The content is cleaned first, so an empty chapter list yields a book
    with a single empty chapter rather than an invalid one.
    """
    fields = dict(fields)
    fields["content"] = _clean_content(fields.get("content") or [])
    return Book.model_validate(fields)


def _require_metadata(title: str, author: str) -> None:
    if not title or not title.strip():
        raise ValidationError("Book title is required")
    if not author or not author.strip():
        raise ValidationError("Book author is required")


def publish_book(draft: Book) -> Book:
    """Append ``draft`` to the collection as a published book.

    Blank chapters are dropped. Title and author are required.
    """
    _require_metadata(draft.title, draft.author)
    book = draft.model_copy(update={"content": _clean_content(draft.content), "is_published": True})
    db.update_collection(db.BOOKS, lambda items: items + [book.to_json()])
    logger.info("Published book %s (%s, %d chapters)", book.id, book.title, len(book.content))
    return book


def edit_book(book_id: str, changes: Dict[str, Any]) -> Book:
    """Replace the editable fields of a book with the values in ``changes``.

    Keys outside ``EDITABLE_FIELDS`` and None values are ignored.

    Raises:
        NotFoundError: No book has ``book_id``.
        ValidationError: The edit would leave title or author empty.
    """
    update = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
    if "content" in update:
        update["content"] = _clean_content(update["content"])
    edited: List[Book] = []

    def reducer(items: List[dict]) -> List[dict]:
        result = []
        for item in items:
            if item.get("id") == book_id:
                merged = Book.model_validate({**Book.model_validate(item).model_dump(), **update})
                _require_metadata(merged.title, merged.author)
                edited.append(merged)
                item = merged.to_json()
            result.append(item)
        return result

    db.update_collection(db.BOOKS, reducer)
    if not edited:
        raise NotFoundError(f"Book {book_id} not found")
    logger.info("Edited book %s", book_id)
    return edited[0]


def delete_book(book_id: str) -> None:
    """Delete a book and cascade to its bookmarks and notes."""
    if get_book(book_id) is None:
        raise NotFoundError(f"Book {book_id} not found")
    cascade_delete_book(book_id)


SAMPLE_BOOKS = [
    Book(
        id="book-1",
        title="Digital Transformation Guide",
        author="Technology Experts",
        description="A comprehensive guide to digital transformation in modern organizations.",
        category="Technology",
        reading_time="45 min read",
        cover_color=CoverColor.BLUE,
        content=[
            "Digital transformation represents a fundamental shift in how organizations operate "
            "and deliver value to customers. It involves integrating digital technology into all "
            "business areas.\n\nThis transformation goes beyond simply digitizing existing "
            "processes. The goal is to become more agile and responsive to market changes.",
            "The key pillars of digital transformation include customer experience, operational "
            "agility, culture and leadership, workforce enablement, and technology integration."
            "\n\nOperational agility involves streamlining processes and enabling rapid "
            "decision-making through data-driven insights.",
            "Implementation strategies vary by organization. Successful transformations typically "
            "follow a structured approach from assessment to scaled implementation.\n\nMeasuring "
            "success requires establishing clear KPIs and metrics.",
        ],
    ),
    Book(
        id="book-2",
        title="Leadership in the Modern Era",
        author="Business Leaders",
        description="Essential leadership principles for navigating today's business landscape.",
        category="Business",
        reading_time="35 min read",
        cover_color=CoverColor.GREEN,
        content=[
            "Modern leadership requires a new set of skills and approaches. Today's leaders must "
            "navigate complex, rapidly changing environments while empowering their teams.\n\n"
            "Emotional intelligence has become crucial for leaders.",
            "Adaptive leadership skills are essential in a volatile business environment. Leaders "
            "must be comfortable with ambiguity and skilled at managing change.\n\nDigital "
            "leadership competencies include leading remote or hybrid teams effectively.",
        ],
    ),
]


def seed_samples() -> bool:
    """Store the sample books if the library is empty. Returns True if seeded."""
    if db.get_collection(db.BOOKS):
        return False
    db.save_records(db.BOOKS, SAMPLE_BOOKS)
    logger.info("Seeded %d sample books", len(SAMPLE_BOOKS))
    return True
