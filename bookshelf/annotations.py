"""Bookmarks, notes, reading sessions and reading history.

Every mutation is a whole-collection replacement through
``db.update_collection``: the current collection is read, a new one is
computed and swapped in. Operations touching several collections (the
cascade delete) do so as independent steps.

Reading sessions are keyed by book only. Two readers of the same book
share, and overwrite, a single session.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from . import db
from .errors import ValidationError
from .models import Book, Bookmark, Note, ReadingSession, User, utc_now

logger = logging.getLogger(__name__)


def _require_reader(user: Optional[User], book: Optional[Book]) -> None:
    if user is None:
        raise ValidationError("No active user")
    if book is None:
        raise ValidationError("No book selected")


def _require_chapter(book: Book, chapter_index: int) -> None:
    if not 0 <= chapter_index < len(book.content):
        raise ValidationError(
            f"Chapter {chapter_index} is out of range for a book with {len(book.content)} chapters")


def create_bookmark(user: Optional[User], book: Optional[Book], chapter_index: int) -> Bookmark:
    """Append a bookmark for ``chapter_index`` of ``book``.

    The same chapter may be bookmarked any number of times. The index
    must name an existing chapter.
    """
    _require_reader(user, book)
    _require_chapter(book, chapter_index)
    bookmark = Bookmark(
        user_id=user.id,
        book_id=book.id,
        chapter_index=chapter_index,
        position=0,
        title=f"Chapter {chapter_index + 1}",
    )
    db.update_collection(db.BOOKMARKS, lambda items: items + [bookmark.to_json()])
    logger.info("User %s bookmarked chapter %d of %s", user.id, chapter_index, book.id)
    return bookmark


def create_note(user: Optional[User], book: Optional[Book], chapter_index: int,
                selected_text: str, note_text: str) -> Note:
    """Append a note on ``selected_text``. Both texts must be non-empty."""
    _require_reader(user, book)
    _require_chapter(book, chapter_index)
    if not selected_text or not selected_text.strip():
        raise ValidationError("Select some text to annotate")
    if not note_text or not note_text.strip():
        raise ValidationError("Note text is required")
    note = Note(
        user_id=user.id,
        book_id=book.id,
        chapter_index=chapter_index,
        text=selected_text,
        note=note_text,
    )
    db.update_collection(db.NOTES, lambda items: items + [note.to_json()])
    logger.info("User %s added a note on chapter %d of %s", user.id, chapter_index, book.id)
    return note


def upsert_session(book: Book, chapter_index: int, time_spent: int = 0) -> ReadingSession:
    """Record ``chapter_index`` as the resume point of ``book``.

    An existing session for the book is replaced in place, otherwise a
    new one is appended. The lookup ignores the user.
    """
    _require_chapter(book, chapter_index)
    session = ReadingSession(book_id=book.id, chapter_index=chapter_index,
                             time_spent=time_spent, last_read=utc_now())

    def reducer(items: List[dict]) -> List[dict]:
        for i, item in enumerate(items):
            if item.get("bookId") == book.id:
                items[i] = session.to_json()
                return items
        return items + [session.to_json()]

    db.update_collection(db.SESSIONS, reducer)
    return session


def record_history(user: User, book: Book) -> User:
    """Add ``book`` to the reading history of ``user`` (set semantics)."""
    updated: List[User] = []

    def reducer(items: List[dict]) -> List[dict]:
        result = []
        for item in items:
            if item.get("id") == user.id:
                stored = User.model_validate(item)
                if book.id not in stored.reading_history:
                    stored.reading_history.append(book.id)
                updated.append(stored)
                item = stored.to_json()
            result.append(item)
        return result

    db.update_collection(db.USERS, reducer)
    if updated:
        return updated[0]
    # User not persisted; reflect the change on the given object only.
    history = list(dict.fromkeys([*user.reading_history, book.id]))
    return user.model_copy(update={"reading_history": history})


def open_book(user: Optional[User], book: Optional[Book]) -> ReadingSession:
    """Start reading ``book`` at its first chapter.

    Resets the book's session to chapter 0 and records the book in the
    reader's history.
    """
    _require_reader(user, book)
    session = upsert_session(book, 0)
    record_history(user, book)
    return session


def cascade_delete_book(book_id: str) -> None:
    """Remove a book together with its bookmarks and notes.

    Three independent collection replacements. Reading sessions of the
    book are left behind and must be treated as stale.
    """
    db.update_collection(db.BOOKS, lambda items: [b for b in items if b.get("id") != book_id])
    db.update_collection(db.BOOKMARKS, lambda items: [b for b in items if b.get("bookId") != book_id])
    db.update_collection(db.NOTES, lambda items: [n for n in items if n.get("bookId") != book_id])
    logger.info("Deleted book %s with its bookmarks and notes", book_id)


def bookmarks_for_user(user_id: str) -> List[Bookmark]:
    return [b for b in db.load_records(db.BOOKMARKS, Bookmark) if b.user_id == user_id]


def notes_for_user(user_id: str) -> List[Note]:
    return [n for n in db.load_records(db.NOTES, Note) if n.user_id == user_id]


def session_for_book(book_id: str) -> Optional[ReadingSession]:
    """Return the resume point of ``book_id``, if any."""
    return next((s for s in db.load_records(db.SESSIONS, ReadingSession) if s.book_id == book_id), None)
