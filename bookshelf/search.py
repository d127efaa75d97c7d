"""Full-text search across the published library.

There is no index: every query scans the books it is given. Matching is
a lowercase substring test, with no ranking, stemming or result cap.
Two kinds of hit are produced:

* ``BookMatch`` – a published book whose title, author or category
  contains the query.
* ``SentenceMatch`` – a sentence of a chapter that contains the query.
  Chapters are split into sentences on the literal ``.`` character.

Sentence matches are ordered by book (collection order), then chapter
index, then sentence index.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Sequence, Union

from .models import Book


@dataclass(frozen=True)
class BookMatch:
    book: Book
    kind: Literal["book"] = "book"


@dataclass(frozen=True)
class SentenceMatch:
    book_id: str
    book_title: str
    chapter_index: int
    sentence_index: int
    snippet: str
    kind: Literal["sentence"] = "sentence"

    def to_json(self) -> dict:
        return {
            "kind": self.kind,
            "bookId": self.book_id,
            "bookTitle": self.book_title,
            "chapterIndex": self.chapter_index,
            "sentenceIndex": self.sentence_index,
            "snippet": self.snippet,
        }


SearchResult = Union[BookMatch, SentenceMatch]


@dataclass
class SearchOutcome:
    """Books passing the metadata filter and the sentence level hits."""

    books: List[Book] = field(default_factory=list)
    matches: List[SentenceMatch] = field(default_factory=list)

    def flatten(self) -> List[SearchResult]:
        """Book matches followed by sentence matches."""
        results: List[SearchResult] = [BookMatch(book) for book in self.books]
        results.extend(self.matches)
        return results


def published(books: Sequence[Book]) -> List[Book]:
    return [book for book in books if book.is_published]


def _metadata_matches(book: Book, needle: str) -> bool:
    return (
        needle in book.title.lower()
        or needle in book.author.lower()
        or needle in book.category.lower()
    )


def sentence_matches(books: Sequence[Book], needle: str) -> List[SentenceMatch]:
    """Every sentence of every chapter of ``books`` containing ``needle``.

    ``needle`` must already be lowercase.
    """
    matches: List[SentenceMatch] = []
    for book in books:
        for chapter_index, chapter in enumerate(book.content):
            for sentence_index, sentence in enumerate(chapter.split(".")):
                if needle in sentence.lower():
                    matches.append(SentenceMatch(
                        book_id=book.id,
                        book_title=book.title,
                        chapter_index=chapter_index,
                        sentence_index=sentence_index,
                        snippet=sentence.strip(),
                    ))
    return matches


def search_library(query: str, books: Sequence[Book]) -> SearchOutcome:
    """Search the published subset of ``books`` for ``query``.

    A blank query returns every published book and no sentence matches.
    The input sequence is never modified.
    """
    candidates = published(books)
    if not query.strip():
        return SearchOutcome(books=candidates, matches=[])
    needle = query.lower()
    return SearchOutcome(
        books=[book for book in candidates if _metadata_matches(book, needle)],
        matches=sentence_matches(candidates, needle),
    )
