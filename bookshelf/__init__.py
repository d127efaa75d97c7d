"""Digital library service: ingestion, search and annotations.

This package contains modules that implement a FastAPI based service for
turning uploaded files into chaptered books, searching the published
library at book and sentence granularity, and keeping readers'
bookmarks, notes and reading sessions.

The modules in this package are:

* ``formats.py`` – Classification of uploads by file extension.

* ``extractor.py`` – Segmentation of uploaded content into chapters and
  derivation of title, author, category, cover colour and reading time.
  PDF and EPUB content goes through a pluggable ``DocumentExtractor``;
  the default one emits simulated placeholder chapters.

* ``search.py`` – Stateless substring search over the published books,
  returning book matches and sentence matches in a fixed order.

* ``annotations.py`` – Bookmarks, notes, reading sessions, reading
  history and the cascade delete of a book.

* ``library.py``, ``accounts.py``, ``uploads.py``, ``backup.py`` and
  ``analytics.py`` – Book lifecycle, email sign-in, the single-slot
  upload pipeline, backup export/import and dashboard figures.

* ``db.py`` – The SQLite backed string-keyed blob store holding every
  collection as a JSON document, plus the jobs table.

* ``main.py`` – The FastAPI application itself.
"""
