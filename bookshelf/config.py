"""Runtime configuration for the bookshelf service.

All settings are read from environment variables once, at import time.
Values are plain module constants so that tests can monkeypatch them
directly.
"""

from __future__ import annotations

import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# Logging level name passed to ``logging.basicConfig``.
LOG_LEVEL = os.environ.get("BOOKSHELF_LOG_LEVEL", "INFO").upper()

# Upload size guidance. Only applied when ENFORCE_UPLOAD_LIMITS is set.
ENFORCE_UPLOAD_LIMITS = _env_flag("BOOKSHELF_ENFORCE_LIMITS", False)
MAX_BINARY_UPLOAD_BYTES = int(os.environ.get("BOOKSHELF_MAX_BINARY_MB", "50")) * 1024 * 1024
MAX_TEXT_UPLOAD_BYTES = int(os.environ.get("BOOKSHELF_MAX_TEXT_MB", "10")) * 1024 * 1024

# Create the default admin account and the sample books on startup when the
# store is empty.
SEED_ON_STARTUP = _env_flag("BOOKSHELF_SEED", True)

# Collaborator used for PDF/EPUB content: "simulated" or "epub" (real EPUB
# parsing, PDFs stay simulated).
DOCUMENT_EXTRACTOR = os.environ.get("BOOKSHELF_EXTRACTOR", "simulated").lower()
