"""Library backup documents.

A backup is one JSON object::

    {"books": [...], "users": [...], "bookmarks": [...], "notes": [...],
     "sessions": [...], "settings": {"companyName", "themeColor", "fontSize"}}

Users are exported without any password field. Importing a backup
replaces every collection present in the document, one collection at a
time.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict

from . import db
from .errors import ValidationError
from .models import Book, Bookmark, LibrarySettings, Note, ReadingSession, User

logger = logging.getLogger(__name__)

_MODELS = {
    db.BOOKS: Book,
    db.USERS: User,
    db.BOOKMARKS: Bookmark,
    db.NOTES: Note,
    db.SESSIONS: ReadingSession,
}

EXPORTED_SETTINGS = ("companyName", "themeColor", "fontSize")


def backup_filename(company_name: str) -> str:
    """``"<company-slug>-library-backup.json"``; whitespace runs become dashes."""
    slug = re.sub(r"\s+", "-", company_name.lower())
    return f"{slug}-library-backup.json"


def export_backup() -> Dict[str, Any]:
    """Snapshot every collection plus the core settings."""
    document: Dict[str, Any] = {key: db.get_collection(key) for key in db.COLLECTIONS}
    document[db.USERS] = [{k: v for k, v in u.items() if k != "password"} for u in document[db.USERS]]
    settings = db.load_settings().to_json()
    document["settings"] = {key: settings[key] for key in EXPORTED_SETTINGS}
    return document


def import_backup(document: Dict[str, Any]) -> Dict[str, int]:
    """Restore collections from a backup document.

    Every collection is validated before anything is written, so a
    malformed document leaves the store untouched. Returns the number of
    records restored per collection.

    Raises:
        ValidationError: The document is not an object or a record is invalid.
    """
    if not isinstance(document, dict):
        raise ValidationError("Backup document must be a JSON object")
    parsed = {}
    for key, model in _MODELS.items():
        if key not in document:
            continue
        items = document[key]
        if not isinstance(items, list):
            raise ValidationError(f"Backup field '{key}' must be a list")
        try:
            parsed[key] = [model.model_validate(item) for item in items]
        except ValueError as e:
            raise ValidationError(f"Invalid record in '{key}': {e}") from e

    for key, records in parsed.items():
        db.save_records(key, records)

    settings = document.get("settings")
    if isinstance(settings, dict):
        current = db.load_settings().to_json()
        current.update({k: v for k, v in settings.items() if k in current})
        db.save_settings(LibrarySettings.model_validate(current))

    counts = {key: len(records) for key, records in parsed.items()}
    logger.info("Imported backup: %s", counts)
    return counts
