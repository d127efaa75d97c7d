import pytest

from bookshelf import annotations, backup, db, library
from bookshelf.errors import ValidationError
from bookshelf.models import LibrarySettings


def test_backup_filename_slugifies_company_name():
    assert backup.backup_filename("Your Company") == "your-company-library-backup.json"
    assert backup.backup_filename("Acme  Books\tInc") == "acme-books-inc-library-backup.json"


def test_export_strips_passwords_and_includes_settings(reader):
    users = db.get_collection(db.USERS)
    users[0]["password"] = "secret"
    db.replace_collection(db.USERS, users)

    document = backup.export_backup()

    assert set(document) == {"books", "users", "bookmarks", "notes", "sessions", "settings"}
    assert "password" not in document["users"][0]
    assert document["settings"] == {"companyName": "Your Company", "themeColor": "blue",
                                    "fontSize": "text-base"}


def test_round_trip_restores_identical_collections(reader):
    library.seed_samples()
    book = library.list_books()[0]
    annotations.create_bookmark(reader, book, 1)
    annotations.create_note(reader, book, 0, "Digital transformation", "key idea")
    annotations.open_book(reader, book)
    document = backup.export_backup()

    for key in db.COLLECTIONS:
        db.replace_collection(key, [])
    counts = backup.import_backup(document)

    assert counts["books"] == 2
    for key in ("books", "bookmarks", "notes", "sessions"):
        assert db.get_collection(key) == document[key]
    assert backup.export_backup() == document


def test_import_restores_settings():
    document = {"settings": {"companyName": "Acme", "themeColor": "green", "fontSize": "text-lg"}}
    backup.import_backup(document)

    settings = db.load_settings()
    assert settings.company_name == "Acme"
    assert settings.theme_color == "green"
    assert settings.primary_color == LibrarySettings().primary_color


def test_invalid_backup_leaves_store_untouched():
    library.seed_samples()
    before = db.get_collection(db.BOOKS)

    with pytest.raises(ValidationError):
        backup.import_backup({"books": [{"title": "No author or content"}]})
    with pytest.raises(ValidationError):
        backup.import_backup({"books": "not a list"})
    with pytest.raises(ValidationError):
        backup.import_backup(["not", "an", "object"])

    assert db.get_collection(db.BOOKS) == before
