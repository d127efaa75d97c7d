import pytest
from fastapi.testclient import TestClient

from bookshelf import accounts, config, db
from bookshelf.models import Book


@pytest.fixture(autouse=True)
def store(tmp_path, monkeypatch):
    """Point the blob store at a fresh database file for every test."""
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "library.db"))
    db.init_db()
    yield


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(config, "SEED_ON_STARTUP", True)
    from bookshelf.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def reader():
    return accounts.register("reader@example.com", "Reader One")


@pytest.fixture
def admin():
    accounts.seed_admin()
    return accounts.find_by_email(accounts.ADMIN_EMAIL)


def make_book(title="A Book", author="Someone", category="General", content=None, **kwargs):
    return Book(title=title, author=author, category=category,
                content=content or ["First chapter. Second sentence."], **kwargs)
