"""FastAPI application for the bookshelf service.

This module defines the HTTP API over the library: accounts, books,
search, bookmarks and notes, reading sessions, uploads, settings,
backups and analytics. The acting user is named by the ``X-User-Id``
header; requests without it run with no active user. Administrative
routes require that user to have the ``admin`` role.

Uploads are processed by a background task via FastAPI's
``BackgroundTasks``; clients poll ``/uploads/{id}`` for progress and
publish the candidate book once it reaches ``review``.

The application initialises its database on startup and, unless
disabled, seeds the default administrator and the sample books.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, File, Header, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import Field, ValidationError as SchemaError

from . import accounts, analytics, annotations, backup, config, db, library, search, uploads
from .errors import (
    BookshelfError,
    ContentReadError,
    DuplicateError,
    NotFoundError,
    UploadInProgressError,
    ValidationError,
)
from .extractor import DocumentExtractor, EpubArchiveExtractor, SimulatedExtractor
from .models import Book, CoverColor, LibrarySettings, Record, Role, User

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

EXTRACTORS = {
    "simulated": SimulatedExtractor,
    "epub": EpubArchiveExtractor,
}


def build_extractor(name: str) -> DocumentExtractor:
    if name not in EXTRACTORS:
        logger.warning("Unknown extractor %r, using simulated content", name)
        name = "simulated"
    return EXTRACTORS[name]()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise the database and seed defaults on startup."""
    db.init_db()
    if config.SEED_ON_STARTUP:
        accounts.seed_admin()
        library.seed_samples()
    yield


app = FastAPI(title="Bookshelf Library Service", lifespan=lifespan)

extractor: DocumentExtractor = build_extractor(config.DOCUMENT_EXTRACTOR)

_STATUS_CODES = {
    NotFoundError: 404,
    DuplicateError: 409,
    UploadInProgressError: 409,
    ValidationError: 422,
    ContentReadError: 400,
}


@app.exception_handler(BookshelfError)
async def bookshelf_error_handler(request: Request, exc: BookshelfError) -> JSONResponse:
    status = next((code for kind, code in _STATUS_CODES.items() if isinstance(exc, kind)), 400)
    return JSONResponse({"detail": str(exc)}, status_code=status)


@app.exception_handler(SchemaError)
async def schema_error_handler(request: Request, exc: SchemaError) -> JSONResponse:
    """Records that fail model validation inside a service call."""
    logger.warning("Rejected invalid record: %s", exc)
    return JSONResponse({"detail": str(exc)}, status_code=422)


# REQUEST BODIES

class LoginRequest(Record):
    email: str


class RegisterRequest(Record):
    email: str
    name: str
    company: Optional[str] = None
    phone: Optional[str] = None


class BookCreate(Record):
    title: str
    author: str
    description: str = ""
    category: str = ""
    reading_time: str = ""
    cover_color: CoverColor = CoverColor.BLUE
    content: List[str]


class BookEdit(Record):
    title: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    reading_time: Optional[str] = None
    cover_color: Optional[CoverColor] = None
    content: Optional[List[str]] = None


class BookmarkCreate(Record):
    book_id: str
    chapter_index: int = Field(0, ge=0)


class NoteCreate(Record):
    book_id: str
    chapter_index: int = Field(0, ge=0)
    text: str = ""
    note: str = ""


class SessionUpdate(Record):
    chapter_index: int = Field(0, ge=0)
    time_spent: int = Field(0, ge=0)


# DEPENDENCIES

def current_user(x_user_id: Optional[str] = Header(default=None)) -> Optional[User]:
    """The user named by the ``X-User-Id`` header, or None."""
    if not x_user_id:
        return None
    return accounts.get_user(x_user_id)


def require_admin(user: Optional[User] = Depends(current_user)) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Sign in required")
    if user.role != Role.ADMIN:
        raise HTTPException(status_code=403, detail="Administrator role required")
    return user


def _book_or_404(book_id: str) -> Book:
    book = library.get_book(book_id)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


# ACCOUNTS

@app.post("/auth/login")
async def login_endpoint(body: LoginRequest) -> Dict[str, Any]:
    return accounts.login(body.email).to_json()


@app.post("/auth/register", status_code=201)
async def register_endpoint(body: RegisterRequest) -> Dict[str, Any]:
    return accounts.register(body.email, body.name, body.company, body.phone).to_json()


@app.get("/users/{user_id}/stats")
async def user_stats(user_id: str) -> Dict[str, int]:
    return analytics.profile_stats(user_id)


# BOOKS

@app.get("/books")
async def list_books_endpoint(user: Optional[User] = Depends(current_user)) -> Dict[str, Any]:
    """Published books for readers; every book for administrators."""
    if user is not None and user.role == Role.ADMIN:
        books = library.list_books()
    else:
        books = library.published_books()
    return {"books": [b.to_json() for b in books]}


@app.get("/books/{book_id}")
async def get_book_endpoint(book_id: str) -> Dict[str, Any]:
    return _book_or_404(book_id).to_json()


@app.post("/books", status_code=201)
async def create_book_endpoint(body: BookCreate, admin: User = Depends(require_admin)) -> Dict[str, Any]:
    draft = library.draft_book(body.model_dump())
    return library.publish_book(draft).to_json()


@app.put("/books/{book_id}")
async def edit_book_endpoint(book_id: str, body: BookEdit,
                             admin: User = Depends(require_admin)) -> Dict[str, Any]:
    return library.edit_book(book_id, body.model_dump(exclude_none=True)).to_json()


@app.delete("/books/{book_id}", status_code=204)
async def delete_book_endpoint(book_id: str, admin: User = Depends(require_admin)) -> None:
    library.delete_book(book_id)


@app.post("/books/{book_id}/open")
async def open_book_endpoint(book_id: str, user: Optional[User] = Depends(current_user)) -> Dict[str, Any]:
    """Open a book for reading: reset its session and record history."""
    book = _book_or_404(book_id)
    session = annotations.open_book(user, book)
    return {"book": book.to_json(), "session": session.to_json()}


# SEARCH

@app.get("/search")
async def search_endpoint(q: Optional[str] = None) -> Dict[str, Any]:
    """Search published books by metadata and by sentence."""
    outcome = search.search_library(q or "", library.list_books())
    return {
        "query": q or "",
        "books": [b.to_json() for b in outcome.books],
        "matches": [m.to_json() for m in outcome.matches],
    }


# BOOKMARKS AND NOTES

@app.post("/bookmarks", status_code=201)
async def create_bookmark_endpoint(body: BookmarkCreate,
                                   user: Optional[User] = Depends(current_user)) -> Dict[str, Any]:
    book = library.get_book(body.book_id)
    return annotations.create_bookmark(user, book, body.chapter_index).to_json()


@app.get("/bookmarks")
async def list_bookmarks_endpoint(user: Optional[User] = Depends(current_user)) -> Dict[str, Any]:
    items = annotations.bookmarks_for_user(user.id) if user else []
    return {"bookmarks": [b.to_json() for b in items]}


@app.post("/notes", status_code=201)
async def create_note_endpoint(body: NoteCreate,
                               user: Optional[User] = Depends(current_user)) -> Dict[str, Any]:
    book = library.get_book(body.book_id)
    return annotations.create_note(user, book, body.chapter_index, body.text, body.note).to_json()


@app.get("/notes")
async def list_notes_endpoint(user: Optional[User] = Depends(current_user)) -> Dict[str, Any]:
    items = annotations.notes_for_user(user.id) if user else []
    return {"notes": [n.to_json() for n in items]}


# READING SESSIONS

@app.put("/sessions/{book_id}")
async def update_session_endpoint(book_id: str, body: SessionUpdate) -> Dict[str, Any]:
    book = _book_or_404(book_id)
    return annotations.upsert_session(book, body.chapter_index, body.time_spent).to_json()


@app.get("/sessions/{book_id}")
async def get_session_endpoint(book_id: str) -> Dict[str, Any]:
    session = annotations.session_for_book(book_id)
    if session is None:
        raise HTTPException(status_code=404, detail="No reading session for this book")
    return session.to_json()


# UPLOADS

@app.post("/uploads", status_code=202)
async def upload_endpoint(background_tasks: BackgroundTasks, file: UploadFile = File(...),
                          admin: User = Depends(require_admin)) -> Dict[str, Any]:
    """Accept a file for ingestion; returns the job id immediately."""
    data = await file.read()
    job_id = uploads.start_upload(file.filename or "", len(data))
    background_tasks.add_task(uploads.process_upload, job_id, file.filename, data, extractor)
    return {"job_id": job_id}


@app.get("/uploads/{job_id}")
async def upload_status(job_id: str, admin: User = Depends(require_admin)) -> Dict[str, Any]:
    job = uploads.get_upload(job_id)
    payload = job.get("payload") or {}
    return {
        "id": job["id"],
        "status": job.get("status"),
        "progress": job.get("progress"),
        "error": job.get("error"),
        "filename": payload.get("filename"),
        "candidate": payload.get("candidate"),
    }


@app.post("/uploads/{job_id}/publish", status_code=201)
async def publish_upload_endpoint(job_id: str, body: Optional[BookEdit] = None,
                                  admin: User = Depends(require_admin)) -> Dict[str, Any]:
    overrides = body.model_dump(exclude_none=True) if body else None
    return uploads.publish_upload(job_id, overrides).to_json()


@app.delete("/uploads/{job_id}", status_code=204)
async def discard_upload_endpoint(job_id: str, admin: User = Depends(require_admin)) -> None:
    uploads.discard_upload(job_id)


# SETTINGS, BACKUP AND ANALYTICS

@app.get("/settings")
async def get_settings() -> Dict[str, Any]:
    return db.load_settings().to_json()


@app.put("/settings")
async def put_settings(body: LibrarySettings, admin: User = Depends(require_admin)) -> Dict[str, Any]:
    db.save_settings(body)
    return body.to_json()


@app.get("/backup")
async def export_backup_endpoint(admin: User = Depends(require_admin)) -> JSONResponse:
    document = backup.export_backup()
    filename = backup.backup_filename(document["settings"]["companyName"])
    return JSONResponse(document, headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@app.post("/backup")
async def import_backup_endpoint(request: Request, admin: User = Depends(require_admin)) -> Dict[str, Any]:
    document = await request.json()
    return {"restored": backup.import_backup(document)}


@app.get("/analytics")
async def analytics_endpoint(admin: User = Depends(require_admin)) -> Dict[str, Any]:
    return analytics.library_stats()
