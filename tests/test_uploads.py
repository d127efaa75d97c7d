import asyncio

import pytest

from bookshelf import config, db, library, uploads
from bookshelf.errors import NotFoundError, UploadInProgressError, ValidationError


def _ingest(filename, data):
    job_id = uploads.start_upload(filename, len(data))
    asyncio.run(uploads.process_upload(job_id, filename, data))
    return job_id


def test_upload_reaches_review_with_candidate():
    job_id = _ingest("story.txt", b"Intro text.\n\n\nChapter two text.")
    job = uploads.get_upload(job_id)

    assert job["status"] == "review"
    assert job["progress"] == 100
    candidate = job["payload"]["candidate"]
    assert candidate["content"] == ["Intro text.", "Chapter two text."]
    assert candidate["readingTime"] == "1 min read"
    assert candidate["isPublished"] is False
    # Nothing is published before review.
    assert library.list_books() == []


def test_progress_is_reported_in_order(monkeypatch):
    reported = []
    original = db.update_job

    def recording_update(job_id, **fields):
        if fields.get("progress") is not None:
            reported.append(fields["progress"])
        original(job_id, **fields)

    monkeypatch.setattr(db, "update_job", recording_update)
    _ingest("guide.md", b"# A\nalpha")

    assert reported == [25, 75, 90, 100]


def test_second_upload_is_rejected_while_one_is_in_flight():
    uploads.start_upload("first.txt", 10)
    with pytest.raises(UploadInProgressError):
        uploads.start_upload("second.txt", 10)


def test_slot_is_free_once_processing_finishes():
    _ingest("first.txt", b"one")
    second = uploads.start_upload("second.txt", 3)
    assert uploads.get_upload(second)["status"] == "queued"


def test_unreadable_upload_ends_in_error_without_book():
    job_id = _ingest("broken.txt", b"\xff\xfe\xfa\x00\xc3")
    job = uploads.get_upload(job_id)

    assert job["status"] == "error"
    assert "UTF-8" in job["error"]
    assert library.list_books() == []
    with pytest.raises(ValidationError):
        uploads.publish_upload(job_id)
    # The slot is released.
    uploads.start_upload("retry.txt", 1)


def test_publish_applies_admin_overrides():
    job_id = _ingest("Smith-Annual_Report.pdf", b"%PDF-1.7")
    book = uploads.publish_upload(job_id, {"title": "Annual Report 2024", "category": "Finance"})

    assert book.is_published is True
    assert book.title == "Annual Report 2024"
    assert book.author == "Smith"
    assert book.category == "Finance"
    assert len(book.content) == 2
    assert library.published_books() == [book]
    assert uploads.get_upload(job_id)["status"] == "published"

    with pytest.raises(ValidationError):
        uploads.publish_upload(job_id)


def test_discard_upload():
    job_id = _ingest("notes.txt", b"text")
    uploads.discard_upload(job_id)
    with pytest.raises(NotFoundError):
        uploads.get_upload(job_id)


def test_in_flight_upload_cannot_be_discarded():
    job_id = uploads.start_upload("notes.txt", 4)
    with pytest.raises(UploadInProgressError):
        uploads.discard_upload(job_id)


def test_size_limits_only_apply_when_enforced(monkeypatch):
    big = config.MAX_TEXT_UPLOAD_BYTES + 1
    job_id = uploads.start_upload("huge.txt", big)
    db.delete_job(job_id)

    monkeypatch.setattr(config, "ENFORCE_UPLOAD_LIMITS", True)
    with pytest.raises(ValidationError):
        uploads.start_upload("huge.txt", big)
    # Binary formats have the larger allowance.
    uploads.start_upload("huge.pdf", big)


def test_upload_requires_filename():
    with pytest.raises(ValidationError):
        uploads.start_upload("", 0)
