"""Upload pipeline: raw file -> candidate book -> admin review -> publish.

Each upload is an ``ingest`` row in the ``jobs`` table. Only one upload
may be in flight (``queued`` or ``running``) at a time; a second one is
rejected with ``UploadInProgressError`` until the first leaves that state.
While processing, the job reports progress 25, 75, 90 and finally 100,
when it moves to ``review`` with the candidate book in its payload.
There is no cancellation and no timeout.

Job statuses: ``queued`` -> ``running`` -> ``review`` -> ``published``,
or ``error`` when the content cannot be read. Discarded candidates are
removed.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

from . import config, db, library
from .errors import ContentReadError, NotFoundError, UploadInProgressError, ValidationError
from .extractor import DocumentExtractor, segment_upload
from .formats import BINARY_FORMATS, classify
from .models import Book

logger = logging.getLogger(__name__)

JOB_TYPE = "ingest"
IN_FLIGHT = ("queued", "running")


def _check_size(filename: str, size: int) -> None:
    if not config.ENFORCE_UPLOAD_LIMITS:
        return
    if classify(filename) in BINARY_FORMATS:
        limit = config.MAX_BINARY_UPLOAD_BYTES
    else:
        limit = config.MAX_TEXT_UPLOAD_BYTES
    if size > limit:
        raise ValidationError(f"File exceeds maximum size of {limit // (1024 * 1024)}MB")


def start_upload(filename: str, size: int) -> str:
    """Claim the upload slot for ``filename`` and return the new job id.

    Raises:
        ValidationError: No file name, or the file exceeds an enforced
            size limit.
        UploadInProgressError: Another upload is still queued or running.
    """
    if not filename:
        raise ValidationError("A file name is required")
    _check_size(filename, size)
    active = db.find_jobs(JOB_TYPE, IN_FLIGHT)
    if active:
        raise UploadInProgressError(f"Upload {active[0]['id']} is still being processed")
    job_id = str(uuid.uuid4())
    db.insert_job({
        "id": job_id,
        "type": JOB_TYPE,
        "payload": {"filename": filename},
        "status": "queued",
        "progress": 0,
        "error": None,
    })
    logger.info("Upload %s queued for %s", job_id, filename)
    return job_id


async def process_upload(job_id: str, filename: str, data: bytes,
                         extractor: Optional[DocumentExtractor] = None) -> None:
    """Background task: segment the upload and park the candidate for review."""
    try:
        db.update_job(job_id, status="running", progress=25)
        result = await asyncio.to_thread(segment_upload, filename, data, extractor)
        db.update_job(job_id, progress=75)
        candidate = result.to_book()
        db.update_job(job_id, progress=90)
        db.update_job(job_id, status="review", progress=100, payload={
            "filename": filename,
            "format": result.format.value,
            "candidate": candidate.to_json(),
        })
        logger.info("Upload %s ready for review (%d chapters)", job_id, len(candidate.content))
    except ContentReadError as e:
        logger.warning("Upload %s could not be read: %s", job_id, e)
        db.update_job(job_id, status="error", error=str(e))
    except Exception as e:
        # Free the upload slot whatever went wrong.
        logger.exception("Upload %s failed", job_id)
        db.update_job(job_id, status="error", error=str(e))


def get_upload(job_id: str) -> Dict[str, Any]:
    job = db.get_job(job_id)
    if not job or job.get("type") != JOB_TYPE:
        raise NotFoundError(f"Upload {job_id} not found")
    return job


def publish_upload(job_id: str, overrides: Optional[Dict[str, Any]] = None) -> Book:
    """Publish the candidate of a reviewed upload, applying admin edits.

    Raises:
        NotFoundError: Unknown job.
        ValidationError: The upload is not awaiting review, or the edited
            book lacks a title or author.
    """
    job = get_upload(job_id)
    if job.get("status") != "review":
        raise ValidationError(f"Upload {job_id} is not awaiting review (status {job.get('status')})")
    candidate = Book.model_validate(job["payload"]["candidate"])
    if overrides:
        fields = candidate.model_dump()
        fields.update({k: v for k, v in overrides.items() if v is not None})
        candidate = library.draft_book(fields)
    book = library.publish_book(candidate)
    db.update_job(job_id, status="published", payload={**job["payload"], "bookId": book.id})
    return book


def discard_upload(job_id: str) -> None:
    """Drop an upload that is not in flight."""
    job = get_upload(job_id)
    if job.get("status") in IN_FLIGHT:
        raise UploadInProgressError(f"Upload {job_id} is still being processed")
    db.delete_job(job_id)
    logger.info("Discarded upload %s", job_id)
