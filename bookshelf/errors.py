"""Error kinds raised by the bookshelf service layer.

The HTTP layer in ``main.py`` maps each kind onto a status code. None of
them are retried automatically; the operator re-attempts the action.
"""


class BookshelfError(Exception):
    """Base class for all recoverable service errors."""


class ContentReadError(BookshelfError):
    """An uploaded file could not be decoded into text."""


class ValidationError(BookshelfError):
    """A required field is missing or empty."""


class NotFoundError(BookshelfError):
    """A referenced user, book or job does not exist."""


class DuplicateError(BookshelfError):
    """A record with the same unique key already exists."""


class UploadInProgressError(BookshelfError):
    """Another upload is still being processed."""
