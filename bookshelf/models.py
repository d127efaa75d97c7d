"""Record types stored in the library collections.

Every model serializes with camelCase keys (``readingTime``,
``chapterIndex``...) because that is the shape of the persisted blobs and
of the backup document. Python code uses the snake_case attribute names;
both spellings are accepted on input.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def new_id() -> str:
    """Return a fresh collision resistant identifier."""
    return str(uuid.uuid4())


def utc_now() -> str:
    """Current time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def now_millis() -> int:
    return int(time.time() * 1000)


class CoverColor(str, Enum):
    BLUE = "blue"
    GREEN = "green"
    PURPLE = "purple"
    ORANGE = "orange"
    RED = "red"
    GRAY = "gray"


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


class Record(BaseModel):
    """Base model: camelCase aliases, population by either name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Book(Record):
    id: str = Field(default_factory=new_id)
    title: str
    author: str
    description: str = ""
    category: str = ""
    reading_time: str = ""
    cover_color: CoverColor = CoverColor.BLUE
    content: List[str] = Field(..., min_length=1)
    date_added: str = Field(default_factory=utc_now)
    is_published: bool = True


class User(Record):
    id: str = Field(default_factory=new_id)
    email: str
    name: str
    company: Optional[str] = None
    phone: Optional[str] = None
    role: Role = Role.USER
    registration_date: str = Field(default_factory=utc_now)
    last_login: str = Field(default_factory=utc_now)
    reading_history: List[str] = Field(default_factory=list)

    @field_validator("reading_history")
    @classmethod
    def _unique_history(cls, value: List[str]) -> List[str]:
        # Reading history is a set; the list form is only for serialization.
        return list(dict.fromkeys(value))


class Bookmark(Record):
    id: str = Field(default_factory=new_id)
    user_id: str
    book_id: str
    chapter_index: int = Field(..., ge=0)
    position: int = 0
    title: str
    timestamp: int = Field(default_factory=now_millis)


class Note(Record):
    id: str = Field(default_factory=new_id)
    user_id: str
    book_id: str
    chapter_index: int = Field(..., ge=0)
    text: str
    note: str
    timestamp: int = Field(default_factory=now_millis)


class ReadingSession(Record):
    book_id: str
    chapter_index: int = Field(0, ge=0)
    time_spent: int = 0
    last_read: str = Field(default_factory=utc_now)


class BrandingSettings(Record):
    show_logo: bool = True
    header_style: str = "modern"
    button_style: str = "rounded"
    card_style: str = "elevated"
    font_family: str = "Inter"


class LibrarySettings(Record):
    company_name: str = "Your Company"
    theme_color: str = "blue"
    font_size: str = "text-base"
    logo_url: str = ""
    primary_color: str = "#3B82F6"
    secondary_color: str = "#1E40AF"
    accent_color: str = "#10B981"
    branding_settings: BrandingSettings = Field(default_factory=BrandingSettings)
