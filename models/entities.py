"""Entity models — the five record kinds held by the Entity Store.

The store itself persists plain dicts (``id`` + ``seq`` + fields); these
models are the typed view handed to API callers and subscribers.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import Field

from models.base import CamelModel


class Role(str, Enum):
    """Account role.  Immutable after registration."""

    STUDENT = "student"
    DELEGATE = "delegate"
    ADMIN = "admin"


class Priority(str, Enum):
    NORMAL = "normal"
    URGENT = "urgent"


# Store kind names
ACCOUNTS = "accounts"
MESSAGES = "messages"
ANNOUNCEMENTS = "announcements"
SCHEDULE = "schedule"
QUIZ_RESULTS = "quiz_results"

# Presentation order for schedule grouping
WEEK_DAYS: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


class Account(CamelModel):
    """Public view of an account — the password never leaves the store."""

    id: str
    email: str
    name: str
    role: Role


class Profile(CamelModel):
    """Author identity joined onto a chat message at read time."""

    name: str
    role: Role


# Rendered when a message's author can no longer be resolved
UNKNOWN_PROFILE = Profile(name="Unknown", role=Role.STUDENT)


class ChatMessage(CamelModel):
    id: str
    author_id: str
    content: str
    created_at: str
    is_target_language: bool = False
    phonetic: str | None = None
    profile: Profile | None = None


class Announcement(CamelModel):
    id: str
    title: str
    body: str
    priority: Priority = Priority.NORMAL
    image: str | None = Field(default=None, description="URL or data URI")
    created_at: str


class ScheduleEntry(CamelModel):
    id: str
    day: str
    time: str
    subject: str
    room: str


class QuizResult(CamelModel):
    id: str
    account_id: str
    score: int
    total: int
    created_at: str


class QuizStanding(CamelModel):
    """Projection of an account's quiz progress.

    ``state`` is ``"no_attempt"`` until the first submission, then
    ``"has_result"`` with the latest score — there is no history.
    """

    state: Literal["no_attempt", "has_result"]
    account_id: str
    score: int | None = None
    total: int | None = None
    submitted_at: str | None = None

    @property
    def has_result(self) -> bool:
        return self.state == "has_result"


class ScheduleDay(CamelModel):
    """Schedule entries of one day, as grouped for presentation."""

    day: str
    entries: list[ScheduleEntry]
