"""Named classroom operations — the queries and mutations served by the hub.

Handlers receive an open transaction and the caller's session; every
Announcement and ScheduleEntry mutation checks the access gate before it
writes.  Importing this module registers everything with
:mod:`services.live_query`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from config.settings import get_settings
from errors import AuthError, NotFoundError, PermissionDeniedError, ValidationError
from models.entities import (
    ACCOUNTS,
    ANNOUNCEMENTS,
    MESSAGES,
    QUIZ_RESULTS,
    SCHEDULE,
    UNKNOWN_PROFILE,
    WEEK_DAYS,
    Account,
    Announcement,
    ChatMessage,
    Priority,
    Profile,
    QuizStanding,
    Role,
    ScheduleDay,
    ScheduleEntry,
)
from services.access_gate import require_session, require_shared_content_manager
from services.entity_store import EntityStore, Transaction
from services.live_query import register_mutation, register_query
from services.quiz_progress import read_standing, record_result

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} must not be empty")
    return str(value).strip()


def normalize_priority(priority: str | Priority | None) -> Priority:
    """Anything other than "urgent" (any case) is normal."""
    if isinstance(priority, Priority):
        return priority
    return Priority.URGENT if str(priority or "").strip().lower() == "urgent" else Priority.NORMAL


# ── Roles ────────────────────────────────────────────────────

_ROLE_HINTS = {
    "admin": Role.ADMIN,
    "delegate": Role.DELEGATE,
    "délégué": Role.DELEGATE,
    "delegue": Role.DELEGATE,
}


def derive_role(role_hint: str | None, email: str, *, heuristic: bool | None = None,
                hints: bool | None = None) -> Role:
    """Role for a new account.

    While ``role_hint_enabled`` is on, an explicit hint (``admin``,
    ``delegate``/``délégué``) wins.  Otherwise, and only while
    ``role_heuristic_enabled`` is on, the email text is searched for "admin"
    and then "delegue".  Everything else is a student.

    Registration is unauthenticated, so both switches let anyone claim a
    privileged role.  Turn both off to make every new account a student.
    """
    settings = get_settings()
    if hints is None:
        hints = settings.role_hint_enabled
    if hints:
        hinted = _ROLE_HINTS.get((role_hint or "").strip().lower())
        if hinted is not None:
            return hinted
    if heuristic is None:
        heuristic = settings.role_heuristic_enabled
    if heuristic:
        lowered = email.lower()
        if "admin" in lowered:
            return Role.ADMIN
        if "delegue" in lowered:
            return Role.DELEGATE
    return Role.STUDENT


def _account(rec: dict) -> Account:
    return Account.model_validate(rec)


# ── Accounts ─────────────────────────────────────────────────


@register_mutation()
async def register(tx: Transaction, session, *, email: str, password: str, name: str,
                   role_hint: str | None = None) -> Account:
    """Create an account.  ConflictError if the email is taken."""
    email = require_text(email, "Email")
    name = require_text(name, "Name")
    if not password or not password.strip():
        raise ValidationError("Password must not be empty")

    role = derive_role(role_hint, email)
    # Plain comparison secret; see DESIGN.md for the hashing gap
    record_id = await tx.insert(ACCOUNTS, {
        "email": email,
        "password": password,
        "name": name,
        "role": role.value,
    })
    logger.info("Registered account %s with role %s", record_id, role.value)
    return Account(id=record_id, email=email, name=name, role=role)


@register_mutation()
async def login(tx: Transaction, session, *, email: str, password: str) -> Account:
    """Unknown email and wrong password fail identically."""
    rec = await tx.find_one(ACCOUNTS, "email", (email or "").strip())
    if rec is None or rec.get("password") != password:
        raise AuthError()
    return _account(rec)


@register_query(depends_on=[ACCOUNTS])
async def get_account(tx: Transaction, session, *, account_id: str) -> Account:
    require_session(session)
    rec = await tx.get(ACCOUNTS, account_id)
    if rec is None:
        raise NotFoundError("account", account_id)
    return _account(rec)


# ── Chat ─────────────────────────────────────────────────────


@register_query(depends_on=[MESSAGES, ACCOUNTS])
async def list_messages(tx: Transaction, session) -> list[ChatMessage]:
    """Most recent messages, oldest-first, each with its author's current profile."""
    require_session(session)
    window = get_settings().message_window
    recent = await tx.scan(MESSAGES, descending=True, limit=window)

    profiles: dict[str, Profile] = {}
    messages = []
    for rec in reversed(recent):
        author_id = rec["author_id"]
        if author_id not in profiles:
            author = await tx.get(ACCOUNTS, author_id)
            profiles[author_id] = (
                Profile(name=author["name"], role=author["role"]) if author else UNKNOWN_PROFILE
            )
        messages.append(ChatMessage.model_validate({**rec, "profile": profiles[author_id]}))
    return messages


@register_mutation()
async def send_message(tx: Transaction, session, *, content: str, author_id: str | None = None,
                       is_target_language: bool = False, phonetic: str | None = None) -> ChatMessage:
    require_session(session)
    author_id = author_id or session.account_id
    if author_id != session.account_id:
        raise PermissionDeniedError("Messages can only be sent as yourself")
    if content is None or not content.strip():
        raise ValidationError("Message content must not be empty")

    author = await tx.get(ACCOUNTS, author_id)
    if author is None:
        raise NotFoundError("account", author_id)

    doc = {
        "author_id": author_id,
        "content": content,
        "created_at": utc_now_iso(),
        "is_target_language": bool(is_target_language),
        "phonetic": phonetic or None,
    }
    record_id = await tx.insert(MESSAGES, doc)
    return ChatMessage(
        id=record_id,
        profile=Profile(name=author["name"], role=author["role"]),
        **doc,
    )


# ── Announcements ────────────────────────────────────────────


@register_query(depends_on=[ANNOUNCEMENTS])
async def list_announcements(tx: Transaction, session) -> list[Announcement]:
    """All announcements, newest-first."""
    require_session(session)
    return [Announcement.model_validate(rec) for rec in await tx.scan(ANNOUNCEMENTS, descending=True)]


@register_mutation()
async def post_announcement(tx: Transaction, session, *, title: str, body: str,
                            priority: str | Priority | None = None,
                            image: str | None = None) -> Announcement:
    require_shared_content_manager(session)
    doc = {
        "title": require_text(title, "Title"),
        "body": require_text(body, "Body"),
        "priority": normalize_priority(priority).value,
        "image": image or None,
        "created_at": utc_now_iso(),
    }
    record_id = await tx.insert(ANNOUNCEMENTS, doc)
    return Announcement(id=record_id, **doc)


@register_mutation()
async def delete_announcement(tx: Transaction, session, *, id: str) -> dict:
    require_shared_content_manager(session)
    return {"deleted": await tx.delete(ANNOUNCEMENTS, id)}


# ── Schedule ─────────────────────────────────────────────────


@register_query(depends_on=[SCHEDULE])
async def list_schedule(tx: Transaction, session) -> list[ScheduleEntry]:
    """All entries; ordering is the caller's business (see ``group_by_day``)."""
    require_session(session)
    return [ScheduleEntry.model_validate(rec) for rec in await tx.scan(SCHEDULE)]


@register_mutation()
async def add_schedule_item(tx: Transaction, session, *, day: str, time: str, subject: str,
                            room: str) -> ScheduleEntry:
    require_shared_content_manager(session)
    doc = {
        "day": require_text(day, "Day"),
        "time": require_text(time, "Time"),
        "subject": require_text(subject, "Subject"),
        "room": require_text(room, "Room"),
    }
    record_id = await tx.insert(SCHEDULE, doc)
    return ScheduleEntry(id=record_id, **doc)


@register_mutation()
async def delete_schedule_item(tx: Transaction, session, *, id: str) -> dict:
    require_shared_content_manager(session)
    return {"deleted": await tx.delete(SCHEDULE, id)}


# French labels map onto the same weekday slots
_DAY_INDEX = {day.lower(): i for i, day in enumerate(WEEK_DAYS)}
_DAY_INDEX.update({
    "lundi": 0, "mardi": 1, "mercredi": 2, "jeudi": 3,
    "vendredi": 4, "samedi": 5, "dimanche": 6,
})


def group_by_day(entries: list[ScheduleEntry]) -> list[ScheduleDay]:
    """Group entries Monday..Sunday; unknown day labels come last, in first-seen order."""
    groups: dict[str, list[ScheduleEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.day, []).append(entry)

    seen = list(groups)
    ordered = sorted(
        seen,
        key=lambda day: (_DAY_INDEX.get(day.strip().lower(), len(WEEK_DAYS)), seen.index(day)),
    )
    return [ScheduleDay(day=day, entries=groups[day]) for day in ordered]


# ── Quiz ─────────────────────────────────────────────────────


@register_query(depends_on=[QUIZ_RESULTS])
async def check_quiz_submission(tx: Transaction, session, *, account_id: str | None = None) -> QuizStanding:
    require_session(session)
    return await read_standing(tx, account_id or session.account_id)


@register_mutation()
async def submit_quiz_result(tx: Transaction, session, *, score: int, total: int) -> QuizStanding:
    """Replace the caller's standing with this score."""
    require_session(session)
    return await record_result(tx, session.account_id, score, total)


# ── Default content ──────────────────────────────────────────

DEFAULT_SCHEDULE = [
    {"day": "Lundi", "time": "09:00 - 11:00", "subject": "Grammaire Fondamentale", "room": "Bâtiment A, Salle 101"},
    {"day": "Mercredi", "time": "14:00 - 16:00", "subject": "Pratique Orale", "room": "Labo Langues 3"},
]

DEFAULT_ANNOUNCEMENTS = [
    {
        "title": "Bienvenue au semestre",
        "body": "Le cours commencera la semaine prochaine. Préparez vos manuels.",
        "priority": Priority.NORMAL.value,
        "image": None,
    },
]


async def seed_defaults(store: EntityStore) -> bool:
    """Insert the default schedule and welcome announcement into an empty store.

    Returns True if anything was written.
    """
    async with store.transaction() as tx:
        if await tx.scan(SCHEDULE, limit=1) or await tx.scan(ANNOUNCEMENTS, limit=1):
            return False
        for item in DEFAULT_SCHEDULE:
            await tx.insert(SCHEDULE, dict(item))
        for item in DEFAULT_ANNOUNCEMENTS:
            await tx.insert(ANNOUNCEMENTS, {**item, "created_at": utc_now_iso()})
    logger.info(
        "Seeded %d schedule entries and %d announcements",
        len(DEFAULT_SCHEDULE), len(DEFAULT_ANNOUNCEMENTS),
    )
    return True
