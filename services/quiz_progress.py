"""Quiz Progress Tracker — one current standing per account.

States per account: ``no_attempt`` → ``has_result(score, total)``.  Every
submission supersedes the previous row through the store's atomic
``replace`` keyed by ``account_id``, so concurrent submissions by the same
account can never leave two rows behind.  No history is kept.

The transactional helpers here are used by the ``submit_quiz_result`` and
``check_quiz_submission`` operations in :mod:`services.classroom`;
:class:`QuizProgressTracker` is the session-level facade over the hub.
"""

from __future__ import annotations

from datetime import datetime, timezone

from errors import ValidationError
from models.entities import QUIZ_RESULTS, QuizStanding
from services.entity_store import Transaction


def validate_score(score: int, total: int) -> None:
    if isinstance(score, bool) or isinstance(total, bool):
        raise ValidationError("Score and total must be integers")
    if total <= 0:
        raise ValidationError("Total must be greater than zero")
    if not 0 <= score <= total:
        raise ValidationError("Score must be between 0 and total")


def standing_from_record(account_id: str, rec: dict | None) -> QuizStanding:
    if rec is None:
        return QuizStanding(state="no_attempt", account_id=account_id)
    return QuizStanding(
        state="has_result",
        account_id=account_id,
        score=rec["score"],
        total=rec["total"],
        submitted_at=rec["created_at"],
    )


async def read_standing(tx: Transaction, account_id: str) -> QuizStanding:
    rec = await tx.find_one(QUIZ_RESULTS, "account_id", account_id)
    return standing_from_record(account_id, rec)


async def record_result(tx: Transaction, account_id: str, score: int, total: int) -> QuizStanding:
    """Validate, then supersede any previous result for *account_id*."""
    validate_score(score, total)
    doc = {
        "score": int(score),
        "total": int(total),
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    record_id = await tx.replace(QUIZ_RESULTS, "account_id", account_id, doc)
    return standing_from_record(account_id, {**doc, "id": record_id})


class QuizProgressTracker:
    """Submit and check quiz standings for a session through the hub."""

    def __init__(self, hub):
        self._hub = hub

    async def submit(self, session, score: int, total: int) -> QuizStanding:
        return await self._hub.mutate("submit_quiz_result", session, score=score, total=total)

    async def check(self, session, account_id: str | None = None) -> QuizStanding:
        """Current standing of *account_id* (defaults to the session's account)."""
        return await self._hub.query("check_quiz_submission", session, account_id=account_id)
