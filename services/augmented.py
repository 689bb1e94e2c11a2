"""AI-augmented classroom flows — skill output persisted through the hub.

Each flow owns the fallback for its skill, so a generation failure never
blocks the primary action:

- a failed translation still sends the original text;
- a failed quiz generation serves the default quiz;
- a failed illustration still posts the announcement, without an image.
"""

from __future__ import annotations

import logging

from pydantic import Field

from errors import GenerationError
from models.ai import QuizSet, Translation
from models.base import CamelModel
from models.entities import Announcement, ChatMessage, Priority
from services.access_gate import require_session, require_shared_content_manager
from services.classroom import require_text
from services.live_query import LiveQueryHub
from skills.image_skill import generate_or_edit_image
from skills.quiz_skill import DEFAULT_QUIZ, generate_quiz
from skills.translate_skill import translate

logger = logging.getLogger(__name__)


class TranslatedSend(CamelModel):
    """Stored message plus the translation that produced it."""

    message: ChatMessage
    translation: Translation
    error: str | None = None


class IllustratedPost(CamelModel):
    announcement: Announcement
    illustrated: bool = False
    illustration_error: str | None = Field(default=None, description="Why no image was attached")


def placeholder_translation(text: str) -> Translation:
    """Marked stand-in shown when translation failed; content is the original text."""
    return Translation(hanzi=text, pinyin="(traduction indisponible)", is_placeholder=True)


async def send_translated_message(hub: LiveQueryHub, session, text: str) -> TranslatedSend:
    """Translate *text*, then send Hanzi with Pinyin; on failure send *text* as-is."""
    require_session(session)
    try:
        translation = await translate(text)
    except GenerationError as exc:
        logger.info("Sending untranslated message for %s: %s", session.account_id, exc.message)
        message = await hub.mutate(
            "send_message", session, content=text, author_id=session.account_id,
        )
        return TranslatedSend(
            message=message,
            translation=placeholder_translation(text.strip()),
            error=exc.message,
        )

    message = await hub.mutate(
        "send_message",
        session,
        content=translation.hanzi,
        author_id=session.account_id,
        is_target_language=True,
        phonetic=translation.pinyin,
    )
    return TranslatedSend(message=message, translation=translation)


async def load_quiz(topic: str | None) -> QuizSet:
    """Generated questions for *topic*, or the default quiz if generation fails."""
    if topic and topic.strip():
        try:
            return QuizSet(topic=topic.strip(), questions=await generate_quiz(topic))
        except GenerationError as exc:
            logger.info("Serving default quiz for topic %r: %s", topic, exc.message)
    return QuizSet(topic=(topic or "").strip(), questions=list(DEFAULT_QUIZ), fallback=True)


async def post_illustrated_announcement(
    hub: LiveQueryHub,
    session,
    *,
    title: str,
    body: str,
    priority: str | Priority | None = None,
    image_prompt: str | None = None,
    base_image: str | bytes | None = None,
) -> IllustratedPost:
    """Post an announcement with an AI illustration when one can be produced.

    The role check and the title/body check run before the model is called,
    so a rejected post never spends a generation.
    """
    require_shared_content_manager(session)
    title = require_text(title, "Title")
    body = require_text(body, "Body")

    image = None
    error = None
    prompt = (image_prompt or "").strip() or f"{title}. {body}"
    try:
        image = await generate_or_edit_image(prompt, base_image)
        if image is None:
            error = "no image produced"
    except GenerationError as exc:
        error = exc.message
    if error:
        logger.info("Posting announcement without illustration: %s", error)

    announcement = await hub.mutate(
        "post_announcement", session, title=title, body=body, priority=priority, image=image,
    )
    return IllustratedPost(announcement=announcement, illustrated=image is not None, illustration_error=error)
