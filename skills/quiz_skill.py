"""Quiz generation skill — five beginner multiple-choice questions per topic.

Single model call, then strict validation: exactly ``QUIZ_SIZE`` items, each
with ``QUIZ_OPTION_COUNT`` options and the correct answer verbatim among
them.  The model may answer with a bare JSON array or with
``{"questions": [...]}``, fenced or not; if the array itself is broken,
complete question objects are salvaged from the text.

Each accepted batch gets fresh ids ``gen-<ms timestamp>-<batch>-<index>``,
so questions never collide across regenerations.
"""

from __future__ import annotations

import itertools
import logging
import time

from config.llm_config import LLMConfig
from config.prompts.quiz import QUIZ_SYSTEM_PROMPT, build_quiz_prompt
from errors import GenerationError, ValidationError
from models.ai import QUIZ_SIZE, GenerationRequest, QuizQuestion, QuizQuestionPayload
from services.generative import run_generation
from skills.json_output import iter_json_objects, load_json_output

logger = logging.getLogger(__name__)

QUIZ_GENERATION_FAILED = "quiz generation failed"

QUIZ_LLM_CONFIG = LLMConfig(temperature=0.7, max_tokens=4096)

_batch_counter = itertools.count(1)

# Shown when generation fails
DEFAULT_QUIZ: list[QuizQuestion] = [
    QuizQuestion(
        id="q1",
        question="Comment dit-on « Bonjour » ?",
        options=["Ni hao", "Zai jian", "Xie xie", "Bu ke qi"],
        correct_answer="Ni hao",
        explanation="« Ni hao » (你好) est la salutation standard.",
    ),
    QuizQuestion(
        id="q2",
        question="Que signifie « Xie xie » ?",
        options=["Bonjour", "Merci", "Au revoir", "De rien"],
        correct_answer="Merci",
        explanation="« Xie xie » (谢谢) signifie merci.",
    ),
]


def _question_schema() -> dict:
    return {"type": "array", "items": QuizQuestionPayload.model_json_schema(by_alias=True)}


def _raw_items(raw: str | None) -> list:
    """Candidate question dicts from model text, before validation."""
    try:
        data = load_json_output(raw)
    except ValueError:
        # Broken array: keep whatever complete objects survive
        return list(iter_json_objects(raw or ""))
    if isinstance(data, dict):
        data = data.get("questions")
    if not isinstance(data, list):
        raise ValueError("expected a JSON array of questions")
    return data


def parse_quiz(raw: str | None) -> list[QuizQuestionPayload]:
    """Validate raw model text against the quiz contract."""
    try:
        items = _raw_items(raw)
        if len(items) != QUIZ_SIZE:
            raise ValueError(f"expected {QUIZ_SIZE} questions, got {len(items)}")
        return [QuizQuestionPayload.model_validate(item) for item in items]
    except ValueError as exc:
        logger.warning("Quiz output rejected: %s", exc)
        raise GenerationError(QUIZ_GENERATION_FAILED) from exc


def assign_ids(payloads: list[QuizQuestionPayload]) -> list[QuizQuestion]:
    batch = next(_batch_counter)
    stamp = int(time.time() * 1000)
    return [
        QuizQuestion(
            id=f"gen-{stamp}-{batch}-{index}",
            question=p.question.strip(),
            options=p.options,
            correct_answer=p.correct_answer,
            explanation=p.explanation,
        )
        for index, p in enumerate(payloads)
    ]


async def generate_quiz(topic: str) -> list[QuizQuestion]:
    """Generate ``QUIZ_SIZE`` fresh questions about *topic*."""
    if topic is None or not topic.strip():
        raise ValidationError("Quiz topic must not be empty")

    request = GenerationRequest(
        operation="generate_quiz",
        prompt=build_quiz_prompt(topic.strip(), QUIZ_SIZE),
        system_prompt=QUIZ_SYSTEM_PROMPT,
        response_schema=_question_schema(),
        llm_config=QUIZ_LLM_CONFIG,
    )
    response = await run_generation(request, failure_message=QUIZ_GENERATION_FAILED)
    questions = assign_ids(parse_quiz(response.text))
    logger.info("Generated %d quiz questions for topic %r", len(questions), topic)
    return questions
