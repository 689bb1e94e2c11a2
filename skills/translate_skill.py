"""Translation skill — text into Hanzi + Pinyin.

Output contract: a JSON object with non-empty ``hanzi`` and ``pinyin``.
Anything else, and any capability failure, is ``GenerationError``.
"""

from __future__ import annotations

import logging

from config.llm_config import LLMConfig
from config.prompts.translate import TRANSLATE_SYSTEM_PROMPT, build_translate_prompt
from errors import GenerationError, ValidationError
from models.ai import GenerationRequest, Translation, TranslationPayload
from services.generative import run_generation
from skills.json_output import load_json_output

logger = logging.getLogger(__name__)

TRANSLATION_FAILED = "translation failed"

# Low temperature: a chat translation should be stable
TRANSLATE_LLM_CONFIG = LLMConfig(temperature=0.2, max_tokens=512)


def parse_translation(raw: str | None) -> Translation:
    """Validate raw model text against the translation contract."""
    try:
        data = load_json_output(raw)
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")
        payload = TranslationPayload.model_validate(data)
        return Translation(hanzi=payload.hanzi, pinyin=payload.pinyin)
    except ValueError as exc:
        logger.warning("Translation output rejected: %s", exc)
        raise GenerationError(TRANSLATION_FAILED) from exc


async def translate(text: str) -> Translation:
    """Translate *text* (French or English) into Simplified Chinese with Pinyin."""
    if text is None or not text.strip():
        raise ValidationError("Text to translate must not be empty")

    request = GenerationRequest(
        operation="translate",
        prompt=build_translate_prompt(text.strip()),
        system_prompt=TRANSLATE_SYSTEM_PROMPT,
        response_schema=TranslationPayload.model_json_schema(),
        llm_config=TRANSLATE_LLM_CONFIG,
    )
    response = await run_generation(request, failure_message=TRANSLATION_FAILED)
    return parse_translation(response.text)
