"""Agent provider — builds PydanticAI model instances for the AI skills.

Parses the ``"provider/model"`` naming shared with LiteLLM so the same
setting drives both the text path (PydanticAI agents) and the image path
(``litellm.acompletion``).
"""

from __future__ import annotations

import logging

from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider

from config.settings import get_settings

logger = logging.getLogger(__name__)

# Skill operation → Settings field holding its model
_OPERATION_MODELS: dict[str, str] = {
    "translate": "translate_model",
    "generate_quiz": "quiz_model",
    "generate_image": "image_model",
}


def create_model(model_name: str | None = None):
    """Build a PydanticAI model instance.

    - ``gemini/*``    → native :class:`GoogleModel`
    - ``anthropic/*`` → native :class:`AnthropicModel`
    - ``openai/*`` or bare name → :class:`OpenAIChatModel` with the OpenAI API

    Args:
        model_name: Model identifier in ``"provider/model"`` format.
                    Defaults to ``settings.default_model``.

    Returns:
        A PydanticAI model instance ready for ``Agent(model=...)``.
    """
    settings = get_settings()
    name = model_name or settings.default_model

    if "/" in name:
        prefix, model_id = name.split("/", 1)

        # ── Google Gemini ──
        if prefix == "gemini":
            from pydantic_ai.models.google import GoogleModel
            from pydantic_ai.providers.google import GoogleProvider

            provider = GoogleProvider(api_key=settings.gemini_api_key)
            return GoogleModel(model_id, provider=provider)

        # ── Anthropic native ──
        if prefix == "anthropic":
            from pydantic_ai.models.anthropic import AnthropicModel
            from pydantic_ai.providers.anthropic import AnthropicProvider

            provider = AnthropicProvider(api_key=settings.anthropic_api_key)
            return AnthropicModel(model_id, provider=provider)

        if prefix != "openai":
            logger.warning("Unknown provider prefix %r, treating as OpenAI-compatible", prefix)

    # Fallback: OpenAI with OPENAI_API_KEY ("openai/" prefix is the LiteLLM convention)
    model_id = name.split("/", 1)[1] if "/" in name else name
    provider = OpenAIProvider(api_key=settings.openai_api_key)
    return OpenAIChatModel(model_id, provider=provider)


def get_model_for_operation(operation: str) -> str:
    """Map a skill operation to its configured model name.

    Unknown operations use ``settings.default_model``.
    """
    settings = get_settings()
    attr = _OPERATION_MODELS.get(operation)
    return getattr(settings, attr) if attr else settings.default_model
