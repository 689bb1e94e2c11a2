"""Generative capability — the one seam between the skills and a model vendor.

``GenerativeCapability.generate(request) -> response`` is all the skills know
about the model.  The default :class:`LiteLLMCapability` sends text requests
through PydanticAI agents and image requests through ``litellm.acompletion``
with image output modalities.  Tests install a scripted capability with
:func:`set_capability`.

:func:`run_generation` is the pipeline boundary: concurrency limit, timeout,
metrics, and conversion of every failure into :class:`GenerationError`.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from abc import ABC, abstractmethod

import litellm
from pydantic_ai import Agent, BinaryContent

from agents.provider import create_model, get_model_for_operation
from config.settings import get_settings
from errors import GenerationError
from models.ai import GenerationRequest, GenerationResponse, ImagePart
from services.concurrency import rate_limited_llm_call
from services.metrics import get_metrics_collector

logger = logging.getLogger(__name__)


class GenerativeCapability(ABC):
    """Given a prompt and optional schema/image, return text and/or images."""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        ...


class LiteLLMCapability(GenerativeCapability):
    """Default capability backed by PydanticAI (text) and LiteLLM (images)."""

    def _model_name(self, request: GenerationRequest) -> str:
        if request.model:
            return request.model
        if request.llm_config and request.llm_config.model:
            return request.llm_config.model
        return get_model_for_operation(request.operation)

    def _llm_config(self, request: GenerationRequest):
        config = get_settings().get_default_llm_config()
        if request.llm_config is not None:
            config = config.merge(request.llm_config)
        return config

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        if request.wants_image:
            return await self._generate_image(request)
        return await self._generate_text(request)

    async def _generate_text(self, request: GenerationRequest) -> GenerationResponse:
        system_prompt = request.system_prompt or ""
        if request.response_schema is not None:
            system_prompt += (
                "\n\nRespond with JSON only, no prose and no code fences, matching this JSON schema:\n"
                + json.dumps(request.response_schema, ensure_ascii=False)
            )

        agent = Agent(
            model=create_model(self._model_name(request)),
            system_prompt=system_prompt.strip(),
            defer_model_check=True,
        )

        user_prompt = request.prompt
        if request.image is not None:
            user_prompt = [
                request.prompt,
                BinaryContent(data=base64.b64decode(request.image.data), media_type=request.image.mime_type),
            ]

        result = await agent.run(
            user_prompt,
            model_settings=self._llm_config(request).to_model_settings(),
        )
        return GenerationResponse(text=str(result.output))

    async def _generate_image(self, request: GenerationRequest) -> GenerationResponse:
        content: list[dict] = [{"type": "text", "text": request.prompt}]
        if request.image is not None:
            content.append({"type": "image_url", "image_url": {"url": request.image.to_data_uri()}})

        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": content})

        kwargs = self._llm_config(request).to_litellm_kwargs()
        kwargs.pop("max_tokens", None)
        response = await litellm.acompletion(
            model=self._model_name(request),
            messages=messages,
            modalities=["image", "text"],
            **kwargs,
        )

        message = response.choices[0].message
        images = [ImagePart.from_data_uri(url) for url in _image_urls(message)]
        return GenerationResponse(text=getattr(message, "content", None), images=images)


def _image_urls(message) -> list[str]:
    """Pull ``data:`` URLs out of a LiteLLM message's ``images`` entries."""
    urls = []
    for item in getattr(message, "images", None) or []:
        image_url = item.get("image_url") if isinstance(item, dict) else getattr(item, "image_url", None)
        url = image_url.get("url") if isinstance(image_url, dict) else getattr(image_url, "url", None)
        if url:
            urls.append(url)
    return urls


# ── Capability registry ──────────────────────────────────────

_capability: GenerativeCapability | None = None


def get_capability() -> GenerativeCapability:
    global _capability
    if _capability is None:
        _capability = LiteLLMCapability()
    return _capability


def set_capability(capability: GenerativeCapability | None) -> GenerativeCapability | None:
    """Install *capability* (None restores the default).  Returns the previous one."""
    global _capability
    previous, _capability = _capability, capability
    return previous


# ── Pipeline boundary ────────────────────────────────────────


async def run_generation(
    request: GenerationRequest,
    *,
    failure_message: str,
    capability: GenerativeCapability | None = None,
) -> GenerationResponse:
    """Call the capability under the LLM semaphore and ``ai_timeout_seconds``.

    Timeouts and capability exceptions become ``GenerationError(failure_message)``.
    Cancellation of the caller propagates unchanged.
    """
    capability = capability or get_capability()
    timeout = get_settings().ai_timeout_seconds
    start = time.monotonic()
    status = "ok"
    try:
        return await asyncio.wait_for(
            rate_limited_llm_call(capability.generate, request),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        status = "timeout"
        logger.warning("%s timed out after %.1fs", request.operation, timeout)
        raise GenerationError(failure_message) from None
    except GenerationError:
        status = "generation_error"
        raise
    except Exception as exc:
        status = "error"
        logger.warning("%s failed: %s: %s", request.operation, type(exc).__name__, exc)
        raise GenerationError(failure_message) from exc
    finally:
        get_metrics_collector().record_call(
            operation=request.operation,
            category="ai",
            status=status,
            latency_ms=(time.monotonic() - start) * 1000,
        )
