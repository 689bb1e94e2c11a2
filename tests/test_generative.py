"""Tests for the generative capability boundary and the LiteLLM capability."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from config.settings import get_settings
from errors import GenerationError
from models.ai import GenerationRequest, ImagePart
from services.generative import LiteLLMCapability, _image_urls, get_capability, run_generation, set_capability
from services.metrics import get_metrics_collector
from tests.helpers import ScriptedCapability, hang


def _request(**kwargs) -> GenerationRequest:
    return GenerationRequest(operation=kwargs.pop("operation", "translate"), prompt="Bonjour", **kwargs)


# ── run_generation ────────────────────────────────────────────


class TestRunGeneration:
    async def test_returns_capability_response(self):
        cap = ScriptedCapability('{"hanzi": "你好", "pinyin": "nǐ hǎo"}')
        response = await run_generation(_request(), failure_message="translation failed", capability=cap)
        assert "你好" in response.text

    async def test_timeout_becomes_generation_error(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "ai_timeout_seconds", 0.05)
        cap = ScriptedCapability(hang)

        with pytest.raises(GenerationError) as exc_info:
            await run_generation(_request(), failure_message="translation failed", capability=cap)

        assert exc_info.value.message == "translation failed"
        status = get_metrics_collector().snapshot()["operations"]["translate"]["status_breakdown"]
        assert status == {"timeout": 1}

    async def test_exception_becomes_generation_error(self):
        cap = ScriptedCapability(ValueError("bad key"))
        with pytest.raises(GenerationError, match="quiz generation failed"):
            await run_generation(
                _request(operation="generate_quiz"), failure_message="quiz generation failed", capability=cap,
            )

    async def test_metrics_recorded_as_ai(self):
        await run_generation(_request(), failure_message="x", capability=ScriptedCapability("ok"))
        op = get_metrics_collector().snapshot()["operations"]["translate"]
        assert op["category"] == "ai"
        assert op["count"] == 1
        assert op["success_rate"] == 1.0

    async def test_uses_installed_capability(self):
        cap = ScriptedCapability("ok")
        set_capability(cap)
        await run_generation(_request(), failure_message="x")
        assert len(cap.requests) == 1

    def test_default_capability(self):
        set_capability(None)
        assert isinstance(get_capability(), LiteLLMCapability)


# ── LiteLLMCapability ─────────────────────────────────────────


class TestLiteLLMCapability:
    async def test_text_request_runs_agent_with_schema(self):
        agent = MagicMock()
        agent.run = AsyncMock(return_value=SimpleNamespace(output='{"hanzi": "好", "pinyin": "hǎo"}'))
        schema = {"type": "object"}

        with patch("services.generative.create_model", return_value="model") as create, \
             patch("services.generative.Agent", return_value=agent) as agent_cls:
            response = await LiteLLMCapability().generate(
                _request(system_prompt="Translate.", response_schema=schema)
            )

        assert response.text == '{"hanzi": "好", "pinyin": "hǎo"}'
        create.assert_called_once_with(get_settings().translate_model)
        system_prompt = agent_cls.call_args.kwargs["system_prompt"]
        assert system_prompt.startswith("Translate.")
        assert '"type": "object"' in system_prompt

    async def test_image_request_uses_litellm_modalities(self):
        message = SimpleNamespace(
            content="Voici",
            images=[{"image_url": {"url": "data:image/png;base64,QUJD"}}],
        )
        fake = AsyncMock(return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)]))

        with patch("services.generative.litellm.acompletion", fake):
            response = await LiteLLMCapability().generate(
                _request(
                    operation="generate_image",
                    wants_image=True,
                    image=ImagePart(mime_type="image/jpeg", data="AAAA"),
                )
            )

        assert response.images == [ImagePart(mime_type="image/png", data="QUJD")]
        kwargs = fake.call_args.kwargs
        assert kwargs["modalities"] == ["image", "text"]
        assert kwargs["model"] == get_settings().image_model
        content = kwargs["messages"][-1]["content"]
        assert content[1]["image_url"]["url"] == "data:image/jpeg;base64,AAAA"

    def test_image_urls_from_objects(self):
        message = SimpleNamespace(images=[SimpleNamespace(image_url=SimpleNamespace(url="data:image/png;base64,A"))])
        assert _image_urls(message) == ["data:image/png;base64,A"]

    def test_image_urls_missing(self):
        assert _image_urls(SimpleNamespace(content="text only")) == []
