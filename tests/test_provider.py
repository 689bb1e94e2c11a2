"""Tests for agents/provider.py — model creation and per-operation model names."""

from pydantic_ai.models.openai import OpenAIChatModel

from agents.provider import create_model, get_model_for_operation
from config.settings import get_settings


def test_create_model_openai_prefix():
    model = create_model("openai/gpt-4o")
    assert isinstance(model, OpenAIChatModel)
    assert model.model_name == "gpt-4o"


def test_create_model_bare_name():
    model = create_model("gpt-4o-mini")
    assert isinstance(model, OpenAIChatModel)
    assert model.model_name == "gpt-4o-mini"


def test_unknown_prefix_falls_back_to_openai():
    model = create_model("mystery/some-model")
    assert isinstance(model, OpenAIChatModel)
    assert model.model_name == "some-model"


def test_model_per_operation():
    settings = get_settings()
    assert get_model_for_operation("translate") == settings.translate_model
    assert get_model_for_operation("generate_quiz") == settings.quiz_model
    assert get_model_for_operation("generate_image") == settings.image_model


def test_unknown_operation_uses_default_model():
    assert get_model_for_operation("summarize") == get_settings().default_model
