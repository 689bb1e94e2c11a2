"""Test doubles and builders shared across test modules."""

from __future__ import annotations

import asyncio
import json

from models.ai import QUIZ_SIZE, GenerationRequest, GenerationResponse, ImagePart
from services.generative import GenerativeCapability
from services.live_query import LiveQueryHub
from services.session_store import Session


class ScriptedCapability(GenerativeCapability):
    """Deterministic capability: replays queued responses in order.

    A queued item may be a ``str`` (text response), a ``GenerationResponse``,
    an exception instance (raised), or an async callable taking the request.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[GenerationRequest] = []

    def push(self, *responses) -> None:
        self.responses.extend(responses)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if not self.responses:
            raise RuntimeError("no scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item = await item(request)
        if isinstance(item, str):
            return GenerationResponse(text=item)
        return item


async def hang(request: GenerationRequest) -> GenerationResponse:
    """Scripted item for a model call that never answers."""
    await asyncio.sleep(3600)
    raise AssertionError("unreachable")


def image_response(data: str = "iVBORw0KGgo=", mime_type: str = "image/png") -> GenerationResponse:
    return GenerationResponse(text=None, images=[ImagePart(mime_type=mime_type, data=data)])


def quiz_item(i: int, **overrides) -> dict:
    item = {
        "question": f"Question {i} ?",
        "options": ["A", "B", "C", "D"],
        "correctAnswer": "B",
        "explanation": f"Explication {i}",
    }
    item.update(overrides)
    return item


def quiz_json(n: int = QUIZ_SIZE, **overrides) -> str:
    """Model output for *n* well-formed quiz items."""
    return json.dumps([quiz_item(i, **overrides) for i in range(n)], ensure_ascii=False)


async def make_session(hub: LiveQueryHub, email: str, name: str, role_hint: str | None = None) -> Session:
    account = await hub.mutate(
        "register", None, email=email, password="secret", name=name, role_hint=role_hint,
    )
    return Session.for_account(account)
