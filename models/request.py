"""API request / response models."""

from __future__ import annotations

from models.base import CamelModel
from models.entities import Account


class RegisterRequest(CamelModel):
    """POST /api/auth/register — request body."""

    email: str
    password: str
    name: str
    role_hint: str | None = None


class LoginRequest(CamelModel):
    """POST /api/auth/login — request body."""

    email: str
    password: str


class AuthResponse(CamelModel):
    """Session token plus the signed-in account."""

    token: str
    account: Account


class SendMessageRequest(CamelModel):
    """POST /api/messages — request body."""

    content: str
    is_target_language: bool = False
    phonetic: str | None = None


class TranslatedMessageRequest(CamelModel):
    """POST /api/messages/translated — request body."""

    text: str


class PostAnnouncementRequest(CamelModel):
    """POST /api/announcements — request body."""

    title: str
    body: str
    priority: str = "normal"
    image: str | None = None


class IllustratedAnnouncementRequest(CamelModel):
    """POST /api/announcements/illustrated — request body."""

    title: str
    body: str
    priority: str = "normal"
    image_prompt: str | None = None
    base_image: str | None = None  # data URI or bare base64


class ScheduleItemRequest(CamelModel):
    """POST /api/schedule — request body."""

    day: str
    time: str
    subject: str
    room: str


class GenerateQuizRequest(CamelModel):
    """POST /api/quiz/generate — request body."""

    topic: str


class SubmitQuizRequest(CamelModel):
    """POST /api/quiz/submit — request body."""

    score: int
    total: int


class TranslateRequest(CamelModel):
    """POST /api/ai/translate — request body."""

    text: str


class ImageRequest(CamelModel):
    """POST /api/ai/image — request body."""

    prompt: str
    base_image: str | None = None


class ImageResponse(CamelModel):
    image: str | None = None
