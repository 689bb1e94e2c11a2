"""AI pipeline contracts — what the generative capability is asked for and
what the skills hand back after validation.

The capability is untrusted: skills validate its raw output against these
models before anything reaches a caller.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from config.llm_config import LLMConfig
from models.base import CamelModel

QUIZ_SIZE = 5
QUIZ_OPTION_COUNT = 4


DEFAULT_IMAGE_MIME = "image/jpeg"

_DATA_URI_RE = re.compile(r"^data:([^;,]*)(?:;[^,;]*)*;base64,(.*)$", re.DOTALL)
_MIME_RE = re.compile(r"^[\w.+-]+/[\w.+-]+$")


# ── Capability request / response ────────────────────────────


class ImagePart(BaseModel):
    """Inline image: base64 payload plus its mime type."""

    mime_type: str = DEFAULT_IMAGE_MIME
    data: str  # base64, no data-URI header

    @classmethod
    def from_data_uri(cls, value: str) -> ImagePart:
        """Accept ``data:<mime>;base64,<payload>`` or a bare base64 payload.

        A missing or malformed mime type falls back to ``image/jpeg``; this
        never raises on odd input.
        """
        value = value.strip()
        match = _DATA_URI_RE.match(value)
        if match:
            mime, payload = match.groups()
        elif value.startswith("data:") and "," in value:
            header, payload = value.split(",", 1)
            mime = header[len("data:"):].split(";", 1)[0]
        else:
            return cls(data=value)
        mime = mime.strip().lower()
        return cls(mime_type=mime if _MIME_RE.match(mime) else DEFAULT_IMAGE_MIME, data=payload.strip())

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


class GenerationRequest(BaseModel):
    """One call to the generative capability."""

    operation: str  # "translate" | "generate_quiz" | "generate_image"
    prompt: str
    response_schema: dict[str, Any] | None = None  # JSON schema for structured text
    image: ImagePart | None = None
    model: str | None = None  # overrides the per-operation default
    system_prompt: str | None = None
    llm_config: LLMConfig | None = None
    wants_image: bool = False


class GenerationResponse(BaseModel):
    """Raw capability output — text and/or image parts, in model order."""

    text: str | None = None
    images: list[ImagePart] = Field(default_factory=list)


# ── Validated artifacts ──────────────────────────────────────


class Translation(CamelModel):
    """Hanzi + Pinyin pair produced by ``translate``."""

    hanzi: str
    pinyin: str
    is_placeholder: bool = False

    @field_validator("hanzi", "pinyin")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be non-empty")
        return v.strip()


class TranslationPayload(BaseModel):
    """Schema the model must satisfy for a translation."""

    hanzi: str
    pinyin: str


class QuizQuestionPayload(BaseModel):
    """Schema the model must satisfy for one quiz item."""

    question: str
    options: list[str]
    correct_answer: str = Field(alias="correctAnswer")
    explanation: str = ""

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _check_contract(self) -> "QuizQuestionPayload":
        if not self.question.strip():
            raise ValueError("question is empty")
        if len(self.options) != QUIZ_OPTION_COUNT:
            raise ValueError(
                f"expected {QUIZ_OPTION_COUNT} options, got {len(self.options)}"
            )
        if self.options.count(self.correct_answer) != 1:
            raise ValueError("correctAnswer must match exactly one option")
        return self


class QuizQuestion(CamelModel):
    """A quiz item as served to students."""

    id: str
    question: str
    options: list[str]
    correct_answer: str
    explanation: str = ""


class QuizSet(CamelModel):
    """Questions handed to a caller plus whether they are the default set."""

    topic: str = ""
    questions: list[QuizQuestion]
    fallback: bool = False
