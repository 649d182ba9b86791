"""Structural validation of content payloads.

Lessons and modules carry a block-based editor document:
``{"time": 1700000000000, "blocks": [{"type": "paragraph", "data": {...}}], "version": "2.28.0"}``.
Only the document shape is checked here; block data is opaque to the API.

Exams carry typed questions, accepted in both the current field names and
the legacy camelCase ones sent by older editor builds.
"""

from datetime import datetime
from enum import Enum
from typing import Any

import orjson
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from src.core.exceptions import ValidationFailedError
from src.utils.time import utcnow


KNOWN_BLOCK_TYPES = frozenset(
    {
        "header",
        "paragraph",
        "list",
        "checklist",
        "quote",
        "code",
        "embed",
        "image",
        "attachment",
    }
)

MIN_QUESTION_OPTIONS = 2


# ==============================================================================
# Editor Document
# ==============================================================================


class EditorBlock(BaseModel):
    """One block of an editor document."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    type: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class EditorDocument(BaseModel):
    """Block-based rich content document."""

    model_config = ConfigDict(extra="allow")

    time: int | None = None
    blocks: list[EditorBlock]
    version: str | None = None

    @model_validator(mode="before")
    @classmethod
    def parse_json_string(cls, value: Any) -> Any:
        if isinstance(value, str | bytes):
            try:
                return orjson.loads(value)
            except orjson.JSONDecodeError as e:
                msg = "content is not valid JSON"
                raise ValueError(msg) from e
        return value

    @property
    def is_empty(self) -> bool:
        return not self.blocks


def empty_document() -> dict[str, Any]:
    return {"time": int(utcnow().timestamp() * 1000), "blocks": [], "version": None}


def parse_document(value: Any) -> dict[str, Any]:
    """Validate an editor document and return it as a plain dict.

    Raises:
        ValidationFailedError: If ``value`` has no ``blocks`` list of blocks.
    """
    if value is None:
        return empty_document()
    try:
        document = EditorDocument.model_validate(value)
    except ValidationError as e:
        raise ValidationFailedError(
            f"Invalid content document: {_first_error(e)}", "invalid_document"
        ) from e
    return document.model_dump(mode="json", exclude_none=True)


def document_has_blocks(document: dict[str, Any] | None) -> bool:
    return bool(document and document.get("blocks"))


# ==============================================================================
# Exam Questions
# ==============================================================================


class ExamQuestion(BaseModel):
    """Multiple choice question with one or more correct options."""

    question_text: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("question_text", "questionText", "question"),
    )
    options: list[str] = Field(..., min_length=MIN_QUESTION_OPTIONS)
    correct_option_indices: list[int] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices(
            "correct_option_indices",
            "correctOptionIndices",
            "correctAnswerIndices",
            "correct_answer_index",
            "correctAnswerIndex",
        ),
    )

    @field_validator("correct_option_indices", mode="before")
    @classmethod
    def wrap_single_index(cls, value: Any) -> Any:
        if isinstance(value, int):
            return [value]
        return value

    @model_validator(mode="after")
    def indices_within_options(self) -> "ExamQuestion":
        out_of_range = [
            i for i in self.correct_option_indices if not 0 <= i < len(self.options)
        ]
        if out_of_range:
            msg = f"correct option index out of range: {out_of_range}"
            raise ValueError(msg)
        self.correct_option_indices = sorted(set(self.correct_option_indices))
        return self


def parse_questions(value: Any) -> list[dict[str, Any]]:
    """Validate exam questions and return them as plain dicts.

    Raises:
        ValidationFailedError: If any question is malformed.
    """
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationFailedError("questions must be a list", "invalid_questions")
    try:
        questions = [ExamQuestion.model_validate(item) for item in value]
    except ValidationError as e:
        raise ValidationFailedError(
            f"Invalid question: {_first_error(e)}", "invalid_questions"
        ) from e
    return [question.model_dump() for question in questions]


# ==============================================================================
# Lesson Resources
# ==============================================================================


class ResourceType(str, Enum):
    """File attached to a lesson."""

    PDF = "pdf"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    OTHER = "other"


class LessonResource(BaseModel):
    """Downloadable file attached to a lesson."""

    type: ResourceType = ResourceType.OTHER
    url: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    size: int = Field(0, ge=0)
    uploaded_at: datetime = Field(default_factory=utcnow)


def resource_type_for(content_type: str) -> ResourceType:
    """Map a MIME type to the lesson resource type."""
    if content_type == "application/pdf":
        return ResourceType.PDF
    major = content_type.split("/")[0]
    if major == "video":
        return ResourceType.VIDEO
    if major == "audio":
        return ResourceType.AUDIO
    if major in {"text", "application"}:
        return ResourceType.DOCUMENT
    return ResourceType.OTHER


def parse_resources(value: Any) -> list[dict[str, Any]]:
    if not value:
        return []
    try:
        return [
            LessonResource.model_validate(item).model_dump(mode="json")
            for item in value
        ]
    except ValidationError as e:
        raise ValidationFailedError(
            f"Invalid resource: {_first_error(e)}", "invalid_resources"
        ) from e


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]
