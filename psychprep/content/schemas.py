from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints

from psychprep.models import ContentKind

PromptText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2000)]


class Persona(str, Enum):
    STUDENT = "student"
    PROFESSIONAL = "professional"

    @property
    def kind(self) -> ContentKind:
        if self is Persona.STUDENT:
            return ContentKind.SDT_STUDENT
        return ContentKind.SDT_PROFESSIONAL


class PublicKind(str, Enum):
    """Content kinds addressable directly under /api."""

    TAT = "tat"
    WAT = "wat"
    SRT = "srt"

    @property
    def kind(self) -> ContentKind:
        return ContentKind(self.value)


class TATCreate(BaseModel):
    image_url: PromptText
    active: bool = True


# Bulk TAT bodies are a bare JSON array
TATBatch = Annotated[list[TATCreate], Field(min_length=1)]


class WordCreate(BaseModel):
    word: PromptText
    active: bool = True


class WordBatch(BaseModel):
    words: list[PromptText] = Field(min_length=1)


class ScenarioCreate(BaseModel):
    scenario: PromptText
    active: bool = True


class ScenarioBatch(BaseModel):
    scenarios: list[PromptText] = Field(min_length=1)


class QuestionCreate(BaseModel):
    question: PromptText
    active: bool = True


class ActiveUpdate(BaseModel):
    active: bool
