from __future__ import annotations

from enum import Enum
from typing import List, Literal, Tuple

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]

DEFAULT_MODEL = "meta-llama/Meta-Llama-3.1-405B-Instruct-Turbo"
DEFAULT_TEMPERATURE = 0.43


class Language(str, Enum):
    REACT = "React"
    PYTHON = "Python"


class Turn(BaseModel):
    """One message of the conversation. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class GenerationConfig(BaseModel):
    """Model and output settings sent with every completion request."""

    model_config = ConfigDict(frozen=True)

    model_identifier: str = Field(default=DEFAULT_MODEL, min_length=1)
    language: Language = Language.REACT
    use_component_library: bool = Field(default=False, description="Ask for shadcn/ui components")
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=1.0)


class StreamDeltaEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str


class PublishRecord(BaseModel):
    share_id: str = Field(min_length=1)


class ModelOption(BaseModel):
    label: str
    value: str


MODEL_CATALOG: List[ModelOption] = [
    ModelOption(label="Llama 3.1 405B", value="meta-llama/Meta-Llama-3.1-405B-Instruct-Turbo"),
    ModelOption(label="Llama 3.1 70B", value="meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo"),
    ModelOption(label="Gemma 2 27B", value="google/gemma-2-27b-it"),
]

PROMPT_SUGGESTIONS: Tuple[str, ...] = (
    "Daily quotes",
    "Calculator app",
    "Recipe finder",
    "Expense tracker",
    "Random number generator",
    "E-commerce store",
)
