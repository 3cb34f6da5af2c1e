from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from .models import GenerationConfig, Language, Turn


class GenerationSettingsUpdate(BaseModel):
    model_identifier: Optional[str] = Field(default=None, min_length=1)
    language: Optional[Language] = None
    use_component_library: Optional[bool] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class PromptRequest(BaseModel):
    prompt: str = Field(min_length=1)


class GenerateRequest(PromptRequest):
    settings: Optional[GenerationSettingsUpdate] = None


class SessionSnapshot(BaseModel):
    status: str
    artifact: str
    artifact_complete: bool
    messages: List[Turn]
    settings: GenerationConfig
    config: Optional[GenerationConfig] = None
    can_submit: bool
    can_publish: bool
    publishing: bool


class PublishResponse(BaseModel):
    share_id: str
    url: str
