from __future__ import annotations

from typing import List

from fastapi import APIRouter

from ...domain.models import MODEL_CATALOG, PROMPT_SUGGESTIONS, GenerationConfig, Language, ModelOption

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/models", response_model=List[ModelOption])
def list_models() -> List[ModelOption]:
    return list(MODEL_CATALOG)


@router.get("/languages", response_model=List[str])
def list_languages() -> List[str]:
    return [language.value for language in Language]


@router.get("/suggestions", response_model=List[str])
def list_suggestions() -> List[str]:
    return list(PROMPT_SUGGESTIONS)


@router.get("/defaults", response_model=GenerationConfig)
def default_settings() -> GenerationConfig:
    return GenerationConfig()
