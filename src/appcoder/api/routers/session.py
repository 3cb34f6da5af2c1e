from __future__ import annotations

import json
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from ...core.errors import PreconditionFailed, PublishFailure, TransportFailure
from ...domain.models import GenerationConfig, StreamDeltaEvent
from ...domain.session_models import (
    GenerateRequest,
    GenerationSettingsUpdate,
    PromptRequest,
    PublishResponse,
    SessionSnapshot,
)
from ...services.session_service import SessionService, get_session_service

router = APIRouter(prefix="/session", tags=["session"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _snapshot(service: SessionService) -> SessionSnapshot:
    state = service.state
    return SessionSnapshot(
        status=state.status.value,
        artifact=state.artifact.current(),
        artifact_complete=state.artifact.frozen,
        messages=state.history.all(),
        settings=state.settings,
        config=state.config,
        can_submit=not state.busy,
        can_publish=state.can_publish(),
        publishing=state.publishing,
    )


def _frame(payload: Dict[str, Any], event: Optional[str] = None) -> str:
    head = f"event: {event}\n" if event else ""
    return f"{head}data: {json.dumps(payload)}\n\n"


def _conflict(exc: PreconditionFailed) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _apply_settings(service: SessionService, payload: GenerationSettingsUpdate) -> GenerationConfig:
    try:
        return service.state.update_settings(**payload.model_dump(exclude_unset=True))
    except PreconditionFailed as exc:
        raise _conflict(exc) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors()) from exc


async def _relay(service: SessionService, events: AsyncIterator[StreamDeltaEvent]) -> StreamingResponse:
    # Pull the first delta before answering so upstream failures map to a status code.
    try:
        first: Optional[StreamDeltaEvent] = await anext(events)
    except StopAsyncIteration:
        first = None
    except PreconditionFailed as exc:
        raise _conflict(exc) from exc
    except TransportFailure as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    async def event_stream() -> AsyncIterator[str]:
        async with aclosing(events):
            if first is not None:
                yield _frame({"text": first.text})
            try:
                async for event in events:
                    yield _frame({"text": event.text})
            except TransportFailure as exc:
                yield _frame({"error": str(exc), "status": service.state.status.value}, event="error")
                return
        yield _frame({"status": service.state.status.value}, event="done")

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("", response_model=SessionSnapshot)
def get_session(service: SessionService = Depends(get_session_service)) -> SessionSnapshot:
    return _snapshot(service)


@router.put("/settings", response_model=GenerationConfig)
def update_settings(
    payload: GenerationSettingsUpdate,
    service: SessionService = Depends(get_session_service),
) -> GenerationConfig:
    return _apply_settings(service, payload)


@router.post("/settings/reset", response_model=GenerationConfig)
def reset_settings(service: SessionService = Depends(get_session_service)) -> GenerationConfig:
    try:
        return service.state.reset_settings()
    except PreconditionFailed as exc:
        raise _conflict(exc) from exc


@router.post("/generate", response_class=StreamingResponse)
async def generate(
    payload: GenerateRequest,
    service: SessionService = Depends(get_session_service),
):
    state = service.state
    config: Optional[GenerationConfig] = None
    try:
        if payload.settings is not None:
            config = state.merged_settings(**payload.settings.model_dump(exclude_unset=True))
        events = service.generator.stream_generation(state, payload.prompt, config)
    except PreconditionFailed as exc:
        raise _conflict(exc) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors()) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    # Only an accepted request updates the draft.
    if config is not None:
        state.settings = config
    return await _relay(service, events)


@router.post("/modify", response_class=StreamingResponse)
async def modify(
    payload: PromptRequest,
    service: SessionService = Depends(get_session_service),
):
    try:
        events = service.generator.stream_modification(service.state, payload.prompt)
    except PreconditionFailed as exc:
        raise _conflict(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return await _relay(service, events)


@router.post("/publish", response_model=PublishResponse)
async def publish(service: SessionService = Depends(get_session_service)) -> PublishResponse:
    try:
        share_id = await service.publisher.publish(service.state)
    except PreconditionFailed as exc:
        raise _conflict(exc) from exc
    except PublishFailure as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return PublishResponse(share_id=share_id, url=service.publisher.share_url(share_id))


@router.post("/reset", response_model=SessionSnapshot)
def reset_session(service: SessionService = Depends(get_session_service)) -> SessionSnapshot:
    try:
        service.reset()
    except PreconditionFailed as exc:
        raise _conflict(exc) from exc
    return _snapshot(service)
