"""Generation and modification requests for a session.

Both operations run the same loop: enter the busy state, clear the artifact,
stream the completion service's body through the decoder into the buffer and,
once the stream has drained, commit the user/assistant pair to the history.
A request that does not drain commits nothing, leaves the artifact empty and
puts the session back in the idle state it started from.
"""

from __future__ import annotations

import logging
import time
from contextlib import aclosing
from typing import AsyncIterator, Optional

from ..core.errors import PreconditionFailed
from ..core.state_machine import (
    STREAM_COMPLETE,
    SUBMIT_MODIFICATION,
    SUBMIT_PROMPT,
    SessionStatus,
)
from ..domain.models import GenerationConfig, StreamDeltaEvent, Turn
from ..observability.metrics import GENERATION_LATENCY, STREAM_DELTAS
from .completion_client import CompletionTransport
from .session_state import SessionState
from .streaming import decode_event_stream
from .telemetry_sink import record_event, record_metric

LOG = logging.getLogger("appcoder.generation")


def _clean_prompt(prompt: str) -> str:
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValueError("prompt must be a non-empty string")
    return prompt


class GenerationCoordinator:
    def __init__(self, transport: CompletionTransport) -> None:
        self._transport = transport

    async def start_generation(
        self,
        state: SessionState,
        prompt: str,
        config: Optional[GenerationConfig] = None,
    ) -> SessionState:
        """Generate the first artifact of a session and move it to READY."""
        async for _ in self.stream_generation(state, prompt, config):
            pass
        return state

    async def modify(self, state: SessionState, prompt: str) -> SessionState:
        """Ask for a change to the current artifact and move the session to UPDATED."""
        async for _ in self.stream_modification(state, prompt):
            pass
        return state

    def stream_generation(
        self,
        state: SessionState,
        prompt: str,
        config: Optional[GenerationConfig] = None,
    ) -> AsyncIterator[StreamDeltaEvent]:
        prompt = _clean_prompt(prompt)
        if state.status is not SessionStatus.INITIAL:
            raise PreconditionFailed("start_generation", state.status.value)
        chosen = (config or state.settings).model_copy()
        return self._run(state, prompt, chosen, modification=False)

    def stream_modification(self, state: SessionState, prompt: str) -> AsyncIterator[StreamDeltaEvent]:
        prompt = _clean_prompt(prompt)
        if not state.machine.accepts_modifications:
            raise PreconditionFailed("modify", state.status.value)
        if state.config is None:
            raise PreconditionFailed("modify", state.status.value, "no generation config captured")
        return self._run(state, prompt, state.config, modification=True)

    async def _run(
        self,
        state: SessionState,
        prompt: str,
        config: GenerationConfig,
        *,
        modification: bool,
    ) -> AsyncIterator[StreamDeltaEvent]:
        kind = "modify" if modification else "generate"
        state.machine.fire(SUBMIT_MODIFICATION if modification else SUBMIT_PROMPT)
        state.artifact.reset()

        user_turn = Turn(role="user", content=prompt)
        conversation = [*state.history.all(), user_turn]
        LOG.info(
            "generation_started",
            extra={"kind": kind, "model": config.model_identifier, "turns": len(conversation)},
        )

        started = time.perf_counter()
        deltas = 0
        drained = False
        events = decode_event_stream(self._transport.stream(conversation, config))
        try:
            async with aclosing(events):
                async for event in events:
                    state.artifact.append(event.text)
                    deltas += 1
                    STREAM_DELTAS.labels(kind=kind).inc()
                    yield event
            drained = True
        finally:
            if not drained:
                state.artifact.reset()
                state.machine.abort()
                elapsed = time.perf_counter() - started
                GENERATION_LATENCY.labels(kind=kind, outcome="failed").observe(elapsed)
                LOG.warning(
                    "generation_failed",
                    extra={"kind": kind, "deltas": deltas, "resumed_status": state.status.value},
                )
                record_event("generation_failed", kind=kind, deltas=deltas)

        artifact = state.artifact.freeze()
        state.history.extend([user_turn, Turn(role="assistant", content=artifact)])
        if not modification:
            state.config = config
        state.machine.fire(STREAM_COMPLETE)

        elapsed = time.perf_counter() - started
        GENERATION_LATENCY.labels(kind=kind, outcome="completed").observe(elapsed)
        record_metric(name="generation_seconds", value=elapsed, properties={"kind": kind})
        record_event(
            "generation_completed",
            kind=kind,
            deltas=deltas,
            artifact_chars=len(artifact),
            status=state.status.value,
        )
        LOG.info(
            "generation_completed",
            extra={"kind": kind, "deltas": deltas, "artifact_chars": len(artifact), "elapsed_s": round(elapsed, 3)},
        )
