from __future__ import annotations

import json
from typing import Any, Dict, List, Sequence, Tuple, Union

from src.appcoder.core.state_machine import SessionStateMachine, SessionStatus
from src.appcoder.domain.models import GenerationConfig, Turn
from src.appcoder.services.session_state import SessionState

Chunk = Union[bytes, BaseException]


def frame(text: str) -> bytes:
    return f"data: {json.dumps({'text': text}, ensure_ascii=False)}\n\n".encode("utf-8")


def sse_body(*texts: str) -> bytes:
    return b"".join(frame(t) for t in texts)


def split_every(data: bytes, size: int) -> List[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


class FakeTransport:
    """Replays canned chunk sequences in place of the completion service.

    Each call to :meth:`stream` consumes the next scripted response. A
    response that is an exception is raised before any chunk (a non-2xx
    answer); an exception inside a chunk list breaks the stream mid-way.
    """

    def __init__(self, *responses: Union[Sequence[Chunk], BaseException]) -> None:
        self._responses: List[Union[Sequence[Chunk], BaseException]] = list(responses)
        self.calls: List[Tuple[List[Turn], GenerationConfig]] = []

    def queue(self, response: Union[Sequence[Chunk], BaseException]) -> None:
        self._responses.append(response)

    async def stream(self, conversation, config):
        self.calls.append((list(conversation), config))
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        for chunk in response:
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk


def ready_state(
    artifact: str = "export default function App() {}",
    prompt: str = "Calculator app",
    model: str = "google/gemma-2-27b-it",
) -> SessionState:
    """A session that has completed its first generation."""
    config = GenerationConfig(model_identifier=model)
    state = SessionState(machine=SessionStateMachine(SessionStatus.READY), settings=config, config=config)
    state.history.extend([Turn(role="user", content=prompt), Turn(role="assistant", content=artifact)])
    state.artifact.append(artifact)
    state.artifact.freeze()
    return state


def roles(turns: Sequence[Turn]) -> List[str]:
    return [t.role for t in turns]


def sse_payloads(body: str) -> List[Dict[str, Any]]:
    """Parse the ``data:`` payloads of an SSE response body relayed by the API."""
    out: List[Dict[str, Any]] = []
    for block in body.split("\n\n"):
        for line in block.splitlines():
            if line.startswith("data: "):
                out.append(json.loads(line[len("data: ") :]))
    return out
