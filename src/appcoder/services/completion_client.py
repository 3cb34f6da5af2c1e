from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, Optional, Protocol, Sequence

import httpx

from ..core.errors import TransportFailure
from ..domain.models import GenerationConfig, Turn

LOG = logging.getLogger("appcoder.llm")


class CompletionTransport(Protocol):
    def stream(self, conversation: Sequence[Turn], config: GenerationConfig) -> AsyncIterator[bytes]: ...


def build_request_body(conversation: Sequence[Turn], config: GenerationConfig) -> Dict[str, Any]:
    """Serialise the whole conversation; the completion service keeps no state between calls."""
    return {
        "messages": [{"role": turn.role, "content": turn.content} for turn in conversation],
        "model": config.model_identifier,
        "temperature": config.temperature,
        "language": config.language.value,
        "shadcn": config.use_component_library,
    }


class CompletionClient:
    """Streaming POST client for the code-generation endpoint.

    No retries: a non-2xx answer or a broken stream surfaces as
    :class:`TransportFailure` and the caller decides what to do.
    """

    def __init__(
        self,
        url: str,
        *,
        connect_timeout: float = 3.0,
        read_timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self._timeout = httpx.Timeout(read_timeout, connect=connect_timeout)
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def stream(self, conversation: Sequence[Turn], config: GenerationConfig) -> AsyncIterator[bytes]:
        payload = build_request_body(conversation, config)
        LOG.debug(
            "completion_request",
            extra={"url": self.url, "model": config.model_identifier, "turns": len(payload["messages"])},
        )
        try:
            async with self._get_client().stream(
                "POST",
                self.url,
                json=payload,
                headers={"Accept": "text/event-stream"},
                timeout=self._timeout,
            ) as resp:
                if not resp.is_success:
                    await resp.aread()
                    raise TransportFailure(
                        f"completion service answered {resp.status_code} {resp.reason_phrase}".strip(),
                        status_code=resp.status_code,
                    )
                async for chunk in resp.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as exc:
            raise TransportFailure(f"completion stream failed: {exc!r}") from exc

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
