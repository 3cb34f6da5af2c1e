from __future__ import annotations

import logging
from typing import Optional

from ..core.errors import PreconditionFailed
from ..core.settings import AppSettings
from ..infrastructure.share_store import HttpShareBackend, InMemoryShareStore
from .completion_client import CompletionClient, CompletionTransport
from .generation import GenerationCoordinator
from .publish import PublishBackend, PublishCoordinator
from .session_state import SessionState

logger = logging.getLogger("appcoder.session")


class SessionService:
    """Binds the single local session to its generation and publish coordinators."""

    def __init__(
        self,
        transport: CompletionTransport,
        backend: PublishBackend,
        *,
        min_publish_duration: float = 1.0,
        share_domain: Optional[str] = None,
    ) -> None:
        self.transport = transport
        self.backend = backend
        self.generator = GenerationCoordinator(transport)
        self.publisher = PublishCoordinator(backend, min_duration=min_publish_duration, domain=share_domain)
        self.state = SessionState()

    def reset(self) -> SessionState:
        """Start over with a fresh session, as a browser reload would."""
        if self.state.busy or self.state.publishing:
            raise PreconditionFailed("reset", self.state.status.value, "a request is in flight")
        self.state = SessionState()
        return self.state

    async def aclose(self) -> None:
        for resource in (self.transport, self.backend):
            aclose = getattr(resource, "aclose", None)
            if aclose is not None:
                await aclose()


def build_session_service(settings: Optional[AppSettings] = None) -> SessionService:
    settings = settings or AppSettings.from_env()
    transport = CompletionClient(
        settings.completion_url,
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
    )
    backend: PublishBackend
    if settings.publish_url:
        backend = HttpShareBackend(settings.publish_url, timeout=settings.read_timeout)
    else:
        logger.info("APPCODER_PUBLISH_URL not set; publishing to the in-memory share store")
        backend = InMemoryShareStore()
    return SessionService(
        transport,
        backend,
        min_publish_duration=settings.publish_min_duration,
        share_domain=settings.share_domain,
    )


_service: Optional[SessionService] = None


def get_session_service() -> SessionService:
    global _service
    if _service is None:
        _service = build_session_service()
    return _service


async def close_session_service() -> None:
    global _service
    if _service is not None:
        await _service.aclose()
        _service = None
