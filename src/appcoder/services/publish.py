from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Optional, Protocol, TypeVar

from ..core.errors import PreconditionFailed, PublishFailure
from ..domain.models import PublishRecord, Turn
from ..observability.metrics import PUBLISH_LATENCY
from .session_state import SessionState
from .telemetry_sink import record_event, record_metric

LOG = logging.getLogger("appcoder.publish")

T = TypeVar("T")

DEFAULT_MIN_DURATION = 1.0


class PublishBackend(Protocol):
    async def publish(self, *, artifact: str, prompt: str, model_identifier: str) -> PublishRecord: ...


async def min_delay(awaitable: Awaitable[T], seconds: float) -> T:
    """Await ``awaitable`` but resolve no sooner than ``seconds`` from now.

    The call and the timer run concurrently, so the result arrives after
    ``max(latency, seconds)``. A failure is raised as soon as it happens and
    the timer is cancelled with it.
    """
    timer = asyncio.ensure_future(asyncio.sleep(max(0.0, seconds)))
    try:
        result = await awaitable
    except BaseException:
        timer.cancel()
        await asyncio.gather(timer, return_exceptions=True)
        raise
    await timer
    return result


def share_url(domain: str, share_id: str) -> str:
    return f"{domain.rstrip('/')}/share/{share_id}"


class PublishCoordinator:
    def __init__(
        self,
        backend: PublishBackend,
        *,
        min_duration: float = DEFAULT_MIN_DURATION,
        domain: Optional[str] = None,
    ) -> None:
        self._backend = backend
        self.min_duration = min_duration
        self.domain = domain

    def _check(self, state: SessionState) -> Turn:
        status = state.status.value
        if state.busy:
            raise PreconditionFailed("publish", status, "a request is in flight")
        if state.publishing:
            raise PreconditionFailed("publish", status, "a publish is already in flight")
        if not state.history.count("assistant"):
            raise PreconditionFailed("publish", status, "nothing has been generated yet")
        if not state.artifact.current():
            raise PreconditionFailed("publish", status, "artifact is empty")
        if state.config is None:
            raise PreconditionFailed("publish", status, "no generation config captured")
        last_prompt = state.history.last_user_turn()
        if last_prompt is None:
            raise PreconditionFailed("publish", status, "no user prompt to publish with")
        return last_prompt

    async def publish(self, state: SessionState) -> str:
        """Publish the current artifact and return its share identifier."""
        last_prompt = self._check(state)
        artifact = state.artifact.current()
        model_identifier = state.config.model_identifier

        state.publishing = True
        started = time.perf_counter()
        try:
            record = await min_delay(
                self._backend.publish(
                    artifact=artifact,
                    prompt=last_prompt.content,
                    model_identifier=model_identifier,
                ),
                self.min_duration,
            )
        except PublishFailure as exc:
            self._failed(started, exc)
            raise
        except Exception as exc:
            self._failed(started, exc)
            raise PublishFailure(f"publish backend error: {exc}") from exc
        finally:
            state.publishing = False

        elapsed = time.perf_counter() - started
        PUBLISH_LATENCY.labels(outcome="completed").observe(elapsed)
        record_metric(name="publish_seconds", value=elapsed, properties={"floor_s": self.min_duration})
        record_event("publish_completed", share_id=record.share_id, model=model_identifier)
        LOG.info("publish_completed", extra={"share_id": record.share_id, "elapsed_s": round(elapsed, 3)})
        return record.share_id

    def share_url(self, share_id: str) -> str:
        if not self.domain:
            raise ValueError("no share domain configured")
        return share_url(self.domain, share_id)

    @staticmethod
    def _failed(started: float, exc: BaseException) -> None:
        PUBLISH_LATENCY.labels(outcome="failed").observe(time.perf_counter() - started)
        LOG.warning("publish_failed", extra={"err": str(exc)})
        record_event("publish_failed", err=str(exc))
