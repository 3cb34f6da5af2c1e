import asyncio
import time

import pytest

from src.appcoder.core.errors import PreconditionFailed, PublishFailure
from src.appcoder.core.state_machine import SessionStatus
from src.appcoder.domain.models import PublishRecord, Turn
from src.appcoder.infrastructure.share_store import InMemoryShareStore
from src.appcoder.services import telemetry_sink
from src.appcoder.services.publish import PublishCoordinator, min_delay, share_url
from src.appcoder.services.session_state import SessionState

from .utils import ready_state


class SlowBackend:
    def __init__(self, latency: float, share_id: str = "abc123", error: Exception = None):
        self.latency = latency
        self.share_id = share_id
        self.error = error
        self.calls = []

    async def publish(self, *, artifact, prompt, model_identifier):
        self.calls.append({"artifact": artifact, "prompt": prompt, "model_identifier": model_identifier})
        await asyncio.sleep(self.latency)
        if self.error is not None:
            raise self.error
        return PublishRecord(share_id=self.share_id)


@pytest.mark.asyncio
async def test_min_delay_holds_fast_result_until_floor():
    async def fast():
        await asyncio.sleep(0.01)
        return "done"

    started = time.perf_counter()
    assert await min_delay(fast(), 0.2) == "done"
    assert time.perf_counter() - started >= 0.19


@pytest.mark.asyncio
async def test_min_delay_does_not_add_to_slow_operation():
    async def slow():
        await asyncio.sleep(0.4)
        return 7

    started = time.perf_counter()
    assert await min_delay(slow(), 0.3) == 7
    elapsed = time.perf_counter() - started
    assert 0.39 <= elapsed < 0.65


@pytest.mark.asyncio
async def test_min_delay_raises_without_waiting_for_floor():
    async def broken():
        raise PublishFailure("nope")

    started = time.perf_counter()
    with pytest.raises(PublishFailure):
        await min_delay(broken(), 5)
    assert time.perf_counter() - started < 1
    assert [t for t in asyncio.all_tasks() if t is not asyncio.current_task()] == []


@pytest.mark.asyncio
async def test_publish_takes_at_least_one_second():
    backend = SlowBackend(latency=0.01)
    state = ready_state(artifact="export default () => null", prompt="Daily quotes")
    coordinator = PublishCoordinator(backend, min_duration=1.0)

    started = time.perf_counter()
    share_id = await coordinator.publish(state)
    elapsed = time.perf_counter() - started

    assert share_id == "abc123"
    assert elapsed >= 0.99
    assert backend.calls == [
        {
            "artifact": "export default () => null",
            "prompt": "Daily quotes",
            "model_identifier": state.config.model_identifier,
        }
    ]
    assert not state.publishing
    assert [e.name for e in telemetry_sink.list_recent_events()] == ["publish_completed"]


@pytest.mark.asyncio
async def test_publish_sends_latest_prompt_after_modifications():
    state = ready_state(artifact="v1", prompt="first")
    state.history.extend([Turn(role="user", content="second"), Turn(role="assistant", content="v2")])
    backend = SlowBackend(latency=0)
    await PublishCoordinator(backend, min_duration=0).publish(state)
    assert backend.calls[0]["prompt"] == "second"


@pytest.mark.asyncio
async def test_publish_flag_is_visible_while_in_flight_and_blocks_second_publish():
    state = ready_state()
    coordinator = PublishCoordinator(SlowBackend(latency=0.05), min_duration=0.1)

    task = asyncio.create_task(coordinator.publish(state))
    await asyncio.sleep(0.01)
    assert state.publishing
    assert not state.can_publish()
    with pytest.raises(PreconditionFailed):
        await coordinator.publish(state)

    assert await task == "abc123"
    assert not state.publishing
    assert state.can_publish()


@pytest.mark.asyncio
async def test_publish_does_not_block_modification():
    state = ready_state()
    coordinator = PublishCoordinator(SlowBackend(latency=0.05), min_duration=0)
    task = asyncio.create_task(coordinator.publish(state))
    await asyncio.sleep(0.01)
    assert state.machine.accepts_modifications
    await task


@pytest.mark.asyncio
async def test_publish_failure_clears_flag_and_propagates():
    state = ready_state()
    backend = SlowBackend(latency=0, error=PublishFailure("backend answered 500", status_code=500))
    with pytest.raises(PublishFailure) as excinfo:
        await PublishCoordinator(backend, min_duration=0.05).publish(state)
    assert excinfo.value.status_code == 500
    assert not state.publishing
    assert state.status is SessionStatus.READY
    assert [t for t in asyncio.all_tasks() if t is not asyncio.current_task()] == []
    assert [e.name for e in telemetry_sink.list_recent_events()] == ["publish_failed"]


@pytest.mark.asyncio
async def test_unexpected_backend_error_is_wrapped():
    state = ready_state()
    backend = SlowBackend(latency=0, error=KeyError("shareId"))
    with pytest.raises(PublishFailure) as excinfo:
        await PublishCoordinator(backend, min_duration=0).publish(state)
    assert isinstance(excinfo.value.__cause__, KeyError)
    assert not state.publishing


@pytest.mark.asyncio
async def test_publish_requires_a_generated_artifact():
    coordinator = PublishCoordinator(SlowBackend(latency=0), min_duration=0)
    with pytest.raises(PreconditionFailed):
        await coordinator.publish(SessionState())


@pytest.mark.asyncio
async def test_publish_rejected_while_modifying():
    state = ready_state()
    state.machine.fire("submit_modification")
    backend = SlowBackend(latency=0)
    with pytest.raises(PreconditionFailed):
        await PublishCoordinator(backend, min_duration=0).publish(state)
    assert backend.calls == []


@pytest.mark.asyncio
async def test_publish_with_in_memory_store_is_idempotent():
    store = InMemoryShareStore()
    coordinator = PublishCoordinator(store, min_duration=0, domain="https://apps.example.com/")
    state = ready_state()
    first = await coordinator.publish(state)
    second = await coordinator.publish(state)
    assert first == second
    assert store.count() == 1
    assert coordinator.share_url(first) == f"https://apps.example.com/share/{first}"


def test_share_url_requires_domain():
    assert share_url("http://localhost:3000", "xyz") == "http://localhost:3000/share/xyz"
    with pytest.raises(ValueError):
        PublishCoordinator(InMemoryShareStore()).share_url("xyz")
