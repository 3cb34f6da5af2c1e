import pytest

from src.appcoder.services.artifact_buffer import ArtifactBuffer
from src.appcoder.services.streaming import EventStreamDecoder

from .utils import frame


def test_deltas_from_three_chunks_accumulate():
    buffer = ArtifactBuffer()
    decoder = EventStreamDecoder()
    for chunk in (frame("Hello, "), frame("world"), frame("!")):
        for event in decoder.feed(chunk):
            buffer.append(event.text)
    assert buffer.current() == "Hello, world!"


def test_append_returns_running_total():
    buffer = ArtifactBuffer()
    assert buffer.append("a") == "a"
    assert buffer.append("bc") == "abc"
    assert len(buffer) == 3


def test_reset_clears_and_reopens_frozen_buffer():
    buffer = ArtifactBuffer()
    buffer.append("old")
    assert buffer.freeze() == "old"
    assert buffer.frozen
    with pytest.raises(RuntimeError):
        buffer.append("more")

    buffer.reset()
    assert buffer.current() == ""
    assert not buffer.frozen
    buffer.append("new")
    assert buffer.current() == "new"
