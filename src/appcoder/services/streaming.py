"""Incremental decoding of ``text/event-stream`` bodies into text deltas.

The completion service answers with frames such as::

    data: {"text": "export default"}

    data: {"text": " function App() {"}

Chunks arrive with arbitrary boundaries, so the decoder keeps the
unterminated tail of the body between calls and only emits a delta once the
blank line closing its frame has been seen.
"""

from __future__ import annotations

import codecs
import json
import logging
import re
from typing import AsyncIterable, AsyncIterator, Iterable, List, Optional, TypeVar, Union

from ..domain.models import StreamDeltaEvent

LOG = logging.getLogger("appcoder.stream")

T = TypeVar("T")

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_BOM = "\ufeff"


def iter_as_async(it: Iterable[T]) -> AsyncIterator[T]:
    async def gen() -> AsyncIterator[T]:
        for x in it:
            yield x

    return gen()


def parse_delta(payload: str) -> Optional[StreamDeltaEvent]:
    """Return the delta carried by one frame, or ``None`` if there is none to apply."""
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        LOG.debug("stream_frame_malformed", extra={"reason": "invalid_json", "size": len(payload)})
        return None
    if not isinstance(parsed, dict):
        LOG.debug("stream_frame_malformed", extra={"reason": "not_an_object", "size": len(payload)})
        return None
    text = parsed.get("text")
    if text is None or text == "":
        return None
    if not isinstance(text, str):
        LOG.debug("stream_frame_malformed", extra={"reason": "text_not_string", "size": len(payload)})
        return None
    return StreamDeltaEvent(text=text)


class EventStreamDecoder:
    """Stateful frame decoder for a single response body.

    Not restartable: once :meth:`close` has run, a new decoder is needed.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._tail = ""
        self._data: List[str] = []
        self._started = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, chunk: Union[bytes, str]) -> List[StreamDeltaEvent]:
        if self._closed:
            raise RuntimeError("decoder is closed; use a new EventStreamDecoder per stream")
        text = chunk if isinstance(chunk, str) else self._utf8.decode(chunk)
        if not text:
            return []
        if not self._started:
            self._started = True
            if text.startswith(_BOM):
                text = text[1:]

        buf = self._tail + text
        # A trailing CR may be the first half of a CRLF split across chunks.
        held = ""
        if buf.endswith("\r"):
            buf, held = buf[:-1], "\r"
        lines = _LINE_BREAK.split(buf)
        self._tail = lines.pop() + held

        events: List[StreamDeltaEvent] = []
        for line in lines:
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        return events

    def finish(self) -> List[StreamDeltaEvent]:
        """Process a CR held back by the last :meth:`feed` now that no LF can follow."""
        if self._closed or not self._tail.endswith("\r"):
            return []
        line, self._tail = self._tail[:-1], ""
        event = self._process_line(line)
        return [event] if event is not None else []

    def close(self) -> None:
        """Drop whatever has not been terminated by a blank line."""
        if self._tail or self._data:
            LOG.debug("stream_tail_discarded", extra={"size": len(self._tail), "data_lines": len(self._data)})
        self._utf8.reset()
        self._tail = ""
        self._data = []
        self._closed = True

    def _process_line(self, line: str) -> Optional[StreamDeltaEvent]:
        if line == "":
            return self._dispatch()
        if line.startswith(":"):
            return None
        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if field == "data":
            self._data.append(value)
        # event / id / retry carry nothing the artifact needs
        return None

    def _dispatch(self) -> Optional[StreamDeltaEvent]:
        if not self._data:
            return None
        payload = "\n".join(self._data)
        self._data = []
        return parse_delta(payload)


async def decode_event_stream(chunks: AsyncIterable[Union[bytes, str]]) -> AsyncIterator[StreamDeltaEvent]:
    """Lazily turn a body's chunks into deltas, in arrival order."""
    decoder = EventStreamDecoder()
    try:
        async for chunk in chunks:
            for event in decoder.feed(chunk):
                yield event
        for event in decoder.finish():
            yield event
    finally:
        decoder.close()
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
