"""Server-Sent-Events framing.

Knows nothing about vendors: it only cuts a byte stream into
``RawStreamEvent`` records. ``[DONE]`` and non-JSON payloads pass through
untouched; interpreting them is the decoder's job.
"""

from __future__ import annotations
import codecs
import re
import threading
from typing import Iterable, Iterator, List, Optional, Union

from ...errors import MalformedStreamError
from .base import RawStreamEvent

DEFAULT_MAX_LINE_LENGTH = 4 * 1024 * 1024

_LINE_END = re.compile(r"\r\n|\r|\n")


class SSEReader:
    """Incremental SSE parser. Feed it pieces, collect the completed events."""

    def __init__(self, max_line_length: int = DEFAULT_MAX_LINE_LENGTH) -> None:
        self.max_line_length = max_line_length
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._event_name: Optional[str] = None
        self._data_lines: List[str] = []
        self._closed = False

    def feed(self, piece: Union[bytes, str]) -> List[RawStreamEvent]:
        if self._closed:
            raise RuntimeError("SSEReader is closed")
        if isinstance(piece, bytes):
            try:
                piece = self._decoder.decode(piece)
            except UnicodeDecodeError as e:
                raise MalformedStreamError(f"SSE stream is not valid UTF-8: {e}") from e
        self._buffer += piece
        return self._drain(final=False)

    def close(self) -> List[RawStreamEvent]:
        """Flush whatever is left at end of stream."""
        if self._closed:
            return []
        try:
            self._buffer += self._decoder.decode(b"", final=True)
        except UnicodeDecodeError as e:
            raise MalformedStreamError(f"SSE stream ends inside a UTF-8 sequence: {e}") from e
        events = self._drain(final=True)
        if self._buffer:
            ev = self._process_line(self._buffer)
            self._buffer = ""
            if ev is not None:
                events.append(ev)
        ev = self._dispatch()
        if ev is not None:
            events.append(ev)
        self._closed = True
        return events

    def _drain(self, final: bool) -> List[RawStreamEvent]:
        events: List[RawStreamEvent] = []
        pos = 0
        buf = self._buffer
        while True:
            m = _LINE_END.search(buf, pos)
            if m is None:
                break
            # a lone trailing \r may be the first half of \r\n
            if not final and m.group() == "\r" and m.end() == len(buf):
                break
            line = buf[pos:m.start()]
            pos = m.end()
            self._check_length(line)
            ev = self._process_line(line)
            if ev is not None:
                events.append(ev)
        self._buffer = buf[pos:]
        self._check_length(self._buffer)
        return events

    def _check_length(self, line: str) -> None:
        if len(line) > self.max_line_length:
            raise MalformedStreamError(
                f"SSE line exceeds {self.max_line_length} characters without a line break"
            )

    def _process_line(self, line: str) -> Optional[RawStreamEvent]:
        if line == "":
            return self._dispatch()
        if line.startswith(":"):
            return None
        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if field == "data":
            self._data_lines.append(value)
        elif field == "event":
            self._event_name = value
        # id, retry and unknown fields are irrelevant here
        return None

    def _dispatch(self) -> Optional[RawStreamEvent]:
        name, self._event_name = self._event_name, None
        if not self._data_lines:
            return None
        data = "\n".join(self._data_lines)
        self._data_lines = []
        return RawStreamEvent(data=data, event=name or None)


def iter_sse_events(
    source: Iterable[Union[bytes, str]],
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[RawStreamEvent]:
    """Lazily decode ``source`` (e.g. ``resp.iter_content``) into events.

    One pass only; to start over, open the source again. ``cancel_event`` is
    checked around every read; once it is set reading stops and the partial
    buffer is dropped without being flushed.
    """
    reader = SSEReader(max_line_length=max_line_length)

    def cancelled() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    it = iter(source)
    while not cancelled():
        try:
            piece = next(it)
        except StopIteration:
            yield from reader.close()
            return
        if piece and not cancelled():
            yield from reader.feed(piece)
