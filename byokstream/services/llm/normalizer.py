from __future__ import annotations
import json
import logging
import threading
from typing import Any, Iterable, Iterator, Mapping, Optional

from ...errors import EmptyStreamError, MalformedStreamError, StreamCancelledError, UpstreamError
from .base import DeltaDecoder, RawStreamEvent
from .emitter import NodeEmitter
from .nodes import ChatStreamChunk

log = logging.getLogger(__name__)


def normalize_stream(
    events: Iterable[RawStreamEvent],
    decoder: DeltaDecoder,
    *,
    support_tool_use_start: bool = False,
    tool_meta: Optional[Mapping[str, Any]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[ChatStreamChunk]:
    """Run decoded SSE events through ``decoder`` and the node emitter.

    Corrupt frames are skipped. The stream ends at ``[DONE]`` or at the end
    of ``events``; cancellation discards everything not yet emitted.
    """
    label = decoder.label
    emitter = NodeEmitter(support_tool_use_start=support_tool_use_start, tool_meta=tool_meta)
    data_events = 0
    parsed_chunks = 0

    def check_cancelled() -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise StreamCancelledError(
                f"{label} stream cancelled",
                provider=label,
                data_events=data_events,
                parsed_chunks=parsed_chunks,
            )

    it = iter(events)
    while True:
        check_cancelled()
        try:
            ev = next(it)
        except StopIteration:
            # the reader stops early once cancelled
            check_cancelled()
            break
        except MalformedStreamError as e:
            raise MalformedStreamError(
                e.message, provider=label, data_events=data_events, parsed_chunks=parsed_chunks
            ) from e
        check_cancelled()

        data = ev.data.strip()
        if not data:
            continue
        data_events += 1
        if decoder.is_terminator(data):
            break
        try:
            chunk = json.loads(data)
        except ValueError:
            log.debug("%s skipping non-JSON frame: %.200s", label, data)
            continue
        if not isinstance(chunk, dict):
            log.debug("%s skipping non-object frame: %.200s", label, data)
            continue
        parsed_chunks += 1

        try:
            deltas = decoder.decode(chunk)
        except UpstreamError as e:
            log.warning("%s upstream error in stream: %s", label, e.message)
            raise UpstreamError(
                e.message,
                status=e.status,
                provider=label,
                data_events=data_events,
                parsed_chunks=parsed_chunks,
            ) from e

        for delta in deltas:
            out = emitter.apply(delta)
            if out is not None:
                yield out

    if not emitter.has_content:
        log.warning(
            "%s stream produced no content data_events=%d parsed_chunks=%d",
            label, data_events, parsed_chunks,
        )
        raise EmptyStreamError(
            f"{label} stream produced no text, usage or tool calls; "
            f"check that base_url points at the {label} SSE endpoint",
            provider=label,
            data_events=data_events,
            parsed_chunks=parsed_chunks,
        )

    yield from emitter.finalize()
