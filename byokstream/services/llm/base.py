from __future__ import annotations
import logging
import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

import requests

from ...errors import UnexpectedContentTypeError, UpstreamError

if TYPE_CHECKING:
    from .nodes import ChatStreamChunk

log = logging.getLogger(__name__)

ChatMessage = Dict[str, Any]
ModelParams = Dict[str, Any]
ToolDefinition = Dict[str, Any]


class ProviderType(str, Enum):
    OPENAI_COMPATIBLE = "openai_compatible"
    OPENAI_RESPONSES = "openai_responses"
    ANTHROPIC = "anthropic"
    GEMINI_AI_STUDIO = "gemini_ai_studio"


class StopReason(IntEnum):
    OTHER = 0
    END_TURN = 1
    MAX_TOKENS = 2
    TOOL_USE_REQUESTED = 3
    SAFETY = 4
    RECITATION = 5
    MALFORMED_FUNCTION_CALL = 6


@dataclass(frozen=True)
class RawStreamEvent:
    """One decoded SSE record. ``data`` is JSON text or ``[DONE]``."""

    data: str
    event: Optional[str] = None


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolCallDelta:
    """A fragment of one tool call. ``index=None`` means "next free slot"."""

    index: Optional[int]
    id: Optional[str] = None
    name: Optional[str] = None
    arguments_chunk: Optional[str] = None


@dataclass(frozen=True)
class UsageDelta:
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None


@dataclass(frozen=True)
class FinishDelta:
    """Vendor finish token. ``stop_reason=None`` defers to the tool-use rule."""

    vendor_reason: str
    stop_reason: Optional[StopReason]


Delta = Union[TextDelta, ToolCallDelta, UsageDelta, FinishDelta]


def token_count(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


def usage_delta(prompt: Any = None, completion: Any = None) -> Optional[UsageDelta]:
    """UsageDelta holding only the counters that are real numbers."""
    pt, ct = token_count(prompt), token_count(completion)
    if pt is None and ct is None:
        return None
    return UsageDelta(prompt_tokens=pt, completion_tokens=ct)


def as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def join_base_url(base: str, path: str) -> str:
    if not base or not base.strip():
        raise ValueError("base_url is required")
    return f"{base.strip().rstrip('/')}/{path.lstrip('/')}"


class DeltaDecoder(ABC):
    """Turns one parsed vendor JSON chunk into provider-neutral deltas.

    Implementations are stateless; one instance serves every response.
    """

    provider_type: ProviderType
    label: str

    @abstractmethod
    def decode(self, chunk: Dict[str, Any]) -> List[Delta]:
        raise NotImplementedError

    def is_terminator(self, data: str) -> bool:
        return data == "[DONE]"


@dataclass
class PreparedRequest:
    url: str
    headers: Dict[str, str]
    body: Dict[str, Any]
    params: Optional[Dict[str, str]] = None


class LLMClient(ABC):
    """Provider-agnostic streaming chat client.

    Headers arrive already authenticated; this class never builds credentials.
    """

    provider_type: ProviderType
    decoder: DeltaDecoder

    def __init__(
        self,
        base_url: str,
        model: str,
        headers: Optional[Mapping[str, str]] = None,
        request_defaults: Optional[ModelParams] = None,
        session: Optional[requests.Session] = None,
        timeout: Tuple[float, float] = (5, 300),
        max_line_length: Optional[int] = None,
    ) -> None:
        if not model or not str(model).strip():
            raise ValueError(f"{self.decoder.label} model is required")
        self.base_url = base_url
        self.model = str(model).strip()
        self.headers = dict(headers or {})
        self.request_defaults = dict(request_defaults or {})
        self.timeout = timeout
        self.max_line_length = max_line_length
        self._session = session or requests.Session()

    @property
    def name(self) -> str:
        return self.provider_type.value

    @abstractmethod
    def build_request(
        self,
        messages: List[ChatMessage],
        system: Optional[str] = None,
        tools: Optional[List[ToolDefinition]] = None,
        params: Optional[ModelParams] = None,
    ) -> PreparedRequest:
        raise NotImplementedError

    @classmethod
    @abstractmethod
    def convert_tools(cls, tool_definitions: List[ToolDefinition]) -> List[Dict[str, Any]]:
        """Reshape neutral ``{name, description, input_schema}`` tools for this vendor."""
        raise NotImplementedError

    def _stream_headers(self) -> Dict[str, str]:
        headers = {"content-type": "application/json"}
        headers.update(self.headers)
        headers["accept"] = "text/event-stream"
        return headers

    def _body_with_defaults(self, params: Optional[ModelParams]) -> Dict[str, Any]:
        body: Dict[str, Any] = dict(self.request_defaults)
        body.update({k: v for k, v in (params or {}).items() if v is not None})
        return body

    def stream_chat(
        self,
        messages: List[ChatMessage],
        *,
        system: Optional[str] = None,
        tools: Optional[List[ToolDefinition]] = None,
        params: Optional[ModelParams] = None,
        support_tool_use_start: bool = False,
        tool_meta: Optional[Mapping[str, Any]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Iterator["ChatStreamChunk"]:
        """Yield canonical chunks until the vendor stream ends.

        The HTTP response is closed when the generator finishes, fails,
        is cancelled, or is closed by the consumer.
        """
        from .normalizer import normalize_stream
        from .sse import iter_sse_events

        req = self.build_request(messages, system=system, tools=tools, params=params)
        label = self.decoder.label
        log.info("%s stream start model=%s url=%s", label, self.model, req.url)

        with self._session.post(
            req.url,
            headers=req.headers,
            params=req.params,
            json=req.body,
            stream=True,
            timeout=self.timeout,
        ) as resp:
            if not resp.ok:
                preview = read_text_limit(resp, 500)
                raise UpstreamError(
                    f"{label} {resp.status_code}: {preview}".strip(),
                    status=resp.status_code,
                    provider=label,
                )
            content_type = (resp.headers.get("content-type") or "").lower()
            if "text/event-stream" not in content_type:
                preview = read_text_limit(resp, 500)
                raise UnexpectedContentTypeError(
                    f"{label} response is not SSE (content-type={content_type or 'unknown'}); "
                    f"check that base_url points at the streaming endpoint; body: {preview}".strip(),
                    content_type=content_type,
                    preview=preview,
                    provider=label,
                )

            kwargs = {"cancel_event": cancel_event}
            if self.max_line_length:
                kwargs["max_line_length"] = self.max_line_length
            events = iter_sse_events(resp.iter_content(chunk_size=None), **kwargs)
            yield from normalize_stream(
                events,
                self.decoder,
                support_tool_use_start=support_tool_use_start,
                tool_meta=tool_meta,
                cancel_event=cancel_event,
            )


def read_text_limit(resp: requests.Response, limit: int) -> str:
    """Read at most ``limit`` characters of a streamed body for diagnostics."""
    buf = b""
    try:
        for piece in resp.iter_content(chunk_size=1024):
            buf += piece
            if len(buf) >= limit:
                break
    except requests.RequestException as e:
        log.debug("could not read body preview: %s", e)
    return buf.decode("utf-8", errors="replace")[:limit]


