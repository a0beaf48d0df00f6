from __future__ import annotations
from typing import Optional


class ByokStreamError(Exception):
    """Base error. Carries the vendor and stream counters when known."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        data_events: Optional[int] = None,
        parsed_chunks: Optional[int] = None,
    ) -> None:
        self.message = message
        self.provider = provider
        self.data_events = data_events
        self.parsed_chunks = parsed_chunks
        super().__init__(self._render())

    def _render(self) -> str:
        parts = []
        if self.provider:
            parts.append(f"provider={self.provider}")
        if self.data_events is not None:
            parts.append(f"data_events={self.data_events}")
        if self.parsed_chunks is not None:
            parts.append(f"parsed_chunks={self.parsed_chunks}")
        if not parts:
            return self.message
        return f"{self.message} ({', '.join(parts)})"


class MalformedStreamError(ByokStreamError):
    """The SSE framing itself is broken (oversized line, undecodable bytes)."""


class EmptyStreamError(ByokStreamError):
    """A complete stream produced no text, no usage and no tool calls."""


class UnsupportedProviderError(ByokStreamError, ValueError):
    """Unknown provider type. Raised before any network I/O."""


class UnexpectedContentTypeError(ByokStreamError):
    def __init__(self, message: str, content_type: str = "", preview: str = "", **kwargs) -> None:
        self.content_type = content_type
        self.preview = preview
        super().__init__(message, **kwargs)


class UpstreamError(ByokStreamError):
    """The vendor answered with an error status or an in-band error payload."""

    def __init__(self, message: str, status: Optional[int] = None, **kwargs) -> None:
        self.status = status
        super().__init__(message, **kwargs)


class StreamCancelledError(ByokStreamError):
    """The caller cancelled the response; nothing accumulated was flushed."""
