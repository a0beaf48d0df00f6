from __future__ import annotations
import logging
from enum import Enum
from typing import Any, Iterator, List, Mapping, Optional

from .accumulator import ToolCallAccumulator
from .base import Delta, FinishDelta, StopReason, TextDelta, ToolCallDelta, UsageDelta
from .nodes import (
    CanonicalNode,
    ChatStreamChunk,
    MainTextFinishedNode,
    TextChunkNode,
    TokenUsageNode,
    ToolUseNode,
    ToolUseStartNode,
)

log = logging.getLogger(__name__)


class EmitterState(Enum):
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"


class NodeEmitter:
    """Per-response state machine producing canonical chunks.

    Text is emitted immediately. Tool calls and usage are buffered and flushed
    by ``finalize()`` in a fixed order: tool nodes, usage, then the terminal
    chunk with the finished text and the stop reason.
    """

    def __init__(
        self,
        support_tool_use_start: bool = False,
        tool_meta: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.support_tool_use_start = support_tool_use_start
        self.tool_meta = tool_meta if tool_meta is not None else {}
        self.state = EmitterState.STREAMING
        self.accumulator = ToolCallAccumulator()
        self._last_node_id = 0
        self._text_parts: List[str] = []
        self._input_tokens: Optional[int] = None
        self._output_tokens: Optional[int] = None
        self._explicit_stop: Optional[StopReason] = None
        self.text_chunks = 0

    def _next_id(self) -> int:
        self._last_node_id += 1
        return self._last_node_id

    @property
    def has_usage(self) -> bool:
        return self._input_tokens is not None or self._output_tokens is not None

    @property
    def has_content(self) -> bool:
        return self.text_chunks > 0 or self.has_usage or self.accumulator.has_named_calls()

    def apply(self, delta: Delta) -> Optional[ChatStreamChunk]:
        if self.state is not EmitterState.STREAMING:
            raise RuntimeError(f"cannot apply deltas in state {self.state.value}")
        if isinstance(delta, TextDelta):
            if not delta.text:
                return None
            self._text_parts.append(delta.text)
            self.text_chunks += 1
            node = TextChunkNode(id=self._next_id(), text=delta.text)
            return ChatStreamChunk(text=delta.text, nodes=[node])
        if isinstance(delta, ToolCallDelta):
            self.accumulator.add(delta)
        elif isinstance(delta, UsageDelta):
            # last value wins per field; absent fields stay untouched
            if delta.prompt_tokens is not None:
                self._input_tokens = delta.prompt_tokens
            if delta.completion_tokens is not None:
                self._output_tokens = delta.completion_tokens
        elif isinstance(delta, FinishDelta):
            if delta.stop_reason is not None:
                self._explicit_stop = delta.stop_reason
        else:
            raise TypeError(f"unknown delta type: {type(delta).__name__}")
        return None

    def _meta_for(self, tool_name: str):
        meta = self.tool_meta.get(tool_name) if self.tool_meta else None
        server = getattr(meta, "mcp_server_name", None) if meta is not None else None
        tool = getattr(meta, "mcp_tool_name", None) if meta is not None else None
        return server or None, tool or None

    def finalize(self) -> Iterator[ChatStreamChunk]:
        if self.state is not EmitterState.STREAMING:
            raise RuntimeError(f"cannot finalize in state {self.state.value}")
        self.state = EmitterState.FINALIZING

        saw_tool_use = False
        for rec in self.accumulator.finalize():
            tool_use_id = rec.id or f"tool-{self._last_node_id + 1}"
            input_json = rec.arguments_text.strip() or "{}"
            server, mcp_tool = self._meta_for(rec.name)
            saw_tool_use = True
            if self.support_tool_use_start:
                start = ToolUseStartNode(
                    id=self._next_id(),
                    tool_use_id=tool_use_id,
                    tool_name=rec.name,
                    input_json=input_json,
                    mcp_server_name=server,
                    mcp_tool_name=mcp_tool,
                )
                yield ChatStreamChunk(nodes=[start])
            node = ToolUseNode(
                id=self._next_id(),
                tool_use_id=tool_use_id,
                tool_name=rec.name,
                input_json=input_json,
                mcp_server_name=server,
                mcp_tool_name=mcp_tool,
            )
            yield ChatStreamChunk(nodes=[node])

        if self.has_usage:
            usage = TokenUsageNode(
                id=self._next_id(),
                input_tokens=self._input_tokens,
                output_tokens=self._output_tokens,
            )
            yield ChatStreamChunk(nodes=[usage])

        final_nodes: List[CanonicalNode] = []
        if self._text_parts:
            final_nodes.append(MainTextFinishedNode(id=self._next_id(), full_text="".join(self._text_parts)))

        stop_reason = self.compute_stop_reason(saw_tool_use)
        self.state = EmitterState.DONE
        yield ChatStreamChunk(nodes=final_nodes, stop_reason=stop_reason)

    def compute_stop_reason(self, saw_tool_use: bool) -> StopReason:
        if self._explicit_stop is not None:
            return self._explicit_stop
        return StopReason.TOOL_USE_REQUESTED if saw_tool_use else StopReason.END_TURN
