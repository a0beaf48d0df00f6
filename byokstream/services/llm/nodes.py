"""Canonical response nodes and the chunk type yielded to consumers.

Every vendor stream is reshaped into these types. The integer ``type`` codes
and the dict layout produced by ``to_dict()`` are the wire contract of the
chat client, so they must not change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, ClassVar, Dict, List, Optional, Union

from .base import StopReason


class NodeType(IntEnum):
    RAW_RESPONSE = 0
    MAIN_TEXT_FINISHED = 2
    TOOL_USE = 5
    TOOL_USE_START = 7
    TOKEN_USAGE = 10


@dataclass(frozen=True)
class TextChunkNode:
    """One text fragment, emitted as soon as it arrives."""

    type: ClassVar[NodeType] = NodeType.RAW_RESPONSE
    id: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": int(self.type), "content": self.text}


@dataclass(frozen=True)
class _ToolUseBase:
    id: int
    tool_use_id: str
    tool_name: str
    input_json: str
    mcp_server_name: Optional[str] = None
    mcp_tool_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        tool_use: Dict[str, Any] = {
            "tool_use_id": self.tool_use_id,
            "tool_name": self.tool_name,
            "input_json": self.input_json,
        }
        if self.mcp_server_name:
            tool_use["mcp_server_name"] = self.mcp_server_name
        if self.mcp_tool_name:
            tool_use["mcp_tool_name"] = self.mcp_tool_name
        return {"id": self.id, "type": int(self.type), "content": "", "tool_use": tool_use}


@dataclass(frozen=True)
class ToolUseStartNode(_ToolUseBase):
    """Early announcement of a tool call, only for consumers that opted in."""

    type: ClassVar[NodeType] = NodeType.TOOL_USE_START


@dataclass(frozen=True)
class ToolUseNode(_ToolUseBase):
    """The dispatchable tool call. Always emitted, even after a start node."""

    type: ClassVar[NodeType] = NodeType.TOOL_USE


@dataclass(frozen=True)
class TokenUsageNode:
    type: ClassVar[NodeType] = NodeType.TOKEN_USAGE
    id: int
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        usage: Dict[str, Any] = {}
        if self.input_tokens is not None:
            usage["input_tokens"] = self.input_tokens
        if self.output_tokens is not None:
            usage["output_tokens"] = self.output_tokens
        return {"id": self.id, "type": int(self.type), "content": "", "token_usage": usage}


@dataclass(frozen=True)
class MainTextFinishedNode:
    type: ClassVar[NodeType] = NodeType.MAIN_TEXT_FINISHED
    id: int
    full_text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": int(self.type), "content": self.full_text}


CanonicalNode = Union[TextChunkNode, ToolUseStartNode, ToolUseNode, TokenUsageNode, MainTextFinishedNode]


@dataclass
class ChatStreamChunk:
    text: str = ""
    nodes: List[CanonicalNode] = field(default_factory=list)
    stop_reason: Optional[StopReason] = None

    @property
    def is_terminal(self) -> bool:
        return self.stop_reason is not None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"text": self.text, "nodes": [n.to_dict() for n in self.nodes]}
        if self.stop_reason is not None:
            out["stop_reason"] = int(self.stop_reason)
        return out
