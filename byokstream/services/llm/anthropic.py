from __future__ import annotations
from typing import Any, Dict, List, Optional

from ...errors import UpstreamError
from ..schema.sample import resolve_tool_schema
from .base import (
    ChatMessage,
    Delta,
    DeltaDecoder,
    FinishDelta,
    LLMClient,
    ModelParams,
    PreparedRequest,
    ProviderType,
    StopReason,
    TextDelta,
    ToolCallDelta,
    ToolDefinition,
    as_dict,
    join_base_url,
    usage_delta,
)
from .openai import error_message

DEFAULT_MAX_TOKENS = 4096

STOP_REASONS: Dict[str, StopReason] = {
    "end_turn": StopReason.END_TURN,
    "stop_sequence": StopReason.END_TURN,
    "max_tokens": StopReason.MAX_TOKENS,
    "tool_use": StopReason.TOOL_USE_REQUESTED,
    "refusal": StopReason.SAFETY,
}


class AnthropicDecoder(DeltaDecoder):
    """Decodes Messages API stream events.

    Content blocks are indexed; a ``tool_use`` block opens with its id and
    name and then receives ``input_json_delta`` fragments at the same index.
    The stream has no ``[DONE]``; it simply ends after ``message_stop``.
    """

    provider_type = ProviderType.ANTHROPIC
    label = "Anthropic(stream)"

    def decode(self, chunk: Dict[str, Any]) -> List[Delta]:
        kind = chunk.get("type")

        if kind == "message_start":
            usage = as_dict(as_dict(chunk.get("message")).get("usage"))
            u = usage_delta(usage.get("input_tokens"), usage.get("output_tokens"))
            return [u] if u is not None else []

        if kind == "content_block_start":
            block = as_dict(chunk.get("content_block"))
            if block.get("type") == "tool_use":
                return [ToolCallDelta(index=chunk.get("index") or 0, id=block.get("id"), name=block.get("name"))]
            if block.get("type") == "text" and isinstance(block.get("text"), str) and block["text"]:
                return [TextDelta(block["text"])]
            return []

        if kind == "content_block_delta":
            delta = as_dict(chunk.get("delta"))
            dtype = delta.get("type")
            if dtype == "text_delta":
                text = delta.get("text")
                return [TextDelta(text)] if isinstance(text, str) and text else []
            if dtype == "input_json_delta":
                return [ToolCallDelta(index=chunk.get("index") or 0, arguments_chunk=delta.get("partial_json"))]
            return []

        if kind == "message_delta":
            deltas: List[Delta] = []
            usage = as_dict(chunk.get("usage"))
            u = usage_delta(usage.get("input_tokens"), usage.get("output_tokens"))
            if u is not None:
                deltas.append(u)
            reason = as_dict(chunk.get("delta")).get("stop_reason")
            if isinstance(reason, str) and reason.strip():
                reason = reason.strip()
                deltas.append(FinishDelta(reason, STOP_REASONS.get(reason, StopReason.OTHER)))
            return deltas

        if kind == "error":
            raise UpstreamError(f"{self.label} error: {error_message(chunk.get('error'))}")

        return []


class AnthropicClient(LLMClient):
    provider_type = ProviderType.ANTHROPIC
    decoder = AnthropicDecoder()

    @classmethod
    def convert_tools(cls, tool_definitions: List[ToolDefinition]) -> List[Dict[str, Any]]:
        out = []
        for td in tool_definitions or []:
            name = (td.get("name") or "").strip()
            if not name:
                continue
            tool: Dict[str, Any] = {"name": name, "input_schema": resolve_tool_schema(td)}
            if td.get("description"):
                tool["description"] = td["description"]
            out.append(tool)
        return out

    def build_request(
        self,
        messages: List[ChatMessage],
        system: Optional[str] = None,
        tools: Optional[List[ToolDefinition]] = None,
        params: Optional[ModelParams] = None,
    ) -> PreparedRequest:
        if not messages:
            raise ValueError(f"{self.decoder.label} messages are empty")
        body = self._body_with_defaults(params)
        body.setdefault("max_tokens", DEFAULT_MAX_TOKENS)
        body.update({"model": self.model, "messages": list(messages), "stream": True})
        if system:
            body["system"] = system
        converted = self.convert_tools(tools or [])
        if converted:
            body["tools"] = converted
        return PreparedRequest(
            url=join_base_url(self.base_url, "messages"),
            headers=self._stream_headers(),
            body=body,
        )
