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
    as_list,
    join_base_url,
    usage_delta,
)

FINISH_REASONS: Dict[str, StopReason] = {
    "stop": StopReason.END_TURN,
    "length": StopReason.MAX_TOKENS,
    "tool_calls": StopReason.TOOL_USE_REQUESTED,
    "function_call": StopReason.TOOL_USE_REQUESTED,
    "content_filter": StopReason.SAFETY,
}


def error_message(payload: Any) -> str:
    if isinstance(payload, dict):
        msg = payload.get("message") or payload.get("type") or payload.get("code")
        if msg:
            return str(msg)
    return str(payload)


class OpenAIChatDecoder(DeltaDecoder):
    """Decodes ``/chat/completions`` stream chunks.

    A chunk looks like::

        {"choices": [{"delta": {"content": "...", "tool_calls": [...]},
                      "finish_reason": null}],
         "usage": null}
    """

    provider_type = ProviderType.OPENAI_COMPATIBLE
    label = "OpenAI(chat-stream)"

    def decode(self, chunk: Dict[str, Any]) -> List[Delta]:
        if chunk.get("error"):
            raise UpstreamError(f"{self.label} error: {error_message(chunk['error'])}")

        deltas: List[Delta] = []
        usage = chunk.get("usage")
        if isinstance(usage, dict):
            u = usage_delta(usage.get("prompt_tokens"), usage.get("completion_tokens"))
            if u is not None:
                deltas.append(u)

        for choice in as_list(chunk.get("choices")):
            choice = as_dict(choice)
            delta = as_dict(choice.get("delta"))

            text = delta.get("content")
            if isinstance(text, str) and text:
                deltas.append(TextDelta(text))

            for tc in as_list(delta.get("tool_calls")):
                tc = as_dict(tc)
                fn = as_dict(tc.get("function"))
                deltas.append(ToolCallDelta(
                    index=tc.get("index") or 0,
                    id=tc.get("id"),
                    name=fn.get("name"),
                    arguments_chunk=fn.get("arguments"),
                ))

            # legacy single function_call
            fc = delta.get("function_call")
            if isinstance(fc, dict):
                deltas.append(ToolCallDelta(index=0, name=fc.get("name"), arguments_chunk=fc.get("arguments")))

            reason = choice.get("finish_reason")
            if isinstance(reason, str) and reason.strip():
                reason = reason.strip()
                deltas.append(FinishDelta(reason, FINISH_REASONS.get(reason, StopReason.OTHER)))
        return deltas


class OpenAIClient(LLMClient):
    """
    Streams chat completions from an OpenAI-compatible ``/chat/completions``
    endpoint (OpenAI, Azure OpenAI deployments, vLLM, DeepSeek, ...).
    """

    provider_type = ProviderType.OPENAI_COMPATIBLE
    decoder = OpenAIChatDecoder()

    @classmethod
    def convert_tools(cls, tool_definitions: List[ToolDefinition]) -> List[Dict[str, Any]]:
        out = []
        for td in tool_definitions or []:
            name = (td.get("name") or "").strip()
            if not name:
                continue
            fn: Dict[str, Any] = {"name": name, "parameters": resolve_tool_schema(td)}
            if td.get("description"):
                fn["description"] = td["description"]
            out.append({"type": "function", "function": fn})
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
        full_messages = list(messages)
        if system:
            full_messages.insert(0, {"role": "system", "content": system})

        body = self._body_with_defaults(params)
        body.update({
            "model": self.model,
            "messages": full_messages,
            "stream": True,
            "stream_options": {"include_usage": True},
        })
        converted = self.convert_tools(tools or [])
        if converted:
            body["tools"] = converted
            body.setdefault("tool_choice", "auto")
        return PreparedRequest(
            url=join_base_url(self.base_url, "chat/completions"),
            headers=self._stream_headers(),
            body=body,
        )
