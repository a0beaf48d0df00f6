from __future__ import annotations
from typing import Any, Dict, List, Optional

from ...errors import UpstreamError
from ..schema.sample import resolve_tool_schema
from ..schema.strict import coerce_strict_schema
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

INCOMPLETE_REASONS: Dict[str, StopReason] = {
    "max_output_tokens": StopReason.MAX_TOKENS,
    "content_filter": StopReason.SAFETY,
}


class OpenAIResponsesDecoder(DeltaDecoder):
    """Decodes ``/responses`` stream events, dispatching on ``type``.

    Function calls are positioned by ``output_index``; their arguments arrive
    through ``response.function_call_arguments.delta`` events.
    """

    provider_type = ProviderType.OPENAI_RESPONSES
    label = "OpenAI(responses-stream)"

    def decode(self, chunk: Dict[str, Any]) -> List[Delta]:
        kind = chunk.get("type")

        if kind == "response.output_text.delta":
            text = chunk.get("delta")
            return [TextDelta(text)] if isinstance(text, str) and text else []

        if kind == "response.output_item.added":
            item = as_dict(chunk.get("item"))
            if item.get("type") != "function_call":
                return []
            return [ToolCallDelta(
                index=chunk.get("output_index") or 0,
                id=item.get("call_id") or item.get("id"),
                name=item.get("name"),
                arguments_chunk=item.get("arguments"),
            )]

        if kind == "response.function_call_arguments.delta":
            return [ToolCallDelta(index=chunk.get("output_index") or 0, arguments_chunk=chunk.get("delta"))]

        if kind in ("response.completed", "response.incomplete"):
            return self._decode_final(as_dict(chunk.get("response")))

        if kind == "response.failed":
            response = as_dict(chunk.get("response"))
            raise UpstreamError(f"{self.label} failed: {error_message(response.get('error') or response)}")

        if kind == "error" or (kind is None and chunk.get("error")):
            raise UpstreamError(f"{self.label} error: {error_message(chunk.get('error') or chunk)}")

        return []

    def _decode_final(self, response: Dict[str, Any]) -> List[Delta]:
        deltas: List[Delta] = []
        usage = as_dict(response.get("usage"))
        u = usage_delta(usage.get("input_tokens"), usage.get("output_tokens"))
        if u is not None:
            deltas.append(u)

        status = response.get("status")
        if status == "incomplete":
            reason = as_dict(response.get("incomplete_details")).get("reason")
            if not isinstance(reason, str) or not reason:
                reason = "incomplete"
            deltas.append(FinishDelta(reason, INCOMPLETE_REASONS.get(reason, StopReason.OTHER)))
        elif isinstance(status, str) and status:
            # "completed" does not say whether tools were requested
            deltas.append(FinishDelta(status, None))
        return deltas


class OpenAIResponsesClient(LLMClient):
    provider_type = ProviderType.OPENAI_RESPONSES
    decoder = OpenAIResponsesDecoder()

    @classmethod
    def convert_tools(cls, tool_definitions: List[ToolDefinition]) -> List[Dict[str, Any]]:
        out = []
        for td in tool_definitions or []:
            name = (td.get("name") or "").strip()
            if not name:
                continue
            tool: Dict[str, Any] = {
                "type": "function",
                "name": name,
                "parameters": coerce_strict_schema(resolve_tool_schema(td)),
                "strict": True,
            }
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
            raise ValueError(f"{self.decoder.label} input is empty")
        body = self._body_with_defaults(params)
        body.update({"model": self.model, "input": list(messages), "stream": True})
        if system:
            body["instructions"] = system
        converted = self.convert_tools(tools or [])
        if converted:
            body["tools"] = converted
            body.setdefault("tool_choice", "auto")
        return PreparedRequest(
            url=join_base_url(self.base_url, "responses"),
            headers=self._stream_headers(),
            body=body,
        )
