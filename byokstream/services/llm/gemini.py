from __future__ import annotations
import json
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
from .openai import error_message

FINISH_REASONS: Dict[str, Optional[StopReason]] = {
    # STOP is also what Gemini reports after a function call
    "STOP": None,
    "MAX_TOKENS": StopReason.MAX_TOKENS,
    "SAFETY": StopReason.SAFETY,
    "BLOCKLIST": StopReason.SAFETY,
    "PROHIBITED_CONTENT": StopReason.SAFETY,
    "SPII": StopReason.SAFETY,
    "RECITATION": StopReason.RECITATION,
    "MALFORMED_FUNCTION_CALL": StopReason.MALFORMED_FUNCTION_CALL,
}


class GeminiDecoder(DeltaDecoder):
    """Decodes ``streamGenerateContent?alt=sse`` chunks.

    Function calls arrive whole, without a stream position, so each one is
    handed to the accumulator with ``index=None`` to claim a fresh slot.
    """

    provider_type = ProviderType.GEMINI_AI_STUDIO
    label = "Gemini(stream)"

    def decode(self, chunk: Dict[str, Any]) -> List[Delta]:
        if chunk.get("error"):
            raise UpstreamError(f"{self.label} error: {error_message(chunk['error'])}")

        deltas: List[Delta] = []
        for cand in as_list(chunk.get("candidates")):
            cand = as_dict(cand)
            for part in as_list(as_dict(cand.get("content")).get("parts")):
                part = as_dict(part)
                if part.get("thought") is True:
                    continue
                text = part.get("text")
                if isinstance(text, str) and text:
                    deltas.append(TextDelta(text))
                fc = part.get("functionCall")
                if isinstance(fc, dict):
                    args = fc.get("args")
                    deltas.append(ToolCallDelta(
                        index=None,
                        id=fc.get("id"),
                        name=fc.get("name"),
                        arguments_chunk=json.dumps(args, ensure_ascii=False) if args is not None else None,
                    ))
            reason = cand.get("finishReason")
            if isinstance(reason, str) and reason.strip():
                reason = reason.strip()
                deltas.append(FinishDelta(reason, FINISH_REASONS.get(reason, StopReason.OTHER)))

        usage = as_dict(chunk.get("usageMetadata"))
        u = usage_delta(usage.get("promptTokenCount"), usage.get("candidatesTokenCount"))
        if u is not None:
            deltas.append(u)
        return deltas


class GeminiClient(LLMClient):
    provider_type = ProviderType.GEMINI_AI_STUDIO
    decoder = GeminiDecoder()

    @classmethod
    def convert_tools(cls, tool_definitions: List[ToolDefinition]) -> List[Dict[str, Any]]:
        decls = []
        for td in tool_definitions or []:
            name = (td.get("name") or "").strip()
            if not name:
                continue
            schema = {k: v for k, v in resolve_tool_schema(td).items() if k != "$schema"}
            decl: Dict[str, Any] = {"name": name, "parameters": schema}
            if td.get("description"):
                decl["description"] = td["description"]
            decls.append(decl)
        return [{"functionDeclarations": decls}] if decls else []

    def build_request(
        self,
        messages: List[ChatMessage],
        system: Optional[str] = None,
        tools: Optional[List[ToolDefinition]] = None,
        params: Optional[ModelParams] = None,
    ) -> PreparedRequest:
        if not messages:
            raise ValueError(f"{self.decoder.label} contents are empty")
        body = self._body_with_defaults(params)
        body["contents"] = list(messages)
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        converted = self.convert_tools(tools or [])
        if converted:
            body["tools"] = converted
        return PreparedRequest(
            url=join_base_url(self.base_url, f"models/{self.model}:streamGenerateContent"),
            headers=self._stream_headers(),
            body=body,
            params={"alt": "sse"},
        )
