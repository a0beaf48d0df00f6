from __future__ import annotations
import json
import logging
from typing import Any, Dict, Mapping, Optional, Type, Union

from ...errors import UnsupportedProviderError
from .anthropic import AnthropicClient
from .base import DeltaDecoder, LLMClient, ProviderType
from .gemini import GeminiClient
from .openai import OpenAIClient
from .openai_responses import OpenAIResponsesClient

log = logging.getLogger(__name__)

_REGISTRY: Dict[ProviderType, Type[LLMClient]] = {
    ProviderType.OPENAI_COMPATIBLE: OpenAIClient,
    ProviderType.OPENAI_RESPONSES: OpenAIResponsesClient,
    ProviderType.ANTHROPIC: AnthropicClient,
    ProviderType.GEMINI_AI_STUDIO: GeminiClient,
}


def provider_type(value: Union[str, ProviderType, None]) -> ProviderType:
    if isinstance(value, ProviderType):
        return value
    wanted = (value or "").strip().lower()
    try:
        return ProviderType(wanted)
    except ValueError:
        raise UnsupportedProviderError(
            f"Unknown provider type '{wanted or value}'. Registered: {[p.value for p in _REGISTRY]}"
        ) from None


def client_class(value: Union[str, ProviderType, None]) -> Type[LLMClient]:
    return _REGISTRY[provider_type(value)]


def decoder_for(value: Union[str, ProviderType, None]) -> DeltaDecoder:
    return client_class(value).decoder


def create_client(
    value: Union[str, ProviderType, None],
    base_url: str,
    model: str,
    headers: Optional[Mapping[str, str]] = None,
    **kwargs: Any,
) -> LLMClient:
    """Build the client for ``value``. Fails before any network I/O."""
    cls = client_class(value)
    return cls(base_url=base_url, model=model, headers=headers, **kwargs)


def _json_object(raw: Any, name: str) -> Dict[str, Any]:
    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a JSON object: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError(f"{name} must be a JSON object")
    return parsed


def client_from_config(config: Mapping[str, Any]) -> LLMClient:
    """Build the configured client from a Flask config (or any mapping)."""
    wanted = config.get("LLM_PROVIDER")
    if not wanted:
        raise UnsupportedProviderError("No LLM provider configured. Set LLM_PROVIDER.")
    client = create_client(
        wanted,
        base_url=config.get("LLM_BASE_URL") or "",
        model=config.get("LLM_MODEL") or "",
        headers=_json_object(config.get("LLM_HEADERS"), "LLM_HEADERS"),
        request_defaults=_json_object(config.get("LLM_REQUEST_DEFAULTS"), "LLM_REQUEST_DEFAULTS"),
        timeout=(float(config.get("LLM_CONNECT_TIMEOUT", 5)), float(config.get("LLM_READ_TIMEOUT", 300))),
        max_line_length=int(config.get("SSE_MAX_LINE_LENGTH") or 0) or None,
    )
    log.info("Provider selected: %s model=%s", client.name, client.model)
    return client
