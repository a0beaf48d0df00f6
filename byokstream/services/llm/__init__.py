from .base import (
    DeltaDecoder,
    FinishDelta,
    LLMClient,
    ProviderType,
    RawStreamEvent,
    StopReason,
    TextDelta,
    ToolCallDelta,
    UsageDelta,
)
from .nodes import ChatStreamChunk, NodeType
from .normalizer import normalize_stream
from .registry import client_from_config, create_client, decoder_for, provider_type
from .sse import iter_sse_events
