import json
import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .llm.nodes import ChatStreamChunk, NodeType

log = logging.getLogger(__name__)

DEFAULT_MAX_CHUNKS = 500


def stream_events_as_sse(events: Iterable[Dict[str, Any]]) -> Iterator[str]:
    for ev in events:
        yield f"data: {json.dumps(ev, ensure_ascii=False)}\n\n"


def chunks_as_events(chunks: Iterable[ChatStreamChunk]) -> Iterator[Dict[str, Any]]:
    for chunk in chunks:
        yield chunk.to_dict()


def collect_chat_stream(chunks: Iterable[ChatStreamChunk], max_chunks: int = DEFAULT_MAX_CHUNKS) -> Dict[str, Any]:
    """Drain a canonical stream into one summary dict.

    Stops reading after ``max_chunks`` chunks and marks the result truncated.
    """
    text_parts: List[str] = []
    nodes: List[Dict[str, Any]] = []
    stop_reason: Optional[int] = None
    count = 0
    truncated = False
    for chunk in chunks:
        if count >= max_chunks:
            truncated = True
            break
        count += 1
        if chunk.text:
            text_parts.append(chunk.text)
        nodes.extend(n.to_dict() for n in chunk.nodes)
        if chunk.stop_reason is not None:
            stop_reason = int(chunk.stop_reason)
    if truncated:
        log.warning("stream collection stopped after %d chunks", max_chunks)
    return {
        "text": "".join(text_parts),
        "nodes": nodes,
        "stop_reason": stop_reason,
        "chunks": count,
        "truncated": truncated,
    }


def extract_tool_uses(nodes: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    out = []
    for node in nodes or []:
        if not isinstance(node, dict) or node.get("type") != NodeType.TOOL_USE:
            continue
        tool_use = node.get("tool_use")
        if isinstance(tool_use, dict) and tool_use.get("tool_name"):
            out.append(tool_use)
    return out


def extract_token_usage(nodes: Iterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    # the last usage node is the most complete
    usage = None
    for node in nodes or []:
        if isinstance(node, dict) and node.get("type") == NodeType.TOKEN_USAGE:
            if isinstance(node.get("token_usage"), dict):
                usage = node["token_usage"]
    return usage
