from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from cachetools import Cache

log = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000


@dataclass(frozen=True)
class ToolMeta:
    """Where a tool really lives when it is proxied from an MCP server."""

    mcp_server_name: Optional[str] = None
    mcp_tool_name: Optional[str] = None


def _clean(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def build_tool_meta_by_name(tool_defs: Iterable[Any], maxsize: int = DEFAULT_MAX_ENTRIES) -> Cache:
    """Map tool name -> ToolMeta for tools that carry MCP routing info.

    The first definition of a name wins. Once ``maxsize`` entries are held,
    further tools are left out rather than evicting earlier ones, and lookups
    never reorder the map.
    """
    meta = Cache(maxsize=max(1, int(maxsize)))
    for td in tool_defs or []:
        if not isinstance(td, dict):
            continue
        name = _clean(td.get("name"))
        if not name or name in meta:
            continue
        server = _clean(td.get("mcp_server_name"))
        tool = _clean(td.get("mcp_tool_name"))
        if not (server or tool):
            continue
        if meta.currsize >= meta.maxsize:
            log.warning("tool meta limit of %d reached; remaining tools have no MCP routing", meta.maxsize)
            break
        meta[name] = ToolMeta(mcp_server_name=server, mcp_tool_name=tool)
    log.debug("tool meta built for %d tools", len(meta))
    return meta
