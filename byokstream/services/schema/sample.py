"""Schema-conformant example values for exercising real tool definitions."""

from __future__ import annotations
import copy
import json
import logging
import math
from typing import Any, Dict, Iterable, List, Optional

log = logging.getLogger(__name__)

MAX_SAMPLE_DEPTH = 8
MAX_OBJECT_KEYS = 60
MAX_ARRAY_ITEMS = 3
MAX_STRING_LENGTH = 16
MAX_FAILED_NAMES = 12


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _types(schema: Dict[str, Any]) -> List[str]:
    raw = schema.get("type")
    items = raw if isinstance(raw, list) else [raw]
    return [str(t).strip().lower() for t in items if t]


def sample_json_from_schema(schema: Any, depth: int = 0) -> Any:
    """Deterministically produce one value that conforms to ``schema``.

    Past ``MAX_SAMPLE_DEPTH`` an empty object is returned, so cyclic or
    adversarial schemas always terminate.
    """
    if depth > MAX_SAMPLE_DEPTH:
        return {}
    s = schema if isinstance(schema, dict) else {}

    if "const" in s:
        return copy.deepcopy(s["const"])
    if isinstance(s.get("enum"), list) and s["enum"]:
        return copy.deepcopy(s["enum"][0])
    if "default" in s:
        return copy.deepcopy(s["default"])

    for key in ("oneOf", "anyOf", "allOf"):
        branches = s.get(key)
        if isinstance(branches, list) and branches:
            return sample_json_from_schema(branches[0], depth + 1)

    types = _types(s)
    props = s.get("properties") if isinstance(s.get("properties"), dict) else None

    if "object" in types or props is not None:
        keys = list(props) if props else []
        raw_required = s.get("required") if isinstance(s.get("required"), list) else []
        required = [str(k).strip() for k in raw_required if str(k).strip()]
        chosen = [k for k in required if k in keys] if required else keys
        return {k: sample_json_from_schema(props[k], depth + 1) for k in chosen[:MAX_OBJECT_KEYS]}

    if "array" in types or s.get("items") is not None:
        min_items = _number(s.get("minItems"))
        n = min(MAX_ARRAY_ITEMS, int(min_items)) if min_items and min_items > 0 else 0
        return [sample_json_from_schema(s.get("items"), depth + 1) for _ in range(n)]

    if "integer" in types:
        if _number(s.get("minimum")) is not None:
            return math.floor(s["minimum"])
        if _number(s.get("exclusiveMinimum")) is not None:
            return math.floor(s["exclusiveMinimum"]) + 1
        return 1
    if "number" in types:
        if _number(s.get("minimum")) is not None:
            return s["minimum"]
        if _number(s.get("exclusiveMinimum")) is not None:
            return s["exclusiveMinimum"] + 1
        return 1
    if "boolean" in types:
        return True
    if "null" in types:
        return None
    if "string" in types:
        min_length = _number(s.get("minLength"))
        n = int(min_length) if min_length and min_length > 0 else 0
        return "x" * min(MAX_STRING_LENGTH, max(1, n))

    return {}


def resolve_tool_schema(tool_def: Dict[str, Any]) -> Dict[str, Any]:
    """The parameter schema of a neutral tool definition."""
    for key in ("input_schema", "inputSchema"):
        schema = tool_def.get(key)
        if isinstance(schema, dict):
            return schema
    raw = tool_def.get("input_schema_json") or tool_def.get("inputSchemaJson")
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except ValueError:
            log.warning("tool %s has unparseable input_schema_json", tool_def.get("name"))
        else:
            if isinstance(parsed, dict):
                return parsed
    if isinstance(tool_def.get("parameters"), dict):
        return tool_def["parameters"]
    return {"type": "object", "properties": {}}


def build_example_args_json(tool_def: Dict[str, Any]) -> str:
    """Arguments JSON for actually invoking a tool during a probe."""
    sample = sample_json_from_schema(resolve_tool_schema(tool_def), 0)
    obj = sample if isinstance(sample, dict) else {}

    # keep format/domain validators of real tools happy
    if isinstance(obj.get("url"), str):
        obj["url"] = "https://example.com"
    if isinstance(obj.get("uri"), str):
        obj["uri"] = "https://example.com"
    if isinstance(obj.get("query"), str):
        obj["query"] = "hello"
    if isinstance(obj.get("text"), str):
        obj["text"] = "hello"
    if isinstance(obj.get("path"), str):
        obj["path"] = "selftest.txt"
    return json.dumps(obj, ensure_ascii=False)


def dedupe_tools_by_name(tool_defs: Iterable[Any]) -> List[Dict[str, Any]]:
    out, seen = [], set()
    for td in tool_defs or []:
        if not isinstance(td, dict):
            continue
        name = (td.get("name") or "").strip()
        if not name or name in seen:
            continue
        seen.add(name)
        out.append(td)
    return out


def summarize_tool_schemas(tool_defs: Iterable[Any]) -> Dict[str, Any]:
    defs = dedupe_tools_by_name(tool_defs)
    with_mcp_meta = 0
    sample_ok = 0
    failed: List[str] = []
    for td in defs:
        if (td.get("mcp_server_name") or "").strip() or (td.get("mcp_tool_name") or "").strip():
            with_mcp_meta += 1
        try:
            json.dumps(sample_json_from_schema(resolve_tool_schema(td), 0))
        except (TypeError, ValueError) as e:
            log.warning("sample for tool %s is not JSON-serializable: %s", td["name"], e)
            failed.append(td["name"])
        else:
            sample_ok += 1
    return {
        "tool_count": len(defs),
        "with_mcp_meta": with_mcp_meta,
        "sample_ok": sample_ok,
        "sample_failed_names": failed[:MAX_FAILED_NAMES],
        "sample_failed_truncated": len(failed) > MAX_FAILED_NAMES,
    }
