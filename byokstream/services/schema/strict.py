"""Strict JSON Schema dialect: closed objects with a complete ``required``.

``$ref`` is not resolved. Self-referential schemas are bounded by a hard
depth ceiling; anything deeper is treated as valid and left unchanged.
"""

from __future__ import annotations
import copy
from typing import Any, Dict, List, Optional, Sequence, Tuple

MAX_SCHEMA_DEPTH = 50
MAX_TOOL_ISSUES = 30
STRICT_PROVIDERS = frozenset({"openai_responses"})

_SINGLE_KEYS = ("items", "prefixItems", "not", "if", "then", "else")
_UNION_KEYS = ("anyOf", "oneOf", "allOf")
_DEFS_KEYS = ("$defs", "definitions")


class SchemaCoercionIssue(str):
    """A ``"<path>: <reason>"`` string that also exposes its parts."""

    path: str
    reason: str

    def __new__(cls, path: str, reason: str) -> "SchemaCoercionIssue":
        shown = path or "<root>"
        obj = super().__new__(cls, f"{shown}: {reason}")
        obj.path = shown
        obj.reason = reason
        return obj


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _properties(schema: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    props = schema.get("properties")
    return props if isinstance(props, dict) else None


def is_object_schema(schema: Dict[str, Any]) -> bool:
    t = schema.get("type")
    if t == "object":
        return True
    if isinstance(t, list) and any(str(x).strip().lower() == "object" for x in t):
        return True
    return _properties(schema) is not None


def validate_strict_schema(
    schema: Any,
    path: str = "",
    depth: int = 0,
    issues: Optional[List[SchemaCoercionIssue]] = None,
) -> List[SchemaCoercionIssue]:
    """Collect every strictness violation below ``schema``; never raises."""
    if issues is None:
        issues = []
    if depth > MAX_SCHEMA_DEPTH or not schema:
        return issues
    if isinstance(schema, list):
        for i, sub in enumerate(schema):
            validate_strict_schema(sub, f"{path}[{i}]", depth + 1, issues)
        return issues
    if not isinstance(schema, dict):
        return issues

    props = _properties(schema)
    if is_object_schema(schema):
        if schema.get("additionalProperties") is not False:
            issues.append(SchemaCoercionIssue(path, "additionalProperties must be false"))
        required = schema.get("required")
        if not isinstance(required, list):
            issues.append(SchemaCoercionIssue(path, "required must be array"))
        elif props:
            for key in props:
                if key not in required:
                    issues.append(SchemaCoercionIssue(path, f"required missing '{key}'"))

    if props:
        for key, sub in props.items():
            validate_strict_schema(sub, _join(path, f"properties.{key}"), depth + 1, issues)
    for key in _SINGLE_KEYS:
        if schema.get(key) is not None:
            validate_strict_schema(schema[key], _join(path, key), depth + 1, issues)
    for key in _UNION_KEYS:
        if isinstance(schema.get(key), list):
            validate_strict_schema(schema[key], _join(path, key), depth + 1, issues)
    for key in _DEFS_KEYS:
        defs = schema.get(key)
        if isinstance(defs, dict):
            for name, sub in defs.items():
                validate_strict_schema(sub, _join(path, f"{key}.{name}"), depth + 1, issues)
    return issues


def coerce_strict_schema(schema: Any, depth: int = 0) -> Any:
    """Return a strict copy of ``schema``. The input is never mutated."""
    if depth > MAX_SCHEMA_DEPTH:
        return copy.deepcopy(schema)
    if isinstance(schema, list):
        return [coerce_strict_schema(sub, depth + 1) for sub in schema]
    if not isinstance(schema, dict):
        return copy.deepcopy(schema)

    out: Dict[str, Any] = {}
    for key, value in schema.items():
        if key == "properties" and isinstance(value, dict):
            out[key] = {k: coerce_strict_schema(v, depth + 1) for k, v in value.items()}
        elif key in _SINGLE_KEYS or (key in _UNION_KEYS and isinstance(value, list)):
            out[key] = coerce_strict_schema(value, depth + 1)
        elif key in _DEFS_KEYS and isinstance(value, dict):
            out[key] = {k: coerce_strict_schema(v, depth + 1) for k, v in value.items()}
        else:
            out[key] = copy.deepcopy(value)

    if is_object_schema(schema):
        out["additionalProperties"] = False
        props = _properties(schema) or {}
        raw_required = schema.get("required")
        required = [k for k in raw_required if isinstance(k, str)] if isinstance(raw_required, list) else []
        out["required"] = required + [k for k in props if k not in required]
    return out


def _tool_name_and_params(tool: Dict[str, Any]) -> Tuple[str, Any]:
    fn = tool.get("function") if isinstance(tool.get("function"), dict) else {}
    name = (tool.get("name") or fn.get("name") or "").strip()
    params = tool["parameters"] if "parameters" in tool else fn.get("parameters")
    return name, params


def validate_tools_for_provider(
    provider: str,
    converted_tools: Sequence[Dict[str, Any]],
) -> Tuple[bool, List[str]]:
    """Check already-converted tools against the vendor's schema constraints.

    Only the Responses API enforces strictness. Reports the first issue of
    each failing tool.
    """
    if str(getattr(provider, "value", provider)) not in STRICT_PROVIDERS:
        return True, []
    issues: List[str] = []
    for tool in converted_tools or []:
        if not isinstance(tool, dict):
            continue
        name, params = _tool_name_and_params(tool)
        tool_issues = validate_strict_schema(params)
        if tool_issues:
            issues.append(f"{name or '(unknown tool)'}: {tool_issues[0]}")
        if len(issues) >= MAX_TOOL_ISSUES:
            break
    return not issues, issues
