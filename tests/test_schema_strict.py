"""Tests for byokstream.services.schema.strict."""

import copy

from byokstream.services.schema.strict import (
    MAX_TOOL_ISSUES,
    SchemaCoercionIssue,
    coerce_strict_schema,
    validate_strict_schema,
    validate_tools_for_provider,
)

LOOSE = {"type": "object", "properties": {"a": {"type": "string"}}, "required": ["a"]}


def _nested(depth):
    schema = {"type": "string"}
    for _ in range(depth):
        schema = {"type": "object", "properties": {"child": schema}}
    return schema


class TestValidateStrictSchema:
    def test_strict_schema_has_no_issues(self):
        strict = {
            "type": "object",
            "additionalProperties": False,
            "required": ["a", "b"],
            "properties": {
                "a": {"type": "string"},
                "b": {"type": "array", "items": {
                    "type": "object", "additionalProperties": False, "required": [], "properties": {},
                }},
            },
        }
        assert validate_strict_schema(strict) == []

    def test_open_object_reported(self):
        assert validate_strict_schema(LOOSE) == ["<root>: additionalProperties must be false"]

    def test_required_problems(self):
        issues = validate_strict_schema({"properties": {"a": {}}, "additionalProperties": False})
        assert issues == ["<root>: required must be array"]
        issues = validate_strict_schema({
            "type": "object", "additionalProperties": False,
            "properties": {"a": {}, "b": {}}, "required": ["a"],
        })
        assert issues == ["<root>: required missing 'b'"]

    def test_every_nested_path_reported(self):
        schema = {
            "type": "object", "additionalProperties": False, "required": ["inner", "list", "choice"],
            "properties": {
                "inner": {"type": "object", "properties": {}, "required": []},
                "list": {"type": "array", "items": {"type": "object", "additionalProperties": False}},
                "choice": {"anyOf": [{"type": "object", "additionalProperties": False, "required": []}]},
            },
            "$defs": {"node": {"properties": {}, "required": []}},
        }
        issues = validate_strict_schema(schema)
        assert [i.path for i in issues] == [
            "properties.inner",
            "properties.list.items",
            "$defs.node",
        ]
        assert issues[1].reason == "required must be array"

    def test_union_branch_paths(self):
        issues = validate_strict_schema({"oneOf": [{"type": "string"}, {"type": "object", "required": []}]})
        assert issues == ["oneOf[1]: additionalProperties must be false"]

    def test_self_referential_depth_is_bounded(self):
        issues = validate_strict_schema(_nested(200))
        assert issues
        assert all(isinstance(i, SchemaCoercionIssue) for i in issues)

    def test_non_dict_input_is_valid(self):
        assert validate_strict_schema(None) == []
        assert validate_strict_schema("string") == []


class TestCoerceStrictSchema:
    def test_coerced_loose_schema_is_strict(self):
        original = copy.deepcopy(LOOSE)
        coerced = coerce_strict_schema(LOOSE)
        assert coerced["additionalProperties"] is False
        assert coerced["required"] == ["a"]
        assert validate_strict_schema(coerced) == []
        assert LOOSE == original

    def test_strict_in_strict_out(self):
        strict = coerce_strict_schema(_nested(5))
        assert coerce_strict_schema(strict) == strict
        assert validate_strict_schema(strict) == []

    def test_required_keeps_order_and_appends_missing(self):
        schema = {"type": "object", "properties": {"a": {}, "b": {}, "c": {}}, "required": ["c"]}
        assert coerce_strict_schema(schema)["required"] == ["c", "a", "b"]

    def test_nested_branches_coerced(self):
        schema = {
            "type": "object",
            "properties": {"x": {"anyOf": [{"type": "object", "properties": {"y": {"type": "integer"}}}]}},
            "$defs": {"d": {"type": "object"}},
        }
        coerced = coerce_strict_schema(schema)
        branch = coerced["properties"]["x"]["anyOf"][0]
        assert branch["additionalProperties"] is False
        assert branch["required"] == ["y"]
        assert coerced["$defs"]["d"] == {"type": "object", "additionalProperties": False, "required": []}

    def test_scalars_untouched(self):
        assert coerce_strict_schema({"type": "string", "enum": ["a"]}) == {"type": "string", "enum": ["a"]}


class TestValidateToolsForProvider:
    def test_non_strict_providers_always_pass(self):
        tools = [{"type": "function", "function": {"name": "t", "parameters": LOOSE}}]
        assert validate_tools_for_provider("openai_compatible", tools) == (True, [])

    def test_first_issue_per_tool(self):
        tools = [
            {"type": "function", "name": "good", "parameters": coerce_strict_schema(LOOSE)},
            {"type": "function", "name": "bad", "parameters": {"type": "object", "properties": {"a": {}}}},
        ]
        ok, issues = validate_tools_for_provider("openai_responses", tools)
        assert ok is False
        assert issues == ["bad: <root>: additionalProperties must be false"]

    def test_issue_count_capped(self):
        tools = [{"type": "function", "name": f"t{i}", "parameters": LOOSE} for i in range(50)]
        ok, issues = validate_tools_for_provider("openai_responses", tools)
        assert ok is False
        assert len(issues) == MAX_TOOL_ISSUES
