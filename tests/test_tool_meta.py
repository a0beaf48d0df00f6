"""Tests for byokstream.services.tool_meta."""

from byokstream.services.tool_meta import ToolMeta, build_tool_meta_by_name


def test_only_tools_with_mcp_routing_are_mapped():
    meta = build_tool_meta_by_name([
        {"name": "read", "mcp_server_name": " fs ", "mcp_tool_name": "read_file"},
        {"name": "plain"},
        {"name": "half", "mcp_tool_name": "x"},
        "junk",
    ])
    assert dict(meta) == {
        "read": ToolMeta("fs", "read_file"),
        "half": ToolMeta(None, "x"),
    }


def test_first_definition_wins():
    meta = build_tool_meta_by_name([
        {"name": "t", "mcp_server_name": "one"},
        {"name": "t", "mcp_server_name": "two"},
    ])
    assert meta["t"].mcp_server_name == "one"


def test_bounded_size_keeps_earliest_entries():
    tools = [{"name": f"t{i}", "mcp_server_name": "s"} for i in range(10)]
    meta = build_tool_meta_by_name(tools, maxsize=4)
    assert sorted(meta) == ["t0", "t1", "t2", "t3"]
    assert meta.maxsize == 4


def test_duplicate_past_the_limit_does_not_replace_first():
    tools = [{"name": f"t{i}", "mcp_server_name": "s"} for i in range(3)]
    tools.append({"name": "t0", "mcp_server_name": "late"})
    meta = build_tool_meta_by_name(tools, maxsize=3)
    assert meta["t0"].mcp_server_name == "s"


def test_lookups_do_not_reorder():
    meta = build_tool_meta_by_name([
        {"name": "a", "mcp_server_name": "s"},
        {"name": "b", "mcp_server_name": "s"},
    ])
    meta.get("a")
    assert list(meta) == ["a", "b"]
