"""Tests for byokstream.services.llm.accumulator: tool-call reassembly."""

import pytest

from byokstream.services.llm.accumulator import ToolCallAccumulator, normalize_tool_call_index
from byokstream.services.llm.base import ToolCallDelta


class TestToolCallAccumulator:
    def test_arguments_concatenate_per_index_when_interleaved(self):
        acc = ToolCallAccumulator()
        acc.add(ToolCallDelta(index=0, id="a", name="first", arguments_chunk='{"x"'))
        acc.add(ToolCallDelta(index=1, id="b", name="second", arguments_chunk='{"y"'))
        acc.add(ToolCallDelta(index=0, arguments_chunk=": 1}"))
        acc.add(ToolCallDelta(index=1, arguments_chunk=": 2}"))

        recs = acc.finalize()
        assert [(r.index, r.name, r.arguments_text) for r in recs] == [
            (0, "first", '{"x": 1}'),
            (1, "second", '{"y": 2}'),
        ]

    def test_last_non_empty_id_and_name_win(self):
        acc = ToolCallAccumulator()
        acc.add(ToolCallDelta(index=0, id="call_1", name="old"))
        acc.add(ToolCallDelta(index=0, id="", name="  "))
        assert acc.get(0).id == "call_1"
        assert acc.get(0).name == "old"
        acc.add(ToolCallDelta(index=0, id="call_2", name="new"))
        assert acc.get(0).id == "call_2"
        assert acc.get(0).name == "new"

    def test_finalize_sorts_by_index_and_drops_nameless(self):
        acc = ToolCallAccumulator()
        acc.add(ToolCallDelta(index=2, name="late"))
        acc.add(ToolCallDelta(index=1, arguments_chunk="{}"))
        acc.add(ToolCallDelta(index=0, name="early"))
        assert len(acc) == 3
        assert [r.name for r in acc.finalize()] == ["early", "late"]

    def test_missing_index_claims_next_slot(self):
        acc = ToolCallAccumulator()
        acc.add(ToolCallDelta(index=None, name="a"))
        acc.add(ToolCallDelta(index=None, name="b"))
        acc.add(ToolCallDelta(index=None, name="c"))
        assert [r.index for r in acc.finalize()] == [0, 1, 2]

    def test_add_after_finalize_fails(self):
        acc = ToolCallAccumulator()
        acc.finalize()
        with pytest.raises(RuntimeError):
            acc.add(ToolCallDelta(index=0, name="x"))

    def test_has_named_calls(self):
        acc = ToolCallAccumulator()
        acc.add(ToolCallDelta(index=0, arguments_chunk="{}"))
        assert acc.has_named_calls() is False
        acc.add(ToolCallDelta(index=0, name="x"))
        assert acc.has_named_calls() is True


@pytest.mark.parametrize("value, expected", [
    (3, 3),
    ("2", 2),
    (-1, 0),
    (True, 0),
    (None, 0),
    ("abc", 0),
])
def test_normalize_tool_call_index(value, expected):
    assert normalize_tool_call_index(value) == expected
