from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .base import ToolCallDelta


@dataclass
class ToolCallRecord:
    index: int
    id: str = ""
    name: str = ""
    arguments_text: str = ""


def normalize_tool_call_index(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        n = int(value)
    except (TypeError, ValueError):
        return 0
    return n if n >= 0 else 0


class ToolCallAccumulator:
    """Reassembles fragmented tool calls for one streaming response.

    Fragments are keyed by their stream-local index. Arguments are only ever
    appended; id and name keep the last non-empty value seen.
    """

    def __init__(self) -> None:
        self._records: Dict[int, ToolCallRecord] = {}
        self._finalized = False

    def __len__(self) -> int:
        return len(self._records)

    def add(self, delta: ToolCallDelta) -> ToolCallRecord:
        if self._finalized:
            raise RuntimeError("tool calls already finalized")
        if delta.index is None:
            index = max(self._records) + 1 if self._records else 0
        else:
            index = normalize_tool_call_index(delta.index)
        rec = self._records.get(index)
        if rec is None:
            rec = self._records[index] = ToolCallRecord(index=index)

        if isinstance(delta.id, str) and delta.id.strip():
            rec.id = delta.id.strip()
        if isinstance(delta.name, str) and delta.name.strip():
            rec.name = delta.name.strip()
        if isinstance(delta.arguments_chunk, str) and delta.arguments_chunk:
            rec.arguments_text += delta.arguments_chunk
        return rec

    def has_named_calls(self) -> bool:
        return any(rec.name for rec in self._records.values())

    def finalize(self) -> List[ToolCallRecord]:
        """Named records ascending by index. Nameless calls cannot be dispatched."""
        self._finalized = True
        return [self._records[i] for i in sorted(self._records) if self._records[i].name]

    def get(self, index: int) -> Optional[ToolCallRecord]:
        return self._records.get(index)
