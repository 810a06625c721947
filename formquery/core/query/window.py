# formquery/core/query/window.py
"""
WINDOW MODULE - Compose slice operations into a row window

The server only understands one offset/limit window. Heads and windows that
come before any tail fold into that window without knowing the total row
count; a tail needs the end of the result, so it and everything after it
runs on the rows that come back.

Examples:
    slice_head(5)                     → server window(0, 5)
    adjust_window(2, 10).slice_head(3) → server window(2, 3)
    slice_head(5).slice_tail(2)       → server window(0, 5), then tail(2) locally
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from formquery.core.query.operations import Slice, SliceKind
from formquery.core.schemas import WindowSpec


@dataclass(frozen=True)
class Window:
    offset: int = 0
    limit: Optional[int] = None

    def narrow(self, step: Slice) -> "Window":
        """Apply a head or window step to this window."""
        if step.kind == SliceKind.HEAD:
            return Window(self.offset, _min(self.limit, step.count))

        if step.kind == SliceKind.WINDOW:
            remaining = None if self.limit is None else max(0, self.limit - step.offset)
            return Window(self.offset + step.offset, _min(remaining, step.count))

        raise ValueError("A tail cannot be folded into a server window")

    def to_wire(self) -> WindowSpec:
        return WindowSpec(offset=self.offset, limit=self.limit)


def _min(a: Optional[int], b: Optional[int]) -> Optional[int]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def plan_window(slices: Sequence[Slice]) -> Tuple[Window, List[Slice]]:
    """
    Split slice steps into a server window and the steps left for the client.

    Returns:
        (window to send, slices to apply locally in order)
    """
    window = Window()
    for index, step in enumerate(slices):
        if step.kind == SliceKind.TAIL:
            return window, list(slices[index:])
        window = window.narrow(step)
    return window, []


def apply_slice(rows: List[Dict[str, Any]], step: Slice) -> List[Dict[str, Any]]:
    if step.kind == SliceKind.HEAD:
        return rows[: step.count]
    if step.kind == SliceKind.TAIL:
        # rows[-0:] would return everything
        return rows[-step.count :] if step.count else []
    if step.count is None:
        return rows[step.offset :]
    return rows[step.offset : step.offset + step.count]


def apply_slices(
    rows: List[Dict[str, Any]], slices: Sequence[Slice]
) -> List[Dict[str, Any]]:
    for step in slices:
        rows = apply_slice(rows, step)
    return rows
