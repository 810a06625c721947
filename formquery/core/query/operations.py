# formquery/core/query/operations.py
"""
OPERATIONS MODULE - What a deferred query can hold, and in which order

Operations:
    Select  -> which columns (name patterns)
    Filter  -> column == value
    Sort    -> one column, asc or desc
    Slice   -> head / tail / window over the current rows

Grammar (checked every time an operation is appended):

    EMPTY    --Select-->              SELECTED
    EMPTY    --Filter|Sort-->         FILTERED
    SELECTED --Filter|Sort-->         FILTERED
    FILTERED --Filter|Sort-->         FILTERED   (one Sort per query)
    EMPTY|SELECTED|FILTERED --Slice--> SLICED
    SLICED   --Slice-->               SLICED

EMPTY and SELECTED count as a FILTERED state with zero filters, so a Slice or
collect() may follow them directly.

Anything else is rejected before the query ever reaches the server.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

from formquery.core.exceptions import OperationOrderError, UnsupportedOperationError
from formquery.core.query.columns import ColumnMatcher
from formquery.core.schemas import Scalar, SortDirection


class QueryState(Enum):
    EMPTY = "empty"
    SELECTED = "selected"
    FILTERED = "filtered"
    SLICED = "sliced"


class SliceKind(Enum):
    HEAD = "head"
    TAIL = "tail"
    WINDOW = "window"


# ============================================================================
# OPERATION VARIANTS
# ============================================================================


@dataclass(frozen=True)
class Select:
    matchers: Tuple[ColumnMatcher, ...]

    def describe(self) -> str:
        return f"select({', '.join(m.pattern for m in self.matchers)})"


@dataclass(frozen=True)
class Filter:
    column: str
    value: Scalar

    def describe(self) -> str:
        return f"filter({self.column} == {self.value!r})"


@dataclass(frozen=True)
class Sort:
    column: str
    direction: SortDirection = SortDirection.ASC

    def describe(self) -> str:
        return f"arrange({self.column}, {self.direction.value})"


@dataclass(frozen=True)
class Slice:
    kind: SliceKind
    count: Optional[int]
    offset: int = 0

    def describe(self) -> str:
        if self.kind == SliceKind.WINDOW:
            return f"adjust_window(offset={self.offset}, limit={self.count})"
        return f"slice_{self.kind.value}({self.count})"


Operation = Union[Select, Filter, Sort, Slice]


# ============================================================================
# PREDICATES - col("Sector") == "Nutrition"
# ============================================================================


@dataclass(frozen=True)
class Predicate:
    column: str
    operator: str
    value: object


class ColumnRef:
    """
    Column reference used to write filter predicates.

    Every comparison builds a Predicate; only "==" can be sent to the server,
    the rest are rejected when handed to Query.filter().
    """

    def __init__(self, name: str):
        self.name = name

    def __eq__(self, value) -> Predicate:  # type: ignore[override]
        return Predicate(self.name, "==", value)

    def __ne__(self, value) -> Predicate:  # type: ignore[override]
        return Predicate(self.name, "!=", value)

    def __lt__(self, value) -> Predicate:
        return Predicate(self.name, "<", value)

    def __le__(self, value) -> Predicate:
        return Predicate(self.name, "<=", value)

    def __gt__(self, value) -> Predicate:
        return Predicate(self.name, ">", value)

    def __ge__(self, value) -> Predicate:
        return Predicate(self.name, ">=", value)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"col({self.name!r})"


def col(name: str) -> ColumnRef:
    return ColumnRef(name)


def to_filter(predicate: Predicate) -> Filter:
    if predicate.operator != "==":
        raise UnsupportedOperationError(
            f"Only equality filters are supported, got "
            f"'{predicate.column} {predicate.operator} {predicate.value!r}'"
        )
    if predicate.value is not None and not isinstance(
        predicate.value, (str, int, float, bool)
    ):
        raise UnsupportedOperationError(
            f"Filter value for '{predicate.column}' must be a scalar, "
            f"got {type(predicate.value).__name__}"
        )
    return Filter(predicate.column, predicate.value)


# ============================================================================
# GRAMMAR
# ============================================================================

TRANSITIONS = {
    (QueryState.EMPTY, Select): QueryState.SELECTED,
    (QueryState.EMPTY, Filter): QueryState.FILTERED,
    (QueryState.EMPTY, Sort): QueryState.FILTERED,
    (QueryState.EMPTY, Slice): QueryState.SLICED,
    (QueryState.SELECTED, Filter): QueryState.FILTERED,
    (QueryState.SELECTED, Sort): QueryState.FILTERED,
    (QueryState.SELECTED, Slice): QueryState.SLICED,
    (QueryState.FILTERED, Filter): QueryState.FILTERED,
    (QueryState.FILTERED, Sort): QueryState.FILTERED,
    (QueryState.FILTERED, Slice): QueryState.SLICED,
    (QueryState.SLICED, Slice): QueryState.SLICED,
}


def advance(
    state: QueryState, operations: Sequence[Operation], operation: Operation
) -> QueryState:
    """
    Validate one append against the grammar and return the next state.

    Ordering is checked first: a Sort after a Slice is an ordering problem
    even when the query already has a Sort.

    Raises:
        OperationOrderError: operation is not allowed in the current state
        UnsupportedOperationError: second Sort
    """
    next_state = TRANSITIONS.get((state, type(operation)))

    if next_state is None:
        previous = operations[-1].describe() if operations else "nothing"
        raise OperationOrderError(
            f"{operation.describe()} cannot follow {previous} "
            f"(query is {state.value})"
        )

    if isinstance(operation, Sort) and any(isinstance(op, Sort) for op in operations):
        raise UnsupportedOperationError(
            "Only a single sort column is supported; "
            "sort the collected Table for multi-column ordering"
        )

    return next_state
