# formquery/core/query/columns.py
"""
COLUMNS MODULE - Pick columns by pattern, then shape them with a ColumnStyle

Data Flow:
    select patterns → resolve_columns(column metadata) → apply_style(rows) → Table columns/rows

Pattern strings:
    "Sector Name"   exact
    "Sector*"       starts with
    "* Name"        ends with
    "*ect*"         contains
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple, Union

from formquery.core.exceptions import ColumnNotFoundError, DuplicateColumnError
from formquery.core.schemas import (
    ColumnInfo,
    ColumnNames,
    ColumnStyle,
    MatchKind,
    SelectMatcher,
)

RECORD_ID_COLUMN = "_id"
LAST_EDIT_TIME_COLUMN = "_lastEditTime"


# ============================================================================
# STEP 1: MATCH COLUMN NAMES
# ============================================================================


@dataclass(frozen=True)
class ColumnMatcher:
    """
    Matches columns by label or code. Exact matchers also accept the column id.
    """

    kind: MatchKind
    value: str

    @property
    def pattern(self) -> str:
        if self.kind == MatchKind.PREFIX:
            return f"{self.value}*"
        if self.kind == MatchKind.SUFFIX:
            return f"*{self.value}"
        if self.kind == MatchKind.CONTAINS:
            return f"*{self.value}*"
        return self.value

    def _test(self, name: str) -> bool:
        if self.kind == MatchKind.EXACT:
            return name == self.value
        if self.kind == MatchKind.PREFIX:
            return name.startswith(self.value)
        if self.kind == MatchKind.SUFFIX:
            return name.endswith(self.value)
        return self.value in name

    def matches(self, column: ColumnInfo) -> bool:
        names = [column.label]
        if column.code:
            names.append(column.code)
        if self.kind == MatchKind.EXACT:
            names.append(column.id)
        return any(self._test(name) for name in names)

    def to_wire(self) -> SelectMatcher:
        return SelectMatcher(kind=self.kind, value=self.value)


def exact(name: str) -> ColumnMatcher:
    return ColumnMatcher(MatchKind.EXACT, name)


def starts_with(prefix: str) -> ColumnMatcher:
    return ColumnMatcher(MatchKind.PREFIX, prefix)


def ends_with(suffix: str) -> ColumnMatcher:
    return ColumnMatcher(MatchKind.SUFFIX, suffix)


def contains(text: str) -> ColumnMatcher:
    return ColumnMatcher(MatchKind.CONTAINS, text)


def parse_pattern(pattern: Union[str, ColumnMatcher]) -> ColumnMatcher:
    """
    Turn a pattern string into a matcher.

    Examples:
        "Partner"   → exact("Partner")
        "* Name"    → ends_with(" Name")
        "Sector*"   → starts_with("Sector")
        "*Benef*"   → contains("Benef")
    """
    if isinstance(pattern, ColumnMatcher):
        return pattern
    if not isinstance(pattern, str) or not pattern.strip("*"):
        raise ValueError(f"Invalid column pattern: {pattern!r}")

    leading = pattern.startswith("*")
    trailing = pattern.endswith("*")
    core = pattern.strip("*")

    if "*" in core:
        raise ValueError(f"Wildcards are only allowed at either end: {pattern!r}")

    if leading and trailing:
        return contains(core)
    if leading:
        return ends_with(core)
    if trailing:
        return starts_with(core)
    return exact(core)


def resolve_columns(
    matchers: Sequence[ColumnMatcher], columns: Sequence[ColumnInfo]
) -> List[ColumnInfo]:
    """
    Resolve matchers against column metadata.

    Order follows the matchers, then the form order within one matcher.
    A column matched twice is kept at its first position. An exact matcher
    with no match is an error; wildcards may match nothing.
    """
    selected: List[ColumnInfo] = []
    seen = set()

    for matcher in matchers:
        hits = [column for column in columns if matcher.matches(column)]

        if not hits and matcher.kind == MatchKind.EXACT:
            raise ColumnNotFoundError(matcher.value, [c.label for c in columns])

        for column in hits:
            if column.id not in seen:
                seen.add(column.id)
                selected.append(column)

    return selected


# ============================================================================
# STEP 2: APPLY COLUMN STYLE
# ============================================================================


def column_name(column: ColumnInfo, style: ColumnStyle) -> str:
    if style.column_names == ColumnNames.CODE:
        return column.code or column.id
    if style.column_names == ColumnNames.ID:
        return column.id
    return column.label


def reference_names(name: str, style: ColumnStyle) -> List[str]:
    names = []
    if style.reference_codes:
        names.append(f"{name} Code")
    if style.reference_ids:
        names.append(f"{name} ID")
    return names


def layout_columns(
    columns: Sequence[ColumnInfo], style: ColumnStyle
) -> List[Tuple[ColumnInfo, str]]:
    """
    Give every selected column a Table name that no other column uses.

    Columns are named in order. When a name (or one of its reference
    metadata names) is already taken, the later column falls back to
    "<name> (<code or id>)", then to "<name> (<id>)".

    Raises:
        DuplicateColumnError: none of the fallbacks is free
    """
    taken = set()
    if style.record_id:
        taken.add(RECORD_ID_COLUMN)
    if style.last_edited_time:
        taken.add(LAST_EDIT_TIME_COLUMN)

    layout = []
    for column in columns:
        base = column_name(column, style)
        candidates = [base, f"{base} ({column.code or column.id})", f"{base} ({column.id})"]

        for name in candidates:
            group = [name] + (reference_names(name, style) if column.is_reference else [])
            if len(set(group)) == len(group) and not taken.intersection(group):
                taken.update(group)
                layout.append((column, name))
                break
        else:
            raise DuplicateColumnError(base)

    return layout


def output_columns(columns: Sequence[ColumnInfo], style: ColumnStyle) -> List[str]:
    """Names of the Table columns, in order, for the given style."""
    return _table_names(layout_columns(columns, style), style)


def _table_names(layout: List[Tuple[ColumnInfo, str]], style: ColumnStyle) -> List[str]:
    names = []
    if style.record_id:
        names.append(RECORD_ID_COLUMN)
    if style.last_edited_time:
        names.append(LAST_EDIT_TIME_COLUMN)

    for column, name in layout:
        names.append(name)
        if column.is_reference:
            names.extend(reference_names(name, style))

    return names


def to_scalar(value: Any) -> Any:
    # Multi-select answers arrive as lists
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return value


def apply_style(
    columns: Sequence[ColumnInfo], rows: Sequence[Dict[str, Any]], style: ColumnStyle
) -> Tuple[List[str], List[Dict[str, Any]]]:
    """
    Convert server rows (keyed by column id) into Table rows (keyed by name).

    Args:
        columns: Selected columns, already in output order
        rows: Raw rows from the remote service
        style: Which metadata columns to add and how to name columns

    Returns:
        (column names, rows)

    Example:
        column Partner (reference), style reference_codes=True
        {"@id": "r1", "p": {"id": "p1", "code": "UNI", "label": "UNICEF"}}
        → {"Partner": "UNICEF", "Partner Code": "UNI"}
    """
    layout = layout_columns(columns, style)
    names = _table_names(layout, style)

    table_rows = []
    for raw in rows:
        row: Dict[str, Any] = {}
        if style.record_id:
            row[RECORD_ID_COLUMN] = raw.get("@id")
        if style.last_edited_time:
            row[LAST_EDIT_TIME_COLUMN] = raw.get("@lastEditTime")

        for column, name in layout:
            value = raw.get(column.id)

            if column.is_reference:
                reference = value if isinstance(value, dict) else {}
                row[name] = reference.get("label")
                if style.reference_codes:
                    row[f"{name} Code"] = reference.get("code")
                if style.reference_ids:
                    row[f"{name} ID"] = reference.get("id")
            else:
                row[name] = to_scalar(value)

        table_rows.append(row)

    return names, table_rows
