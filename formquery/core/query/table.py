import csv
import io
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence


def check_count(name: str, value: int):
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")


class Table:
    """
    Materialized query result: ordered rows over ordered columns.

    A Table never goes back to the server. Everything below (extra filters,
    multi-column sorts, derived columns) runs in memory and returns a new Table.
    """

    def __init__(
        self,
        columns: Sequence[str],
        rows: Sequence[Dict[str, Any]] = (),
        diagnostics: Optional[Dict[str, Any]] = None,
    ):
        self._columns = list(columns)
        self._rows = [{name: row.get(name) for name in self._columns} for row in rows]
        self.diagnostics = diagnostics or {}

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return (dict(row) for row in self._rows)

    def __getitem__(self, index: int) -> Dict[str, Any]:
        return dict(self._rows[index])

    def __eq__(self, other) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return self._columns == other._columns and self._rows == other._rows

    def __repr__(self) -> str:
        return f"Table({len(self._rows)} rows x {len(self._columns)} columns: {self._columns})"

    def column(self, name: str) -> List[Any]:
        if name not in self._columns:
            raise KeyError(name)
        return [row[name] for row in self._rows]

    def to_records(self) -> List[Dict[str, Any]]:
        return [dict(row) for row in self._rows]

    # =========================
    # Client-side row operations
    # =========================
    def where(self, predicate: Callable[[Dict[str, Any]], bool]) -> "Table":
        return Table(self._columns, [row for row in self._rows if predicate(dict(row))])

    def sort_by(self, *columns: str, descending: bool = False) -> "Table":
        """
        Stable multi-column sort. Missing values go last in either direction.
        """
        for name in columns:
            if name not in self._columns:
                raise KeyError(name)

        rows = list(self._rows)
        # Sort by the least significant column first, relying on stability
        for name in reversed(columns):
            present = [row for row in rows if row[name] is not None]
            missing = [row for row in rows if row[name] is None]
            present.sort(key=lambda row: row[name], reverse=descending)
            rows = present + missing
        return Table(self._columns, rows)

    def mutate(self, name: str, fn: Callable[[Dict[str, Any]], Any]) -> "Table":
        """Add (or replace) a column computed from each row."""
        columns = self._columns if name in self._columns else [*self._columns, name]
        rows = []
        for row in self._rows:
            updated = dict(row)
            updated[name] = fn(dict(row))
            rows.append(updated)
        return Table(columns, rows)

    def head(self, n: int) -> "Table":
        check_count("n", n)
        return Table(self._columns, self._rows[:n])

    def tail(self, n: int) -> "Table":
        check_count("n", n)
        return Table(self._columns, self._rows[-n:] if n else [])

    # =========================
    # CSV
    # =========================
    def to_csv(self) -> str:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=self._columns)
        writer.writeheader()
        writer.writerows(self._rows)
        return buffer.getvalue()

    @classmethod
    def from_csv(cls, text: str) -> "Table":
        """Read a CSV export back. Every value comes back as a string."""
        reader = csv.DictReader(io.StringIO(text))
        rows = [row for row in reader if any(row.values())]
        return cls(reader.fieldnames or [], rows)
