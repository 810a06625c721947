# formquery/core/query/builder.py
"""
QUERY BUILDER - Deferred table queries against the remote data service

Nothing is sent until collect(). Each call returns a new Query, so a Query
can be shared and extended in different directions safely.

Usage:
    nutrition = (
        query("cq9xvuplbz4ks2", service)
        .select("Sector Name", "Partner", "* Beneficiaries")
        .filter(col("Sector Name") == "Nutrition")
        .arrange("Partner")
        .slice_head(20)
        .collect()
    )

Data Flow:
    operations → to_request() → service.fetch_rows() → resolve columns → apply style
               → local slices → Table
"""

import re
from dataclasses import dataclass, field, replace
from typing import Optional, Protocol, Tuple, Union

from formquery.core.exceptions import InvalidSourceError, RemoteQueryError
from formquery.core.logs import QueryLogger
from formquery.core.query.columns import (
    ColumnMatcher,
    apply_style,
    parse_pattern,
    resolve_columns,
)
from formquery.core.query.operations import (
    Filter,
    Operation,
    Predicate,
    QueryState,
    Select,
    Slice,
    SliceKind,
    Sort,
    advance,
    to_filter,
)
from formquery.core.query.table import Table, check_count
from formquery.core.query.window import apply_slices, plan_window
from formquery.core.schemas import (
    ColumnStyle,
    FilterPredicate,
    FormTree,
    QueryRequest,
    QueryResponse,
    SortDirection,
    SortSpec,
)

FORM_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:-]+$")

Source = Union[str, FormTree]

_UNSET = object()


class RemoteDataService(Protocol):
    """The only thing a Query needs from the outside world."""

    def fetch_rows(self, request: QueryRequest) -> QueryResponse: ...


def resolve_source(source: Source) -> str:
    """Return the root form id of a source, or raise InvalidSourceError."""
    if isinstance(source, FormTree):
        if source.root is None:
            raise InvalidSourceError(
                f"Form tree does not contain its root form '{source.root_form_id}'"
            )
        return source.root_form_id

    if not isinstance(source, str):
        raise InvalidSourceError(
            f"Source must be a form id or a FormTree, got {type(source).__name__}"
        )
    if not source.strip():
        raise InvalidSourceError("Source form id is empty")
    if not FORM_ID_PATTERN.match(source):
        raise InvalidSourceError(f"'{source}' is not a valid form id")
    return source


@dataclass(frozen=True)
class Query:
    form_id: str
    service: RemoteDataService
    style: ColumnStyle = field(default_factory=ColumnStyle.minimal)
    operations: Tuple[Operation, ...] = ()
    state: QueryState = QueryState.EMPTY

    def _append(self, operation: Operation) -> "Query":
        state = advance(self.state, self.operations, operation)
        return replace(self, operations=(*self.operations, operation), state=state)

    # =========================
    # Builder operations
    # =========================
    def select(self, *patterns: Union[str, ColumnMatcher]) -> "Query":
        if not patterns:
            raise ValueError("select() needs at least one column pattern")
        return self._append(Select(tuple(parse_pattern(p) for p in patterns)))

    def filter(self, column: Union[str, Predicate], value=_UNSET) -> "Query":
        """
        Keep rows where column equals value. Several filters are ANDed.

        Accepts either filter("Sector Name", "Nutrition") or
        filter(col("Sector Name") == "Nutrition").
        """
        if isinstance(column, Predicate):
            if value is not _UNSET:
                raise TypeError("Pass either a predicate or a column and a value")
            predicate = column
        else:
            if value is _UNSET:
                raise TypeError(f"filter() on '{column}' needs a value")
            predicate = Predicate(column, "==", value)
        return self._append(to_filter(predicate))

    def arrange(
        self, column: str, direction: Union[str, SortDirection] = SortDirection.ASC
    ) -> "Query":
        return self._append(Sort(column, SortDirection(direction)))

    def slice_head(self, n: int) -> "Query":
        check_count("n", n)
        return self._append(Slice(SliceKind.HEAD, n))

    def slice_tail(self, n: int) -> "Query":
        check_count("n", n)
        return self._append(Slice(SliceKind.TAIL, n))

    def adjust_window(self, offset: int = 0, limit: Optional[int] = None) -> "Query":
        check_count("offset", offset)
        if limit is not None:
            check_count("limit", limit)
        return self._append(Slice(SliceKind.WINDOW, limit, offset))

    def with_style(self, style: ColumnStyle) -> "Query":
        """Change the column style. Allowed at any point, it only shapes the result."""
        return replace(self, style=style)

    # =========================
    # Materialization
    # =========================
    def _select(self) -> Optional[Select]:
        return next((op for op in self.operations if isinstance(op, Select)), None)

    def to_request(self) -> QueryRequest:
        """Serialize the pending operations into one request."""
        select = self._select()
        sort = next((op for op in self.operations if isinstance(op, Sort)), None)
        window, _ = plan_window([op for op in self.operations if isinstance(op, Slice)])

        return QueryRequest(
            form_id=self.form_id,
            select=[m.to_wire() for m in select.matchers] if select else None,
            filters=[
                FilterPredicate(column=op.column, value=op.value)
                for op in self.operations
                if isinstance(op, Filter)
            ],
            sort=SortSpec(column=sort.column, direction=sort.direction) if sort else None,
            window=window.to_wire(),
        )

    def collect(self) -> Table:
        """
        Run the query and return the rows as a Table.

        Every call sends a new request; results are never cached on the Query.

        Raises:
            RemoteQueryError: transport, authorization or server failure
            ColumnNotFoundError: an exact select name matches no column
            DuplicateColumnError: column names cannot be made unique
        """
        query_logger = QueryLogger(
            self.form_id, [op.describe() for op in self.operations]
        )
        request = self.to_request()
        _, local_slices = plan_window(
            [op for op in self.operations if isinstance(op, Slice)]
        )

        query_logger.request_sent(request.window.offset, request.window.limit)

        try:
            response = self.service.fetch_rows(request)
        except RemoteQueryError as error:
            query_logger.log("request", f"Query failed: {error}", "error")
            raise

        query_logger.rows_arrived(len(response.rows), len(response.columns))

        select = self._select()
        columns = (
            resolve_columns(select.matchers, response.columns)
            if select
            else response.columns
        )
        names, rows = apply_style(columns, response.rows, self.style)

        if local_slices:
            rows = apply_slices(rows, local_slices)
            query_logger.log(
                "window", f"Applied {len(local_slices)} slice steps, {len(rows)} rows left"
            )

        query_logger.finished(len(rows))
        return Table(names, rows, diagnostics=query_logger.get_summary())


def query(
    source: Source, service: RemoteDataService, style: Optional[ColumnStyle] = None
) -> Query:
    """
    Start a deferred query on a form.

    Args:
        source: Form id, or a FormTree fetched earlier
        service: Remote data service that will run the query on collect()
        style: Column style for the resulting Table (labels only by default)
    """
    return Query(
        form_id=resolve_source(source),
        service=service,
        style=style or ColumnStyle.minimal(),
    )
