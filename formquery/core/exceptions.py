from typing import Any, List, Optional


class FormQueryError(Exception):
    """Base class for every error raised by formquery."""


# =========================
# Local (no network round trip)
# =========================
class QueryError(FormQueryError):
    """A query was rejected on the client before anything was sent."""


class InvalidSourceError(QueryError):
    pass


class OperationOrderError(QueryError):
    pass


class UnsupportedOperationError(QueryError):
    pass


class ColumnNotFoundError(QueryError):
    def __init__(self, name: str, available: List[str]):
        self.name = name
        self.available = available
        super().__init__(
            f"Column '{name}' does not exist. Available columns: {', '.join(available)}"
        )


class DuplicateColumnError(QueryError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Column name '{name}' cannot be made unique")


# =========================
# Remote
# =========================
class RemoteError(FormQueryError):
    """
    The remote service failed or refused a request.

    Attributes:
        status_code: HTTP status, or None when the request never got a response
        payload: Diagnostic body returned by the server (parsed JSON or raw text)
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
    ):
        self.status_code = status_code
        self.payload = payload
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            message = f"{message} (HTTP {self.status_code})"
        if self.payload:
            message = f"{message}: {self.payload}"
        return message


class RemoteQueryError(RemoteError):
    pass


class RemoteWriteError(RemoteError):
    pass
