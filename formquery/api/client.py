# formquery/api/client.py
"""
REMOTE DATA SERVICE - Run queries against the platform over HTTP

Endpoints:
    POST /resources/query/rows            → QueryResponse
    GET  /resources/form/{form_id}/tree   → FormTree

Every failure (network, timeout, 4xx/5xx, unreadable body) is turned into a
RemoteQueryError that keeps the server's diagnostic payload. Nothing is retried.
"""

import logging
from typing import Any, Optional, Type

import httpx
from pydantic import ValidationError

from formquery.core.config import settings
from formquery.core.exceptions import RemoteError, RemoteQueryError
from formquery.core.query.builder import Query, Source, query
from formquery.core.schemas import ColumnStyle, FormTree, QueryRequest, QueryResponse

logger = logging.getLogger(__name__)


def error_payload(response: httpx.Response) -> Any:
    """Best-effort diagnostic body: JSON if the server sent JSON, text otherwise."""
    try:
        data = response.json()
    except ValueError:
        return response.text or None

    # FastAPI-style {"detail": ...} envelopes
    if isinstance(data, dict) and set(data) == {"detail"}:
        return data["detail"]
    return data


class RemoteClient:
    """Shared HTTP plumbing: base URL, bearer token, timeout, error mapping."""

    def __init__(
        self,
        server_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_token = settings.API_TOKEN if api_token is None else api_token
        self._owns_client = http_client is None

        if http_client is None:
            http_client = httpx.Client(
                base_url=settings.SERVER_URL if server_url is None else server_url,
                timeout=settings.REQUEST_TIMEOUT if timeout is None else timeout,
            )
        self.http = http_client

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        error_class: Type[RemoteError] = RemoteQueryError,
        **kwargs,
    ) -> Any:
        logger.debug(f"{method} {path}")

        try:
            response = self.http.request(method, path, headers=self._headers(), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as error:
            status_code = error.response.status_code
            payload = error_payload(error.response)
            logger.error(f"{method} {path} failed with HTTP {status_code}: {payload}")
            raise error_class(
                f"{method} {path} was rejected", status_code=status_code, payload=payload
            ) from error
        except httpx.HTTPError as error:
            logger.error(f"{method} {path} failed: {error}")
            raise error_class(
                f"{method} {path} could not reach the server", payload=str(error)
            ) from error

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as error:
            raise error_class(
                f"{method} {path} returned a body that is not JSON",
                status_code=response.status_code,
                payload=response.text,
            ) from error

    def close(self):
        if self._owns_client:
            self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class HttpDataService(RemoteClient):
    """Remote data service backed by the platform's HTTP API."""

    def fetch_rows(self, request: QueryRequest) -> QueryResponse:
        data = self._request(
            "POST", "/resources/query/rows", json=request.model_dump(mode="json")
        )
        try:
            return QueryResponse.model_validate(data)
        except ValidationError as error:
            raise RemoteQueryError(
                "Query response does not have the expected shape",
                payload=error.errors(include_url=False),
            ) from error

    def get_form_tree(self, form_id: str) -> FormTree:
        data = self._request("GET", f"/resources/form/{form_id}/tree")
        try:
            return FormTree.model_validate(data)
        except ValidationError as error:
            raise RemoteQueryError(
                f"Form tree for {form_id} does not have the expected shape",
                payload=error.errors(include_url=False),
            ) from error

    def get_records(self, source: Source, style: Optional[ColumnStyle] = None) -> Query:
        """Start a deferred query on a form; nothing is sent until collect()."""
        return query(source, self, style)
