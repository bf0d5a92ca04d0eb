from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, Set

import httpx

from .audit import JsonAuditLogger
from .errors import GraphQueryError
from .models import Session

logger = logging.getLogger(__name__)


class GraphClient:
    """Session-scoped Microsoft Graph client with logging.

    Each request is attempted once. Throttling (429/503/504) is reported and
    raised like any other failure; the caller decides what a failure means.
    """

    def __init__(
        self,
        session: Session,
        audit_logger: JsonAuditLogger,
        base_url: str = "https://graph.microsoft.com",
        api_version: str = "v1.0",
        timeout: float = 60.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.session = session
        self.audit = audit_logger
        self.base_url = f"{base_url.rstrip('/')}/{api_version}"
        self._owns_client = http_client is None
        self.http = http_client or httpx.Client(timeout=timeout)

    def __enter__(self) -> "GraphClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.http.close()

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self.session.released:
            raise GraphQueryError(f"Session for {self.session.tenant} has been released")
        headers = kwargs.pop("headers", {})
        headers.update(self.session.authorization_header)

        try:
            response = self.http.request(method, url, headers=headers, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self.audit.error(
                "graph_request_failed",
                tenant_id=self.session.tenant,
                url=url,
                error=str(exc),
            )
            raise GraphQueryError(f"Graph request to {url} failed: {exc}") from exc

        if response.status_code in (429, 503, 504):
            self.audit.warning(
                "graph_throttled",
                tenant_id=self.session.tenant,
                status=response.status_code,
                retry_after=response.headers.get("Retry-After"),
            )
            raise GraphQueryError(
                f"Graph throttled the request with status {response.status_code}",
                status_code=response.status_code,
            )

        if response.status_code >= 400:
            self.audit.error(
                "graph_request_failed",
                tenant_id=self.session.tenant,
                status=response.status_code,
                url=url,
                body=response.text,
            )
            raise GraphQueryError(
                f"Graph request failed with status {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )

        self.audit.debug(
            "graph_request_succeeded",
            tenant_id=self.session.tenant,
            status=response.status_code,
            url=url,
        )
        return response

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", f"{self.base_url}{path}", **kwargs)

    def iter_pages(self, path: str, params: Optional[Dict[str, str]] = None) -> Iterator[List[Dict[str, Any]]]:
        """Yield the ``value`` array of every page, following ``@odata.nextLink``."""
        url: Optional[str] = f"{self.base_url}{path}"
        page_params = params
        page = 0
        requested: Set[str] = set()
        while url:
            if url in requested:
                raise GraphQueryError(f"Graph returned a repeated nextLink: {url}")
            requested.add(url)
            response = self.request("GET", url, params=page_params)
            try:
                data = response.json()
            except ValueError as exc:
                raise GraphQueryError(f"Graph returned a non-JSON response for {url}") from exc
            if not isinstance(data, dict):
                raise GraphQueryError(f"Graph returned an unexpected payload for {url}")
            value = data.get("value", [])
            if not isinstance(value, list):
                raise GraphQueryError(f"Graph payload for {url} has no value array")
            page += 1
            logger.debug("Fetched page %d with %d items from %s", page, len(value), url)
            yield value
            # The next link already carries the encoded query options.
            next_link = data.get("@odata.nextLink")
            if next_link is not None and not isinstance(next_link, str):
                raise GraphQueryError(f"Graph returned a malformed nextLink for {url}")
            url = next_link
            page_params = None


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return f"{error.get('code')}: {error['message']}"
    return response.text
