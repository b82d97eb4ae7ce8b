"""Thin requests wrapper shared by the platform bindings."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional

import requests

from difflint.comments.reconciler import CommentError

logger = logging.getLogger(__name__)


class PlatformError(CommentError):
    """Raised when a review platform call fails or times out."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class ApiClient:
    """JSON-over-HTTP client bound to one API base URL.

    Every request carries an explicit timeout. Non-2xx responses and
    transport errors (timeouts included) raise PlatformError.
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 60,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(headers or {})

    def url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        url = self.url(endpoint)
        logger.debug("%s %s params=%s", method, url, params)
        try:
            response = self.session.request(
                method, url, params=params, json=json_data, headers=headers, timeout=self.timeout
            )
        except requests.exceptions.RequestException as exc:
            raise PlatformError(f"{method} {url} failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise PlatformError(
                f"{method} {url} returned {response.status_code}: {response.text[:500]}",
                status=response.status_code,
            )
        return response

    def json(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        response = self.request(method, endpoint, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise PlatformError(f"{method} {self.url(endpoint)} returned invalid JSON: {exc}") from exc

    def get(self, endpoint: str, **kwargs: Any) -> Any:
        return self.json("GET", endpoint, **kwargs)

    def post(self, endpoint: str, json_data: Any = None, **kwargs: Any) -> Any:
        return self.json("POST", endpoint, json_data=json_data, **kwargs)

    def put(self, endpoint: str, json_data: Any = None, **kwargs: Any) -> Any:
        return self.json("PUT", endpoint, json_data=json_data, **kwargs)

    def delete(self, endpoint: str, **kwargs: Any) -> Any:
        return self.json("DELETE", endpoint, **kwargs)

    # ── pagination ────────────────────────────────────────────────────────────

    def paginate_links(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
        """Follow ``Link: <...>; rel="next"`` headers (GitHub)."""
        url: Optional[str] = endpoint
        params = dict(params or {}, per_page=100)
        while url:
            response = self.request("GET", url, params=params)
            yield from response.json() or []
            url = response.links.get("next", {}).get("url")
            params = None

    def paginate_pages(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
        """Follow the ``X-Next-Page`` header (GitLab)."""
        page = "1"
        while page:
            response = self.request("GET", endpoint, params=dict(params or {}, per_page=100, page=page))
            yield from response.json() or []
            page = response.headers.get("X-Next-Page", "")

    def paginate_start(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
        """Follow ``isLastPage`` / ``nextPageStart`` (Bitbucket Server)."""
        start = 0
        while True:
            data = self.get(endpoint, params=dict(params or {}, start=start, limit=100)) or {}
            yield from data.get("values", [])
            if data.get("isLastPage", True):
                return
            next_start = data.get("nextPageStart")
            if next_start is None or next_start == start:
                logger.warning("Bitbucket page at start=%d has no usable nextPageStart, stopping", start)
                return
            start = next_start
