"""HTTP client shared by the GitHub and TestGrid report sources.

Usage:
    client = ApiClient("https://api.github.com", token="ghp_xxx")
    data   = client.get("/projects/2093513/columns")
    for page in client.iter_pages("/repos/kubernetes/kubernetes/issues", params):
        ...
"""

import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterator

import requests

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class CIReportError(Exception):
    """Base exception for all report fetching errors."""


class TransportError(CIReportError):
    """Raised on connection failure, timeout or an unexpected HTTP status."""


class AuthenticationError(TransportError):
    """Raised on HTTP 401/403 — invalid, expired or under-scoped token."""


class NotFoundError(TransportError):
    """Raised on HTTP 404 — repository, project, column or dashboard not found."""


class DecodeError(CIReportError):
    """Raised when a response body does not have the expected document shape."""


class ResolutionError(CIReportError):
    """Raised when a named board column cannot be resolved to an id."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ApiClient:
    """Thin wrapper around a JSON REST API.

    All requests issued through one client share a concurrency gate of
    ``max_concurrent_requests`` slots, so fan-out from many worker threads
    never exceeds that many in-flight requests against the upstream API.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: int = 30,
        retries: int = 3,
        backoff: float = 0.5,
        max_concurrent_requests: int = 8,
        accept: str = "application/json",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._retries = retries
        self._backoff = backoff
        self._gate = threading.BoundedSemaphore(max_concurrent_requests)
        self._session = requests.Session()
        self._session.headers["Accept"] = accept
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Perform a single GET request and return the parsed JSON response.

        *endpoint* is either a path below ``base_url`` or an absolute URL
        (GitHub card ``content_url`` values are absolute).

        Raises:
            AuthenticationError: HTTP 401 / 403
            NotFoundError:       HTTP 404
            TransportError:      Timeout, connection failure or any other non-2xx
            DecodeError:         Body is not valid JSON
        """
        return self._request(self._url(endpoint), params or {})

    def iter_pages(
        self,
        endpoint: str,
        params: dict[str, Any],
        page_size: int = DEFAULT_PAGE_SIZE,
        prefetch: int = 1,
    ) -> Iterator[list]:
        """Yield every raw page of a ``page``/``per_page`` paginated listing.

        The request for the next page is already in flight while the caller
        processes the page just yielded. Iteration stops at the first page the
        API returns empty, so N items with page size P cost ``ceil(N/P) + 1``
        requests. Callers must not use filtered results to decide whether
        more data exists.

        Up to *prefetch* page requests are kept in flight. With
        ``prefetch > 1`` requests already issued past the empty page are
        awaited and discarded.

        Errors on any page are raised to the caller; no page is skipped.
        """
        if prefetch < 1:
            raise ValueError("prefetch must be at least 1")

        url = self._url(endpoint)

        def fetch(page: int) -> list:
            data = self._request(url, {**params, "per_page": page_size, "page": page})
            if not isinstance(data, list):
                raise DecodeError(f"Expected a JSON list from {url} (page {page})")
            logger.debug("Fetched page %d of %s (%d items)", page, url, len(data))
            return data

        executor = ThreadPoolExecutor(max_workers=prefetch, thread_name_prefix="page")
        pending = deque()
        next_page = 1
        try:
            for _ in range(prefetch):
                pending.append(executor.submit(fetch, next_page))
                next_page += 1

            while pending:
                items = pending.popleft().result()
                if not items:
                    break
                pending.append(executor.submit(fetch, next_page))
                next_page += 1
                yield items
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}{endpoint}"

    def _request(self, url: str, params: dict[str, Any]) -> Any:
        attempt = 0
        while True:
            try:
                response = self._send(url, params)
            except TransportError as exc:
                if attempt >= self._retries:
                    raise
                self._sleep_before_retry(attempt, url, str(exc))
                attempt += 1
                continue

            if response.status_code in RETRY_STATUS_CODES and attempt < self._retries:
                self._sleep_before_retry(attempt, url, f"HTTP {response.status_code}")
                attempt += 1
                continue
            break

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Access denied ({response.status_code}) for {url} — check that your token is valid."
            )
        if response.status_code == 404:
            raise NotFoundError(f"Resource not found: {url}")
        if not response.ok:
            raise TransportError(
                f"Unexpected response {response.status_code} from {url}: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(f"Response from {url} is not valid JSON") from exc

    def _send(self, url: str, params: dict[str, Any]) -> requests.Response:
        with self._gate:
            try:
                return self._session.get(url, params=params, timeout=self._timeout)
            except requests.exceptions.Timeout as exc:
                raise TransportError(
                    f"Request timed out after {self._timeout}s while contacting '{url}'"
                ) from exc
            except requests.exceptions.ConnectionError as exc:
                raise TransportError(f"Unable to reach '{url}'") from exc

    def _sleep_before_retry(self, attempt: int, url: str, reason: str) -> None:
        delay = self._backoff * (2 ** attempt)
        logger.warning(
            "Request to %s failed (%s), retry %d/%d in %.1fs",
            url, reason, attempt + 1, self._retries, delay,
        )
        time.sleep(delay)
