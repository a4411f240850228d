"""Paginated SysML v2 API client service."""

from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sysml_v2_sql.configuration.runtime_settings import Credentials, ServerSettings

from .fetch_models import FetchedElements, ModelReference, Page

_LOGGER = logging.getLogger(__name__)

ELEMENTS_PATH_TEMPLATE = "projects/{project_id}/commits/{commit_id}/elements"
_MAX_BACKOFF_SECONDS = 60.0


class FetchError(Exception):
    """Base error for failed fetches; no partial result is returned."""


class RetriesExhaustedError(FetchError):
    """Raised when a transient failure persists through every retry."""

    def __init__(self, url: str, attempts: int, cause: BaseException | None) -> None:
        self.url = url
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Giving up on {url} after {attempts} attempts: {cause}")


class HttpStatusError(FetchError):
    """Raised for client error responses, which are never retried."""

    def __init__(self, url: str, status: int) -> None:
        self.url = url
        self.status = status
        super().__init__(f"GET {url} returned HTTP {status}.")


class MalformedPaginationError(FetchError):
    """Raised when a page body or its continuation link cannot be followed."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Malformed page at {url}: {reason}")


class FetchTimeoutError(FetchError):
    """Raised when a request or the whole fetch exceeds its time limit."""

    def __init__(self, url: str, seconds: float) -> None:
        self.url = url
        self.seconds = seconds
        super().__init__(f"Fetching {url} timed out after {seconds:g}s.")


class TlsValidationError(FetchError):
    """Raised when the server certificate cannot be verified."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(
            f"TLS certificate of {url} could not be verified;"
            " use --allow-invalid-certs only for trusted servers."
        )


class _TransientFailure(Exception):
    """Network error or server error response worth retrying."""


class PaginatedFetcher:
    """Async client that collects complete paginated listings.

    Pages are requested one after another by following the `Link` header's
    `rel="next"` URL. Transient failures are retried with exponential backoff
    while client errors, malformed pages and timeouts fail immediately.
    """

    def __init__(
        self,
        base_url: str,
        settings: ServerSettings | None = None,
        credentials: Credentials | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = httpx.URL(base_url.rstrip("/") + "/")
        self._settings = settings or ServerSettings()
        auth = None
        if credentials is not None:
            auth = httpx.BasicAuth(credentials.username, credentials.password or "")
        if not self._settings.verify_tls:
            _LOGGER.warning("TLS certificate verification is disabled for %s", self._base_url)
        self._client = httpx.AsyncClient(
            auth=auth,
            verify=self._settings.verify_tls,
            timeout=httpx.Timeout(self._settings.request_timeout_seconds),
            headers={"Accept": "application/json"},
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> PaginatedFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def absolute_url(self, path: str) -> str:
        """Resolve an API path against the base URL.

        Relative paths extend the base path; paths with a leading slash replace it.
        """
        return str(self._base_url.join(path))

    async def fetch_elements(self, reference: ModelReference) -> FetchedElements:
        """Fetch every element of one commit."""
        path = ELEMENTS_PATH_TEMPLATE.format(
            project_id=reference.project_id, commit_id=reference.commit_id
        )
        if self._settings.page_size is not None:
            path += f"?page[size]={self._settings.page_size}"
        fetched = await self.collect(path)
        _LOGGER.info(
            "fetched %d elements in %d pages", len(fetched.records), fetched.page_count
        )
        return fetched

    async def collect(self, path: str) -> FetchedElements:
        """Fetch all pages of a listing within the overall time limit."""
        url = self.absolute_url(path)
        try:
            async with asyncio.timeout(self._settings.overall_timeout_seconds):
                return await self._collect_pages(url)
        except TimeoutError as exc:
            raise FetchTimeoutError(url, self._settings.overall_timeout_seconds) from exc

    async def get_json(self, path: str) -> Any:
        """Fetch a single JSON document."""
        url = self.absolute_url(path)
        response = await self._get(url)
        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(f"GET {url} did not return JSON: {exc}") from exc

    async def _collect_pages(self, first_url: str) -> FetchedElements:
        records: list[Any] = []
        fetched_urls: set[str] = set()
        url: str | None = first_url
        while url is not None:
            if url in fetched_urls:
                raise MalformedPaginationError(url, "next link points to an already fetched page")
            fetched_urls.add(url)
            page = await self._fetch_page(url)
            records.extend(page.records)
            _LOGGER.debug(
                "page %d at %s held %d records", len(fetched_urls), url, len(page.records)
            )
            url = page.next_url
        return FetchedElements(records=tuple(records), page_count=len(fetched_urls))

    async def _fetch_page(self, url: str) -> Page:
        response = await self._get(url)
        try:
            body = response.json()
        except ValueError as exc:
            raise MalformedPaginationError(url, f"body is not JSON ({exc})") from exc
        if not isinstance(body, list):
            raise MalformedPaginationError(url, "body is not a JSON array")
        return Page(url=url, records=tuple(body), next_url=_next_link(url, response))

    async def _get(self, url: str) -> httpx.Response:
        attempts = self._settings.max_retries + 1
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(
                multiplier=self._settings.retry_backoff_seconds, max=_MAX_BACKOFF_SECONDS
            ),
            retry=retry_if_exception_type(_TransientFailure),
            before_sleep=before_sleep_log(_LOGGER, logging.WARNING),
        )
        response: httpx.Response | None = None
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._get_once(url)
        except RetryError as exc:
            cause = exc.last_attempt.exception()
            raise RetriesExhaustedError(url, attempts, cause) from cause
        if response is None:  # pragma: no cover - AsyncRetrying always runs once
            raise FetchError(f"GET {url} was never attempted.")
        return response

    async def _get_once(self, url: str) -> httpx.Response:
        try:
            response = await self._client.get(url)
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(url, self._settings.request_timeout_seconds) from exc
        except httpx.ConnectError as exc:
            if _is_tls_failure(exc):
                raise TlsValidationError(url) from exc
            raise _TransientFailure(f"{url}: {exc}") from exc
        except httpx.TransportError as exc:
            raise _TransientFailure(f"{url}: {exc}") from exc
        if response.status_code >= 500:
            raise _TransientFailure(f"{url}: HTTP {response.status_code}")
        if response.status_code >= 400:
            raise HttpStatusError(url, response.status_code)
        return response


def _next_link(url: str, response: httpx.Response) -> str | None:
    if "link" not in response.headers:
        return None
    links = response.links
    for link in links.values():
        if not link.get("rel"):
            raise MalformedPaginationError(url, "Link header entry without rel")
    next_link = links.get("next")
    if next_link is None:
        return None
    target = next_link.get("url", "").strip()
    if not target:
        raise MalformedPaginationError(url, "next link has no URL")
    resolved = response.url.join(target)
    if resolved.scheme not in ("http", "https"):
        raise MalformedPaginationError(url, f"next link '{target}' is not an HTTP URL")
    return str(resolved)


def _is_tls_failure(exc: BaseException) -> bool:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, ssl.SSLError) or "CERTIFICATE_VERIFY_FAILED" in str(current):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False
