"""Shared HTTP machinery for connectors."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, ClassVar, TypeVar

import httpx

from lifecycle_api.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ProviderAPIError,
    TransientError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_MAX_PAGES = 10
RATE_LIMIT_MAX_RETRIES = 3
RATE_LIMIT_RETRY_DELAY = 1.0

USER_AGENT = "AccessLifecycleService/1.0"


class SharedHTTPClient:
    """Process-wide ``httpx.AsyncClient`` reused by all connectors."""

    _http_client: ClassVar[httpx.AsyncClient | None] = None

    @classmethod
    def get(cls) -> httpx.AsyncClient:
        """Get or create the shared client with connection pooling."""
        if cls._http_client is None or cls._http_client.is_closed:
            timeout, connect = DEFAULT_TIMEOUT, DEFAULT_CONNECT_TIMEOUT
            try:
                from lifecycle_api.config import get_settings

                settings = get_settings()
                timeout = settings.connector_timeout_seconds
                connect = settings.connector_connect_timeout_seconds
            except ValueError:
                logger.debug("Settings unavailable, using default connector timeouts")
            cls._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(timeout, connect=connect),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                headers={"User-Agent": USER_AGENT},
            )
        return cls._http_client

    @classmethod
    async def close(cls) -> None:
        """Close the shared client."""
        if cls._http_client and not cls._http_client.is_closed:
            await cls._http_client.aclose()
            cls._http_client = None


def response_error_message(provider: str, response: httpx.Response) -> str:
    """Build an error message from a failed provider response."""
    text = ""
    try:
        text = response.text
    except httpx.ResponseNotRead:
        pass
    return f"{provider} API error ({response.status_code}): {text or response.reason_phrase}"


def raise_for_provider_status(
    provider: str,
    response: httpx.Response,
    expected: Sequence[int] = (200,),
) -> None:
    """Map an unexpected response status onto the connector error taxonomy.

    Raises:
        TransientError: On 429 and 5xx responses
        AuthenticationError: On 401/403 responses
        ProviderAPIError: On any other unexpected status
    """
    if response.status_code in expected:
        return
    message = response_error_message(provider, response)
    if response.status_code == 429 or response.status_code >= 500:
        raise TransientError(message)
    if response.status_code in (401, 403):
        raise AuthenticationError(message)
    raise ProviderAPIError(message, status_code=response.status_code)


def parse_json(response: httpx.Response) -> Any:
    """Decode a JSON body, treating empty and 204 responses as ``{}``."""
    if response.status_code == 204 or not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return {}


def require_field(provider: str, data: Any, key: str) -> Any:
    """Read a required field out of a decoded response body.

    Raises:
        ProviderAPIError: If the body is not an object or the field is empty
    """
    value = data.get(key) if isinstance(data, dict) else None
    if value in (None, ""):
        raise ProviderAPIError(f"{provider} response is missing \"{key}\"")
    return value


async def send_with_rate_limit(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, waiting out 429 responses per ``Retry-After``.

    Network errors are raised as ``TransientError``.
    """
    response: httpx.Response | None = None
    for attempt in range(RATE_LIMIT_MAX_RETRIES):
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientError(f"Request timed out: {type(e).__name__}") from e
        except httpx.HTTPError as e:
            raise TransientError(f"Request failed: {type(e).__name__}") from e

        if response.status_code != 429 or attempt == RATE_LIMIT_MAX_RETRIES - 1:
            return response

        try:
            retry_after = float(response.headers.get("Retry-After", RATE_LIMIT_RETRY_DELAY))
        except ValueError:
            retry_after = RATE_LIMIT_RETRY_DELAY * (2**attempt)
        logger.warning("Rate limited, retrying in %.1fs", retry_after)
        await asyncio.sleep(retry_after)

    assert response is not None
    return response


class AuthFallbackClient:
    """HTTP client that tries several Authorization headers in order.

    Used where a configured token may be one of several token types. For
    every call each candidate is tried in order: a 401/403 moves on to the
    next candidate, any other unexpected status fails immediately, and
    running out of candidates raises ``AuthenticationError``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        auth_headers: Sequence[str],
        provider: str,
    ) -> None:
        """Initialize with an ordered list of candidate header values.

        Args:
            client: Underlying HTTP client
            auth_headers: Authorization header values, duplicates dropped
            provider: Provider name used in error messages
        """
        self._client = client
        self._provider = provider
        self.auth_headers: list[str] = list(dict.fromkeys(h for h in auth_headers if h))

    async def request(
        self,
        method: str,
        url: str,
        expected: Sequence[int] = (200,),
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Send a request, falling back through the auth candidates.

        Args:
            method: HTTP method
            url: Absolute URL
            expected: Status codes treated as success
            headers: Extra headers
            **kwargs: Passed to ``httpx.AsyncClient.request``

        Returns:
            Decoded JSON body (``{}`` for empty responses)
        """
        if not self.auth_headers:
            raise ConfigurationError(f"{self._provider} credentials are not configured.")

        last_error: AuthenticationError | None = None
        for auth_header in self.auth_headers:
            request_headers = {"Accept": "application/json", **(headers or {})}
            request_headers["Authorization"] = auth_header
            response = await send_with_rate_limit(
                self._client, method, url, headers=request_headers, **kwargs
            )
            if response.status_code in expected:
                return parse_json(response)
            if response.status_code in (401, 403):
                last_error = AuthenticationError(response_error_message(self._provider, response))
                continue
            raise_for_provider_status(self._provider, response, expected)

        raise last_error or AuthenticationError(f"{self._provider} API error (401): Unauthorized")


async def paginate_cursor(
    fetch_page: Callable[[str | None], Awaitable[tuple[list[T], str | None]]],
    max_pages: int = DEFAULT_MAX_PAGES,
) -> list[T]:
    """Follow a ``next`` cursor, bounded by ``max_pages``.

    Args:
        fetch_page: Called with the cursor (None for the first page), returns
            the page items and the next cursor or None
        max_pages: Maximum number of pages to request

    Returns:
        Items of all fetched pages
    """
    items: list[T] = []
    cursor: str | None = None
    for _ in range(max_pages):
        batch, cursor = await fetch_page(cursor)
        items.extend(batch)
        if not cursor:
            break
    else:
        if cursor:
            logger.warning("Pagination stopped after %d pages", max_pages)
    return items


async def paginate_offset(
    fetch_page: Callable[[int], Awaitable[tuple[list[T], bool]]],
    page_size: int,
    max_pages: int = DEFAULT_MAX_PAGES,
) -> list[T]:
    """Walk explicit page offsets, bounded by ``max_pages``.

    Args:
        fetch_page: Called with the start offset, returns the page items and
            whether this was the last page
        page_size: Offset increment per page
        max_pages: Maximum number of pages to request

    Returns:
        Items of all fetched pages
    """
    items: list[T] = []
    for page in range(max_pages):
        batch, is_last = await fetch_page(page * page_size)
        items.extend(batch)
        if is_last or not batch:
            break
    return items
