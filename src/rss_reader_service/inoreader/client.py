"""Async HTTP client for the Inoreader Reader API.

Design Decisions:

1. One httpx.AsyncClient per InoreaderClient:
   - Used as an async context manager by the sync job and the push loop
   - Tests inject an ``httpx.MockTransport`` through ``transport``

2. Fixed retry policy:
   - Network errors and 5xx responses are retried ``max_retries`` times
     with a fixed ``retry_delay`` between attempts
   - Other 4xx responses fail immediately (retrying cannot fix them)
   - 429 raises InoreaderRateLimitError straight away; the daily budget is
     spent and the caller decides what to do

3. Token refresh:
   - A 401 triggers exactly one refresh using the OAuth refresh token,
     then the request is replayed once
   - A second 401 (or no refresh credentials) raises InoreaderAuthError

4. Rate limit capture:
   - Every response, successful or not, has its X-Reader-* headers parsed
     and handed to ``on_rate_limit``
   - Callback failures are logged and never break the request
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from types import TracebackType
from typing import Any

import httpx

from rss_reader_service.config import settings
from rss_reader_service.logging_config import get_logger

from .exceptions import InoreaderAPIError, InoreaderAuthError, InoreaderRateLimitError
from .labels import READ_STATE, READING_LIST
from .rate_limits import RateLimitSnapshot, parse_rate_limit_headers
from .schemas import (
    StreamContents,
    Subscription,
    SubscriptionList,
    TagItem,
    TagList,
    UnreadCount,
    UnreadCounts,
)
from .tokens import load_tokens, token_file_path

logger = get_logger(__name__)

RateLimitCallback = Callable[[RateLimitSnapshot], Awaitable[None]]


class InoreaderClient:
    """Thin typed wrapper over the Reader API endpoints the sync needs.

    Example:
        >>> async with InoreaderClient.from_settings() as client:
        ...     subscriptions = await client.list_subscriptions()
    """

    def __init__(
        self,
        access_token: str | None,
        *,
        refresh_token: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        base_url: str = "https://www.inoreader.com/reader/api/0",
        token_url: str = "https://www.inoreader.com/oauth2/token",
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        on_rate_limit: RateLimitCallback | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.on_rate_limit = on_rate_limit
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        on_rate_limit: RateLimitCallback | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "InoreaderClient":
        """Build a client from environment configuration.

        Tokens come from the environment; when neither is set, from the
        OAuth token file.
        """
        access_token = settings.inoreader_access_token
        refresh_token = settings.inoreader_refresh_token
        if not (access_token or refresh_token):
            access_token, refresh_token = load_tokens(
                token_file_path(settings.inoreader_token_file)
            )
        return cls(
            access_token,
            refresh_token=refresh_token,
            client_id=settings.inoreader_client_id,
            client_secret=settings.inoreader_client_secret,
            base_url=settings.inoreader_base_url,
            token_url=settings.inoreader_token_url,
            timeout=settings.inoreader_timeout_seconds,
            max_retries=settings.inoreader_max_retries,
            retry_delay=settings.inoreader_retry_delay_seconds,
            on_rate_limit=on_rate_limit,
            transport=transport,
        )

    async def __aenter__(self) -> "InoreaderClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def list_subscriptions(self) -> list[Subscription]:
        data = await self._request_json("GET", "subscription/list")
        return SubscriptionList.model_validate(data).subscriptions

    async def list_tags(self) -> list[TagItem]:
        data = await self._request_json("GET", "tag/list")
        return TagList.model_validate(data).tags

    async def unread_counts(self) -> list[UnreadCount]:
        data = await self._request_json("GET", "unread-count")
        return UnreadCounts.model_validate(data).unreadcounts

    async def stream_contents(
        self,
        n: int,
        *,
        exclude_read: bool = True,
        newer_than: int | None = None,
        stream_id: str = READING_LIST,
    ) -> StreamContents:
        """Fetch the newest ``n`` items of a stream.

        Args:
            n: Maximum number of items
            exclude_read: Send ``xt=`` for the read state (unread items only)
            newer_than: Unix seconds; only items newer than this (``ot=``)
            stream_id: Stream to read, the reading list by default
        """
        params: dict[str, Any] = {"n": n}
        if exclude_read:
            params["xt"] = READ_STATE
        if newer_than is not None:
            params["ot"] = newer_than
        data = await self._request_json("GET", f"stream/contents/{stream_id}", params=params)
        return StreamContents.model_validate(data)

    async def edit_tag(
        self,
        item_ids: Sequence[str],
        *,
        add: str | None = None,
        remove: str | None = None,
    ) -> None:
        """Add and/or remove a state or label on a batch of items.

        Raises:
            ValueError: If neither ``add`` nor ``remove`` is given, or no ids
        """
        if not item_ids:
            raise ValueError("edit_tag requires at least one item id")
        if add is None and remove is None:
            raise ValueError("edit_tag requires add or remove")
        form: dict[str, Any] = {"i": list(item_ids)}
        if add is not None:
            form["a"] = add
        if remove is not None:
            form["r"] = remove
        await self._request("POST", "edit-tag", data=form)

    async def refresh_access_token(self) -> str:
        """Exchange the refresh token for a new access token.

        Returns:
            The new access token (also stored on the client)

        Raises:
            InoreaderAuthError: If refresh credentials are missing or rejected
        """
        if not (self.refresh_token and self.client_id and self.client_secret):
            raise InoreaderAuthError("Cannot refresh token: OAuth credentials not configured")

        try:
            response = await self._http.post(
                self.token_url,
                data={
                    "grant_type": "refresh_token",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                },
            )
        except httpx.RequestError as e:
            raise InoreaderAuthError(f"Token refresh failed: {e}") from e

        if response.status_code != 200:
            raise InoreaderAuthError(f"Token refresh rejected with status {response.status_code}")

        payload = response.json()
        access_token = payload.get("access_token")
        if not access_token:
            raise InoreaderAuthError("Token refresh response did not include an access token")

        self.access_token = access_token
        # Inoreader may rotate the refresh token
        self.refresh_token = payload.get("refresh_token", self.refresh_token)
        logger.info("inoreader_token_refreshed", expires_in=payload.get("expires_in"))
        return access_token

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise InoreaderAPIError(
                f"Invalid JSON from {path}", status_code=response.status_code
            ) from e

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = await self._send_with_retry(method, path, **kwargs)

        if response.status_code == 401:
            logger.info("inoreader_token_expired", path=path)
            await self.refresh_access_token()
            response = await self._send_with_retry(method, path, **kwargs)
            if response.status_code == 401:
                raise InoreaderAuthError("Access token rejected after refresh")

        if response.status_code == 429:
            snapshot = parse_rate_limit_headers(response.headers)
            retry_after = snapshot.reset_after
            if retry_after is None and "Retry-After" in response.headers:
                try:
                    retry_after = int(response.headers["Retry-After"])
                except ValueError:
                    retry_after = None
            raise InoreaderRateLimitError(
                f"Inoreader rate limit exceeded on {path}", retry_after=retry_after
            )

        if response.status_code >= 400:
            raise InoreaderAPIError(
                f"Inoreader {method} {path} failed with status {response.status_code}",
                status_code=response.status_code,
            )

        return response

    async def _send_with_retry(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying network errors and 5xx responses.

        Returns the last response for any status below 500 (including 401
        and 429, which the caller handles).

        Raises:
            InoreaderAPIError: If every attempt failed
        """
        last_error: InoreaderAPIError | None = None

        for attempt in range(self.max_retries):
            try:
                response = await self._http.request(
                    method,
                    path,
                    headers=self._auth_headers(),
                    **kwargs,
                )
            except httpx.RequestError as e:
                last_error = InoreaderAPIError(f"Request error on {path}: {e}")
                logger.warning(
                    "inoreader_request_error",
                    path=path,
                    attempt=attempt + 1,
                    error=str(e),
                )
            else:
                await self._report_rate_limits(response)
                if response.status_code < 500:
                    return response
                last_error = InoreaderAPIError(
                    f"Server error {response.status_code} on {path}",
                    status_code=response.status_code,
                )
                logger.warning(
                    "inoreader_server_error",
                    path=path,
                    attempt=attempt + 1,
                    status_code=response.status_code,
                )

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.retry_delay)

        raise last_error or InoreaderAPIError(f"Failed to call {path}")

    def _auth_headers(self) -> dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _report_rate_limits(self, response: httpx.Response) -> None:
        if self.on_rate_limit is None:
            return
        snapshot = parse_rate_limit_headers(response.headers)
        if snapshot.is_empty:
            return
        try:
            await self.on_rate_limit(snapshot)
        except Exception as e:
            logger.warning("rate_limit_capture_failed", error=str(e))
