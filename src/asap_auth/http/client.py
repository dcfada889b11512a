import asyncio
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog

from ..logging.setup import REQUEST_ID_HEADER, get_request_id

logger = structlog.get_logger(__name__)

TokenProvider = Callable[[], str | Awaitable[str]]


class HttpClient:
    """Async HTTP client with request id propagation and bounded retries"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 8.0,
        max_retries: int = 2,
        retry_backoff: float = 0.5,
        default_headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.default_headers = default_headers or {}
        self.transport = transport

    async def _headers(self) -> dict[str, str]:
        headers = self.default_headers.copy()

        request_id = get_request_id()
        if request_id:
            headers[REQUEST_ID_HEADER] = request_id

        return headers

    @asynccontextmanager
    async def _client(self, **kwargs):
        """Create HTTP client with default configuration"""
        headers = await self._headers()

        if "headers" in kwargs:
            headers.update(kwargs.pop("headers"))

        client_kwargs = {"timeout": self.timeout, "headers": headers, **kwargs}

        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        if self.transport is not None:
            client_kwargs["transport"] = self.transport

        async with httpx.AsyncClient(**client_kwargs) as client:
            yield client

    async def _make_request(
        self,
        method: str,
        url: str,
        retries: int | None = None,
        **kwargs,
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic

        Transport errors and 5xx responses are retried, 4xx are raised at once.
        """
        retries = retries if retries is not None else self.max_retries
        last_exception: Exception | None = None

        for attempt in range(retries + 1):
            try:
                async with self._client() as client:
                    logger.debug(
                        "Making HTTP request",
                        method=method,
                        url=url,
                        attempt=attempt + 1,
                        max_attempts=retries + 1,
                    )

                    response = await client.request(method, url, **kwargs)

                    logger.debug(
                        "HTTP response received",
                        method=method,
                        url=url,
                        status_code=response.status_code,
                    )

                    response.raise_for_status()
                    return response

            except httpx.HTTPStatusError as e:
                if e.response.status_code < 500:
                    logger.info(
                        "HTTP request rejected",
                        method=method,
                        url=url,
                        status_code=e.response.status_code,
                    )
                    raise
                last_exception = e
            except httpx.RequestError as e:
                last_exception = e

            if attempt < retries:
                backoff_time = self.retry_backoff * (2**attempt)
                logger.warning(
                    "HTTP request failed, retrying",
                    method=method,
                    url=url,
                    attempt=attempt + 1,
                    max_attempts=retries + 1,
                    error=str(last_exception),
                    backoff_seconds=backoff_time,
                )
                await asyncio.sleep(backoff_time)

        logger.error(
            "HTTP request failed after all retries",
            method=method,
            url=url,
            attempts=retries + 1,
            error=str(last_exception),
        )
        raise last_exception

    async def get(self, url: str, params: dict[str, Any] | None = None, **kwargs) -> httpx.Response:
        """Make GET request"""
        return await self._make_request("GET", url, params=params, **kwargs)

    async def post(self, url: str, json: Any = None, **kwargs) -> httpx.Response:
        """Make POST request"""
        return await self._make_request("POST", url, json=json, **kwargs)


class AuthenticatedHttpClient(HttpClient):
    """HTTP client that adds a bearer token to every request"""

    def __init__(
        self,
        auth_provider: TokenProvider,
        auth_header: str = "Authorization",
        auth_prefix: str = "Bearer",
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.auth_provider = auth_provider
        self.auth_header = auth_header
        self.auth_prefix = auth_prefix

    async def _get_auth_header(self) -> str:
        """Get authentication header value"""
        token = self.auth_provider()
        if asyncio.iscoroutine(token):
            token = await token

        if self.auth_prefix:
            return f"{self.auth_prefix} {token}"
        return token

    async def _headers(self) -> dict[str, str]:
        headers = await super()._headers()
        headers[self.auth_header] = await self._get_auth_header()
        return headers

    async def get_json(self, url: str, **kwargs) -> Any:
        """GET a JSON document, retrying per the client policy"""
        logger.debug("Sending GET", url=url)
        response = await self.get(url, **kwargs)
        body = response.json()
        logger.debug("GET response", url=url, status_code=response.status_code, body=body)
        return body

    async def post_json(self, url: str, body: Any, timeout: float | None = None) -> int:
        """
        POST a JSON body and return the response status code

        POST requests are never retried. Non-200 responses are logged, not raised.
        """
        logger.info("Sending POST", url=url)
        async with self._client() as client:
            response = await client.post(url, json=body, timeout=timeout or self.timeout)

        if response.status_code == 200:
            logger.info("POST response", url=url, status_code=response.status_code, body=response.text)
        else:
            logger.error("POST response", url=url, status_code=response.status_code, body=response.text)

        return response.status_code
