"""
Shared HTTP plumbing for the image provider clients.

Both providers are plain JSON-over-HTTPS APIs, so session management,
request logging and error mapping live here.
"""

import asyncio
import json
import time
from typing import Any, Dict, Optional

import aiohttp

from kawaii_bot.config import ProviderConfig
from kawaii_bot.utils.exceptions import ImageAPIError
from kawaii_bot.utils.logging import (
    get_logger,
    log_http_request,
    log_http_response,
    generate_correlation_id,
)


class BaseImageClient:
    """
    Base class for image API clients.

    Subclasses set ``service`` and call ``_request_json`` / ``_download``.

    Attributes:
        config: Provider configuration settings
        session: Async HTTP session, created lazily
    """

    service = "images"

    def __init__(self, config: ProviderConfig) -> None:
        self.config = config
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None
        self._closed = False

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """
        Ensure that we have an active HTTP session.

        Raises:
            ImageAPIError: If the client has been closed
        """
        if self._closed:
            raise ImageAPIError(f"{self.service} client has been closed")

        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers={"User-Agent": self.config.user_agent},
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                raise_for_status=False,
            )
            self.logger.debug("Created new HTTP session", service=self.service)

        return self.session

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> bytes:
        """
        Perform a request and return the raw body of a 200 response.

        Raises:
            ImageAPIError: On non-200 status, network error or timeout
        """
        correlation_id = generate_correlation_id()
        log_http_request(
            method=method,
            url=url,
            params=params,
            service=self.service,
            correlation_id=correlation_id,
        )

        start_time = time.time()
        session = await self._ensure_session()

        try:
            async with session.request(method, url, params=params, json=json_body) as response:
                body = await response.read()
                response_time_ms = (time.time() - start_time) * 1000

                if response.status != 200:
                    text = body.decode("utf-8", errors="replace")[:500]
                    log_http_response(
                        status_code=response.status,
                        response_time_ms=response_time_ms,
                        error=f"HTTP {response.status} error",
                        service=self.service,
                        correlation_id=correlation_id,
                    )
                    raise ImageAPIError(
                        f"{self.service} API returned status {response.status}",
                        context={"url": url, "status_code": response.status, "body": text},
                    )

                log_http_response(
                    status_code=response.status,
                    response_time_ms=response_time_ms,
                    response_size=len(body),
                    service=self.service,
                    correlation_id=correlation_id,
                )
                return body

        except aiohttp.ClientError as e:
            log_http_response(
                status_code=0,
                response_time_ms=(time.time() - start_time) * 1000,
                error=str(e),
                service=self.service,
                correlation_id=correlation_id,
            )
            raise ImageAPIError(
                f"Failed to communicate with {self.service} API",
                context={"url": url, "error_type": type(e).__name__},
                original_error=e,
            )
        except asyncio.TimeoutError as e:
            log_http_response(
                status_code=0,
                response_time_ms=(time.time() - start_time) * 1000,
                error="timeout",
                service=self.service,
                correlation_id=correlation_id,
            )
            raise ImageAPIError(
                f"{self.service} API request timed out",
                context={"url": url, "timeout": self.config.timeout},
                original_error=e,
            )

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Perform a request and decode the JSON body."""
        body = await self._request(method, url, **kwargs)
        try:
            return json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ImageAPIError(
                f"Failed to decode {self.service} API response",
                context={"url": url},
                original_error=e,
            )

    async def _download(self, url: str) -> bytes:
        """Download raw image bytes."""
        return await self._request("GET", url)

    async def close(self) -> None:
        """Close the HTTP session and clean up resources."""
        if not self._closed:
            if self.session and not self.session.closed:
                await self.session.close()
            self._closed = True
            self.logger.debug("Client closed", service=self.service)

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
