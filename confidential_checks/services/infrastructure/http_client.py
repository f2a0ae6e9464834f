"""
Shared async HTTP plumbing for the ledger gateway and the relayer.
Handles client lifecycle, retry with exponential backoff, and error parsing.
"""

import asyncio
from typing import Any

import httpx

from confidential_checks.config import settings
from confidential_checks.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class HttpServiceError(Exception):
    """Error response (or transport failure) from an upstream service."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.response_data = response_data or {}


class RetryingHttpClient:
    """
    Base class for upstream API clients.

    Subclasses set `service_name` and call `_call()`; transport errors and
    retryable status codes are retried with backoff, everything else is
    raised as HttpServiceError.
    """

    service_name = "upstream"

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_factor: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        http_config = settings.get_http_config()
        self.base_url = base_url
        self.max_retries = max_retries if max_retries is not None else http_config["max_retries"]
        self.backoff_factor = (
            backoff_factor if backoff_factor is not None else http_config["backoff_factor"]
        )
        self._timeout = timeout if timeout is not None else http_config["timeout"]
        self._headers = {"Content-Type": "application/json", "Accept": "application/json"}
        self._headers.update(headers or {})
        self._transport = transport
        self._client = self._create_client()

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers,
            timeout=httpx.Timeout(self._timeout),
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request_with_retry(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        attempts = max(1, self.max_retries)
        for attempt in range(1, attempts + 1):
            try:
                response = await self._client.request(method, path, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < attempts:
                    backoff = self.backoff_factor * (2 ** (attempt - 1))
                    logger.debug(
                        f"{self.service_name} retrying request",
                        path=path,
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= attempts:
                    raise
                backoff = self.backoff_factor * (2 ** (attempt - 1))
                logger.debug(
                    f"{self.service_name} request error, retrying",
                    path=path,
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise RuntimeError(f"{self.service_name} retry loop exhausted")

    def _handle_response(self, response: httpx.Response, operation: str) -> dict[str, Any]:
        """
        Parse a response body, raising HttpServiceError for error statuses.

        Error bodies are expected as ``{"error": {"code": ..., "message": ...}}``.
        """
        if response.is_success:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse {self.service_name} {operation} response", error=str(e))
                raise HttpServiceError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            logger.error(
                f"{self.service_name} {operation} failed with non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise HttpServiceError(
                f"{self.service_name} error (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from None

        error_info = error_data.get("error", {}) if isinstance(error_data, dict) else {}
        if isinstance(error_info, str):
            error_info = {"message": error_info}
        error_code = error_info.get("code")
        error_message = error_info.get("message") or f"HTTP {response.status_code}"

        logger.warning(
            f"{self.service_name} {operation} failed",
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message,
        )
        raise HttpServiceError(
            error_message,
            error_code=str(error_code) if error_code is not None else None,
            status_code=response.status_code,
            response_data=error_data,
        )

    async def _call(self, method: str, path: str, operation: str, **kwargs) -> dict[str, Any]:
        """Request + parse. Transport failures surface as HttpServiceError."""
        try:
            response = await self._request_with_retry(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise HttpServiceError(f"{self.service_name} timed out during {operation}") from e
        except httpx.RequestError as e:
            raise HttpServiceError(f"{self.service_name} unreachable during {operation}: {e}") from e
        return self._handle_response(response, operation)
