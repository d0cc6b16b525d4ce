from typing import Any, Dict, Optional

import httpx
from httpx import HTTPStatusError, TimeoutException

from policy_intake.core.exceptions import APIClientError, APITimeoutError
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseLLMClient:
    """Base client for LLM API interactions.

    Handles the HTTP request, timeout management and error logging. Calls are
    made exactly once; retrying is left to whoever owns the workflow.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the LLM client.

        Args:
            api_key: API key for authentication
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to stub the network in tests)
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport
        self.logger = LOGGER

    async def call_api(
        self,
        endpoint: str = "",
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the parsed JSON response.

        Args:
            endpoint: API endpoint (appended to base_url)
            payload: JSON payload
            headers: Additional headers
            timeout: Per-call timeout override in seconds

        Returns:
            Parsed JSON response

        Raises:
            APIClientError: On HTTP error status, network failure or a non-JSON body
            APITimeoutError: If the request times out
        """
        url = f"{self.base_url}{endpoint}" if endpoint else self.base_url
        effective_timeout = timeout if timeout is not None else self.timeout

        default_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if headers:
            default_headers.update(headers)

        self.logger.debug(
            f"Calling LLM API: {url}",
            extra={"timeout": effective_timeout},
        )

        # The client context closes the pooled connection on every exit path,
        # including cancellation by an outer wait_for.
        async with httpx.AsyncClient(
            timeout=effective_timeout, transport=self.transport
        ) as client:
            try:
                response = await client.post(url, headers=default_headers, json=payload)
                response.raise_for_status()
            except HTTPStatusError as e:
                self._log_http_error(e, url)
                raise APIClientError(
                    f"API HTTP Error {e.response.status_code}",
                    original_error=e,
                    status_code=e.response.status_code,
                ) from e
            except TimeoutException as e:
                self.logger.warning("API Timeout", extra={"url": url})
                raise APITimeoutError(
                    f"API Timeout after {effective_timeout}s", original_error=e
                ) from e
            except httpx.HTTPError as e:
                self.logger.warning(
                    "API network error", extra={"url": url, "error": str(e)}
                )
                raise APIClientError(f"API network error: {e}", original_error=e) from e

            try:
                return response.json()
            except ValueError as e:
                raise APIClientError(
                    "API returned a non-JSON body",
                    original_error=e,
                    status_code=response.status_code,
                ) from e

    def _log_http_error(self, error: HTTPStatusError, url: str) -> None:
        try:
            error_body = error.response.text
        except httpx.ResponseNotRead:
            error_body = "Could not read response body"

        self.logger.warning(
            "API HTTP error",
            extra={
                "url": url,
                "status_code": error.response.status_code,
                "error_body": error_body[:500],
            },
        )
