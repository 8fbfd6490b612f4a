"""HTTP plumbing shared by the OAuth flows and the token manager."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from structlog import get_logger


logger = get_logger(__name__)

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    # GitHub answers form-encoded unless JSON is asked for
    "Accept": "application/json",
}


def truncate_error_text(response_text: str) -> str:
    """Truncate response text for compact error logging.

    Args:
        response_text: Full response text

    Returns:
        Truncated text suitable for logging

    """
    if len(response_text) > 200:
        return f"{response_text[:100]}...{response_text[-50:]}"
    if len(response_text) > 100:
        return f"{response_text[:100]}..."
    return response_text


def log_http_error_compact(
    operation: str, response: httpx.Response, *, verbose: bool = False
) -> None:
    """Log HTTP error response in compact format.

    Args:
        operation: Description of the operation that failed
        response: HTTP response object
        verbose: Log the full body instead of a preview

    """
    if verbose:
        logger.error(
            "http_operation_failed",
            operation=operation,
            status_code=response.status_code,
            response_text=response.text,
        )
    else:
        logger.error(
            "http_operation_failed_compact",
            operation=operation,
            status_code=response.status_code,
            response_preview=truncate_error_text(response.text),
            verbose_hint="use GIT_SUPER_VERBOSE_API=true for full response",
        )


def parse_json_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body.

    Raises:
        ValueError: If the body is not a JSON object

    """
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object in the response body")
    return data


class OAuthHTTPClient:
    """Form-encoded POSTs against OAuth endpoints.

    Reuses a caller-supplied ``httpx.AsyncClient`` for connection pooling, or
    opens a short-lived client per request.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._shared_client = http_client
        self.timeout = timeout

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._shared_client is not None:
            yield self._shared_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def post_form(self, url: str, data: dict[str, str]) -> httpx.Response:
        """POST ``data`` as ``application/x-www-form-urlencoded``.

        Raises:
            httpx.HTTPError: On transport failures

        """
        async with self._client() as client:
            return await client.post(
                url,
                data=data,
                headers=FORM_HEADERS,
                timeout=self.timeout,
            )
