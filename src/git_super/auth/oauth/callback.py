"""Local loopback receiver for the PKCE authorization redirect."""

import asyncio
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from threading import Thread
from types import TracebackType
from typing import Any
from urllib.parse import parse_qs, urlparse

from structlog import get_logger

from git_super.exceptions import OAuthCallbackError


logger = get_logger(__name__)


@dataclass
class OAuthCallbackResult:
    """Container for OAuth callback results."""

    authorization_code: str | None = None
    state: str | None = None
    error: str | None = None

    @property
    def received(self) -> bool:
        return self.authorization_code is not None or self.error is not None


def _create_oauth_callback_handler(
    expected_state: str, callback_path: str, result: OAuthCallbackResult
) -> type[BaseHTTPRequestHandler]:
    """Create an OAuth callback HTTP request handler.

    The received ``state`` is recorded as-is; the token exchange rejects a
    mismatch before any network call.

    Args:
        expected_state: State sent in the authorization request
        callback_path: Path component of the redirect URI
        result: Mutable container to store callback results

    Returns:
        A BaseHTTPRequestHandler subclass for processing OAuth callbacks

    """

    class OAuthCallbackHandler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            parsed_url = urlparse(self.path)
            if parsed_url.path != callback_path:
                self.send_response(404)
                self.end_headers()
                return

            query_params = parse_qs(parsed_url.query)
            received_state = query_params.get("state", [None])[0]

            if "error" in query_params:
                result.error = query_params.get(
                    "error_description", query_params["error"]
                )[0]
                self._send_error(result.error)
            elif "code" in query_params:
                result.state = received_state
                result.authorization_code = query_params["code"][0]
                if received_state != expected_state:
                    self._send_error("Invalid state parameter")
                else:
                    self._send_success()
            else:
                result.error = "No authorization code received"
                self._send_error(result.error)

        def _send_success(self) -> None:
            self.send_response(200)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.end_headers()
            self.wfile.write(b"Login successful! You can close this window.")

        def _send_error(self, message: str | None) -> None:
            self.send_response(400)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.end_headers()
            self.wfile.write(f"Error: {message}".encode())

        def log_message(self, format: str, *args: Any) -> None:
            pass  # Suppress HTTP server logs

    return OAuthCallbackHandler


class LoopbackCallbackServer:
    """Serves the redirect URI on a background thread until one callback arrives."""

    def __init__(self, redirect_uri: str, expected_state: str) -> None:
        parsed = urlparse(redirect_uri)
        self.host = parsed.hostname or "localhost"
        self.port = parsed.port if parsed.port is not None else 80
        self.path = parsed.path or "/"
        self.expected_state = expected_state
        self.result = OAuthCallbackResult()
        self._server: HTTPServer | None = None
        self._thread: Thread | None = None

    def start(self) -> None:
        handler_class = _create_oauth_callback_handler(
            self.expected_state, self.path, self.result
        )
        try:
            self._server = HTTPServer((self.host, self.port), handler_class)
        except OSError as e:
            raise OAuthCallbackError(
                f"Cannot listen on {self.host}:{self.port} for the OAuth callback: {e}"
            ) from e
        # Port 0 binds an ephemeral port
        self.port = self._server.server_address[1]
        self._thread = Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.debug("oauth_callback_server_started", host=self.host, port=self.port)

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=1)
        self._server = None
        self._thread = None

    def __enter__(self) -> "LoopbackCallbackServer":
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.stop()

    async def wait(
        self, timeout: float, *, poll_interval: float = 0.1
    ) -> OAuthCallbackResult:
        """Wait for the browser redirect.

        Raises:
            OAuthCallbackError: If the provider reported an error or the wait
                timed out

        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not self.result.received:
            if loop.time() > deadline:
                raise OAuthCallbackError("OAuth callback failed: Login timeout")
            await asyncio.sleep(poll_interval)

        if self.result.error:
            raise OAuthCallbackError(f"OAuth callback failed: {self.result.error}")
        return self.result
