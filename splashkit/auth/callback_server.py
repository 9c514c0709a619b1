"""Local HTTP callback server receiving the OAuth redirect."""

from __future__ import annotations

import html
import logging
import socket
import socketserver
import threading
from http.server import BaseHTTPRequestHandler
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlparse

from .constants import (
    DEFAULT_CALLBACK_HOST,
    DEFAULT_CALLBACK_PORT,
    LOOPBACK_ADDRESS,
    SERVER_START_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

CodeHandler = Callable[[str], None]


class _CallbackHandler(BaseHTTPRequestHandler):
    """HTTP handler for the OAuth redirect callback."""

    server: _CallbackServer

    def log_message(self, format: str, *args: Any) -> None:
        pass  # Suppress HTTP server logs

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        if parsed.path == "/favicon.ico":
            self.send_response(204)
            self.end_headers()
            return

        code = parse_qs(parsed.query).get("code", [None])[0]
        if not code:
            self._send_html(400, "<h1>Authorization Failed</h1><p>No authorization code received.</p>")
            return

        self._send_html(
            200,
            "<h1>Authorization Successful</h1>"
            f"<p>Authorization code: <code>{html.escape(code)}</code></p>"
            "<p>You can close this window and return to the application.</p>",
        )
        # Delivered by the server once this connection is shut down.
        self.server.pending_code = code

    def _send_html(self, status: int, body: str) -> None:
        content = (
            f"<!DOCTYPE html><html><head><title>Authorization</title></head><body>{body}</body></html>"
        ).encode()
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(content)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(content)
        self.wfile.flush()
        self.close_connection = True


class _CallbackServer(socketserver.TCPServer):
    allow_reuse_address = True

    def __init__(self, address: tuple[str, int], on_code: CodeHandler) -> None:
        self.pending_code: Optional[str] = None
        self._on_code = on_code
        super().__init__(address, _CallbackHandler)

    def shutdown_request(self, request: socket.socket) -> None:  # type: ignore[override]
        super().shutdown_request(request)
        code, self.pending_code = self.pending_code, None
        if code is not None:
            self._on_code(code)


class CallbackListener:
    """Ephemeral HTTP listener used as the OAuth ``redirect_uri``.

    The listener serves on a daemon thread. When a redirect carrying a
    ``code`` arrives it renders a confirmation page and, only after that
    response has been sent and the connection shut down, hands the code to
    the handler registered with ``on_authorize_code``. The handler fires once.

    Pass ``port=0`` to bind an ephemeral port; ``callback_uri`` then reflects
    the port actually bound.
    """

    def __init__(self, host: str = DEFAULT_CALLBACK_HOST, port: int = DEFAULT_CALLBACK_PORT) -> None:
        self._host = host
        self._port = port
        self._server: Optional[_CallbackServer] = None
        self._thread: Optional[threading.Thread] = None
        self._handler: Optional[CodeHandler] = None
        self._stopped = False
        self._lock = threading.Lock()

    @property
    def callback_uri(self) -> str:
        server = self._server
        port = server.server_address[1] if server is not None else self._port
        return f"http://{self._host}:{port}/"

    @property
    def serving(self) -> bool:
        return self._server is not None

    def start_serving(self, timeout_seconds: float = SERVER_START_TIMEOUT_SECONDS) -> bool:
        """Start serving in the background.

        Returns:
            True once the server accepts connections, False if it did not
            become ready within ``timeout_seconds``.
        """
        with self._lock:
            if self._server is not None:
                return True
            self._stopped = False

        ready = threading.Event()
        self._thread = threading.Thread(
            target=self._serve, args=(ready,), name="splashkit-callback-server", daemon=True
        )
        self._thread.start()

        if not ready.wait(timeout_seconds) or self._server is None:
            logger.warning("Callback server on %s:%s did not start within %ss", self._host, self._port, timeout_seconds)
            self.stop_serving()
            return False

        logger.debug("Callback server listening on %s", self.callback_uri)
        return True

    def _serve(self, ready: threading.Event) -> None:
        bind_host = LOOPBACK_ADDRESS if self._host == "localhost" else self._host
        try:
            server = _CallbackServer((bind_host, self._port), self._deliver)
        except OSError as e:
            logger.warning("Could not bind callback server to %s:%s: %s", bind_host, self._port, e)
            ready.set()
            return

        with self._lock:
            if self._stopped:
                server.server_close()
                ready.set()
                return
            self._server = server
        ready.set()
        server.serve_forever(poll_interval=0.1)

    def _deliver(self, code: str) -> None:
        with self._lock:
            handler, self._handler = self._handler, None
        if handler is None:
            logger.debug("Authorization code received with no handler registered")
            return
        handler(code)

    def on_authorize_code(self, handler: CodeHandler) -> None:
        """Register the one-shot handler receiving the authorization code."""
        with self._lock:
            self._handler = handler

    def stop_serving(self) -> None:
        """Shut the server down and drop the registered handler. Idempotent."""
        with self._lock:
            server, self._server = self._server, None
            thread, self._thread = self._thread, None
            self._handler = None
            self._stopped = True

        if server is None:
            return

        if thread is threading.current_thread():
            # shutdown() waits for serve_forever() to return, so it cannot run on the server thread.
            threading.Thread(target=self._close, args=(server, None), daemon=True).start()
        else:
            self._close(server, thread)

    @staticmethod
    def _close(server: _CallbackServer, thread: Optional[threading.Thread]) -> None:
        server.shutdown()
        if thread is not None:
            thread.join(timeout=2)
        server.server_close()
        logger.debug("Callback server stopped")
