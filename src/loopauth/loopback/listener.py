"""Single-shot HTTP listener that captures the authorization redirect.

The listener binds to the loopback interface only, answers exactly one
HTTP request with a short "close this window" page and hands back the
full request URI. The socket is closed on every exit path: after the
request, on error, and when the caller's
:class:`~loopauth.cancellation.CancellationToken` fires.

Typical usage::

    with RedirectListener(port) as listener:
        launcher.open(authorization_url)
        captured = listener.wait(cancel_token)
"""

from __future__ import annotations

import contextlib
import ipaddress
import logging
import os
import socket
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qsl, urlsplit

from loopauth.cancellation import CancellationToken
from loopauth.exceptions import (
    AuthCancelledError,
    InvalidRedirectHostError,
    ListenerBindError,
)

logger = logging.getLogger(__name__)

CLOSE_WINDOW_PAGE = (
    "<html><head><title>Sign-in complete</title></head>"
    "<body><h2>Authentication complete. Please close this window.</h2></body>"
    "</html>"
)

_POLL_INTERVAL = 0.2


def ensure_loopback(redirect_uri: str) -> tuple[str, int]:
    """Check that *redirect_uri* points back at this machine over plain HTTP.

    Args:
        redirect_uri: The redirect URI registered for the flow.

    Returns:
        A ``(host, port)`` tuple taken from the URI.

    Raises:
        InvalidRedirectHostError: If the scheme is not ``http``, the host
            is not ``localhost`` or a loopback address, or no port is given.
    """
    parsed = urlsplit(redirect_uri)
    host = parsed.hostname
    if parsed.scheme != "http" or not host:
        raise InvalidRedirectHostError(
            f"Redirect URI must be an http:// loopback URL, got '{redirect_uri}'"
        )

    if host.lower() != "localhost":
        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            address = None
        if address is None or not address.is_loopback:
            raise InvalidRedirectHostError(
                f"Redirect host '{host}' is not a loopback address; only "
                "'localhost', 127.0.0.0/8 and ::1 are allowed"
            )

    try:
        port = parsed.port
    except ValueError as exc:
        raise InvalidRedirectHostError(f"Invalid redirect port: {exc}") from exc
    if port is None:
        raise InvalidRedirectHostError(
            f"Redirect URI '{redirect_uri}' must include an explicit port"
        )
    return host, port


def parse_redirect_query(uri: str) -> dict[str, str]:
    """Return the query parameters of a captured redirect as a flat dict.

    The first value wins when a parameter is repeated.
    """
    params: dict[str, str] = {}
    for key, value in parse_qsl(urlsplit(uri).query, keep_blank_values=True):
        params.setdefault(key, value)
    return params


def _redact(path: str) -> str:
    base, sep, _ = path.partition("?")
    return f"{base}?<redacted>" if sep else base


class _RedirectServer(HTTPServer):
    # A TIME_WAIT socket left by a previous flow must not block a fixed port.
    # On Windows SO_REUSEADDR would let a second listener steal the port.
    allow_reuse_address = os.name != "nt"
    captured_path: Optional[str] = None

    def handle_error(self, request: Any, client_address: Any) -> None:
        logger.debug(
            "Redirect listener failed serving %s", client_address, exc_info=True
        )


class _RedirectServerV6(_RedirectServer):
    address_family = socket.AF_INET6


class _RedirectHandler(BaseHTTPRequestHandler):
    """Answers any method on any path and records the request target."""

    server: _RedirectServer
    server_version = "loopauth"
    # Browsers open speculative connections that never send a request. One
    # such connection holds up the real redirect for at most this long.
    timeout = 2

    def handle_one_request(self) -> None:
        try:
            self.raw_requestline = self.rfile.readline(65537)
        except TimeoutError:
            logger.debug("Redirect listener dropped an idle connection")
            self.close_connection = True
            return
        if not self.raw_requestline:
            self.close_connection = True
            return
        if not self.parse_request():
            # parse_request already answered with an error status.
            return

        self.server.captured_path = self.path
        body = CLOSE_WINDOW_PAGE.encode("utf-8")
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Connection", "close")
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)
        self.wfile.flush()
        self.close_connection = True

    def log_request(self, code: Any = "-", size: Any = "-") -> None:
        logger.debug(
            "Redirect listener answered %s %s with %s",
            self.command,
            _redact(self.path),
            code,
        )

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("Redirect listener: " + format, *args)


class RedirectListener:
    """Loopback HTTP listener that accepts exactly one redirect request.

    The socket is bound and listening as soon as :meth:`start` (or
    ``__enter__``) returns, so a browser launched afterwards can never
    reach the port before the listener exists.

    Args:
        port: Port to bind. ``0`` lets the OS pick one; :attr:`port`
            reports the real value after binding.
        host: ``localhost`` or a loopback IP literal. ``localhost`` binds
            ``127.0.0.1`` only, not ``::1``. Browsers that resolve
            ``localhost`` to ``::1`` first fall back to ``127.0.0.1`` when
            the IPv6 connection is refused. Pass ``"::1"`` to listen on
            IPv6 instead.
        poll_interval: Seconds between cancellation checks while waiting.
    """

    def __init__(
        self,
        port: int,
        host: str = "localhost",
        poll_interval: float = _POLL_INTERVAL,
    ) -> None:
        ensure_loopback(f"http://{format_host(host)}:{port}")
        self.host = host
        self.port = port
        self._poll_interval = poll_interval
        self._server: Optional[_RedirectServer] = None

    @property
    def origin(self) -> str:
        return f"http://{format_host(self.host)}:{self.port}"

    @property
    def is_listening(self) -> bool:
        return self._server is not None

    def start(self) -> None:
        """Bind the loopback socket and start listening.

        Raises:
            ListenerBindError: If the port is taken or cannot be bound.
        """
        if self._server is not None:
            return
        bind_host = _bind_address(self.host)
        server_cls = _RedirectServerV6 if ":" in bind_host else _RedirectServer
        try:
            server = server_cls((bind_host, self.port), _RedirectHandler)
        except OSError as exc:
            raise ListenerBindError(
                f"Cannot listen on {bind_host}:{self.port}: {exc.strerror or exc}"
            ) from exc
        server.timeout = self._poll_interval
        self._server = server
        self.port = server.server_address[1]
        logger.debug("Redirect listener bound to %s:%d", bind_host, self.port)

    def close(self) -> None:
        """Release the listening socket. Safe to call more than once."""
        if self._server is not None:
            self._server.server_close()
            self._server = None
            logger.debug("Redirect listener on port %d closed", self.port)

    def wait(self, cancel_token: Optional[CancellationToken] = None) -> str:
        """Block until one request arrives and return its full URI.

        The listener is closed before this method returns or raises.

        Args:
            cancel_token: Optional token; cancelling it aborts the wait.

        Returns:
            ``<origin><path>?<query>`` of the captured request, e.g.
            ``http://localhost:43123/?code=...&state=...``.

        Raises:
            AuthCancelledError: If *cancel_token* fires first.
            RuntimeError: If the listener was never started.
        """
        server = self._server
        if server is None:
            raise RuntimeError("RedirectListener.wait() called before start()")

        unregister = (
            cancel_token.register(self._interrupt) if cancel_token else None
        )
        try:
            while server.captured_path is None:
                if cancel_token is not None and cancel_token.is_cancelled:
                    raise AuthCancelledError(
                        "Interactive authentication was cancelled before the "
                        "redirect arrived"
                    )
                server.handle_request()
        finally:
            if unregister is not None:
                unregister()
            self.close()

        path = server.captured_path
        if not path.startswith("/"):
            path = "/" + path
        captured = self.origin + path
        logger.debug("Captured redirect %s", _redact(captured))
        return captured

    def _interrupt(self) -> None:
        # Unblocks a pending select/accept; wait() notices the token and exits.
        server = self._server
        if server is not None:
            with contextlib.suppress(OSError):
                server.socket.shutdown(socket.SHUT_RDWR)

    def __enter__(self) -> "RedirectListener":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def await_redirect(
    port: int,
    cancel_token: Optional[CancellationToken] = None,
    host: str = "localhost",
) -> str:
    """Bind a :class:`RedirectListener`, wait for one request and return its URI."""
    with RedirectListener(port, host=host) as listener:
        return listener.wait(cancel_token)


def _bind_address(host: str) -> str:
    return "127.0.0.1" if host.lower() == "localhost" else host


def format_host(host: str) -> str:
    return f"[{host}]" if ":" in host and not host.startswith("[") else host
