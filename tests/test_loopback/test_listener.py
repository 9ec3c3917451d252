"""Tests for the single-shot loopback redirect listener."""

from __future__ import annotations

import socket
import threading
import time

import pytest

from fakes import free_port, port_is_bindable, send_request
from loopauth.cancellation import CancellationToken
from loopauth.exceptions import (
    AuthCancelledError,
    InvalidRedirectHostError,
    ListenerBindError,
)
from loopauth.loopback.listener import (
    CLOSE_WINDOW_PAGE,
    RedirectListener,
    await_redirect,
    ensure_loopback,
    parse_redirect_query,
)


def _request_in_background(port: int, path: str, method: str = "GET") -> tuple[threading.Thread, list]:
    results: list = []

    def _run() -> None:
        try:
            results.append(send_request(port, path, method))
        except Exception as exc:  # noqa: BLE001
            results.append(exc)

    thread = threading.Thread(target=_run, daemon=True)
    thread.start()
    return thread, results


# -------------------------------------------------------------------------
# ensure_loopback / parse_redirect_query
# -------------------------------------------------------------------------


class TestEnsureLoopback:
    @pytest.mark.parametrize(
        "uri, expected",
        [
            ("http://localhost:1234", ("localhost", 1234)),
            ("http://LOCALHOST:1234/", ("localhost", 1234)),
            ("http://127.0.0.1:8080/callback", ("127.0.0.1", 8080)),
            ("http://127.10.0.1:8080", ("127.10.0.1", 8080)),
            ("http://[::1]:9000", ("::1", 9000)),
        ],
    )
    def test_accepts_loopback(self, uri: str, expected: tuple[str, int]) -> None:
        assert ensure_loopback(uri) == expected

    @pytest.mark.parametrize(
        "uri",
        [
            "http://example.com:1234",
            "http://10.0.0.5:1234",
            "http://0.0.0.0:1234",
            "http://localhost.example.com:1234",
        ],
    )
    def test_rejects_non_loopback_hosts(self, uri: str) -> None:
        with pytest.raises(InvalidRedirectHostError, match="not a loopback"):
            ensure_loopback(uri)

    def test_rejects_https(self) -> None:
        with pytest.raises(InvalidRedirectHostError, match="http://"):
            ensure_loopback("https://localhost:1234")

    def test_requires_port(self) -> None:
        with pytest.raises(InvalidRedirectHostError, match="explicit port"):
            ensure_loopback("http://localhost/")


class TestParseRedirectQuery:
    def test_flattens_query(self) -> None:
        assert parse_redirect_query("http://localhost:1/?code=ABC&state=xyz") == {
            "code": "ABC",
            "state": "xyz",
        }

    def test_first_value_wins_and_blanks_kept(self) -> None:
        assert parse_redirect_query("http://localhost:1/?a=1&a=2&b=") == {"a": "1", "b": ""}

    def test_decodes_percent_encoding(self) -> None:
        params = parse_redirect_query(
            "http://localhost:1/?error=access_denied&error_description=User%20declined"
        )
        assert params["error_description"] == "User declined"


# -------------------------------------------------------------------------
# RedirectListener
# -------------------------------------------------------------------------


class TestRedirectListener:
    def test_captures_redirect_and_answers_close_page(self) -> None:
        with RedirectListener(0) as listener:
            port = listener.port
            thread, results = _request_in_background(port, "/?code=ABC123&state=xyz")
            captured = listener.wait()
        thread.join(5)

        assert captured == f"http://localhost:{port}/?code=ABC123&state=xyz"
        status, body = results[0]
        assert status == 200
        assert "close this window" in body
        assert body == CLOSE_WINDOW_PAGE

    def test_answers_any_method_and_path(self) -> None:
        with RedirectListener(0) as listener:
            port = listener.port
            thread, results = _request_in_background(port, "/callback?code=1", method="POST")
            captured = listener.wait()
        thread.join(5)

        assert captured == f"http://localhost:{port}/callback?code=1"
        assert results[0][0] == 200

    def test_binds_before_wait(self) -> None:
        listener = RedirectListener(0)
        listener.start()
        try:
            assert listener.is_listening
            assert not port_is_bindable(listener.port)
        finally:
            listener.close()

    def test_accepts_exactly_one_request(self) -> None:
        with RedirectListener(0) as listener:
            port = listener.port
            thread, _ = _request_in_background(port, "/?code=first")
            captured = listener.wait()
        thread.join(5)

        assert captured.endswith("?code=first")
        assert not listener.is_listening
        with pytest.raises(ConnectionRefusedError):
            send_request(port, "/?code=second", timeout=2)

    def test_cancellation_unblocks_wait_and_closes_socket(self) -> None:
        token = CancellationToken()
        listener = RedirectListener(0)
        listener.start()
        port = listener.port

        token.cancel_after(0.2)
        started = time.monotonic()
        with pytest.raises(AuthCancelledError):
            listener.wait(token)
        elapsed = time.monotonic() - started

        assert elapsed < 3.0
        assert not listener.is_listening
        assert port_is_bindable(port)

    def test_already_cancelled_token_closes_immediately(self) -> None:
        token = CancellationToken()
        token.cancel()
        listener = RedirectListener(0)
        listener.start()
        with pytest.raises(AuthCancelledError):
            listener.wait(token)
        assert not listener.is_listening

    def test_cancel_registration_is_removed_after_wait(self) -> None:
        token = CancellationToken()
        with RedirectListener(0) as listener:
            thread, _ = _request_in_background(listener.port, "/?code=x")
            listener.wait(token)
        thread.join(5)
        assert token._callbacks == []

    def test_port_collision_raises_bind_error(self) -> None:
        with RedirectListener(0) as first:
            with pytest.raises(ListenerBindError, match=str(first.port)):
                RedirectListener(first.port).start()

    def test_rejects_non_loopback_host(self) -> None:
        with pytest.raises(InvalidRedirectHostError):
            RedirectListener(8080, host="192.168.1.10")

    def test_wait_before_start_raises(self) -> None:
        with pytest.raises(RuntimeError, match="before start"):
            RedirectListener(0).wait()

    def test_malformed_request_does_not_end_the_wait(self) -> None:
        with RedirectListener(0) as listener:
            port = listener.port

            def _garbage_then_valid() -> None:
                with socket.create_connection(("127.0.0.1", port), timeout=5) as s:
                    s.sendall(b"NOT AN HTTP REQUEST\r\n\r\n")
                    s.recv(1024)
                send_request(port, "/?code=real")

            thread = threading.Thread(target=_garbage_then_valid, daemon=True)
            thread.start()
            captured = listener.wait()
        thread.join(5)
        assert captured.endswith("/?code=real")

    def test_idle_connection_delays_redirect_only_briefly(self) -> None:
        with RedirectListener(0) as listener:
            port = listener.port
            idle = socket.create_connection(("127.0.0.1", port), timeout=5)
            try:
                thread, results = _request_in_background(port, "/?code=after-idle")
                started = time.monotonic()
                captured = listener.wait()
                elapsed = time.monotonic() - started
            finally:
                idle.close()
        thread.join(5)

        assert captured.endswith("/?code=after-idle")
        assert results[0][0] == 200
        assert elapsed < 4.0


class TestAwaitRedirect:
    def test_returns_captured_uri(self) -> None:
        port = free_port()
        results: list = []

        def _client() -> None:
            deadline = time.monotonic() + 5
            while time.monotonic() < deadline:
                try:
                    results.append(send_request(port, "/?code=ABC123&state=xyz"))
                    return
                except ConnectionRefusedError:
                    time.sleep(0.05)

        thread = threading.Thread(target=_client, daemon=True)
        thread.start()
        captured = await_redirect(port)
        thread.join(5)

        assert captured == f"http://localhost:{port}/?code=ABC123&state=xyz"
        assert results[0][0] == 200
