"""Tests for CancellationToken."""

from __future__ import annotations

import threading
import time

import pytest

from loopauth.cancellation import CancellationToken
from loopauth.exceptions import AuthCancelledError


class TestCancellationToken:
    def test_starts_uncancelled(self) -> None:
        token = CancellationToken()
        assert not token.is_cancelled
        token.raise_if_cancelled()

    def test_cancel_runs_callbacks_once(self) -> None:
        token = CancellationToken()
        calls: list[str] = []
        token.register(lambda: calls.append("a"))
        token.register(lambda: calls.append("b"))

        token.cancel()
        token.cancel()

        assert calls == ["a", "b"]
        assert token.is_cancelled

    def test_register_after_cancel_runs_immediately(self) -> None:
        token = CancellationToken()
        token.cancel()
        calls: list[int] = []
        unregister = token.register(lambda: calls.append(1))
        assert calls == [1]
        unregister()

    def test_unregister(self) -> None:
        token = CancellationToken()
        calls: list[int] = []
        unregister = token.register(lambda: calls.append(1))
        unregister()
        unregister()
        token.cancel()
        assert calls == []

    def test_raise_if_cancelled(self) -> None:
        token = CancellationToken()
        token.cancel()
        with pytest.raises(AuthCancelledError):
            token.raise_if_cancelled()

    def test_cancel_after(self) -> None:
        token = CancellationToken()
        fired = threading.Event()
        token.register(fired.set)
        token.cancel_after(0.05)
        assert fired.wait(2.0)
        assert token.is_cancelled

    def test_dispose_stops_timer(self) -> None:
        token = CancellationToken()
        token.cancel_after(0.05)
        token.dispose()
        time.sleep(0.2)
        assert not token.is_cancelled
