"""Cooperative cancellation for a single authentication attempt.

A :class:`CancellationToken` is created by the caller and handed to
:meth:`~loopauth.auth.base.AuthProvider.acquire_token`. Cancelling it
force-closes the redirect listener so the pending accept unblocks with
:class:`~loopauth.exceptions.AuthCancelledError`. A browser window that
was already opened is left alone.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from loopauth.exceptions import AuthCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """A one-way, thread-safe cancellation signal.

    Example::

        token = CancellationToken()
        token.cancel_after(300)
        manager.acquire_token(AuthMethod.INTERACTIVE, params, cancel_token=token)
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._timer: threading.Timer | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation and run every registered callback once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run *callback* when the token is cancelled.

        If the token is already cancelled the callback runs immediately.

        Returns:
            A function that removes the registration; safe to call twice.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def unregister() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return unregister
        callback()
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AuthCancelledError("Operation cancelled")

    def cancel_after(self, seconds: float) -> None:
        """Cancel automatically after *seconds* on a daemon timer."""
        if self._timer is not None:
            self._timer.cancel()
        self._timer = threading.Timer(seconds, self._expire, args=(seconds,))
        self._timer.daemon = True
        self._timer.start()

    def dispose(self) -> None:
        """Stop a pending :meth:`cancel_after` timer without cancelling."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self, seconds: float) -> None:
        logger.debug("Cancellation deadline of %ss reached", seconds)
        self.cancel()
