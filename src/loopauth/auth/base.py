"""Abstract capability interfaces of the authentication subsystem.

This module defines the three seams of an interactive login:

- :class:`AuthProvider` -- what the dispatcher calls: a capability check
  plus :meth:`~AuthProvider.acquire_token`.
- :class:`TokenExchange` -- the external OAuth library, reduced to
  "build an authorization request" and "redeem the captured redirect".
- :class:`WebUI` -- the user-facing half: show the authorization URL and
  return the redirect URI the authorization server sent back.

Tests substitute fakes for :class:`TokenExchange` and :class:`WebUI` (or
its browser launcher) so the flow runs without a network or a browser.

See Also:
    :mod:`loopauth.auth.manager` for provider registration and dispatch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from loopauth.cancellation import CancellationToken
from loopauth.exceptions import UnsupportedMethodError
from loopauth.models import AcquiredToken, AuthMethod, AuthParameters, PendingAuthorization


class AuthProvider(ABC):
    """Base class for token providers registered with the dispatcher."""

    @abstractmethod
    def is_supported(self, method: AuthMethod) -> bool:
        """Return whether this provider handles *method*. Must have no side effects."""
        ...

    @abstractmethod
    def acquire_token(
        self,
        params: AuthParameters,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AcquiredToken:
        """Run one full authentication round trip and return the token.

        Args:
            params: Authority, resource, user hint and correlation id for
                this attempt.
            cancel_token: Optional token bounding the wait for the user.

        Raises:
            LoopauthError: Any subclass; the attempt is aborted cleanly.
        """
        ...

    def ensure_supported(self, method: AuthMethod) -> None:
        """Raise :class:`UnsupportedMethodError` unless *method* is handled."""
        if not self.is_supported(method):
            raise UnsupportedMethodError(
                f"{type(self).__name__} does not support authentication "
                f"method '{AuthMethod(method).value}'"
            )


class TokenExchange(ABC):
    """Adapter over an OAuth library that owns the protocol details."""

    @abstractmethod
    def begin(self, params: AuthParameters, redirect_uri: str) -> PendingAuthorization:
        """Build the authorization URL and the state needed to finish later."""
        ...

    @abstractmethod
    def complete(
        self, pending: PendingAuthorization, captured_redirect: str
    ) -> AcquiredToken:
        """Redeem the captured redirect URI for an access token.

        Raises:
            AuthFailedError: If the response is rejected or cannot be redeemed.
        """
        ...


class WebUI(ABC):
    """Presents the authorization URL to the user and captures the redirect."""

    @abstractmethod
    def acquire_authorization_code(
        self,
        authorization_url: str,
        redirect_uri: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Return the full redirect URI the authorization server sent back."""
        ...
