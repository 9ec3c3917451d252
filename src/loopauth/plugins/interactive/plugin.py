"""Interactive authentication through the system browser.

This module provides :class:`InteractiveAuthProvider`, the provider for
the ``interactive`` method, and :class:`LoopbackBrowserWebUI`, the web UI
it uses by default. One call to
:meth:`InteractiveAuthProvider.acquire_token` performs:

1. Resolve the port: the configured fixed port, or a random free one.
2. Build the redirect URI ``http://localhost:<port>`` and check that it
   is a loopback address.
3. Ask the token exchange for the authorization URL
   (scope ``<resource>/.default``, login hint, correlation id).
4. Bind the redirect listener, then open the browser.
5. Wait for the redirect. Only the caller's cancellation token bounds
   this wait.
6. Redeem the captured redirect through the token exchange.

There is no token cache: every call is a full interactive round trip.

See Also:
    :mod:`loopauth.loopback` for the port selector, listener and launcher.
"""

from __future__ import annotations

import logging
from typing import Optional

from loopauth.auth.base import AuthProvider, TokenExchange, WebUI
from loopauth.cancellation import CancellationToken
from loopauth.exceptions import AuthFailedError
from loopauth.loopback.browser import BrowserLauncher, SystemBrowserLauncher
from loopauth.loopback.listener import (
    RedirectListener,
    ensure_loopback,
    format_host,
    parse_redirect_query,
)
from loopauth.loopback.ports import select_port
from loopauth.models import (
    AcquiredToken,
    AuthMethod,
    AuthParameters,
    ExchangeKind,
    ProviderSettings,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT_RANGE_START = 10000


class LoopbackBrowserWebUI(WebUI):
    """Open the system browser and capture the redirect on a loopback listener.

    Args:
        launcher: Browser launcher; defaults to
            :class:`~loopauth.loopback.browser.SystemBrowserLauncher`.
    """

    def __init__(self, launcher: Optional[BrowserLauncher] = None) -> None:
        self._launcher = launcher or SystemBrowserLauncher()

    def acquire_authorization_code(
        self,
        authorization_url: str,
        redirect_uri: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Open *authorization_url* and return the redirect sent to *redirect_uri*.

        Raises:
            InvalidRedirectHostError: If *redirect_uri* is not loopback.
            ListenerBindError: If the redirect port cannot be bound.
            BrowserLaunchError: If the browser cannot be started.
            AuthCancelledError: If *cancel_token* fires before the redirect.
        """
        host, port = ensure_loopback(redirect_uri)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        with RedirectListener(port, host=host) as listener:
            self._launcher.open(authorization_url)
            return listener.wait(cancel_token)


class InteractiveAuthProvider(AuthProvider):
    """Provider for :attr:`AuthMethod.INTERACTIVE <loopauth.models.AuthMethod.INTERACTIVE>`.

    Args:
        exchange: Token-exchange collaborator that builds the authorization
            URL and redeems the redirect.
        web_ui: Defaults to :class:`LoopbackBrowserWebUI`.
        port: Fixed redirect port. ``0`` selects a free port per call; any
            other value is used without an availability check.
        port_range_start: Lowest port considered by auto-selection.
        redirect_host: Host of the redirect URI. Must be loopback.
    """

    supported_methods = frozenset({AuthMethod.INTERACTIVE})

    def __init__(
        self,
        exchange: TokenExchange,
        web_ui: Optional[WebUI] = None,
        port: int = 0,
        port_range_start: int = DEFAULT_PORT_RANGE_START,
        redirect_host: str = "localhost",
    ) -> None:
        self._exchange = exchange
        self._web_ui = web_ui or LoopbackBrowserWebUI()
        self._port = port
        self._port_range_start = port_range_start
        self._redirect_host = redirect_host

    @classmethod
    def from_settings(
        cls, settings: ProviderSettings, web_ui: Optional[WebUI] = None
    ) -> "InteractiveAuthProvider":
        """Build a provider and its token exchange from *settings*."""
        exchange: TokenExchange
        if settings.exchange == ExchangeKind.OAUTH2_PKCE:
            from loopauth.plugins.oauth2_pkce import OAuth2PkceTokenExchange

            exchange = OAuth2PkceTokenExchange(
                settings.client_id,
                client_secret_source=settings.client_secret_source,
                authorization_endpoint=settings.authorization_endpoint,
                token_endpoint=settings.token_endpoint,
            )
        else:
            from loopauth.plugins.msal_exchange import MsalTokenExchange

            exchange = MsalTokenExchange(settings.client_id)

        return cls(
            exchange,
            web_ui=web_ui,
            port=settings.port,
            port_range_start=settings.port_range_start,
            redirect_host=settings.redirect_host,
        )

    def is_supported(self, method: AuthMethod) -> bool:
        return method in self.supported_methods

    def acquire_token(
        self,
        params: AuthParameters,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AcquiredToken:
        """Run the browser login and return the redeemed token.

        Raises:
            InvalidRedirectHostError: If the configured redirect host is not
                loopback. Raised before any port is bound or browser opened.
            NoAvailablePortError: If auto-selection finds no free port.
            ListenerBindError: If the redirect port cannot be bound.
            BrowserLaunchError: If the browser cannot be started.
            AuthCancelledError: If *cancel_token* fires before the redirect.
            AuthFailedError: If the redirect carries an error or the exchange
                rejects it.
        """
        ensure_loopback(f"http://{format_host(self._redirect_host)}:{self._port}")

        port = self._port or select_port(self._port_range_start)
        redirect_uri = f"http://{format_host(self._redirect_host)}:{port}"
        logger.info(
            "Starting interactive authentication for %s (correlation id %s, redirect %s)",
            params.resource,
            params.correlation_id,
            redirect_uri,
        )

        pending = self._exchange.begin(params, redirect_uri)
        captured = self._web_ui.acquire_authorization_code(
            pending.authorization_url, redirect_uri, cancel_token
        )

        response = parse_redirect_query(captured)
        if "error" in response:
            error = response["error"]
            description = response.get("error_description") or None
            message = f"Authorization failed: {error}"
            if description:
                message += f" - {description}"
            raise AuthFailedError(message, error=error, error_description=description)

        token = self._exchange.complete(pending, captured)
        logger.info(
            "Interactive authentication succeeded (correlation id %s, expires %s)",
            params.correlation_id,
            token.expires_on.isoformat(),
        )
        return token