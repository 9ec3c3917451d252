"""MSAL-backed token exchange for the interactive provider.

:class:`MsalTokenExchange` lets MSAL own the OAuth protocol: it builds the
authorization URL (state, nonce and PKCE included) with
:meth:`msal.PublicClientApplication.initiate_auth_code_flow` and redeems
the captured redirect with
:meth:`msal.PublicClientApplication.acquire_token_by_auth_code_flow`,
which also validates the returned state.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
from urllib.parse import urlencode

import msal
import requests

from loopauth.auth.base import TokenExchange
from loopauth.exceptions import AuthFailedError, ConfigError
from loopauth.loopback.listener import parse_redirect_query
from loopauth.models import AcquiredToken, AuthParameters, PendingAuthorization

logger = logging.getLogger(__name__)

_DEFAULT_EXPIRES_IN = 3600


class MsalTokenExchange(TokenExchange):
    """Exchange the captured redirect for a token through MSAL.

    A fresh :class:`msal.PublicClientApplication` is built for every
    attempt, so no token cache survives between calls.

    Args:
        client_id: Public client (application) id registered with the
            authority.
        app_factory: Builds the MSAL application from
            ``(client_id, authority)``; tests pass a fake here.
    """

    def __init__(
        self,
        client_id: str,
        app_factory: Optional[Callable[[str, str], Any]] = None,
    ) -> None:
        if not client_id:
            raise ConfigError("A client id is required for the MSAL token exchange")
        self._client_id = client_id
        self._app_factory = app_factory or _build_public_client

    def begin(self, params: AuthParameters, redirect_uri: str) -> PendingAuthorization:
        try:
            app = self._app_factory(self._client_id, params.authority)
            flow = app.initiate_auth_code_flow(
                scopes=[params.scope],
                redirect_uri=redirect_uri,
                login_hint=params.user_hint,
            )
        except requests.RequestException as exc:
            # Authority discovery runs over the network when the app is built.
            raise AuthFailedError(
                f"Cannot reach authority '{params.authority}': {exc}"
            ) from exc
        if "auth_uri" not in flow:
            raise AuthFailedError(
                f"MSAL could not build an authorization request: {flow.get('error', flow)}",
                error=flow.get("error"),
                error_description=flow.get("error_description"),
            )

        separator = "&" if "?" in flow["auth_uri"] else "?"
        auth_url = (
            flow["auth_uri"]
            + separator
            + urlencode({"client-request-id": params.correlation_id})
        )
        return PendingAuthorization(
            authorization_url=auth_url,
            redirect_uri=redirect_uri,
            params=params,
            state=flow.get("state"),
            context={"app": app, "flow": flow},
        )

    def complete(
        self, pending: PendingAuthorization, captured_redirect: str
    ) -> AcquiredToken:
        app = pending.context["app"]
        flow = pending.context["flow"]
        auth_response = parse_redirect_query(captured_redirect)

        try:
            result = app.acquire_token_by_auth_code_flow(flow, auth_response)
        except ValueError as exc:
            # MSAL raises ValueError on state mismatch or a malformed response.
            raise AuthFailedError(f"Authorization response rejected: {exc}") from exc
        except requests.RequestException as exc:
            raise AuthFailedError(f"Token exchange failed: {exc}") from exc

        if "access_token" not in result:
            error = result.get("error")
            description = result.get("error_description")
            message = f"Token exchange failed: {error or 'unknown error'}"
            if description:
                message += f" - {description}"
            raise AuthFailedError(message, error=error, error_description=description)

        expires_in = int(result.get("expires_in", _DEFAULT_EXPIRES_IN))
        logger.debug(
            "MSAL redeemed authorization code (correlation id %s, expires in %ss)",
            pending.params.correlation_id,
            expires_in,
        )
        return AcquiredToken(
            access_token=result["access_token"],
            expires_on=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )


def _build_public_client(client_id: str, authority: str) -> msal.PublicClientApplication:
    try:
        return msal.PublicClientApplication(client_id, authority=authority)
    except ValueError as exc:
        raise ConfigError(f"Invalid authority '{authority}': {exc}") from exc
