"""OAuth2 Authorization Code with PKCE token exchange over httpx.

:class:`OAuth2PkceTokenExchange` implements
:class:`~loopauth.auth.base.TokenExchange` without an identity library:

1. :meth:`~OAuth2PkceTokenExchange.begin` generates a PKCE pair and a
   random ``state`` and builds the authorization URL.
2. :meth:`~OAuth2PkceTokenExchange.complete` checks the returned ``state``
   and POSTs the code to the token endpoint.

Endpoints default to the Microsoft identity platform v2 layout under the
authority (``<authority>/oauth2/v2.0/authorize`` and ``.../token``).
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from loopauth.auth.base import TokenExchange
from loopauth.config import resolve_credential
from loopauth.exceptions import AuthFailedError, ConfigError
from loopauth.loopback.listener import parse_redirect_query
from loopauth.models import AcquiredToken, AuthParameters, PendingAuthorization

logger = logging.getLogger(__name__)

_DEFAULT_EXPIRES_IN = 3600.0


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    # RFC 7636: 43-128 characters from unreserved character set
    code_verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return code_verifier, code_challenge


class OAuth2PkceTokenExchange(TokenExchange):
    """Authorization-code + PKCE exchange against explicit OAuth2 endpoints.

    Args:
        client_id: Client id sent in both requests.
        client_secret_source: Optional credential source (``env:VAR``,
            ``file:/path``, ``prompt``) for confidential clients. Resolved
            only when the code is redeemed.
        authorization_endpoint: Overrides ``<authority>/oauth2/v2.0/authorize``.
        token_endpoint: Overrides ``<authority>/oauth2/v2.0/token``.
        timeout: Token request timeout in seconds.
    """

    def __init__(
        self,
        client_id: str,
        client_secret_source: Optional[str] = None,
        authorization_endpoint: Optional[str] = None,
        token_endpoint: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        if not client_id:
            raise ConfigError("A client id is required for the OAuth2 token exchange")
        self._client_id = client_id
        self._client_secret_source = client_secret_source
        self._authorization_endpoint = authorization_endpoint
        self._token_endpoint = token_endpoint
        self._timeout = timeout

    def authorization_endpoint(self, authority: str) -> str:
        return self._authorization_endpoint or f"{authority}/oauth2/v2.0/authorize"

    def token_endpoint(self, authority: str) -> str:
        return self._token_endpoint or f"{authority}/oauth2/v2.0/token"

    def begin(self, params: AuthParameters, redirect_uri: str) -> PendingAuthorization:
        code_verifier, code_challenge = generate_pkce_pair()
        state = secrets.token_urlsafe(24)

        query: dict[str, str] = {
            "client_id": self._client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "scope": params.scope,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
            "client-request-id": params.correlation_id,
        }
        if params.user_hint:
            query["login_hint"] = params.user_hint

        endpoint = self.authorization_endpoint(params.authority)
        separator = "&" if "?" in endpoint else "?"
        return PendingAuthorization(
            authorization_url=f"{endpoint}{separator}{urlencode(query)}",
            redirect_uri=redirect_uri,
            params=params,
            state=state,
            context={"code_verifier": code_verifier},
        )

    def complete(
        self, pending: PendingAuthorization, captured_redirect: str
    ) -> AcquiredToken:
        response = parse_redirect_query(captured_redirect)

        if response.get("state") != pending.state:
            raise AuthFailedError(
                "Authorization response state does not match the pending request"
            )
        code = response.get("code")
        if not code:
            raise AuthFailedError("No authorization code received from callback")

        token_data = self._exchange_code(pending, code)
        expires_in = token_data.get("expires_in")
        seconds = float(expires_in) if expires_in is not None else _DEFAULT_EXPIRES_IN
        return AcquiredToken(
            access_token=token_data["access_token"],
            expires_on=datetime.now(timezone.utc) + timedelta(seconds=seconds),
        )

    def _exchange_code(self, pending: PendingAuthorization, code: str) -> dict[str, Any]:
        """POST the authorization code to the token endpoint.

        Returns:
            The parsed JSON token response containing at least
            ``access_token``.

        Raises:
            AuthFailedError: On HTTP errors or if ``access_token`` is missing
                from the response.
        """
        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "client_id": self._client_id,
            "code": code,
            "redirect_uri": pending.redirect_uri,
            "code_verifier": pending.context["code_verifier"],
            "scope": pending.params.scope,
        }
        if self._client_secret_source:
            data["client_secret"] = resolve_credential(self._client_secret_source)

        token_url = self.token_endpoint(pending.params.authority)
        try:
            response = httpx.post(
                token_url,
                data=data,
                headers={
                    "Accept": "application/json",
                    "client-request-id": pending.params.correlation_id,
                },
                timeout=self._timeout,
            )
            response.raise_for_status()
            token_data: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            error, description = _error_fields(exc.response)
            raise AuthFailedError(
                f"Token exchange failed with status {exc.response.status_code}: "
                f"{description or error or exc.response.text}",
                error=error,
                error_description=description,
            ) from exc
        except httpx.HTTPError as exc:
            raise AuthFailedError(f"Token exchange failed: {exc}") from exc

        if "access_token" not in token_data:
            raise AuthFailedError("Token response missing 'access_token' field")

        logger.debug(
            "Token endpoint %s redeemed authorization code (correlation id %s)",
            token_url,
            pending.params.correlation_id,
        )
        return token_data


def _error_fields(response: httpx.Response) -> tuple[Optional[str], Optional[str]]:
    try:
        body = response.json()
    except ValueError:
        return None, None
    if not isinstance(body, dict):
        return None, None
    return body.get("error"), body.get("error_description")
