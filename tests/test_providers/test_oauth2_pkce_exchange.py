"""Tests for the OAuth2 PKCE token exchange."""

from __future__ import annotations

import base64
import hashlib
from unittest.mock import patch
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from loopauth.exceptions import AuthFailedError, ConfigError
from loopauth.models import AuthParameters
from loopauth.plugins.oauth2_pkce import OAuth2PkceTokenExchange, generate_pkce_pair

REDIRECT_URI = "http://localhost:43123"
TOKEN_URL = "https://login.example/tenant/oauth2/v2.0/token"


def _mock_response(data: dict, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        json=data,
        request=httpx.Request("POST", TOKEN_URL),
    )


@pytest.fixture()
def exchange() -> OAuth2PkceTokenExchange:
    return OAuth2PkceTokenExchange("client-123")


class TestGeneratePkcePair:
    def test_challenge_is_s256_of_verifier(self) -> None:
        verifier, challenge = generate_pkce_pair()
        digest = hashlib.sha256(verifier.encode("ascii")).digest()
        assert challenge == base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
        assert 43 <= len(verifier) <= 128

    def test_pairs_are_unique(self) -> None:
        assert generate_pkce_pair() != generate_pkce_pair()


class TestBegin:
    def test_requires_client_id(self) -> None:
        with pytest.raises(ConfigError):
            OAuth2PkceTokenExchange("")

    def test_authorization_url(
        self, exchange: OAuth2PkceTokenExchange, auth_params: AuthParameters
    ) -> None:
        pending = exchange.begin(auth_params, REDIRECT_URI)

        parsed = urlsplit(pending.authorization_url)
        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == (
            "https://login.example/tenant/oauth2/v2.0/authorize"
        )
        query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        assert query["client_id"] == "client-123"
        assert query["response_type"] == "code"
        assert query["redirect_uri"] == REDIRECT_URI
        assert query["scope"] == "https://database.example/.default"
        assert query["login_hint"] == "alice@example.com"
        assert query["client-request-id"] == "11111111-2222-3333-4444-555555555555"
        assert query["code_challenge_method"] == "S256"
        assert query["state"] == pending.state
        assert "code_verifier" in pending.context

    def test_no_login_hint_without_user(self, exchange: OAuth2PkceTokenExchange) -> None:
        params = AuthParameters(authority="https://login.example/tenant", resource="https://db")
        pending = exchange.begin(params, REDIRECT_URI)
        assert "login_hint" not in parse_qs(urlsplit(pending.authorization_url).query)

    def test_custom_endpoints(self, auth_params: AuthParameters) -> None:
        exchange = OAuth2PkceTokenExchange(
            "client-123",
            authorization_endpoint="https://idp.example/authorize?tenant=x",
            token_endpoint="https://idp.example/token",
        )
        pending = exchange.begin(auth_params, REDIRECT_URI)
        assert pending.authorization_url.startswith("https://idp.example/authorize?tenant=x&")
        assert exchange.token_endpoint(auth_params.authority) == "https://idp.example/token"


class TestComplete:
    def test_redeems_code(
        self, exchange: OAuth2PkceTokenExchange, auth_params: AuthParameters
    ) -> None:
        pending = exchange.begin(auth_params, REDIRECT_URI)
        response = _mock_response({"access_token": "pkce-token", "expires_in": 600})

        with patch(
            "loopauth.plugins.oauth2_pkce.plugin.httpx.post", return_value=response
        ) as mock_post:
            token = exchange.complete(
                pending, f"{REDIRECT_URI}/?code=ABC&state={pending.state}"
            )

        assert token.access_token == "pkce-token"
        assert mock_post.call_args.args[0] == TOKEN_URL
        data = mock_post.call_args.kwargs["data"]
        assert data["grant_type"] == "authorization_code"
        assert data["code"] == "ABC"
        assert data["redirect_uri"] == REDIRECT_URI
        assert data["code_verifier"] == pending.context["code_verifier"]
        assert "client_secret" not in data
        headers = mock_post.call_args.kwargs["headers"]
        assert headers["client-request-id"] == auth_params.correlation_id

    def test_state_mismatch(
        self, exchange: OAuth2PkceTokenExchange, auth_params: AuthParameters
    ) -> None:
        pending = exchange.begin(auth_params, REDIRECT_URI)
        with patch("loopauth.plugins.oauth2_pkce.plugin.httpx.post") as mock_post:
            with pytest.raises(AuthFailedError, match="state does not match"):
                exchange.complete(pending, f"{REDIRECT_URI}/?code=ABC&state=forged")
        mock_post.assert_not_called()

    def test_missing_code(
        self, exchange: OAuth2PkceTokenExchange, auth_params: AuthParameters
    ) -> None:
        pending = exchange.begin(auth_params, REDIRECT_URI)
        with pytest.raises(AuthFailedError, match="No authorization code"):
            exchange.complete(pending, f"{REDIRECT_URI}/?state={pending.state}")

    def test_http_error_carries_oauth_error(
        self, exchange: OAuth2PkceTokenExchange, auth_params: AuthParameters
    ) -> None:
        pending = exchange.begin(auth_params, REDIRECT_URI)
        response = _mock_response(
            {"error": "invalid_grant", "error_description": "Code was already redeemed"},
            status_code=400,
        )
        with patch("loopauth.plugins.oauth2_pkce.plugin.httpx.post", return_value=response):
            with pytest.raises(AuthFailedError, match="status 400") as exc_info:
                exchange.complete(pending, f"{REDIRECT_URI}/?code=ABC&state={pending.state}")
        assert exc_info.value.error == "invalid_grant"

    def test_connection_error(
        self, exchange: OAuth2PkceTokenExchange, auth_params: AuthParameters
    ) -> None:
        pending = exchange.begin(auth_params, REDIRECT_URI)
        with patch(
            "loopauth.plugins.oauth2_pkce.plugin.httpx.post",
            side_effect=httpx.ConnectError("Connection refused"),
        ):
            with pytest.raises(AuthFailedError, match="Connection refused"):
                exchange.complete(pending, f"{REDIRECT_URI}/?code=ABC&state={pending.state}")

    def test_missing_access_token(
        self, exchange: OAuth2PkceTokenExchange, auth_params: AuthParameters
    ) -> None:
        pending = exchange.begin(auth_params, REDIRECT_URI)
        response = _mock_response({"token_type": "Bearer"})
        with patch("loopauth.plugins.oauth2_pkce.plugin.httpx.post", return_value=response):
            with pytest.raises(AuthFailedError, match="access_token"):
                exchange.complete(pending, f"{REDIRECT_URI}/?code=ABC&state={pending.state}")

    def test_client_secret_resolved_at_redeem_time(
        self, auth_params: AuthParameters, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DB_CLIENT_SECRET", "s3cret")
        exchange = OAuth2PkceTokenExchange(
            "client-123", client_secret_source="env:DB_CLIENT_SECRET"
        )
        pending = exchange.begin(auth_params, REDIRECT_URI)
        response = _mock_response({"access_token": "pkce-token"})

        with patch(
            "loopauth.plugins.oauth2_pkce.plugin.httpx.post", return_value=response
        ) as mock_post:
            exchange.complete(pending, f"{REDIRECT_URI}/?code=ABC&state={pending.state}")

        assert mock_post.call_args.kwargs["data"]["client_secret"] == "s3cret"
