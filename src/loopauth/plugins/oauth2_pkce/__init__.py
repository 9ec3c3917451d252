"""Plain OAuth2 authorization-code + PKCE token exchange.

For authorities that are not served by MSAL, or when MSAL is not wanted,
this exchange builds the authorization request itself and redeems the
code against the token endpoint over httpx (:rfc:`6749`, :rfc:`7636`).

Exports:
    :class:`OAuth2PkceTokenExchange` -- the exchange class.
    :func:`generate_pkce_pair` -- ``code_verifier`` / ``code_challenge`` helper.
"""

from loopauth.plugins.oauth2_pkce.plugin import (
    OAuth2PkceTokenExchange,
    generate_pkce_pair,
)

__all__ = ["OAuth2PkceTokenExchange", "generate_pkce_pair"]
