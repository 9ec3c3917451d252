"""Token exchange backed by the Microsoft Authentication Library (MSAL).

Exports:
    :class:`MsalTokenExchange` -- public-client auth-code flow through
    :class:`msal.PublicClientApplication`.
"""

from loopauth.plugins.msal_exchange.plugin import MsalTokenExchange

__all__ = ["MsalTokenExchange"]
