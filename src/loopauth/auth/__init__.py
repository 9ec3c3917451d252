"""Provider interfaces and the authentication-method registry.

The main entry points are:

- :class:`AuthProvider` -- base class for token providers.
- :class:`TokenExchange` -- adapter over the external OAuth library.
- :class:`WebUI` -- presents the authorization URL, captures the redirect.
- :class:`AuthManager` -- explicit registry mapping methods to providers.
- :func:`create_default_manager` -- builds a manager from
  :class:`~loopauth.models.ProviderSettings`.
"""

from loopauth.auth.base import AuthProvider, TokenExchange, WebUI
from loopauth.auth.manager import AuthManager, create_default_manager

__all__ = [
    "AuthManager",
    "AuthProvider",
    "TokenExchange",
    "WebUI",
    "create_default_manager",
]
