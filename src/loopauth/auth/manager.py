"""Auth manager -- registry and dispatcher for token providers.

The :class:`AuthManager` maps :class:`~loopauth.models.AuthMethod`
identifiers to :class:`~loopauth.auth.base.AuthProvider` instances and
routes :meth:`~AuthManager.acquire_token` calls to them. It is a plain
value owned by the caller, so tests can build isolated registries.

For most use cases, call :func:`create_default_manager` to get a manager
with the interactive provider registered.
"""

from __future__ import annotations

import logging
from typing import Optional

from loopauth.auth.base import AuthProvider
from loopauth.cancellation import CancellationToken
from loopauth.exceptions import UnsupportedMethodError
from loopauth.models import AcquiredToken, AuthMethod, AuthParameters, ProviderSettings

logger = logging.getLogger(__name__)


class AuthManager:
    """Registry and dispatcher for authentication providers.

    Example::

        manager = AuthManager()
        manager.register(AuthMethod.INTERACTIVE, provider)
        token = manager.acquire_token(AuthMethod.INTERACTIVE, params)
    """

    def __init__(self) -> None:
        self._providers: dict[AuthMethod, AuthProvider] = {}

    def register(self, method: AuthMethod, provider: AuthProvider) -> None:
        """Register *provider* for *method*, replacing any previous one.

        Raises:
            UnsupportedMethodError: If the provider does not support *method*.
        """
        method = AuthMethod(method)
        provider.ensure_supported(method)
        self._providers[method] = provider
        logger.debug("Registered %s for '%s'", type(provider).__name__, method.value)

    def get_provider(self, method: AuthMethod) -> AuthProvider:
        """Retrieve the provider registered for *method*.

        Raises:
            UnsupportedMethodError: If no provider is registered for *method*.
        """
        method = AuthMethod(method)
        provider = self._providers.get(method)
        if provider is None:
            available = ", ".join(self.list_methods()) or "(none)"
            raise UnsupportedMethodError(
                f"No provider registered for authentication method "
                f"'{method.value}'. Available methods: {available}"
            )
        return provider

    def acquire_token(
        self,
        method: AuthMethod,
        params: AuthParameters,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AcquiredToken:
        """Dispatch a token request to the provider for *method*."""
        provider = self.get_provider(method)
        provider.ensure_supported(method)
        return provider.acquire_token(params, cancel_token=cancel_token)

    def list_methods(self) -> list[str]:
        """Return the identifiers of all registered methods, sorted."""
        return sorted(m.value for m in self._providers)


def create_default_manager(settings: ProviderSettings) -> AuthManager:
    """Create an :class:`AuthManager` with the interactive provider registered.

    The token exchange is chosen by ``settings.exchange``:

    - ``msal`` -- :class:`~loopauth.plugins.msal_exchange.MsalTokenExchange`.
    - ``oauth2_pkce`` --
      :class:`~loopauth.plugins.oauth2_pkce.OAuth2PkceTokenExchange`.
    """
    from loopauth.plugins.interactive import InteractiveAuthProvider

    manager = AuthManager()
    manager.register(
        AuthMethod.INTERACTIVE, InteractiveAuthProvider.from_settings(settings)
    )
    return manager
