"""Interactive browser login provider.

Implements :attr:`~loopauth.models.AuthMethod.INTERACTIVE`: select a
loopback port, open the system browser at the authorization URL, capture
the redirect on a single-shot listener and redeem it through a
:class:`~loopauth.auth.base.TokenExchange`.

Exports:
    :class:`InteractiveAuthProvider` -- the provider class.
    :class:`LoopbackBrowserWebUI` -- the browser + loopback listener web UI.
"""

from loopauth.plugins.interactive.plugin import (
    DEFAULT_PORT_RANGE_START,
    InteractiveAuthProvider,
    LoopbackBrowserWebUI,
)

__all__ = [
    "DEFAULT_PORT_RANGE_START",
    "InteractiveAuthProvider",
    "LoopbackBrowserWebUI",
]
