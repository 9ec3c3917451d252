"""loopauth -- interactive OAuth login through the system browser.

This package obtains an OAuth access token for a database connection by
sending the user to their default browser and capturing the authorization
redirect on a single-shot HTTP listener bound to the loopback interface.

Typical usage::

    from loopauth import AuthMethod, AuthParameters, create_default_manager
    from loopauth.config import load_settings

    manager = create_default_manager(load_settings())
    token = manager.acquire_token(
        AuthMethod.INTERACTIVE,
        AuthParameters(
            authority="https://login.microsoftonline.com/contoso.onmicrosoft.com",
            resource="https://database.windows.net",
            user_hint="alice@contoso.com",
        ),
    )

Modules:
    app: Typer CLI entry point.
    models: Pydantic models shared across the package.
    config: Environment-driven settings and credential resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    loopback: Port selection, redirect listener and browser launcher.
    auth: Provider/exchange interfaces and the method registry.
    plugins: Concrete providers and token-exchange collaborators.
"""

__version__ = "0.1.0"

from loopauth.auth.manager import AuthManager, create_default_manager  # noqa: E402
from loopauth.cancellation import CancellationToken  # noqa: E402
from loopauth.models import AcquiredToken, AuthMethod, AuthParameters  # noqa: E402

__all__ = [
    "AcquiredToken",
    "AuthManager",
    "AuthMethod",
    "AuthParameters",
    "CancellationToken",
    "create_default_manager",
]
