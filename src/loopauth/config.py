"""Environment-driven configuration and credential source resolution.

* **Settings** -- :func:`load_settings` builds a
  :class:`~loopauth.models.ProviderSettings` from ``LOOPAUTH_*``
  environment variables. Keyword overrides (typically CLI flags) take
  precedence over the environment, which takes precedence over defaults.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files or an interactive prompt.

Recognised environment variables:

=================================== ==========================================
``LOOPAUTH_CLIENT_ID``              public client (application) id (required)
``LOOPAUTH_AUTHORITY``              default authority URL
``LOOPAUTH_PORT``                   fixed redirect port, ``0`` = auto-select
``LOOPAUTH_PORT_RANGE_START``       lowest auto-selected port
``LOOPAUTH_REDIRECT_HOST``          redirect host, must be loopback
``LOOPAUTH_EXCHANGE``               ``msal`` or ``oauth2_pkce``
``LOOPAUTH_CLIENT_SECRET_SOURCE``   credential source for a client secret
``LOOPAUTH_AUTHORIZATION_ENDPOINT`` oauth2_pkce authorization endpoint
``LOOPAUTH_TOKEN_ENDPOINT``         oauth2_pkce token endpoint
=================================== ==========================================
"""

from __future__ import annotations

import getpass
import os
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from loopauth.exceptions import ConfigError
from loopauth.models import ProviderSettings

ENV_PREFIX = "LOOPAUTH_"

_SETTING_FIELDS = (
    "client_id",
    "authority",
    "port",
    "port_range_start",
    "redirect_host",
    "exchange",
    "client_secret_source",
    "authorization_endpoint",
    "token_endpoint",
)


def load_settings(
    environ: Optional[Mapping[str, str]] = None, **overrides: Any
) -> ProviderSettings:
    """Resolve provider settings with precedence overrides > env > defaults.

    Args:
        environ: Environment mapping to read; defaults to ``os.environ``.
        **overrides: Field values that win over the environment. ``None``
            values are ignored so unset CLI flags fall through.

    Returns:
        The validated :class:`~loopauth.models.ProviderSettings`.

    Raises:
        ConfigError: If ``client_id`` is missing or any value is invalid.
    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {}
    for field in _SETTING_FIELDS:
        value = env.get(ENV_PREFIX + field.upper())
        if value:
            data[field] = value

    unknown = set(overrides) - set(_SETTING_FIELDS)
    if unknown:
        raise ConfigError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
    data.update({k: v for k, v in overrides.items() if v is not None})

    if not data.get("client_id"):
        raise ConfigError(
            f"No client id configured; set {ENV_PREFIX}CLIENT_ID or pass --client-id"
        )

    try:
        return ProviderSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter client secret: ")

    raise ConfigError(f"Unknown credential source format: {source}")
