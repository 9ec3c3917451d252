"""Canonical Pydantic models shared across all loopauth modules.

The models fall into three groups:

**Flow inputs and outputs** -- what the database layer hands in and gets
back: :class:`AuthMethod`, :class:`AuthParameters` and
:class:`AcquiredToken`.

**Flow state** -- :class:`PendingAuthorization`, created by a
:class:`~loopauth.auth.base.TokenExchange` when the authorization URL is
built and consumed once the redirect has been captured.

**Configuration** -- :class:`ProviderSettings`, loaded from the
environment by :func:`loopauth.config.load_settings`.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuthMethod(str, enum.Enum):
    """Authentication method identifiers known to the database layer.

    Only :attr:`INTERACTIVE` is handled by this package; the others exist
    so that a dispatcher can ask a provider about them and get a clean
    refusal.
    """

    INTERACTIVE = "interactive"
    PASSWORD = "password"
    INTEGRATED = "integrated"
    DEVICE_CODE_FLOW = "device_code_flow"
    SERVICE_PRINCIPAL = "service_principal"
    MANAGED_IDENTITY = "managed_identity"
    DEFAULT = "default"


class ExchangeKind(str, enum.Enum):
    """Which token-exchange collaborator the default manager wires in."""

    MSAL = "msal"
    OAUTH2_PKCE = "oauth2_pkce"


# --- Flow inputs and outputs ---


class AuthParameters(BaseModel):
    """Per-attempt authentication request supplied by the caller.

    Constructed once per attempt and consumed once. Immutable.

    Example::

        AuthParameters(
            authority="https://login.microsoftonline.com/common",
            resource="https://database.windows.net",
            user_hint="alice@contoso.com",
        )
    """

    model_config = ConfigDict(frozen=True)

    authority: str = Field(description="Authority URL of the identity provider")
    resource: str = Field(description="Resource the token is requested for")
    user_hint: Optional[str] = Field(
        default=None, description="Login hint pre-filled in the sign-in page"
    )
    correlation_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Opaque identifier correlating this attempt across services",
    )

    @field_validator("authority")
    @classmethod
    def _authority_is_http_url(cls, value: str) -> str:
        if not value.startswith(("https://", "http://")):
            raise ValueError(f"authority must be an http(s) URL, got {value!r}")
        return value.rstrip("/")

    @property
    def scope(self) -> str:
        """The single scope requested: ``<resource>/.default``."""
        return f"{self.resource}/.default"


class AcquiredToken(BaseModel):
    """A bearer token produced by one successful interactive round trip."""

    access_token: str
    expires_on: datetime

    @property
    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.expires_on

    def __repr__(self) -> str:
        return f"AcquiredToken(access_token='***', expires_on={self.expires_on.isoformat()!r})"


# --- Flow state ---


class PendingAuthorization(BaseModel):
    """State kept between building the authorization URL and redeeming the code.

    ``context`` holds whatever the exchange collaborator needs to finish
    (an MSAL auth-code-flow dict, a PKCE verifier, ...).
    """

    authorization_url: str
    redirect_uri: str
    params: AuthParameters
    state: Optional[str] = None
    context: dict[str, Any] = Field(default_factory=dict)


# --- Configuration ---


class ProviderSettings(BaseModel):
    """Settings for the interactive provider and its token exchange.

    ``port`` of ``0`` means "select a free port per attempt"; any other
    value is used as-is without an availability check.
    """

    client_id: str = Field(description="Public client (application) id")
    authority: str = Field(
        default="https://login.microsoftonline.com/organizations",
        description="Default authority when the caller does not supply one",
    )
    port: int = Field(default=0, ge=0, le=65535)
    port_range_start: int = Field(default=10000, ge=1, le=65535)
    redirect_host: str = Field(default="localhost")
    exchange: ExchangeKind = ExchangeKind.MSAL
    client_secret_source: Optional[str] = Field(
        default=None,
        description="Credential source for a confidential client: env:VAR, file:/path, prompt",
    )
    authorization_endpoint: Optional[str] = None
    token_endpoint: Optional[str] = None
