"""Exception hierarchy for loopauth.

All exceptions inherit from :class:`LoopauthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`loopauth.exit_codes`.
Every failure aborts the single authentication attempt; nothing here is
retried internally, so callers may always start a fresh attempt.

Subclass hierarchy::

    LoopauthError (exit 1)
    +-- ConfigError               (exit 2)
    +-- InvalidRedirectHostError  (exit 2)
    +-- AuthFailedError           (exit 3)
    +-- NoAvailablePortError      (exit 4)
    +-- ListenerBindError         (exit 4)
    +-- BrowserLaunchError        (exit 4)
    +-- UnsupportedMethodError    (exit 5)
    +-- AuthCancelledError        (exit 130)
"""

from __future__ import annotations

from typing import Optional

from loopauth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CANCELLED,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SETUP_FAILURE,
    EXIT_UNSUPPORTED_METHOD,
)


class LoopauthError(Exception):
    """Base exception for all loopauth errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(LoopauthError):
    """Raised for invalid settings or unresolvable credential sources."""

    exit_code = EXIT_INVALID_USAGE


class InvalidRedirectHostError(LoopauthError):
    """Raised when the redirect URI does not point back to the loopback interface."""

    exit_code = EXIT_INVALID_USAGE


class NoAvailablePortError(LoopauthError):
    """Raised when every port in the requested range is already in use."""

    exit_code = EXIT_SETUP_FAILURE


class ListenerBindError(LoopauthError):
    """Raised when the redirect listener cannot bind its port.

    Usually another flow won the race for the same port. Starting a new
    attempt reselects a port.
    """

    exit_code = EXIT_SETUP_FAILURE


class BrowserLaunchError(LoopauthError):
    """Raised when the system URI handler cannot be spawned."""

    exit_code = EXIT_SETUP_FAILURE


class UnsupportedMethodError(LoopauthError):
    """Raised when no provider handles the requested authentication method."""

    exit_code = EXIT_UNSUPPORTED_METHOD


class AuthCancelledError(LoopauthError):
    """Raised when the caller cancels the flow before the redirect arrives."""

    exit_code = EXIT_CANCELLED


class AuthFailedError(LoopauthError):
    """Raised when the authorization response is rejected.

    Covers denied consent, expired or replayed codes, state mismatches and
    token endpoint failures.

    Args:
        message: Human-readable error description.
        error: The OAuth ``error`` code, when the server supplied one.
        error_description: The server's ``error_description``, if any.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(
        self,
        message: str,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ):
        super().__init__(message)
        self.error = error
        self.error_description = error_description
