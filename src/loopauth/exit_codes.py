"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~loopauth.exceptions.LoopauthError` subclass.

Example::

    $ loopauth login --resource https://database.windows.net
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the token exchange rejected the response
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or configuration."""

EXIT_AUTH_FAILURE = 3
"""The authorization response was rejected or could not be redeemed."""

EXIT_SETUP_FAILURE = 4
"""The local flow could not be set up (no free port, bind failure, no browser)."""

EXIT_UNSUPPORTED_METHOD = 5
"""The requested authentication method has no provider."""

EXIT_CANCELLED = 130
"""The operation was cancelled by the user (matches SIGINT convention)."""
