"""Typer application and CLI entry point for loopauth.

Commands:

* ``loopauth login`` -- run the interactive browser login and print the
  acquired token's metadata.
* ``loopauth port`` -- print one port chosen by the port selector.
* ``loopauth methods`` -- list authentication method identifiers and
  whether this package handles them.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.
"""

from __future__ import annotations

import logging
import signal
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, Optional

import typer
from pydantic import ValidationError

from loopauth import __version__
from loopauth.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE
from loopauth.models import ExchangeKind

if TYPE_CHECKING:
    from loopauth.cancellation import CancellationToken

app = typer.Typer(
    name="loopauth",
    help="Interactive OAuth login through the system browser and a loopback redirect.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"loopauth {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    from rich.logging import RichHandler

    logger = logging.getLogger("loopauth")
    logger.handlers.clear()
    if verbose:
        logger.addHandler(RichHandler(show_path=False, rich_tracebacks=False))
        logger.setLevel(logging.DEBUG)
    else:
        logger.addHandler(logging.NullHandler())


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Initialise output and logging from the global flags."""
    from loopauth.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    )
    _configure_logging(verbose)


@contextmanager
def _exit_on_error() -> Iterator[None]:
    """Report :class:`~loopauth.exceptions.LoopauthError` and exit with its code."""
    from loopauth.exceptions import LoopauthError
    from loopauth.output import error

    try:
        yield
    except LoopauthError as exc:
        error(str(exc))
        raise typer.Exit(exc.exit_code) from None


def _preview(token: str) -> str:
    return f"{token[:16]}..." if len(token) > 16 else "***"


@app.command("login")
def login_command(
    resource: str = typer.Option(
        ..., "--resource", "-r", help="Resource to request a token for."
    ),
    authority: Optional[str] = typer.Option(
        None, "--authority", "-a", help="Authority URL (default: from settings)."
    ),
    user: Optional[str] = typer.Option(
        None, "--user", "-u", help="Login hint shown on the sign-in page."
    ),
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="Public client id (default: $LOOPAUTH_CLIENT_ID)."
    ),
    port: Optional[int] = typer.Option(
        None, "--port", help="Fixed redirect port; 0 selects a free one."
    ),
    exchange: Optional[ExchangeKind] = typer.Option(
        None, "--exchange", help="Token exchange implementation."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Give up after this many seconds."
    ),
    show_token: bool = typer.Option(
        False, "--show-token", help="Print the full access token."
    ),
) -> None:
    """Sign in through the browser and print the acquired token."""
    from loopauth.auth.manager import create_default_manager
    from loopauth.cancellation import CancellationToken
    from loopauth.config import load_settings
    from loopauth.exceptions import ConfigError
    from loopauth.models import AuthMethod, AuthParameters
    from loopauth.output import debug, get_output, info, success

    with _exit_on_error():
        settings = load_settings(
            client_id=client_id, authority=authority, port=port, exchange=exchange
        )
        try:
            params = AuthParameters(
                authority=settings.authority, resource=resource, user_hint=user
            )
        except ValidationError as exc:
            raise ConfigError(f"Invalid login parameters: {exc}") from exc
        manager = create_default_manager(settings)

        cancel_token = CancellationToken()
        if timeout:
            cancel_token.cancel_after(timeout)
        debug(f"Correlation id: {params.correlation_id}")
        info("Opening the browser to sign in...")
        try:
            with _cancel_on_sigint(cancel_token):
                token = manager.acquire_token(
                    AuthMethod.INTERACTIVE, params, cancel_token=cancel_token
                )
        finally:
            cancel_token.dispose()

    success("Authenticated successfully.")
    get_output().print_record(
        {
            "access_token": token.access_token if show_token else _preview(token.access_token),
            "expires_on": token.expires_on.isoformat(),
            "correlation_id": params.correlation_id,
        },
        title="Access token",
    )


@app.command("port")
def port_command(
    start: int = typer.Option(10000, "--start", help="Lowest port to consider."),
) -> None:
    """Print a free TCP port chosen at random from [start, 65535]."""
    from loopauth.loopback.ports import select_port
    from loopauth.output import print_data

    with _exit_on_error():
        print_data(str(select_port(start)))


@app.command("methods")
def methods_command() -> None:
    """List authentication methods and whether loopauth handles them."""
    from loopauth.models import AuthMethod
    from loopauth.output import get_output
    from loopauth.plugins.interactive import InteractiveAuthProvider

    rows = [
        [
            method.value,
            "yes" if method in InteractiveAuthProvider.supported_methods else "no",
        ]
        for method in AuthMethod
    ]
    get_output().print_table(["method", "supported"], rows, title="Authentication methods")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


@contextmanager
def _cancel_on_sigint(cancel_token: CancellationToken) -> Iterator[None]:
    """Route Ctrl-C to *cancel_token* while a login is waiting for the browser.

    The listener notices the cancellation, releases its port and the login
    fails with :class:`~loopauth.exceptions.AuthCancelledError`.
    """

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        cancel_token.cancel()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def main() -> None:
    """CLI entry point invoked by the ``loopauth`` console script.

    Unhandled :class:`~loopauth.exceptions.LoopauthError` instances cause
    a clean exit with the error's ``exit_code``; anything else exits with
    :data:`~loopauth.exit_codes.EXIT_GENERIC_FAILURE`.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except Exception as exc:
        from loopauth.exceptions import LoopauthError
        from loopauth.output import error

        if isinstance(exc, LoopauthError):
            error(str(exc))
            sys.exit(exc.exit_code)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
