"""Error boundary handling for CLI commands.

Known failures are reported as a single ``Error:`` line, followed by a next
step when agentpack can suggest one, and exit with status 1.
"""

import functools
from collections.abc import Callable
from typing import Any

import click

from agentpack.errors import AgentPackError, LedgerError, NotInstalledError
from agentpack.io.ledger import LEDGER_DIR, LEDGER_FILENAME

HANDLED_ERRORS = (AgentPackError, FileNotFoundError, PermissionError, ValueError)


def format_error(error: Exception) -> str:
    """User-facing message for a handled error."""
    message = f"Error: {error}"
    if isinstance(error, NotInstalledError):
        return f"{message}\nRun 'agentpack list' to see installed packages."
    if isinstance(error, LedgerError):
        return (
            f"{message}\nRepair or delete {LEDGER_DIR}/{LEDGER_FILENAME}, "
            "then reinstall your packages."
        )
    if isinstance(error, PermissionError):
        return f"{message}\nCheck write access to the workspace and the package source."
    return message


def cli_error_boundary[T: Callable[..., Any]](func: T) -> T:
    """Report ``HANDLED_ERRORS`` without a traceback.

    All other exceptions bubble up with full stack traces.

    Example:
        @click.command()
        @cli_error_boundary
        def my_command():
            ...
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except HANDLED_ERRORS as e:
            click.echo(format_error(e), err=True)
            raise SystemExit(1) from None

    return wrapper  # type: ignore[return-value]
