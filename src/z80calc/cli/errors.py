"""
Unified CLI Error Handling
==========================

Provides consistent error messages and exit codes for the z80calc command.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click


class ExitCode(IntEnum):
    """Exit codes of the z80calc command."""
    SUCCESS = 0
    BUILD_ERROR = 1      # Generation error or invalid command line
    OUTPUT_ERROR = 2     # Output file could not be written
    INTERNAL_ERROR = 3   # Unexpected internal error


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Report an exception raised while running a command and exit.

    Args:
        error: The exception that was raised
        verbose: If True, print full traceback for internal errors
        error_type: Optional prefix for the error message (e.g., "Generation")

    Raises:
        SystemExit: Always exits with an appropriate exit code
    """
    from z80calc.errors import GenerationError, Z80CalcError

    if isinstance(error, GenerationError):
        # Already formatted with "error:" and an optional hint line
        click.echo(str(error), err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    elif isinstance(error, Z80CalcError):
        prefix = f"{error_type} error: " if error_type else "Error: "
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    elif isinstance(error, click.BadParameter):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    elif isinstance(error, OSError):
        # Unwritable output path, missing directory, permission denied
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.OUTPUT_ERROR)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
