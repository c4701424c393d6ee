"""
Unified CLI Error Handling
==========================

Provides consistent error handling and exit codes for spcplay.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click

from spcduino.errors import CommsError, SpcduinoError


class ExitCode(IntEnum):
    """Standard exit codes for CLI tools."""
    SUCCESS = 0
    DEVICE_ERROR = 1     # Snapshot, composition or device error
    INVALID_ARGS = 2     # Invalid arguments or missing files
    INTERNAL_ERROR = 3   # Unexpected internal error


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Unified exception handler for the CLI.

    Formats the error message appropriately, optionally prints traceback
    in verbose mode, and exits with the correct exit code.

    Args:
        error: The exception that was raised
        verbose: If True, print full traceback for internal errors
        error_type: Optional prefix for the error message (e.g., "Playback")

    Raises:
        SystemExit: Always exits with an appropriate exit code
    """
    if isinstance(error, CommsError):
        prefix = f"{error_type} error: " if error_type else "Communication error: "
        click.echo(f"{prefix}{error}", err=True)
        if error.__cause__ is not None and verbose:
            click.echo(f"  caused by: {error.__cause__}", err=True)
        sys.exit(ExitCode.DEVICE_ERROR)

    elif isinstance(error, SpcduinoError):
        prefix = f"{error_type} error: " if error_type else "Error: "
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.DEVICE_ERROR)

    elif isinstance(error, (click.BadParameter, ValueError)):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, (FileNotFoundError, PermissionError)):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
