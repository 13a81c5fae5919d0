"""
CLI Error Handling
==================

Maps codec exceptions to a diagnostic line and a process exit code.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click


class ExitCode(IntEnum):
    """Exit codes for damsdecode."""
    SUCCESS = 0
    CODEC_ERROR = 1      # Bad mnemonic/token, malformed input, file I/O failure
    INVALID_ARGS = 2     # Invalid arguments (reported by Click itself)
    INTERNAL_ERROR = 3   # Unexpected internal error


def handle_cli_exception(error: Exception, verbose: bool = False) -> NoReturn:
    """
    Report an exception on stderr and exit with the matching code.

    Args:
        error: The exception that was raised
        verbose: If True, print full traceback for internal errors

    Raises:
        SystemExit: Always
    """
    from dams_codec.errors import CodecError, DamsError

    if isinstance(error, CodecError):
        # Already formatted as "file:line: error: ..."
        click.echo(str(error), err=True)
        sys.exit(ExitCode.CODEC_ERROR)

    elif isinstance(error, DamsError):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.CODEC_ERROR)

    elif isinstance(error, OSError):
        # stdout/stderr failures outside the codec's own files
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.CODEC_ERROR)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
