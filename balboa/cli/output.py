"""Output formatting utilities for the Balboa CLI.

Supports two output formats:
- json: Machine-readable JSON (default, for piping)
- pretty: Indented JSON for human reading
"""

import json
import sys
from enum import Enum
from typing import Any, Optional

import typer

# Exit codes
EXIT_SUCCESS = 0
EXIT_VERIFICATION_FAILURE = 1
EXIT_CLIENT_ERROR = 2
EXIT_IO_ERROR = 3


class OutputFormat(str, Enum):
    """Output format options."""

    json = "json"
    pretty = "pretty"


def output(data: Any, format: OutputFormat = OutputFormat.json) -> None:
    """Output data as JSON to stdout."""
    indent = 2 if format == OutputFormat.pretty else None
    try:
        print(json.dumps(data, indent=indent, default=str))
    except TypeError as e:
        typer.echo(f"Error serializing output: {e}", err=True)
        raise typer.Exit(EXIT_CLIENT_ERROR) from e


def output_error(
    code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
    exit_code: int = EXIT_VERIFICATION_FAILURE,
) -> None:
    """Output an error as JSON to stderr and exit."""
    error_data: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        error_data["error"]["details"] = details
    print(json.dumps(error_data), file=sys.stderr)
    raise typer.Exit(exit_code)
