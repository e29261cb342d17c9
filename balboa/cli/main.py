"""Balboa CLI - developer tools for the verification service.

Commands:
    balboa verify --email a@b.com     Run a full verification
    balboa status <session-id>        Show the current session status
    balboa sign <payload>             Sign a webhook payload
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from balboa.client import VerificationClient
from balboa.config import BALBOA_LOG_LEVEL, BALBOA_WEBHOOK_SECRET, ClientConfig
from balboa.exceptions import BalboaError, VerificationFailedError
from balboa.models import VerificationOptions
from balboa.progress import ProgressStage
from balboa.webhook import compute_signature

from .output import (
    EXIT_CLIENT_ERROR,
    EXIT_IO_ERROR,
    EXIT_VERIFICATION_FAILURE,
    OutputFormat,
    output,
    output_error,
)

app = typer.Typer(
    name="balboa",
    help="Balboa CLI - voice verification client tools.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from balboa import __version__

        typer.echo(f"balboa version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: str = typer.Option(
        BALBOA_LOG_LEVEL, "--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)"
    ),
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Balboa CLI - voice verification client tools.

    Connection settings come from BALBOA_BASE_URL, BALBOA_API_KEY,
    BALBOA_TIMEOUT_MS and BALBOA_RETRIES. Output is JSON by default.
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _load_config(base_url: Optional[str]) -> ClientConfig:
    try:
        if base_url:
            return ClientConfig.from_env(base_url=base_url)
        return ClientConfig.from_env()
    except BalboaError as e:
        output_error(e.code.value, e.message, exit_code=EXIT_CLIENT_ERROR)
        raise


def _print_stage(stage: ProgressStage) -> None:
    typer.echo(f"[{stage.value}]", err=True)


@app.command("verify")
def verify_cmd(
    email: Optional[str] = typer.Option(None, "--email", "-e", help="Customer email"),
    transaction_id: Optional[str] = typer.Option(
        None, "--transaction-id", "-t", help="Transaction identifier"
    ),
    risk_level: Optional[float] = typer.Option(None, "--risk-level", help="Risk score 0-100"),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms", help="Override timeout"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Override BALBOA_BASE_URL"),
    format: OutputFormat = typer.Option(OutputFormat.json, "--format", "-f", help="Output format"),
) -> None:
    """Run a full verification and print the result.

    Progress stages are written to stderr as they happen.

    Examples:
        balboa verify --email jane@example.com
        balboa verify -t txn_123 --risk-level 80 -f pretty
    """
    config = _load_config(base_url)
    try:
        options = VerificationOptions(
            email=email,
            transaction_id=transaction_id,
            risk_level=risk_level,
            timeout_ms=timeout_ms,
            on_progress=_print_stage,
        )
    except ValueError as e:
        output_error("INVALID_OPTIONS", str(e).splitlines()[0], exit_code=EXIT_CLIENT_ERROR)
        return

    async def run():
        async with VerificationClient(config) as client:
            return await client.verify(options)

    try:
        result = asyncio.run(run())
    except VerificationFailedError as e:
        output_error(e.code.value, e.message, exit_code=EXIT_VERIFICATION_FAILURE)
        return
    except BalboaError as e:
        details = {"status_code": e.status_code} if e.status_code is not None else None
        output_error(e.code.value, e.message, details=details, exit_code=EXIT_CLIENT_ERROR)
        return

    output(result.model_dump(mode="json", exclude_none=True), format)
    if not result.verified:
        raise typer.Exit(EXIT_VERIFICATION_FAILURE)


@app.command("status")
def status_cmd(
    session_id: str = typer.Argument(..., help="Verification session id"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Override BALBOA_BASE_URL"),
    format: OutputFormat = typer.Option(OutputFormat.json, "--format", "-f", help="Output format"),
) -> None:
    """Show the current status of a session without polling."""
    config = _load_config(base_url)

    async def run():
        async with VerificationClient(config) as client:
            return await client.get_status(session_id)

    try:
        status = asyncio.run(run())
    except BalboaError as e:
        output_error(e.code.value, e.message, exit_code=EXIT_CLIENT_ERROR)
        return

    output(status.model_dump(mode="json", exclude_none=True), format)


@app.command("sign")
def sign_cmd(
    payload: Path = typer.Argument(..., help="File containing the raw webhook body"),
    secret: str = typer.Option(
        BALBOA_WEBHOOK_SECRET, "--secret", "-s", help="Signing secret (default BALBOA_WEBHOOK_SECRET)"
    ),
) -> None:
    """Print the X-Balboa-Signature value for a webhook payload."""
    if not secret:
        output_error("INVALID_CONFIG", "A signing secret is required", exit_code=EXIT_CLIENT_ERROR)
        return
    try:
        body = payload.read_bytes()
    except OSError as e:
        typer.echo(f"Error reading input: {e}", err=True)
        raise typer.Exit(EXIT_IO_ERROR) from e
    typer.echo(compute_signature(secret, body))


if __name__ == "__main__":
    app()
