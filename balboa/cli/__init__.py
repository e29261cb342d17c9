"""Balboa CLI - command-line tools for the verification service.

Usage:
    balboa --help
    balboa verify --email jane@example.com
    balboa status <session-id>
    balboa sign payload.json --secret $BALBOA_WEBHOOK_SECRET
"""

from balboa.cli.main import app

__all__ = ["app"]
