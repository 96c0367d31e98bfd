"""Flask CLI commands for auth maintenance tasks."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from authcore.api.deps import build_auth_service
from authcore.services._shared.errors import AuthError

LOGGER = logging.getLogger(__name__)


@click.group("auth")
@click.option("--verbose", is_flag=True, help="Enable debug logging for auth commands.")
def auth_cli(verbose: bool) -> None:
    """Account and session maintenance commands."""
    if verbose:
        logging.getLogger("authcore").setLevel(logging.DEBUG)


@auth_cli.command("clean-verification-tokens")
@with_appcontext
def clean_verification_tokens_command() -> None:
    """Clear verification tokens whose expiry has passed."""
    try:
        count = build_auth_service().clean_expired_verification_tokens()
    except AuthError as exc:
        raise click.ClickException(f"Cleanup failed: {exc} ({exc.code.value})") from exc
    LOGGER.debug("clean-verification-tokens finished: %d", count)
    click.echo(f"Cleared {count} expired verification token(s).")
