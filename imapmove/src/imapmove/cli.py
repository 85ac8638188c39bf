"""Command-line entry point for moving mail between IMAP mailboxes.

What:
  Provide the Typer application behind the ``imapmove`` command: parse the
  endpoints, run one move, print a summary, and set the exit status.

Why:
  Operators run the move by hand or from a script; the exit status and the
  failure wording must tell them whether the source mailbox is untouched,
  partially marked, or fully marked.

How:
  Positional arguments are resolved by :func:`imapmove._wiring.resolve_settings`,
  the move runs through :func:`imapmove._wiring.run_move` with progress written
  as JSON lines to stderr, and failures are logged and mapped to exit code 1.

Interfaces:
  ``app`` (Typer application), ``move``, ``main``.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - Passwords are never echoed; endpoints are reported as redacted URLs.
"""
from __future__ import annotations

import logging
import sys
from typing import List, Optional

import typer

from ._wiring import UsageError, describe_failure, resolve_settings, run_move
from .config.loader import ConfigLoadError
from .core.errors import MoveError
from .utils.logging import get_logger


app = typer.Typer(help="Move every message from one IMAP mailbox to another.", add_completion=False)

LOGGER = logging.getLogger("imapmove.cli")

USAGE = (
    "Usage: imapmove SRC_URL DST_URL PREFIX\n"
    "  or   imapmove SETTINGS_FILE [PREFIX]\n"
    "  or   imapmove   (settings file from IMAPMOVE_CONFIG_PATH)"
)


@app.command()
def move(
    args: Optional[List[str]] = typer.Argument(
        None,
        help="SRC_URL DST_URL PREFIX, or SETTINGS_FILE [PREFIX].",
        show_default=False,
    ),
    expunge: bool = typer.Option(
        True,
        "--expunge/--no-expunge",
        help="Permanently remove moved messages from the source mailbox.",
    ),
    debug: bool = typer.Option(False, "--debug", help="Trace the IMAP protocol exchange."),
) -> None:
    """Copy messages to the destination, rewritten as native mail, then delete the originals.

    Messages sent by the destination address and messages already flagged
    deleted stay in the source mailbox.
    """

    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING)
    try:
        settings = resolve_settings(args or [], expunge=expunge, debug=debug)
    except UsageError:
        typer.echo(USAGE, err=True)
        raise typer.Exit(code=1) from None
    except ConfigLoadError as exc:
        LOGGER.error("settings_invalid: %s", exc)
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    LOGGER.info(
        "move_requested source=%s destination=%s",
        settings.source.redacted_url,
        settings.destination.redacted_url,
    )
    try:
        result = run_move(settings, logger=get_logger("imapmove.mover", stream=sys.stderr))
    except MoveError as exc:
        LOGGER.error("move_failed error=%s", exc)
        typer.echo(f"error: {describe_failure(exc)}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"moved {result.moved} message(s), skipped {len(result.skipped)}")


def main() -> None:
    """Execute the Typer application entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
