"""Helpers bridging the CLI with the mailbox clients and the mover.

What:
  Resolve command-line arguments into settings, run one move with properly
  scoped connections, and phrase failures in terms of the state they leave the
  source mailbox in.

Why:
  Keeping these steps out of :mod:`imapmove.cli` keeps the Typer command short
  and lets tests exercise each step without invoking the CLI.

How:
  ``resolve_settings`` dispatches on the number of positional arguments;
  ``run_move`` opens both :class:`~imapmove.imap.client.MailboxClient`
  contexts and hands them to :class:`~imapmove.core.mover.Mover`;
  ``describe_failure`` maps each error type to an operator message.

Interfaces:
  ``UsageError``, ``resolve_settings``, ``run_move``, ``describe_failure``.
"""
from __future__ import annotations

from typing import Optional, Sequence

from .config.loader import load_settings, settings_from_urls
from .config.schema import MoveSettings
from .core.errors import (
    AddressFormatError,
    ExpungeError,
    FlagError,
    MailboxConnectionError,
    MoveError,
    TransferError,
)
from .core.mover import Mover, MoveResult
from .imap.client import MailboxClient
from .utils.logging import JsonLogger


class UsageError(ValueError):
    """The positional arguments match none of the accepted forms."""


def resolve_settings(
    args: Sequence[str],
    *,
    expunge: bool = True,
    debug: bool = False,
) -> MoveSettings:
    """Turn positional arguments into :class:`MoveSettings`.

    What:
      Accept ``SRC_URL DST_URL PREFIX``, ``SETTINGS_FILE PREFIX``,
      ``SETTINGS_FILE``, or nothing (settings file from the environment).

    How:
      Three arguments are URLs plus prefix; one or two name a settings file
      with an optional prefix override; zero defers to
      :func:`~imapmove.config.loader.load_settings`. ``expunge=False`` wins
      over the file; ``debug=True`` turns on protocol tracing for both
      endpoints.

    Raises:
      UsageError: Any other argument count.
      ConfigLoadError: The URLs or the settings file are invalid.
    """

    if len(args) == 3:
        settings = settings_from_urls(args[0], args[1], args[2])
    elif len(args) in (1, 2):
        prefix = args[1] if len(args) == 2 else None
        settings = load_settings(args[0], subject_prefix=prefix)
    elif not args:
        settings = load_settings()
    else:
        raise UsageError(f"expected 0 to 3 arguments, got {len(args)}")
    updates = {}
    if not expunge:
        updates["expunge"] = False
    if debug:
        updates["source"] = settings.source.model_copy(update={"debug": True})
        updates["destination"] = settings.destination.model_copy(update={"debug": True})
    return settings.model_copy(update=updates) if updates else settings


def run_move(settings: MoveSettings, *, logger: Optional[JsonLogger] = None) -> MoveResult:
    """Connect to both endpoints, run the move, and disconnect.

    Each endpoint gets exactly one connection for the whole run; both are
    logged out when the run ends, successfully or not.
    """

    with MailboxClient(settings.source) as source, MailboxClient(settings.destination) as destination:
        mover = Mover(
            source,
            destination,
            source_identity=settings.source.identity,
            destination_identity=settings.destination.identity,
            subject_prefix=settings.subject_prefix,
            logger=logger,
        )
        return mover.run(expunge=settings.expunge)


def describe_failure(exc: MoveError) -> str:
    """Explain ``exc`` in terms of what happened to the source mailbox."""

    if isinstance(exc, MailboxConnectionError):
        return f"connection failed, no message was touched: {exc}"
    if isinstance(exc, AddressFormatError):
        return f"a message could not be rewritten, no message was moved: {exc}"
    if isinstance(exc, TransferError):
        return f"transfer failed, source mailbox left unchanged: {exc}"
    if isinstance(exc, FlagError):
        pending = ", ".join(str(uid) for uid in exc.pending_uids)
        return (
            f"marking failed, {len(exc.pending_uids)} message(s) copied but not marked "
            f"deleted in the source (uids: {pending}): {exc}"
        )
    if isinstance(exc, ExpungeError):
        return f"expunge failed, moved messages remain flagged deleted in the source: {exc}"
    return str(exc)
