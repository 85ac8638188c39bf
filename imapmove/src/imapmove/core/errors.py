"""Error taxonomy surfaced by a mailbox move.

What:
  Define one exception per failure point of the move sequence (connect,
  transfer, flag, expunge, address rewrite) under a shared :class:`MoveError`
  base.

Why:
  The entry point needs to tell the operator in which state the source mailbox
  was left. Each error kind maps to exactly one such state, so the type alone
  carries that information.

How:
  Plain exception classes; :class:`FlagError` additionally records the failing
  UID and the UIDs that were transferred but never marked deleted.

Interfaces:
  :class:`MoveError`, :class:`MailboxConnectionError`, :class:`TransferError`,
  :class:`FlagError`, :class:`ExpungeError`, :class:`AddressFormatError`.

Invariants & Safety:
  - None of these errors is retried or swallowed by the core; they propagate to
    the caller unchanged.
"""
from __future__ import annotations

from typing import Optional, Sequence


class MoveError(Exception):
    """Base class for every failure raised while moving messages."""


class MailboxConnectionError(MoveError):
    """A mailbox session could not be established, authenticated, or opened.

    Raised before any message is touched; both mailboxes are unchanged.
    """


class TransferError(MoveError):
    """The bulk copy into the destination mailbox failed.

    Marking has not started when this is raised, so the source mailbox is left
    exactly as it was.
    """


class FlagError(MoveError):
    """Setting a flag on a source message failed.

    What:
      Signal that the marking pass stopped part way through.

    Why:
      At this point the batch already sits in the destination mailbox. The
      operator must know which originals still need the ``\\Deleted`` flag to
      finish the move by hand or through :meth:`imapmove.core.mover.Mover.mark_moved`.

    How:
      Carries the ``uid`` whose flag store failed and ``pending_uids``: every
      transferred UID not yet marked deleted (including ``uid``).
    """

    def __init__(
        self,
        message: str,
        *,
        uid: Optional[int] = None,
        pending_uids: Sequence[int] = (),
    ) -> None:
        super().__init__(message)
        self.uid = uid
        self.pending_uids = list(pending_uids)


class ExpungeError(MoveError):
    """Permanent removal failed; messages remain flagged deleted and present."""


class AddressFormatError(MoveError, ValueError):
    """A recipient header could not be parsed while rewriting a message.

    The move aborts before the transfer step, leaving the source untouched.
    """
