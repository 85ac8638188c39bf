"""Move orchestration: fetch, filter, rewrite, transfer, mark, expunge.

What:
  Run one complete move from a source mailbox to a destination mailbox and
  report what happened to every fetched message.

Why:
  The only failure-sensitive part of the tool is the ordering of its side
  effects. Copies must land in the destination before any original is flagged
  deleted, and only originals whose copy was transferred may be flagged.
  Keeping that sequence in one class makes the guarantees auditable.

How:
  :meth:`Mover.run` opens both folders, snapshots the source, builds the batch
  with :func:`~imapmove.core.filter.skip_reason` and
  :func:`~imapmove.core.rewriter.rewrite`, appends the batch in one call, flags
  the originals it came from, and optionally expunges. The per-message skip
  decision is computed once and reused for marking.

Interfaces:
  :class:`MoveResult`, :class:`Mover`.

Invariants & Safety:
  - Transferred UIDs and marked UIDs are the same set unless marking fails;
    skipped messages are neither copied nor marked.
  - An empty batch short-circuits: no transfer, no marking, no expunge.
  - The run is not atomic. A failure after the transfer and before marking
    completes leaves copies in both mailboxes; :class:`~imapmove.core.errors.FlagError`
    then lists the UIDs still to mark, and :meth:`Mover.mark_moved` /
    :meth:`Mover.recover` finish the job. Re-running the whole move instead
    would copy those messages a second time.
  - Errors are never retried or swallowed here.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from ..imap.message import DELETED, DerivedMessage, MessageRecord
from ..imap.port import MailboxPort
from ..utils.logging import JsonLogger, get_logger
from .errors import FlagError
from .filter import SkipReason, skip_reason
from .identity import AddressIdentity
from .rewriter import rewrite


@dataclass
class MoveResult:
    """Outcome of one move run.

    Attributes:
      fetched: Number of messages in the source snapshot.
      skipped: ``(uid, reason)`` for every message left behind, in fetch order.
      transferred: UIDs whose copy was stored in the destination.
      marked: UIDs flagged ``\\Deleted`` in the source by this run.
      expunged: Whether the source folder was expunged.
    """

    fetched: int = 0
    skipped: List[Tuple[int, SkipReason]] = field(default_factory=list)
    transferred: List[int] = field(default_factory=list)
    marked: List[int] = field(default_factory=list)
    expunged: bool = False

    @property
    def moved(self) -> int:
        return len(self.transferred)


class Mover:
    """Coordinate a one-shot move between two open mailboxes.

    What:
      Hold both mailbox handles, both identities, and the subject prefix for
      the lifetime of a run.

    Why:
      Connections are owned by the caller and passed in explicitly; the mover
      never opens or caches sessions itself.

    How:
      :meth:`run` executes the linear sequence described in the module
      docstring; :meth:`prepare` and :meth:`mark_moved` expose its two halves
      for callers that need finer control.
    """

    def __init__(
        self,
        source: MailboxPort,
        destination: MailboxPort,
        *,
        source_identity: AddressIdentity,
        destination_identity: AddressIdentity,
        subject_prefix: str = "",
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self._source = source
        self._destination = destination
        self.source_identity = source_identity
        self.destination_identity = destination_identity
        self.subject_prefix = subject_prefix or ""
        self.logger = (logger or get_logger("imapmove.mover")).bind(
            source=str(source_identity),
            destination=str(destination_identity),
        )

    def run(self, expunge: bool = True) -> MoveResult:
        """Move every eligible message and return the outcome.

        What:
          Perform open, fetch, process, transfer, mark, and (optionally)
          expunge, strictly in that order.

        Why:
          Failing anywhere before marking leaves the source untouched, which is
          the safe abort point; only after the destination holds the copies are
          originals flagged.

        How:
          Both folders are opened before anything is read. The source snapshot
          goes through :meth:`prepare`. A non-empty batch is handed to the
          destination in a single :meth:`MailboxPort.copy_messages` call, after
          which :meth:`mark_moved` flags the originals. ``expunge`` is honoured
          only when something was moved.

        Args:
          expunge: Permanently remove flagged messages from the source at the
            end of the run.

        Returns:
          A :class:`MoveResult` describing the run.

        Raises:
          MailboxConnectionError: Opening or reading a folder failed.
          AddressFormatError: A message could not be rewritten; nothing moved.
          TransferError: The destination rejected the batch; source unchanged.
          FlagError: Marking stopped part way; see ``pending_uids``.
          ExpungeError: Originals are flagged but still present.
        """

        self.logger.info("move_started", expunge=expunge)
        self._source.open_read_write()
        self._destination.open_read_write()

        records = self._source.list_messages()
        result = MoveResult(fetched=len(records))
        self.logger.info("source_fetched", count=len(records))

        batch, movable = self.prepare(records, result)
        if not batch:
            self.logger.info("nothing_to_move", skipped=len(result.skipped))
            return result
        self.logger.info("batch_prepared", count=len(batch), skipped=len(result.skipped))

        self._destination.copy_messages(batch)
        result.transferred = [record.uid for record in movable]
        self.logger.info("batch_transferred", count=len(batch))

        result.marked = self.mark_moved(movable)
        self.logger.info("originals_marked", count=len(result.marked))

        if expunge:
            self._source.expunge()
            result.expunged = True
            self.logger.info("source_expunged")
        else:
            self.logger.info("expunge_skipped", flagged=len(result.marked))
        self.logger.info(
            "move_completed",
            fetched=result.fetched,
            moved=result.moved,
            skipped=len(result.skipped),
        )
        return result

    def prepare(
        self,
        records: Iterable[MessageRecord],
        result: Optional[MoveResult] = None,
    ) -> Tuple[List[DerivedMessage], List[MessageRecord]]:
        """Filter and rewrite ``records`` without touching either mailbox.

        Args:
          records: Source snapshot in fetch order.
          result: Optional result collecting the skip decisions.

        Returns:
          ``(batch, movable)``: the rewritten copies and, index for index, the
          originals they were derived from.

        Raises:
          AddressFormatError: A recipient header could not be rewritten.
        """

        batch: List[DerivedMessage] = []
        movable: List[MessageRecord] = []
        for record in records:
            senders = record.senders
            reason = skip_reason(record, self.destination_identity)
            if reason is not None:
                if result is not None:
                    result.skipped.append((record.uid, reason))
                self.logger.info(
                    "message_skipped",
                    uid=record.uid,
                    sender=senders[0] if senders else "UNKNOWN",
                    reason=reason.value,
                )
                continue
            batch.append(
                rewrite(
                    record,
                    source=self.source_identity,
                    destination=self.destination_identity,
                    subject_prefix=self.subject_prefix,
                )
            )
            movable.append(record)
        return batch, movable

    def mark_moved(self, records: Sequence[MessageRecord]) -> List[int]:
        """Flag ``records`` deleted in the source mailbox, in order.

        What:
          Second half of a move, also usable on its own to finish a run whose
          marking pass was interrupted.

        Why:
          Marking is the step that can leave a half-finished state. Exposing it
          lets a caller complete the move from the ``pending_uids`` of a
          :class:`FlagError` instead of re-running the transfer.

        How:
          Calls :meth:`MailboxPort.set_flag` per record. On failure the error is
          re-raised with every UID from the failing one onwards.

        Args:
          records: Originals whose copies are already in the destination.

        Returns:
          UIDs flagged by this call.

        Raises:
          FlagError: A flag change failed; ``pending_uids`` lists what is left.
        """

        marked: List[int] = []
        for index, record in enumerate(records):
            try:
                self._source.set_flag(record, DELETED)
            except FlagError as exc:
                pending = [item.uid for item in records[index:]]
                self.logger.error(
                    "mark_failed",
                    uid=record.uid,
                    marked=marked,
                    pending=pending,
                    error=str(exc),
                )
                raise FlagError(str(exc), uid=record.uid, pending_uids=pending) from exc
            marked.append(record.uid)
        return marked

    def recover(self, uids: Iterable[int], expunge: bool = True) -> MoveResult:
        """Finish an interrupted move by marking ``uids`` deleted.

        What:
          Flag the listed originals (and optionally expunge) without copying
          anything.

        Why:
          After a :class:`FlagError` the copies already sit in the destination;
          running :meth:`run` again would duplicate them.

        How:
          Opens the source folder, re-lists it, and marks the records whose UID
          is in ``uids`` and that are not already flagged. The expunge runs
          when any listed UID is still present. UIDs are only meaningful while
          the folder's UIDVALIDITY is unchanged.

        Args:
          uids: ``pending_uids`` of a previous :class:`FlagError`.
          expunge: Expunge the source afterwards.

        Returns:
          A :class:`MoveResult` with ``marked`` and ``expunged`` filled in.
        """

        wanted = set(uids)
        self._source.open_read_write()
        found = [record for record in self._source.list_messages() if record.uid in wanted]
        result = MoveResult(fetched=len(found))
        result.marked = self.mark_moved([record for record in found if not record.is_deleted])
        self.logger.info("recovery_marked", count=len(result.marked))
        if expunge and found:
            self._source.expunge()
            result.expunged = True
            self.logger.info("source_expunged")
        return result
