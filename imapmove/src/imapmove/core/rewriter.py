"""Turn a source message into a copy that looks native to the destination.

What:
  Build a :class:`~imapmove.imap.message.DerivedMessage` from a source
  snapshot: prefix the subject, replace the source identity with the
  destination identity in ``To``/``Cc``/``Bcc``, and clear every flag.

Why:
  After a move the copy should read as if it had been delivered to the new
  address in the first place, and should show up unread.

How:
  Duplicate the record through a fresh parse, then edit the duplicate's
  headers in place using :mod:`email.headerregistry` address objects. Untouched
  headers stay byte-identical to the original.

Interfaces:
  :data:`RECIPIENT_FIELDS`, :func:`rewrite`.

Invariants & Safety:
  - The source :class:`~imapmove.imap.message.MessageRecord` is never mutated.
  - Absent recipient headers stay absent; only addresses equal to the source
    identity move, everything else keeps its position and display name.
  - A replaced address is bare: the original display name is discarded.
"""
from __future__ import annotations

from email import errors
from email.headerregistry import Address, Group
from email.message import EmailMessage

from ..imap.message import DerivedMessage, MessageRecord
from .errors import AddressFormatError
from .identity import AddressIdentity


RECIPIENT_FIELDS = ("To", "Cc", "Bcc")


def rewrite(
    record: MessageRecord,
    *,
    source: AddressIdentity,
    destination: AddressIdentity,
    subject_prefix: str = "",
) -> DerivedMessage:
    """Produce the destination copy of ``record``.

    What:
      Apply the subject, recipient, and flag transformations to a duplicate of
      ``record``.

    Why:
      Keeps every per-message transformation in one place so the orchestrator
      only decides *whether* a message moves, never *how* it looks afterwards.

    How:
      :meth:`DerivedMessage.from_record` duplicates headers, payload, and flags;
      :func:`_prefix_subject` and :func:`_replace_recipients` edit the copy, and
      the flag list is emptied last.

    Args:
      record: Source snapshot that survived the skip filter.
      source: Identity of the source mailbox (address to replace).
      destination: Identity of the destination mailbox (replacement).
      subject_prefix: Text prepended to the subject; empty leaves it alone.

    Returns:
      The rewritten :class:`DerivedMessage` with no flags.

    Raises:
      AddressFormatError: A recipient header needing a replacement cannot be
        parsed into addresses.
    """

    derived = DerivedMessage.from_record(record)
    _prefix_subject(derived.message, subject_prefix)
    for field in RECIPIENT_FIELDS:
        _replace_recipients(derived.message, field, source, destination, uid=record.uid)
    derived.flags = []
    return derived


def _prefix_subject(message: EmailMessage, prefix: str) -> None:
    """Set the subject to ``prefix + subject``; an absent subject counts as empty."""

    current = message["Subject"]
    if current is None:
        message["Subject"] = prefix
        return
    if not prefix:
        return
    message.replace_header("Subject", prefix + str(current))


def _replace_recipients(
    message: EmailMessage,
    field: str,
    source: AddressIdentity,
    destination: AddressIdentity,
    *,
    uid: int,
) -> None:
    """Swap ``source`` for ``destination`` in every ``field`` header.

    What:
      Rewrite the address list of one recipient field.

    Why:
      Each field is independent: ``To`` may need a replacement while ``Cc`` is
      absent and must stay absent.

    How:
      Walk the parsed groups of every occurrence of ``field``. When no address
      matches, the header is left exactly as received. Otherwise the groups are
      rebuilt with the matching addresses swapped and written back in place. A
      field repeated across several headers is collapsed into one.
    """

    headers = message.get_all(field)
    if not headers:
        return
    groups = []
    replaced = False
    invalid = False
    for header in headers:
        invalid = invalid or any(
            isinstance(defect, errors.InvalidHeaderDefect) for defect in header.defects
        )
        for group in header.groups:
            addresses = []
            for address in group.addresses:
                if source.matches(address.addr_spec):
                    addresses.append(_bare_address(destination, field=field, uid=uid))
                    replaced = True
                else:
                    addresses.append(address)
            groups.append(Group(group.display_name, addresses))
    if not replaced:
        return
    if invalid:
        raise AddressFormatError(f"Invalid {field} address list in message uid={uid}")
    if len(headers) == 1:
        message.replace_header(field, groups)
        return
    # Repeated field: collapse every occurrence into one header.
    del message[field]
    message[field] = groups


def _bare_address(identity: AddressIdentity, *, field: str, uid: int) -> Address:
    try:
        return Address(addr_spec=identity.address)
    except (ValueError, IndexError, errors.HeaderParseError) as exc:
        raise AddressFormatError(
            f"Cannot write {identity.address!r} into {field} of message uid={uid}"
        ) from exc
