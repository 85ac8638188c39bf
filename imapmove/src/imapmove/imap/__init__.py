"""Facade for the IMAP integration layer.

What:
  Surface the :class:`~imapmove.imap.client.MailboxClient` context manager,
  the :class:`~imapmove.imap.port.MailboxPort` protocol, and the message
  records exchanged with the orchestrator.

Why:
  Call sites import from here so the ``imapclient`` wrapper can evolve without
  touching the core.

Interfaces:
  ``MailboxClient``, ``MailboxPort``, ``MessageRecord``, ``DerivedMessage``,
  ``DELETED``.
"""

from .client import MailboxClient
from .message import DELETED, DerivedMessage, MessageRecord
from .port import MailboxPort

__all__ = ["MailboxClient", "MailboxPort", "MessageRecord", "DerivedMessage", "DELETED"]
