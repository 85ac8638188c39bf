"""Pytest fixtures for unit tests requiring the IMAP fake.

What:
  Expose a :class:`FakeImapServer` wired in place of ``imapclient.IMAPClient``
  together with ready-made endpoint settings for a source and a destination
  account.

Why:
  Most unit tests drive :class:`imapmove.imap.client.MailboxClient` or the
  mover against the fake; building the wiring once keeps those tests focused on
  behaviour.

How:
  Append the unit directory to ``sys.path`` for ``fakes`` imports and
  monkeypatch ``imapmove.imap.client.IMAPClient`` with the server's
  connection factory.
"""

import sys
from pathlib import Path

import pytest

from imapmove.config.schema import EndpointSettings

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import DSTUSER, SRCUSER, FakeImapServer


@pytest.fixture
def server(monkeypatch: pytest.MonkeyPatch) -> FakeImapServer:
    """Return an empty fake server with both accounts' INBOX created."""

    server = FakeImapServer()
    server.create_folder(SRCUSER)
    server.create_folder(DSTUSER)
    monkeypatch.setattr("imapmove.imap.client.IMAPClient", server.connect)
    return server


@pytest.fixture
def source_settings() -> EndpointSettings:
    return EndpointSettings(host="localhost", username=SRCUSER, password="pw")


@pytest.fixture
def destination_settings() -> EndpointSettings:
    return EndpointSettings(host="localhost", username=DSTUSER, password="pw")
