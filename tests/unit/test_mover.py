"""Move scenarios run against the in-memory IMAP server.

What:
  Exercise :class:`imapmove.core.mover.Mover` end to end through real
  :class:`~imapmove.imap.client.MailboxClient` instances: what lands in the
  destination, what is flagged or removed in the source, and what state each
  failure leaves behind.

Why:
  The guarantees of a move are about ordering across two accounts. Only a run
  against both mailboxes shows that copies exist before originals are flagged
  and that a failure stops the sequence where it should.

How:
  The ``server`` fixture replaces ``imapclient.IMAPClient`` with
  :class:`fakes.FakeImapServer`. Each test seeds the source account with six
  messages addressed to the source identity and the destination account with
  three unrelated ones, then inspects both folders after the run.
"""

import io
import json
from datetime import datetime, timezone

import pytest

from fakes import DST_ADDRESS, DSTUSER, SRC_ADDRESS, SRCUSER, make_message
from imapmove._wiring import run_move
from imapmove.config.schema import MoveSettings
from imapmove.core.errors import ExpungeError, FlagError, MailboxConnectionError, TransferError
from imapmove.core.filter import SkipReason
from imapmove.core.mover import Mover
from imapmove.imap.client import MailboxClient
from imapmove.utils.logging import JsonLogger

SOURCE_COUNT = 6
DESTINATION_COUNT = 3
ARRIVAL = datetime(2019, 5, 17, 8, 30, tzinfo=timezone.utc)


@pytest.fixture
def seeded(server):
    """Fill both accounts and return the source UIDs in delivery order."""

    uids = []
    for i in range(SOURCE_COUNT):
        raw = make_message(
            sender=f"from{i}@localhost",
            to=f"{SRC_ADDRESS}, to{i}@localhost",
            cc=f"cc{i}@localhost, {SRC_ADDRESS}",
            bcc=f"bcc{i}@localhost, {SRC_ADDRESS}" if i % 2 == 0 else None,
            subject=f"Source Subject {i}",
        )
        uids.append(server.add(SRCUSER, raw, flags=["\\Seen", "\\Flagged"], internaldate=ARRIVAL))
    for i in range(DESTINATION_COUNT):
        server.add(DSTUSER, make_message(sender=f"other{i}@localhost", to=DST_ADDRESS, subject=f"Dest {i}"))
    return uids


@pytest.fixture
def log_stream():
    return io.StringIO()


@pytest.fixture
def endpoints(server, source_settings, destination_settings):
    with MailboxClient(source_settings) as source, MailboxClient(destination_settings) as destination:
        yield source, destination


def _mover(endpoints, log_stream, prefix=""):
    source, destination = endpoints
    return Mover(
        source,
        destination,
        source_identity=source.settings.identity,
        destination_identity=destination.settings.identity,
        subject_prefix=prefix,
        logger=JsonLogger(stream=log_stream, component="test"),
    )


def _moved_copies(server):
    """Destination messages that came from the source, keyed by subject suffix."""

    copies = {}
    for stored in server.messages(DSTUSER):
        for record_subject in [line for line in stored.raw.split(b"\r\n") if line.startswith(b"Subject:")]:
            if b"Source Subject" in record_subject:
                copies[int(record_subject.rsplit(b" ", 1)[-1])] = stored
    return copies


def _events(log_stream):
    return [json.loads(line)["msg"] for line in log_stream.getvalue().splitlines()]


def test_every_message_moves_and_source_is_emptied(server, seeded, endpoints, log_stream):
    result = _mover(endpoints, log_stream).run()

    assert result.fetched == SOURCE_COUNT
    assert result.moved == SOURCE_COUNT
    assert result.transferred == seeded
    assert result.marked == seeded
    assert result.skipped == []
    assert result.expunged
    assert server.messages(SRCUSER) == []
    assert len(server.messages(DSTUSER)) == SOURCE_COUNT + DESTINATION_COUNT


def test_recipients_point_at_destination(server, seeded, endpoints, log_stream):
    _mover(endpoints, log_stream).run()

    copies = _moved_copies(server)
    assert sorted(copies) == list(range(SOURCE_COUNT))
    for i, stored in copies.items():
        assert f"To: {DST_ADDRESS}, to{i}@localhost\r\n".encode() in stored.raw
        assert f"Cc: cc{i}@localhost, {DST_ADDRESS}\r\n".encode() in stored.raw
        if i % 2 == 0:
            assert f"Bcc: bcc{i}@localhost, {DST_ADDRESS}\r\n".encode() in stored.raw
        else:
            assert b"Bcc:" not in stored.raw
        assert SRC_ADDRESS.encode() not in stored.raw


def test_subject_prefix_is_applied(server, seeded, endpoints, log_stream):
    _mover(endpoints, log_stream, prefix="MOVED ").run()

    for i, stored in _moved_copies(server).items():
        assert f"Subject: MOVED Source Subject {i}\r\n".encode() in stored.raw


def test_subject_untouched_without_prefix(server, seeded, endpoints, log_stream):
    _mover(endpoints, log_stream).run()

    for i, stored in _moved_copies(server).items():
        assert f"Subject: Source Subject {i}\r\n".encode() in stored.raw


def test_copies_arrive_unflagged_with_original_date(server, seeded, endpoints, log_stream):
    _mover(endpoints, log_stream).run()

    for stored in _moved_copies(server).values():
        assert stored.flags == set()
        assert stored.internaldate == ARRIVAL


def test_mail_from_destination_stays_in_source(server, seeded, endpoints, log_stream):
    bare = server.add(SRCUSER, make_message(sender=DST_ADDRESS, to=SRC_ADDRESS, subject="Reply 1"))
    named = server.add(
        SRCUSER,
        make_message(sender=f"Destination User <{DST_ADDRESS}>", to=SRC_ADDRESS, subject="Reply 2"),
    )

    result = _mover(endpoints, log_stream).run()

    assert result.skipped == [(bare, SkipReason.FROM_DESTINATION), (named, SkipReason.FROM_DESTINATION)]
    assert result.moved == SOURCE_COUNT
    assert [stored.uid for stored in server.messages(SRCUSER)] == [bare, named]
    assert all("\\Deleted" not in stored.flags for stored in server.messages(SRCUSER))
    assert len(server.messages(DSTUSER)) == SOURCE_COUNT + DESTINATION_COUNT


def test_deleted_messages_are_not_copied(server, seeded, endpoints, log_stream):
    for uid in seeded[:3]:
        server.folders[(SRCUSER, "INBOX")][uid].flags.add("\\Deleted")

    result = _mover(endpoints, log_stream).run(expunge=False)

    assert [reason for _, reason in result.skipped] == [SkipReason.ALREADY_DELETED] * 3
    assert result.transferred == seeded[3:]
    assert sorted(_moved_copies(server)) == [3, 4, 5]
    remaining = server.messages(SRCUSER)
    assert len(remaining) == SOURCE_COUNT
    assert all("\\Deleted" in stored.flags for stored in remaining)
    assert not result.expunged
    assert (SRCUSER, "EXPUNGE") not in server.commands


def test_expunge_removes_every_deleted_message(server, seeded, endpoints, log_stream):
    server.folders[(SRCUSER, "INBOX")][seeded[0]].flags.add("\\Deleted")

    result = _mover(endpoints, log_stream).run(expunge=True)

    assert result.moved == SOURCE_COUNT - 1
    assert server.messages(SRCUSER) == []


def test_second_run_moves_nothing(server, seeded, endpoints, log_stream):
    mover = _mover(endpoints, log_stream)
    mover.run(expunge=False)
    appends_before = len(server.messages(DSTUSER))

    result = mover.run(expunge=False)

    assert result.moved == 0
    assert [reason for _, reason in result.skipped] == [SkipReason.ALREADY_DELETED] * SOURCE_COUNT
    assert len(server.messages(DSTUSER)) == appends_before


def test_empty_batch_touches_nothing(server, endpoints, log_stream):
    server.add(SRCUSER, make_message(sender=DST_ADDRESS, to=SRC_ADDRESS))
    server.commands.clear()

    result = _mover(endpoints, log_stream).run(expunge=True)

    assert result.moved == 0
    assert not result.expunged
    issued = {command for _, command in server.commands}
    assert issued == {"SELECT"}
    assert "nothing_to_move" in _events(log_stream)


def test_multiappend_sends_batch_in_one_command(server, seeded, endpoints, log_stream):
    server.capabilities.add("MULTIAPPEND")

    _mover(endpoints, log_stream).run()

    assert server.commands.count((DSTUSER, "MULTIAPPEND")) == 1
    assert (DSTUSER, "APPEND") not in server.commands
    assert len(_moved_copies(server)) == SOURCE_COUNT


def test_rejected_batch_leaves_source_unchanged(server, seeded, endpoints, log_stream):
    server.capabilities.add("MULTIAPPEND")
    server.fail_multiappend = True

    with pytest.raises(TransferError):
        _mover(endpoints, log_stream).run()

    assert len(server.messages(SRCUSER)) == SOURCE_COUNT
    assert all("\\Deleted" not in stored.flags for stored in server.messages(SRCUSER))
    assert len(server.messages(DSTUSER)) == DESTINATION_COUNT
    assert (SRCUSER, "STORE") not in server.commands


def test_append_failure_reports_partial_transfer(server, seeded, endpoints, log_stream):
    server.fail_append_after = 2

    with pytest.raises(TransferError, match="after 2 of 6"):
        _mover(endpoints, log_stream).run()

    assert all("\\Deleted" not in stored.flags for stored in server.messages(SRCUSER))
    assert len(server.messages(DSTUSER)) == DESTINATION_COUNT + 2


def test_flag_failure_lists_pending_uids(server, seeded, endpoints, log_stream):
    server.fail_flag_uids = {seeded[2]}

    with pytest.raises(FlagError) as excinfo:
        _mover(endpoints, log_stream).run()

    assert excinfo.value.uid == seeded[2]
    assert excinfo.value.pending_uids == seeded[2:]
    source = {stored.uid: stored for stored in server.messages(SRCUSER)}
    assert len(source) == SOURCE_COUNT
    assert all("\\Deleted" in source[uid].flags for uid in seeded[:2])
    assert all("\\Deleted" not in source[uid].flags for uid in seeded[2:])
    assert len(_moved_copies(server)) == SOURCE_COUNT
    assert (SRCUSER, "EXPUNGE") not in server.commands
    assert "mark_failed" in _events(log_stream)


def test_recover_finishes_interrupted_marking(server, seeded, endpoints, log_stream):
    server.fail_flag_uids = {seeded[2]}
    mover = _mover(endpoints, log_stream)
    with pytest.raises(FlagError) as excinfo:
        mover.run()
    server.fail_flag_uids = set()

    result = mover.recover(excinfo.value.pending_uids)

    assert result.marked == seeded[2:]
    assert result.expunged
    assert server.messages(SRCUSER) == []
    assert len(_moved_copies(server)) == SOURCE_COUNT


def test_expunge_failure_leaves_flagged_originals(server, seeded, endpoints, log_stream):
    server.fail_expunge = True

    with pytest.raises(ExpungeError):
        _mover(endpoints, log_stream).run()

    remaining = server.messages(SRCUSER)
    assert len(remaining) == SOURCE_COUNT
    assert all("\\Deleted" in stored.flags for stored in remaining)
    assert len(_moved_copies(server)) == SOURCE_COUNT


def test_missing_destination_folder_fails_before_fetch(server, seeded, source_settings, destination_settings, log_stream):
    missing = destination_settings.model_copy(update={"mailbox": "Archive"})
    with MailboxClient(source_settings) as source, MailboxClient(missing) as destination:
        mover = _mover((source, destination), log_stream)
        with pytest.raises(MailboxConnectionError):
            mover.run()

    assert server.fetched_items == []
    assert len(server.messages(SRCUSER)) == SOURCE_COUNT


def test_progress_log_names_skips_without_subjects(server, seeded, endpoints, log_stream):
    server.add(SRCUSER, make_message(sender=f"Destination User <{DST_ADDRESS}>", subject="Private"))

    _mover(endpoints, log_stream).run()

    entries = [json.loads(line) for line in log_stream.getvalue().splitlines()]
    assert [entry["msg"] for entry in entries] == [
        "move_started",
        "source_fetched",
        "message_skipped",
        "batch_prepared",
        "batch_transferred",
        "originals_marked",
        "source_expunged",
        "move_completed",
    ]
    skipped = entries[2]
    assert skipped["sender"] == DST_ADDRESS
    assert skipped["reason"] == "from_destination"
    assert "Private" not in log_stream.getvalue()


def test_rerun_never_reimports_destination_mail(server, seeded, endpoints, log_stream):
    server.add(SRCUSER, make_message(sender=DST_ADDRESS, to=SRC_ADDRESS, subject="Reply 1"))
    server.add(SRCUSER, make_message(sender=f"Destination User <{DST_ADDRESS}>", subject="Reply 2"))
    mover = _mover(endpoints, log_stream)

    first = mover.run(expunge=True)
    after_first = len(server.messages(DSTUSER))
    second = mover.run(expunge=True)

    assert first.moved == SOURCE_COUNT
    assert second.moved == 0
    assert [reason for _, reason in second.skipped] == [SkipReason.FROM_DESTINATION] * 2
    assert len(server.messages(DSTUSER)) == after_first
    assert len(server.messages(SRCUSER)) == 2


def test_flag_error_reaches_caller_when_logout_fails(server, seeded, source_settings, destination_settings):
    server.fail_flag_uids = {seeded[1]}
    server.fail_logout = True
    settings = MoveSettings(source=source_settings, destination=destination_settings)

    with pytest.raises(FlagError) as excinfo:
        run_move(settings, logger=JsonLogger(stream=io.StringIO()))

    assert excinfo.value.pending_uids == seeded[1:]


def test_every_entry_names_the_mailbox_pair(server, seeded, endpoints, log_stream):
    _mover(endpoints, log_stream).run()

    entries = [json.loads(line) for line in log_stream.getvalue().splitlines()]
    assert entries
    assert all(entry["source"] == SRC_ADDRESS for entry in entries)
    assert all(entry["destination"] == DST_ADDRESS for entry in entries)
