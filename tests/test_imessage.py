"""
Tests for the chat.db message store.
"""
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import pytest

from reply_assist.sources.base import Contact, apple_ns_to_datetime, datetime_to_apple_ns
from reply_assist.sources.contacts import ADDRESSBOOK_DB_NAME, ContactDirectory
from reply_assist.sources.imessage import MessageStore, StoreUnavailableError

from conftest import make_addressbook
from test_attributed_body import wrap

ALICE = "+15551234567"
BOB = "+15559876543"


@pytest.fixture
def store(chat_db):
    s = MessageStore(chat_db.path)
    yield s
    s.close()


@pytest.mark.unit
class TestAppleTimestamps:
    """Tests for Apple epoch conversion."""

    def test_zero_is_none_and_counts_from_2001(self):
        assert apple_ns_to_datetime(0) is None
        assert apple_ns_to_datetime(1_000_000_000) == datetime(2001, 1, 1, 0, 0, 1, tzinfo=timezone.utc)

    def test_known_date(self):
        # 2024-01-15 12:00:00 UTC is 727012800 seconds after 2001-01-01
        dt = apple_ns_to_datetime(727_012_800 * 1_000_000_000)
        assert dt == datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def test_to_apple_ns(self):
        dt = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
        assert datetime_to_apple_ns(dt) == 727_012_800 * 1_000_000_000

    def test_message_sent_at(self, chat_db, store):
        chat_db.message(ALICE, "hi", date=727_012_800 * 1_000_000_000)
        [msg] = store.get_thread(ALICE)
        assert msg.sent_at == datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestOpening:
    """Tests for lazy, read-only opening."""

    def test_construction_does_not_open(self, tmp_path):
        MessageStore(tmp_path / "missing.db")

    def test_missing_db_raises_on_first_use(self, tmp_path):
        store = MessageStore(tmp_path / "missing.db")
        with pytest.raises(StoreUnavailableError, match="not found"):
            store.list_contacts()

    def test_unreadable_db_mentions_permissions(self, tmp_path):
        path = tmp_path / "chat.db"
        path.write_bytes(b"definitely not sqlite" * 50)
        store = MessageStore(path)
        with pytest.raises(StoreUnavailableError, match="Full Disk Access"):
            store.get_thread(ALICE)

    def test_denied_stat_is_a_permissions_error(self, chat_db, monkeypatch):
        """A PermissionError while checking the path means Full Disk Access, not a missing file."""
        real_exists = Path.exists

        def denied(self, *args, **kwargs):
            if self == chat_db.path:
                raise PermissionError(1, "Operation not permitted", str(self))
            return real_exists(self, *args, **kwargs)

        monkeypatch.setattr(Path, "exists", denied)
        store = MessageStore(chat_db.path)

        with pytest.raises(StoreUnavailableError, match="Full Disk Access") as exc_info:
            store.list_contacts()
        assert "not found" not in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, PermissionError)

    def test_connection_is_read_only(self, chat_db, store):
        chat_db.message(ALICE, "hi", date=100)
        with pytest.raises(sqlite3.OperationalError):
            store.conn.execute("DELETE FROM message")
        assert chat_db.count("message") == 1


@pytest.mark.unit
class TestContacts:

    def test_list_contacts(self, chat_db, store):
        chat_db.message(ALICE, "hi", date=100)
        chat_db.message(BOB, "yo", date=200, display_name="Hiking crew")

        contacts = store.list_contacts()
        by_id = {c.identifier: c for c in contacts}
        assert set(by_id) == {ALICE, BOB}
        assert by_id[BOB].display_name == "Hiking crew"
        assert by_id[ALICE].display_name is None
        assert by_id[ALICE].resolved_name == ALICE

    def test_search_by_handle_and_name(self, chat_db, store):
        chat_db.message(ALICE, "hi", date=100)
        chat_db.message(BOB, "yo", date=200, display_name="Hiking crew")

        assert [c.identifier for c in store.search_contacts("1234")] == [ALICE]
        assert [c.identifier for c in store.search_contacts("hiking")] == [BOB]
        assert store.search_contacts("nobody") == []

    def test_contact_match_key(self):
        assert Contact("+1 (555) 123-4567").match_key == "5551234567"


@pytest.mark.unit
class TestThreadPreviews:
    """Tests for latest-message-per-counterparty previews."""

    def test_latest_by_timestamp_not_insert_order(self, chat_db, store):
        chat_db.message(ALICE, "first", date=100)
        chat_db.message(ALICE, "latest", date=300)
        chat_db.message(ALICE, "middle", date=200)

        [preview] = store.list_thread_previews()
        assert preview.last_timestamp == 300
        assert preview.last_message == "latest"

    def test_one_preview_per_counterparty(self, chat_db, store):
        chat_db.message(ALICE, "a1", date=100)
        chat_db.message(BOB, "b1", date=150)
        chat_db.message(ALICE, "a2", date=400)
        chat_db.message(BOB, "b2", date=250)

        previews = store.list_thread_previews()
        assert [p.contact.identifier for p in previews] == [ALICE, BOB]
        assert [p.last_message for p in previews] == ["a2", "b2"]

    def test_timestamp_tie_broken_by_rowid(self, chat_db, store):
        chat_db.message(ALICE, "earlier row", date=500)
        chat_db.message(ALICE, "later row", date=500)

        [preview] = store.list_thread_previews()
        assert preview.last_message == "later row"

    def test_incoming_unread(self, chat_db, store):
        chat_db.message(ALICE, "you there?", date=100, is_from_me=False, is_read=False)
        [preview] = store.list_thread_previews()
        assert preview.unread is True
        assert preview.last_is_from_me is False

    def test_incoming_read(self, chat_db, store):
        chat_db.message(ALICE, "you there?", date=100, is_from_me=False, is_read=True)
        [preview] = store.list_thread_previews()
        assert preview.unread is False

    @pytest.mark.parametrize("is_read", [True, False])
    def test_from_me_never_unread(self, chat_db, store, is_read):
        chat_db.message(ALICE, "sent", date=100, is_from_me=True, is_read=is_read)
        [preview] = store.list_thread_previews()
        assert preview.unread is False
        assert preview.last_is_from_me is True

    def test_recovers_attributed_body(self, chat_db, store):
        chat_db.message(ALICE, None, date=100, attributed_body=wrap(b"Hello there"))
        [preview] = store.list_thread_previews()
        assert preview.last_message == "Hello there"

    def test_unrecoverable_body_is_none(self, chat_db, store):
        chat_db.message(ALICE, None, date=100, attributed_body=b"\x00\x01")
        [preview] = store.list_thread_previews()
        assert preview.last_message is None

    def test_directory_name_beats_chat_name(self, chat_db, tmp_path):
        chat_db.message(ALICE, "hi", date=100, display_name="Book club")
        chat_db.message(BOB, "yo", date=200, display_name="Hiking crew")
        root = tmp_path / "AddressBook"
        make_addressbook(root / ADDRESSBOOK_DB_NAME, [("Alice", "Smith", "(555) 123-4567")])

        store = MessageStore(chat_db.path, directory=ContactDirectory(root))
        try:
            names = {p.contact.identifier: p.contact.resolved_name for p in store.list_thread_previews()}
        finally:
            store.close()

        assert names[ALICE] == "Alice Smith"
        assert names[BOB] == "Hiking crew"


@pytest.mark.unit
class TestGetThread:

    def test_oldest_first_and_limited(self, chat_db, store):
        for i, date in enumerate([500, 100, 400, 200, 300]):
            chat_db.message(ALICE, f"m{date}", date=date, is_from_me=i % 2 == 0)
        chat_db.message(BOB, "other thread", date=250)

        messages = store.get_thread(ALICE, limit=3)
        assert [m.timestamp for m in messages] == [300, 400, 500]
        assert all(m.contact == ALICE for m in messages)

    def test_recovers_text_from_blob(self, chat_db, store):
        chat_db.message(ALICE, "plain", date=100)
        chat_db.message(ALICE, None, date=200, attributed_body=wrap(b"ok see you at 7"))
        chat_db.message(ALICE, "", date=300, attributed_body=b"\x00\x01\x02")

        texts = [m.text for m in store.get_thread(ALICE)]
        assert texts == ["plain", "ok see you at 7", None]

    def test_unknown_counterparty(self, chat_db, store):
        chat_db.message(ALICE, "hi", date=100)
        assert store.get_thread("nobody@example.com") == []


@pytest.mark.unit
class TestFullHistory:

    def test_only_direct_text(self, chat_db, store):
        chat_db.message(ALICE, "b", date=200)
        chat_db.message(ALICE, None, date=300, attributed_body=wrap(b"Hello there"))
        chat_db.message(ALICE, "", date=350)
        chat_db.message(ALICE, "a", date=100, is_from_me=True)

        history = store.get_full_history(ALICE)
        assert [m.text for m in history] == ["a", "b"]
        assert [m.is_from_me for m in history] == [True, False]
