"""
Pytest configuration and shared fixtures for reply-assist tests.

Fixtures build throwaway chat.db and AddressBook SQLite files under
tmp_path with just the tables and columns the readers touch, plus a
scripted stand-in for the LLM client.

Run categories:
- pytest -m unit    # Fast unit tests only
- pytest            # All tests
"""
import sqlite3
from pathlib import Path

import pytest

from reply_assist.store.context_store import ContextStore

CHAT_DB_SCHEMA = """
CREATE TABLE handle (
    ROWID INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL,
    service TEXT DEFAULT 'iMessage'
);
CREATE TABLE chat (
    ROWID INTEGER PRIMARY KEY AUTOINCREMENT,
    chat_identifier TEXT,
    display_name TEXT
);
CREATE TABLE chat_handle_join (chat_id INTEGER, handle_id INTEGER);
CREATE TABLE chat_message_join (chat_id INTEGER, message_id INTEGER);
CREATE TABLE message (
    ROWID INTEGER PRIMARY KEY AUTOINCREMENT,
    text TEXT,
    attributedBody BLOB,
    date INTEGER,
    is_from_me INTEGER DEFAULT 0,
    is_read INTEGER DEFAULT 0,
    handle_id INTEGER DEFAULT 0
);
"""

ADDRESSBOOK_SCHEMA = """
CREATE TABLE ZABCDRECORD (
    Z_PK INTEGER PRIMARY KEY,
    ZFIRSTNAME TEXT,
    ZLASTNAME TEXT
);
CREATE TABLE ZABCDPHONENUMBER (
    Z_PK INTEGER PRIMARY KEY,
    ZOWNER INTEGER,
    ZFULLNUMBER TEXT
);
"""


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")


class ChatDB:
    """Builder for a minimal Messages chat.db."""

    def __init__(self, path: Path):
        self.path = path
        self.conn = sqlite3.connect(str(path))
        self.conn.executescript(CHAT_DB_SCHEMA)
        self._chats = {}

    def chat(self, handle: str, display_name: str | None = None) -> int:
        """Create a 1:1 chat with ``handle`` (reused on repeat calls)."""
        key = (handle, display_name)
        if key in self._chats:
            return self._chats[key]
        handle_id = self.conn.execute("INSERT INTO handle (id) VALUES (?)", (handle,)).lastrowid
        chat_id = self.conn.execute(
            "INSERT INTO chat (chat_identifier, display_name) VALUES (?, ?)", (handle, display_name)
        ).lastrowid
        self.conn.execute(
            "INSERT INTO chat_handle_join (chat_id, handle_id) VALUES (?, ?)", (chat_id, handle_id)
        )
        self._chats[key] = chat_id
        return chat_id

    def message(
        self,
        handle: str,
        text: str | None,
        date: int,
        is_from_me: bool = False,
        is_read: bool = True,
        attributed_body: bytes | None = None,
        display_name: str | None = None,
    ) -> int:
        chat_id = self.chat(handle, display_name)
        message_id = self.conn.execute(
            """INSERT INTO message (text, attributedBody, date, is_from_me, is_read)
               VALUES (?, ?, ?, ?, ?)""",
            (text, attributed_body, date, int(is_from_me), int(is_read)),
        ).lastrowid
        self.conn.execute(
            "INSERT INTO chat_message_join (chat_id, message_id) VALUES (?, ?)", (chat_id, message_id)
        )
        self.conn.commit()
        return message_id

    def count(self, table: str) -> int:
        return self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def close(self):
        self.conn.close()


def make_addressbook(path: Path, people: list[tuple[str | None, str | None, str]]) -> Path:
    """Write an AddressBook database with (first, last, phone) records."""
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.executescript(ADDRESSBOOK_SCHEMA)
    for pk, (first, last, phone) in enumerate(people, start=1):
        conn.execute("INSERT INTO ZABCDRECORD (Z_PK, ZFIRSTNAME, ZLASTNAME) VALUES (?, ?, ?)", (pk, first, last))
        conn.execute("INSERT INTO ZABCDPHONENUMBER (ZOWNER, ZFULLNUMBER) VALUES (?, ?)", (pk, phone))
    conn.commit()
    conn.close()
    return path


class FakeLLM:
    """Stands in for LLMClient: returns scripted payloads, records calls."""

    provider = "fake"
    model = "fake-model"

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def run_json(self, system_prompt, user_message, temperature=None):
        self.calls.append({"system": system_prompt, "user": user_message, "temperature": temperature})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def chat_db(tmp_path):
    db = ChatDB(tmp_path / "chat.db")
    yield db
    db.close()


@pytest.fixture
def context_store(tmp_path):
    store = ContextStore(tmp_path / "context.db")
    yield store
    store.close()
