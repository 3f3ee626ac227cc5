"""ContextStore — the only writer of user-authored context.

Wraps the local context SQLite database with typed methods for contact
context, user status entries and the context history log.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from reply_assist.store.schema import FORMALITY_LEVELS, init_db

logger = logging.getLogger(__name__)

Timestamp = Union[datetime, str, None]

SQL_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class ContactContext:
    id: int
    phone_number: str
    name: Optional[str]
    relationship_type: Optional[str]
    formality_level: Optional[str]
    communication_style: Optional[str]
    background_context: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ContactContext":
        return cls(**{k: row[k] for k in row.keys()})


@dataclass
class UserContextEntry:
    id: int
    context_type: str
    content: str
    start_date: Optional[str]
    end_date: Optional[str]
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "UserContextEntry":
        return cls(**{k: row[k] for k in row.keys()})


@dataclass
class ContextHistoryEntry:
    id: int
    contact_id: int
    context_text: str
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ContextHistoryEntry":
        return cls(**{k: row[k] for k in row.keys()})


def _is_date_only(text: str) -> bool:
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def to_sql_timestamp(value: Timestamp, end_of_day: bool = False) -> Optional[str]:
    """Normalize a datetime or ISO-8601 string to SQLite's UTC text format.

    Naive values are taken as UTC, matching ``datetime('now')``. With
    ``end_of_day``, a date-only string means the last second of that day.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        text = value.strip()
        value = datetime.fromisoformat(text.replace("Z", "+00:00"))
        if end_of_day and _is_date_only(text):
            value = value.replace(hour=23, minute=59, second=59)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(SQL_TIMESTAMP_FORMAT)


class ContextStore:
    """Manages the context SQLite database."""

    def __init__(self, db_path: Path | None = None):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def conn(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                self._conn = init_db(self._db_path)
            return self._conn

    def close(self):
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    # ══════════════════════════════════════════════════════════════
    # Contact context
    # ══════════════════════════════════════════════════════════════

    def get_contact(self, phone_number: str) -> ContactContext | None:
        """Context for one contact, or None when nothing was saved."""
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM contacts WHERE phone_number = ?", (phone_number,)
            ).fetchone()
        return ContactContext.from_row(row) if row else None

    def list_contacts(self) -> List[ContactContext]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM contacts ORDER BY updated_at DESC, id DESC"
            ).fetchall()
        return [ContactContext.from_row(r) for r in rows]

    def upsert_contact(
        self,
        phone_number: str,
        *,
        name: str | None = None,
        relationship_type: str | None = None,
        formality_level: str | None = None,
        communication_style: str | None = None,
        background_context: str | None = None,
    ) -> ContactContext:
        """Insert or update contact context.

        Fields left as None keep whatever the row already holds.
        """
        if formality_level is not None and formality_level not in FORMALITY_LEVELS:
            raise ValueError(
                f"Invalid formality level {formality_level!r}; expected one of {', '.join(FORMALITY_LEVELS)}"
            )

        with self._lock:
            self.conn.execute(
                """INSERT INTO contacts
                   (phone_number, name, relationship_type, formality_level,
                    communication_style, background_context)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(phone_number) DO UPDATE SET
                     name = COALESCE(excluded.name, contacts.name),
                     relationship_type = COALESCE(excluded.relationship_type, contacts.relationship_type),
                     formality_level = COALESCE(excluded.formality_level, contacts.formality_level),
                     communication_style = COALESCE(excluded.communication_style, contacts.communication_style),
                     background_context = COALESCE(excluded.background_context, contacts.background_context),
                     updated_at = CURRENT_TIMESTAMP
                """,
                (
                    phone_number, name, relationship_type, formality_level,
                    communication_style, background_context,
                ),
            )
            self.conn.commit()
            return self.get_contact(phone_number)

    def update_background(self, phone_number: str, background_context: str) -> ContactContext:
        """Replace a contact's background text and log the edit to history."""
        with self._lock:
            contact = self.upsert_contact(phone_number, background_context=background_context)
            self.add_context_history(contact.id, background_context)
        return contact

    # ══════════════════════════════════════════════════════════════
    # User context
    # ══════════════════════════════════════════════════════════════

    def list_active_user_context(self) -> List[UserContextEntry]:
        """Entries whose end date is absent or not yet passed, newest first.

        Expired rows stay in the table; they just drop out of this view.
        """
        with self._lock:
            rows = self.conn.execute(
                """SELECT * FROM user_context
                   WHERE end_date IS NULL OR end_date >= datetime('now')
                   ORDER BY created_at DESC, id DESC"""
            ).fetchall()
        return [UserContextEntry.from_row(r) for r in rows]

    def add_user_context(
        self,
        context_type: str,
        content: str,
        start_date: Timestamp = None,
        end_date: Timestamp = None,
    ) -> UserContextEntry:
        with self._lock:
            cur = self.conn.execute(
                """INSERT INTO user_context (context_type, content, start_date, end_date)
                   VALUES (?, ?, ?, ?)""",
                (
                    context_type,
                    content,
                    to_sql_timestamp(start_date),
                    to_sql_timestamp(end_date, end_of_day=True),
                ),
            )
            self.conn.commit()
            row = self.conn.execute(
                "SELECT * FROM user_context WHERE id = ?", (cur.lastrowid,)
            ).fetchone()
        return UserContextEntry.from_row(row)

    def delete_user_context(self, entry_id: int) -> None:
        """Delete an entry by id. Unknown ids are ignored."""
        with self._lock:
            self.conn.execute("DELETE FROM user_context WHERE id = ?", (entry_id,))
            self.conn.commit()

    # ══════════════════════════════════════════════════════════════
    # Context history
    # ══════════════════════════════════════════════════════════════

    def add_context_history(self, contact_id: int, context_text: str) -> int:
        with self._lock:
            cur = self.conn.execute(
                "INSERT INTO context_history (contact_id, context_text) VALUES (?, ?)",
                (contact_id, context_text),
            )
            self.conn.commit()
        return cur.lastrowid

    def get_context_history(self, contact_id: int, limit: int = 50) -> List[ContextHistoryEntry]:
        with self._lock:
            rows = self.conn.execute(
                """SELECT * FROM context_history
                   WHERE contact_id = ?
                   ORDER BY created_at DESC, id DESC
                   LIMIT ?""",
                (contact_id, limit),
            ).fetchall()
        return [ContextHistoryEntry.from_row(r) for r in rows]
