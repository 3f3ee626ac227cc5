"""iMessage reader — read-only access to the macOS Messages chat.db.

Handles:
- Lazy, read-only opening with a descriptive Full Disk Access error
- attributedBody text recovery for messages where text is NULL
- Latest-message-per-counterparty previews with unread detection
- Contact name enrichment from the AddressBook directory

Group conversations are not modeled separately: a counterparty's preview
and thread include messages from every chat the handle belongs to.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import List, Optional

from reply_assist.config import imessage_db_path
from reply_assist.sources.attributed_body import recover_text
from reply_assist.sources.base import Contact, Message, ThreadPreview
from reply_assist.sources.contacts import ContactDirectory

logger = logging.getLogger(__name__)


class StoreUnavailableError(RuntimeError):
    """chat.db could not be opened (usually a missing Full Disk Access grant)."""


_CONTACTS_SQL = """
    SELECT h.id AS identifier,
           MAX(NULLIF(c.display_name, '')) AS display_name
    FROM handle h
    JOIN chat_handle_join chj ON chj.handle_id = h.ROWID
    LEFT JOIN chat c ON c.ROWID = chj.chat_id
    {where}
    GROUP BY h.id
    ORDER BY display_name IS NULL, display_name, h.id
"""

_PREVIEWS_SQL = """
    WITH handle_messages AS (
        SELECT h.id AS identifier,
               m.ROWID AS message_id,
               m.text,
               m.attributedBody,
               m.date,
               m.is_from_me,
               m.is_read,
               NULLIF(c.display_name, '') AS chat_display_name
        FROM handle h
        JOIN chat_handle_join chj ON chj.handle_id = h.ROWID
        JOIN chat c ON c.ROWID = chj.chat_id
        JOIN chat_message_join cmj ON cmj.chat_id = chj.chat_id
        JOIN message m ON m.ROWID = cmj.message_id
    ),
    ranked AS (
        SELECT *,
               ROW_NUMBER() OVER (
                   PARTITION BY identifier
                   ORDER BY date DESC, message_id DESC
               ) AS rn
        FROM handle_messages
    )
    SELECT identifier, message_id, text, attributedBody, date,
           is_from_me, is_read, chat_display_name
    FROM ranked
    WHERE rn = 1
    ORDER BY date DESC, message_id DESC
"""

_COUNTERPARTY_MESSAGES = """
    SELECT cmj.message_id
    FROM chat_message_join cmj
    JOIN chat_handle_join chj ON chj.chat_id = cmj.chat_id
    JOIN handle h ON h.ROWID = chj.handle_id
    WHERE h.id = ?
"""

_THREAD_SQL = f"""
    SELECT m.ROWID AS id, m.text, m.attributedBody, m.is_from_me, m.date
    FROM message m
    WHERE m.ROWID IN ({_COUNTERPARTY_MESSAGES})
    ORDER BY m.date DESC, m.ROWID DESC
    LIMIT ?
"""

_HISTORY_SQL = f"""
    SELECT m.ROWID AS id, m.text, m.is_from_me, m.date
    FROM message m
    WHERE m.ROWID IN ({_COUNTERPARTY_MESSAGES})
      AND m.text IS NOT NULL AND m.text != ''
    ORDER BY m.date ASC, m.ROWID ASC
"""


def _resolve_text(text: Optional[str], blob: Optional[bytes]) -> Optional[str]:
    """Use the text column when present, otherwise recover from attributedBody."""
    if text:
        return text
    return recover_text(blob)


class MessageStore:
    """Read-only adapter over chat.db.

    The connection is opened on first use, not at construction, so a
    missing permission surfaces where the caller can act on it.
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        directory: Optional[ContactDirectory] = None,
    ):
        self._db_path = db_path or imessage_db_path()
        self._directory = directory
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def directory(self) -> Optional[ContactDirectory]:
        return self._directory

    @property
    def conn(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                self._conn = self._open()
            return self._conn

    def _permission_error(self, exc: Exception) -> StoreUnavailableError:
        return StoreUnavailableError(
            f"Cannot read iMessage database at {self._db_path}: {exc}. "
            "This is a permissions problem, not corruption: grant Full Disk Access "
            "to your terminal or IDE in System Settings > Privacy & Security."
        )

    def _open(self) -> sqlite3.Connection:
        try:
            exists = self._db_path.exists()
        except OSError as exc:
            # Without Full Disk Access even stat() on ~/Library/Messages fails
            raise self._permission_error(exc) from exc
        if not exists:
            raise StoreUnavailableError(
                f"iMessage database not found at {self._db_path}. "
                "Set IMESSAGE_DB_PATH or check that Messages is set up on this Mac."
            )
        try:
            conn = sqlite3.connect(
                f"file:{self._db_path}?mode=ro", uri=True, check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("SELECT 1 FROM message LIMIT 1")
        except sqlite3.Error as exc:
            raise self._permission_error(exc) from exc
        logger.info("Opened iMessage database %s (read-only)", self._db_path)
        return conn

    def _query(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self.conn.execute(sql, params).fetchall()

    def close(self):
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    # ══════════════════════════════════════════════════════════════
    # Contacts
    # ══════════════════════════════════════════════════════════════

    def list_contacts(self) -> List[Contact]:
        """Distinct counterparties with chat.db's own display name."""
        rows = self._query(_CONTACTS_SQL.format(where=""))
        return [Contact(identifier=r["identifier"], display_name=r["display_name"]) for r in rows]

    def search_contacts(self, query: str, limit: int = 20) -> List[Contact]:
        """Counterparties whose handle or chat display name contains ``query``."""
        pattern = f"%{query}%"
        sql = _CONTACTS_SQL.format(where="WHERE h.id LIKE ? OR c.display_name LIKE ?") + " LIMIT ?"
        rows = self._query(sql, (pattern, pattern, limit))
        return [Contact(identifier=r["identifier"], display_name=r["display_name"]) for r in rows]

    def _enrich(self, identifier: str, store_name: Optional[str]) -> Contact:
        # Directory names win: chat display names are often group labels
        name = self._directory.lookup(identifier) if self._directory else None
        return Contact(identifier=identifier, display_name=name or store_name)

    # ══════════════════════════════════════════════════════════════
    # Threads
    # ══════════════════════════════════════════════════════════════

    def list_thread_previews(self) -> List[ThreadPreview]:
        """One preview per counterparty, most recent conversation first."""
        previews = []
        for row in self._query(_PREVIEWS_SQL):
            is_from_me = bool(row["is_from_me"])
            previews.append(ThreadPreview(
                contact=self._enrich(row["identifier"], row["chat_display_name"]),
                last_message=_resolve_text(row["text"], row["attributedBody"]),
                last_timestamp=row["date"] or 0,
                last_is_from_me=is_from_me,
                unread=not is_from_me and not row["is_read"],
            ))

        logger.info("Read %d thread previews", len(previews))
        return previews

    def get_thread(self, identifier: str, limit: int = 100) -> List[Message]:
        """The ``limit`` most recent messages with a counterparty, oldest first."""
        rows = self._query(_THREAD_SQL, (identifier, limit))
        messages = [
            Message(
                id=row["id"],
                text=_resolve_text(row["text"], row["attributedBody"]),
                is_from_me=bool(row["is_from_me"]),
                timestamp=row["date"] or 0,
                contact=identifier,
            )
            for row in reversed(rows)
        ]
        logger.debug("Read %d messages for %s", len(messages), identifier)
        return messages

    def get_full_history(self, identifier: str) -> List[Message]:
        """Every message with a non-empty text column, oldest first.

        No attributedBody recovery here: only messages with a direct text
        value take part, so newer messages may be under-represented.
        """
        rows = self._query(_HISTORY_SQL, (identifier,))
        return [
            Message(
                id=row["id"],
                text=row["text"],
                is_from_me=bool(row["is_from_me"]),
                timestamp=row["date"] or 0,
                contact=identifier,
            )
            for row in rows
        ]
