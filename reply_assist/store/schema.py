"""SQLite schema for the local context store.

All user-authored context lives in a single SQLite file at
~/.reply_assist/context.db (CONTEXT_DB_PATH overrides).
Tables:
  contacts         — per-contact relationship metadata, keyed by phone number
  user_context     — time-bounded facts about the user's own status
  context_history  — append-only log of background-context edits
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from reply_assist.config import context_db_path

logger = logging.getLogger(__name__)

FORMALITY_LEVELS = ("casual", "neutral", "formal")

SCHEMA_SQL = """
-- ══════════════════════════════════════════════════════════════════
-- Contact context (one row per phone number / handle)
-- ══════════════════════════════════════════════════════════════════

CREATE TABLE IF NOT EXISTS contacts (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    phone_number        TEXT UNIQUE NOT NULL,    -- raw chat.db handle
    name                TEXT,                    -- display name override
    relationship_type   TEXT,                    -- free text: friend, coworker, ...
    formality_level     TEXT CHECK(formality_level IN ('casual', 'neutral', 'formal')),
    communication_style TEXT,                    -- JSON, opaque to the pipeline
    background_context  TEXT,
    created_at          TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at          TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- ══════════════════════════════════════════════════════════════════
-- User status entries (active while end_date is NULL or in the future)
-- ══════════════════════════════════════════════════════════════════

CREATE TABLE IF NOT EXISTS user_context (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    context_type    TEXT NOT NULL,               -- travel, work, health, ...
    content         TEXT NOT NULL,
    start_date      TIMESTAMP,                   -- UTC 'YYYY-MM-DD HH:MM:SS'
    end_date        TIMESTAMP,
    created_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_user_context_end ON user_context(end_date);

-- ══════════════════════════════════════════════════════════════════
-- Context history (append-only)
-- ══════════════════════════════════════════════════════════════════

CREATE TABLE IF NOT EXISTS context_history (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    contact_id      INTEGER NOT NULL,
    context_text    TEXT NOT NULL,
    created_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (contact_id) REFERENCES contacts(id)
);

CREATE INDEX IF NOT EXISTS idx_context_history_contact ON context_history(contact_id);
"""


def init_db(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open the context database, creating tables if needed."""
    path = db_path or context_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")

    conn.executescript(SCHEMA_SQL)
    conn.commit()

    logger.info("Context database initialized at %s", path)
    return conn
