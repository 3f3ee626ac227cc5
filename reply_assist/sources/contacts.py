"""macOS Contacts directory — name lookup built from AddressBook SQLite databases.

Resolves chat.db handles (phone numbers) to the names the user saved in
Contacts.app. Scans the root AddressBook database plus every per-source
database (iCloud, Exchange, ...) under ``Sources/``.

The directory is built once and then treated as immutable. Concurrent
callers block on the build lock and see the finished map. ``rebuild()`` is
the only way to pick up edits made in Contacts.app.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Dict, List, Optional

from reply_assist.config import addressbook_dir
from reply_assist.sources.identity import normalize_identity

logger = logging.getLogger(__name__)

ADDRESSBOOK_DB_NAME = "AddressBook-v22.abcddb"

_NAMES_WITH_PHONES_SQL = """
    SELECT r.ZFIRSTNAME AS first_name,
           r.ZLASTNAME AS last_name,
           p.ZFULLNUMBER AS phone
    FROM ZABCDRECORD r
    JOIN ZABCDPHONENUMBER p ON p.ZOWNER = r.Z_PK
    WHERE (r.ZFIRSTNAME IS NOT NULL OR r.ZLASTNAME IS NOT NULL)
      AND p.ZFULLNUMBER IS NOT NULL
"""


def find_addressbook_dbs(root: Path) -> List[Path]:
    """Find all AddressBook SQLite databases (root + per-source)."""
    dbs = []

    primary = root / ADDRESSBOOK_DB_NAME
    try:
        if primary.exists():
            dbs.append(primary)
    except OSError as exc:
        logger.warning("Cannot access %s: %s", primary, exc)

    sources = root / "Sources"
    try:
        src_dirs = sorted(sources.iterdir()) if sources.is_dir() else []
    except OSError as exc:
        # Contacts access denied, or the folder vanished mid-scan
        logger.warning("Cannot list %s: %s", sources, exc)
        src_dirs = []

    for src_dir in src_dirs:
        candidate = src_dir / ADDRESSBOOK_DB_NAME
        try:
            if candidate.exists():
                dbs.append(candidate)
        except OSError as exc:
            logger.warning("Cannot access %s: %s", candidate, exc)

    return dbs


def compose_name(*parts: Optional[str]) -> str:
    return " ".join(p.strip() for p in parts if p and p.strip())


def read_phone_names(path: Path) -> Dict[str, str]:
    """Read {match_key: display name} from a single AddressBook database.

    Raises sqlite3.Error (or OSError) if the database can't be opened or queried.
    """
    conn = sqlite3.connect(f"file:{path}?mode=ro", uri=True)
    conn.row_factory = sqlite3.Row
    try:
        names: Dict[str, str] = {}
        for row in conn.execute(_NAMES_WITH_PHONES_SQL):
            name = compose_name(row["first_name"], row["last_name"])
            if not name:
                continue
            names[normalize_identity(row["phone"])] = name
        return names
    finally:
        conn.close()


class ContactDirectory:
    """Thread-safe, build-once lookup table: match key -> display name."""

    def __init__(self, root: Optional[Path] = None):
        self._root = root or addressbook_dir()
        self._by_key: Dict[str, str] = {}
        self._loaded = False
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def size(self) -> int:
        return len(self._by_key)

    def ensure_loaded(self) -> None:
        """Build the directory if no build has completed yet."""
        if self._loaded:
            return
        with self._lock:
            if not self._loaded:
                self._build()

    def rebuild(self) -> int:
        """Discard the current map and rescan every AddressBook database."""
        with self._lock:
            self._build()
        return len(self._by_key)

    def _build(self) -> None:
        """Scan every database. Marks the directory loaded even when some fail."""
        by_key: Dict[str, str] = {}
        dbs: List[Path] = []
        try:
            dbs = find_addressbook_dbs(self._root)
            if not dbs:
                logger.warning("No AddressBook databases found under %s", self._root)

            for path in dbs:
                try:
                    names = read_phone_names(path)
                except (sqlite3.Error, OSError) as exc:
                    logger.warning("Skipping AddressBook database %s: %s", path, exc)
                    continue
                # Last writer wins across linked sources
                by_key.update(names)
                logger.debug("Read %d phone names from %s", len(names), path)
        finally:
            self._by_key = by_key
            self._loaded = True
        logger.info("Contact directory: %d phone mappings from %d databases", len(by_key), len(dbs))

    def lookup(self, identifier: str) -> Optional[str]:
        """Look up a display name for a phone number or handle.

        Returns None if not found.
        """
        self.ensure_loaded()
        return self._by_key.get(normalize_identity(identifier))
