"""Core record types produced by the source readers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from reply_assist.sources.identity import normalize_identity

# chat.db counts nanoseconds from 2001-01-01T00:00:00Z
APPLE_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)


def apple_ns_to_datetime(value: Optional[int]) -> Optional[datetime]:
    """Convert a chat.db ``date`` value to an aware UTC datetime."""
    if not value:
        return None
    return APPLE_EPOCH + timedelta(microseconds=value // 1000)


def datetime_to_apple_ns(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = dt - APPLE_EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000


@dataclass
class Contact:
    """A remote party as seen in chat.db, optionally named by the directory."""

    identifier: str
    display_name: Optional[str] = None
    match_key: str = field(default="", compare=False)

    def __post_init__(self):
        if not self.match_key:
            self.match_key = normalize_identity(self.identifier)

    @property
    def resolved_name(self) -> str:
        return self.display_name or self.identifier


@dataclass
class Message:
    """One row of a conversation, oldest-first when returned in a thread."""

    id: int
    text: Optional[str]
    is_from_me: bool
    timestamp: int
    contact: str

    @property
    def sent_at(self) -> Optional[datetime]:
        return apple_ns_to_datetime(self.timestamp)


@dataclass
class ThreadPreview:
    """Most recent message exchanged with one counterparty."""

    contact: Contact
    last_message: Optional[str]
    last_timestamp: int
    last_is_from_me: bool
    unread: bool

    @property
    def last_sent_at(self) -> Optional[datetime]:
        return apple_ns_to_datetime(self.last_timestamp)
