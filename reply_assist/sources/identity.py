"""Handle normalization for matching identities across stores.

chat.db stores handles as "+15551234567" while AddressBook keeps whatever the
user typed ("(555) 123-4567", "+1 555-123-4567", ...). Both collapse to the
last ten digits. Email handles and short codes match themselves.
"""

from __future__ import annotations

import re

_NON_DIGIT_RE = re.compile(r"\D")

MATCH_KEY_DIGITS = 10


def normalize_identity(value: str) -> str:
    """Return the cross-store matching key for a phone number or handle."""
    digits = _NON_DIGIT_RE.sub("", value)
    if len(digits) >= MATCH_KEY_DIGITS:
        return digits[-MATCH_KEY_DIGITS:]
    return value
