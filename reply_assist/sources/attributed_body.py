"""Best-effort plain-text recovery from the attributedBody column.

Newer macOS versions leave ``message.text`` NULL and store the body inside an
NSAttributedString serialized as a typedstream. We don't decode the format.
The message text is almost always the longest printable ASCII run that isn't
a class name or archiver key, so we scan for runs and discard the noise.

Both false negatives and false positives are possible. Callers treat ``None``
as "text unavailable".
"""

from __future__ import annotations

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

MIN_RUN_LENGTH = 3

_PRINTABLE_RUN_RE = re.compile(rb"[\x20-\x7e]{%d,}" % MIN_RUN_LENGTH)
_LEADING_NOISE_RE = re.compile(r"^[^A-Za-z0-9]+")

# Matched case-sensitively anywhere in the run
_CLASS_MARKERS = (
    "NSAttributedString",
    "NSString",
    "NSDictionary",
    "NSObject",
    "__kIM",
)

# Matched against the lower-cased run
_ARCHIVE_MARKERS = (
    "streamtyped",
    "com.apple",
    ".plist",
    "$class",
    "archiver",
)

_SIGIL_PREFIXES = ("$", "_", "+", "#", "@")


def _strip_leading_noise(run: str) -> str:
    return _LEADING_NOISE_RE.sub("", run)


def _is_noise(run: str) -> bool:
    """True when a printable run is archive metadata rather than message text."""
    cleaned = _strip_leading_noise(run)
    if len(cleaned) <= 2 or not cleaned[0].isalnum():
        return True
    if run.startswith("NS") or run.startswith(_SIGIL_PREFIXES):
        return True
    if any(marker in run for marker in _CLASS_MARKERS):
        return True
    lowered = run.lower()
    return any(marker in lowered for marker in _ARCHIVE_MARKERS)


def printable_runs(blob: bytes) -> list[str]:
    """All maximal printable ASCII runs of at least MIN_RUN_LENGTH chars."""
    return [m.group().decode("ascii") for m in _PRINTABLE_RUN_RE.finditer(blob)]


def recover_text(blob: Optional[bytes]) -> Optional[str]:
    """Extract the most likely message text from an attributedBody blob.

    Returns None when nothing survives the noise filter. Never raises.
    """
    if not blob:
        return None

    try:
        candidates = [run for run in printable_runs(bytes(blob)) if not _is_noise(run)]
    except (TypeError, ValueError) as exc:
        logger.debug("attributedBody scan failed: %s", exc)
        return None

    if not candidates:
        return None

    best = max(candidates, key=len)
    text = _strip_leading_noise(best).strip()
    return text or None
