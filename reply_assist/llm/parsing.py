"""Decoders for the free-form JSON that models return.

Models asked for "a JSON object with a suggestions list" reply with all
sorts of shapes. ``parse_suggestions`` accepts them in a fixed order:

1. ``{"suggestions": ...}``
2. ``{"responses": ...}`` (a key holding null is skipped)
3. a bare list
4. any other object: all of its values
5. a scalar, wrapped as a single suggestion
"""

from __future__ import annotations

from typing import Any, List, Optional

from reply_assist.store.schema import FORMALITY_LEVELS

SUGGESTION_KEYS = ("suggestions", "responses")


def _candidates(payload: Any) -> Any:
    if isinstance(payload, dict):
        for key in SUGGESTION_KEYS:
            if payload.get(key) is not None:
                return payload[key]
        values = []
        for value in payload.values():
            # {"options": [...]} under an unexpected key
            if isinstance(value, list):
                values.extend(value)
            else:
                values.append(value)
        return values
    return payload


def _as_text(item: Any) -> Optional[str]:
    if item is None:
        return None
    if isinstance(item, dict):
        # {"text": "..."} or {"message": "..."} entries
        for key in ("text", "message", "content", "response"):
            if isinstance(item.get(key), str):
                item = item[key]
                break
        else:
            return None
    text = str(item).strip()
    return text or None


def parse_suggestions(payload: Any) -> List[str]:
    """Normalize a parsed model response to an ordered list of suggestions.

    Raises ValueError when nothing usable is left.
    """
    candidates = _candidates(payload)
    if not isinstance(candidates, list):
        candidates = [candidates]

    suggestions = [text for text in (_as_text(c) for c in candidates) if text]
    if not suggestions:
        raise ValueError(f"No suggestions found in model response: {payload!r:.200}")
    return suggestions


def parse_formality(payload: Any) -> tuple[Optional[str], Optional[str]]:
    """Pull (formality, analysis) out of a style-analysis response.

    Formality is None unless it's one of the known levels.
    """
    if not isinstance(payload, dict):
        return None, None

    formality = payload.get("formality")
    if isinstance(formality, str):
        formality = formality.strip().lower()
    if formality not in FORMALITY_LEVELS:
        formality = None

    analysis = payload.get("analysis")
    if not isinstance(analysis, str) or not analysis.strip():
        analysis = None
    return formality, analysis.strip() if analysis else None
