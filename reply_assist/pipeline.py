"""Reply suggestion and style analysis pipeline.

Merges chat.db threads, the AddressBook directory and the local context
store into a bounded prompt, calls the LLM, and decodes its reply.

Suggestion failures surface as GenerationFailedError. Style analysis never
fails because of the LLM: the length and emoji metrics are computed locally
and survive a failed formality call.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import List, Optional, Sequence

from reply_assist.llm.client import LLMClient
from reply_assist.llm.context import (
    FALLBACK_CONTACT_LABEL,
    MAX_TRANSCRIPT_MESSAGES,
    build_suggestion_system_prompt,
    build_suggestion_user_message,
    format_style_sample,
    format_transcript,
)
from reply_assist.llm.loader import load_prompt
from reply_assist.llm.parsing import parse_formality, parse_suggestions
from reply_assist.sources.base import Message
from reply_assist.sources.contacts import ContactDirectory
from reply_assist.sources.imessage import MessageStore
from reply_assist.store.context_store import ContactContext, ContextStore

logger = logging.getLogger(__name__)

NEUTRAL_FORMALITY = "neutral"
NOT_ENOUGH_DATA = "Not enough data"
FALLBACK_ANALYSIS = "Basic analysis completed"
DEFAULT_ANALYSIS = "Style analyzed"

EMOJI_RE = re.compile(
    "["
    "\U0001F600-\U0001F64F"  # emoticons
    "\U0001F300-\U0001F5FF"  # symbols & pictographs
    "\U0001F680-\U0001F6FF"  # transport & map
    "\U0001F1E0-\U0001F1FF"  # flags
    "\u2600-\u26FF"  # misc symbols
    "\u2700-\u27BF"  # dingbats
    "]"
)


class GenerationFailedError(RuntimeError):
    """The LLM call failed or its reply couldn't be decoded."""


@dataclass
class SuggestionResult:
    suggestions: List[str] = field(default_factory=list)


@dataclass
class StyleAnalysis:
    formality_level: str
    avg_message_length: int
    emoji_frequency: float
    analysis: str
    # True only when the model returned one of FORMALITY_LEVELS
    classified: bool = False

    def to_dict(self) -> dict:
        """Metrics and analysis, as stored in communication_style."""
        data = asdict(self)
        data.pop("classified")
        return data


def count_emoji(text: str) -> int:
    return len(EMOJI_RE.findall(text))


def average_length(texts: Sequence[str]) -> float:
    if not texts:
        return 0.0
    return sum(len(t) for t in texts) / len(texts)


def emoji_frequency(texts: Sequence[str]) -> float:
    """Emoji occurrences per message."""
    if not texts:
        return 0.0
    return sum(count_emoji(t) for t in texts) / len(texts)


class SuggestionPipeline:
    """Assembles context, calls the LLM, decodes the result."""

    def __init__(
        self,
        llm: LLMClient,
        context_store: ContextStore,
        message_store: Optional[MessageStore] = None,
        directory: Optional[ContactDirectory] = None,
    ):
        self.llm = llm
        self.context_store = context_store
        self.message_store = message_store
        self.directory = directory

    def _contact_name(self, identifier: str, contact: Optional[ContactContext]) -> Optional[str]:
        if contact and contact.name:
            return contact.name
        if self.directory:
            return self.directory.lookup(identifier)
        return None

    def generate_suggestions(
        self,
        identifier: str,
        recent_messages: Sequence[Message],
        additional_context: Optional[str] = None,
    ) -> SuggestionResult:
        """Ask the LLM for three reply options to the latest messages.

        Only the last MAX_TRANSCRIPT_MESSAGES messages are sent.
        """
        contact = self.context_store.get_contact(identifier)
        user_entries = self.context_store.list_active_user_context()
        name = self._contact_name(identifier, contact)

        template = load_prompt("suggest_replies")
        system_prompt = build_suggestion_system_prompt(
            template.body,
            contact_name=name or identifier,
            contact=contact,
            user_entries=user_entries,
            additional_context=additional_context,
        )
        window = list(recent_messages)[-MAX_TRANSCRIPT_MESSAGES:]
        transcript = format_transcript(window, their_label=name or FALLBACK_CONTACT_LABEL)
        user_message = build_suggestion_user_message(transcript)

        logger.info(
            "Generating suggestions for %s (%d messages, %d status entries)",
            identifier, len(window), len(user_entries),
        )
        try:
            payload = self.llm.run_json(system_prompt, user_message, temperature=template.temperature)
            suggestions = parse_suggestions(payload)
        except Exception as exc:
            logger.error("Suggestion generation failed for %s: %s", identifier, exc)
            raise GenerationFailedError("Failed to generate suggestions") from exc

        return SuggestionResult(suggestions=suggestions)

    def analyze_style(self, identifier: str) -> StyleAnalysis:
        """Summarize how a contact writes.

        Uses messages with a direct text value only (see
        MessageStore.get_full_history).
        """
        if self.message_store is None:
            raise RuntimeError("analyze_style needs a MessageStore")

        history = self.message_store.get_full_history(identifier)
        texts = [m.text for m in history if not m.is_from_me and m.text]

        if not texts:
            return StyleAnalysis(
                formality_level=NEUTRAL_FORMALITY,
                avg_message_length=0,
                emoji_frequency=0.0,
                analysis=NOT_ENOUGH_DATA,
            )

        avg_len = round(average_length(texts))
        emoji_freq = round(emoji_frequency(texts), 2)

        template = load_prompt("analyze_style")
        try:
            payload = self.llm.run_json(
                template.body.format(),
                format_style_sample(texts),
                temperature=template.temperature,
            )
        except Exception as exc:
            logger.warning("Style analysis fell back to defaults for %s: %s", identifier, exc)
            return StyleAnalysis(
                formality_level=NEUTRAL_FORMALITY,
                avg_message_length=avg_len,
                emoji_frequency=emoji_freq,
                analysis=FALLBACK_ANALYSIS,
            )

        formality, analysis = parse_formality(payload)
        return StyleAnalysis(
            formality_level=formality or NEUTRAL_FORMALITY,
            avg_message_length=avg_len,
            emoji_frequency=emoji_freq,
            analysis=analysis or DEFAULT_ANALYSIS,
            classified=formality is not None,
        )
