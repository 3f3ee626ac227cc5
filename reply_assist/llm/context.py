"""Build LLM context strings for reply suggestions and style analysis.

Everything here is deterministic string assembly: the same messages and
context rows always produce the same prompt.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from reply_assist.sources.base import Message
from reply_assist.store.context_store import ContactContext, UserContextEntry

MAX_TRANSCRIPT_MESSAGES = 10
MAX_STYLE_SAMPLE = 20

SELF_LABEL = "You"
FALLBACK_CONTACT_LABEL = "Them"


def contact_label(contact: Optional[ContactContext], fallback: str = FALLBACK_CONTACT_LABEL) -> str:
    if contact and contact.name:
        return contact.name
    return fallback


def format_context_sections(
    contact: Optional[ContactContext],
    user_entries: Sequence[UserContextEntry],
    additional_context: Optional[str] = None,
) -> str:
    """Optional prompt sections; each appears only when there is data for it."""
    sections: List[str] = []

    if contact and contact.background_context:
        sections.append(f"CONTACT CONTEXT:\n{contact.background_context}")
    if contact and contact.formality_level:
        sections.append(f"FORMALITY LEVEL: {contact.formality_level}")
    if user_entries:
        status = "\n".join(f"- {entry.content}" for entry in user_entries)
        sections.append(f"YOUR CURRENT STATUS:\n{status}")
    if additional_context:
        sections.append(f"ADDITIONAL CONTEXT:\n{additional_context}")

    return "\n\n".join(sections)


def build_suggestion_system_prompt(
    template_body: str,
    contact_name: str,
    contact: Optional[ContactContext],
    user_entries: Sequence[UserContextEntry],
    additional_context: Optional[str] = None,
) -> str:
    """Instruction block: the template followed by whatever context we have."""
    instructions = template_body.format(contact_name=contact_name)
    sections = format_context_sections(contact, user_entries, additional_context)
    if not sections:
        return instructions
    return f"{instructions}\n\n{sections}"


def format_transcript(messages: Sequence[Message], their_label: str) -> str:
    """Label each of the last MAX_TRANSCRIPT_MESSAGES messages with its sender.

    Messages whose text couldn't be recovered are left out.
    """
    window = list(messages)[-MAX_TRANSCRIPT_MESSAGES:]
    lines = []
    for msg in window:
        if not msg.text:
            continue
        sender = SELF_LABEL if msg.is_from_me else their_label
        lines.append(f"{sender}: {msg.text}")
    return "\n".join(lines)


def build_suggestion_user_message(transcript: str) -> str:
    return f"Recent conversation:\n{transcript}\n\nGenerate 3 response suggestions:"


def format_style_sample(texts: Sequence[str]) -> str:
    """The most recent MAX_STYLE_SAMPLE texts, one per line."""
    return "\n".join(list(texts)[-MAX_STYLE_SAMPLE:])
