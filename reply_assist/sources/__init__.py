from reply_assist.sources.attributed_body import recover_text
from reply_assist.sources.base import Contact, Message, ThreadPreview
from reply_assist.sources.contacts import ContactDirectory
from reply_assist.sources.identity import normalize_identity
from reply_assist.sources.imessage import MessageStore, StoreUnavailableError

__all__ = [
    "Contact",
    "Message",
    "ThreadPreview",
    "ContactDirectory",
    "MessageStore",
    "StoreUnavailableError",
    "normalize_identity",
    "recover_text",
]
