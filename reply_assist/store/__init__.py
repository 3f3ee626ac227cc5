from reply_assist.store.context_store import (
    ContactContext,
    ContextHistoryEntry,
    ContextStore,
    UserContextEntry,
)
from reply_assist.store.schema import FORMALITY_LEVELS, init_db

__all__ = [
    "ContactContext",
    "ContextHistoryEntry",
    "ContextStore",
    "UserContextEntry",
    "FORMALITY_LEVELS",
    "init_db",
]
