"""
Storage — a small string-keyed blob store and the records kept in it.

Public surface
--------------
- :class:`KeyValueStore` — abstract blob store.
- :class:`JsonFileStore`, :class:`InMemoryStore` — concrete backends.
- :class:`ChatHistoryStore` — saved conversations.
- :class:`DocumentLibrary` — documents ingested into the vector store.
"""

from ai_lab.storage.chat_history import ChatHistoryStore, Conversation, ConversationSummary
from ai_lab.storage.documents import DocumentLibrary
from ai_lab.storage.kv import InMemoryStore, JsonFileStore, KeyValueStore

__all__ = [
    "ChatHistoryStore",
    "Conversation",
    "ConversationSummary",
    "DocumentLibrary",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
]
