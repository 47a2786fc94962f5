"""Saved chat conversations, kept as one JSON list in a :class:`KeyValueStore`."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ai_lab.errors import StorageError, ValidationError
from ai_lab.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "ai-lab-conversations"
DEFAULT_TITLE = "New Conversation"
TITLE_MAX_CHARS = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_conversation_id() -> str:
    return f"conv-{uuid4().hex[:16]}"


class ConversationMetadata(BaseModel):
    message_count: int = 0
    has_tools: bool = False
    model: str | None = None


class Conversation(BaseModel):
    id: str
    title: str
    messages: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    metadata: ConversationMetadata = Field(default_factory=ConversationMetadata)


class ConversationSummary(BaseModel):
    id: str
    title: str
    message_count: int
    created_at: datetime
    updated_at: datetime
    has_tools: bool = False


_conversation_list = TypeAdapter(list[Conversation])


def generate_title(messages: list[dict[str, Any]]) -> str:
    """Title a conversation after its first user message.

    Titles longer than 50 characters are cut to 47 and suffixed with ``...``.
    """
    first = next((m for m in messages if m.get("role") == "user"), None)
    if first is None:
        return DEFAULT_TITLE
    content = str(first.get("content") or "")
    if len(content) > TITLE_MAX_CHARS:
        return content[: TITLE_MAX_CHARS - 3] + "..."
    return content or DEFAULT_TITLE


def _has_tools(messages: list[dict[str, Any]]) -> bool:
    return any(
        m.get("role") == "tool" or m.get("tool_calls") or m.get("toolInvocations") for m in messages
    )


class ChatHistoryStore:
    """CRUD over saved conversations with a cap on how many are kept.

    Parameters
    ----------
    store:
        Backing blob store.
    max_conversations:
        When exceeded, the least recently updated conversations are dropped.
    model:
        Model name recorded in each conversation's metadata.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        max_conversations: int = 50,
        model: str | None = None,
    ) -> None:
        self._store = store
        self.max_conversations = max_conversations
        self.model = model

    # -- read -----------------------------------------------------------------

    def _load(self) -> list[Conversation]:
        raw = self._store.get(STORAGE_KEY)
        if not raw:
            return []
        try:
            return _conversation_list.validate_json(raw)
        except PydanticValidationError as exc:
            logger.error("Stored conversations are unreadable: %s", exc)
            raise StorageError("Stored conversations are corrupt", details={"key": STORAGE_KEY}) from exc

    def _write(self, conversations: list[Conversation]) -> None:
        if len(conversations) > self.max_conversations:
            conversations = sorted(conversations, key=lambda c: c.updated_at, reverse=True)
            dropped = len(conversations) - self.max_conversations
            conversations = conversations[: self.max_conversations]
            logger.info("Evicted %d oldest conversation(s)", dropped)
        self._store.set(STORAGE_KEY, _conversation_list.dump_json(conversations).decode("utf-8"))

    def list_summaries(self) -> list[ConversationSummary]:
        """Return summaries, most recently updated first."""
        summaries = [
            ConversationSummary(
                id=c.id,
                title=c.title,
                message_count=len(c.messages),
                created_at=c.created_at,
                updated_at=c.updated_at,
                has_tools=c.metadata.has_tools,
            )
            for c in self._load()
        ]
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries

    def get(self, conversation_id: str) -> Conversation | None:
        return next((c for c in self._load() if c.id == conversation_id), None)

    # -- write ----------------------------------------------------------------

    def save(
        self,
        conversation_id: str | None,
        messages: list[dict[str, Any]],
        title: str | None = None,
    ) -> Conversation:
        """Create or replace a conversation and return it.

        A new id is generated when *conversation_id* is ``None``.  Replacing an
        existing conversation keeps its ``created_at``.
        """
        conversations = self._load()
        conversation_id = conversation_id or new_conversation_id()
        now = _utcnow()
        existing = next((i for i, c in enumerate(conversations) if c.id == conversation_id), None)

        conversation = Conversation(
            id=conversation_id,
            title=title or generate_title(messages),
            messages=messages,
            created_at=conversations[existing].created_at if existing is not None else now,
            updated_at=now,
            metadata=ConversationMetadata(
                message_count=len(messages),
                has_tools=_has_tools(messages),
                model=self.model,
            ),
        )
        if existing is not None:
            conversations[existing] = conversation
        else:
            conversations.append(conversation)

        self._write(conversations)
        return conversation

    def delete(self, conversation_id: str) -> bool:
        conversations = self._load()
        kept = [c for c in conversations if c.id != conversation_id]
        if len(kept) == len(conversations):
            return False
        self._write(kept)
        return True

    def clear(self) -> None:
        self._store.delete(STORAGE_KEY)

    # -- import / export -------------------------------------------------------

    def export_json(self) -> str:
        return _conversation_list.dump_json(self._load(), indent=2).decode("utf-8")

    def import_json(self, data: str) -> int:
        """Merge conversations from an export, replacing any with the same id.

        Returns the number of conversations read from *data*.

        Raises
        ------
        ValidationError
            When *data* is not a valid conversation export.
        """
        try:
            imported = _conversation_list.validate_json(data)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid conversation export: {exc.error_count()} error(s)") from exc

        merged = {c.id: c for c in self._load()}
        for conversation in imported:
            merged[conversation.id] = conversation
        self._write(list(merged.values()))
        logger.info("Imported %d conversation(s)", len(imported))
        return len(imported)
