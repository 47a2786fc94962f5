"""Request / response schemas for the HTTP API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessageIn(BaseModel):
    """One message as sent by the client.

    ``parts`` carries UI message parts (text, tool outputs); unknown keys
    are kept so they survive preprocessing.
    """

    model_config = ConfigDict(extra="allow")

    role: Literal["user", "assistant", "system"]
    content: str = ""
    parts: list[dict[str, Any]] | None = None


class ChatRequest(BaseModel):
    messages: list[ChatMessageIn] = Field(default_factory=list)


class RagTestRequest(BaseModel):
    query: str = ""


class SaveConversationRequest(BaseModel):
    messages: list[dict[str, Any]] = Field(default_factory=list)
    title: str | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: dict[str, Any] = Field(default_factory=dict)
