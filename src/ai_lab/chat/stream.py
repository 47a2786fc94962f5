"""Message preprocessing and the streaming chat entry point.

:func:`stream_chat` yields :class:`ChatEvent` objects:

* ``text-delta`` — a piece of assistant text.
* ``tool-call`` — the model asked for a tool (id, name, arguments).
* ``tool-result`` — a :class:`ToolResult` built from the tool node's reply.
* ``finish`` — the loop ended (``reason`` is ``stop`` or ``max_steps``).
* ``error`` — the model call failed; no further events follow.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Literal

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from pydantic import BaseModel, Field

from ai_lab.chat.graph import build_chat_graph, create_initial_state
from ai_lab.chat.prompts import SYSTEM_PROMPT
from ai_lab.chat.registry import ToolResult

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from ai_lab.chat.registry import ToolRegistry

logger = logging.getLogger(__name__)

USER_CONTENT_LIMIT = 2000
ASSISTANT_CONTENT_LIMIT = 500
TEXT_PART_LIMIT = 1000
TOOL_SUMMARY_LIMIT = 200
MESSAGE_JSON_LIMIT = 5000
CONVERSATION_JSON_LIMIT = 50000
RECENT_MESSAGES_KEPT = 3


class ChatEvent(BaseModel):
    type: Literal["text-delta", "tool-call", "tool-result", "finish", "error"]
    data: dict[str, Any] = Field(default_factory=dict)


# ── Message preprocessing ───────────────────────────────────────────────


def _cut(text: Any, limit: int) -> Any:
    if isinstance(text, str) and len(text) > limit:
        return text[:limit] + "..."
    return text


def _summarize_part(part: dict[str, Any]) -> dict[str, Any]:
    part_type = part.get("type") or ""
    output = part.get("output")

    if part_type == "tool-generate_image":
        output = output if isinstance(output, dict) else {}
        prompt = output.get("prompt") or ""
        return {
            "type": part_type,
            "output": {
                "success": bool(output.get("success")),
                "context_summary": f"Generated image: {prompt[:30] or 'unknown'}...",
                "provider": output.get("provider") or "openai",
                "image_id": output.get("image_id"),
                "image_url": "[Image generated - view in chat]",
                "prompt": _cut(prompt, 50),
                "revised_prompt": _cut(output.get("revised_prompt"), 50),
            },
        }

    if part_type.startswith("tool-"):
        if output is None:
            return {"type": part_type}
        raw = output if isinstance(output, str) else json.dumps(output, default=str)
        return {
            "type": part_type,
            "output": {
                "success": output.get("success") if isinstance(output, dict) else None,
                "summary": _cut(raw, TOOL_SUMMARY_LIMIT),
            },
        }

    if part_type == "text":
        return {"type": "text", "text": _cut(part.get("text"), TEXT_PART_LIMIT)}

    return part


def prepare_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Shrink a client conversation so it fits the model's context window.

    * user content is cut at 2000 characters;
    * assistant content is cut at 500 characters, assistant text parts at
      1000, and tool outputs are reduced to short summaries (generated
      images lose their inline data);
    * any message still larger than 5000 characters of JSON is replaced by
      an emergency truncation;
    * when the whole conversation exceeds 50000 characters of JSON only the
      last 3 messages are kept.

    The input list is not modified.
    """
    processed: list[dict[str, Any]] = []
    for message in messages:
        role = message.get("role")
        if role == "user":
            message = {**message, "content": _cut(message.get("content"), USER_CONTENT_LIMIT)}
        elif role == "assistant":
            message = {**message, "content": _cut(message.get("content"), ASSISTANT_CONTENT_LIMIT)}
            if message.get("parts"):
                message["parts"] = [_summarize_part(p) for p in message["parts"]]
        processed.append(message)

    final: list[dict[str, Any]] = []
    for idx, message in enumerate(processed):
        encoded = json.dumps(message, default=str)
        if len(encoded) > MESSAGE_JSON_LIMIT:
            logger.warning("Emergency truncation for message %d: %d chars", idx, len(encoded))
            message = {
                "role": message.get("role"),
                "content": f"[Message truncated for context limits] {encoded[:1000]}...",
            }
        final.append(message)

    total = len(json.dumps(final, default=str))
    if total > CONVERSATION_JSON_LIMIT:
        logger.warning("Conversation too large (%d chars), keeping the last %d messages", total, RECENT_MESSAGES_KEPT)
        final = final[-RECENT_MESSAGES_KEPT:]
    return final


def _message_text(message: dict[str, Any]) -> str:
    content = message.get("content")
    pieces: list[str] = [content] if isinstance(content, str) and content else []
    for part in message.get("parts") or []:
        part_type = part.get("type") or ""
        if part_type == "text" and part.get("text") and part.get("text") != content:
            pieces.append(part["text"])
        elif part_type.startswith("tool-") and part.get("output") is not None:
            pieces.append(f"[{part_type[5:]} result] {json.dumps(part['output'], default=str)}")
    return "\n".join(pieces)


def to_langchain_messages(
    messages: list[dict[str, Any]],
    system_prompt: str = SYSTEM_PROMPT,
) -> list[BaseMessage]:
    """Convert client messages into LangChain messages, system prompt first."""
    converted: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for message in messages:
        role = message.get("role")
        text = _message_text(message)
        if role == "user":
            converted.append(HumanMessage(content=text))
        elif role == "assistant":
            converted.append(AIMessage(content=text))
        elif role == "system":
            converted.append(SystemMessage(content=text))
        else:
            logger.debug("Skipping message with role %r", role)
    return converted


# ── Streaming loop ──────────────────────────────────────────────────────


async def stream_chat(
    llm: BaseChatModel,
    registry: ToolRegistry,
    messages: list[BaseMessage],
    *,
    max_steps: int = 5,
) -> AsyncIterator[ChatEvent]:
    """Run the chat graph and translate its stream into :class:`ChatEvent` objects.

    Text deltas come from the graph's ``custom`` stream; tool calls and tool
    results from the ``updates`` of the ``agent`` and ``tools`` nodes.  The
    final ``finish`` event reports ``max_steps`` when the loop ended with
    tool results the model never answered.
    """
    graph = build_chat_graph(llm, registry, max_steps=max_steps)
    config = {"recursion_limit": 2 * max_steps + 2}
    steps = 0
    last_message: BaseMessage | None = None

    try:
        async for mode, chunk in graph.astream(
            create_initial_state(messages), config, stream_mode=["custom", "updates"]
        ):
            if mode == "custom":
                yield ChatEvent(type="text-delta", data={"text": chunk["text"]})
                continue
            for node, update in chunk.items():
                if not update:
                    continue
                steps = update.get("step", steps)
                for message in update.get("messages", []):
                    last_message = message
                    for event in _message_events(node, message):
                        yield event
    except Exception as exc:
        logger.exception("Chat model call failed at step %d", steps + 1)
        yield ChatEvent(type="error", data={"message": str(exc) or "Chat model call failed"})
        return

    if isinstance(last_message, ToolMessage):
        logger.info("Chat stopped after reaching the %d step limit", max_steps)
        yield ChatEvent(type="finish", data={"reason": "max_steps", "steps": steps})
    else:
        yield ChatEvent(type="finish", data={"reason": "stop", "steps": steps})


def _message_events(node: str, message: BaseMessage) -> list[ChatEvent]:
    if isinstance(message, AIMessage):
        return [
            ChatEvent(type="tool-call", data={"id": call["id"], "name": call["name"], "args": call["args"]})
            for call in message.tool_calls
        ]
    if isinstance(message, ToolMessage):
        result = ToolResult.from_message(message)
        return [ChatEvent(type="tool-result", data={"id": message.tool_call_id, **result.model_dump(mode="json")})]
    logger.debug("Ignoring %s message from node %s", type(message).__name__, node)
    return []
