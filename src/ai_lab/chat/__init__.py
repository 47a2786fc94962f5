"""
Chat — streaming conversation with tool calling.

This module wires a chat model, a registry of LangChain tools and the message
preprocessing rules into a LangGraph loop whose stream the HTTP layer
forwards to the client.

Public API
----------
- :func:`stream_chat` — run the chat graph and yield typed events.
- :func:`build_chat_graph` — the compiled agent/tools graph.
- :func:`prepare_messages` — shrink a conversation to fit the context window.
- :class:`ToolRegistry` — name → registered tool.
- :func:`build_tool_registry` — register the built-in tools.
"""

from ai_lab.chat.graph import build_chat_graph
from ai_lab.chat.registry import ToolRegistry, ToolResult
from ai_lab.chat.stream import ChatEvent, prepare_messages, stream_chat
from ai_lab.chat.tools import build_tool_registry

__all__ = [
    "ChatEvent",
    "ToolRegistry",
    "ToolResult",
    "build_chat_graph",
    "build_tool_registry",
    "prepare_messages",
    "stream_chat",
]
