"""LangGraph graph definition — the tool-calling chat loop.

Two nodes share a message list:

1. **agent** streams one model turn with every registered tool bound.
   Text deltas are pushed to the ``custom`` stream as they arrive.
2. **tools** runs the turn's tool calls through a
   :class:`~langgraph.prebuilt.ToolNode` and appends their
   :class:`ToolMessage` results.

The loop returns to **agent** after the tools run, and stops at the first
turn without tool calls or once ``max_steps`` model turns have been taken.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any, TypedDict

from langchain_core.messages import AIMessage, AnyMessage, ToolMessage
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from langgraph.prebuilt import ToolNode
from langgraph.types import StreamWriter

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from ai_lab.chat.registry import ToolRegistry


class ChatState(TypedDict):
    messages: Annotated[list[AnyMessage], add_messages]
    step: int


def _last_ai_message(messages: list[AnyMessage]) -> AIMessage | None:
    return next((m for m in reversed(messages) if isinstance(m, AIMessage)), None)


def _rejected_calls(message: AIMessage) -> list[ToolMessage]:
    """Error results for tool calls whose arguments could not be parsed."""
    return [
        ToolMessage(
            content=call.get("error") or "Tool arguments were not valid JSON",
            name=call.get("name") or "unknown",
            tool_call_id=call.get("id") or "",
            status="error",
        )
        for call in message.invalid_tool_calls
    ]


def build_chat_graph(llm: BaseChatModel, registry: ToolRegistry, *, max_steps: int = 5):
    """Construct and return the compiled chat graph.

    Graph topology::

        START ─► agent ──(tool calls)──► tools
                   ▲  │                     │
                   │  └──(none)──► END      │
                   └────(step < max_steps)──┘

    Parameters
    ----------
    llm:
        Chat model supporting ``bind_tools``.
    registry:
        Tools bound to the model and executed by the ``tools`` node.
    max_steps:
        Maximum number of model turns.

    Returns
    -------
    CompiledGraph
        Ready for ``.astream(state, stream_mode=["custom", "updates"])``.
    """
    model = llm.bind_tools(registry.tools)

    async def agent(state: ChatState, writer: StreamWriter) -> dict[str, Any]:
        gathered = None
        async for chunk in model.astream(state["messages"]):
            if isinstance(chunk.content, str) and chunk.content:
                writer({"type": "text-delta", "text": chunk.content})
            gathered = chunk if gathered is None else gathered + chunk

        if gathered is None:
            message = AIMessage(content="")
        else:
            message = AIMessage(
                content=gathered.content,
                tool_calls=gathered.tool_calls,
                invalid_tool_calls=gathered.invalid_tool_calls,
            )
        return {"messages": [message, *_rejected_calls(message)], "step": state["step"] + 1}

    def after_agent(state: ChatState) -> str:
        message = _last_ai_message(state["messages"])
        if message is not None and message.tool_calls:
            return "tools"
        if message is not None and message.invalid_tool_calls and state["step"] < max_steps:
            return "agent"
        return END

    def after_tools(state: ChatState) -> str:
        return "agent" if state["step"] < max_steps else END

    workflow = StateGraph(ChatState)

    # -- Nodes ---------------------------------------------------------------
    workflow.add_node("agent", agent)
    workflow.add_node("tools", ToolNode(registry.tools, handle_tool_errors=True))

    # -- Edges ---------------------------------------------------------------
    workflow.set_entry_point("agent")
    workflow.add_conditional_edges("agent", after_agent, {"tools": "tools", "agent": "agent", END: END})
    workflow.add_conditional_edges("tools", after_tools, {"agent": "agent", END: END})

    return workflow.compile()


def create_initial_state(messages: list[AnyMessage]) -> dict[str, Any]:
    return {"messages": list(messages), "step": 0}
