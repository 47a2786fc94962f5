"""Tool registry — name → LangChain tool, checked when registered.

Tools are :class:`~langchain_core.tools.StructuredTool` objects built with
``StructuredTool.from_function(coroutine=..., args_schema=...)``.  The
pydantic ``args_schema`` validates arguments on every call; the registry adds
the checks LangChain leaves open (name format, uniqueness, a pydantic schema,
an async implementation) and hands the tools to ``bind_tools`` and to the
graph's :class:`~langgraph.prebuilt.ToolNode`.
"""

from __future__ import annotations

import inspect
import json
import logging
import re
from typing import Any

from langchain_core.messages import ToolMessage
from langchain_core.tools import BaseTool
from pydantic import BaseModel

from ai_lab.errors import ToolRegistrationError

logger = logging.getLogger(__name__)

_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")


class ToolResult(BaseModel):
    """Typed outcome of one tool call, as reported to the client."""

    tool_name: str
    success: bool
    output: Any = None
    error: str | None = None

    @classmethod
    def from_message(cls, message: ToolMessage) -> ToolResult:
        """Build a result from the :class:`ToolMessage` a tool call produced."""
        name = message.name or "unknown"
        if message.status == "error":
            return cls(tool_name=name, success=False, error=str(message.content))
        try:
            output = json.loads(message.content) if isinstance(message.content, str) else message.content
        except json.JSONDecodeError:
            output = message.content
        return cls(tool_name=name, success=True, output=output)


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def tools(self) -> list[BaseTool]:
        return list(self._tools.values())

    def register(self, tool: BaseTool) -> None:
        """Add a tool.

        Raises
        ------
        ToolRegistrationError
            When the name is malformed or taken, the schema is not a pydantic
            model, or the tool has no coroutine implementation.
        """
        if not _NAME_PATTERN.match(tool.name):
            raise ToolRegistrationError(f"Invalid tool name: {tool.name!r}")
        if tool.name in self._tools:
            raise ToolRegistrationError(f"Tool already registered: {tool.name!r}")
        schema = tool.args_schema
        if not (isinstance(schema, type) and issubclass(schema, BaseModel)):
            raise ToolRegistrationError(f"Tool {tool.name!r} args_schema must be a pydantic model")
        if not inspect.iscoroutinefunction(getattr(tool, "coroutine", None)):
            raise ToolRegistrationError(f"Tool {tool.name!r} must be implemented by an async function")
        self._tools[tool.name] = tool
        logger.debug("Registered tool %s", tool.name)

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)
