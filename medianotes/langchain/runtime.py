"""
LangChainRuntime: drive insight generation through any LangChain chat model.

Usage::

    from langchain_anthropic import ChatAnthropic
    from medianotes.langchain import LangChainRuntime

    runtime = LangChainRuntime(ChatAnthropic(model="claude-haiku-4-5-20251001"))
    notes = MediaNotes(store_path, runtime=runtime)

The chat model must support tool calling (``bind_tools``). The reply schema
is bound as an extra tool; calling it ends the session.
"""

from __future__ import annotations

import logging
from typing import Any

try:
    from langchain_core.messages import HumanMessage, SystemMessage, ToolMessage
except ImportError as e:
    raise ImportError(
        "langchain-core is required for LangChainRuntime. "
        "Install with: pip install medianotes[langchain]"
    ) from e

from medianotes.errors import GenerationError
from medianotes.providers.base import (
    MAX_TOOL_ROUNDS,
    Availability,
    ToolDeclaration,
    run_tool,
    validate_reply,
)

logger = logging.getLogger(__name__)


def _message_text(content: Any) -> str:
    """Text of an AI message whose content may be a list of blocks."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class LangChainRuntime:
    """ModelRuntime over a LangChain chat model."""

    def __init__(self, chat_model: Any, max_tool_rounds: int = MAX_TOOL_ROUNDS):
        self.chat_model = chat_model
        self.max_tool_rounds = max_tool_rounds

    async def availability(self) -> Availability:
        return Availability.available()

    async def respond(self, instructions: str, tools: list[ToolDeclaration], prompt: str, schema):
        tool_defs: list[Any] = [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.arguments_schema(),
                },
            }
            for tool in tools
        ]
        tool_defs.append(schema)
        bound = self.chat_model.bind_tools(tool_defs)

        messages: list[Any] = [SystemMessage(content=instructions), HumanMessage(content=prompt)]
        for _ in range(self.max_tool_rounds):
            try:
                ai_message = await bound.ainvoke(messages)
            except Exception as e:
                raise GenerationError(f"Chat model failed: {e}") from e

            tool_calls = getattr(ai_message, "tool_calls", None) or []
            for call in tool_calls:
                if call["name"] == schema.__name__:
                    return validate_reply(schema, call["args"])
            if not tool_calls:
                return validate_reply(schema, _message_text(ai_message.content))

            messages.append(ai_message)
            for call in tool_calls:
                output = await run_tool(tools, call["name"], call.get("args"))
                messages.append(ToolMessage(content=output, tool_call_id=call["id"]))

        raise GenerationError(
            f"Model did not produce a reply within {self.max_tool_rounds} tool rounds"
        )
