"""
Model runtimes backed by hosted and local LLMs.

Each runtime drives an explicit request/response loop: send the
conversation, execute any tool calls the model asks for, feed the results
back, and stop when the model produces its final structured reply. The loop
is bounded by max_tool_rounds.
"""

import asyncio
import json
import logging
import os

from ..errors import GenerationError
from .base import (
    MAX_TOOL_ROUNDS,
    Availability,
    ToolDeclaration,
    UnavailableReason,
    get_registry,
    output_schema,
    run_tool,
    validate_reply,
)

logger = logging.getLogger(__name__)

# Name of the synthetic tool Anthropic models call to deliver the final reply
RESPOND_TOOL_NAME = "respond"


def _round_limit_error(rounds: int) -> GenerationError:
    return GenerationError(f"Model did not produce a reply within {rounds} tool rounds")


# -----------------------------------------------------------------------------
# Anthropic
# -----------------------------------------------------------------------------

class AnthropicRuntime:
    """
    Runtime using Anthropic's Claude API.

    Authentication (checked in priority order):
    1. api_key parameter (if provided)
    2. ANTHROPIC_API_KEY (API key from console.anthropic.com)
    3. CLAUDE_CODE_OAUTH_TOKEN (OAuth token from 'claude setup-token')

    The reply schema is offered as an extra "respond" tool; the model must
    call some tool every turn, and calling "respond" ends the session.
    """

    def __init__(
        self,
        model: str = "claude-haiku-4-5-20251001",
        api_key: str | None = None,
        max_tokens: int = 1024,
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
        client=None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.max_tool_rounds = max_tool_rounds
        self._api_key = (
            api_key or
            os.environ.get("ANTHROPIC_API_KEY") or
            os.environ.get("CLAUDE_CODE_OAUTH_TOKEN")
        )
        self._client = client

    async def availability(self) -> Availability:
        if self._client is not None:
            return Availability.available()
        try:
            import anthropic  # noqa: F401
        except ImportError:
            return Availability.unavailable(
                UnavailableReason.DEVICE_NOT_ELIGIBLE,
                "Install the 'anthropic' package",
            )
        if not self._api_key:
            return Availability.unavailable(
                UnavailableReason.FEATURE_NOT_ENABLED,
                "Set ANTHROPIC_API_KEY",
            )
        return Availability.available()

    def _get_client(self):
        if self._client is None:
            try:
                from anthropic import AsyncAnthropic
            except ImportError:
                raise GenerationError("AnthropicRuntime requires 'anthropic' library")
            if not self._api_key:
                raise GenerationError("Anthropic authentication required: set ANTHROPIC_API_KEY")
            self._client = AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def respond(self, instructions: str, tools: list[ToolDeclaration], prompt: str, schema):
        client = self._get_client()
        tool_defs = [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.arguments_schema(),
            }
            for tool in tools
        ]
        tool_defs.append({
            "name": RESPOND_TOOL_NAME,
            "description": "Deliver the final answer. Call this once you have gathered the data you need.",
            "input_schema": output_schema(schema),
        })
        messages: list[dict] = [{"role": "user", "content": prompt}]

        for _ in range(self.max_tool_rounds):
            try:
                response = await client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    system=instructions,
                    tools=tool_defs,
                    tool_choice={"type": "any"},
                    messages=messages,
                )
            except Exception as e:
                raise GenerationError(f"Anthropic request failed: {e}") from e

            tool_uses = [block for block in response.content if block.type == "tool_use"]
            for block in tool_uses:
                if block.name == RESPOND_TOOL_NAME:
                    return validate_reply(schema, block.input)
            if not tool_uses:
                text = "".join(b.text for b in response.content if b.type == "text")
                return validate_reply(schema, text)

            messages.append({"role": "assistant", "content": response.content})
            results = []
            for block in tool_uses:
                output = await run_tool(tools, block.name, block.input)
                results.append({
                    "type": "tool_result",
                    "tool_use_id": block.id,
                    "content": output,
                })
            messages.append({"role": "user", "content": results})

        raise _round_limit_error(self.max_tool_rounds)


# -----------------------------------------------------------------------------
# OpenAI
# -----------------------------------------------------------------------------

class OpenAIRuntime:
    """
    Runtime using OpenAI's chat completions API.

    Requires: MEDIANOTES_OPENAI_API_KEY or OPENAI_API_KEY environment variable.
    Tools are sent as function tools; the reply schema as a json_schema
    response format.
    """

    def __init__(
        self,
        model: str = "gpt-4.1-mini",
        api_key: str | None = None,
        max_tokens: int = 1024,
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
        client=None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.max_tool_rounds = max_tool_rounds
        self._api_key = (
            api_key or
            os.environ.get("MEDIANOTES_OPENAI_API_KEY") or
            os.environ.get("OPENAI_API_KEY")
        )
        self._client = client
        # GPT-5+ and reasoning models take max_completion_tokens instead
        self._new_api = self.model.startswith(("gpt-5", "o3", "o4"))

    async def availability(self) -> Availability:
        if self._client is not None:
            return Availability.available()
        try:
            import openai  # noqa: F401
        except ImportError:
            return Availability.unavailable(
                UnavailableReason.DEVICE_NOT_ELIGIBLE,
                "Install the 'openai' package",
            )
        if not self._api_key:
            return Availability.unavailable(
                UnavailableReason.FEATURE_NOT_ENABLED,
                "Set MEDIANOTES_OPENAI_API_KEY or OPENAI_API_KEY",
            )
        return Availability.available()

    def _get_client(self):
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError:
                raise GenerationError("OpenAIRuntime requires 'openai' library")
            if not self._api_key:
                raise GenerationError(
                    "OpenAI API key required. Set MEDIANOTES_OPENAI_API_KEY or OPENAI_API_KEY"
                )
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    def _completion_kwargs(self) -> dict:
        if self._new_api:
            return {"max_completion_tokens": self.max_tokens}
        return {"max_tokens": self.max_tokens}

    async def respond(self, instructions: str, tools: list[ToolDeclaration], prompt: str, schema):
        client = self._get_client()
        tool_defs = [
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
        response_format = {
            "type": "json_schema",
            "json_schema": {"name": schema.__name__, "schema": output_schema(schema)},
        }
        messages: list[dict] = [
            {"role": "system", "content": instructions},
            {"role": "user", "content": prompt},
        ]

        for _ in range(self.max_tool_rounds):
            kwargs = {
                "model": self.model,
                "messages": messages,
                "response_format": response_format,
                **self._completion_kwargs(),
            }
            if tool_defs:
                kwargs["tools"] = tool_defs
            try:
                response = await client.chat.completions.create(**kwargs)
            except Exception as e:
                raise GenerationError(f"OpenAI request failed: {e}") from e

            message = response.choices[0].message
            if not message.tool_calls:
                return validate_reply(schema, message.content or "")

            messages.append({
                "role": "assistant",
                "content": message.content,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.function.name,
                            "arguments": call.function.arguments,
                        },
                    }
                    for call in message.tool_calls
                ],
            })
            for call in message.tool_calls:
                try:
                    arguments = json.loads(call.function.arguments or "{}")
                except json.JSONDecodeError as e:
                    raise GenerationError(
                        f"Model sent malformed arguments for {call.function.name}"
                    ) from e
                output = await run_tool(tools, call.function.name, arguments)
                messages.append({"role": "tool", "tool_call_id": call.id, "content": output})

        raise _round_limit_error(self.max_tool_rounds)


# -----------------------------------------------------------------------------
# Ollama
# -----------------------------------------------------------------------------

class OllamaRuntime:
    """
    Runtime using Ollama's local /api/chat endpoint.

    Respects OLLAMA_HOST env var (default: http://localhost:11434). HTTP
    calls run in a worker thread so the event loop is not blocked.
    """

    def __init__(
        self,
        model: str = "llama3.2",
        base_url: str | None = None,
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
    ):
        from .ollama_utils import ollama_base_url
        self.model = model
        self.base_url = ollama_base_url(base_url)
        self.max_tool_rounds = max_tool_rounds

    async def availability(self) -> Availability:
        from .ollama_utils import ollama_model_installed
        try:
            installed = await asyncio.to_thread(ollama_model_installed, self.base_url, self.model)
        except RuntimeError as e:
            return Availability.unavailable(UnavailableReason.OTHER, str(e))
        if not installed:
            return Availability.unavailable(
                UnavailableReason.MODEL_NOT_READY,
                f"Run: ollama pull {self.model}",
            )
        return Availability.available()

    def _chat(self, payload: dict) -> dict:
        import requests

        try:
            response = requests.post(
                f"{self.base_url}/api/chat",
                json=payload,
                timeout=(10, 300),  # (connect, read)
            )
        except requests.RequestException as e:
            raise GenerationError(f"Cannot reach Ollama at {self.base_url}: {e}") from e
        if not response.ok:
            detail = response.text[:200] if response.text else ""
            raise GenerationError(
                f"Ollama chat failed (model={self.model}): "
                f"HTTP {response.status_code} from {self.base_url}. {detail}"
            )
        return response.json()["message"]

    async def respond(self, instructions: str, tools: list[ToolDeclaration], prompt: str, schema):
        tool_defs = [
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
        messages: list[dict] = [
            {"role": "system", "content": instructions},
            {"role": "user", "content": prompt},
        ]

        for _ in range(self.max_tool_rounds):
            payload = {
                "model": self.model,
                "messages": messages,
                "format": output_schema(schema),
                "stream": False,
            }
            if tool_defs:
                payload["tools"] = tool_defs
            message = await asyncio.to_thread(self._chat, payload)

            tool_calls = message.get("tool_calls") or []
            if not tool_calls:
                return validate_reply(schema, message.get("content") or "")

            messages.append(message)
            for call in tool_calls:
                function = call.get("function", {})
                name = function.get("name", "")
                arguments = function.get("arguments") or {}
                if isinstance(arguments, str):
                    try:
                        arguments = json.loads(arguments)
                    except json.JSONDecodeError as e:
                        raise GenerationError(f"Model sent malformed arguments for {name}") from e
                output = await run_tool(tools, name, arguments)
                messages.append({"role": "tool", "tool_name": name, "content": output})

        raise _round_limit_error(self.max_tool_rounds)


# -----------------------------------------------------------------------------
# No model
# -----------------------------------------------------------------------------

class NoneRuntime:
    """Runtime for stores with no model configured. Always unavailable."""

    def __init__(self, **kwargs):
        pass

    async def availability(self) -> Availability:
        return Availability.unavailable(
            UnavailableReason.FEATURE_NOT_ENABLED,
            "No model configured; run 'medianotes config --model <name>'",
        )

    async def respond(self, instructions: str, tools: list[ToolDeclaration], prompt: str, schema):
        raise GenerationError("No model configured")


# Register runtimes
_registry = get_registry()
_registry.register("anthropic", AnthropicRuntime)
_registry.register("openai", OpenAIRuntime)
_registry.register("ollama", OllamaRuntime)
_registry.register("none", NoneRuntime)
