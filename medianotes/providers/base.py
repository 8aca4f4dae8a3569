"""
Model runtime interfaces.

A model runtime answers two questions: can it run at all (availability),
and, given instructions, a set of tools, and a prompt, what structured reply
does the model produce (respond). Tool round-trips happen inside respond();
callers only see the final validated reply or a GenerationError.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..errors import GenerationError

logger = logging.getLogger(__name__)

# Model turns allowed per respond() call before giving up
MAX_TOOL_ROUNDS = 4

M = TypeVar("M", bound=BaseModel)

# Serializes tool results of any shape (models, lists, dicts, datetimes)
_ANY = TypeAdapter(Any)


# -----------------------------------------------------------------------------
# Availability
# -----------------------------------------------------------------------------

class UnavailableReason(str, Enum):
    DEVICE_NOT_ELIGIBLE = "device_not_eligible"
    FEATURE_NOT_ENABLED = "feature_not_enabled"
    MODEL_NOT_READY = "model_not_ready"
    OTHER = "other"


_UNAVAILABLE_MESSAGES = {
    UnavailableReason.DEVICE_NOT_ELIGIBLE: "Insights not supported on this device",
    UnavailableReason.FEATURE_NOT_ENABLED: "Apple Intelligence not enabled",
    UnavailableReason.MODEL_NOT_READY: "Model not ready",
}

UNAVAILABLE_FALLBACK_MESSAGE = "Model unavailable"


@dataclass(frozen=True)
class Availability:
    """
    Whether a runtime can be asked to generate.

    ``reason`` is None when available. ``detail`` is an optional
    runtime-specific hint (e.g. which environment variable to set); it is not
    part of the user-facing message.
    """
    reason: Optional[UnavailableReason] = None
    detail: Optional[str] = None

    @classmethod
    def available(cls) -> "Availability":
        return cls()

    @classmethod
    def unavailable(cls, reason: UnavailableReason, detail: Optional[str] = None) -> "Availability":
        return cls(reason=reason, detail=detail)

    @property
    def is_available(self) -> bool:
        return self.reason is None

    @property
    def message(self) -> Optional[str]:
        """Fixed user-facing text for the reason, or None when available."""
        if self.reason is None:
            return None
        return _UNAVAILABLE_MESSAGES.get(self.reason, UNAVAILABLE_FALLBACK_MESSAGE)


# -----------------------------------------------------------------------------
# Tools and runtimes
# -----------------------------------------------------------------------------

@runtime_checkable
class ToolDeclaration(Protocol):
    """
    A function the model may call mid-session to fetch data.

    Example implementation:
        class EchoTool:
            name = "echo"
            description = "Returns its input"

            def arguments_schema(self) -> dict:
                return {"type": "object", "properties": {"text": {"type": "string"}}}

            async def call(self, arguments: dict):
                return arguments.get("text", "")
    """

    name: str
    description: str

    def arguments_schema(self) -> dict:
        """JSON schema of the arguments object."""
        ...

    async def call(self, arguments: dict) -> Any:
        """
        Run the tool.

        Returns:
            Any JSON-serializable value (pydantic models included)
        """
        ...


@runtime_checkable
class ModelRuntime(Protocol):
    """
    A language model session factory.

    Implementations must not call respond() on the model when availability()
    reports unavailable; callers check first.
    """

    async def availability(self) -> Availability:
        """Current availability. No side effects."""
        ...

    async def respond(
        self,
        instructions: str,
        tools: list[ToolDeclaration],
        prompt: str,
        schema: type[M],
    ) -> M:
        """
        Run one session to completion.

        Args:
            instructions: System instructions for the session
            tools: Tools the model may call, zero or more times
            prompt: The user request
            schema: Pydantic model the final reply must validate against

        Raises:
            GenerationError: Session failure, tool failure, schema mismatch,
                or too many tool rounds
        """
        ...


# -----------------------------------------------------------------------------
# Helpers shared by runtimes
# -----------------------------------------------------------------------------

def serialize_tool_output(result: Any) -> str:
    """JSON text for a tool result; pydantic models use their aliases."""
    return json.dumps(_ANY.dump_python(result, mode="json", by_alias=True, exclude_none=True))


async def run_tool(tools: list[ToolDeclaration], name: str, arguments: dict | None) -> str:
    """
    Call the named tool and serialize its output.

    Raises:
        GenerationError: Unknown tool name, or the tool raised
    """
    for tool in tools:
        if tool.name == name:
            break
    else:
        raise GenerationError(f"Model called unknown tool: {name}")

    logger.debug("Tool call %s(%s)", name, arguments)
    try:
        result = await tool.call(arguments or {})
    except GenerationError:
        raise
    except Exception as e:
        raise GenerationError(f"Tool {name} failed: {e}") from e
    return serialize_tool_output(result)


def validate_reply(schema: type[M], data: Any) -> M:
    """
    Validate a decoded reply (dict) or raw JSON text against the schema.

    Raises:
        GenerationError: If the reply does not conform
    """
    try:
        if isinstance(data, (str, bytes)):
            return schema.model_validate_json(data)
        return schema.model_validate(data)
    except ValidationError as e:
        raise GenerationError(
            f"Model reply does not match {schema.__name__}: {e.error_count()} error(s)"
        ) from e


def output_schema(schema: type[BaseModel]) -> dict:
    """JSON schema for the final reply, as sent to the model."""
    return schema.model_json_schema()


# -----------------------------------------------------------------------------
# Runtime Registry
# -----------------------------------------------------------------------------

class RuntimeRegistry:
    """
    Registry for discovering and instantiating model runtimes.

    Runtimes are registered by name so the store configuration (TOML) can
    select one without code changes.

    Example:
        registry = get_registry()
        runtime = registry.create("ollama", {"model": "llama3.2"})
    """

    def __init__(self):
        self._runtimes: dict[str, type] = {}
        self._lazy_loaded = False

    def _ensure_runtimes_loaded(self) -> None:
        """Import the built-in runtime module so it registers itself."""
        if self._lazy_loaded:
            return
        self._lazy_loaded = True
        from . import llm  # noqa: F401

    def register(self, name: str, runtime_class: type) -> None:
        self._runtimes[name] = runtime_class

    def create(self, name: str, params: dict | None = None) -> ModelRuntime:
        """
        Create a runtime instance.

        Raises:
            ValueError: Unknown runtime name
            RuntimeError: The runtime could not be constructed
        """
        self._ensure_runtimes_loaded()
        if name not in self._runtimes:
            available = ", ".join(self._runtimes.keys()) or "none"
            raise ValueError(
                f"Unknown model runtime: '{name}'. "
                f"Available runtimes: {available}."
            )
        try:
            return self._runtimes[name](**(params or {}))
        except Exception as e:
            raise RuntimeError(f"Failed to create model runtime '{name}': {e}") from e

    def list_runtimes(self) -> list[str]:
        self._ensure_runtimes_loaded()
        return list(self._runtimes.keys())


# Global registry instance
# Concrete runtimes register themselves on import
_registry = RuntimeRegistry()


def get_registry() -> RuntimeRegistry:
    """Get the global runtime registry."""
    return _registry
