"""
Model runtimes for insight generation.

Runtimes register themselves by name; create one from configuration with
get_registry().create(name, params).
"""

from .base import (
    MAX_TOOL_ROUNDS,
    Availability,
    ModelRuntime,
    ToolDeclaration,
    UnavailableReason,
    get_registry,
)

__all__ = [
    "MAX_TOOL_ROUNDS",
    "Availability",
    "ModelRuntime",
    "ToolDeclaration",
    "UnavailableReason",
    "get_registry",
]
