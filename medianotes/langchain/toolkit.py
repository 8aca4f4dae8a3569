"""
NotesToolkit: the notesDatabase tool for LangChain agents.

Usage::

    from medianotes.langchain import NotesToolkit

    toolkit = NotesToolkit(note_repository)
    tools = toolkit.get_tools()
    # [notesDatabase]

    agent = create_react_agent(llm, tools)
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

try:
    from langchain_core.tools import BaseTool, BaseToolkit, StructuredTool
except ImportError as e:
    raise ImportError(
        "langchain-core is required for NotesToolkit. "
        "Install with: pip install medianotes[langchain]"
    ) from e

from medianotes.insights import NotesDatabaseTool
from medianotes.providers.base import serialize_tool_output


class NotesDatabaseInput(BaseModel):
    """Input for the notesDatabase tool."""

    media_item_id: Optional[str] = Field(
        default=None,
        description="The ID of the media item to gather notes for. If not set, returns all notes.",
    )


class NotesToolkit(BaseToolkit):
    """Toolkit exposing the user's notes, read-only.

    Args:
        note_repository: Any NoteRepositoryProtocol implementation.
    """

    model_config = {"arbitrary_types_allowed": True}

    note_repository: Any

    def __init__(self, note_repository: Any = None, **kwargs):
        super().__init__(note_repository=note_repository, **kwargs)

    def get_tools(self) -> list[BaseTool]:
        return [self._make_notes_database()]

    def _make_notes_database(self) -> BaseTool:
        tool = NotesDatabaseTool(self.note_repository)

        async def notes_database(media_item_id: str | None = None) -> str:
            """Return the user's notes as JSON."""
            return serialize_tool_output(await tool.fetch(media_item_id))

        return StructuredTool.from_function(
            coroutine=notes_database,
            name=NotesDatabaseTool.name,
            description=NotesDatabaseTool.description,
            args_schema=NotesDatabaseInput,
        )
