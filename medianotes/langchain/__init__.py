"""
LangChain integration for medianotes.

Components:
    NotesToolkit        The notesDatabase tool as a LangChain StructuredTool
    LangChainRuntime    Model runtime over any tool-calling chat model

Requires: pip install medianotes[langchain]
"""

# Each module guards its own optional dependency (ImportError on missing packages)
from medianotes.langchain.runtime import LangChainRuntime
from medianotes.langchain.toolkit import NotesToolkit

__all__ = [
    "LangChainRuntime",
    "NotesToolkit",
]
