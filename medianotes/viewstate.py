"""
Loading lifecycle of a piece of data shown to the user.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ViewStatus(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class ViewState(Generic[T]):
    """
    One of empty, loading, ready(data), or error(message).

    ``data`` is only set when ready; ``error_message`` only on error.
    """
    status: ViewStatus = ViewStatus.EMPTY
    data: Optional[T] = None
    error_message: Optional[str] = None

    @classmethod
    def empty(cls) -> "ViewState[T]":
        return cls()

    @classmethod
    def loading(cls) -> "ViewState[T]":
        return cls(ViewStatus.LOADING)

    @classmethod
    def ready(cls, data: T) -> "ViewState[T]":
        return cls(ViewStatus.READY, data=data)

    @classmethod
    def error(cls, message: str) -> "ViewState[T]":
        return cls(ViewStatus.ERROR, error_message=message)

    @property
    def is_empty(self) -> bool:
        return self.status is ViewStatus.EMPTY

    @property
    def is_loading(self) -> bool:
        return self.status is ViewStatus.LOADING

    @property
    def is_ready(self) -> bool:
        return self.status is ViewStatus.READY

    @property
    def is_error(self) -> bool:
        return self.status is ViewStatus.ERROR
