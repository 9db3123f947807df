"""Protocols and type definitions for todo storage backends.

This module defines the record type and the storage contract shared by every
backend. All backends must implement the TodoBackend protocol.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Protocol, TypedDict

if TYPE_CHECKING:
    from todostore.stream import Stream


class Todo(TypedDict):
    """Structure for a single todo item.

    Records are treated as values: updates always replace the whole record
    matched by ``id``.

    Attributes:
        id: Unique identifier, assigned at creation and never changed.
        title: The task description.
        completed: Whether the task is done.
    """

    id: str
    title: str
    completed: bool


class BackendKind(str, Enum):
    """The storage backends a repository can be bound to."""

    KEY_VALUE = "key_value"
    STRUCTURED = "structured"


class TodoBackend(Protocol):
    """Protocol for todo storage backends.

    Each backend owns exactly one persisted storage unit. Every mutator is a
    single read-modify-write transaction against that unit; transactions on
    the same unit never interleave.
    """

    def get_all(self) -> Stream[list[Todo]]:
        """Return a stream of the full todo list.

        The stream replays the current list to every new subscriber and emits
        again after each change to the storage unit.
        """
        ...

    async def add(self, todo: Todo) -> None:
        """Append a todo to the stored list.

        Raises:
            OSError: If the storage unit cannot be read or written.
            CorruptionError: If the stored data cannot be decoded.
        """
        ...

    async def update(self, todo: Todo) -> None:
        """Replace the stored todo whose id matches ``todo["id"]``.

        Does nothing when no stored todo has that id.
        """
        ...

    async def delete(self, todo_id: str) -> None:
        """Remove every stored todo with the given id. Safe if absent."""
        ...

    async def replace_all(self, todos: list[Todo]) -> None:
        """Overwrite the stored list with ``todos``."""
        ...
