"""Structured binary storage backend for todos.

This module provides a backend that persists the todo list as a protobuf
TodoList message in its own file. Corrupted files are never silently
replaced: a decode failure aborts the transaction with CorruptionError.
"""

from __future__ import annotations

from pathlib import Path

from todostore import binary_codec
from todostore.datastore import DataStore
from todostore.protocol import Todo
from todostore.stream import Stream


class TodoListSerializer:
    """Serializer for the TodoList message."""

    @property
    def default_value(self) -> list[Todo]:
        return []

    def read_from(self, data: bytes) -> list[Todo]:
        return binary_codec.decode(data)

    def write_to(self, value: list[Todo]) -> bytes:
        return binary_codec.encode(value)


def _copy_todos(todos: list[Todo]) -> list[Todo]:
    return [{**todo} for todo in todos]


def open_todo_list_store(path: Path) -> DataStore[list[Todo]]:
    """Create the DataStore backing a StructuredTodoBackend."""
    return DataStore(path, TodoListSerializer())


class StructuredTodoBackend:
    """Todo backend storing a binary TodoList message.

    Attributes:
        store: The DataStore holding the decoded list.

    Example:
        backend = StructuredTodoBackend(open_todo_list_store(Path("todos.pb")))
        await backend.delete("1")
    """

    def __init__(self, store: DataStore[list[Todo]]) -> None:
        self.store = store

    def get_all(self) -> Stream[list[Todo]]:
        # Subscribers get copies, never the records held by the store
        return self.store.data.map(_copy_todos)

    async def add(self, todo: Todo) -> None:
        record: Todo = {**todo}
        await self.store.update_data(lambda todos: [*todos, record])

    async def update(self, todo: Todo) -> None:
        record: Todo = {**todo}

        def replace(todos: list[Todo]) -> list[Todo]:
            for index, existing in enumerate(todos):
                if existing["id"] == record["id"]:
                    return [*todos[:index], record, *todos[index + 1:]]
            return todos

        await self.store.update_data(replace)

    async def delete(self, todo_id: str) -> None:
        await self.store.update_data(
            lambda todos: [todo for todo in todos if todo["id"] != todo_id]
        )

    async def replace_all(self, todos: list[Todo]) -> None:
        snapshot = _copy_todos(todos)
        await self.store.update_data(lambda _current: snapshot)
