"""Key-value storage backend for todos.

This module provides a backend that keeps the whole todo list as one JSON
string in a named slot of a KeyValueStore. Each mutation decodes the slot,
changes the list and writes the re-encoded string back in one transaction.
"""

from __future__ import annotations

from todostore import text_codec
from todostore.datastore import KeyValueStore
from todostore.protocol import Todo
from todostore.stream import Stream

TODOS_KEY = "todos"


class KeyValueTodoBackend:
    """Todo backend storing a JSON array in a key-value slot.

    A corrupted slot reads as an empty list; the next write replaces it.

    Attributes:
        store: The KeyValueStore holding the slot.
        key: Name of the slot.

    Example:
        backend = KeyValueTodoBackend(KeyValueStore(Path("todo_preferences.json")))
        await backend.add({"id": "1", "title": "Buy milk", "completed": False})
    """

    def __init__(self, store: KeyValueStore, key: str = TODOS_KEY) -> None:
        self.store = store
        self.key = key

    def _load(self, slots: dict[str, str]) -> list[Todo]:
        return text_codec.decode(slots.get(self.key, ""))

    def get_all(self) -> Stream[list[Todo]]:
        return self.store.data.map(self._load)

    async def add(self, todo: Todo) -> None:
        def append(slots: dict[str, str]) -> None:
            todos = self._load(slots)
            todos.append(todo)
            slots[self.key] = text_codec.encode(todos)

        await self.store.edit(append)

    async def update(self, todo: Todo) -> None:
        def replace(slots: dict[str, str]) -> None:
            todos = self._load(slots)
            for index, existing in enumerate(todos):
                if existing["id"] == todo["id"]:
                    todos[index] = todo
                    slots[self.key] = text_codec.encode(todos)
                    return

        await self.store.edit(replace)

    async def delete(self, todo_id: str) -> None:
        def remove(slots: dict[str, str]) -> None:
            todos = self._load(slots)
            slots[self.key] = text_codec.encode(
                [todo for todo in todos if todo["id"] != todo_id]
            )

        await self.store.edit(remove)

    async def replace_all(self, todos: list[Todo]) -> None:
        def overwrite(slots: dict[str, str]) -> None:
            slots[self.key] = text_codec.encode(todos)

        await self.store.edit(overwrite)
