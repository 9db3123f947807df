"""Repository forwarding todo operations to one active backend."""

from __future__ import annotations

from dataclasses import dataclass

from todostore.datastore import DataStore, KeyValueStore
from todostore.key_value_backend import KeyValueTodoBackend
from todostore.protocol import BackendKind, Todo, TodoBackend
from todostore.stream import Stream
from todostore.structured_backend import StructuredTodoBackend


@dataclass(frozen=True)
class TodoStores:
    """Handles to the persisted stores, one per backend kind.

    Open these once and pass them to every repository so that a storage file
    is only ever addressed through a single store instance.
    """

    preferences: KeyValueStore
    todo_list: DataStore[list[Todo]]


class TodoRepository:
    """Pass-through to the active TodoBackend.

    The repository never switches backends itself. To change kinds, build a
    new repository with create() and move subscriptions over to it.

    Attributes:
        kind: The kind of the active backend.
    """

    def __init__(self, backend: TodoBackend, kind: BackendKind) -> None:
        self._backend = backend
        self.kind = kind

    @classmethod
    def create(cls, stores: TodoStores, kind: BackendKind) -> TodoRepository:
        """Create a repository bound to the backend of the given kind.

        Args:
            stores: The opened store handles.
            kind: Which backend to use.

        Returns:
            A new TodoRepository.

        Raises:
            ValueError: If kind is not a known BackendKind.
        """
        kind = BackendKind(kind)
        backend: TodoBackend
        if kind is BackendKind.KEY_VALUE:
            backend = KeyValueTodoBackend(stores.preferences)
        else:
            backend = StructuredTodoBackend(stores.todo_list)
        return cls(backend, kind)

    def get_all(self) -> Stream[list[Todo]]:
        return self._backend.get_all()

    async def add(self, todo: Todo) -> None:
        await self._backend.add(todo)

    async def update(self, todo: Todo) -> None:
        await self._backend.update(todo)

    async def delete(self, todo_id: str) -> None:
        await self._backend.delete(todo_id)

    async def replace_all(self, todos: list[Todo]) -> None:
        await self._backend.replace_all(todos)
