"""Tests for TodoRepository and backend isolation."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from todostore.key_value_backend import KeyValueTodoBackend
from todostore.protocol import BackendKind, Todo
from todostore.repository import TodoRepository, TodoStores
from todostore.structured_backend import StructuredTodoBackend


class TestCreate:
    """Tests for TodoRepository.create."""

    def test_should_bind_key_value_backend(self, stores: TodoStores) -> None:
        repository = TodoRepository.create(stores, BackendKind.KEY_VALUE)

        assert repository.kind is BackendKind.KEY_VALUE
        assert isinstance(repository._backend, KeyValueTodoBackend)
        assert repository._backend.store is stores.preferences

    def test_should_bind_structured_backend(self, stores: TodoStores) -> None:
        repository = TodoRepository.create(stores, BackendKind.STRUCTURED)

        assert repository.kind is BackendKind.STRUCTURED
        assert isinstance(repository._backend, StructuredTodoBackend)
        assert repository._backend.store is stores.todo_list

    def test_should_accept_kind_value_string(self, stores: TodoStores) -> None:
        repository = TodoRepository.create(stores, "structured")  # type: ignore[arg-type]

        assert repository.kind is BackendKind.STRUCTURED

    def test_should_reject_unknown_kind(self, stores: TodoStores) -> None:
        with pytest.raises(ValueError):
            TodoRepository.create(stores, "sqlite")  # type: ignore[arg-type]


class TestForwarding:
    """Tests that every operation reaches the backend unchanged."""

    @pytest.fixture
    def backend(self) -> MagicMock:
        backend = MagicMock()
        for name in ["add", "update", "delete", "replace_all"]:
            setattr(backend, name, AsyncMock())
        return backend

    def test_should_forward_get_all(self, backend: MagicMock) -> None:
        repository = TodoRepository(backend, BackendKind.KEY_VALUE)

        assert repository.get_all() is backend.get_all.return_value

    def test_should_forward_mutators(self, backend: MagicMock, sample_todo: Todo) -> None:
        repository = TodoRepository(backend, BackendKind.KEY_VALUE)

        async def scenario() -> None:
            await repository.add(sample_todo)
            await repository.update(sample_todo)
            await repository.delete("1")
            await repository.replace_all([sample_todo])

        asyncio.run(scenario())

        backend.add.assert_awaited_once_with(sample_todo)
        backend.update.assert_awaited_once_with(sample_todo)
        backend.delete.assert_awaited_once_with("1")
        backend.replace_all.assert_awaited_once_with([sample_todo])

    def test_should_propagate_backend_errors(self, backend: MagicMock, sample_todo: Todo) -> None:
        backend.add.side_effect = OSError("Disk full")
        repository = TodoRepository(backend, BackendKind.KEY_VALUE)

        with pytest.raises(OSError, match="Disk full"):
            asyncio.run(repository.add(sample_todo))


class TestBackendIsolation:
    """Tests that the two backends never share storage."""

    def test_should_not_see_key_value_writes_from_structured(
        self, stores: TodoStores, sample_todo: Todo
    ) -> None:
        key_value = TodoRepository.create(stores, BackendKind.KEY_VALUE)
        structured = TodoRepository.create(stores, BackendKind.STRUCTURED)

        async def scenario() -> tuple[list[Todo], list[Todo]]:
            await key_value.add(sample_todo)
            return await key_value.get_all().first(), await structured.get_all().first()

        assert asyncio.run(scenario()) == ([sample_todo], [])

    def test_should_not_see_structured_writes_from_key_value(
        self, stores: TodoStores, sample_todos: list[Todo]
    ) -> None:
        key_value = TodoRepository.create(stores, BackendKind.KEY_VALUE)
        structured = TodoRepository.create(stores, BackendKind.STRUCTURED)

        async def scenario() -> tuple[list[Todo], list[Todo]]:
            await structured.replace_all(sample_todos)
            return await structured.get_all().first(), await key_value.get_all().first()

        assert asyncio.run(scenario()) == (sample_todos, [])

    def test_should_keep_other_backend_data_when_switching(
        self, stores: TodoStores, sample_todos: list[Todo]
    ) -> None:
        async def scenario() -> list[Todo]:
            await TodoRepository.create(stores, BackendKind.KEY_VALUE).replace_all(
                sample_todos
            )
            await TodoRepository.create(stores, BackendKind.STRUCTURED).replace_all([])
            return await TodoRepository.create(
                stores, BackendKind.KEY_VALUE
            ).get_all().first()

        assert asyncio.run(scenario()) == sample_todos

    def test_should_use_different_files(self, stores: TodoStores) -> None:
        assert stores.preferences.path != stores.todo_list.path

    def test_should_share_one_store_between_repositories(
        self, stores: TodoStores, sample_todo: Todo
    ) -> None:
        first = TodoRepository.create(stores, BackendKind.STRUCTURED)
        second = TodoRepository.create(stores, BackendKind.STRUCTURED)

        async def scenario() -> list[list[Todo]]:
            received: list[list[Todo]] = []
            await second.get_all().subscribe(received.append)
            await first.add(sample_todo)
            return received

        assert asyncio.run(scenario()) == [[], [sample_todo]]
