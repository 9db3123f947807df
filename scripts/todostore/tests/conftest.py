"""Shared fixtures and utilities for todo datastore tests.

This module provides common test fixtures used across the storage tests,
including sample todos, temporary directories, and parameterized backend
instances.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from todostore import open_stores
from todostore.datastore import DataStore, KeyValueStore
from todostore.key_value_backend import KeyValueTodoBackend
from todostore.protocol import BackendKind, Todo, TodoBackend
from todostore.repository import TodoStores
from todostore.structured_backend import StructuredTodoBackend, open_todo_list_store


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project directory for testing.

    Returns:
        Path to a clean temporary directory.
    """
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def sample_todo() -> Todo:
    """Create a sample todo for testing.

    Returns:
        A valid Todo with all required fields.
    """
    return {"id": "1", "title": "Buy milk", "completed": False}


@pytest.fixture
def sample_todos() -> list[Todo]:
    """Create a list of sample todos for testing.

    Returns:
        A list of Todo records with mixed completion.
    """
    return [
        {"id": "1", "title": "Buy milk", "completed": False},
        {"id": "2", "title": "Walk dog", "completed": True},
        {"id": "3", "title": "Write report", "completed": False},
    ]


@pytest.fixture
def preferences_store(tmp_project: Path) -> KeyValueStore:
    """Create a key-value store inside the temporary project."""
    return KeyValueStore(tmp_project / "todo_preferences.json")


@pytest.fixture
def todo_list_store(tmp_project: Path) -> DataStore[list[Todo]]:
    """Create a binary todo list store inside the temporary project."""
    return open_todo_list_store(tmp_project / "todos.pb")


@pytest.fixture
def stores(tmp_project: Path) -> TodoStores:
    """Open both stores at their default locations."""
    return open_stores(tmp_project)


@pytest.fixture(params=[BackendKind.KEY_VALUE, BackendKind.STRUCTURED])
def todo_backend(
    request,
    preferences_store: KeyValueStore,
    todo_list_store: DataStore[list[Todo]],
) -> TodoBackend:
    """Parameterized fixture providing both backend types.

    This fixture enables cross-backend compliance testing by running
    the same tests against both implementations.

    Args:
        request: Pytest request object with param.
        preferences_store: Store for the key-value backend.
        todo_list_store: Store for the structured backend.

    Returns:
        Either a KeyValueTodoBackend or a StructuredTodoBackend.
    """
    if request.param is BackendKind.KEY_VALUE:
        return KeyValueTodoBackend(preferences_store)
    else:
        return StructuredTodoBackend(todo_list_store)


@pytest.fixture
def key_value_backend(preferences_store: KeyValueStore) -> KeyValueTodoBackend:
    """Create a key-value backend for backend-specific tests."""
    return KeyValueTodoBackend(preferences_store)


@pytest.fixture
def structured_backend(
    todo_list_store: DataStore[list[Todo]],
) -> StructuredTodoBackend:
    """Create a structured backend for backend-specific tests."""
    return StructuredTodoBackend(todo_list_store)
