"""Store factory and exports for the todo datastore.

This module opens the persisted stores and builds repositories for the
backend selected by the TODO_STORAGE_BACKEND environment variable.

Supported backends:
    - "key_value" (default): JSON array in a slot of a key-value file
    - "structured": binary TodoList message in its own file

Environment Variables:
    TODO_STORAGE_BACKEND: "key_value" (default) or "structured"
    TODO_DATA_DIR: Directory holding both store files (relative or absolute)
    TODO_PREFERENCES_PATH: Custom path for the key-value file
    TODO_PROTO_PATH: Custom path for the binary file

Example:
    from todostore import get_repository
    from pathlib import Path

    repository = get_repository(Path("/home/user/project"))
    await repository.add({"id": "1", "title": "Buy milk", "completed": False})
"""

from __future__ import annotations

import os
from pathlib import Path

from todostore.datastore import CorruptionError, DataStore, KeyValueStore
from todostore.protocol import BackendKind, Todo, TodoBackend
from todostore.repository import TodoRepository, TodoStores
from todostore.structured_backend import open_todo_list_store

__all__ = [
    "BackendKind",
    "CorruptionError",
    "DataStore",
    "KeyValueStore",
    "Todo",
    "TodoBackend",
    "TodoRepository",
    "TodoStores",
    "get_backend_kind",
    "get_repository",
    "open_stores",
    "_resolve_safe_path",
]

DEFAULT_DATA_DIR = ".todostore"
PREFERENCES_FILE = "todo_preferences.json"
PROTO_FILE = "todos.pb"


def _resolve_safe_path(base_dir: Path, user_path: str) -> Path | None:
    """Resolve a path, ensuring it stays within base_dir.

    Args:
        base_dir: The base directory paths must stay within.
        user_path: User-provided path (relative or absolute).

    Returns:
        Resolved absolute path, or None if path escapes base_dir.
    """
    if not user_path or not user_path.strip():
        return None

    if "\x00" in user_path:
        return None

    candidate = Path(user_path)
    if not candidate.is_absolute():
        candidate = base_dir / candidate

    # Resolve to absolute, following symlinks
    resolved = candidate.resolve()
    base_resolved = base_dir.resolve()

    try:
        resolved.relative_to(base_resolved)
        return resolved
    except ValueError:
        return None  # Path escapes project directory


def _get_env_path(project_dir: Path, variable: str, default: Path) -> Path:
    """Read a path override from the environment.

    Raises:
        ValueError: If the configured path escapes project directory.
    """
    custom_path = os.environ.get(variable, "").strip()

    if custom_path:
        safe_path = _resolve_safe_path(project_dir, custom_path)
        if safe_path is None:
            raise ValueError(f"{variable} '{custom_path}' escapes project directory")
        return safe_path

    return default


def _get_data_dir(project_dir: Path) -> Path:
    return _get_env_path(project_dir, "TODO_DATA_DIR", project_dir / DEFAULT_DATA_DIR)


def get_backend_kind() -> BackendKind:
    """Get the configured backend kind.

    Returns:
        The BackendKind named by TODO_STORAGE_BACKEND, KEY_VALUE if unset.

    Raises:
        ValueError: If the variable names an unknown backend.
    """
    backend_type = os.environ.get("TODO_STORAGE_BACKEND", "").strip().lower()
    if not backend_type:
        return BackendKind.KEY_VALUE

    try:
        return BackendKind(backend_type)
    except ValueError:
        raise ValueError(
            f"Unknown storage backend: {backend_type!r}. "
            f"Expected 'key_value' or 'structured'."
        ) from None


def open_stores(project_dir: Path) -> TodoStores:
    """Open the persisted stores for both backends.

    The two stores always live in different files, so data written through one
    backend is never visible through the other. No file is touched until the
    first read or write.

    Args:
        project_dir: The project root directory used for resolving paths.

    Returns:
        The store handles to pass to TodoRepository.create().

    Raises:
        ValueError: If a path configuration escapes the project directory or
            both stores resolve to the same file.
    """
    data_dir = _get_data_dir(project_dir)
    preferences_path = _get_env_path(
        project_dir, "TODO_PREFERENCES_PATH", data_dir / PREFERENCES_FILE
    )
    proto_path = _get_env_path(project_dir, "TODO_PROTO_PATH", data_dir / PROTO_FILE)

    if preferences_path.resolve() == proto_path.resolve():
        raise ValueError(
            f"Key-value and structured stores must use different files, "
            f"both resolve to {preferences_path}"
        )

    return TodoStores(
        preferences=KeyValueStore(preferences_path),
        todo_list=open_todo_list_store(proto_path),
    )


def get_repository(
    project_dir: Path, kind: BackendKind | None = None
) -> TodoRepository:
    """Get a repository over freshly opened stores.

    Args:
        project_dir: The project root directory used for resolving paths.
        kind: Backend to use; defaults to get_backend_kind().

    Returns:
        A TodoRepository bound to the selected backend.

    Raises:
        ValueError: If the backend or path configuration is invalid.
    """
    if kind is None:
        kind = get_backend_kind()
    return TodoRepository.create(open_stores(project_dir), kind)
