"""Single-file persisted stores with transactional updates.

A DataStore owns one file holding one value. Reads and writes run in a worker
thread so the event loop is never blocked, and every update is a
read-modify-write transaction serialized by an asyncio lock. Writes use a
temp file + os.replace so the file is never left half-written.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Generic, Protocol, TypeVar

from todostore.stream import OnError, OnNext, Stream, Subject, Subscription

T = TypeVar("T")


class CorruptionError(ValueError):
    """Raised when a store file exists but cannot be deserialized."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Corrupted data in {path}: {reason}")
        self.path = path


class Serializer(Protocol[T]):
    """Converts a store value to and from the bytes kept on disk."""

    @property
    def default_value(self) -> T:
        """Value of a store whose file does not exist yet."""
        ...

    def read_from(self, data: bytes) -> T:
        """Deserialize file contents.

        Raises:
            ValueError: If the data is not a valid encoding.
        """
        ...

    def write_to(self, value: T) -> bytes:
        """Serialize a value for writing."""
        ...


class _StoreStream(Stream[T]):
    def __init__(self, store: DataStore[T]) -> None:
        self._store = store

    async def subscribe(
        self, on_next: OnNext[T], on_error: OnError | None = None
    ) -> Subscription:
        try:
            await self._store._ensure_loaded()
        except Exception as exc:
            if on_error is None:
                raise
            on_error(exc)
            return Subscription.closed()
        return self._store._subject.attach(on_next)


class DataStore(Generic[T]):
    """A persisted value with a replay-latest stream and atomic updates.

    Attributes:
        path: The file backing the store.

    Example:
        store = DataStore(Path("todos.pb"), TodoListSerializer())
        await store.update_data(lambda todos: [*todos, new_todo])
        todos = await store.data.first()
    """

    def __init__(self, path: Path, serializer: Serializer[T]) -> None:
        """Initialize the store. Nothing is read until first use.

        Args:
            path: The path to the backing file.
            serializer: Converts values to and from file contents.
        """
        self.path = path
        self._serializer = serializer
        self._lock = asyncio.Lock()
        self._subject: Subject[T] = Subject()
        self._data: Stream[T] = _StoreStream(self)

    @property
    def data(self) -> Stream[T]:
        """Stream of the stored value, loaded on first subscription."""
        return self._data

    def _read(self) -> T:
        if not self.path.exists():
            return self._serializer.default_value

        with open(self.path, "rb") as f:
            raw = f.read()
        try:
            return self._serializer.read_from(raw)
        except ValueError as exc:
            raise CorruptionError(self.path, str(exc)) from exc

    def _write(self, value: T) -> None:
        # Ensure parent directory exists
        self.path.parent.mkdir(parents=True, exist_ok=True)

        payload = self._serializer.write_to(value)

        # Write to temp file first, then atomically rename
        temp_fd, temp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(temp_fd, "wb") as f:
                f.write(payload)
            os.replace(temp_path, self.path)  # Atomic on POSIX
        except OSError:
            # Clean up temp file on failure
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    async def _load_locked(self) -> T:
        if not self._subject.has_value:
            value = await asyncio.to_thread(self._read)
            self._subject.publish(value)
        return self._subject.value

    async def _ensure_loaded(self) -> None:
        if self._subject.has_value:
            return
        async with self._lock:
            await self._load_locked()

    async def update_data(self, transform: Callable[[T], T]) -> T:
        """Atomically replace the stored value with ``transform(current)``.

        The transform must return a new value rather than mutate its
        argument. When the result equals the current value nothing is written
        and subscribers are not notified.

        Args:
            transform: Computes the new value from the current one.

        Returns:
            The value stored after the transaction.

        Raises:
            OSError: If the file cannot be read or written.
            CorruptionError: If the existing file cannot be deserialized.
        """
        async with self._lock:
            current = await self._load_locked()
            updated = transform(current)
            if updated == current:
                return current
            await asyncio.to_thread(self._write, updated)
            self._subject.publish(updated)
            return updated


class PreferencesSerializer:
    """Serializes a string-keyed slot map as a JSON object."""

    @property
    def default_value(self) -> dict[str, str]:
        return {}

    def read_from(self, data: bytes) -> dict[str, str]:
        if not data.strip():
            return {}
        # UnicodeDecodeError and JSONDecodeError are both ValueErrors
        try:
            prefs = json.loads(data.decode("utf-8"))
        except RecursionError:
            raise ValueError("JSON nested too deeply") from None
        if not isinstance(prefs, dict):
            raise ValueError("expected a JSON object")
        for key, value in prefs.items():
            if not isinstance(value, str):
                raise ValueError(f"slot {key!r} does not hold a string")
        return prefs

    def write_to(self, value: dict[str, str]) -> bytes:
        return json.dumps(value, indent=2, ensure_ascii=False).encode("utf-8")


class KeyValueStore(DataStore[dict[str, str]]):
    """A DataStore holding named string slots in one JSON file.

    Example:
        prefs = KeyValueStore(Path("todo_preferences.json"))
        await prefs.edit(lambda slots: slots.update(todos="[]"))
    """

    def __init__(self, path: Path) -> None:
        super().__init__(path, PreferencesSerializer())

    async def edit(self, mutator: Callable[[dict[str, str]], None]) -> dict[str, str]:
        """Apply an in-place edit to a copy of the slots in one transaction."""

        def apply(current: dict[str, str]) -> dict[str, str]:
            slots = dict(current)
            mutator(slots)
            return slots

        return await self.update_data(apply)
