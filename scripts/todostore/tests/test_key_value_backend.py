"""Tests for KeyValueTodoBackend.

This module tests behaviour specific to the key-value backend, verifying:
- The slot layout inside the preferences file
- Silent recovery from a corrupted slot
- Coexistence with other slots
"""

from __future__ import annotations

import asyncio
import json

from todostore import text_codec
from todostore.datastore import KeyValueStore
from todostore.key_value_backend import TODOS_KEY, KeyValueTodoBackend
from todostore.protocol import Todo


class TestSlotLayout:
    """Tests for how todos are laid out on disk."""

    def test_should_store_text_encoding_under_todos_key(
        self, key_value_backend: KeyValueTodoBackend, sample_todo: Todo
    ) -> None:
        asyncio.run(key_value_backend.add(sample_todo))

        slots = json.loads(key_value_backend.store.path.read_text(encoding="utf-8"))
        assert slots == {TODOS_KEY: text_codec.encode([sample_todo])}

    def test_should_use_custom_slot_name(
        self, preferences_store: KeyValueStore, sample_todo: Todo
    ) -> None:
        backend = KeyValueTodoBackend(preferences_store, key="work")
        asyncio.run(backend.add(sample_todo))

        slots = json.loads(preferences_store.path.read_text(encoding="utf-8"))
        assert list(slots) == ["work"]

    def test_should_leave_other_slots_untouched(
        self, preferences_store: KeyValueStore, sample_todo: Todo
    ) -> None:
        preferences_store.path.write_text('{"theme": "dark"}', encoding="utf-8")
        backend = KeyValueTodoBackend(preferences_store)

        asyncio.run(backend.add(sample_todo))

        slots = json.loads(preferences_store.path.read_text(encoding="utf-8"))
        assert slots["theme"] == "dark"
        assert text_codec.decode(slots[TODOS_KEY]) == [sample_todo]

    def test_should_keep_separate_lists_per_slot(
        self, preferences_store: KeyValueStore, sample_todos: list[Todo]
    ) -> None:
        home = KeyValueTodoBackend(preferences_store, key="home")
        work = KeyValueTodoBackend(preferences_store, key="work")

        async def scenario() -> tuple[list[Todo], list[Todo]]:
            await asyncio.gather(home.add(sample_todos[0]), work.add(sample_todos[1]))
            return await home.get_all().first(), await work.get_all().first()

        assert asyncio.run(scenario()) == ([sample_todos[0]], [sample_todos[1]])


class TestCorruptSlot:
    """Tests for the never-fail decoding policy."""

    def test_should_read_corrupt_slot_as_empty(
        self, preferences_store: KeyValueStore
    ) -> None:
        preferences_store.path.write_text(
            json.dumps({TODOS_KEY: "{not json"}), encoding="utf-8"
        )
        backend = KeyValueTodoBackend(preferences_store)

        assert asyncio.run(backend.get_all().first()) == []

    def test_should_overwrite_corrupt_slot_on_next_add(
        self, preferences_store: KeyValueStore, sample_todo: Todo
    ) -> None:
        preferences_store.path.write_text(
            json.dumps({TODOS_KEY: '[{"id":"x"}]'}), encoding="utf-8"
        )
        backend = KeyValueTodoBackend(preferences_store)

        asyncio.run(backend.add(sample_todo))

        assert asyncio.run(KeyValueTodoBackend(
            KeyValueStore(preferences_store.path)
        ).get_all().first()) == [sample_todo]

    def test_should_not_write_on_update_of_missing_id(
        self, key_value_backend: KeyValueTodoBackend
    ) -> None:
        asyncio.run(
            key_value_backend.update({"id": "nope", "title": "x", "completed": False})
        )

        assert not key_value_backend.store.path.exists()
