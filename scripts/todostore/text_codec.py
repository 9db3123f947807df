"""JSON text codec for todo lists.

Used by the key-value backend, which keeps the whole list as one string.
Decoding never raises: blank or corrupted text reads as an empty list.
"""

from __future__ import annotations

import json
from typing import Any

from todostore.protocol import Todo


def encode(todos: list[Todo]) -> str:
    """Serialize todos to a compact JSON array."""
    return json.dumps(
        [
            {"id": todo["id"], "title": todo["title"], "completed": todo["completed"]}
            for todo in todos
        ],
        ensure_ascii=False,
        separators=(",", ":"),
    )


def _to_todo(item: Any) -> Todo | None:
    if not isinstance(item, dict):
        return None
    todo_id = item.get("id")
    title = item.get("title")
    completed = item.get("completed")
    if not isinstance(todo_id, str) or not isinstance(title, str):
        return None
    if not isinstance(completed, bool):
        return None
    return {"id": todo_id, "title": title, "completed": completed}


def decode(text: str) -> list[Todo]:
    """Deserialize a JSON array of todos.

    Returns an empty list for blank input, unparseable JSON, a non-array
    document, or when any element is missing a field or has the wrong type.
    """
    if not text or not text.strip():
        return []

    try:
        raw = json.loads(text)
    except (ValueError, RecursionError):
        return []

    if not isinstance(raw, list):
        return []

    todos: list[Todo] = []
    for item in raw:
        todo = _to_todo(item)
        if todo is None:
            # One bad element invalidates the whole list
            return []
        todos.append(todo)
    return todos
