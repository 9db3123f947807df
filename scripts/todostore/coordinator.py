"""Reactive state coordinator for the todo list.

The coordinator is the boundary a presentation layer talks to. It observes
the active repository, keeps an immutable TodoUiState, and turns discrete
intents into repository calls. It is also the only place where storage errors
become user-visible state.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from todostore.protocol import BackendKind, Todo
from todostore.repository import TodoRepository, TodoStores
from todostore.stream import Stream, Subject, Subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TodoUiState:
    """Snapshot of everything needed to render the todo screen.

    Attributes:
        todos: The latest list emitted by the repository.
        active_backend_kind: The backend currently in use.
        is_loading: Whether a load or mutation is in progress.
        error: Message of the last failure, None if there is none.
    """

    todos: list[Todo] = field(default_factory=list)
    active_backend_kind: BackendKind = BackendKind.KEY_VALUE
    is_loading: bool = False
    error: str | None = None


@dataclass(frozen=True)
class AddTodo:
    title: str


@dataclass(frozen=True)
class ToggleTodo:
    id: str


@dataclass(frozen=True)
class DeleteTodo:
    id: str


@dataclass(frozen=True)
class SwitchBackend:
    kind: BackendKind


@dataclass(frozen=True)
class Reload:
    pass


TodoIntent = AddTodo | ToggleTodo | DeleteTodo | SwitchBackend | Reload


def _message(exc: BaseException, fallback: str) -> str:
    return str(exc) or fallback


class TodoCoordinator:
    """Mediates between intents and the active TodoRepository.

    Call start() before dispatching intents and close() when done. Every
    repository change arrives through the subscription, so the state already
    reflects a mutation by the time dispatch() returns.

    Example:
        coordinator = TodoCoordinator(open_stores(project_dir))
        await coordinator.start()
        await coordinator.dispatch(AddTodo("Buy milk"))
        print(coordinator.state.todos)
        coordinator.close()
    """

    def __init__(
        self,
        stores: TodoStores,
        kind: BackendKind = BackendKind.KEY_VALUE,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            stores: Store handles shared by every repository it creates.
            kind: The backend to start with.
            id_factory: Generates ids for new todos; random UUIDs by default.
        """
        self._stores = stores
        self._repository = TodoRepository.create(stores, kind)
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._states: Subject[TodoUiState] = Subject(
            TodoUiState(active_backend_kind=self._repository.kind)
        )
        self._subscription: Subscription | None = None

    @property
    def state(self) -> TodoUiState:
        return self._states.value

    @property
    def states(self) -> Stream[TodoUiState]:
        """Replay-latest stream of UI state snapshots."""
        return self._states

    @property
    def repository(self) -> TodoRepository:
        return self._repository

    def _set_state(self, **changes: object) -> None:
        self._states.publish(replace(self.state, **changes))

    def _on_todos(self, todos: list[Todo]) -> None:
        self._set_state(todos=todos, is_loading=False, error=None)

    def _on_error(self, exc: BaseException) -> None:
        logger.warning("Todo stream failed: %r", exc)
        self._set_state(is_loading=False, error=_message(exc, "An error occurred"))

    async def _observe(self) -> None:
        self.close()
        self._subscription = await self._repository.get_all().subscribe(
            self._on_todos, self._on_error
        )

    async def start(self) -> None:
        """Subscribe to the active repository."""
        self._set_state(is_loading=True, error=None)
        await self._observe()

    def close(self) -> None:
        """Cancel the repository subscription. Safe to call repeatedly."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    async def dispatch(self, intent: TodoIntent) -> None:
        """Process one intent to completion.

        Failures are recorded in state.error; they are never raised.
        """
        logger.debug("Dispatching %r", intent)
        if isinstance(intent, AddTodo):
            await self._add_todo(intent.title)
        elif isinstance(intent, ToggleTodo):
            await self._toggle_todo(intent.id)
        elif isinstance(intent, DeleteTodo):
            await self._delete_todo(intent.id)
        elif isinstance(intent, SwitchBackend):
            await self._switch_backend(intent.kind)
        elif isinstance(intent, Reload):
            await self._reload()
        else:
            raise TypeError(f"Unknown intent: {intent!r}")

    async def _add_todo(self, title: str) -> None:
        if not title or not title.strip():
            return

        self._set_state(is_loading=True, error=None)
        todo: Todo = {
            "id": self._id_factory(),
            "title": title.strip(),
            "completed": False,
        }
        try:
            await self._repository.add(todo)
        except Exception as exc:
            logger.warning("Failed to add todo: %r", exc)
            self._set_state(is_loading=False, error=_message(exc, "Failed to add todo"))
            return
        # No emission arrives if the subscription ended after a stream error
        if self.state.is_loading:
            self._set_state(is_loading=False)

    async def _toggle_todo(self, todo_id: str) -> None:
        todo = next((t for t in self.state.todos if t["id"] == todo_id), None)
        if todo is None:
            return

        try:
            await self._repository.update({**todo, "completed": not todo["completed"]})
        except Exception as exc:
            logger.warning("Failed to toggle todo %s: %r", todo_id, exc)
            self._set_state(error=_message(exc, "Failed to toggle todo"))

    async def _delete_todo(self, todo_id: str) -> None:
        try:
            await self._repository.delete(todo_id)
        except Exception as exc:
            logger.warning("Failed to delete todo %s: %r", todo_id, exc)
            self._set_state(error=_message(exc, "Failed to delete todo"))

    async def _switch_backend(self, kind: BackendKind) -> None:
        self._set_state(is_loading=True, error=None)
        try:
            kind = BackendKind(kind)
            self._set_state(active_backend_kind=kind)
            self.close()
            self._repository = TodoRepository.create(self._stores, kind)
            await self._observe()
        except Exception as exc:
            logger.warning("Failed to switch backend to %s: %r", kind, exc)
            self._set_state(
                is_loading=False, error=_message(exc, "Failed to switch backend")
            )

    async def _reload(self) -> None:
        self._set_state(is_loading=True, error=None)
        await self._observe()
