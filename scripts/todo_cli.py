#!/usr/bin/env python3
"""
Todo CLI - command-line front end for the todo datastore.

Each invocation opens the stores, runs one command through the reactive
coordinator, prints the resulting list and exits.

Usage:
    todo_cli.py [--backend key_value|structured] list
    todo_cli.py add "Buy milk"
    todo_cli.py toggle <id>
    todo_cli.py delete <id>
    todo_cli.py clear
    todo_cli.py import todos.json

Environment Variables:
    TODO_PROJECT_DIR (optional): Project root directory. Default: current directory.
    TODO_STORAGE_BACKEND (optional): Backend used when --backend is not given
                                     ("key_value" or "structured"). Default: "key_value"
    TODO_DATA_DIR (optional): Directory for the store files (relative to project
                              or absolute). Default: .todostore
    DEBUG (optional): If set, enables debug logging to stderr.

Exit Codes:
    0: Success
    1: Error (invalid configuration, storage failure, etc.)
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import traceback
from pathlib import Path

from todostore import BackendKind, get_backend_kind, open_stores, text_codec
from todostore.coordinator import (
    AddTodo,
    DeleteTodo,
    TodoCoordinator,
    TodoIntent,
    TodoUiState,
    ToggleTodo,
)
from todostore.protocol import Todo

# Version check
if sys.version_info < (3, 10):
    print("Error: Python 3.10+ required", file=sys.stderr)
    sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    parser = argparse.ArgumentParser(prog="todo", description=__doc__.splitlines()[1])
    parser.add_argument(
        "--backend",
        choices=[kind.value for kind in BackendKind],
        help="storage backend (default: TODO_STORAGE_BACKEND or key_value)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="show all todos")
    add = commands.add_parser("add", help="add a todo")
    add.add_argument("title")
    toggle = commands.add_parser("toggle", help="flip a todo's completed flag")
    toggle.add_argument("id")
    delete = commands.add_parser("delete", help="delete a todo")
    delete.add_argument("id")
    commands.add_parser("clear", help="delete all todos")
    import_ = commands.add_parser("import", help="replace all todos from a JSON file")
    import_.add_argument("file", type=Path)
    return parser


def configure_logging() -> None:
    """Send debug logs to stderr when DEBUG is set."""
    if os.environ.get("DEBUG"):
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
        )


def format_todo(todo: Todo) -> str:
    """Render one todo as a checklist line."""
    mark = "x" if todo["completed"] else " "
    return f"[{mark}] {todo['id']}  {todo['title']}"


def read_import_file(path: Path) -> list[Todo]:
    """Read todos to import from a JSON array file.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the file holds no valid todo list.
    """
    text = path.read_text(encoding="utf-8")
    todos = text_codec.decode(text)
    if not todos and text.strip() not in ("", "[]"):
        raise ValueError(f"{path} does not contain a valid todo list")
    return todos


def intent_for(args: argparse.Namespace) -> TodoIntent | None:
    """Map a parsed command to a coordinator intent, if it has one."""
    if args.command == "add":
        return AddTodo(args.title)
    if args.command == "toggle":
        return ToggleTodo(args.id)
    if args.command == "delete":
        return DeleteTodo(args.id)
    return None


async def run(args: argparse.Namespace, project_dir: Path) -> TodoUiState:
    """Execute one command and return the final UI state."""
    kind = BackendKind(args.backend) if args.backend else get_backend_kind()
    coordinator = TodoCoordinator(open_stores(project_dir), kind)
    await coordinator.start()
    try:
        if args.command == "clear":
            await coordinator.repository.replace_all([])
        elif args.command == "import":
            await coordinator.repository.replace_all(read_import_file(args.file))
        else:
            intent = intent_for(args)
            if intent is not None:
                await coordinator.dispatch(intent)
        return coordinator.state
    finally:
        coordinator.close()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the todo CLI."""
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        project_dir = Path(os.environ.get("TODO_PROJECT_DIR") or os.getcwd())
        state = asyncio.run(run(args, project_dir))

        if state.error:
            print(f"Error: {state.error}", file=sys.stderr)
            sys.exit(1)

        for todo in state.todos:
            print(format_todo(todo))
        print(f"{len(state.todos)} todos ({state.active_backend_kind.value} backend)")

        sys.exit(0)

    except (OSError, ValueError) as e:
        print(f"Error: {e!r}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        # Unexpected errors - preserve stack trace for debugging
        print(f"Unexpected error: {e!r}", file=sys.stderr)
        traceback.print_exc(file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
