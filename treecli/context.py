"""Persistent state management for the family tree CLI.

Tracks the "home person" (the person the tree view and the data-entry
wizard start from) and user preferences.  Stored in
``~/.familytree_cli/context.json``.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from functools import wraps
from pathlib import Path
from typing import Any, Callable

import typer

from familytree.config import settings
from familytree.errors import FamilyTreeError


@dataclass
class CliContext:
    home_person_id: str | None = None
    home_person_name: str | None = None
    user_preferences: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @classmethod
    def from_json(cls, data: str) -> CliContext:
        try:
            raw = json.loads(data)
            return cls(**raw)
        except (json.JSONDecodeError, TypeError):
            return cls()


def _get_context_path() -> Path:
    """Return the path to the context JSON file."""
    return settings.cli_config_dir / "context.json"


def load_context() -> CliContext:
    """Load the CLI context from disk. Returns defaults if missing/corrupt."""
    path = _get_context_path()
    if not path.exists():
        return CliContext()
    try:
        return CliContext.from_json(path.read_text(encoding="utf-8"))
    except OSError:
        return CliContext()


def save_context(ctx: CliContext) -> None:
    """Save the CLI context to disk."""
    settings.cli_config_dir.mkdir(parents=True, exist_ok=True)
    _get_context_path().write_text(ctx.to_json(), encoding="utf-8")


def resolve_person(person_id: str | None) -> str:
    """Return *person_id*, falling back to the home person.

    Aborts the command when neither is available.
    """
    if person_id:
        return person_id
    ctx = load_context()
    if not ctx.home_person_id:
        typer.echo("❌ No person given and no home person set.")
        typer.echo("Run 'home set <person-id>' or pass a person id.")
        raise typer.Exit(code=1)
    return ctx.home_person_id


def reports_errors(func: Callable) -> Callable:
    """Decorator turning application errors into a message and exit code 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except FamilyTreeError as exc:
            typer.echo(f"❌ {exc}")
            raise typer.Exit(code=1) from exc

    return wrapper
