"""Family tree CLI: entry-point for all local operations.

Usage:
    familytree --help
    python -m treecli.main --help

Command groups:
    db        database setup
    person    create, inspect and edit persons
    couple    create and link couples
    relative  add parents, children and partners
    tree      outline, layout JSON and SVG export
    home      the person views start from
    photo     upload and manage tagged photos
    wizard    fill in missing details, nearest relatives first
"""

from __future__ import annotations

import typer

from familytree.config import settings
from familytree.db import get_connection, init_db
from familytree.db.migrations import SCHEMA_VERSION
from familytree.logging_config import setup_logging
from treecli.commands.couple import couple_app, flip, relative_app
from treecli.commands.home import home_app
from treecli.commands.person import person_app
from treecli.commands.photo import photo_app
from treecli.commands.tree import tree_app
from treecli.commands.wizard import wizard

app = typer.Typer(
    name="familytree",
    help="Family tree CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    setup_logging(level="DEBUG" if verbose else None)


db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path} (schema v{SCHEMA_VERSION})")


app.add_typer(person_app, name="person")
app.add_typer(couple_app, name="couple")
app.add_typer(relative_app, name="relative")
app.add_typer(tree_app, name="tree")
app.add_typer(home_app, name="home")
app.add_typer(photo_app, name="photo")
app.command("flip")(flip)
app.command("wizard")(wizard)


if __name__ == "__main__":
    app()
