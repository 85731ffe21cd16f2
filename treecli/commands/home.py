"""Home person commands."""

import typer

from familytree.db import get_connection, init_db
from familytree.db.persons import require_person
from treecli.context import load_context, reports_errors, save_context

home_app = typer.Typer(help="Choose the person views and the wizard start from.")


@home_app.command("set")
@reports_errors
def home_set(
    person_id: str = typer.Argument(..., help="Person UUID."),
) -> None:
    """Make a person the home person."""
    conn = get_connection()
    init_db(conn)
    try:
        person = require_person(conn, person_id)
    finally:
        conn.close()

    ctx = load_context()
    ctx.home_person_id = person.id
    ctx.home_person_name = person.name
    save_context(ctx)
    typer.echo(f"🏠 Home person: {person.name}")


@home_app.command("show")
def home_show() -> None:
    """Show the current home person."""
    ctx = load_context()
    if not ctx.home_person_id:
        typer.echo("No home person set. Use 'home set <person-id>'.")
        return
    typer.echo(f"🏠 {ctx.home_person_name} [{ctx.home_person_id}]")


@home_app.command("clear")
def home_clear() -> None:
    """Forget the home person."""
    ctx = load_context()
    ctx.home_person_id = None
    ctx.home_person_name = None
    save_context(ctx)
    typer.echo("Home person cleared.")
