"""Person management commands."""

from typing import Optional

import typer

from familytree.db import family, get_connection, init_db
from familytree.db.persons import list_persons, require_person, search_persons
from treecli.context import load_context, reports_errors
from treecli.rendering import describe

person_app = typer.Typer(help="Create, inspect and edit persons.")


def _fields(**values: Optional[str]) -> dict[str, str]:
    return {k: v for k, v in values.items() if v is not None}


@person_app.command("add")
@reports_errors
def person_add(
    first_name: Optional[str] = typer.Option(None, "--first", help="First name (default 'New')."),
    last_name: Optional[str] = typer.Option(None, "--last", help="Last name (default 'Person')."),
    born: Optional[str] = typer.Option(None, "--born", help="Date of birth (default today)."),
    birthplace: Optional[str] = typer.Option(None, "--birthplace", help="Place of birth."),
    gender: Optional[str] = typer.Option(None, "--gender", help="male | female (default male)."),
    profession: Optional[str] = typer.Option(None, "--profession", help="Profession."),
) -> None:
    """Create a standalone person."""
    conn = get_connection()
    init_db(conn)
    try:
        person = family.create_person(
            conn,
            _fields(
                first_name=first_name,
                last_name=last_name,
                date_of_birth=born,
                place_of_birth=birthplace,
                gender=gender,
                profession=profession,
            ),
        )
        typer.echo(f"✅ Person created: {person.name} ({person.id})")
    finally:
        conn.close()


@person_app.command("list")
def person_list() -> None:
    """List every person."""
    conn = get_connection()
    init_db(conn)
    try:
        people = list_persons(conn)
        if not people:
            typer.echo("No persons found.")
            return
        home_id = load_context().home_person_id
        for p in people:
            marker = "*" if p.id == home_id else " "
            typer.echo(f"{marker} {describe(p)}")
    finally:
        conn.close()


@person_app.command("search")
def person_search(
    query: str = typer.Argument(..., help="Part of a first, last or full name."),
) -> None:
    """Find persons by name."""
    conn = get_connection()
    init_db(conn)
    try:
        people = search_persons(conn, query)
        if not people:
            typer.echo(f"No persons match {query!r}.")
            return
        for p in people:
            typer.echo(f"  {describe(p)}")
    finally:
        conn.close()


@person_app.command("show")
@reports_errors
def person_show(
    person_id: str = typer.Argument(..., help="Person UUID."),
) -> None:
    """Show every field of a person and the couples they belong to."""
    conn = get_connection()
    init_db(conn)
    try:
        person = require_person(conn, person_id)
        membership = family.list_couples_for_person(conn, person_id)
        typer.echo(f"\n{describe(person)}")
        typer.echo("-" * 40)
        for key, value in person.to_dict().items():
            if key in ("id", "node_type", "name"):
                continue
            typer.echo(f"   {key:<15} {value if value not in (None, '') else '-'}")
        typer.echo(f"   partner in      {', '.join(c[:8] for c in membership.as_partner) or '-'}")
        typer.echo(f"   child of        {', '.join(c[:8] for c in membership.as_child) or '-'}")
        typer.echo("")
    finally:
        conn.close()


@person_app.command("edit")
@reports_errors
def person_edit(
    person_id: str = typer.Argument(..., help="Person UUID."),
    set_: list[str] = typer.Option(
        [], "--set", help="field=value pair, repeatable (empty value clears)."
    ),
) -> None:
    """Update one or more fields of a person."""
    updates: dict[str, str] = {}
    for pair in set_:
        if "=" not in pair:
            typer.echo(f"❌ Expected field=value, got {pair!r}")
            raise typer.Exit(code=1)
        key, value = pair.split("=", 1)
        updates[key.strip()] = value

    conn = get_connection()
    init_db(conn)
    try:
        person = family.update_person(conn, person_id, updates)
        typer.echo(f"✅ Updated {person.name}")
    finally:
        conn.close()


@person_app.command("delete")
@reports_errors
def person_delete(
    person_id: str = typer.Argument(..., help="Person UUID."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Delete a person with their relationships and photo tags."""
    conn = get_connection()
    init_db(conn)
    try:
        person = require_person(conn, person_id)
        if not yes:
            typer.confirm(f"Delete {person.name}?", abort=True)
        family.delete_person(conn, person_id)
        typer.echo(f"🗑️  Deleted {person.name}")
    finally:
        conn.close()
