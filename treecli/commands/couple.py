"""Couple, relative and edge-flip commands."""

from typing import Optional

import typer

from familytree.db import family, get_connection, init_db
from familytree.db.family import ReusePolicy, couple_choice, relevant_couples
from treecli.context import reports_errors, resolve_person

couple_app = typer.Typer(help="Create and link couples (family units).")
relative_app = typer.Typer(help="Add relatives to a person.")


@couple_app.command("new")
@reports_errors
def couple_new(
    person_id: str = typer.Argument(..., help="Anchor person UUID."),
    role: str = typer.Option("partner", "--role", help="partner | child"),
) -> None:
    """Create a couple with the anchor as partner or child."""
    conn = get_connection()
    init_db(conn)
    try:
        couple = family.create_couple(conn, person_id, role)
        typer.echo(f"✅ Couple created: {couple.id}")
    finally:
        conn.close()


@couple_app.command("link")
@reports_errors
def couple_link(
    person_id: str = typer.Argument(..., help="Person UUID."),
    couple_id: str = typer.Argument(..., help="Couple UUID."),
    role: str = typer.Option(..., "--role", help="partner | child"),
) -> None:
    """Attach an existing person to an existing couple."""
    conn = get_connection()
    init_db(conn)
    try:
        family.link_person_to_couple(conn, person_id, couple_id, role)
        typer.echo(f"🔗 Linked {person_id[:8]} to {couple_id[:8]} as {role}")
    finally:
        conn.close()


@couple_app.command("delete")
@reports_errors
def couple_delete(
    couple_id: str = typer.Argument(..., help="Couple UUID."),
) -> None:
    """Delete a couple; its members are kept."""
    conn = get_connection()
    init_db(conn)
    try:
        family.delete_couple(conn, couple_id)
        typer.echo(f"🗑️  Deleted couple {couple_id}")
    finally:
        conn.close()


@relative_app.command("add")
@reports_errors
def relative_add(
    role: str = typer.Argument(..., help="parent | child | partner"),
    person_id: Optional[str] = typer.Option(None, "--of", help="Anchor person (default: home)."),
    couple_id: Optional[str] = typer.Option(None, "--couple", help="Reuse this couple."),
    new_couple: bool = typer.Option(False, "--new-couple", help="Always create a new couple."),
    first_name: Optional[str] = typer.Option(None, "--first"),
    last_name: Optional[str] = typer.Option(None, "--last"),
    gender: Optional[str] = typer.Option(None, "--gender"),
) -> None:
    """Add a parent, child or partner to a person.

    When the person already has a relevant couple you are asked whether to
    reuse it (one) or which one to use (several).
    """
    anchor = resolve_person(person_id)
    conn = get_connection()
    init_db(conn)
    try:
        if not couple_id and not new_couple:
            membership = family.list_couples_for_person(conn, anchor)
            candidates = relevant_couples(membership, role)
            policy = couple_choice(membership, role)
            if policy is ReusePolicy.CONFIRM:
                if typer.confirm(f"Reuse existing couple {candidates[0][:8]}?", default=True):
                    couple_id = candidates[0]
            elif policy is ReusePolicy.CHOOSE:
                typer.echo("Existing couples:")
                for i, cid in enumerate(candidates, start=1):
                    typer.echo(f"  {i}. {cid}")
                typer.echo("  0. create a new couple")
                pick = typer.prompt("Choose", type=int, default=1)
                if 0 < pick <= len(candidates):
                    couple_id = candidates[pick - 1]

        fields = {k: v for k, v in {
            "first_name": first_name,
            "last_name": last_name,
            "gender": gender,
        }.items() if v is not None}
        person, cid = family.create_person_and_link(conn, anchor, couple_id, role, fields)
        typer.echo(f"✅ Added {person.name} ({person.id}) as {role} via couple {cid[:8]}")
    finally:
        conn.close()


@reports_errors
def flip(
    person_id: str = typer.Argument(..., help="Person UUID."),
    couple_id: str = typer.Argument(..., help="Couple UUID."),
) -> None:
    """Swap a person's role in a couple between partner and child."""
    conn = get_connection()
    init_db(conn)
    try:
        kind = family.flip_edge(conn, person_id, couple_id)
        typer.echo(f"🔄 {person_id[:8]} is now {kind.value} in {couple_id[:8]}")
    finally:
        conn.close()
