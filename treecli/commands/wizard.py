"""Guided data entry: walk outward from a person and fill in the gaps."""

from typing import Optional

import typer

from familytree.db import data_entry, get_connection, init_db
from treecli.context import reports_errors, resolve_person


def _ask(question: data_entry.Question) -> str:
    label = question.label
    if question.options:
        label = f"{label} [{'/'.join(question.options)}]"
    while True:
        answer = typer.prompt(label, default="", show_default=False).strip()
        if not answer or not question.options or answer.lower() in question.options:
            return answer.lower() if question.options else answer
        typer.echo(f"   Please answer one of: {', '.join(question.options)}")


@reports_errors
def wizard(
    person_id: Optional[str] = typer.Option(None, "--start", help="Start person (default: home)."),
    max_distance: Optional[int] = typer.Option(
        None, "--max-distance", help="Hop limit through the graph."
    ),
) -> None:
    """Ask for missing details, nearest relatives first.

    Leave an answer blank to skip it.
    """
    start = resolve_person(person_id)
    conn = get_connection()
    init_db(conn)
    try:
        people = data_entry.incomplete_people(conn, start, max_distance)
        if not people:
            typer.echo("🎉 All Done! Everyone nearby is complete.")
            return

        typer.echo(f"{len(people)} people need details.\n")
        saved = 0
        for entry in people:
            typer.echo(f"── {entry.person.name} (distance {entry.distance})")
            answers = {}
            for question in data_entry.questions_for(entry):
                answer = _ask(question)
                if answer:
                    answers[question.field] = answer
            if answers:
                data_entry.save_answers(conn, entry.person.id, answers)
                saved += 1
                typer.echo("   ✅ Saved")
            else:
                typer.echo("   Skipped")
        typer.echo(f"\nUpdated {saved} of {len(people)} people.")
    finally:
        conn.close()
