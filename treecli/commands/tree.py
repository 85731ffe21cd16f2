"""Tree viewing commands: ASCII outline, layout JSON and SVG export."""

import dataclasses
import json
from pathlib import Path
from typing import Optional

import typer

from familytree.db import get_connection, init_db
from familytree.db.edges import get_tree
from familytree.layout import LayoutConfig, compute_layout, relax
from familytree.render import RenderSynchronizer
from treecli.context import reports_errors, resolve_person
from treecli.rendering import render_descendants

tree_app = typer.Typer(help="View and export the family tree.")


def _config(rankdir: Optional[str]) -> LayoutConfig:
    config = LayoutConfig.from_settings()
    if rankdir:
        config = dataclasses.replace(config, rankdir=rankdir)
    return config


@tree_app.command("show")
@reports_errors
def tree_show(
    person_id: Optional[str] = typer.Argument(None, help="Root person (default: home)."),
) -> None:
    """Print a person's descendants as an outline."""
    root = resolve_person(person_id)
    conn = get_connection()
    init_db(conn)
    try:
        snapshot = get_tree(conn)
    finally:
        conn.close()
    typer.echo(render_descendants(snapshot, root))


@tree_app.command("stats")
def tree_stats() -> None:
    """Count persons, couples and relationships."""
    conn = get_connection()
    init_db(conn)
    try:
        snapshot = get_tree(conn)
    finally:
        conn.close()
    typer.echo("\n📊 Family Tree")
    typer.echo(f"   Persons:        {len(snapshot.persons)}")
    typer.echo(f"   Couples:        {len(snapshot.couples)}")
    typer.echo(f"   Partnerships:   {len(snapshot.partnership_edges)}")
    typer.echo(f"   Parent links:   {len(snapshot.parentage_edges)}")
    typer.echo("")


@tree_app.command("layout")
@reports_errors
def tree_layout(
    rankdir: Optional[str] = typer.Option(None, "--rankdir", help="TB | BT | LR | RL"),
    relaxed: bool = typer.Option(True, "--relax/--no-relax", help="Run the relaxation pass."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON to a file."),
) -> None:
    """Compute node positions and print them as JSON."""
    config = _config(rankdir)
    conn = get_connection()
    init_db(conn)
    try:
        result = compute_layout(get_tree(conn), config)
    finally:
        conn.close()
    if relaxed:
        result = relax(result, config)

    payload = json.dumps(result.to_dict(), indent=2)
    if output:
        output.write_text(payload, encoding="utf-8")
        typer.echo(f"✅ Layout written to {output}")
    else:
        typer.echo(payload)


@tree_app.command("svg")
@reports_errors
def tree_svg(
    output: Path = typer.Option(Path("family-tree.svg"), "--output", "-o", help="Target file."),
    rankdir: Optional[str] = typer.Option(None, "--rankdir", help="TB | BT | LR | RL"),
) -> None:
    """Render the whole tree to an SVG file."""
    config = _config(rankdir)
    conn = get_connection()
    init_db(conn)
    try:
        snapshot = get_tree(conn)
    finally:
        conn.close()

    scene = RenderSynchronizer(config)
    scene.load(snapshot)
    output.write_text(scene.to_svg(), encoding="utf-8")
    typer.echo(f"✅ Diagram with {len(scene.views)} nodes written to {output}")
