"""Tests for the familytree CLI command groups."""

from __future__ import annotations

import json
import logging

import pytest
from typer.testing import CliRunner

from familytree.db import family, get_connection, init_db
from familytree.db.edges import list_edges
from familytree.db.persons import get_person, list_persons
from familytree.render import scene
from treecli.context import CliContext, load_context, save_context
from treecli.main import app

runner = CliRunner()

COMPLETE = {
    "first_name": "Marie",
    "last_name": "Curie",
    "date_of_birth": "1867-11-07",
    "place_of_birth": "Warsaw",
    "gender": "female",
}


@pytest.fixture
def clean_db(tmp_path, monkeypatch):
    """Fresh DB and context directory for each test."""
    monkeypatch.setattr("familytree.config.settings.workspace_dir", tmp_path)
    cli_dir = tmp_path / ".familytree_cli"
    cli_dir.mkdir()
    monkeypatch.setattr("treecli.context.settings.cli_config_dir", cli_dir)
    return tmp_path


def _with_conn(fn, *args, **kwargs):
    conn = get_connection()
    init_db(conn)
    try:
        return fn(conn, *args, **kwargs)
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# db / person
# ---------------------------------------------------------------------------

def test_db_init(clean_db):
    result = runner.invoke(app, ["db", "init"])
    assert result.exit_code == 0
    assert (clean_db / "family.db").exists()


def test_verbose_turns_on_debug_logging(clean_db, monkeypatch):
    root = logging.getLogger()
    monkeypatch.setattr(root, "level", root.level)
    monkeypatch.setattr("familytree.config.settings.log_level", "INFO")

    result = runner.invoke(app, ["--verbose", "tree", "stats"])
    assert result.exit_code == 0
    assert scene.logger.isEnabledFor(logging.DEBUG)

    runner.invoke(app, ["tree", "stats"])
    assert not scene.logger.isEnabledFor(logging.DEBUG)
    assert scene.logger.isEnabledFor(logging.INFO)


def test_person_add_and_list(clean_db):
    result = runner.invoke(app, ["person", "add", "--first", "Ada", "--last", "Lovelace", "--gender", "female"])
    assert result.exit_code == 0
    assert "✅ Person created: Ada Lovelace" in result.stdout

    result = runner.invoke(app, ["person", "list"])
    assert "Ada Lovelace" in result.stdout
    assert "👩" in result.stdout


def test_person_add_bad_gender(clean_db):
    result = runner.invoke(app, ["person", "add", "--gender", "robot"])
    assert result.exit_code == 1
    assert "❌ Invalid gender" in result.stdout


def test_person_show_missing(clean_db):
    result = runner.invoke(app, ["person", "show", "ghost"])
    assert result.exit_code == 1
    assert "❌ Person with id ghost not found" in result.stdout


def test_person_edit(clean_db):
    person = _with_conn(family.create_person, {"first_name": "Ada"})
    result = runner.invoke(app, ["person", "edit", person.id, "--set", "profession=Mathematician"])
    assert result.exit_code == 0
    assert _with_conn(get_person, person.id).profession == "Mathematician"


def test_person_edit_bad_pair(clean_db):
    person = _with_conn(family.create_person)
    result = runner.invoke(app, ["person", "edit", person.id, "--set", "profession"])
    assert result.exit_code == 1


def test_person_search(clean_db):
    _with_conn(family.create_person, {"first_name": "Charles", "last_name": "Babbage"})
    result = runner.invoke(app, ["person", "search", "babb"])
    assert "Charles Babbage" in result.stdout
    result = runner.invoke(app, ["person", "search", "zzz"])
    assert "No persons match" in result.stdout


def test_person_delete(clean_db):
    person = _with_conn(family.create_person)
    result = runner.invoke(app, ["person", "delete", person.id, "--yes"])
    assert result.exit_code == 0
    assert _with_conn(list_persons) == []


# ---------------------------------------------------------------------------
# home / relatives / flip
# ---------------------------------------------------------------------------

def test_home_set_and_show(clean_db):
    person = _with_conn(family.create_person, {"first_name": "Root"})
    result = runner.invoke(app, ["home", "set", person.id])
    assert result.exit_code == 0
    assert load_context().home_person_id == person.id

    result = runner.invoke(app, ["home", "show"])
    assert "Root Person" in result.stdout


def test_relative_add_uses_home(clean_db):
    person = _with_conn(family.create_person, {"first_name": "Root"})
    save_context(CliContext(home_person_id=person.id, home_person_name="Root Person"))

    result = runner.invoke(app, ["relative", "add", "child", "--first", "Kid"])
    assert result.exit_code == 0, result.stdout
    assert "✅ Added Kid Person" in result.stdout
    kinds = sorted(e.kind.value for e in _with_conn(list_edges))
    assert kinds == ["child", "partner"]


def test_relative_add_confirms_reuse(clean_db):
    person = _with_conn(family.create_person)
    runner.invoke(app, ["relative", "add", "child", "--of", person.id])
    result = runner.invoke(app, ["relative", "add", "child", "--of", person.id], input="y\n")
    assert result.exit_code == 0
    couples = {e.couple_id for e in _with_conn(list_edges)}
    assert len(couples) == 1


def test_relative_add_without_home(clean_db):
    result = runner.invoke(app, ["relative", "add", "child"])
    assert result.exit_code == 1
    assert "No person given" in result.stdout


def test_flip(clean_db):
    person = _with_conn(family.create_person)
    _, cid = _with_conn(family.create_person_and_link, person.id, None, "partner")
    result = runner.invoke(app, ["flip", person.id, cid])
    assert result.exit_code == 0
    assert "now child" in result.stdout


def test_couple_new_and_delete(clean_db):
    person = _with_conn(family.create_person)
    result = runner.invoke(app, ["couple", "new", person.id])
    assert result.exit_code == 0
    cid = result.stdout.strip().split()[-1]
    result = runner.invoke(app, ["couple", "delete", cid])
    assert result.exit_code == 0
    assert _with_conn(list_edges) == []


# ---------------------------------------------------------------------------
# tree
# ---------------------------------------------------------------------------

def test_tree_show(clean_db):
    root = _with_conn(family.create_person, {"first_name": "Root"})
    _with_conn(family.create_person_and_link, root.id, None, "partner", {"first_name": "Spouse"})
    _, cid = _with_conn(family.create_person_and_link, root.id, None, "child", {"first_name": "Kid"})
    result = runner.invoke(app, ["tree", "show", root.id])
    assert result.exit_code == 0
    assert "Root Person" in result.stdout
    assert "⚭ Spouse Person" in result.stdout
    assert "Kid Person" in result.stdout


def test_tree_layout_json(clean_db):
    root = _with_conn(family.create_person)
    child, _ = _with_conn(family.create_person_and_link, root.id, None, "child")
    target = clean_db / "layout.json"
    result = runner.invoke(app, ["tree", "layout", "--no-relax", "--rankdir", "LR", "-o", str(target)])
    assert result.exit_code == 0
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data["rankdir"] == "LR"
    ranks = {n["id"]: n["rank"] for n in data["nodes"]}
    assert ranks[child.id] == ranks[root.id] + 1


def test_tree_layout_bad_rankdir(clean_db):
    result = runner.invoke(app, ["tree", "layout", "--rankdir", "UP"])
    assert result.exit_code == 1
    assert "❌ Invalid rankdir" in result.stdout


def test_tree_svg(clean_db):
    _with_conn(family.create_person)
    target = clean_db / "tree.svg"
    result = runner.invoke(app, ["tree", "svg", "--output", str(target)])
    assert result.exit_code == 0
    assert target.read_text(encoding="utf-8").startswith("<svg")


# ---------------------------------------------------------------------------
# wizard
# ---------------------------------------------------------------------------

def test_wizard_all_done(clean_db):
    person = _with_conn(family.create_person, COMPLETE)
    result = runner.invoke(app, ["wizard", "--start", person.id])
    assert result.exit_code == 0
    assert "All Done!" in result.stdout


def test_wizard_fills_gaps(clean_db):
    person = _with_conn(family.create_person, {"first_name": "Pierre"})
    # only place_of_birth is missing after defaults
    result = runner.invoke(app, ["wizard", "--start", person.id], input="Paris\n")
    assert result.exit_code == 0
    assert "✅ Saved" in result.stdout
    assert _with_conn(get_person, person.id).place_of_birth == "Paris"


def test_wizard_blank_skips(clean_db):
    person = _with_conn(family.create_person)
    result = runner.invoke(app, ["wizard", "--start", person.id], input="\n")
    assert result.exit_code == 0
    assert "Skipped" in result.stdout
    assert _with_conn(get_person, person.id).place_of_birth is None


# ---------------------------------------------------------------------------
# photo
# ---------------------------------------------------------------------------

def test_photo_list_empty(clean_db):
    result = runner.invoke(app, ["photo", "list"])
    assert result.exit_code == 0
    assert "No photos found." in result.stdout


def test_photo_upload_without_storage(clean_db, monkeypatch):
    monkeypatch.setattr("familytree.config.settings.b2_key_id", "")
    image = clean_db / "pic.jpg"
    image.write_bytes(b"\xff\xd8 fake jpeg")
    result = runner.invoke(app, ["photo", "upload", str(image)])
    assert result.exit_code == 1
    assert "B2 credentials not configured" in result.stdout
    assert "Uploaded 0, failed 1." in result.stdout
