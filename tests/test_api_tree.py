"""Tests for the family-tree, person, couple, flip-edge and data-entry endpoints.

All tests use an in-memory SQLite database via the FastAPI TestClient.
No network calls are made.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

import pytest
from fastapi.testclient import TestClient

from familytree.api.app import create_app
from familytree.db.connection import get_connection
from familytree.db.migrations import init_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def client(tmp_path, monkeypatch, make_store):
    """TestClient backed by an isolated in-memory DB and a fake blob store.

    The lifespan opens its own connection under the patched workspace; it is
    replaced straight away so each test starts from an empty tree.
    """
    monkeypatch.setattr("familytree.config.settings.workspace_dir", tmp_path)
    conn = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(conn)
    app = create_app()

    with TestClient(app, raise_server_exceptions=True) as c:
        c.app.state.db = conn
        c.app.state.blob_store = make_store()
        yield c

    conn.close()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _create_person(client, **fields) -> dict:
    resp = client.post("/persons", json=fields)
    assert resp.status_code == 201
    return resp.json()


def _add_relative(client, anchor_id: str, role: str, couple_id=None, **fields) -> dict:
    body = {"role": role, "anchor_person_id": anchor_id, "person": fields}
    if couple_id:
        body["couple_id"] = couple_id
    resp = client.post("/couple/with-person", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Persons
# ---------------------------------------------------------------------------

class TestPersons:
    def test_create_with_defaults(self, client) -> None:
        person = _create_person(client)
        assert person["first_name"] == "New"
        assert person["last_name"] == "Person"
        assert person["gender"] == "male"
        assert person["node_type"] == "person"

    def test_create_rejects_unknown_field(self, client) -> None:
        resp = client.post("/persons", json={"favourite_colour": "blue"})
        assert resp.status_code == 400
        assert "error" in resp.json()

    def test_create_rejects_bad_gender(self, client) -> None:
        resp = client.post("/persons", json={"gender": "unknown"})
        assert resp.status_code == 400
        assert "Invalid gender" in resp.json()["error"]

    def test_get_missing(self, client) -> None:
        resp = client.get("/persons/ghost")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Person with id ghost not found"}

    def test_search(self, client) -> None:
        _create_person(client, first_name="Marie", last_name="Curie")
        _create_person(client, first_name="Pierre", last_name="Curie")
        _create_person(client, first_name="Albert", last_name="Einstein")
        names = [p["first_name"] for p in client.get("/persons", params={"q": "curie"}).json()]
        assert sorted(names) == ["Marie", "Pierre"]
        assert len(client.get("/persons").json()) == 3

    def test_couples_and_policies(self, client) -> None:
        anchor = _create_person(client)
        _add_relative(client, anchor["id"], "partner")
        data = client.get(f"/persons/{anchor['id']}/couples").json()
        assert len(data["as_partner"]) == 1
        assert data["as_child"] == []
        assert data["policies"] == {"parent": "create", "child": "confirm", "partner": "confirm"}

    def test_unknown_route_is_json(self, client) -> None:
        resp = client.get("/nowhere")
        assert resp.status_code == 404
        assert "error" in resp.json()


# ---------------------------------------------------------------------------
# Family tree
# ---------------------------------------------------------------------------

class TestFamilyTree:
    def test_empty_tree(self, client) -> None:
        assert client.get("/family-tree").json() == {"nodes": [], "links": []}

    def test_tree_after_adding_child(self, client) -> None:
        anchor = _create_person(client, first_name="A")
        result = _add_relative(client, anchor["id"], "child", first_name="B")
        tree = client.get("/family-tree").json()
        assert {n["node_type"] for n in tree["nodes"]} == {"person", "couple"}
        links = {(l["source"], l["target"], l["kind"]) for l in tree["links"]}
        assert links == {
            (anchor["id"], result["couple_id"], "partner"),
            (result["couple_id"], result["person"]["id"], "child"),
        }

    def test_add_to_couple(self, client) -> None:
        anchor = _create_person(client)
        cid = _add_relative(client, anchor["id"], "partner")["couple_id"]
        resp = client.post(
            "/family-tree",
            json={"couple_id": cid, "relation": "child", "person": {"first_name": "Kid"}},
        )
        assert resp.status_code == 201
        assert resp.json()["person"]["first_name"] == "Kid"
        assert resp.json()["couple_id"] == cid

    def test_add_to_unknown_couple(self, client) -> None:
        resp = client.post("/family-tree", json={"couple_id": "ghost", "relation": "child"})
        assert resp.status_code == 404

    def test_patch(self, client) -> None:
        person = _create_person(client, place_of_birth="Paris")
        resp = client.patch(
            "/family-tree",
            json={"id": person["id"], "updates": {"profession": "Chemist", "place_of_birth": ""}},
        )
        assert resp.status_code == 200
        assert resp.json()["profession"] == "Chemist"
        assert resp.json()["place_of_birth"] is None

    @pytest.mark.parametrize("value", [None, ""])
    def test_patch_cannot_clear_gender(self, client, value) -> None:
        person = _create_person(client)
        resp = client.patch("/family-tree", json={"id": person["id"], "updates": {"gender": value}})
        assert resp.status_code == 400
        assert "Invalid gender" in resp.json()["error"]
        assert client.get(f"/persons/{person['id']}").json()["gender"] == "male"

    def test_patch_without_updates(self, client) -> None:
        person = _create_person(client)
        resp = client.patch("/family-tree", json={"id": person["id"], "updates": {}})
        assert resp.status_code == 400
        assert resp.json()["error"] == "No updates provided"

    def test_delete_person_keeps_couple(self, client) -> None:
        anchor = _create_person(client)
        cid = _add_relative(client, anchor["id"], "child")["couple_id"]
        resp = client.delete("/family-tree", params={"id": anchor["id"]})
        assert resp.json() == {"success": True}
        node_ids = {n["id"] for n in client.get("/family-tree").json()["nodes"]}
        assert cid in node_ids
        assert anchor["id"] not in node_ids

    def test_delete_couple(self, client) -> None:
        anchor = _create_person(client)
        cid = _add_relative(client, anchor["id"], "child")["couple_id"]
        resp = client.delete("/family-tree", params={"id": cid, "node_type": "couple"})
        assert resp.status_code == 200
        tree = client.get("/family-tree").json()
        assert tree["links"] == []
        assert len(tree["nodes"]) == 2

    def test_delete_missing(self, client) -> None:
        resp = client.delete("/family-tree", params={"id": "ghost"})
        assert resp.status_code == 404

    def test_layout(self, client) -> None:
        anchor = _create_person(client)
        child = _add_relative(client, anchor["id"], "child")["person"]
        data = client.get("/family-tree/layout").json()
        ranks = {n["id"]: n["rank"] for n in data["nodes"]}
        assert ranks[child["id"]] == ranks[anchor["id"]] + 1
        assert data["rankdir"] == "TB"

    def test_layout_bad_rankdir(self, client) -> None:
        resp = client.get("/family-tree/layout", params={"rankdir": "XY"})
        assert resp.status_code == 400

    def test_svg(self, client) -> None:
        anchor = _create_person(client)
        resp = client.get("/family-tree/svg")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("image/svg+xml")
        ids = {el.get("id") for el in ET.fromstring(resp.text).iter()}
        assert f"node-{anchor['id']}" in ids


# ---------------------------------------------------------------------------
# Couples and flips
# ---------------------------------------------------------------------------

class TestCouples:
    def test_create_couple(self, client) -> None:
        anchor = _create_person(client)
        resp = client.post("/couple", json={"anchor_person_id": anchor["id"], "role": "partner"})
        assert resp.status_code == 201
        assert resp.json()["partner_count"] == 1

    def test_create_couple_bad_role(self, client) -> None:
        anchor = _create_person(client)
        resp = client.post("/couple", json={"anchor_person_id": anchor["id"], "role": "friend"})
        assert resp.status_code == 400

    def test_link(self, client) -> None:
        a, b = _create_person(client), _create_person(client)
        couple = client.post("/couple", json={"anchor_person_id": a["id"], "role": "partner"}).json()
        resp = client.post(
            "/couple/link",
            json={"person_id": b["id"], "couple_id": couple["id"], "role": "child"},
        )
        assert resp.json() == {"success": True}

    def test_with_person_reuses_couple(self, client) -> None:
        anchor = _create_person(client)
        cid = _add_relative(client, anchor["id"], "child")["couple_id"]
        again = _add_relative(client, anchor["id"], "child", couple_id=cid)
        assert again["couple_id"] == cid
        couples = [n for n in client.get("/family-tree").json()["nodes"] if n["node_type"] == "couple"]
        assert len(couples) == 1
        assert couples[0]["child_count"] == 2

    def test_with_person_missing_anchor(self, client) -> None:
        resp = client.post("/couple/with-person", json={"role": "child"})
        assert resp.status_code == 400

    def test_flip_round_trip(self, client) -> None:
        anchor = _create_person(client)
        cid = _add_relative(client, anchor["id"], "partner")["couple_id"]
        body = {"person_id": anchor["id"], "couple_id": cid}
        assert client.post("/flip-edge", json=body).json() == {"success": True, "kind": "child"}
        assert client.post("/flip-edge", json=body).json() == {"success": True, "kind": "partner"}

    def test_flip_without_edge(self, client) -> None:
        anchor = _create_person(client)
        cid = _add_relative(client, anchor["id"], "partner")["couple_id"]
        other = _create_person(client)
        resp = client.post("/flip-edge", json={"person_id": other["id"], "couple_id": cid})
        assert resp.status_code == 404

    def test_flip_missing_field(self, client) -> None:
        resp = client.post("/flip-edge", json={"person_id": "x"})
        assert resp.status_code == 400
        assert "couple_id" in resp.json()["error"]


# ---------------------------------------------------------------------------
# Data entry
# ---------------------------------------------------------------------------

class TestDataEntry:
    def test_complete_person_all_done(self, client) -> None:
        person = _create_person(
            client,
            first_name="Marie",
            last_name="Curie",
            date_of_birth="1867-11-07",
            place_of_birth="Warsaw",
            gender="female",
        )
        data = client.get("/data-entry", params={"start_person_id": person["id"]}).json()
        assert data["people"] == []
        assert data["total_questions"] == 0

    def test_incomplete_relatives(self, client) -> None:
        anchor = _create_person(client)
        child = _add_relative(client, anchor["id"], "child")["person"]
        data = client.get("/data-entry", params={"start_person_id": anchor["id"]}).json()
        assert [p["id"] for p in data["people"]] == [anchor["id"], child["id"]]
        assert data["people"][0]["missing_fields"] == ["place_of_birth"]
        assert data["total_questions"] == 2
        assert len(data["questions"]) == 7

    def test_answer(self, client) -> None:
        person = _create_person(client)
        resp = client.post(
            "/data-entry",
            json={"person_id": person["id"], "updates": {"place_of_birth": "Lyon"}},
        )
        assert resp.json()["place_of_birth"] == "Lyon"
        data = client.get("/data-entry", params={"start_person_id": person["id"]}).json()
        assert data["people"] == []

    def test_unknown_start(self, client) -> None:
        resp = client.get("/data-entry", params={"start_person_id": "ghost"})
        assert resp.status_code == 404
