"""
Tests du router FastAPI /neo
Base SQLite en mémoire injectée via dependency_overrides[get_db].
"""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from neoblocks.database import get_db
from neoblocks.router import router


# ── Helpers ───────────────────────────────────────────────────────────────

@pytest.fixture
def client(db):
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app)


@pytest.fixture
def configured(client, neo_field, raw_settings):
    resp = client.post(f"/neo/fields/{neo_field.id}/settings", json=raw_settings)
    assert resp.status_code == 200
    return resp.json()


def blocks_url(field, owner_id=7):
    return f"/neo/fields/{field.id}/owners/{owner_id}/blocks"


VALID_BLOCKS = {
    "new1": {"type": "text", "level": 0, "fields": {"title": "Intro"}},
    "new2": {"type": "quote", "level": 1, "fields": {"body": "Quoted"}},
}


# ── Réglages ──────────────────────────────────────────────────────────────

class TestSettingsEndpoints:
    def test_post_then_get(self, client, neo_field, configured):
        assert [bt["handle"] for bt in configured["blockTypes"]] == ["text", "quote"]
        assert all(bt["id"] for bt in configured["blockTypes"])

        resp = client.get(f"/neo/fields/{neo_field.id}/settings")
        assert resp.status_code == 200
        assert resp.json() == configured

    def test_malformed_body_normalized(self, client, neo_field):
        resp = client.post(f"/neo/fields/{neo_field.id}/settings", json="garbage")
        assert resp.status_code == 200
        assert resp.json() == {"maxBlocks": 0, "blockTypes": [], "groups": []}

    def test_malformed_structured_layout_normalized(self, client, neo_field):
        resp = client.post(f"/neo/fields/{neo_field.id}/settings", json={
            "blockTypes": {"new1": {"handle": "x", "fieldLayout": {"tabs": [{"fields": "bad"}]}}},
        })
        assert resp.status_code == 200
        assert resp.json()["blockTypes"][0]["fieldLayout"] == []

    def test_unknown_field(self, client):
        assert client.get("/neo/fields/999/settings").status_code == 404

    def test_leaf_field_is_not_neo(self, client, leaf_fields):
        assert client.get(f"/neo/fields/{leaf_fields['title']}/settings").status_code == 404


# ── Blocs ─────────────────────────────────────────────────────────────────

class TestBlocksEndpoints:
    def test_save_valid(self, client, neo_field, configured):
        resp = client.post(blocks_url(neo_field), json=VALID_BLOCKS)
        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is True
        assert [(b["blockType"], b["level"], b["sortOrder"]) for b in data["blocks"]] == [("text", 0, 0), ("quote", 1, 1)]
        assert all(b["id"] for b in data["blocks"])

    def test_invalid_rejected_with_all_errors(self, client, neo_field, configured):
        resp = client.post(blocks_url(neo_field), json={
            "new1": {"type": "quote", "level": 0},
            "new2": {"type": "text", "level": 0, "fields": {"title": ""}},
        })
        assert resp.status_code == 422
        assert resp.json()["detail"]["errors"] == [
            "Correct the errors listed above.",
            "Quote blocks can't be at the top level.",
        ]

    def test_unknown_types_skipped(self, client, neo_field, configured):
        resp = client.post(blocks_url(neo_field), json={**VALID_BLOCKS, "new3": {"type": "gallery"}})
        assert resp.status_code == 200
        assert len(resp.json()["blocks"]) == 2

    def test_non_finite_level_normalized(self, client, neo_field, configured):
        body = '{"new1": {"type": "text", "level": Infinity, "fields": {"title": "Intro"}}}'
        resp = client.post(blocks_url(neo_field), content=body, headers={"Content-Type": "application/json"})
        assert resp.status_code == 200
        assert resp.json()["blocks"][0]["level"] == 0

    def test_resubmit_existing(self, client, neo_field, configured):
        first = client.post(blocks_url(neo_field), json=VALID_BLOCKS).json()["blocks"]
        payload = {
            str(b["id"]): {"type": b["blockType"], "level": b["level"], "modified": "0"}
            for b in first
        }
        second = client.post(blocks_url(neo_field), json=payload).json()["blocks"]
        assert [b["id"] for b in second] == [b["id"] for b in first]


# ── Input / eager-loading ─────────────────────────────────────────────────

class TestReadEndpoints:
    def test_input_payload(self, client, neo_field, configured):
        client.post(blocks_url(neo_field), json={
            "new1": {"type": "text", "level": 0, "enabled": "0", "fields": {"title": "Hidden"}},
        })
        resp = client.get(f"/neo/fields/{neo_field.id}/owners/7/input")
        assert resp.status_code == 200
        data = resp.json()
        assert data["namespace"] == "content"
        assert [b["enabled"] for b in data["blocks"]] == [False]
        assert 'value="Hidden"' in data["blocks"][0]["tabs"][0]["bodyHtml"]
        assert [bt["handle"] for bt in data["blockTypes"]] == ["text", "quote"]

    def test_input_static_named(self, client, neo_field, configured):
        resp = client.get(f"/neo/fields/{neo_field.id}/owners/7/input", params={"name": "body", "static": "true"})
        assert resp.json()["static"] is True
        assert resp.json()["namespace"] == "body"

    def test_eager_map(self, client, neo_field, configured):
        client.post(blocks_url(neo_field, 1), json=VALID_BLOCKS)
        client.post(blocks_url(neo_field, 2), json=VALID_BLOCKS)
        client.post(blocks_url(neo_field, 3), json=VALID_BLOCKS)

        resp = client.post(f"/neo/fields/{neo_field.id}/eager-map", json={"ownerIds": [1, 2]})
        assert resp.status_code == 200
        data = resp.json()
        assert data["elementType"] == "NeoBlock"
        assert sorted(p["source"] for p in data["map"]) == [1, 1, 2, 2]
