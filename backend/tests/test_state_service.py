"""
State cache tests: versioned blobs in the state_blobs table.
"""

import json

import pytest

from cashdesk.extensions import db
from cashdesk.models import StateBlob
from cashdesk.services import state_service
from cashdesk.services.state_service import StateError, StateStore, decode_blob, encode_blob
from cashdesk.services.terminal_service import Terminal

from conftest import PASSWORD, nxm_offer


class TestBlobs:
    def test_blob_is_wrapped_with_version(self):
        document = json.loads(encode_blob("products", {"products": []}))
        assert document == {"version": 1, "data": {"products": []}}

    def test_save_and_load(self, app):
        store = StateStore()
        store.save_all({"offers": {"offers": []}})
        row = db.session.get(StateBlob, "offers")
        assert row.version == 1
        assert store.load("offers") == {"offers": []}
        assert store.load("sales") is None

    def test_unknown_key(self, app):
        with pytest.raises(StateError):
            StateStore().save("nope", {})

    def test_invalid_json(self):
        with pytest.raises(StateError):
            decode_blob("cart", "{not json")

    def test_missing_data_section(self):
        with pytest.raises(StateError):
            decode_blob("cart", json.dumps({"version": 1}))

    def test_newer_version_refused(self):
        with pytest.raises(StateError):
            decode_blob("cart", json.dumps({"version": 99, "data": {}}))


class TestMigrations:
    def test_registered_migration_runs_on_load(self, app, monkeypatch):
        StateStore().save_all({"products": {"products": [], "categories": ["Old"]}})

        monkeypatch.setitem(state_service.CURRENT_VERSIONS, "products", 2)
        monkeypatch.setattr(state_service, "MIGRATIONS", {})

        @state_service.register_migration("products", 1)
        def rename_categories(data):
            return {**data, "categories": [c.upper() for c in data["categories"]]}

        assert StateStore().load("products") == {"products": [], "categories": ["OLD"]}

    def test_missing_migration(self, app, monkeypatch):
        StateStore().save_all({"sales": {"sales": [], "refunds": []}})
        monkeypatch.setitem(state_service.CURRENT_VERSIONS, "sales", 2)
        monkeypatch.setattr(state_service, "MIGRATIONS", {})
        with pytest.raises(StateError):
            StateStore().load("sales")


def test_terminal_state_survives_restart(app, employee_client, clock):
    terminal = app.extensions["cashdesk"]
    terminal.offers.add(nxm_offer(["a"]))
    terminal.add_product("a", 3)
    terminal.save()

    restarted = Terminal(terminal_id="T001", bcrypt_rounds=4, clock=clock)
    assert restarted.load() is True

    assert restarted.auth.current_user.code == "E001"
    assert restarted.cart.current_user_id == "u1"
    assert [line.to_dict() for line in restarted.cart.lines] == [line.to_dict() for line in terminal.cart.lines]
    assert restarted.catalog.get("a").to_dict() == terminal.catalog.get("a").to_dict()
    assert len(restarted.offers.all()) == 1
    assert restarted.users.authenticate("E001", PASSWORD) is not None


def test_clear(app):
    store = StateStore()
    store.save_all({"offers": {"offers": []}, "cart": {"items": []}})
    assert store.clear() == 2
    assert store.describe() == []
