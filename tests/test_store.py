"""Tests for the entity store and its denormalized id lists."""

import pytest

from transitflow.models.models import Truck
from transitflow.services import store
from transitflow.services.store import EntityNotFoundError


# ---------------------------------------------------------------------------
# Generic store
# ---------------------------------------------------------------------------

class TestEntityStore:
    """get / require / list / update / delete"""

    def test_get_missing_returns_none(self, db):
        assert store.trucks.get(db, "nope") is None
        assert store.trucks.get(db, "") is None

    def test_require_missing_raises(self, db):
        with pytest.raises(EntityNotFoundError) as exc_info:
            store.trucks.require(db, "nope")
        assert exc_info.value.kind == "truck"
        assert exc_info.value.entity_id == "nope"

    def test_list_ignores_none_filters(self, db):
        store.trucks.add(db, {"registration_number": "AB-123-CD", "status": "available"})
        store.trucks.add(db, {"registration_number": "EF-456-GH", "status": "in_use"})

        assert len(store.trucks.list(db, status=None)) == 2
        assert [t.registration_number for t in store.trucks.list(db, status="in_use")] == ["EF-456-GH"]
        assert len(store.trucks.list(db, limit=1)) == 1

    def test_update(self, db):
        truck = store.trucks.add(db, {"registration_number": "AB-123-CD"})
        store.trucks.update(db, truck.id, {"model": "Actros"})
        assert db.get(Truck, truck.id).model == "Actros"

    def test_delete(self, db):
        truck = store.trucks.add(db, {"registration_number": "AB-123-CD"})
        store.trucks.delete(db, truck.id)
        assert db.get(Truck, truck.id) is None
        with pytest.raises(EntityNotFoundError):
            store.trucks.delete(db, truck.id)


# ---------------------------------------------------------------------------
# Client.bl_ids
# ---------------------------------------------------------------------------

class TestBillOfLadingStore:
    """Client.bl_ids follows its BLs."""

    def test_add_links_client(self, db, freight):
        assert store.clients.require(db, "client-1").bl_ids == ["bl-1"]

    def test_moving_bl_relinks_clients(self, db, freight):
        store.clients.add(db, {"id": "client-2", "name": "Sahel Trading"})

        store.bills_of_lading.update(db, "bl-1", {"client_id": "client-2"})

        assert store.clients.require(db, "client-1").bl_ids == []
        assert store.clients.require(db, "client-2").bl_ids == ["bl-1"]

    def test_moving_bl_to_unknown_client_fails(self, db, freight):
        with pytest.raises(EntityNotFoundError):
            store.bills_of_lading.update(db, "bl-1", {"client_id": "no-such-client"})

        db.rollback()
        assert store.bills_of_lading.require(db, "bl-1").client_id == "client-1"
        assert store.clients.require(db, "client-1").bl_ids == ["bl-1"]

    def test_delete_unlinks_client(self, db, freight):
        store.bills_of_lading.add(db, {"id": "bl-2", "bl_number": "MSCU7654321", "client_id": "client-1"})
        store.bills_of_lading.delete(db, "bl-1")
        assert store.clients.require(db, "client-1").bl_ids == ["bl-2"]


# ---------------------------------------------------------------------------
# BillOfLading.container_ids
# ---------------------------------------------------------------------------

class TestContainerStore:
    """BillOfLading.container_ids follows its containers."""

    def test_add_copies_bl_number_and_links(self, db, freight):
        container = store.containers.require(db, "cont-1")
        assert container.bl_number == "MSCU1234567"
        assert store.bills_of_lading.require(db, "bl-1").container_ids == ["cont-1"]

    def test_add_requires_bl(self, db, freight):
        with pytest.raises(EntityNotFoundError):
            store.containers.add(db, {"bl_id": "bl-404", "container_number": "TGHU0000001"})

    def test_delete_from_bl(self, db, freight):
        store.containers.delete_from_bl(db, "bl-1", "cont-1")
        assert store.containers.get(db, "cont-1") is None
        assert store.bills_of_lading.require(db, "bl-1").container_ids == []

    def test_delete_from_wrong_bl_raises(self, db, freight):
        store.bills_of_lading.add(db, {"id": "bl-2", "bl_number": "MSCU7654321", "client_id": "client-1"})
        with pytest.raises(EntityNotFoundError):
            store.containers.delete_from_bl(db, "bl-2", "cont-1")
        assert store.containers.get(db, "cont-1") is not None

    def test_plain_delete_resolves_parent(self, db, freight):
        store.containers.delete(db, "cont-1")
        assert store.bills_of_lading.require(db, "bl-1").container_ids == []
