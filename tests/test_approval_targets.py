"""Tests for the approval target registry."""

import pytest

from transitflow.models.models import ApprovalRequest
from transitflow.schemas.approvals import EntityType
from transitflow.services.approval_targets import (
    TARGETS,
    MissingParentReference,
    parent_bl_id,
    target_for,
)
from transitflow.services.store import EntityNotFoundError


def _request(entity_type="container", entity_id="cont-1", description=None, parent_id=None):
    return ApprovalRequest(
        id="req-1",
        entity_type=entity_type,
        entity_id=entity_id,
        entity_description=description,
        parent_id=parent_id,
        action_type="delete",
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestRegistry:
    """Every entity type resolves to a target."""

    def test_every_entity_type_has_a_target(self):
        assert set(TARGETS) == set(EntityType)

    @pytest.mark.parametrize("entity_type", [e.value for e in EntityType])
    def test_lookup_by_string(self, entity_type):
        assert target_for(entity_type).entity_type.value == entity_type

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            target_for("invoice")

    @pytest.mark.parametrize(
        "entity_type,path",
        [
            ("bl", "/bls/x1"),
            ("client", "/clients/x1"),
            ("workType", "/work-types/x1"),
            ("expense", "/expenses/x1"),
            ("container", "/containers/x1"),
            ("secretaryDocument", "/secretary/documents/x1"),
            ("accountingEntry", "/accounting/entries/x1"),
        ],
    )
    def test_resource_path(self, entity_type, path):
        assert target_for(entity_type).resource_path(_request(entity_type, "x1")) == path


# ---------------------------------------------------------------------------
# Parent BL resolution
# ---------------------------------------------------------------------------

class TestParentBlId:
    """parent_bl_id prefers the structured reference."""

    def test_structured_parent(self):
        assert parent_bl_id(_request(parent_id="bl-1", description="BL N° bl-2")) == "bl-1"

    @pytest.mark.parametrize(
        "description,expected",
        [
            ("Conteneur N° MSKU7654321 (BL N° bl-1)", "bl-1"),
            ("Conteneur (BL N°abc123)", "abc123"),
            ("BL N°   XYZ-42 et plus", "XYZ-42"),
        ],
    )
    def test_legacy_description(self, description, expected):
        assert parent_bl_id(_request(description=description)) == expected

    @pytest.mark.parametrize("description", [None, "", "Conteneur N° MSKU7654321", "BL N° "])
    def test_no_reference(self, description):
        assert parent_bl_id(_request(description=description)) is None


# ---------------------------------------------------------------------------
# Deletion through targets
# ---------------------------------------------------------------------------

class TestTargetDelete:
    """Target-level fetch and delete against the store."""

    def test_fetch(self, db, freight):
        assert target_for("expense").fetch(db, _request("expense", "exp-9")).label == "Frais de port"
        assert target_for("expense").fetch(db, _request("expense", "exp-404")) is None

    def test_container_without_parent_raises(self, db, freight):
        with pytest.raises(MissingParentReference):
            target_for("container").delete(db, _request())

    def test_container_with_parent(self, db, freight):
        target_for("container").delete(db, _request(parent_id="bl-1"))
        assert target_for("container").fetch(db, _request()) is None

    def test_missing_entity_raises(self, db, freight):
        with pytest.raises(EntityNotFoundError):
            target_for("truck").delete(db, _request("truck", "truck-404"))
