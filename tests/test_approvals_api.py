"""HTTP tests for the approval workflow and the protected entity routes."""

import pytest

from conftest import auth_headers
from transitflow.models.models import ApprovalRequest, Expense
from transitflow.services.audit import get_audit_logs


def _submit(client, headers, entity_type="expense", entity_id="exp-9", action="delete", reason="Doublon"):
    return client.post(
        "/approvals",
        json={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "entity_description": "Dépense: Frais de port (BL N° bl-1)",
            "action_type": action,
            "reason": reason,
        },
        headers=headers,
    )


def _process(client, headers, approval_id, **body):
    body.setdefault("decision", "approve")
    return client.post(f"/approvals/{approval_id}/process", json=body, headers=headers)


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

class TestSubmit:
    """POST /approvals"""

    def test_requires_authentication(self, client, freight):
        assert _submit(client, {}).status_code == 401

    def test_creates_pending_request(self, client, freight, alice_headers):
        resp = _submit(client, alice_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "pending"
        assert data["status_label"] == "En attente"
        assert data["entity_type_label"] == "Dépense"
        assert data["requested_by_user_id"] == "alice-uid"
        assert data["parent_id"] == "bl-1"

    def test_blank_reason_is_rejected(self, client, freight, alice_headers):
        assert _submit(client, alice_headers, reason="  ").status_code == 422

    def test_unknown_entity_is_404(self, client, freight, alice_headers):
        assert _submit(client, alice_headers, entity_id="exp-404").status_code == 404

    def test_duplicate_is_409(self, client, freight, alice_headers):
        assert _submit(client, alice_headers).status_code == 200
        assert _submit(client, alice_headers).status_code == 409


# ---------------------------------------------------------------------------
# Listing and visibility
# ---------------------------------------------------------------------------

class TestVisibility:
    """Who can see which requests."""

    def test_admin_queue_is_admin_only(self, client, freight, alice_headers, admin_headers):
        _submit(client, alice_headers)
        assert client.get("/approvals", headers=alice_headers).status_code == 403

        resp = client.get("/approvals", params={"status": "pending"}, headers=admin_headers)
        assert resp.status_code == 200
        assert len(resp.json()) == 1

    def test_mine_lists_only_own_requests(self, client, db, freight, alice_headers, charlie):
        _submit(client, alice_headers)
        resp = client.get("/approvals/mine", headers=auth_headers(charlie))
        assert resp.json() == []
        assert len(client.get("/approvals/mine", headers=alice_headers).json()) == 1

    def test_other_users_cannot_read_a_request(self, client, freight, alice_headers, charlie):
        approval_id = _submit(client, alice_headers).json()["id"]
        assert client.get(f"/approvals/{approval_id}", headers=auth_headers(charlie)).status_code == 403
        assert client.get(f"/approvals/{approval_id}", headers=alice_headers).status_code == 200

    def test_unknown_request_is_404(self, client, freight, admin_headers):
        assert client.get("/approvals/nope", headers=admin_headers).status_code == 404

    def test_pin_issued_lookup(self, client, freight, alice_headers, admin_headers, charlie):
        approval_id = _submit(client, alice_headers).json()["id"]
        params = {"entity_type": "expense", "entity_id": "exp-9", "action_type": "delete"}
        assert client.get("/approvals/pin-issued", params=params, headers=alice_headers).json() is None

        _process(client, admin_headers, approval_id, issue_pin=True, manual_pin="314159")

        found = client.get("/approvals/pin-issued", params=params, headers=alice_headers).json()
        assert found["id"] == approval_id
        assert found["pin_code"] == "314159"
        assert client.get("/approvals/pin-issued", params=params, headers=auth_headers(charlie)).json() is None

    def test_history_is_admin_only(self, client, freight, alice_headers, admin_headers):
        approval_id = _submit(client, alice_headers).json()["id"]
        _process(client, admin_headers, approval_id, decision="reject")

        assert client.get(f"/approvals/{approval_id}/history", headers=alice_headers).status_code == 403
        actions = {e["action"] for e in client.get(f"/approvals/{approval_id}/history", headers=admin_headers).json()}
        assert actions == {"SUBMIT", "REJECT"}


# ---------------------------------------------------------------------------
# Processing and PIN flow
# ---------------------------------------------------------------------------

class TestProcessAndPin:
    """End-to-end delete and edit flows."""

    def test_employee_cannot_process(self, client, freight, alice_headers):
        approval_id = _submit(client, alice_headers).json()["id"]
        assert _process(client, alice_headers, approval_id).status_code == 403

    def test_invalid_manual_pin_is_400(self, client, db, freight, alice_headers, admin_headers):
        approval_id = _submit(client, alice_headers).json()["id"]
        resp = _process(client, admin_headers, approval_id, issue_pin=True, manual_pin="12ab56")
        assert resp.status_code == 400
        assert db.get(ApprovalRequest, approval_id).status == "pending"

    def test_second_processing_is_409(self, client, freight, alice_headers, admin_headers):
        approval_id = _submit(client, alice_headers).json()["id"]
        assert _process(client, admin_headers, approval_id, decision="reject").status_code == 200
        assert _process(client, admin_headers, approval_id).status_code == 409

    def test_delete_with_pin(self, client, db, freight, alice_headers, admin_headers):
        approval_id = _submit(client, alice_headers).json()["id"]
        processed = _process(client, admin_headers, approval_id, issue_pin=True).json()
        pin = processed["request"]["pin_code"]
        assert processed["request"]["status"] == "pin_issued"

        wrong = "000000" if pin != "000000" else "111111"
        assert client.post(f"/approvals/{approval_id}/pin", json={"pin": wrong}, headers=alice_headers).status_code == 403
        assert db.get(Expense, "exp-9") is not None

        resp = client.post(f"/approvals/{approval_id}/pin", json={"pin": pin}, headers=alice_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["deleted"] is True
        assert body["request"]["status"] == "completed"
        assert client.get("/expenses/exp-9", headers=alice_headers).status_code == 404

    def test_pin_is_bound_to_requester(self, client, db, freight, alice_headers, admin_headers, charlie):
        approval_id = _submit(client, alice_headers).json()["id"]
        _process(client, admin_headers, approval_id, issue_pin=True, manual_pin="424242")

        resp = client.post(f"/approvals/{approval_id}/pin", json={"pin": "424242"}, headers=auth_headers(charlie))
        assert resp.status_code == 403
        assert db.get(Expense, "exp-9") is not None
        assert db.get(ApprovalRequest, approval_id).status == "pin_issued"

    def test_pin_attempts_are_rate_limited(self, client, db, freight, alice_headers, admin_headers):
        approval_id = _submit(client, alice_headers).json()["id"]
        _process(client, admin_headers, approval_id, issue_pin=True, manual_pin="424242")

        codes = [
            client.post(f"/approvals/{approval_id}/pin", json={"pin": f"00000{i}"}, headers=alice_headers).status_code
            for i in range(6)
        ]
        assert codes == [403] * 5 + [429]

        # Even the right PIN is refused until the window passes
        resp = client.post(f"/approvals/{approval_id}/pin", json={"pin": "424242"}, headers=alice_headers)
        assert resp.status_code == 429
        assert db.get(Expense, "exp-9") is not None

    def test_approve_delete_reports_manual_cleanup(self, client, db, freight, alice_headers, admin_headers):
        approval_id = _submit(client, alice_headers).json()["id"]
        db.delete(db.get(Expense, "exp-9"))
        db.commit()

        resp = _process(client, admin_headers, approval_id)
        assert resp.status_code == 200
        body = resp.json()
        assert body["request"]["status"] == "approved"
        assert body["manual_cleanup_required"] is True
        assert body["warnings"]

    def test_edit_with_pin_then_patch(self, client, db, freight, alice_headers, admin_headers, charlie):
        approval_id = _submit(client, alice_headers, action="edit").json()["id"]
        _process(client, admin_headers, approval_id, issue_pin=True, manual_pin="271828")

        resp = client.post(f"/approvals/{approval_id}/pin", json={"pin": "271828"}, headers=alice_headers)
        assert resp.status_code == 200
        grant = resp.json()["edit_grant"]
        assert resp.json()["resource_path"] == "/expenses/exp-9"

        # Without the grant, employees cannot edit
        assert client.patch("/expenses/exp-9", json={"amount": 300.0}, headers=alice_headers).status_code == 403

        patched = client.patch(
            "/expenses/exp-9",
            json={"amount": 300.0},
            headers={**alice_headers, "X-Edit-Grant": grant},
        )
        assert patched.status_code == 200
        assert patched.json()["amount"] == 300.0

        [update] = get_audit_logs(db, entity_type="expense", entity_id="exp-9")
        assert update.action == "UPDATE"
        assert update.actor_id == "alice-uid"
        assert update.changes_json == {"amount": {"before": 250.0, "after": 300.0}}
        assert update.context == {"via_grant": True}

        # The grant is bound to Alice and to exp-9
        other = client.patch(
            "/expenses/exp-9",
            json={"amount": 1.0},
            headers={**auth_headers(charlie), "X-Edit-Grant": grant},
        )
        assert other.status_code == 403

    def test_edit_without_pin_is_redeemed(self, client, freight, alice_headers, admin_headers):
        approval_id = _submit(client, alice_headers, action="edit").json()["id"]
        assert _process(client, admin_headers, approval_id).json()["request"]["status"] == "approved"

        resp = client.post(f"/approvals/{approval_id}/edit-grant", headers=alice_headers)
        assert resp.status_code == 200
        assert resp.json()["request"]["status"] == "completed"
        assert resp.json()["edit_grant"]

        assert client.post(f"/approvals/{approval_id}/edit-grant", headers=alice_headers).status_code == 409


# ---------------------------------------------------------------------------
# Protected entity routes
# ---------------------------------------------------------------------------

class TestProtectedRoutes:
    """Direct edit and delete rights."""

    def test_employee_delete_is_forbidden(self, client, db, freight, alice_headers):
        resp = client.delete("/expenses/exp-9", headers=alice_headers)
        assert resp.status_code == 403
        assert db.get(Expense, "exp-9") is not None

    def test_admin_edits_and_deletes_directly(self, client, db, freight, admin_headers):
        assert client.patch("/expenses/exp-9", json={"label": "Port"}, headers=admin_headers).json()["label"] == "Port"
        assert client.delete("/expenses/exp-9", headers=admin_headers).status_code == 200
        assert db.get(Expense, "exp-9") is None

    def test_moving_bl_to_unknown_client_is_404(self, client, db, freight, admin_headers):
        resp = client.patch("/bls/bl-1", json={"client_id": "no-such-client"}, headers=admin_headers)
        assert resp.status_code == 404
        assert client.get("/bls/bl-1", headers=admin_headers).json()["client_id"] == "client-1"

    @pytest.mark.parametrize("limit", [0, -5])
    def test_list_limit_is_clamped(self, client, freight, alice_headers, limit):
        resp = client.get("/expenses", params={"limit": limit}, headers=alice_headers)
        assert resp.status_code == 200
        assert [e["id"] for e in resp.json()] == ["exp-9"]

    def test_garbage_grant_is_forbidden(self, client, freight, alice_headers):
        resp = client.patch(
            "/expenses/exp-9",
            json={"amount": 10.0},
            headers={**alice_headers, "X-Edit-Grant": "not-a-token"},
        )
        assert resp.status_code == 403

    def test_anyone_can_create(self, client, freight, alice_headers):
        resp = client.post("/expenses", json={"bl_id": "bl-1", "label": "Manutention", "amount": 80.0}, headers=alice_headers)
        assert resp.status_code == 200
        assert resp.json()["employee_id"] == "alice-uid"

    def test_create_expense_for_unknown_bl_is_404(self, client, freight, alice_headers):
        resp = client.post("/expenses", json={"bl_id": "bl-404", "label": "X", "amount": 1.0}, headers=alice_headers)
        assert resp.status_code == 404

    @pytest.mark.parametrize("amount", [0, -5])
    def test_expense_amount_must_be_positive(self, client, freight, alice_headers, amount):
        resp = client.post("/expenses", json={"bl_id": "bl-1", "label": "X", "amount": amount}, headers=alice_headers)
        assert resp.status_code == 422
