"""
HTTP-level tests for /api/v1/approvals: auth, submission, decisions,
error envelope, history and listing.
"""

import pytest
from sqlalchemy import select

from approvals_api.models.procurement_request import ProcurementRequest

from conftest import ADMIN_ID, OUTSIDER_ID, REQUESTER_ID, REVIEWER_ID, auth_headers, block_updates

BASE = "/api/v1/approvals"


async def _submit(client, user_id=REQUESTER_ID, **body):
    payload = {"entity_type": "procurement_request", "entity_id": "PR-1"}
    payload.update(body)
    return await client.post(BASE, json=payload, headers=auth_headers(user_id))


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["checks"]["db"] == "ok"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_missing_token_is_rejected(client):
    response = await client.get(BASE)

    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client):
    response = await client.get(BASE, headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTH_TOKEN_INVALID"


@pytest.mark.asyncio
async def test_token_for_unknown_user_is_rejected(client):
    response = await client.get(BASE, headers=auth_headers("no-such-user"))

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTH_USER_UNKNOWN"


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_submit_is_idempotent(client):
    first = await _submit(client, title="Laptops for new hires")
    second = await _submit(client)

    assert first.status_code == 201
    assert first.json()["created"] is True
    assert first.json()["approval"]["status"] == "pending"
    assert first.json()["approval"]["title"] == "Laptops for new hires"
    assert second.status_code == 201
    assert second.json()["created"] is False
    assert second.json()["approval"]["id"] == first.json()["approval"]["id"]


@pytest.mark.asyncio
async def test_admin_submission_is_auto_approved(client):
    response = await _submit(client, user_id=ADMIN_ID, entity_type="invoice", entity_id="INV-1")

    body = response.json()
    assert response.status_code == 201
    assert body["auto_approved"] is True
    assert body["approval"]["status"] == "approved"
    assert body["approval"]["approval_date"] is not None


@pytest.mark.asyncio
async def test_submit_unknown_entity_type_is_422(client):
    response = await _submit(client, entity_type="timesheet")

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reject_then_approve_returns_conflict(client, session_factory):
    approval_id = (await _submit(client)).json()["approval"]["id"]

    rejected = await client.post(
        f"{BASE}/{approval_id}/reject",
        json={"comments": "missing budget code"},
        headers=auth_headers(REVIEWER_ID),
    )
    assert rejected.status_code == 200
    assert rejected.json()["new_status"] == "rejected"
    assert rejected.json()["approval"]["comments"] == "missing budget code"
    assert rejected.json()["message"] == "Request rejected successfully"

    approved = await client.post(f"{BASE}/{approval_id}/approve", headers=auth_headers(ADMIN_ID))
    assert approved.status_code == 409
    assert approved.json()["error"]["code"] == "ALREADY_PROCESSED"

    fetched = await client.get(f"{BASE}/{approval_id}", headers=auth_headers(REVIEWER_ID))
    assert fetched.json()["status"] == "rejected"
    assert fetched.json()["comments"] == "missing budget code"

    async with session_factory() as check:
        pr = (await check.execute(select(ProcurementRequest).where(ProcurementRequest.id == "PR-1"))).scalar_one()
        assert pr.status == "rejected"


@pytest.mark.asyncio
async def test_reject_without_comments_is_422(client):
    approval_id = (await _submit(client)).json()["approval"]["id"]

    response = await client.post(
        f"{BASE}/{approval_id}/reject", json={"comments": ""}, headers=auth_headers(REVIEWER_ID)
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"


@pytest.mark.asyncio
async def test_generic_action_endpoint(client):
    approval_id = (await _submit(client)).json()["approval"]["id"]

    response = await client.post(
        f"{BASE}/{approval_id}/actions",
        json={"action": "more_info", "comments": "Which vendor?"},
        headers=auth_headers(REVIEWER_ID),
    )

    assert response.status_code == 200
    assert response.json()["new_status"] == "more_info"
    assert response.json()["cascaded"] is True
    assert response.json()["message"] == "Request updated successfully"


@pytest.mark.asyncio
async def test_unknown_approval_is_404(client):
    response = await client.post(f"{BASE}/missing/approve", headers=auth_headers(REVIEWER_ID))

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_non_reviewer_decision_is_403(client):
    approval_id = (await _submit(client)).json()["approval"]["id"]

    response = await client.post(f"{BASE}/{approval_id}/approve", headers=auth_headers(OUTSIDER_ID))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_decision_on_entity_without_local_row_is_recorded(client):
    approval_id = (await _submit(client, entity_id="PR-elsewhere")).json()["approval"]["id"]

    response = await client.post(f"{BASE}/{approval_id}/approve", headers=auth_headers(REVIEWER_ID))
    assert response.status_code == 200
    assert response.json()["cascaded"] is False
    assert response.json()["approval"]["status"] == "approved"


@pytest.mark.asyncio
async def test_cascade_failure_is_502_and_request_stays_pending(client, session_factory):
    approval_id = (await _submit(client)).json()["approval"]["id"]
    async with session_factory() as session:
        await block_updates(session, "procurement_requests")
        await session.commit()

    response = await client.post(f"{BASE}/{approval_id}/approve", headers=auth_headers(REVIEWER_ID))
    assert response.status_code == 502
    assert response.json()["error"]["code"] == "CASCADE_FAILED"

    fetched = await client.get(f"{BASE}/{approval_id}", headers=auth_headers(REVIEWER_ID))
    assert fetched.json()["status"] == "pending"


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_history_endpoint(client):
    approval_id = (await _submit(client, title="Laptops")).json()["approval"]["id"]
    await client.post(
        f"{BASE}/{approval_id}/more-info",
        json={"comments": "Which model?"},
        headers=auth_headers(REVIEWER_ID),
    )
    await _submit(client)

    response = await client.get(
        f"{BASE}/history",
        params={"entity_type": "procurement_request", "entity_id": "PR-1"},
        headers=auth_headers(REVIEWER_ID),
    )

    history = response.json()
    assert response.status_code == 200
    assert [h["status"] for h in history] == ["more_info", "pending"]
    assert history[0]["requester_name"] == "requester@acme.com"
    assert history[0]["comments"] == "Which model?"


@pytest.mark.asyncio
async def test_list_is_scoped_for_non_reviewers(client):
    await _submit(client)
    await _submit(client, user_id=ADMIN_ID, entity_type="grn", entity_id="GRN-1")

    mine = await client.get(BASE, headers=auth_headers(REQUESTER_ID))
    assert mine.json()["pagination"]["total"] == 1
    assert mine.json()["data"][0]["entity_id"] == "PR-1"

    nothing = await client.get(BASE, headers=auth_headers(OUTSIDER_ID))
    assert nothing.json()["data"] == []

    everything = await client.get(BASE, params={"status": "pending"}, headers=auth_headers(REVIEWER_ID))
    assert everything.json()["pagination"]["total"] == 1
