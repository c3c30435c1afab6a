"""
PO approval matrix: level bands, amount resolution, entries and access
control through /api/v1/approval-matrix.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from approvals_api.exceptions import NotFound, ValidationFailed
from approvals_api.models.approval_matrix import ApprovalMatrixEntry
from approvals_api.services import approval_matrix_service as matrix

from conftest import ADMIN_ID, PROCUREMENT_ID, REQUESTER_ID, REVIEWER_ID, auth_headers

BASE = "/api/v1/approval-matrix"


async def _seed_levels(db):
    low = await matrix.create_level(db, 1, "Department", Decimal("0"), Decimal("50000"))
    mid = await matrix.create_level(db, 2, "Procurement", Decimal("50000"), Decimal("200000"))
    top = await matrix.create_level(db, 3, "Executive", Decimal("200000"), None)
    await db.commit()
    return low, mid, top


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "amount,expected",
    [
        ("0", 1),
        ("49999.99", 1),
        ("50000", 2),
        ("199999.99", 2),
        ("200000", 3),
        ("10000000", 3),
    ],
)
async def test_required_level_band_edges(db, amount, expected):
    await _seed_levels(db)

    level = await matrix.get_required_level(db, Decimal(amount))

    assert level.level_number == expected


@pytest.mark.asyncio
async def test_inactive_levels_are_skipped(db):
    low, _, _ = await _seed_levels(db)
    await matrix.update_level(db, low.id, is_active=False)

    assert await matrix.get_required_level(db, Decimal("10")) is None
    assert [lv.level_number for lv in await matrix.list_levels(db, active_only=True)] == [2, 3]


@pytest.mark.asyncio
@pytest.mark.parametrize("low,high", [("-1", None), ("100", "100"), ("100", "50")])
async def test_invalid_band_is_rejected(db, low, high):
    with pytest.raises(ValidationFailed):
        await matrix.create_level(
            db, 5, "Broken", Decimal(low), Decimal(high) if high is not None else None
        )


@pytest.mark.asyncio
async def test_duplicate_level_number_is_rejected(db):
    await _seed_levels(db)

    with pytest.raises(ValidationFailed):
        await matrix.create_level(db, 2, "Duplicate", Decimal("1"), None)


@pytest.mark.asyncio
async def test_update_level_rejects_unknown_fields(db):
    low, _, _ = await _seed_levels(db)

    with pytest.raises(ValidationFailed):
        await matrix.update_level(db, low.id, colour="red")


@pytest.mark.asyncio
async def test_entries_scoped_by_department(db):
    low, _, _ = await _seed_levels(db)
    await matrix.add_entry(db, low.id, approver_role="Manager", sequence_order=2)
    await matrix.add_entry(db, low.id, approver_user_id=REVIEWER_ID, department_id="dept-eng")
    await matrix.add_entry(db, low.id, approver_user_id=ADMIN_ID, department_id="dept-ops")

    eng = await matrix.list_entries(db, low.id, department_id="dept-eng")

    assert [(e.approver_user_id, e.approver_role) for e in eng] == [
        (REVIEWER_ID, None),
        (None, "manager"),
    ]
    assert len(await matrix.list_entries(db, low.id)) == 3


@pytest.mark.asyncio
async def test_entry_needs_user_or_role(db):
    low, _, _ = await _seed_levels(db)

    with pytest.raises(ValidationFailed):
        await matrix.add_entry(db, low.id)


@pytest.mark.asyncio
async def test_update_level_rejects_null_required_fields(db):
    low, _, _ = await _seed_levels(db)

    with pytest.raises(ValidationFailed) as exc_info:
        await matrix.update_level(db, low.id, min_amount=None, level_name=None)

    assert exc_info.value.details["fields"] == ["level_name", "min_amount"]


@pytest.mark.asyncio
async def test_update_level_can_open_the_upper_bound(db):
    low, _, _ = await _seed_levels(db)

    updated = await matrix.update_level(db, low.id, max_amount=None)

    assert updated.max_amount is None
    assert (await matrix.get_required_level(db, Decimal("1000000"))).level_number == 1


@pytest.mark.asyncio
async def test_delete_level_removes_its_entries(session_factory):
    async with session_factory() as setup:
        low, mid, _ = await _seed_levels(setup)
        await matrix.add_entry(setup, low.id, approver_user_id=REVIEWER_ID)
        await matrix.add_entry(setup, mid.id, approver_user_id=PROCUREMENT_ID)
        await setup.commit()
        low_id = low.id

    async with session_factory() as session:
        await matrix.delete_level(session, low_id)
        await session.commit()

    async with session_factory() as check:
        remaining = await check.execute(select(func.count(ApprovalMatrixEntry.id)))
        assert remaining.scalar() == 1
        with pytest.raises(NotFound):
            await matrix.get_level(check, low_id)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_manager_can_build_matrix_over_http(client):
    headers = auth_headers(PROCUREMENT_ID)

    created = await client.post(
        f"{BASE}/levels",
        json={"level_number": 1, "level_name": "Department", "min_amount": "0", "max_amount": "50000"},
        headers=headers,
    )
    assert created.status_code == 201
    level_id = created.json()["id"]
    assert created.json()["entries"] == []

    entry = await client.post(
        f"{BASE}/levels/{level_id}/entries",
        json={"approver_user_id": REVIEWER_ID},
        headers=headers,
    )
    assert entry.status_code == 201

    fetched = await client.get(f"{BASE}/levels/{level_id}", headers=headers)
    assert [e["approver_user_id"] for e in fetched.json()["entries"]] == [REVIEWER_ID]

    resolved = await client.get(f"{BASE}/resolve", params={"amount": "1200"}, headers=headers)
    assert resolved.json()["level_number"] == 1

    unmatched = await client.get(f"{BASE}/resolve", params={"amount": "50000"}, headers=headers)
    assert unmatched.json() is None

    patched = await client.patch(
        f"{BASE}/levels/{level_id}", json={"max_amount": "75000"}, headers=headers
    )
    assert patched.status_code == 200
    assert Decimal(str(patched.json()["max_amount"])) == Decimal("75000")

    deleted = await client.delete(f"{BASE}/levels/{level_id}", headers=headers)
    assert deleted.status_code == 204
    missing = await client.get(f"{BASE}/levels/{level_id}", headers=headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_invalid_band_over_http_is_422(client):
    response = await client.post(
        f"{BASE}/levels",
        json={"level_number": 1, "level_name": "Broken", "min_amount": "500", "max_amount": "100"},
        headers=auth_headers(ADMIN_ID),
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["min_amount", "level_name", "level_number", "is_active"])
async def test_nulling_required_level_field_over_http_is_422(client, field):
    headers = auth_headers(ADMIN_ID)
    created = await client.post(
        f"{BASE}/levels",
        json={"level_number": 1, "level_name": "Department", "min_amount": "0", "max_amount": "50000"},
        headers=headers,
    )

    response = await client.patch(
        f"{BASE}/levels/{created.json()['id']}", json={field: None}, headers=headers
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"

    fetched = await client.get(f"{BASE}/levels/{created.json()['id']}", headers=headers)
    assert fetched.json()["level_name"] == "Department"
    assert Decimal(str(fetched.json()["min_amount"])) == Decimal("0")


@pytest.mark.asyncio
async def test_clearing_max_amount_over_http_makes_band_open_ended(client):
    headers = auth_headers(ADMIN_ID)
    created = await client.post(
        f"{BASE}/levels",
        json={"level_number": 1, "level_name": "Department", "min_amount": "0", "max_amount": "50000"},
        headers=headers,
    )

    response = await client.patch(
        f"{BASE}/levels/{created.json()['id']}", json={"max_amount": None}, headers=headers
    )

    assert response.status_code == 200
    assert response.json()["max_amount"] is None


@pytest.mark.asyncio
async def test_non_manager_cannot_write_matrix(client):
    response = await client.post(
        f"{BASE}/levels",
        json={"level_number": 1, "level_name": "Department"},
        headers=auth_headers(REQUESTER_ID),
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"

    listed = await client.get(f"{BASE}/levels", headers=auth_headers(REQUESTER_ID))
    assert listed.status_code == 200
    assert listed.json() == []
