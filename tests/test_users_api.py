import uuid

import pytest
from sqlalchemy import select

from app.models import User, UserActivityLog


@pytest.mark.anyio("asyncio")
async def test_list_users_envelope_and_filters(client, make_user):
    for index in range(3):
        make_user(f"listed-{index}", user_type="staff")
    make_user("inactive-staff", user_type="staff", is_active=False)

    resp = await client.get("/admin/users", params={"user_type": "staff", "is_active": "true", "limit": 2})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}
    assert len(data["users"]) == 2
    assert all("password_hash" not in user for user in data["users"])


@pytest.mark.anyio("asyncio")
async def test_list_users_clamps_paging(client, make_user):
    make_user("clamped")
    resp = await client.get("/admin/users", params={"page": 0, "limit": 1000, "sort_by": "bogus"})
    pagination = resp.json()["data"]["pagination"]
    assert pagination["page"] == 1
    assert pagination["limit"] == 100


@pytest.mark.anyio("asyncio")
async def test_user_detail_includes_statistics(client, make_user, make_job, make_conversation, make_school):
    school = make_school("SMA Harapan")
    user = make_user("detailed", school_id=school.id)
    make_job(user.id, status="completed")
    make_job(user.id, status="completed")
    make_job(user.id, status="failed")
    make_conversation(user.id, messages=2)

    resp = await client.get(f"/admin/users/{user.id}")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["user"]["username"] == "detailed"
    assert data["user"]["profile"]["school"]["name"] == "SMA Harapan"
    assert data["statistics"]["jobs"] == {"completed": 2, "failed": 1}
    assert data["statistics"]["conversations"] == 1
    assert len(data["recentJobs"]) == 3
    assert len(data["recentConversations"]) == 1


@pytest.mark.anyio("asyncio")
async def test_unknown_user_is_404(client):
    resp = await client.get(f"/admin/users/{uuid.uuid4()}")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.anyio("asyncio")
async def test_malformed_user_id_is_400(client):
    resp = await client.get("/admin/users/not-a-uuid")
    assert resp.status_code == 400


@pytest.mark.anyio("asyncio")
async def test_update_user_creates_profile_and_audits(client, db_session, make_user, admin_principal):
    user = make_user("editable")

    resp = await client.put(
        f"/admin/users/{user.id}",
        json={"username": "edited", "is_active": False, "profile": {"full_name": "Edi Ted"}},
        headers={"User-Agent": "pytest-agent"},
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["username"] == "edited"
    assert data["is_active"] is False
    assert data["profile"]["full_name"] == "Edi Ted"

    entry = db_session.scalars(
        select(UserActivityLog).where(
            UserActivityLog.user_id == user.id, UserActivityLog.activity_type == "USER_UPDATE"
        )
    ).one()
    assert entry.admin_id == uuid.UUID(admin_principal.id)
    assert entry.user_agent == "pytest-agent"
    assert entry.activity_data["updates"]["username"] == "edited"


@pytest.mark.anyio("asyncio")
async def test_update_user_rejects_unknown_role(client, make_user):
    user = make_user()
    resp = await client.put(f"/admin/users/{user.id}", json={"user_type": "god"})
    assert resp.status_code == 400


@pytest.mark.anyio("asyncio")
async def test_token_adjustments_and_history(client, db_session, make_user):
    user = make_user("wallet", token_balance=10)

    added = await client.put(f"/admin/users/{user.id}/tokens", json={"amount": 5, "reason": "bonus"})
    assert added.status_code == 200
    result = added.json()["data"]
    assert result["userId"] == str(user.id)
    assert result["email"] == user.email
    assert (result["oldBalance"], result["newBalance"], result["amount"]) == (10, 15, 5)

    deducted = await client.put(f"/admin/users/{user.id}/tokens", json={"amount": -15, "reason": "reset"})
    assert deducted.json()["data"]["newBalance"] == 0

    history = await client.get(f"/admin/users/{user.id}/tokens")
    data = history.json()["data"]
    assert data["currentBalance"] == 0
    assert {entry["activity_type"] for entry in data["history"]} == {"TOKEN_UPDATE", "TOKEN_DEDUCTION"}


@pytest.mark.anyio("asyncio")
async def test_token_balance_cannot_go_negative(client, db_session, make_user):
    user = make_user("poor", token_balance=3)

    resp = await client.put(f"/admin/users/{user.id}/tokens", json={"amount": -4, "reason": "penalty"})

    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Insufficient token balance"
    assert db_session.get(User, user.id).token_balance == 3


@pytest.mark.anyio("asyncio")
async def test_zero_token_adjustment_is_invalid(client, make_user):
    user = make_user()
    resp = await client.put(f"/admin/users/{user.id}/tokens", json={"amount": 0, "reason": "noop"})
    assert resp.status_code == 400


@pytest.mark.anyio("asyncio")
async def test_user_jobs_and_conversations(client, make_user, make_job, make_conversation):
    user = make_user("busy")
    other = make_user("idle")
    for _ in range(25):
        make_job(user.id)
    make_job(other.id)
    make_conversation(user.id)

    jobs = (await client.get(f"/admin/users/{user.id}/jobs")).json()["data"]
    assert jobs["pagination"] == {"page": 1, "limit": 20, "total": 25, "totalPages": 2}

    conversations = (await client.get(f"/admin/users/{user.id}/conversations")).json()["data"]
    assert conversations["pagination"]["total"] == 1

    missing = await client.get(f"/admin/users/{uuid.uuid4()}/jobs")
    assert missing.status_code == 404
