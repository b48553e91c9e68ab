"""API tests for login, user management and the cron gate."""

from datetime import timedelta

import pytest

from screenops.api import cron
from screenops.auth.roles import UserRole
from screenops.models import ProcessingLock
from screenops.utils.clock import utcnow


@pytest.mark.asyncio
async def test_login_and_me(client, admin):
    """Valid credentials yield a token that resolves to the user."""
    response = await client.post("/auth/login", json={"email": admin.email.upper(), "password": "correct-horse"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == admin.email
    assert me.json()["last_login_at"] is not None


@pytest.mark.asyncio
async def test_login_rejects_bad_password(client, admin):
    """Wrong password is 401."""
    response = await client.post("/auth/login", json={"email": admin.email, "password": "wrong-horse"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_garbage_token_is_401(client):
    """Tokens that do not decode are rejected."""
    response = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_role_management_matrix(client, make_user, auth_headers):
    """Leads create screeners only; managers create facilitators only."""
    lead = await make_user(UserRole.SCREENER_LEAD.value)
    manager = await make_user(UserRole.PROGRAM_OPERATIONS_MANAGER.value)
    new_user = {"email": "new@example.com", "password": "long-enough", "first_name": "New", "last_name": "Person"}

    response = await client.post("/v1/users", json={**new_user, "role": "SCREENER"}, headers=auth_headers(lead))
    assert response.status_code == 201
    response = await client.post(
        "/v1/users", json={**new_user, "email": "other@example.com", "role": "FACILITATOR"}, headers=auth_headers(lead)
    )
    assert response.status_code == 403
    response = await client.post(
        "/v1/users", json={**new_user, "email": "fac@example.com", "role": "FACILITATOR"}, headers=auth_headers(manager)
    )
    assert response.status_code == 201
    response = await client.post("/v1/users", json={**new_user, "role": "SCREENER"}, headers=auth_headers(lead))
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_only_admins_delete_and_not_themselves(client, admin, admin_headers, make_user, auth_headers):
    """Deletion is admin-only and never self-service."""
    manager = await make_user(UserRole.PROGRAM_OPERATIONS_MANAGER.value)
    screener = await make_user(UserRole.SCREENER.value)

    response = await client.delete(f"/v1/users/{screener.id}", headers=auth_headers(manager))
    assert response.status_code == 403
    response = await client.delete(f"/v1/users/{admin.id}", headers=admin_headers)
    assert response.status_code == 400
    response = await client.delete(f"/v1/users/{screener.id}", headers=admin_headers)
    assert response.status_code == 200
    response = await client.get(f"/v1/users/{screener.id}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cron_requires_key(client, cron_headers):
    """Cron endpoints need the shared bearer key."""
    response = await client.get("/cron/typeform/lookup-unprocessed")
    assert response.status_code == 401
    response = await client.get("/cron/typeform/lookup-unprocessed", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 403
    response = await client.get("/cron/typeform/lookup-unprocessed", headers=cron_headers)
    assert response.status_code == 200
    assert response.json() == {"count": 0, "submissions": []}


@pytest.mark.asyncio
async def test_cron_lookup_reports_stuck_submissions(client, cron_headers, db, make_application, monkeypatch):
    """Locks older than the sweep threshold are reported; fresh ones are not."""
    queued = []

    async def fake_reprocess(token):
        queued.append(token)

    monkeypatch.setattr(cron, "reprocess_in_background", fake_reprocess)
    stuck = await make_application(email="stuck@example.com", typeform_response_id="tok_stuck")
    await make_application(email="fresh@example.com", typeform_response_id="tok_fresh")
    old = utcnow() - timedelta(minutes=30)
    db.add(ProcessingLock(lock_id="typeform_tok_stuck", created_at=old, updated_at=old))
    db.add(ProcessingLock(lock_id="typeform_tok_fresh"))
    await db.commit()

    response = await client.get("/cron/typeform/lookup-unprocessed", headers=cron_headers)
    body = response.json()
    assert body["count"] == 1
    assert body["submissions"][0]["application_id"] == str(stuck.id)
    assert queued == ["tok_stuck"]
