import pytest

from tests.conftest import RAZORPAY_CONFIG


@pytest.mark.asyncio
async def test_admin_routes_require_admin(api_client, auth_headers):
    for role in ("customer", "sales_agent", "manager"):
        resp = await api_client.get("/api/v1/admin/payment-settings", headers=auth_headers("u-1", role=role))
        assert resp.status_code == 403


@pytest.mark.asyncio
async def test_payment_settings_roundtrip(api_client, auth_headers, enable_gateway):
    headers = auth_headers("a-1", role="admin")
    await enable_gateway("razorpay", RAZORPAY_CONFIG)

    listed = await api_client.get("/api/v1/admin/payment-settings", headers=headers)
    assert listed.status_code == 200
    razorpay = listed.json()["data"]["razorpay"]
    assert razorpay["config"]["keySecret"] == "******cret"
    assert razorpay["config"]["webhookSecret"] == "******test"

    updated = await api_client.put(
        "/api/v1/admin/payment-settings",
        json={"method_id": "razorpay", "updates": {"enabled": False, "config": {"keySecret": "******cret"}}},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["enabled"] is False
    assert updated.json()["data"]["config"]["keySecret"] == "******cret"


@pytest.mark.asyncio
async def test_dedupe_endpoint(api_client, auth_headers, seed_setting):
    await seed_setting("payment_phonepe", {"id": "phonepe", "enabled": False})
    kept = await seed_setting("payment_phonepe", {"id": "phonepe", "enabled": True})

    resp = await api_client.post(
        "/api/v1/admin/payment-settings/dedupe",
        params={"key": "payment_phonepe"},
        headers=auth_headers("a-1", role="superadmin"),
    )
    assert resp.status_code == 200
    assert resp.json()["data"] == {"key": "payment_phonepe", "removed": 1, "kept_id": kept.id}


@pytest.mark.asyncio
async def test_commission_settings(api_client, auth_headers):
    headers = auth_headers("a-1", role="admin")

    current = await api_client.get("/api/v1/admin/commission-settings", headers=headers)
    assert current.json()["data"]["type"] == "fixed_per_rupee"

    invalid = await api_client.put(
        "/api/v1/admin/commission-settings", json={"type": "bonus", "value": 5}, headers=headers
    )
    assert invalid.status_code == 422

    resp = await api_client.put(
        "/api/v1/admin/commission-settings", json={"type": "percentage", "value": "2.5"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["data"] == {"type": "percentage", "value": "2.5"}


@pytest.mark.asyncio
async def test_agent_approval_and_redemption_flow(api_client, auth_headers, uow_factory):
    from decimal import Decimal

    agent_headers = auth_headers("agent-user", role="sales_agent", email="ravi@example.com")
    admin_headers = auth_headers("a-1", role="admin")

    applied = await api_client.post("/api/v1/agents/apply", headers=agent_headers)
    agent_id = applied.json()["data"]["id"]
    assert applied.json()["data"]["status"] == "pending"

    pending = await api_client.get("/api/v1/admin/sales-agents", params={"status": "pending"}, headers=admin_headers)
    assert [a["id"] for a in pending.json()["data"]] == [agent_id]

    approved = await api_client.put(
        f"/api/v1/admin/sales-agents/{agent_id}", json={"status": "approved"}, headers=admin_headers
    )
    assert approved.json()["data"]["status"] == "approved"

    async with uow_factory() as uow:
        await uow.agent_repository.increment_points(agent_id, Decimal("40"))

    too_much = await api_client.post("/api/v1/agents/redemptions", json={"points": "50"}, headers=agent_headers)
    assert too_much.status_code == 400
    assert too_much.json()["type"] == "InsufficientPoints"

    created = await api_client.post("/api/v1/agents/redemptions", json={"points": "40"}, headers=agent_headers)
    redemption_id = created.json()["data"]["id"]

    review = await api_client.post(
        f"/api/v1/admin/redemptions/{redemption_id}/review", json={"approve": True}, headers=admin_headers
    )
    assert review.json()["data"]["status"] == "approved"
    processed = await api_client.post(f"/api/v1/admin/redemptions/{redemption_id}/process", headers=admin_headers)
    assert processed.json()["data"]["status"] == "processed"

    me = await api_client.get("/api/v1/agents/me", headers=agent_headers)
    assert me.json()["data"]["agent"]["points_balance"] == "0.00"
    mine = await api_client.get("/api/v1/agents/redemptions", headers=agent_headers)
    assert [r["status"] for r in mine.json()["data"]] == ["processed"]


@pytest.mark.asyncio
async def test_non_agent_gets_403(api_client, auth_headers):
    resp = await api_client.get("/api/v1/agents/me", headers=auth_headers("user-1"))
    assert resp.status_code == 403
    assert resp.json()["type"] == "AgentNotFound"
