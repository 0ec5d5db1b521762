import pytest


@pytest.mark.asyncio
async def test_health_reports_database(api_client):
    for path in ("/health", "/api/v1/health"):
        resp = await api_client.get(path)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "healthy"
        assert data["checks"] == {"database": "ok"}


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(api_client):
    resp = await api_client.get("/", headers={"X-Correlation-ID": "req-123"})
    assert resp.status_code == 200
    assert resp.headers["X-Correlation-ID"] == "req-123"
