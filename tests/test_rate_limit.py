import pytest
from sqlalchemy import func, select

from infrastructure.models import OrderModel
from infrastructure.rate_limit import MemoryRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_fixed_window_blocks_then_resets():
    clock = FakeClock()
    limiter = MemoryRateLimiter(clock=clock)

    for _ in range(3):
        assert (await limiter.hit("payment_initiate:ip:1.2.3.4", 3, 60)).allowed
    clock.now += 20
    blocked = await limiter.hit("payment_initiate:ip:1.2.3.4", 3, 60)
    assert not blocked.allowed
    assert blocked.retry_after == 40
    assert blocked.remaining == 0

    # other keys have their own window
    assert (await limiter.hit("payment_initiate:ip:5.6.7.8", 3, 60)).allowed

    clock.now += 40
    fresh = await limiter.hit("payment_initiate:ip:1.2.3.4", 3, 60)
    assert fresh.allowed
    assert fresh.count == 1


ORDER = {
    "customer_name": "Asha Rao",
    "customer_email": "asha@example.com",
    "customer_phone": "9876543210",
    "items": [{"product_id": "SKU-1", "quantity": 1, "price": "1180.00"}],
}


@pytest.mark.asyncio
async def test_order_create_is_rate_limited(api_client, auth_headers, uow_factory):
    headers = auth_headers("user-42")
    for _ in range(5):
        resp = await api_client.post("/api/v1/orders", json=ORDER, headers=headers)
        assert resp.status_code == 200

    resp = await api_client.post("/api/v1/orders", json=ORDER, headers=headers)

    assert resp.status_code == 429
    assert int(resp.headers["Retry-After"]) >= 1
    assert resp.json()["type"] == "RateLimit"
    async with uow_factory(readonly=True) as uow:
        count = await uow.session.scalar(
            select(func.count()).select_from(OrderModel).where(OrderModel.customer_id == "user-42")
        )
    assert count == 5

    # a different user is counted separately
    other = await api_client.post("/api/v1/orders", json=ORDER, headers=auth_headers("user-43"))
    assert other.status_code == 200
