"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE__URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT__BACKEND"] = "memory"
os.environ.pop("REDIS__URL", None)
os.environ.pop("CELERY_BROKER_URL", None)

from decimal import Decimal
from typing import Any, Callable, Optional

import httpx
import pytest

from application.ports.notifications import EmailMessage, WhatsAppTemplateMessage
from application.services.notification_service import NotificationService
from application.services.token_service import TokenService
from core.config import NotificationSettings
from domain.agent.entity import SalesAgent
from domain.order.entity import Order, OrderItem
from domain.settings.entity import SettingEntry
from infrastructure.database import create_tables, engine
from infrastructure.models import InventoryModel
from infrastructure.rate_limit import MemoryRateLimiter, set_rate_limiter
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


PHONEPE_CONFIG = {"merchantId": "MERCHANTUAT", "saltKey": "salt-key-123", "saltIndex": "1"}
PAYTM_CONFIG = {"merchantId": "PAYTMMID01", "merchantKey": "abcdefgh12345678", "websiteName": "WEBSTAGING"}
RAZORPAY_CONFIG = {"keyId": "rzp_test_key", "keySecret": "rzp_secret", "webhookSecret": "whsec_test"}


class FakeEmailSender:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append(message)


class FakeWhatsAppSender:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[WhatsAppTemplateMessage] = []

    async def send_template(self, message: WhatsAppTemplateMessage) -> None:
        if self.fail:
            raise RuntimeError("whatsapp down")
        self.sent.append(message)


class GatewayStub:
    """httpx.MockTransport 的可编程处理器：按路径片段返回预设响应并记录请求"""

    def __init__(self):
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, path_fragment: str, responder: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[path_fragment] = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for fragment, responder in self.routes.items():
            if fragment in request.url.path:
                return responder(request)
        return httpx.Response(404, json={"error": "no stub"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture(autouse=True)
async def database():
    await create_tables()
    yield
    # 内存库随连接释放而清空
    await engine.dispose()


@pytest.fixture(autouse=True)
def rate_limiter():
    limiter = MemoryRateLimiter()
    set_rate_limiter(limiter)
    yield limiter
    set_rate_limiter(None)


@pytest.fixture
def uow_factory():
    return SQLAlchemyUnitOfWork


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def whatsapp_sender():
    return FakeWhatsAppSender()


@pytest.fixture
def notification_config():
    return NotificationSettings(
        manager_email="manager@example.com",
        manager_phone="9000000001",
        admin_email="admin@example.com",
        admin_phone="9000000002",
    )


@pytest.fixture
def notifications(email_sender, whatsapp_sender, notification_config):
    return NotificationService(
        email_sender=email_sender,
        whatsapp_sender=whatsapp_sender,
        config=notification_config,
    )


@pytest.fixture
def gateway_stub():
    return GatewayStub()


@pytest.fixture
def gateway_factory(gateway_stub):
    from infrastructure.external.payments import get_payment_gateway

    def _factory(provider: str, config: dict[str, Any]):
        return get_payment_gateway(provider, config, http_client=gateway_stub.client())

    return _factory


@pytest.fixture
def token_service():
    return TokenService()


@pytest.fixture
def auth_headers(token_service):
    def _headers(user_id: str = "user-1", role: str = "customer", email: Optional[str] = None) -> dict[str, str]:
        token = token_service.create_access_token(user_id, role=role, email=email)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def seed_setting(uow_factory):
    async def _seed(key: str, value: Any) -> SettingEntry:
        async with uow_factory() as uow:
            return await uow.setting_repository.save(SettingEntry(id=None, key=key, value=value))

    return _seed


@pytest.fixture
def enable_gateway(seed_setting):
    async def _enable(provider: str, config: dict[str, Any], enabled: bool = True) -> SettingEntry:
        return await seed_setting(
            f"payment_{provider}",
            {"id": provider, "name": provider.title(), "type": "online", "enabled": enabled, "config": config},
        )

    return _enable


@pytest.fixture
def make_agent(uow_factory):
    async def _make(user_id: str = "agent-user", status: str = "approved", code: str = "AGENT-0001") -> SalesAgent:
        async with uow_factory() as uow:
            return await uow.agent_repository.create(
                SalesAgent(id=None, user_id=user_id, referral_code=code, status=status)
            )

    return _make


@pytest.fixture
def make_order(uow_factory):
    async def _make(
        total: str = "1180.00",
        *,
        customer_id: str = "user-1",
        agent_id: Optional[int] = None,
        status: str = "pending",
        order_number: str = "TB-20261016-000001",
    ) -> Order:
        order = Order(
            id=None,
            order_number=order_number,
            customer_id=customer_id,
            customer_name="Asha Rao",
            customer_email="asha@example.com",
            customer_phone="9876543210",
            status=status,
            subtotal=Decimal(total),
            total=Decimal(total),
            agent_id=agent_id,
            items=[OrderItem(product_id="SKU-1", quantity=1, unit_price=Decimal(total))],
        )
        async with uow_factory() as uow:
            return await uow.order_repository.create(order)

    return _make


@pytest.fixture
def stock(uow_factory):
    async def _stock(product_id: str, quantity: int) -> None:
        async with uow_factory() as uow:
            uow.session.add(InventoryModel(product_id=product_id, quantity=quantity))

    return _stock


@pytest.fixture
async def api_client(notifications, gateway_factory, uow_factory):
    from api.dependencies import get_notification_service, get_payment_service
    from application.services.commission_service import CommissionService
    from application.services.payment_service import PaymentService
    from main import app

    app.dependency_overrides[get_notification_service] = lambda: notifications
    app.dependency_overrides[get_payment_service] = lambda: PaymentService(
        uow_factory,
        gateway_factory,
        commission_service=CommissionService(uow_factory),
        notification_service=notifications,
    )
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()
