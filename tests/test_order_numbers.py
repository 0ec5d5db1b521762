import pytest

from application.dtos.orders import OrderCreateDTO, OrderItemIn
from application.services import order_service as order_service_module
from application.services.order_service import ORDER_NUMBER_ATTEMPTS, OrderService
from domain.order.exceptions import OrderNumberConflictException
from domain.security.policy import Subject


def _dto() -> OrderCreateDTO:
    return OrderCreateDTO(
        customer_name="Asha Rao",
        customer_email="asha@example.com",
        customer_phone="9876543210",
        items=[OrderItemIn(product_id="SKU-1", quantity=1, price="1180.00")],
    )


@pytest.fixture
def order_numbers(monkeypatch):
    issued = []

    def _use(*numbers):
        queue = list(numbers)

        def _next():
            number = queue.pop(0) if len(queue) > 1 else queue[0]
            issued.append(number)
            return number

        monkeypatch.setattr(order_service_module, "generate_order_number", _next)
        return issued

    return _use


@pytest.fixture
def service(uow_factory, notifications):
    return OrderService(uow_factory, notification_service=notifications)


@pytest.mark.asyncio
async def test_order_number_collision_is_retried(service, order_numbers, email_sender):
    issued = order_numbers("TB-20261016-800137", "TB-20261016-800137", "TB-20261016-800138")

    first = await service.create_order(Subject(user_id="user-1"), _dto())
    second = await service.create_order(Subject(user_id="user-2"), _dto())

    assert first.order_number == "TB-20261016-800137"
    assert second.order_number == "TB-20261016-800138"
    assert issued == ["TB-20261016-800137", "TB-20261016-800137", "TB-20261016-800138"]
    # one ORDER_PLACED fan-out per stored order
    assert len(email_sender.sent) == 6


@pytest.mark.asyncio
async def test_order_number_exhaustion_raises_conflict(service, order_numbers):
    issued = order_numbers("TB-20261016-000001")
    await service.create_order(Subject(user_id="user-1"), _dto())

    with pytest.raises(OrderNumberConflictException):
        await service.create_order(Subject(user_id="user-2"), _dto())
    assert len(issued) == 1 + ORDER_NUMBER_ATTEMPTS
