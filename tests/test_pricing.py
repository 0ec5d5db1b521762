import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException
from domain.common.money import round_money, to_paise
from domain.order.entity import Order, OrderItem, OrderStatus
from domain.order.exceptions import OrderStateException
from domain.order.service import compute_totals, generate_order_number


def test_gst_inclusive_price_is_split():
    totals = compute_totals([OrderItem(product_id="SKU-1", quantity=1, unit_price=Decimal("1180"))], Decimal("18"))
    assert totals.total == Decimal("1180.00")
    assert totals.subtotal == Decimal("1000.00")
    assert totals.tax_amount == Decimal("180.00")


def test_item_rate_overrides_default():
    items = [
        OrderItem(product_id="SKU-1", quantity=2, unit_price=Decimal("105"), gst_rate=Decimal("5")),
        OrderItem(product_id="SKU-2", quantity=1, unit_price=Decimal("112"), gst_rate=Decimal("12")),
    ]
    totals = compute_totals(items, Decimal("18"))
    assert totals.total == Decimal("322.00")
    assert totals.subtotal == Decimal("300.00")
    assert totals.tax_amount == Decimal("22.00")


def test_zero_rate_has_no_tax():
    totals = compute_totals([OrderItem(product_id="SKU-1", quantity=3, unit_price=Decimal("9.99"))])
    assert totals.total == Decimal("29.97")
    assert totals.tax_amount == Decimal("0.00")


def test_rounding_is_half_up():
    assert round_money("2.345") == Decimal("2.35")
    assert round_money(0.125) == Decimal("0.13")
    assert to_paise(Decimal("1180.005")) == 118001


def test_invalid_items_are_rejected():
    with pytest.raises(DomainValidationException):
        OrderItem(product_id="SKU-1", quantity=0, unit_price=Decimal("1"))
    with pytest.raises(DomainValidationException):
        OrderItem(product_id="SKU-1", quantity=1, unit_price=Decimal("-1"))


def test_order_number_format():
    number = generate_order_number(datetime(2026, 10, 16, 9, 30, tzinfo=timezone.utc))
    assert re.fullmatch(r"TB-20261016-\d{6}", number)


def test_cancel_only_before_shipment():
    order = Order(id=1, order_number="TB-20261016-000001", customer_name="Asha", status=OrderStatus.CONFIRMED.value)
    assert order.cancel() == "confirmed"
    assert order.status == "cancelled"

    shipped = Order(id=2, order_number="TB-20261016-000002", customer_name="Asha", status=OrderStatus.SHIPPED.value)
    with pytest.raises(OrderStateException):
        shipped.cancel()


def test_backwards_status_is_flagged():
    order = Order(id=1, order_number="TB-20261016-000001", customer_name="Asha", status=OrderStatus.DELIVERED.value)
    assert order.is_out_of_sequence("shipped")
    assert not order.is_out_of_sequence("completed")
