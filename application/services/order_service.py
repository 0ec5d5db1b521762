"""
订单应用服务 - 下单、查询、取消、发货更新

主流程（订单+明细）在一个事务内完成；佣金、库存与通知在提交之后尽力而为，
失败只记录日志，不影响主流程的返回。
"""
from __future__ import annotations

import dataclasses
from decimal import Decimal
from typing import Awaitable, Callable, Optional

from application.dtos.orders import (
    AgentOrderCreateDTO,
    CommissionAwardDTO,
    OrderCreateDTO,
    OrderDTO,
    OrderItemIn,
    ShippingUpdateDTO,
)
from application.services.commission_service import CommissionService
from application.services.notification_service import NotificationService
from core.config import settings
from core.logging_config import get_logger
from domain.agent.exceptions import AgentNotApprovedException, AgentNotFoundException
from domain.common.exceptions import DomainValidationException, PermissionDeniedException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderItem, OrderStatus
from domain.order.events import OrderCancelled, OrderPlaced, ShipmentUpdated
from domain.order.exceptions import OrderNotFoundException, OrderNumberConflictException
from domain.order.service import compute_totals, generate_order_number
from domain.security.policy import Action, Role, Subject, authorize


logger = get_logger(__name__)

ORDER_NUMBER_ATTEMPTS = 5

# 发货接口会写入订单状态的取值（pending 只记录物流信息）
SHIPPING_STATUS_UPDATES = frozenset({
    OrderStatus.SHIPPED.value,
    OrderStatus.IN_TRANSIT.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.RETURNED.value,
})


def _to_items(items: list[OrderItemIn]) -> list[OrderItem]:
    return [
        OrderItem(
            product_id=i.product_id,
            name=i.name,
            quantity=i.quantity,
            unit_price=i.price,
            gst_rate=i.gst_rate,
        )
        for i in items
    ]


class OrderService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        commission_service: Optional[CommissionService] = None,
        notification_service: Optional[NotificationService] = None,
        default_gst_rate: Optional[Decimal] = None,
    ):
        self._uow_factory = uow_factory
        self._commissions = commission_service or CommissionService(uow_factory)
        self._notifications = notification_service or NotificationService()
        self._default_gst_rate = default_gst_rate if default_gst_rate is not None else settings.orders.default_gst_rate

    # ------------------------------------------------------------------ intake

    async def create_order(self, subject: Subject, dto: OrderCreateDTO) -> OrderDTO:
        """客户下单"""
        missing = [
            name for name in ("customer_name", "customer_email", "customer_phone")
            if not (getattr(dto, name) or "").strip()
        ]
        if missing:
            raise DomainValidationException(
                f"Missing required fields: {', '.join(missing)}",
                field=missing[0],
                details={"missing": missing},
            )
        if not dto.items:
            raise DomainValidationException("At least one item is required", field="items")

        items = _to_items(dto.items)
        order = Order(
            id=None,
            order_number="",
            customer_id=subject.user_id,
            customer_name=dto.customer_name.strip(),
            customer_email=dto.customer_email.strip(),
            customer_phone=dto.customer_phone.strip(),
            fulfilment_type=dto.fulfilment_type,
            payment_method=dto.payment_method,
            delivery_address=dto.delivery_address,
            notes=dto.notes,
            currency=settings.orders.currency,
            created_by=subject.user_id,
            items=items,
        )

        async def attribute(uow: AbstractUnitOfWork) -> None:
            if dto.referral_code:
                agent = await uow.agent_repository.get_by_referral_code(dto.referral_code)
                if agent is not None and agent.is_approved:
                    order.agent_id = agent.id
                else:
                    logger.info("referral_code_ignored", referral_code=dto.referral_code)
            self._apply_totals(order, dto.shipping_amount)

        created = await self._insert_numbered(order, attribute)

        await self._after_create(created)
        return OrderDTO.model_validate(created)

    async def create_agent_order(self, subject: Subject, dto: AgentOrderCreateDTO) -> OrderDTO:
        """代理代客下单：仅限已审核通过的代理"""
        customer = dto.customer
        if not (customer.email or "").strip() and not (customer.mobile or "").strip():
            raise DomainValidationException("Customer email or mobile is required", field="customer")
        if not dto.items:
            raise DomainValidationException("At least one item is required", field="items")

        order = Order(
            id=None,
            order_number="",
            customer_name=(customer.name or customer.email or customer.mobile or "").strip(),
            customer_email=(customer.email or "").strip() or None,
            customer_phone=(customer.mobile or "").strip() or None,
            fulfilment_type=dto.type,
            delivery_address=customer.address,
            notes=dto.notes,
            currency=settings.orders.currency,
            created_by=subject.user_id,
            items=_to_items(dto.items),
        )

        async def attribute(uow: AbstractUnitOfWork) -> None:
            agent = await uow.agent_repository.get_by_user_id(subject.user_id)
            if agent is None:
                raise AgentNotFoundException(subject.user_id)
            if not agent.is_approved:
                raise AgentNotApprovedException(agent.status)
            order.agent_id = agent.id
            self._apply_totals(order)

        created = await self._insert_numbered(order, attribute)

        await self._adjust_inventory(created)
        await self._after_create(created)
        return OrderDTO.model_validate(created)

    async def _insert_numbered(
        self,
        order: Order,
        prepare: Callable[[AbstractUnitOfWork], Awaitable[None]],
    ) -> Order:
        """分配订单号并写入；订单号撞车时换号重试（每次都是新事务）"""
        attempt = 1
        while True:
            order.order_number = generate_order_number()
            try:
                async with self._uow_factory() as uow:
                    await prepare(uow)
                    return await uow.order_repository.create(order)
            except OrderNumberConflictException:
                if attempt == ORDER_NUMBER_ATTEMPTS:
                    raise
                logger.warning("order_number_retry", order_number=order.order_number, attempt=attempt)
                attempt += 1

    def _apply_totals(self, order: Order, shipping_amount: Decimal = Decimal("0")) -> None:
        totals = compute_totals(order.items, self._default_gst_rate)
        # 运费不含税，直接加到应付总额
        totals.total = totals.total + shipping_amount
        order.shipping_amount = shipping_amount
        order.apply_totals(totals)

    async def _after_create(self, order: Order) -> None:
        if order.agent_id is not None:
            await self._commissions.award_safely(order.id)
        await self._notifications.publish(OrderPlaced(order_id=order.id, agent_id=order.agent_id), order)

    async def _adjust_inventory(self, order: Order) -> None:
        for item in order.items:
            try:
                async with self._uow_factory() as uow:
                    await uow.inventory_repository.deduct_stock(
                        item.product_id,
                        item.quantity,
                        reference_type="order",
                        reference_id=order.order_number,
                        notes=f"Agent order {order.order_number}",
                    )
            except Exception as exc:
                logger.warning(
                    "inventory_adjust_failed",
                    order_id=order.id,
                    product_id=item.product_id,
                    error=str(exc),
                )

    # ------------------------------------------------------------------ reads

    async def _resolve_subject(self, uow: AbstractUnitOfWork, subject: Subject) -> Subject:
        if subject.role == Role.SALES_AGENT.value and subject.agent_id is None:
            agent = await uow.agent_repository.get_by_user_id(subject.user_id)
            if agent is not None:
                return dataclasses.replace(subject, agent_id=agent.id)
        return subject

    async def get_order(self, subject: Subject, order_id: int) -> OrderDTO:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            subject = await self._resolve_subject(uow, subject)
        if not authorize(subject, Action.ORDER_READ, order):
            raise PermissionDeniedException(action=Action.ORDER_READ.value)
        return OrderDTO.model_validate(order)

    # ------------------------------------------------------------------ mutations

    async def cancel_order(self, subject: Subject, order_id: int, reason: Optional[str] = None) -> OrderDTO:
        """取消订单：仅限发货前状态"""
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            subject = await self._resolve_subject(uow, subject)
            if not authorize(subject, Action.ORDER_CANCEL, order):
                raise PermissionDeniedException(action=Action.ORDER_CANCEL.value)
            previous = order.cancel()
            updated = await uow.order_repository.update(order)

        logger.info("order_cancelled", order_id=order_id, previous_status=previous, actor=subject.user_id)
        await self._notifications.publish(OrderCancelled(order_id=order_id, reason=reason), updated)
        return OrderDTO.model_validate(updated)

    async def update_shipping(self, dto: ShippingUpdateDTO, actor: Optional[str] = None) -> OrderDTO:
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_by_id(dto.order_id)
            if order is None:
                raise OrderNotFoundException(dto.order_id)

            if dto.status in SHIPPING_STATUS_UPDATES:
                if order.is_out_of_sequence(dto.status):
                    logger.warning(
                        "order_status_out_of_sequence",
                        order_id=order.id,
                        current=order.status,
                        requested=dto.status,
                    )
                order.set_status(dto.status)

            shipping_info = dict(order.shipping_info or {})
            shipping_info.update({
                "status": dto.status,
                "tracking_number": dto.tracking_number,
                "carrier": dto.carrier or "Unknown",
                "estimated_delivery": dto.estimated_delivery,
                "updated_by": actor,
            })
            if dto.notes:
                shipping_info["notes"] = dto.notes
            order.shipping_info = shipping_info
            if dto.delivery_address:
                order.delivery_address = dto.delivery_address
            updated = await uow.order_repository.update(order)

        logger.info("shipping_updated", order_id=dto.order_id, status=dto.status, tracking_number=dto.tracking_number)
        await self._notifications.publish(
            ShipmentUpdated(
                order_id=dto.order_id,
                shipping_status=dto.status,
                tracking_number=dto.tracking_number,
                carrier=dto.carrier,
                estimated_delivery=dto.estimated_delivery,
            ),
            updated,
        )
        return OrderDTO.model_validate(updated)

    async def award_commission(self, order_id: int) -> CommissionAwardDTO:
        return await self._commissions.award_completed_order(order_id)
