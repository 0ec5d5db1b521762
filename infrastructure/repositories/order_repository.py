"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from domain.order.entity import Order, OrderItem
from domain.order.repository import OrderRepository
from domain.order.exceptions import OrderNotFoundException, OrderNumberConflictException
from infrastructure.models.order import OrderModel, OrderItemModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _item_to_entity(self, model: OrderItemModel) -> OrderItem:
        return OrderItem(
            id=model.id,
            order_id=model.order_id,
            product_id=model.product_id,
            name=model.name,
            quantity=model.quantity,
            unit_price=Decimal(str(model.unit_price)),
            gst_rate=Decimal(str(model.gst_rate)) if model.gst_rate is not None else None,
        )

    def _to_entity(self, model: OrderModel, *, with_items: bool = True) -> Order:
        """将数据库模型转换为领域实体"""
        return Order(
            id=model.id,
            order_number=model.order_number,
            customer_id=model.customer_id,
            customer_name=model.customer_name,
            customer_email=model.customer_email,
            customer_phone=model.customer_phone,
            status=model.status,
            payment_status=model.payment_status,
            payment_method=model.payment_method,
            subtotal=Decimal(str(model.subtotal)),
            tax_amount=Decimal(str(model.tax_amount)),
            shipping_amount=Decimal(str(model.shipping_amount)),
            total=Decimal(str(model.total)),
            currency=model.currency,
            fulfilment_type=model.fulfilment_type,
            delivery_address=model.delivery_address,
            notes=model.notes,
            shipping_info=dict(model.shipping_info or {}),
            agent_id=model.agent_id,
            created_by=model.created_by,
            items=[self._item_to_entity(i) for i in model.items] if with_items else [],
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Order) -> OrderModel:
        """将领域实体转换为数据库模型（不含明细）"""
        return OrderModel(
            id=entity.id,
            order_number=entity.order_number,
            customer_id=entity.customer_id,
            customer_name=entity.customer_name,
            customer_email=entity.customer_email,
            customer_phone=entity.customer_phone,
            status=entity.status,
            payment_status=entity.payment_status,
            payment_method=entity.payment_method,
            subtotal=entity.subtotal,
            tax_amount=entity.tax_amount,
            shipping_amount=entity.shipping_amount,
            total=entity.total,
            currency=entity.currency,
            fulfilment_type=entity.fulfilment_type,
            delivery_address=entity.delivery_address,
            notes=entity.notes,
            shipping_info=entity.shipping_info or None,
            agent_id=entity.agent_id,
            created_by=entity.created_by,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def create(self, order: Order) -> Order:
        """创建订单；明细在同一事务内写入，失败时整个 UoW 回滚"""
        db_order = self._to_model(order)
        try:
            self.session.add(db_order)
            await self.session.flush()
        except IntegrityError as e:
            if "order_number" not in str(e.orig):
                raise
            logger.warning("order_number_conflict", order_number=order.order_number)
            raise OrderNumberConflictException(order.order_number) from e

        for item in order.items:
            self.session.add(OrderItemModel(
                order_id=db_order.id,
                product_id=item.product_id,
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                gst_rate=item.gst_rate,
            ))
        await self.session.flush()
        await self.session.refresh(db_order, attribute_names=["items"])

        logger.info(
            "order_created",
            order_id=db_order.id,
            order_number=db_order.order_number,
            items=len(order.items),
            total=str(order.total),
        )
        return self._to_entity(db_order)

    async def get_by_id(self, order_id: int, *, with_items: bool = True) -> Optional[Order]:
        """根据ID获取订单"""
        query = select(OrderModel).where(OrderModel.id == order_id)
        if with_items:
            query = query.options(selectinload(OrderModel.items))
        result = await self.session.execute(query)
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order, with_items=with_items) if db_order else None

    async def update(self, order: Order) -> Order:
        """更新订单头；明细不可变"""
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.id == order.id)
        )
        db_order = result.scalar_one_or_none()
        if not db_order:
            raise OrderNotFoundException(order.id)

        db_order.status = order.status
        db_order.payment_status = order.payment_status
        db_order.payment_method = order.payment_method
        db_order.delivery_address = order.delivery_address
        db_order.notes = order.notes
        db_order.shipping_info = dict(order.shipping_info) if order.shipping_info else None
        db_order.updated_at = order.updated_at or db_order.updated_at

        await self.session.flush()
        await self.session.refresh(db_order)

        logger.info(
            "order_updated",
            order_id=db_order.id,
            status=db_order.status,
            payment_status=db_order.payment_status,
        )
        return self._to_entity(db_order)

    async def list_by_agent(self, agent_id: int, skip: int = 0, limit: int = 50) -> List[Order]:
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.agent_id == agent_id)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m, with_items=False) for m in result.scalars().all()]
