"""
库存仓储实现
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.inventory.repository import InventoryRepository
from domain.common.exceptions import ResourceNotFoundException
from infrastructure.models.inventory import InventoryModel, StockMovementModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyInventoryRepository(InventoryRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def deduct_stock(
        self,
        product_id: str,
        quantity: int,
        *,
        reference_type: str,
        reference_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        # 单条 UPDATE，库存下限为 0
        new_quantity = case(
            (InventoryModel.quantity >= quantity, InventoryModel.quantity - quantity),
            else_=0,
        )
        result = await self.session.execute(
            update(InventoryModel)
            .where(InventoryModel.product_id == product_id)
            .values(quantity=new_quantity, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ResourceNotFoundException("Inventory", product_id)

        remaining = await self.get_quantity(product_id)
        self.session.add(StockMovementModel(
            product_id=product_id,
            change=-quantity,
            quantity_after=remaining or 0,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
        ))
        await self.session.flush()
        logger.info("stock_deducted", product_id=product_id, quantity=quantity, remaining=remaining)
        return remaining or 0

    async def get_quantity(self, product_id: str) -> Optional[int]:
        result = await self.session.execute(
            select(InventoryModel.quantity).where(InventoryModel.product_id == product_id)
        )
        return result.scalar_one_or_none()
