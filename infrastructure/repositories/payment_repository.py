"""
支付流水仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.exceptions import ConflictException
from domain.payment.entity import PaymentTransaction, TransactionStatus
from domain.payment.repository import PaymentTransactionRepository
from domain.payment.service import TransactionNotFoundException
from infrastructure.models.payment import PaymentTransactionModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyPaymentTransactionRepository(PaymentTransactionRepository):
    """支付流水仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentTransactionModel) -> PaymentTransaction:
        """将数据库模型转换为领域实体"""
        return PaymentTransaction(
            id=model.id,
            order_id=model.order_id,
            merchant_transaction_id=model.transaction_id,
            provider=model.provider,
            gateway_transaction_id=model.gateway_transaction_id,
            amount=Decimal(str(model.amount)),
            status=model.status,
            response_code=model.response_code,
            gateway_response=model.gateway_response or {},
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: PaymentTransaction) -> PaymentTransactionModel:
        """将领域实体转换为数据库模型"""
        return PaymentTransactionModel(
            id=entity.id,
            order_id=entity.order_id,
            transaction_id=entity.merchant_transaction_id,
            provider=entity.provider,
            gateway_transaction_id=entity.gateway_transaction_id,
            amount=entity.amount,
            status=entity.status,
            response_code=entity.response_code,
            gateway_response=entity.gateway_response,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def create(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """创建支付流水"""
        try:
            db_txn = self._to_model(transaction)
            self.session.add(db_txn)
            await self.session.flush()
            await self.session.refresh(db_txn)
        except IntegrityError as e:
            logger.warning(
                "payment_transaction_conflict",
                transaction_id=transaction.merchant_transaction_id,
                error=str(e.orig),
            )
            raise ConflictException(
                "Transaction already exists",
                details={"transaction_id": transaction.merchant_transaction_id},
            ) from e
        logger.info(
            "payment_transaction_created",
            transaction_id=db_txn.transaction_id,
            order_id=db_txn.order_id,
            provider=db_txn.provider,
        )
        return self._to_entity(db_txn)

    async def get_by_transaction_id(self, merchant_transaction_id: str) -> Optional[PaymentTransaction]:
        result = await self.session.execute(
            select(PaymentTransactionModel).where(
                PaymentTransactionModel.transaction_id == merchant_transaction_id
            )
        )
        db_txn = result.scalar_one_or_none()
        return self._to_entity(db_txn) if db_txn else None

    async def update(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """更新支付流水"""
        result = await self.session.execute(
            select(PaymentTransactionModel).where(
                PaymentTransactionModel.transaction_id == transaction.merchant_transaction_id
            )
        )
        db_txn = result.scalar_one_or_none()
        if not db_txn:
            raise TransactionNotFoundException(transaction.merchant_transaction_id)

        db_txn.status = transaction.status
        db_txn.gateway_transaction_id = transaction.gateway_transaction_id
        db_txn.response_code = transaction.response_code
        db_txn.gateway_response = transaction.gateway_response
        db_txn.updated_at = transaction.updated_at or db_txn.updated_at

        await self.session.flush()
        await self.session.refresh(db_txn)

        logger.info(
            "payment_transaction_updated",
            transaction_id=db_txn.transaction_id,
            order_id=db_txn.order_id,
            status=db_txn.status,
        )
        return self._to_entity(db_txn)

    async def list_stale(self, older_than: datetime, limit: int = 100) -> List[PaymentTransaction]:
        result = await self.session.execute(
            select(PaymentTransactionModel)
            .where(
                PaymentTransactionModel.status.in_(
                    [TransactionStatus.INITIATED.value, TransactionStatus.PENDING.value]
                ),
                PaymentTransactionModel.created_at < older_than,
            )
            .order_by(PaymentTransactionModel.created_at.asc())
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_by_order(self, order_id: int) -> List[PaymentTransaction]:
        result = await self.session.execute(
            select(PaymentTransactionModel)
            .where(PaymentTransactionModel.order_id == order_id)
            .order_by(PaymentTransactionModel.created_at.desc(), PaymentTransactionModel.id.desc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]
