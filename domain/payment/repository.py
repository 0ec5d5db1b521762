"""
支付流水仓储接口
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List

from .entity import PaymentTransaction


class PaymentTransactionRepository(ABC):
    """支付流水仓储抽象接口"""

    @abstractmethod
    async def create(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """创建支付流水"""

    @abstractmethod
    async def get_by_transaction_id(self, merchant_transaction_id: str) -> Optional[PaymentTransaction]:
        """根据商户交易号获取流水"""

    @abstractmethod
    async def update(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """更新流水状态/网关响应"""

    @abstractmethod
    async def list_stale(self, older_than: datetime, limit: int = 100) -> List[PaymentTransaction]:
        """获取早于给定时间仍处于 initiated/pending 的流水"""

    @abstractmethod
    async def list_by_order(self, order_id: int) -> List[PaymentTransaction]:
        """获取订单的全部流水"""
