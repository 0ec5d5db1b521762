"""
订单仓储接口
"""
from abc import ABC, abstractmethod
from typing import Optional, List

from .entity import Order


class OrderRepository(ABC):
    """订单仓储抽象接口"""

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """创建订单及其明细（同一事务内，明细失败则订单一并回滚）"""

    @abstractmethod
    async def get_by_id(self, order_id: int, *, with_items: bool = True) -> Optional[Order]:
        """根据ID获取订单"""

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """更新订单头（状态、支付状态、物流信息等）"""

    @abstractmethod
    async def list_by_agent(self, agent_id: int, skip: int = 0, limit: int = 50) -> List[Order]:
        """获取代理归属的订单"""
