"""
销售代理仓储接口
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, List

from .entity import SalesAgent, CommissionRecord, RedemptionRequest


class SalesAgentRepository(ABC):
    """销售代理仓储抽象接口"""

    @abstractmethod
    async def create(self, agent: SalesAgent) -> SalesAgent:
        """创建代理申请"""

    @abstractmethod
    async def get_by_id(self, agent_id: int) -> Optional[SalesAgent]:
        """根据ID获取代理"""

    @abstractmethod
    async def get_by_user_id(self, user_id: str) -> Optional[SalesAgent]:
        """根据用户ID获取代理"""

    @abstractmethod
    async def get_by_referral_code(self, referral_code: str) -> Optional[SalesAgent]:
        """根据推荐码获取代理"""

    @abstractmethod
    async def list(self, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[SalesAgent]:
        """列出代理（可按状态过滤）"""

    @abstractmethod
    async def update(self, agent: SalesAgent) -> SalesAgent:
        """更新代理状态（不修改积分余额）"""

    @abstractmethod
    async def increment_points(self, agent_id: int, points: Decimal) -> None:
        """原子增加积分：UPDATE ... SET points_balance = points_balance + :points"""

    @abstractmethod
    async def try_deduct_points(self, agent_id: int, points: Decimal) -> bool:
        """带余额保护的原子扣减，余额不足时返回 False"""


class CommissionRepository(ABC):
    """佣金记录仓储（只追加）"""

    @abstractmethod
    async def exists_for_order(self, order_id: int) -> bool:
        """订单是否已发放佣金"""

    @abstractmethod
    async def create(self, record: CommissionRecord) -> CommissionRecord:
        """写入佣金记录；同一订单重复写入时抛出 ConflictException"""

    @abstractmethod
    async def list_by_agent(self, agent_id: int, skip: int = 0, limit: int = 50) -> List[CommissionRecord]:
        """获取代理的佣金记录"""


class RedemptionRepository(ABC):
    """积分兑换申请仓储"""

    @abstractmethod
    async def create(self, request: RedemptionRequest) -> RedemptionRequest:
        """创建兑换申请"""

    @abstractmethod
    async def get_by_id(self, redemption_id: int) -> Optional[RedemptionRequest]:
        """根据ID获取兑换申请"""

    @abstractmethod
    async def list_by_agent(self, agent_id: int) -> List[RedemptionRequest]:
        """按申请时间倒序列出代理的兑换申请"""

    @abstractmethod
    async def update(self, request: RedemptionRequest) -> RedemptionRequest:
        """更新兑换申请状态"""
