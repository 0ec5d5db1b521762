"""
配置项仓储接口

同一个 key 可能存在多行（历史遗留重复写入），所有读取方按
updated_at desc, created_at desc, id desc 取第一条。
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Sequence

from .entity import SettingEntry


class SettingRepository(ABC):

    @abstractmethod
    async def get_latest(self, key: str) -> Optional[SettingEntry]:
        """获取 key 最新的一条配置"""

    @abstractmethod
    async def list_by_key(self, key: str) -> List[SettingEntry]:
        """按最新优先列出 key 的全部行"""

    @abstractmethod
    async def list_latest_by_prefix(self, prefix: str) -> List[SettingEntry]:
        """列出前缀匹配的每个 key 的最新一条"""

    @abstractmethod
    async def save(self, entry: SettingEntry) -> SettingEntry:
        """有 id 时更新该行，否则插入新行"""

    @abstractmethod
    async def delete_ids(self, ids: Sequence[int]) -> int:
        """删除指定行，返回删除数量"""
