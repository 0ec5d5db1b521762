"""Inventory repository interface."""
from abc import ABC, abstractmethod
from typing import Optional


class InventoryRepository(ABC):

    @abstractmethod
    async def deduct_stock(
        self,
        product_id: str,
        quantity: int,
        *,
        reference_type: str,
        reference_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Atomically lower stock (floored at zero), log a movement, return the new quantity."""

    @abstractmethod
    async def get_quantity(self, product_id: str) -> Optional[int]:
        """Current quantity or None when the product has no inventory row."""
