"""Infrastructure models package exports."""
from .base import Base, metadata
from .agent import SalesAgentModel, CommissionRecordModel, RedemptionRequestModel
from .order import OrderModel, OrderItemModel
from .payment import PaymentTransactionModel
from .setting import SettingModel
from .inventory import InventoryModel, StockMovementModel

__all__ = [
    "Base",
    "metadata",
    "SalesAgentModel",
    "CommissionRecordModel",
    "RedemptionRequestModel",
    "OrderModel",
    "OrderItemModel",
    "PaymentTransactionModel",
    "SettingModel",
    "InventoryModel",
    "StockMovementModel",
]
