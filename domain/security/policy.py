"""
Central authorization policy.

``authorize(subject, action, resource)`` answers allow/deny for every
endpoint. Role grants come from ``ROLE_ACTIONS``; ownership rules cover
the cases where a role may only touch its own rows.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Role(str, Enum):
    CUSTOMER = "customer"
    SALES_AGENT = "sales_agent"
    MANAGER = "manager"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class Action(str, Enum):
    ORDER_CREATE = "order:create"
    ORDER_READ = "order:read"
    ORDER_READ_ANY = "order:read_any"
    ORDER_CANCEL = "order:cancel"
    ORDER_CANCEL_ANY = "order:cancel_any"
    AGENT_APPLY = "agent:apply"
    AGENT_ORDER_CREATE = "agent:order_create"
    AGENT_REDEEM = "agent:redeem"
    AGENT_MANAGE = "agent:manage"
    REDEMPTION_MANAGE = "redemption:manage"
    COMMISSION_AWARD = "commission:award"
    SHIPPING_UPDATE = "shipping:update"
    PAYMENT_UPDATE = "payment:update"
    PAYMENT_INITIATE = "payment:initiate"
    PAYMENT_STATUS = "payment:status"
    SETTINGS_READ = "settings:read"
    SETTINGS_WRITE = "settings:write"


@dataclass(frozen=True)
class Subject:
    user_id: str
    role: str = Role.CUSTOMER.value
    email: Optional[str] = None
    agent_id: Optional[int] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


STAFF_ROLES = frozenset({Role.MANAGER.value, Role.ADMIN.value, Role.SUPERADMIN.value})

_CUSTOMER_ACTIONS = frozenset({
    Action.ORDER_CREATE,
    Action.ORDER_READ,
    Action.ORDER_CANCEL,
    Action.AGENT_APPLY,
    Action.PAYMENT_INITIATE,
    Action.PAYMENT_STATUS,
})

_AGENT_ACTIONS = _CUSTOMER_ACTIONS | {Action.AGENT_ORDER_CREATE, Action.AGENT_REDEEM}

_MANAGER_ACTIONS = _CUSTOMER_ACTIONS | {
    Action.ORDER_READ_ANY,
    Action.ORDER_CANCEL_ANY,
    Action.COMMISSION_AWARD,
    Action.SHIPPING_UPDATE,
    Action.PAYMENT_UPDATE,
}

_ADMIN_ACTIONS = _MANAGER_ACTIONS | {
    Action.AGENT_MANAGE,
    Action.REDEMPTION_MANAGE,
    Action.SETTINGS_READ,
    Action.SETTINGS_WRITE,
}

ROLE_ACTIONS: dict[str, frozenset] = {
    Role.CUSTOMER.value: _CUSTOMER_ACTIONS,
    Role.SALES_AGENT.value: _AGENT_ACTIONS,
    Role.MANAGER.value: _MANAGER_ACTIONS,
    Role.ADMIN.value: _ADMIN_ACTIONS,
    Role.SUPERADMIN.value: _ADMIN_ACTIONS,
}

# Actions granted by the role table but limited to rows the subject owns.
_OWNERSHIP_SCOPED = {
    Action.ORDER_READ: Action.ORDER_READ_ANY,
    Action.ORDER_CANCEL: Action.ORDER_CANCEL_ANY,
}


def _owns(subject: Subject, resource: Any) -> bool:
    customer_id = getattr(resource, "customer_id", None)
    if customer_id is not None and str(customer_id) == str(subject.user_id):
        return True
    agent_id = getattr(resource, "agent_id", None)
    return agent_id is not None and subject.agent_id is not None and agent_id == subject.agent_id


def authorize(subject: Optional[Subject], action: Action | str, resource: Any = None) -> bool:
    """Return True when ``subject`` may perform ``action`` on ``resource``."""
    if subject is None:
        return False
    action = Action(action)
    granted = ROLE_ACTIONS.get(subject.role, _CUSTOMER_ACTIONS)
    if action not in granted:
        return False
    wider = _OWNERSHIP_SCOPED.get(action)
    if wider is None or resource is None:
        return True
    if wider in granted:
        return True
    return _owns(subject, resource)
