"""
Payment gateway settings: known methods, required credentials and secret masking.

A stored gateway value looks like::

    {"id": "phonepe", "name": "PhonePe", "type": "online", "enabled": true,
     "config": {"merchantId": "...", "saltKey": "...", "saltIndex": "1"}}
"""
from __future__ import annotations

import copy
from typing import Any, Optional

DEFAULT_PAYMENT_METHODS: dict[str, dict[str, Any]] = {
    "razorpay": {"id": "razorpay", "name": "Razorpay", "type": "online", "enabled": False, "config": {}},
    "stripe": {"id": "stripe", "name": "Stripe", "type": "online", "enabled": False, "config": {}},
    "phonepe": {"id": "phonepe", "name": "PhonePe", "type": "online", "enabled": False, "config": {}},
    "paytm": {"id": "paytm", "name": "Paytm", "type": "online", "enabled": False, "config": {}},
    "cashfree": {"id": "cashfree", "name": "Cashfree", "type": "online", "enabled": False, "config": {}},
    "cod": {"id": "cod", "name": "Cash on Delivery", "type": "offline", "enabled": True, "config": {}},
    "upi": {"id": "upi", "name": "UPI/QR Code", "type": "offline", "enabled": True, "config": {}},
}

OFFLINE_METHODS = frozenset({"cod", "upi"})

REQUIRED_CONFIG_FIELDS: dict[str, tuple[str, ...]] = {
    "phonepe": ("merchantId", "saltKey"),
    "paytm": ("merchantId", "merchantKey", "websiteName"),
    "razorpay": ("keyId", "keySecret"),
}

SECRET_FIELDS = frozenset({
    "saltKey",
    "merchantKey",
    "keySecret",
    "webhookSecret",
    "secretKey",
    "apiKey",
})


def default_method(method_id: str) -> dict[str, Any]:
    if method_id in DEFAULT_PAYMENT_METHODS:
        return copy.deepcopy(DEFAULT_PAYMENT_METHODS[method_id])
    return {
        "id": method_id,
        "name": method_id[:1].upper() + method_id[1:],
        "type": "offline" if method_id in OFFLINE_METHODS else "online",
        "enabled": False,
        "config": {},
    }


def merge_method(method_id: str, stored: Optional[dict[str, Any]], updates: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Shallow merge: defaults <- stored <- updates."""
    merged = default_method(method_id)
    if isinstance(stored, dict):
        merged.update(stored)
    if updates:
        merged.update(updates)
    return merged


def missing_config_fields(method_id: str, config: Optional[dict[str, Any]]) -> list[str]:
    config = config or {}
    return [name for name in REQUIRED_CONFIG_FIELDS.get(method_id, ()) if not config.get(name)]


def mask_secret(value: Any) -> Any:
    if not isinstance(value, str) or not value:
        return value
    if len(value) <= 4:
        return "****"
    return f"{'*' * (len(value) - 4)}{value[-4:]}"


def mask_method(method: dict[str, Any]) -> dict[str, Any]:
    masked = copy.deepcopy(method)
    config = masked.get("config")
    if isinstance(config, dict):
        for name in list(config):
            if name in SECRET_FIELDS:
                config[name] = mask_secret(config[name])
    return masked
