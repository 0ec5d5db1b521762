"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    RATE_LIMITED = 60004

    # Gateway configuration (61xxx)
    GATEWAY_DISABLED = 61000
    GATEWAY_NOT_CONFIGURED = 61001
    UNSUPPORTED_PROVIDER = 61002

    # Transactions (62xxx)
    TRANSACTION_NOT_FOUND = 62000


# Provider state -> internal transaction status (success/failed/pending).
# Anything not listed maps to "pending".
PROVIDER_STATUS_TO_INTERNAL = {
    "phonepe": {
        "COMPLETED": "success",
        "FAILED": "failed",
    },
    "paytm": {
        "TXN_SUCCESS": "success",
        "TXN_FAILURE": "failed",
    },
    "razorpay": {
        # webhook events
        "payment.captured": "success",
        "order.paid": "success",
        "payment.failed": "failed",
        # entity statuses
        "captured": "success",
        "paid": "success",
        "failed": "failed",
    },
}
