"""Celery beat schedule configuration."""
from __future__ import annotations

from core.settings import payment_settings


CELERY_BEAT_SCHEDULE = {
    "payments-reconcile-stale": {
        "task": "payments.reconcile_stale",
        "schedule": payment_settings.reconcile.interval_seconds,
        "options": {"queue": "low"},
    },
}
