"""Small dispatching helpers to decouple Celery from callers."""
from __future__ import annotations

from ..config.celery import celery_app


class TaskDispatcher:
    """Internal facade used by the API layer to schedule tasks."""

    def schedule_status_check(self, provider: str, transaction_id: str, *, countdown: int = 900) -> None:
        """Poll the gateway later in case the callback never arrives."""
        celery_app.send_task(
            "payments.check_status",
            kwargs={"provider": provider, "transaction_id": transaction_id},
            countdown=countdown,
            queue="default",
        )

