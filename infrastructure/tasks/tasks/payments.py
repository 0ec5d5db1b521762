"""
Celery tasks for payment reconciliation.

Each task runs its coroutine under ``asyncio.run`` and disposes the engine
pool afterwards so connections never outlive the loop that opened them.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from celery import shared_task

from application.services.commission_service import CommissionService
from application.services.notification_service import NotificationService
from application.services.payment_service import PaymentService
from core.logging_config import get_logger
from infrastructure.database import engine
from infrastructure.external.notifications import build_email_sender, build_whatsapp_sender
from infrastructure.external.payments import get_payment_gateway
from infrastructure.tasks.utils.base_task import BaseTask
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


logger = get_logger(__name__)


def build_payment_service() -> PaymentService:
    return PaymentService(
        uow_factory=SQLAlchemyUnitOfWork,
        gateway_factory=get_payment_gateway,
        commission_service=CommissionService(uow_factory=SQLAlchemyUnitOfWork),
        notification_service=NotificationService(
            email_sender=build_email_sender(),
            whatsapp_sender=build_whatsapp_sender(),
        ),
    )


async def _with_service(work):
    service = build_payment_service()
    try:
        return await work(service)
    finally:
        await engine.dispose()


@shared_task(name="payments.reconcile_stale", base=BaseTask, bind=True, max_retries=0)
def task_reconcile_stale(self, min_age_minutes: Optional[int] = None, limit: Optional[int] = None) -> Dict[str, Any]:
    """轮询超时未回调的 initiated/pending 交易"""
    summary = asyncio.run(
        _with_service(lambda s: s.reconcile_stale(min_age_minutes=min_age_minutes, limit=limit))
    )
    logger.info("reconcile_task_done", task_id=self.request.id, **summary)
    return summary


@shared_task(name="payments.check_status", base=BaseTask, bind=True, max_retries=3, default_retry_delay=60)
def task_check_status(self, provider: str, transaction_id: str) -> Dict[str, Any]:
    try:
        txn = asyncio.run(_with_service(lambda s: s.check_status(provider, transaction_id)))
    except Exception as exc:
        logger.warning(
            "payment_status_check_failed",
            provider=provider,
            transaction_id=transaction_id,
            error=str(exc),
        )
        raise self.retry(exc=exc)
    logger.info("payment_status_polled", provider=provider, transaction_id=transaction_id, status=txn.status)
    return {"transaction_id": transaction_id, "status": txn.status}
