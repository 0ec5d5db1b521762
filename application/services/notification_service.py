"""
通知应用服务 - 订单状态变更后的邮件/WhatsApp 扇出

每一次发送都单独兜底：失败只记录日志，不向调用方抛出。
调用方必须在状态更新事务提交之后再调用 notify。
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from application.ports.notifications import EmailSender, WhatsAppSender
from application.services.notification_templates import (
    ADMIN_EVENTS,
    SHIPPING_EVENTS,
    NotificationEvent,
    customer_email,
    customer_whatsapp,
    staff_email,
    staff_whatsapp,
)
from core.config import NotificationSettings, settings
from core.logging_config import get_logger
from domain.order.entity import Order
from domain.order.events import OrderCancelled, OrderEvent, OrderPlaced, ShipmentUpdated
from domain.payment.events import PaymentEvent, PaymentFailed, PaymentRefunded, PaymentSucceeded


logger = get_logger(__name__)

DomainEvent = Union[OrderEvent, PaymentEvent]

_PAYMENT_EVENTS = {
    PaymentSucceeded: NotificationEvent.PAYMENT_SUCCESS,
    PaymentFailed: NotificationEvent.PAYMENT_FAILED,
    PaymentRefunded: NotificationEvent.PAYMENT_REFUNDED,
}


@dataclass
class NotificationReport:
    sent: int = 0
    failed: int = 0

    @property
    def attempted(self) -> int:
        return self.sent + self.failed


class NotificationService:
    def __init__(
        self,
        email_sender: Optional[EmailSender] = None,
        whatsapp_sender: Optional[WhatsAppSender] = None,
        config: Optional[NotificationSettings] = None,
    ):
        self._email = email_sender
        self._whatsapp = whatsapp_sender
        self._config = config or settings.notifications

    async def aclose(self) -> None:
        close = getattr(self._whatsapp, "close", None)
        if close is not None:
            await close()

    def _admin_contacts(self, event: NotificationEvent) -> tuple[Optional[str], Optional[str]]:
        if event not in ADMIN_EVENTS:
            return None, None
        cfg = self._config
        email = cfg.admin_email if cfg.admin_email and cfg.admin_email != cfg.manager_email else None
        phone = cfg.admin_phone if cfg.admin_phone and cfg.admin_phone != cfg.manager_phone else None
        return email, phone

    def _plan(
        self, event: NotificationEvent, order: Order, extra: dict[str, Any]
    ) -> list[tuple[str, str, Callable[[], Awaitable[None]]]]:
        cfg = self._config
        lang = cfg.whatsapp_language
        jobs: list[tuple[str, str, Callable[[], Awaitable[None]]]] = []

        def email_job(role: str, message):
            jobs.append(("email", role, lambda: self._email.send(message)))

        def whatsapp_job(role: str, message):
            jobs.append(("whatsapp", role, lambda: self._whatsapp.send_template(message)))

        if self._email is not None:
            if order.customer_email:
                email_job("customer", customer_email(event, order, order.customer_email, extra))
            if cfg.manager_email:
                email_job("manager", staff_email(event, order, cfg.manager_email, extra))
            admin_email, _ = self._admin_contacts(event)
            if admin_email:
                email_job("admin", staff_email(event, order, admin_email, extra))

        if self._whatsapp is not None:
            if order.customer_phone:
                whatsapp_job("customer", customer_whatsapp(event, order, order.customer_phone, lang, extra))
            if cfg.manager_phone:
                whatsapp_job("manager", staff_whatsapp(event, order, cfg.manager_phone, lang))
            _, admin_phone = self._admin_contacts(event)
            if admin_phone:
                whatsapp_job("admin", staff_whatsapp(event, order, admin_phone, lang))
        return jobs

    async def notify(
        self,
        event: NotificationEvent,
        order: Order,
        extra: Optional[dict[str, Any]] = None,
    ) -> NotificationReport:
        report = NotificationReport()
        if not self._config.enabled:
            return report

        jobs = self._plan(NotificationEvent(event), order, extra or {})

        async def _run(channel: str, role: str, send: Callable[[], Awaitable[None]]) -> bool:
            try:
                await send()
                return True
            except Exception as exc:
                logger.warning(
                    "notification_send_failed",
                    notification_event=str(NotificationEvent(event).value),
                    channel=channel,
                    recipient_role=role,
                    order_id=order.id,
                    error=str(exc),
                )
                return False

        results = await asyncio.gather(*(_run(*job) for job in jobs))
        report.sent = sum(1 for ok in results if ok)
        report.failed = len(results) - report.sent
        logger.info(
            "notifications_dispatched",
            notification_event=NotificationEvent(event).value,
            order_id=order.id,
            sent=report.sent,
            failed=report.failed,
        )
        return report

    async def publish(self, event: DomainEvent, order: Optional[Order]) -> Optional[NotificationReport]:
        """Fan out a committed domain event; never raises."""
        if order is None:
            return None
        try:
            mapped = to_notification(event)
            if mapped is None:
                return None
            notification_event, extra = mapped
            return await self.notify(notification_event, order, extra)
        except Exception as exc:
            logger.warning(
                "notification_fanout_failed",
                domain_event=type(event).__name__,
                order_id=order.id,
                error=str(exc),
            )
            return None


def to_notification(event: DomainEvent) -> Optional[tuple[NotificationEvent, dict[str, Any]]]:
    """Map a domain event to the notification it triggers (None when it triggers nothing)."""
    if isinstance(event, OrderPlaced):
        return NotificationEvent.ORDER_PLACED, {}
    if isinstance(event, ShipmentUpdated):
        notification_event = SHIPPING_EVENTS.get(event.shipping_status)
        if notification_event is None:
            return None
        return notification_event, {
            "tracking_number": event.tracking_number,
            "carrier": event.carrier,
            "estimated_delivery": event.estimated_delivery,
        }
    if isinstance(event, OrderCancelled):
        return NotificationEvent.CANCELLED, {"reason": event.reason}
    if isinstance(event, (PaymentSucceeded, PaymentFailed, PaymentRefunded)):
        extra: dict[str, Any] = {"transaction_id": event.transaction_id}
        if isinstance(event, PaymentFailed):
            extra["reason"] = event.reason
        if event.is_manual:
            extra["recorded_by"] = event.actor
        return _PAYMENT_EVENTS[type(event)], extra
    return None
