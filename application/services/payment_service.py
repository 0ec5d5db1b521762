"""
Application service orchestrating payment use-cases.

This class depends only on the application PaymentGateway port and DTOs.
Gateway implementations are provided by infrastructure and must be injected
from the composition root (API/tasks) as a factory, keeping dependencies one-way.

Reconciliation order for callbacks and status checks:
1. verify (adapter raises before anything is written)
2. update the transaction row (unit of work #1)
3. on success, mark the order paid (unit of work #2)
4. best-effort commission + notifications
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional

from application.dtos.orders import OrderDTO
from application.dtos.payments import (
    CallbackAck,
    GatewayResult,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    ManualPaymentUpdateRequest,
    PaymentInitiation,
    RazorpayVerifyRequest,
    TransactionDTO,
)
from application.ports.payment_gateway import GatewayFactory, PaymentGateway
from application.services.commission_service import CommissionService
from application.services.notification_service import NotificationService
from core.config import settings
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order
from domain.order.exceptions import OrderNotFoundException
from domain.payment.entity import PaymentProvider, PaymentTransaction, TransactionStatus
from domain.payment.events import PaymentEvent, PaymentFailed, PaymentRefunded, PaymentSucceeded
from domain.payment.service import (
    GatewayDisabledException,
    GatewayNotConfiguredException,
    InvalidPaymentRequestException,
    TransactionNotFoundException,
    UnsupportedProviderException,
    ensure_supported_provider,
    generate_transaction_id,
)
from domain.security.policy import Subject
from domain.settings.gateway import merge_method, missing_config_fields
from domain.settings.entity import payment_setting_key


logger = get_logger(__name__)


def _to_transaction_dto(txn: PaymentTransaction) -> TransactionDTO:
    return TransactionDTO(
        transaction_id=txn.merchant_transaction_id,
        order_id=txn.order_id,
        provider=txn.provider,
        amount=txn.amount,
        status=txn.status,
        gateway_transaction_id=txn.gateway_transaction_id,
        response_code=txn.response_code,
    )


class PaymentService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway_factory: GatewayFactory,
        *,
        commission_service: Optional[CommissionService] = None,
        notification_service: Optional[NotificationService] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway_factory = gateway_factory
        self._commissions = commission_service or CommissionService(uow_factory)
        self._notifications = notification_service or NotificationService()

    # ------------------------------------------------------------------ config

    async def load_gateway_config(self, provider: str, *, require_enabled: bool = True) -> dict[str, Any]:
        """读取 payment_{provider} 最新一行并校验启用状态与必填凭据。"""
        provider = ensure_supported_provider(provider)
        async with self._uow_factory(readonly=True) as uow:
            entry = await uow.setting_repository.get_latest(payment_setting_key(provider))
        if entry is None or not isinstance(entry.value, dict):
            raise GatewayNotConfiguredException(provider)

        method = merge_method(provider, entry.value)
        if require_enabled and not method.get("enabled"):
            raise GatewayDisabledException(provider)
        config = method.get("config") if isinstance(method.get("config"), dict) else {}
        missing = missing_config_fields(provider, config)
        if missing:
            raise GatewayNotConfiguredException(provider, missing)
        return dict(config)

    async def _open_gateway(self, provider: str, *, require_enabled: bool = True) -> PaymentGateway:
        config = await self.load_gateway_config(provider, require_enabled=require_enabled)
        return self._gateway_factory(provider, config)

    @staticmethod
    def _redirect_url(provider: str, order_id: int, merchant_transaction_id: str) -> str:
        return f"{settings.SITE_URL.rstrip('/')}/payment/{provider}/callback?orderId={order_id}&txnId={merchant_transaction_id}"

    @staticmethod
    def _callback_url(provider: str) -> str:
        base = (settings.API_BASE_URL or settings.SITE_URL).rstrip("/")
        return f"{base}/api/v1/payments/{provider}/callback"

    # ------------------------------------------------------------------ initiate

    async def initiate(
        self,
        provider: str,
        req: InitiatePaymentRequest,
        subject: Optional[Subject] = None,
    ) -> InitiatePaymentResponse:
        if req.order_id is None:
            raise InvalidPaymentRequestException("order_id is required", field="order_id")
        if req.amount is None:
            raise InvalidPaymentRequestException("amount is required", field="amount")
        provider = ensure_supported_provider(provider)

        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(req.order_id, with_items=False)
        if order is None:
            raise OrderNotFoundException(req.order_id)

        gateway = await self._open_gateway(provider)
        merchant_transaction_id = generate_transaction_id(req.order_id)
        initiation = PaymentInitiation(
            order_id=req.order_id,
            merchant_transaction_id=merchant_transaction_id,
            amount=req.amount,
            currency=order.currency,
            user_id=subject.user_id if subject else None,
            customer_phone=req.customer_phone or order.customer_phone,
            customer_email=req.customer_email or order.customer_email,
            customer_name=req.customer_name or order.customer_name,
            redirect_url=self._redirect_url(provider, req.order_id, merchant_transaction_id),
            callback_url=self._callback_url(provider),
        )
        logger.info(
            "payment_initiate_request",
            provider=provider,
            order_id=req.order_id,
            transaction_id=merchant_transaction_id,
        )
        try:
            result = await gateway.initiate(initiation)
        finally:
            await gateway.aclose()

        async with self._uow_factory() as uow:
            await uow.transaction_repository.create(
                PaymentTransaction(
                    id=None,
                    order_id=req.order_id,
                    merchant_transaction_id=result.merchant_transaction_id,
                    provider=provider,
                    amount=req.amount,
                    status=TransactionStatus.INITIATED.value,
                    gateway_response=result.raw,
                )
            )

        logger.info(
            "payment_initiated",
            provider=provider,
            order_id=req.order_id,
            transaction_id=result.merchant_transaction_id,
        )
        return InitiatePaymentResponse(
            transaction_id=result.merchant_transaction_id,
            provider=provider,
            redirect_url=result.redirect_url,
            checkout=result.checkout,
        )

    # ------------------------------------------------------------------ callbacks

    async def handle_callback(self, provider: str, headers: Mapping[str, Any], body: bytes) -> CallbackAck:
        """校验签名并对账；签名失败时抛出 PaymentSignatureError，不写任何数据。"""
        # 网关被停用后仍需接收在途交易的回调
        gateway = await self._open_gateway(provider, require_enabled=False)
        try:
            result = gateway.parse_webhook(headers, body)
        finally:
            await gateway.aclose()
        logger.info(
            "payment_callback_verified",
            provider=result.provider,
            transaction_id=result.merchant_transaction_id,
            provider_state=result.provider_state,
            status=result.status,
        )
        txn = await self.apply_result(result)
        return CallbackAck(transaction_id=txn.merchant_transaction_id, status=txn.status, order_id=txn.order_id)

    async def verify_razorpay_checkout(self, req: RazorpayVerifyRequest) -> CallbackAck:
        gateway = await self._open_gateway(PaymentProvider.RAZORPAY.value, require_enabled=False)
        try:
            verify = getattr(gateway, "verify_checkout", None)
            if verify is None:
                raise UnsupportedProviderException(PaymentProvider.RAZORPAY.value)
            result = verify(req.razorpay_order_id, req.razorpay_payment_id, req.razorpay_signature)
        finally:
            await gateway.aclose()
        txn = await self.apply_result(result)
        return CallbackAck(transaction_id=txn.merchant_transaction_id, status=txn.status, order_id=txn.order_id)

    async def check_status(self, provider: str, transaction_id: str) -> TransactionDTO:
        if not transaction_id:
            raise InvalidPaymentRequestException("transaction_id is required", field="transaction_id")
        provider = ensure_supported_provider(provider)
        async with self._uow_factory(readonly=True) as uow:
            existing = await uow.transaction_repository.get_by_transaction_id(transaction_id)
        if existing is None:
            raise TransactionNotFoundException(transaction_id)

        gateway = await self._open_gateway(provider, require_enabled=False)
        try:
            result = await gateway.check_status(transaction_id)
        finally:
            await gateway.aclose()
        txn = await self.apply_result(result)
        return _to_transaction_dto(txn)

    async def apply_result(self, result: GatewayResult) -> PaymentTransaction:
        """Persist a verified gateway verdict and run the follow-up steps."""
        async with self._uow_factory() as uow:
            txn = await uow.transaction_repository.get_by_transaction_id(result.merchant_transaction_id)
            if txn is None:
                raise TransactionNotFoundException(result.merchant_transaction_id)
            previous = txn.status
            txn.apply_gateway_result(
                result.status,
                gateway_transaction_id=result.gateway_transaction_id,
                response_code=result.response_code,
                payload=result.payload,
            )
            txn = await uow.transaction_repository.update(txn)

        if previous == txn.status and not txn.is_open:
            # 重复回调：流水已刷新，订单与通知不再重复处理
            logger.info("payment_result_duplicate", transaction_id=txn.merchant_transaction_id, status=txn.status)
            return txn

        order: Optional[Order] = None
        if txn.is_success:
            async with self._uow_factory() as uow:
                order = await uow.order_repository.get_by_id(txn.order_id)
                if order is None:
                    logger.warning("payment_order_missing", order_id=txn.order_id, transaction_id=txn.merchant_transaction_id)
                else:
                    previous_status = order.mark_paid(txn.provider)
                    order = await uow.order_repository.update(order)
                    logger.info(
                        "order_marked_paid",
                        order_id=order.id,
                        previous_status=previous_status,
                        transaction_id=txn.merchant_transaction_id,
                    )
            if order is not None and order.agent_id is not None:
                await self._commissions.award_safely(order.id)
            await self._notifications.publish(
                PaymentSucceeded(
                    order_id=txn.order_id,
                    provider=txn.provider,
                    transaction_id=txn.merchant_transaction_id,
                ),
                order,
            )
        elif txn.status == TransactionStatus.FAILED.value:
            order = await self._load_order_safely(txn.order_id)
            await self._notifications.publish(
                PaymentFailed(
                    order_id=txn.order_id,
                    provider=txn.provider,
                    transaction_id=txn.merchant_transaction_id,
                    reason=txn.response_code,
                ),
                order,
            )
        return txn

    async def _load_order_safely(self, order_id: int) -> Optional[Order]:
        try:
            async with self._uow_factory(readonly=True) as uow:
                return await uow.order_repository.get_by_id(order_id)
        except Exception as exc:
            logger.warning("order_load_failed", order_id=order_id, error=str(exc))
            return None

    # ------------------------------------------------------------------ reconcile

    async def reconcile_stale(
        self,
        *,
        min_age_minutes: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> dict[str, int]:
        """Poll the provider for transactions still initiated/pending after min_age_minutes."""
        cfg = payment_settings.reconcile
        age = min_age_minutes if min_age_minutes is not None else cfg.min_age_minutes
        older_than = datetime.now(timezone.utc) - timedelta(minutes=age)
        async with self._uow_factory(readonly=True) as uow:
            stale = await uow.transaction_repository.list_stale(older_than, limit=limit or cfg.batch_size)

        summary = {"checked": 0, "changed": 0, "failed": 0}
        for txn in stale:
            summary["checked"] += 1
            try:
                updated = await self.check_status(txn.provider, txn.merchant_transaction_id)
            except Exception as exc:
                summary["failed"] += 1
                logger.warning(
                    "payment_reconcile_failed",
                    transaction_id=txn.merchant_transaction_id,
                    provider=txn.provider,
                    error=str(exc),
                )
                continue
            if updated.status != txn.status:
                summary["changed"] += 1
        logger.info("payment_reconcile_finished", **summary)
        return summary

    # ------------------------------------------------------------------ manual

    async def manual_update(self, req: ManualPaymentUpdateRequest, actor: Optional[str] = None) -> OrderDTO:
        """后台手工更新支付状态（线下收款、退款登记等）"""
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_by_id(req.order_id)
            if order is None:
                raise OrderNotFoundException(req.order_id)

            if req.status == "success":
                order.mark_paid(req.gateway)
            elif req.status == "failed":
                order.mark_payment_failed()
            elif req.status == "refunded":
                order.mark_refunded()

            if req.transaction_id and req.status != "refunded":
                txn = await uow.transaction_repository.get_by_transaction_id(req.transaction_id)
                if txn is not None:
                    txn.apply_gateway_result(
                        req.status,
                        payload={
                            **(txn.gateway_response or {}),
                            "manual_update": {"status": req.status, "by": actor, "reason": req.failure_reason},
                        },
                    )
                    await uow.transaction_repository.update(txn)
            if req.status != "pending":
                order = await uow.order_repository.update(order)

        logger.info(
            "payment_manually_updated",
            order_id=req.order_id,
            status=req.status,
            gateway=req.gateway,
            transaction_id=req.transaction_id,
            actor=actor,
        )

        provider = req.gateway or order.payment_method or "manual"
        event: Optional[PaymentEvent] = None
        if req.status == "success":
            if order.agent_id is not None:
                await self._commissions.award_safely(order.id)
            event = PaymentSucceeded(
                order_id=order.id, provider=provider, transaction_id=req.transaction_id, actor=actor
            )
        elif req.status == "failed":
            event = PaymentFailed(
                order_id=order.id,
                provider=provider,
                transaction_id=req.transaction_id,
                actor=actor,
                reason=req.failure_reason,
            )
        elif req.status == "refunded":
            event = PaymentRefunded(
                order_id=order.id,
                provider=provider,
                transaction_id=req.transaction_id,
                actor=actor,
                amount=str(req.amount if req.amount is not None else order.total),
            )
        if event is not None:
            await self._notifications.publish(event, order)
        return OrderDTO.model_validate(order)
