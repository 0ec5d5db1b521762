"""
Payments API routes.

Initiation, provider callbacks/webhooks, status checks and the back-office
manual update. Keep this thin: signing and provider payloads live in the
gateway adapters, reconciliation in the application service.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import get_optional_subject, get_payment_service, get_task_dispatcher, rate_limit, require
from application.dtos.orders import OrderDTO
from application.dtos.payments import (
    CallbackAck,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    ManualPaymentUpdateRequest,
    RazorpayVerifyRequest,
    TransactionDTO,
)
from application.services.payment_service import PaymentService
from core.logging_config import get_logger
from core.response import Response as ApiResponse, success_response
from domain.payment.entity import PaymentProvider
from domain.security.policy import Action, Subject
from infrastructure.tasks import TaskDispatcher


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


async def _callback(provider: str, request: Request, service: PaymentService):
    raw_body = await request.body()
    ack = await service.handle_callback(provider, request.headers, raw_body)
    # 200 acknowledges receipt per provider conventions
    return success_response(data=ack, message="Callback processed")


@router.post("/phonepe/callback", summary="PhonePe callback", response_model=ApiResponse[CallbackAck])
async def phonepe_callback(request: Request, service: PaymentService = Depends(get_payment_service)):
    return await _callback(PaymentProvider.PHONEPE.value, request, service)


@router.post("/paytm/callback", summary="Paytm callback", response_model=ApiResponse[CallbackAck])
async def paytm_callback(request: Request, service: PaymentService = Depends(get_payment_service)):
    return await _callback(PaymentProvider.PAYTM.value, request, service)


@router.post("/razorpay/webhook", summary="Razorpay webhook", response_model=ApiResponse[CallbackAck])
async def razorpay_webhook(request: Request, service: PaymentService = Depends(get_payment_service)):
    return await _callback(PaymentProvider.RAZORPAY.value, request, service)


@router.post("/razorpay/verify", summary="Verify Razorpay checkout", response_model=ApiResponse[CallbackAck])
async def razorpay_verify(
    payload: RazorpayVerifyRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """校验 checkout 返回的 HMAC(orderId|paymentId) 并对账"""
    ack = await service.verify_razorpay_checkout(payload)
    return success_response(data=ack, message="Payment verified")


@router.post(
    "/update",
    summary="Manual payment update",
    response_model=ApiResponse[OrderDTO],
    dependencies=[Depends(rate_limit("back_office", "back_office_limit", per_ip=True))],
)
async def manual_update(
    payload: ManualPaymentUpdateRequest,
    subject: Subject = Depends(require(Action.PAYMENT_UPDATE)),
    service: PaymentService = Depends(get_payment_service),
):
    order = await service.manual_update(payload, actor=subject.user_id)
    return success_response(data=order, message="Payment status updated")


@router.post(
    "/{provider}/initiate",
    summary="Initiate payment",
    response_model=ApiResponse[InitiatePaymentResponse],
    dependencies=[Depends(rate_limit("payment_initiate", "payment_initiate_limit", include_provider=True))],
)
async def initiate_payment(
    provider: str,
    payload: InitiatePaymentRequest,
    subject: Optional[Subject] = Depends(get_optional_subject),
    service: PaymentService = Depends(get_payment_service),
    dispatcher: Optional[TaskDispatcher] = Depends(get_task_dispatcher),
):
    """
    发起支付

    - PhonePe / Paytm 返回 redirect_url
    - Razorpay 返回 checkout 参数
    """
    result = await service.initiate(provider, payload, subject)
    if dispatcher is not None:
        try:
            dispatcher.schedule_status_check(result.provider, result.transaction_id)
        except Exception as exc:
            logger.warning("status_check_schedule_failed", transaction_id=result.transaction_id, error=str(exc))
    return success_response(data=result, message="Payment initiated")


@router.get("/{provider}/status", summary="Check payment status", response_model=ApiResponse[TransactionDTO])
async def payment_status(
    provider: str,
    transaction_id: str = Query(..., min_length=1),
    service: PaymentService = Depends(get_payment_service),
):
    txn = await service.check_status(provider, transaction_id)
    return success_response(data=txn)
