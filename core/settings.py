"""
Payment gateway transport settings using pydantic-settings v2 with nested env keys.

Gateway credentials (merchant ids, salts, keys) are stored in the settings
table and edited through the admin API; only transport concerns live here.
"""
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 3.0
    read: float = 10.0
    write: float = 10.0
    total: float = 15.0


class PaymentRetry(BaseModel):
    # Only connection establishment failures are retried
    max: int = 2
    base_backoff: float = 0.2


class WebhookSettings(BaseModel):
    # Razorpay webhooks are signed with a dedicated secret from the dashboard;
    # the stored gateway config may override it with config.webhookSecret.
    razorpay_secret: str | None = None


class PhonePeSettings(BaseModel):
    base_url: str = "https://api-preprod.phonepe.com/apis/pg-sandbox"


class PaytmSettings(BaseModel):
    staging_url: str = "https://securegw-stage.paytm.in"
    production_url: str = "https://securegw.paytm.in"


class RazorpaySettings(BaseModel):
    base_url: str = "https://api.razorpay.com"


class ReconcileSettings(BaseModel):
    # initiated/pending transactions older than this are polled by the beat task
    min_age_minutes: int = 15
    batch_size: int = 50
    interval_seconds: int = 600


class PaymentSettings(BaseSettings):
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    reconcile: ReconcileSettings = Field(default_factory=ReconcileSettings)

    phonepe: PhonePeSettings = Field(default_factory=PhonePeSettings)
    paytm: PaytmSettings = Field(default_factory=PaytmSettings)
    razorpay: RazorpaySettings = Field(default_factory=RazorpaySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
