"""
Notification channel factories built from `settings.notifications`.

A channel that is disabled or lacks credentials yields None and is skipped.
"""
from __future__ import annotations

from typing import Optional

from application.ports.notifications import EmailSender, WhatsAppSender
from core.config import NotificationSettings, settings
from .email_client import SmtpEmailSender
from .whatsapp_client import SuperfoneWhatsAppClient, normalize_phone


def build_email_sender(cfg: Optional[NotificationSettings] = None) -> Optional[EmailSender]:
    cfg = cfg or settings.notifications
    if not cfg.enabled or not cfg.smtp_host:
        return None
    return SmtpEmailSender(
        cfg.smtp_host,
        cfg.smtp_port,
        cfg.smtp_username,
        cfg.smtp_password,
        from_email=cfg.email_from,
        from_name=cfg.email_from_name,
        use_tls=cfg.smtp_use_tls,
        timeout=cfg.smtp_timeout,
    )


def build_whatsapp_sender(cfg: Optional[NotificationSettings] = None) -> Optional[WhatsAppSender]:
    cfg = cfg or settings.notifications
    if not cfg.enabled or not cfg.whatsapp_enabled or not cfg.whatsapp_api_key:
        return None
    return SuperfoneWhatsAppClient(
        cfg.whatsapp_base_url,
        cfg.whatsapp_api_key,
        cfg.whatsapp_session_cookie,
        timeout=cfg.whatsapp_timeout,
    )


__all__ = [
    "SmtpEmailSender",
    "SuperfoneWhatsAppClient",
    "normalize_phone",
    "build_email_sender",
    "build_whatsapp_sender",
]
