"""
Notification ports: outbound email and WhatsApp template senders.

Senders raise on failure; callers decide whether a failure matters.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: Optional[str] = None


@dataclass(frozen=True)
class WhatsAppTemplateMessage:
    recipient: str
    template_name: str
    parameters: list[str] = field(default_factory=list)
    language: str = "en"


@runtime_checkable
class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> None: ...


@runtime_checkable
class WhatsAppSender(Protocol):
    async def send_template(self, message: WhatsAppTemplateMessage) -> None: ...
