"""
Superfone (Dragonfly) WhatsApp template message client.
"""
from __future__ import annotations

import re
from typing import Any, Optional

import httpx

from application.ports.notifications import WhatsAppTemplateMessage
from infrastructure.external.api_clients.base import APIError, BaseAPIClient


MESSAGES_ENDPOINT = "/superfone/api/dragonfly/whatsapp/messages"

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: Optional[str]) -> str:
    """数字化并补齐 91 国家码；无法识别时返回空串"""
    digits = _NON_DIGITS.sub("", phone or "")
    if not digits:
        return ""
    if digits.startswith("91"):
        return digits
    return f"91{digits}"


class SuperfoneWhatsAppClient(BaseAPIClient):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        session_cookie: Optional[str] = None,
        *,
        timeout: float = 10.0,
        max_retries: int = 2,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        headers = {"x-api-key": api_key}
        if session_cookie:
            cookie = session_cookie if "=" in session_cookie else f"connect.sid={session_cookie}"
            headers["Cookie"] = cookie
        super().__init__(
            base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=0.5,
            headers=headers,
            http_client=http_client,
        )

    @staticmethod
    def build_payload(message: WhatsAppTemplateMessage, recipient: str) -> dict[str, Any]:
        components = []
        if message.parameters:
            components.append({
                "type": "text",
                "parameters": [{"type": "text", "text": str(value)} for value in message.parameters],
            })
        return {
            "templateName": message.template_name,
            "language": message.language,
            "recipient": recipient,
            "components": components,
            "type": "template",
        }

    async def send_template(self, message: WhatsAppTemplateMessage) -> None:
        recipient = normalize_phone(message.recipient)
        if not recipient:
            raise APIError(f"Invalid recipient number: {message.recipient!r}")
        response = await self.post(MESSAGES_ENDPOINT, json_data=self.build_payload(message, recipient))
        data = response.data if isinstance(response.data, dict) else {}
        if data.get("success") is False:
            raise APIError(str(data.get("error") or data.get("message") or "WhatsApp send rejected"), response.status_code, response)
