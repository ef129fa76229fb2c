import re
from typing import Optional

import httpx

from chatrelay.config import settings
from chatrelay.logging_config import get_logger
from chatrelay.services.result import Result

logger = get_logger("whatsapp_service")


def process_text_for_whatsapp(text: str) -> str:
    """Adapt model markdown to WhatsApp formatting."""
    # Remove citation markers like 【...】
    text = re.sub(r"\【.*?\】", "", text or "").strip()
    # **bold** -> *bold*
    return re.sub(r"\*\*(.*?)\*\*", r"*\1*", text)


class WhatsAppClient:
    """Outbound text messages through the WhatsApp Cloud API."""

    BASE_URL = "https://graph.facebook.com/{version}/{phone_number_id}/messages"

    def __init__(
        self,
        access_token: Optional[str],
        phone_number_id: Optional[str],
        api_version: str = "v18.0",
        timeout_seconds: float = 30.0,
    ):
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.timeout_seconds = timeout_seconds
        self.url = self.BASE_URL.format(version=api_version, phone_number_id=phone_number_id)

    @staticmethod
    def build_text_payload(to: str, body: str) -> dict:
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "text",
            "text": {"preview_url": False, "body": body},
        }

    def send_text(self, to: str, body: str) -> Result[dict]:
        """Send a text message. Failures are logged and returned, never retried."""
        if not self.access_token or not self.phone_number_id:
            logger.warning("WhatsApp not configured, message not sent", extra={"context": {"to": to}})
            return Result.failure("WhatsApp credentials not configured", "not_configured")

        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.post(
                    self.url,
                    headers={
                        "Authorization": f"Bearer {self.access_token}",
                        "Content-Type": "application/json",
                    },
                    json=self.build_text_payload(to, body),
                )
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp API error: {e}", extra={"context": {"to": to}})
            return Result.failure(str(e), "network_error")

        if response.status_code >= 400:
            logger.error(
                "WhatsApp API rejected message",
                extra={"context": {"to": to, "status": response.status_code, "body": response.text}},
            )
            return Result.failure(f"WhatsApp API error: {response.status_code}", "api_error")

        logger.info("Message sent successfully", extra={"context": {"to": to}})
        try:
            return Result.success(response.json())
        except ValueError:
            return Result.success({})


_whatsapp_client: Optional[WhatsAppClient] = None


def get_whatsapp_client() -> WhatsAppClient:
    global _whatsapp_client
    if _whatsapp_client is None:
        _whatsapp_client = WhatsAppClient(
            access_token=settings.whatsapp_token,
            phone_number_id=settings.whatsapp_phone_number_id,
            api_version=settings.whatsapp_api_version,
            timeout_seconds=settings.http_timeout_seconds,
        )
    return _whatsapp_client
