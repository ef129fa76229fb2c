from chatrelay.schemas.auth import (
    SendTwoFactorRequest,
    SendTwoFactorResponse,
    VerifyTwoFactorRequest,
    VerifyTwoFactorResponse,
)
from chatrelay.schemas.webhook import WebhookResponse, WhatsAppWebhookPayload

__all__ = [
    "SendTwoFactorRequest",
    "SendTwoFactorResponse",
    "VerifyTwoFactorRequest",
    "VerifyTwoFactorResponse",
    "WebhookResponse",
    "WhatsAppWebhookPayload",
]
