"""Two-factor challenge issue and verification.

Codes are single use and expire ``ttl_seconds`` after issue. Expired
challenges are only removed when somebody tries to verify them. There is no
limit on verification attempts within the window.
"""

import hmac
import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from chatrelay.config import AdminPrincipal, settings
from chatrelay.logging_config import get_logger
from chatrelay.services.auth_service import PrincipalStore, get_principal_store, normalize_account_id
from chatrelay.services.challenge_store import (
    ChallengeStore,
    InMemoryChallengeStore,
    RedisChallengeStore,
    VerificationChallenge,
)
from chatrelay.services.errors import (
    ChallengeExpired,
    ChallengeMismatch,
    ChallengeNotFound,
    DeliveryFailure,
    InvalidContact,
    InvalidCredentials,
    MissingContact,
    UnsupportedMethod,
)
from chatrelay.services.phone_utils import normalize_phone, phones_match
from chatrelay.services.result import Result
from chatrelay.services.telegram_service import TelegramService
from chatrelay.services.whatsapp_service import WhatsAppClient, get_whatsapp_client

logger = get_logger("two_factor")

CODE_MESSAGE_TEMPLATE = "Tu código de verificación es: {code}. Expira en {minutes} minutos."


def generate_code() -> str:
    """Uniformly random 6-digit code, zero padded."""
    return f"{secrets.randbelow(1_000_000):06d}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryChannel(ABC):
    """Transmits a verification code to an admin."""

    requires_contact = False

    @abstractmethod
    def address_for(self, principal: AdminPrincipal) -> Optional[str]:
        pass

    @abstractmethod
    def send(self, address: str, text: str) -> Result:
        pass


class WhatsAppChannel(DeliveryChannel):
    requires_contact = True

    def __init__(self, client: WhatsAppClient, country_code: str):
        self.client = client
        self.country_code = country_code

    def address_for(self, principal: AdminPrincipal) -> Optional[str]:
        if not principal.phone_number:
            return None
        return normalize_phone(principal.phone_number, self.country_code)

    def send(self, address: str, text: str) -> Result:
        return self.client.send_text(address, text)


class TelegramChannel(DeliveryChannel):
    def __init__(self, service: Optional[TelegramService]):
        self.service = service

    def address_for(self, principal: AdminPrincipal) -> Optional[str]:
        return principal.telegram_chat_id

    def send(self, address: str, text: str) -> Result:
        if self.service is None:
            return Result.failure("Telegram bot token not configured", "not_configured")
        response = self.service.send_message(address, text)
        if not response.get("ok"):
            return Result.failure(str(response.get("description") or response.get("error")), "api_error")
        return Result.success(response)


class TwoFactorManager:
    def __init__(
        self,
        store: ChallengeStore,
        principals: PrincipalStore,
        channels: dict[str, DeliveryChannel],
        ttl_seconds: int = 300,
        country_code: str = "52",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.principals = principals
        self.channels = channels
        self.ttl = timedelta(seconds=ttl_seconds)
        self.country_code = country_code
        self.clock = clock

    def issue(
        self,
        account_id: str,
        delivery_method: str,
        contact_address: Optional[str] = None,
    ) -> VerificationChallenge:
        """Create a fresh challenge for the account and deliver its code."""
        account_id = normalize_account_id(account_id)
        principal = self.principals.get(account_id)
        if principal is None:
            raise InvalidCredentials()

        channel = self.channels.get(delivery_method)
        if channel is None:
            raise UnsupportedMethod(delivery_method)

        if channel.requires_contact:
            if not contact_address:
                raise MissingContact()
            if not principal.phone_number or not phones_match(
                contact_address, principal.phone_number, self.country_code
            ):
                logger.warning(
                    "2FA contact mismatch",
                    extra={"context": {"account": account_id, "method": delivery_method}},
                )
                raise InvalidContact()

        address = channel.address_for(principal)
        if not address:
            raise MissingContact(f"No {delivery_method} address configured for this account")

        now = self.clock()
        challenge = VerificationChallenge(
            account_id=account_id,
            code=generate_code(),
            expires_at=now + self.ttl,
            delivery_method=delivery_method,
            issued_at=now,
        )
        self.store.put(challenge)

        minutes = int(self.ttl.total_seconds() // 60)
        result = channel.send(address, CODE_MESSAGE_TEMPLATE.format(code=challenge.code, minutes=minutes))
        if not result.ok:
            logger.error(
                "2FA code delivery failed",
                extra={"context": {"account": account_id, "method": delivery_method, "error": result.error}},
            )
            raise DeliveryFailure(f"Failed to deliver verification code via {delivery_method}")

        logger.info(
            "2FA code issued",
            extra={"context": {"account": account_id, "method": delivery_method}},
        )
        return challenge

    def verify(self, account_id: str, submitted_code: str) -> None:
        """Consume the account's challenge. Raises a TwoFactorError on failure."""
        account_id = normalize_account_id(account_id)
        challenge = self.store.get(account_id)
        if challenge is None:
            raise ChallengeNotFound()

        if challenge.is_expired(self.clock()):
            # Only this challenge; a newer one issued meanwhile must survive.
            self.store.discard(challenge)
            raise ChallengeExpired()

        submitted = (submitted_code or "").strip().encode("utf-8")
        if not hmac.compare_digest(challenge.code.encode("utf-8"), submitted):
            raise ChallengeMismatch()

        # A concurrent verify may have consumed it between get and here.
        if not self.store.discard(challenge):
            raise ChallengeNotFound()

        logger.info("2FA verified", extra={"context": {"account": account_id}})


def build_challenge_store() -> ChallengeStore:
    if settings.challenge_store.strip().lower() == "redis":
        return RedisChallengeStore.from_url(settings.redis_url, settings.two_factor_ttl_seconds)
    return InMemoryChallengeStore()


_manager: Optional[TwoFactorManager] = None


def get_two_factor_manager() -> TwoFactorManager:
    """Get or create the process-wide manager."""
    global _manager
    if _manager is None:
        telegram = None
        if settings.telegram_bot_token:
            telegram = TelegramService(settings.telegram_bot_token, timeout_seconds=settings.http_timeout_seconds)
        _manager = TwoFactorManager(
            store=build_challenge_store(),
            principals=get_principal_store(),
            channels={
                "whatsapp": WhatsAppChannel(get_whatsapp_client(), settings.default_country_code),
                "telegram": TelegramChannel(telegram),
            },
            ttl_seconds=settings.two_factor_ttl_seconds,
            country_code=settings.default_country_code,
        )
    return _manager
