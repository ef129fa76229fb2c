"""Inbound WhatsApp message pipeline.

Every message event in a webhook payload is handled in its own error
boundary: persist inbound, resolve a reply, send it, persist outbound. A
failure in one event is recorded in its outcome and never stops the others.
Persistence failures are logged and do not block delivery.
"""

from dataclasses import dataclass
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatrelay.logging_config import LoggerAdapter, get_logger
from chatrelay.services.conversation_service import SENDER_BOT, SENDER_USER, get_or_create_user, save_message
from chatrelay.services.errors import PersistenceFailure
from chatrelay.services.reply_service import ReplyResolver
from chatrelay.services.whatsapp_service import WhatsAppClient, process_text_for_whatsapp
from chatrelay.schemas.webhook import WhatsAppWebhookPayload

logger = get_logger("pipeline")


@dataclass
class MessageEvent:
    phone: str
    text: str
    profile_name: Optional[str] = None
    message_id: Optional[str] = None


@dataclass
class EventOutcome:
    phone: str
    reply: Optional[str] = None
    reply_source: Optional[str] = None
    delivered: bool = False
    inbound_persisted: bool = False
    outbound_persisted: bool = False
    error: Optional[str] = None


def extract_message_events(payload: WhatsAppWebhookPayload) -> Iterator[MessageEvent]:
    """Yield text message events from every entry and change."""
    for entry in payload.entry:
        for change in entry.changes:
            value = change.value
            names = {
                contact.wa_id: contact.profile.name
                for contact in value.contacts
                if contact.wa_id and contact.profile
            }
            for message in value.messages:
                if message.text is None or not message.text.body.strip():
                    logger.debug(
                        "Skipping non-text message",
                        extra={"context": {"type": message.type, "message_id": message.id}},
                    )
                    continue
                yield MessageEvent(
                    phone=message.from_,
                    text=message.text.body,
                    profile_name=names.get(message.from_),
                    message_id=message.id,
                )


class MessagePipeline:
    def __init__(self, db: Session, resolver: ReplyResolver, messenger: WhatsAppClient):
        self.db = db
        self.resolver = resolver
        self.messenger = messenger

    def _persist(self, event: MessageEvent, sender: str, text: str) -> None:
        try:
            user = get_or_create_user(self.db, event.phone, event.profile_name)
            save_message(self.db, user, sender, text)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceFailure(f"Failed to save {sender} message: {e}") from e

    def process_event(self, event: MessageEvent) -> EventOutcome:
        outcome = EventOutcome(phone=event.phone)
        log = LoggerAdapter(logger, {"phone": event.phone, "message_id": event.message_id})
        log.info("Message received", context={"length": len(event.text)})

        try:
            self._persist(event, SENDER_USER, event.text)
            outcome.inbound_persisted = True
        except PersistenceFailure as e:
            log.error("Inbound persistence failed", context={"error": e.message})

        reply = self.resolver.resolve(event.text)
        outcome.reply = process_text_for_whatsapp(reply.text)
        outcome.reply_source = reply.source

        result = self.messenger.send_text(event.phone, outcome.reply)
        outcome.delivered = result.ok
        if not result.ok:
            outcome.error = result.error
            log.warning("Reply not delivered", context={"error": result.error, "code": result.error_code})

        try:
            self._persist(event, SENDER_BOT, outcome.reply)
            outcome.outbound_persisted = True
        except PersistenceFailure as e:
            log.error("Outbound persistence failed", context={"error": e.message})

        return outcome

    def process_payload(self, payload: WhatsAppWebhookPayload) -> list[EventOutcome]:
        outcomes: list[EventOutcome] = []
        for event in extract_message_events(payload):
            try:
                outcomes.append(self.process_event(event))
            except Exception as e:
                logger.error(
                    "Message event failed",
                    extra={"context": {"phone": event.phone, "error": str(e)}},
                    exc_info=True,
                )
                self.db.rollback()
                outcomes.append(EventOutcome(phone=event.phone, error=str(e)))
        return outcomes
