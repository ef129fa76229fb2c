from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from chatrelay.config import settings
from chatrelay.database import get_db
from chatrelay.logging_config import get_logger
from chatrelay.schemas.webhook import WebhookResponse, WhatsAppWebhookPayload
from chatrelay.services.pipeline_service import MessagePipeline
from chatrelay.services.reply_service import get_reply_resolver
from chatrelay.services.whatsapp_service import get_whatsapp_client

logger = get_logger("webhook")

router = APIRouter(tags=["webhook"])


def get_message_pipeline(db: Session = Depends(get_db)) -> MessagePipeline:
    return MessagePipeline(db=db, resolver=get_reply_resolver(), messenger=get_whatsapp_client())


def _query_param(request: Request, name: str) -> str | None:
    # Meta sends hub.* names; plain names are accepted for manual testing.
    return request.query_params.get(f"hub.{name}") or request.query_params.get(name)


@router.get("/webhook")
def verify_webhook(request: Request):
    """Subscription handshake: echo the challenge when the token matches."""
    mode = _query_param(request, "mode")
    token = _query_param(request, "verify_token")
    challenge = _query_param(request, "challenge")

    if mode and token == settings.verify_token:
        logger.info("Webhook verified")
        return PlainTextResponse(challenge or "", status_code=status.HTTP_200_OK)

    logger.warning("Webhook verification failed", extra={"context": {"mode": mode}})
    return Response(status_code=status.HTTP_403_FORBIDDEN)


@router.post("/webhook")
async def receive_webhook(request: Request, pipeline: MessagePipeline = Depends(get_message_pipeline)):
    """Relay every text message in the payload and answer once all are handled."""
    try:
        body = await request.json()
    except ValueError as e:
        logger.error(f"Invalid webhook JSON: {e}")
        return JSONResponse(status_code=500, content={"status": "error", "detail": "Invalid JSON"})

    if not isinstance(body, dict) or body.get("object") != settings.whatsapp_object:
        return JSONResponse(status_code=404, content={"status": "ignored"})

    try:
        payload = WhatsAppWebhookPayload.model_validate(body)
        outcomes = await run_in_threadpool(pipeline.process_payload, payload)
    except ValidationError as e:
        logger.error("Malformed webhook payload", extra={"context": {"errors": e.errors()}})
        return JSONResponse(status_code=500, content={"status": "error", "detail": "Malformed payload"})
    except Exception as e:
        logger.error(f"Webhook processing error: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"status": "error", "detail": "Internal error"})

    return WebhookResponse(
        status="ok",
        processed=len(outcomes),
        delivered=sum(1 for outcome in outcomes if outcome.delivered),
    )
