from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WhatsAppText(BaseModel):
    body: str = ""


class WhatsAppMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    from_: str = Field(alias="from")
    id: Optional[str] = None
    type: Optional[str] = None
    text: Optional[WhatsAppText] = None


class WhatsAppProfile(BaseModel):
    name: Optional[str] = None


class WhatsAppContact(BaseModel):
    model_config = ConfigDict(extra="allow")

    wa_id: Optional[str] = None
    profile: Optional[WhatsAppProfile] = None


class WhatsAppValue(BaseModel):
    model_config = ConfigDict(extra="allow")

    messaging_product: Optional[str] = None
    contacts: list[WhatsAppContact] = []
    messages: list[WhatsAppMessage] = []


class WhatsAppChange(BaseModel):
    model_config = ConfigDict(extra="allow")

    field: Optional[str] = None
    value: WhatsAppValue = WhatsAppValue()


class WhatsAppEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    changes: list[WhatsAppChange] = []


class WhatsAppWebhookPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    object: str
    entry: list[WhatsAppEntry] = []


class WebhookResponse(BaseModel):
    status: str
    processed: int = 0
    delivered: int = 0
