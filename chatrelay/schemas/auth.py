from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


class SendTwoFactorRequest(BaseModel):
    email: str
    password: str
    phone_number: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("phoneNumber", "phone_number"),
    )
    method: str = "whatsapp"


class SendTwoFactorResponse(BaseModel):
    success: bool
    message: str
    method: str
    expires_at: datetime


class VerifyTwoFactorRequest(BaseModel):
    """Codes may arrive as strings or JSON numbers; numbers are zero padded to 6 digits."""

    email: str
    code: str

    @field_validator("code", mode="before")
    @classmethod
    def coerce_numeric_code(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return f"{value:06d}"
        return value


class VerifyTwoFactorResponse(BaseModel):
    success: bool
    access_token: str
    token_type: str = "bearer"
