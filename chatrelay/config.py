from typing import Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class AdminPrincipal(BaseModel):
    email: str
    password_hash: str
    phone_number: Optional[str] = None
    telegram_chat_id: Optional[str] = None


class Settings(BaseSettings):
    database_url: str = "sqlite:///./chatrelay.db"
    debug: bool = False
    log_level: str = "INFO"
    cors_allow_origins: str = "*"

    # WhatsApp Cloud API
    verify_token: str = "your_verify_token"
    whatsapp_token: Optional[str] = None
    whatsapp_phone_number_id: Optional[str] = None
    whatsapp_api_version: str = "v18.0"
    whatsapp_object: str = "whatsapp_business_account"

    # AI backend: anthropic or openai
    ai_provider: str = "anthropic"
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    anthropic_version: str = "2023-06-01"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    ai_max_tokens: int = 1024
    ai_timeout_seconds: float = 60.0
    http_timeout_seconds: float = 30.0

    # Two-factor auth
    default_country_code: str = "52"
    two_factor_ttl_seconds: int = 300
    challenge_store: str = "memory"  # memory, redis
    redis_url: str = "redis://localhost:6379/0"
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    telegram_bot_token: Optional[str] = None

    admins: list[AdminPrincipal] = []
    admin_email: Optional[str] = None
    admin_password_hash: Optional[str] = None
    admin_phone: Optional[str] = None
    admin_telegram_chat_id: Optional[str] = None

    class Config:
        env_file = ".env"
        extra = "ignore"

    def admin_principals(self) -> list[AdminPrincipal]:
        """Configured admins, including the single ADMIN_* entry when set."""
        principals = list(self.admins)
        if self.admin_email and self.admin_password_hash:
            principals.append(
                AdminPrincipal(
                    email=self.admin_email,
                    password_hash=self.admin_password_hash,
                    phone_number=self.admin_phone,
                    telegram_chat_id=self.admin_telegram_chat_id,
                )
            )
        return principals


settings = Settings()
