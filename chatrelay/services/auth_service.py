from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from chatrelay.config import AdminPrincipal, settings
from chatrelay.services.errors import ConfigurationError, InvalidCredentials


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return check_password_hash(hashed_password, plain_password)


def normalize_account_id(email: str) -> str:
    return (email or "").strip().lower()


class PrincipalStore:
    """Admin accounts allowed to use the admin API, keyed by email."""

    def __init__(self, principals: Iterable[AdminPrincipal]):
        self._principals = {normalize_account_id(p.email): p for p in principals}

    def get(self, email: str) -> Optional[AdminPrincipal]:
        return self._principals.get(normalize_account_id(email))

    def authenticate(self, email: str, password: str) -> AdminPrincipal:
        principal = self.get(email)
        if principal is None or not password or not verify_password(password, principal.password_hash):
            raise InvalidCredentials()
        return principal

    def __len__(self) -> int:
        return len(self._principals)


def _signing_key() -> str:
    if not settings.jwt_secret:
        raise ConfigurationError("JWT_SECRET not configured")
    return settings.jwt_secret


def ensure_jwt_configured() -> None:
    """Raise ConfigurationError unless tokens can be signed and checked."""
    _signing_key()


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token for a verified admin."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"sub": subject, "exp": datetime.now(timezone.utc) + expires_delta}
    return jwt.encode(payload, _signing_key(), algorithm=settings.jwt_algorithm)


def verify_access_token(token: str) -> Optional[str]:
    """Verify a JWT access token and return its subject if valid."""
    key = _signing_key()
    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.InvalidTokenError:
        return None
    else:
        return payload.get("sub")


_principal_store: Optional[PrincipalStore] = None


def get_principal_store() -> PrincipalStore:
    global _principal_store
    if _principal_store is None:
        _principal_store = PrincipalStore(settings.admin_principals())
    return _principal_store
