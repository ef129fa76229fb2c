"""Read-only admin API over the conversation log."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from chatrelay.config import settings
from chatrelay.database import get_db
from chatrelay.services.auth_service import (
    PrincipalStore,
    ensure_jwt_configured,
    get_principal_store,
    verify_access_token,
)
from chatrelay.services.errors import ConfigurationError
from chatrelay.services.phone_utils import normalize_phone
from chatrelay.services.stats_service import get_stats, get_user_history, list_recent_messages, list_users

router = APIRouter(tags=["admin"])

bearer_scheme = HTTPBearer(auto_error=False)


def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    principals: PrincipalStore = Depends(get_principal_store),
) -> str:
    try:
        ensure_jwt_configured()
    except ConfigurationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    email = verify_access_token(credentials.credentials)
    if not email or principals.get(email) is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return email


@router.get("/stats")
def stats(db: Session = Depends(get_db), _admin: str = Depends(require_admin)):
    return get_stats(db)


@router.get("/conversations")
def conversations(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    return {"limit": limit, "offset": offset, "conversations": list_recent_messages(db, limit=limit, offset=offset)}


@router.get("/users")
def users(db: Session = Depends(get_db), _admin: str = Depends(require_admin)):
    return {"users": list_users(db)}


@router.get("/conversations/{phone_number}")
def conversation_history(
    phone_number: str,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    history = get_user_history(db, phone_number, limit=limit)
    if history is None:
        # Stored numbers are whatever WhatsApp sent; retry with the normalized form.
        history = get_user_history(db, normalize_phone(phone_number, settings.default_country_code), limit=limit)
    if history is None:
        raise HTTPException(status_code=404, detail=f"No conversation for '{phone_number}'")
    return history
