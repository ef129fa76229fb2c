"""Two-factor login for the admin API."""

import redis
from fastapi import APIRouter, Depends, HTTPException

from chatrelay.logging_config import get_logger
from chatrelay.schemas.auth import (
    SendTwoFactorRequest,
    SendTwoFactorResponse,
    VerifyTwoFactorRequest,
    VerifyTwoFactorResponse,
)
from chatrelay.services.auth_service import (
    PrincipalStore,
    create_access_token,
    ensure_jwt_configured,
    get_principal_store,
    normalize_account_id,
)
from chatrelay.services.errors import ConfigurationError, TwoFactorError
from chatrelay.services.two_factor_service import TwoFactorManager, get_two_factor_manager

logger = get_logger("auth")

router = APIRouter(prefix="/auth", tags=["auth"])


def _store_unavailable(action: str, email: str, error: redis.RedisError) -> HTTPException:
    logger.error(
        f"{action} failed: challenge store unavailable",
        extra={"context": {"email": normalize_account_id(email), "error": str(error)}},
        exc_info=True,
    )
    return HTTPException(status_code=503, detail="Verification service unavailable")


@router.post("/send-2fa", response_model=SendTwoFactorResponse)
def send_two_factor(
    request: SendTwoFactorRequest,
    principals: PrincipalStore = Depends(get_principal_store),
    manager: TwoFactorManager = Depends(get_two_factor_manager),
):
    """Check credentials, then issue and deliver a one-time code."""
    try:
        principals.authenticate(request.email, request.password)
        challenge = manager.issue(request.email, request.method, request.phone_number)
    except TwoFactorError as e:
        logger.warning(
            "send-2fa rejected",
            extra={"context": {"email": normalize_account_id(request.email), "reason": type(e).__name__}},
        )
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except redis.RedisError as e:
        raise _store_unavailable("send-2fa", request.email, e)

    return SendTwoFactorResponse(
        success=True,
        message=f"Verification code sent via {request.method}",
        method=request.method,
        expires_at=challenge.expires_at,
    )


@router.post("/verify-2fa", response_model=VerifyTwoFactorResponse)
def verify_two_factor(
    request: VerifyTwoFactorRequest,
    manager: TwoFactorManager = Depends(get_two_factor_manager),
):
    """Consume the code and hand out an access token for the admin API."""
    # Checked first so a code is never consumed without a token to show for it.
    try:
        ensure_jwt_configured()
    except ConfigurationError as e:
        logger.error("verify-2fa refused", extra={"context": {"reason": e.message}})
        raise HTTPException(status_code=e.status_code, detail=e.message)

    try:
        manager.verify(request.email, request.code)
    except TwoFactorError as e:
        logger.warning(
            "verify-2fa rejected",
            extra={"context": {"email": normalize_account_id(request.email), "reason": type(e).__name__}},
        )
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except redis.RedisError as e:
        raise _store_unavailable("verify-2fa", request.email, e)

    return VerifyTwoFactorResponse(
        success=True,
        access_token=create_access_token(normalize_account_id(request.email)),
    )
