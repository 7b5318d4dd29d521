from fastapi import APIRouter, Depends, HTTPException, Form
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..config import settings
from ..models.models import User
from ..schemas.auth import (
    validate_login_input,
    ResetPasswordRequest,
    ExchangeCodeRequest,
    UpdatePasswordRequest,
    RefreshRequest,
    TokenResponse,
)
from .security import (
    get_current_user,
    create_access_token,
    create_refresh_token,
    decode_token,
    load_token_user,
    REFRESH,
)
from . import service


router = APIRouter(prefix="/auth", tags=["auth"])
log = structlog.get_logger(__name__)


def _set_session_cookie(response, token: str) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.jwt_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.environment not in ("dev", "test"),
    )


@router.post("/login")
def login(email: str = Form(""), password: str = Form(""), db: Session = Depends(get_db)):
    try:
        result = validate_login_input({"email": email, "password": password})
        if not result.success:
            return JSONResponse({"error": "Invalid email or password"}, status_code=400)

        auth_result = service.sign_in_with_password(db, result.data.email, result.data.password)
        if not auth_result.success:
            return JSONResponse({"error": auth_result.error or "Authentication failed"}, status_code=401)
    except HTTPException:
        # Redirects and auth errors raised below the route keep their meaning
        raise
    except Exception as e:
        log.exception("login_failed", error=str(e))
        return JSONResponse({"error": "An unexpected error occurred. Please try again."}, status_code=500)

    response = RedirectResponse(url="/dashboard", status_code=303)
    _set_session_cookie(response, auth_result.access_token)
    return response


@router.post("/reset-password")
def reset_password(req: ResetPasswordRequest, db: Session = Depends(get_db)):
    return service.reset_password_for_email(db, req.email or "")


@router.post("/exchange-code")
def exchange_code(req: ExchangeCodeRequest, db: Session = Depends(get_db)):
    result = service.exchange_code_for_session(db, req.code)
    response = JSONResponse(result.model_dump(), status_code=200 if result.success else 400)
    if result.success:
        _set_session_cookie(response, result.access_token)
    return response


@router.post("/update-password")
def update_password(req: UpdatePasswordRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    result = service.update_password(db, user, req.password)
    return JSONResponse(result.model_dump(), status_code=200 if result.success else 400)


@router.post("/refresh", response_model=TokenResponse)
def refresh(req: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_token(req.refresh_token)
    if payload.get("type") != REFRESH:
        raise HTTPException(status_code=400, detail="Invalid refresh token")
    user = load_token_user(db, payload, REFRESH)
    if user is None:
        raise HTTPException(status_code=401, detail="Account not found or inactive")
    user_id = str(user.user_id)
    organization_id = str(user.organization_id) if user.organization_id else None
    return TokenResponse(
        access_token=create_access_token(user_id, organization_id),
        refresh_token=create_refresh_token(user_id),
    )


@router.post("/logout")
def logout():
    response = JSONResponse({"success": True})
    response.delete_cookie(settings.session_cookie_name)
    return response
