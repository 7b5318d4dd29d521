"""
Password sign-in and password-reset flows.

Each function returns a result model instead of raising, so callers (routes)
can hand the message straight back to the client.
"""
import secrets
import smtplib
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import User, PasswordReset
from ..schemas.auth import AuthResult, PasswordResetResult, validate_email
from .security import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
)


log = structlog.get_logger(__name__)


def _issue_tokens(user: User) -> tuple:
    organization_id = str(user.organization_id) if user.organization_id else None
    return create_access_token(str(user.user_id), organization_id), create_refresh_token(str(user.user_id))


def sign_in_with_password(db: Session, email: str, password: str) -> AuthResult:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return AuthResult(success=False, error="Invalid login credentials")
    access, refresh = _issue_tokens(user)
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    return AuthResult(success=True, access_token=access, refresh_token=refresh)


def _send_reset_email(to_addr: str, code: str) -> None:
    if not (settings.smtp_host and settings.mail_from and settings.public_base_url):
        log.info("password_reset_email_skipped", reason="smtp_not_configured")
        return
    link = f"{settings.public_base_url}/reset-password?code={code}"
    msg = EmailMessage()
    msg["Subject"] = f"Reset your {settings.app_name} password"
    msg["From"] = settings.mail_from
    msg["To"] = to_addr
    msg.set_content(f"Click to reset your password: {link}")
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as s:
        if settings.smtp_tls:
            s.starttls()
        if settings.smtp_username and settings.smtp_password:
            s.login(settings.smtp_username, settings.smtp_password)
        s.send_message(msg)


def reset_password_for_email(db: Session, email: str) -> PasswordResetResult:
    """
    Start a password reset for ``email``.

    Unknown addresses answer with the same success message so the endpoint
    cannot be used to probe for accounts.
    """
    if not validate_email(email):
        return PasswordResetResult(success=False, message="Please enter a valid email address")

    try:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if user is not None:
            code = secrets.token_urlsafe(32)
            db.add(PasswordReset(
                user_id=user.user_id,
                code=code,
                expires_at=datetime.now(timezone.utc) + timedelta(minutes=settings.password_reset_ttl_min),
            ))
            db.commit()
            try:
                _send_reset_email(user.email, code)
            except (smtplib.SMTPException, OSError) as e:
                log.warning("password_reset_email_failed", error=str(e))
                return PasswordResetResult(success=False, message="Failed to send reset email. Please try again.")
    except SQLAlchemyError as e:
        db.rollback()
        log.error("password_reset_failed", error=str(e))
        return PasswordResetResult(success=False, message="Failed to send reset email. Please try again.")

    return PasswordResetResult(success=True, message="Password reset link sent! Check your email inbox.")


def _as_utc(value):
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def exchange_code_for_session(db: Session, code: str) -> PasswordResetResult:
    invalid = PasswordResetResult(
        success=False, message="Invalid or expired password reset link. Please try again."
    )
    if not code:
        return invalid
    pr = db.query(PasswordReset).filter(PasswordReset.code == code).first()
    if not pr:
        return invalid
    now_utc = datetime.now(timezone.utc)
    expires_at = _as_utc(pr.expires_at)
    if pr.used_at is not None or (expires_at and expires_at < now_utc):
        return invalid
    user = db.query(User).filter(User.user_id == pr.user_id).first()
    if not user or not user.is_active:
        return invalid
    pr.used_at = now_utc
    db.commit()
    access, refresh = _issue_tokens(user)
    return PasswordResetResult(
        success=True,
        message="Session established successfully.",
        access_token=access,
        refresh_token=refresh,
    )


def update_password(db: Session, user: User, new_password: str) -> PasswordResetResult:
    if not new_password or len(new_password) < 6:
        return PasswordResetResult(success=False, message="Password must be at least 6 characters long")
    try:
        user.password_hash = get_password_hash(new_password)
        user.modified_at = datetime.now(timezone.utc)
        user.modified_by = user.user_id
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error("password_update_failed", user_id=str(user.user_id), error=str(e))
        return PasswordResetResult(success=False, message="Failed to update password. Please try again.")
    return PasswordResetResult(success=True, message="Password updated successfully!")
