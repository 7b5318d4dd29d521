import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models.models import User


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    # Accounts imported from the hosted auth provider carry bcrypt hashes ($2a$/$2b$/$2y$)
    if hashed.startswith(("$2a$", "$2b$", "$2y$")):
        pb = plain.encode("utf-8")[:72]
        try:
            return bcrypt.checkpw(pb, hashed.encode("utf-8"))
        except ValueError:
            return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        return False


ACCESS = "access"
REFRESH = "refresh"


def _issue(sub: str, token_type: str, ttl_seconds: int, **claims) -> str:
    issued = datetime.now(tz=timezone.utc)
    payload = {
        "sub": sub,
        "type": token_type,
        "iat": issued,
        "exp": issued + timedelta(seconds=ttl_seconds),
        "jti": uuid.uuid4().hex,
        **{k: v for k, v in claims.items() if v is not None},
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str, organization_id: Optional[str] = None) -> str:
    return _issue(user_id, ACCESS, settings.jwt_ttl_seconds, org=organization_id)


def create_refresh_token(user_id: str) -> str:
    return _issue(user_id, REFRESH, settings.refresh_ttl_seconds)


def decode_token(token: str) -> dict:
    """Decode a session token; any failure is a 401."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session token")


def _token_from_request(request: Request, creds: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if creds is not None:
        return creds.credentials
    return request.cookies.get(settings.session_cookie_name)


def load_token_user(db: Session, payload: dict, token_type: str = ACCESS) -> Optional[User]:
    """Active user named by a decoded token of ``token_type``, else None."""
    if payload.get("type") != token_type:
        return None
    try:
        user_uuid = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        return None
    user = db.query(User).filter(User.user_id == user_uuid).first()
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the signed-in user from a Bearer token or the session cookie."""
    token = _token_from_request(request, creds)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user = load_token_user(db, decode_token(token))
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not active")
    return user


def get_optional_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> Optional[User]:
    token = _token_from_request(request, creds)
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError:
        return None
    return load_token_user(db, payload)


def require_org_roles(*required_roles: str):
    """Require the caller's organization role to be one of ``required_roles``."""
    def _dep(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
        from ..services.projects import resolve_membership

        membership = resolve_membership(db, user)
        if membership is None or membership.role not in required_roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user

    return _dep
