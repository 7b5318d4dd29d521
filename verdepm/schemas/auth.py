import re
from typing import Optional, Dict, Any

from email_validator import validate_email as _validate_email, EmailNotValidError
from pydantic import BaseModel, Field, ValidationError, field_validator


PHONE_RE = re.compile(r"^\+?[1-9]\d{1,14}$")
MEMBER_ROLES = ("owner", "manager", "member", "supplier")


def _check_email(value: str) -> str:
    try:
        _validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise ValueError("Invalid email address")
    return value


def field_errors(exc: ValidationError) -> Dict[str, str]:
    """Map a pydantic ValidationError to {field: first message}."""
    out: Dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err.get("loc") else "__root__"
        if field in out:
            continue
        ctx_error = (err.get("ctx") or {}).get("error")
        out[field] = str(ctx_error) if ctx_error else err["msg"]
    return out


class LoginInput(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters long")
        return v


class LoginValidation(BaseModel):
    success: bool
    data: Optional[LoginInput] = None
    errors: Dict[str, str] = {}


def validate_login_input(data: Dict[str, Any]) -> LoginValidation:
    try:
        parsed = LoginInput(email=data.get("email") or "", password=data.get("password") or "")
    except ValidationError as e:
        return LoginValidation(success=False, errors=field_errors(e))
    return LoginValidation(success=True, data=parsed)


def validate_email(email: Optional[str]) -> bool:
    """Cheap precondition used before contacting the mail/auth backend."""
    return bool(email) and "@" in email


class InviteMemberInput(BaseModel):
    email: str
    password: str
    firstname: str
    lastname: str
    phone: Optional[str] = ""
    role: str

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, v):
        return _check_email((v or "").strip())

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters long")
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"[0-9]", v):
            raise ValueError("Password must contain at least one number")
        return v

    @field_validator("firstname", "lastname", mode="before")
    @classmethod
    def _names(cls, v, info):
        label = "First name" if info.field_name == "firstname" else "Last name"
        v = (v or "").strip()
        if len(v) < 1:
            raise ValueError(f"{label} is required")
        if len(v) > 50:
            raise ValueError(f"{label} must be less than 50 characters")
        return v

    @field_validator("phone", mode="before")
    @classmethod
    def _phone(cls, v):
        v = (v or "").strip()
        if v and not PHONE_RE.match(v):
            raise ValueError("Invalid phone number format")
        return v

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        if v not in MEMBER_ROLES:
            raise ValueError("Please select a valid role")
        return v


class MemberUpdateInput(BaseModel):
    userId: str
    email: Optional[str] = None
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    avatarUrl: Optional[str] = None
    avatarStoragePath: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    email: Optional[str] = None


class ExchangeCodeRequest(BaseModel):
    code: str


class UpdatePasswordRequest(BaseModel):
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResult(BaseModel):
    success: bool
    error: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class PasswordResetResult(BaseModel):
    success: bool
    message: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
