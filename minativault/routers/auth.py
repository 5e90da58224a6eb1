import re

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, field_validator

from minativault.core.audit import log_event
from minativault.core.config import get_settings
from minativault.core.exceptions import UnauthorizedError
from minativault.core.security import check_admin_credentials, create_session_cookie, session_payload_for_admin
from minativault.deps import SESSION_COOKIE_NAME, require_admin

router = APIRouter()

_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def email_shape(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Email is required")
        if not _EMAIL_RE.fullmatch(v):
            raise ValueError("Please enter a valid email address")
        return v

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v


@router.post("/login")
async def auth_login(body: LoginRequest, response: Response):
    """Check the admin credential pair; set the signed session cookie."""
    if not check_admin_credentials(body.email, body.password):
        log_event("admin_login_failed", "admin", None, {"email": body.email.lower()})
        raise UnauthorizedError("Invalid email or password")
    payload = session_payload_for_admin(body.email)
    settings = get_settings()
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=create_session_cookie(payload),
        max_age=settings.session_max_age,
        httponly=True,
        secure=settings.env == "production",
        samesite="lax",
        path="/",
    )
    log_event("admin_login", "admin", None, {"email": payload["email"]})
    return {"authenticated": True, "email": payload["email"]}


@router.post("/logout")
async def auth_logout(response: Response):
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return {"authenticated": False}


@router.get("/me")
async def auth_me(email: str = Depends(require_admin)):
    """Session check for protected views."""
    return {"authenticated": True, "email": email}
