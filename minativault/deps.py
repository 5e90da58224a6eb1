"""Shared FastAPI dependencies."""

from fastapi import Request

from minativault.core.config import get_settings
from minativault.core.exceptions import UnauthorizedError
from minativault.core.security import load_session_cookie
from minativault.services.duplicates import DuplicateResolver
from minativault.storage.base import UserStore

SESSION_COOKIE_NAME = "minativault_session"


async def require_admin(request: Request) -> str:
    """Dependency: signed admin session cookie; returns the admin email."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        raise UnauthorizedError("Not authenticated")
    payload = load_session_cookie(cookie)
    if not payload:
        raise UnauthorizedError("Invalid or expired session")
    email = payload.get("email")
    if payload.get("admin") is not True or email != get_settings().admin_email.strip().lower():
        raise UnauthorizedError("Invalid session")
    return email


def get_user_store(request: Request) -> UserStore:
    return request.app.state.store


def get_duplicate_resolver(request: Request) -> DuplicateResolver:
    return request.app.state.duplicate_resolver
