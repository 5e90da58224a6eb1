import hashlib
import hmac
from typing import Any

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from minativault.core.config import get_settings


def get_session_serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(
        settings.secret_key,
        salt="minativault-admin-session",
        signer_kwargs={"key_derivation": "hmac", "digest_method": hashlib.sha256},
    )


def create_session_cookie(payload: dict[str, Any]) -> str:
    serializer = get_session_serializer()
    return serializer.dumps(payload)


def load_session_cookie(cookie_value: str) -> dict[str, Any] | None:
    serializer = get_session_serializer()
    try:
        payload = serializer.loads(cookie_value, max_age=get_settings().session_max_age)
    except (BadSignature, SignatureExpired):
        return None
    return payload if isinstance(payload, dict) else None


def check_admin_credentials(email: str, password: str) -> bool:
    """Compare submitted credentials with the configured admin pair.

    This is a single shared credential, not user authentication. Both halves are
    always compared so timing does not reveal which one was wrong.
    """
    settings = get_settings()
    email_ok = hmac.compare_digest(email.strip().lower().encode(), settings.admin_email.strip().lower().encode())
    password_ok = hmac.compare_digest(password.encode(), settings.admin_password.encode())
    return email_ok and password_ok


def session_payload_for_admin(email: str) -> dict[str, Any]:
    return {"admin": True, "email": email.strip().lower()}
