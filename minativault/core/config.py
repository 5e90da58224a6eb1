import base64
import json
from functools import lru_cache
from typing import Any, List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:9002"]


def _parse_cors_origins(raw: Any) -> List[str]:
    """CORS_ORIGINS as a JSON list or a comma-separated string; unusable input falls back to the dev origins."""
    if isinstance(raw, list):
        items = raw
    else:
        text = str(raw or "").strip()
        if text.startswith("["):
            try:
                items = json.loads(text)
            except ValueError:
                items = []
        else:
            items = text.split(",")
    origins = [o.strip() for o in items if isinstance(o, str) and o.strip()]
    return origins or list(_DEFAULT_CORS)


def _parse_service_account(raw: str) -> dict[str, Any] | None:
    """Service-account JSON pasted as one line, or the same JSON base64-encoded."""
    if not raw:
        return None
    try:
        creds = json.loads(raw)
    except ValueError:
        try:
            creds = json.loads(base64.b64decode(raw).decode("utf-8"))
        except ValueError:
            return None
    if not isinstance(creds, dict):
        return None
    if isinstance(creds.get("private_key"), str):
        creds["private_key"] = creds["private_key"].replace("\\n", "\n")
    return creds


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    secret_key: str = Field(default="change-me-in-production-min-32-chars")

    # Admin gate (single credential pair, not hardened)
    admin_email: str = Field(default="admin@minati.io", alias="ADMIN_EMAIL")
    admin_password: str = Field(default="minati@123", alias="ADMIN_PASSWORD")
    session_max_age: int = Field(default=12 * 3600, alias="SESSION_MAX_AGE")

    # Store
    store_backend: Literal["firestore", "memory"] = Field(default="firestore", alias="STORE_BACKEND")
    firebase_credentials: str = Field(default="", alias="FIREBASE_CREDENTIALS")
    firebase_project_id: str | None = Field(default=None, alias="FIREBASE_PROJECT_ID")
    users_collection: str = Field(default="users", alias="USERS_COLLECTION")

    # User list
    page_size: int = Field(default=30, alias="PAGE_SIZE")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:9002",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(self.cors_origins_raw)

    @property
    def firebase_credentials_dict(self) -> dict[str, Any] | None:
        return _parse_service_account(self.firebase_credentials)


@lru_cache
def get_settings() -> Settings:
    return Settings()
