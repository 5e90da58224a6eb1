import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from minativault.core.config import get_settings
from minativault.core.exceptions import (
    AppError,
    app_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from minativault.core.logging import bind_request_id, configure_logging, get_logger
from minativault.routers import auth, dashboard, duplicates, users
from minativault.services.duplicates import DuplicateResolver
from minativault.storage.base import get_store

settings = get_settings()
configure_logging(debug=settings.debug)
log = get_logger(__name__)

# probes hit these every few seconds
_UNLOGGED_PATHS = {"/health"}

app = FastAPI(
    title="MinatiVault Admin API",
    version="1.0.0",
    description="Reward users, dashboard stats and duplicate wallet cleanup for the MinatiVault bot.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id
    bind_request_id(request_id)
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    if request.url.path not in _UNLOGGED_PATHS:
        log.info(
            "request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
    return response


app.add_exception_handler(AppError, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(auth.router, prefix="/v1/auth", tags=["auth"])
app.include_router(dashboard.router, prefix="/v1/dashboard", tags=["dashboard"])
app.include_router(users.router, prefix="/v1/users", tags=["users"])
app.include_router(duplicates.router, prefix="/v1/duplicates", tags=["duplicates"])


def _init_sentry() -> None:
    import sentry_sdk
    sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.env, traces_sample_rate=0.1)
    log.info("startup", msg="Sentry enabled")


@app.on_event("startup")
async def startup():
    if settings.sentry_dsn:
        _init_sentry()
    # tests install their own store before startup
    if getattr(app.state, "store", None) is None:
        app.state.store = get_store()
    app.state.duplicate_resolver = DuplicateResolver(app.state.store)
    log.info("startup", backend=settings.store_backend, collection=settings.users_collection)


@app.get("/health")
async def health():
    """Liveness probe; does not touch the store."""
    return {"status": "ok"}
