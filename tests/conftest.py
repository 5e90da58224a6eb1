import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory store, fixed admin credentials
os.environ["STORE_BACKEND"] = "memory"
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ["ADMIN_EMAIL"] = "admin@minati.io"
os.environ["ADMIN_PASSWORD"] = "minati@123"


@pytest.fixture
def store():
    from minativault.storage.memory import MemoryUserStore
    return MemoryUserStore()


@pytest_asyncio.fixture
async def client(store) -> AsyncGenerator[AsyncClient, None]:
    from minativault.main import app
    from minativault.services.duplicates import DuplicateResolver
    app.state.store = store
    app.state.duplicate_resolver = DuplicateResolver(store)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.state.store = None


@pytest_asyncio.fixture
async def admin_client(client) -> AsyncClient:
    from minativault.core.security import create_session_cookie, session_payload_for_admin
    from minativault.deps import SESSION_COOKIE_NAME
    client.cookies.set(SESSION_COOKIE_NAME, create_session_cookie(session_payload_for_admin("admin@minati.io")))
    return client
