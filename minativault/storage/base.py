import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

from minativault.core.config import get_settings
from minativault.core.exceptions import StoreUnavailableError


@dataclass
class StoredDocument:
    id: str
    data: dict[str, Any]


@dataclass(frozen=True)
class FieldFilter:
    field: str  # dotted path, e.g. "reward_info.reward_status"
    op: str  # "==", "!=", "<", "<=", ">", ">="
    value: Any


@dataclass
class StoreQuery:
    filters: list[FieldFilter] = field(default_factory=list)
    order_by: str | None = None
    descending: bool = False
    start_after: str | None = None  # document id of the previous page's last document
    limit: int | None = None


# (push, fail) -> unsubscribe
Listen = Callable[[Callable[[StoredDocument | None], None], Callable[[Exception], None]], Callable[[], None]]

_CLOSED = object()


class Subscription:
    """Standing subscription to one document.

    Use as an async context manager; the listener is registered on enter and
    released on exit, whatever the exit path. Iterating yields the document on
    every change, or None once it no longer exists.
    """

    def __init__(self, doc_id: str, listen: Listen) -> None:
        self.doc_id = doc_id
        self._listen = listen
        self._queue: asyncio.Queue = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self.closed = False

    async def __aenter__(self) -> "Subscription":
        self._loop = asyncio.get_running_loop()
        self._unsubscribe = self._listen(self._push, self._fail)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _put(self, item: Any) -> None:
        loop = self._loop
        if loop is None or self.closed or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._queue.put_nowait(item)
        else:
            # listener threads (Firestore watch) hand over to the event loop
            loop.call_soon_threadsafe(self._queue.put_nowait, item)

    def _push(self, doc: StoredDocument | None) -> None:
        self._put(doc)

    def _fail(self, exc: Exception) -> None:
        self._put(exc)

    def close(self) -> None:
        if self.closed:
            return
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()
        self._queue.put_nowait(_CLOSED)
        self.closed = True

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> StoredDocument | None:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            if isinstance(item, StoreUnavailableError):
                raise item
            raise StoreUnavailableError("Live user updates were interrupted") from item
        return item


class UserStore(ABC):
    """Capabilities the admin core needs from a document store."""

    # largest delete the store can apply atomically
    max_batch_size: int = 500

    @abstractmethod
    async def get(self, doc_id: str) -> StoredDocument | None:
        """Point read; None if the document does not exist."""
        ...

    @abstractmethod
    async def query(self, query: StoreQuery) -> list[StoredDocument]:
        """Filtered, ordered, cursor-positioned, limited read."""
        ...

    @abstractmethod
    async def scan(self) -> list[StoredDocument]:
        """Every document in the collection."""
        ...

    @abstractmethod
    async def update(self, doc_id: str, fields: dict[str, Any]) -> None:
        """Partial update; dotted keys address nested fields. NotFoundError if missing."""
        ...

    @abstractmethod
    async def delete_batch(self, doc_ids: list[str]) -> None:
        """Delete all documents or none. BatchDeleteError on failure."""
        ...

    @abstractmethod
    def watch(self, doc_id: str) -> Subscription:
        """Subscription to one document's changes."""
        ...


def get_store() -> UserStore:
    settings = get_settings()
    if settings.store_backend == "memory":
        from minativault.storage.memory import MemoryUserStore
        return MemoryUserStore()
    from minativault.storage.firestore import FirestoreUserStore
    return FirestoreUserStore(collection=settings.users_collection)
