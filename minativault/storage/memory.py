"""In-process user store with Firestore query semantics, for local runs and tests."""

import copy
import operator
from datetime import datetime, timezone
from typing import Any, Callable

from minativault.core.exceptions import BadRequestError, BatchDeleteError, NotFoundError, StoreUnavailableError
from minativault.storage.base import FieldFilter, StoredDocument, StoreQuery, Subscription, UserStore

_MISSING = object()

_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def get_path(data: dict[str, Any], path: str) -> Any:
    cur: Any = data
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return _MISSING
        cur = cur[part]
    return cur


def set_path(data: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    cur = data
    for part in parts[:-1]:
        nxt = cur.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[part] = nxt
        cur = nxt
    cur[parts[-1]] = value


def _type_rank(value: Any) -> int:
    # Firestore orders values of different types by type first
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return 2
    if isinstance(value, datetime):
        return 3
    if isinstance(value, str):
        return 4
    return 5


def _order_key(value: Any) -> tuple[int, Any]:
    rank = _type_rank(value)
    if rank == 3:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return rank, value.timestamp()
    if rank in (1, 2, 4):
        return rank, value
    return rank, str(value)


def _matches(data: dict[str, Any], flt: FieldFilter) -> bool:
    value = get_path(data, flt.field)
    if value is _MISSING:
        return False
    if flt.op in ("==", "!="):
        return _OPS[flt.op](value, flt.value)
    # range comparisons only match values of the same type
    left, right = _order_key(value), _order_key(flt.value)
    if left[0] != right[0]:
        return False
    return _OPS[flt.op](left, right)


class MemoryUserStore(UserStore):
    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        self._docs: dict[str, dict[str, Any]] = {}
        self._listeners: dict[str, list[tuple[Callable, Callable]]] = {}
        # fault injection: number of upcoming reads to fail, and batch rejection
        self.failing_reads = 0
        self.fail_batches = False
        for doc_id, data in (documents or {}).items():
            self.add(doc_id, data)

    def add(self, doc_id: str, data: dict[str, Any]) -> None:
        self._docs[doc_id] = copy.deepcopy(data)
        self._notify(doc_id)

    def __len__(self) -> int:
        return len(self._docs)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._docs

    def listener_count(self, doc_id: str) -> int:
        return len(self._listeners.get(doc_id, []))

    def _check_read(self) -> None:
        if self.failing_reads > 0:
            self.failing_reads -= 1
            raise StoreUnavailableError()

    def _snapshot(self, doc_id: str) -> StoredDocument:
        return StoredDocument(id=doc_id, data=copy.deepcopy(self._docs[doc_id]))

    async def get(self, doc_id: str) -> StoredDocument | None:
        self._check_read()
        if doc_id not in self._docs:
            return None
        return self._snapshot(doc_id)

    async def query(self, query: StoreQuery) -> list[StoredDocument]:
        self._check_read()
        ids = [doc_id for doc_id, data in self._docs.items() if all(_matches(data, f) for f in query.filters)]

        if query.order_by:
            # documents without the order field are excluded, ties break on id
            ids = [i for i in ids if get_path(self._docs[i], query.order_by) is not _MISSING]

            def position(doc_id: str) -> tuple:
                return _order_key(get_path(self._docs[doc_id], query.order_by)), doc_id
        else:
            def position(doc_id: str) -> tuple:
                return (doc_id,)

        ids.sort(key=position, reverse=query.descending)

        if query.start_after is not None:
            if query.start_after not in self._docs:
                raise BadRequestError("Cursor refers to a user that no longer exists")
            if query.order_by and get_path(self._docs[query.start_after], query.order_by) is _MISSING:
                raise BadRequestError("Cursor refers to a user outside this ordering")
            cursor = position(query.start_after)
            if query.descending:
                ids = [i for i in ids if position(i) < cursor]
            else:
                ids = [i for i in ids if position(i) > cursor]

        if query.limit is not None:
            ids = ids[: query.limit]
        return [self._snapshot(i) for i in ids]

    async def scan(self) -> list[StoredDocument]:
        self._check_read()
        return [self._snapshot(i) for i in self._docs]

    async def update(self, doc_id: str, fields: dict[str, Any]) -> None:
        self._check_read()
        if doc_id not in self._docs:
            raise NotFoundError("User not found")
        data = copy.deepcopy(self._docs[doc_id])
        for path, value in fields.items():
            set_path(data, path, copy.deepcopy(value))
        self._docs[doc_id] = data
        self._notify(doc_id)

    async def delete_batch(self, doc_ids: list[str]) -> None:
        if self.fail_batches:
            raise BatchDeleteError(details={"requested": len(doc_ids)})
        if len(doc_ids) > self.max_batch_size:
            raise BatchDeleteError("Batch exceeds the atomic write limit", details={"requested": len(doc_ids)})
        deleted = [i for i in doc_ids if self._docs.pop(i, None) is not None]
        for doc_id in deleted:
            self._notify(doc_id)

    def watch(self, doc_id: str) -> Subscription:
        def listen(push, fail):
            entry = (push, fail)
            self._listeners.setdefault(doc_id, []).append(entry)
            # initial snapshot, like a Firestore listener
            push(self._snapshot(doc_id) if doc_id in self._docs else None)

            def unsubscribe() -> None:
                entries = self._listeners.get(doc_id, [])
                if entry in entries:
                    entries.remove(entry)
                if not entries:
                    self._listeners.pop(doc_id, None)

            return unsubscribe

        return Subscription(doc_id, listen)

    def break_watchers(self, doc_id: str, exc: Exception) -> None:
        for _, fail in list(self._listeners.get(doc_id, [])):
            fail(exc)

    def _notify(self, doc_id: str) -> None:
        for push, _ in list(self._listeners.get(doc_id, [])):
            push(self._snapshot(doc_id) if doc_id in self._docs else None)
