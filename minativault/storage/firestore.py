"""Firestore-backed user store (firebase-admin)."""

from contextlib import asynccontextmanager
from typing import Any

import firebase_admin
from firebase_admin import credentials, firestore, firestore_async
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import FieldFilter as FirestoreFieldFilter
from google.cloud.firestore_v1 import Query

from minativault.core.config import get_settings
from minativault.core.exceptions import BadRequestError, BatchDeleteError, NotFoundError, StoreUnavailableError
from minativault.core.logging import get_logger
from minativault.storage.base import StoredDocument, StoreQuery, Subscription, UserStore

log = get_logger(__name__)

_app: firebase_admin.App | None = None


def init_firebase() -> firebase_admin.App:
    global _app
    if _app:
        return _app
    settings = get_settings()
    creds_dict = settings.firebase_credentials_dict
    if settings.firebase_credentials and not creds_dict:
        raise RuntimeError("FIREBASE_CREDENTIALS is set but is not valid service-account JSON")
    cred = credentials.Certificate(creds_dict) if creds_dict else credentials.ApplicationDefault()
    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    _app = firebase_admin.initialize_app(cred, options)
    log.info("firebase_initialized", project_id=_app.project_id)
    return _app


@asynccontextmanager
async def _store_errors(operation: str):
    try:
        yield
    except google_exceptions.NotFound as e:
        raise NotFoundError("User not found") from e
    except (google_exceptions.GoogleAPICallError, google_exceptions.RetryError) as e:
        log.warning("store_unavailable", operation=operation, error=str(e))
        raise StoreUnavailableError() from e


def _to_document(snapshot) -> StoredDocument:
    return StoredDocument(id=snapshot.id, data=snapshot.to_dict() or {})


class FirestoreUserStore(UserStore):
    def __init__(self, collection: str = "users") -> None:
        app = init_firebase()
        self.collection = collection
        self._db = firestore_async.client(app)
        # listeners only exist on the sync client
        self._sync_db = firestore.client(app)

    def _ref(self):
        return self._db.collection(self.collection)

    async def get(self, doc_id: str) -> StoredDocument | None:
        async with _store_errors("get"):
            snapshot = await self._ref().document(doc_id).get()
        if not snapshot.exists:
            return None
        return _to_document(snapshot)

    async def query(self, query: StoreQuery) -> list[StoredDocument]:
        ref = self._ref()
        q = ref
        for flt in query.filters:
            q = q.where(filter=FirestoreFieldFilter(flt.field, flt.op, flt.value))
        if query.order_by:
            q = q.order_by(query.order_by, direction=Query.DESCENDING if query.descending else Query.ASCENDING)
        async with _store_errors("query"):
            if query.start_after is not None:
                cursor = await ref.document(query.start_after).get()
                if not cursor.exists:
                    raise BadRequestError("Cursor refers to a user that no longer exists")
                q = q.start_after(cursor)
            if query.limit is not None:
                q = q.limit(query.limit)
            return [_to_document(s) async for s in q.stream()]

    async def scan(self) -> list[StoredDocument]:
        async with _store_errors("scan"):
            return [_to_document(s) async for s in self._ref().stream()]

    async def update(self, doc_id: str, fields: dict[str, Any]) -> None:
        async with _store_errors("update"):
            await self._ref().document(doc_id).update(fields)

    async def delete_batch(self, doc_ids: list[str]) -> None:
        if len(doc_ids) > self.max_batch_size:
            raise BatchDeleteError("Batch exceeds the atomic write limit", details={"requested": len(doc_ids)})
        batch = self._db.batch()
        for doc_id in doc_ids:
            batch.delete(self._ref().document(doc_id))
        try:
            await batch.commit()
        except (google_exceptions.GoogleAPICallError, google_exceptions.RetryError) as e:
            log.error("batch_delete_failed", count=len(doc_ids), error=str(e))
            raise BatchDeleteError(details={"requested": len(doc_ids)}) from e

    def watch(self, doc_id: str) -> Subscription:
        doc_ref = self._sync_db.collection(self.collection).document(doc_id)

        def listen(push, fail):
            def on_snapshot(snapshots, changes, read_time):
                try:
                    snapshot = snapshots[0] if snapshots else None
                    if snapshot is None or not snapshot.exists:
                        push(None)
                    else:
                        push(_to_document(snapshot))
                except Exception as e:  # runs on the watch thread; hand the error to the subscriber
                    fail(e)

            watch = doc_ref.on_snapshot(on_snapshot)
            return watch.unsubscribe

        return Subscription(doc_id, listen)
