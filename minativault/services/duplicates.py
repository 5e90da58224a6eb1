"""Find and remove accounts that registered an already-used wallet address.

Records are grouped by normalized ``bep20_address``; in every group of two or
more the earliest ``created_at`` is the original and the rest are duplicates.
Records without ``created_at`` sort after every dated record. When no member
of a group is dated, the first in scan order is kept (the sort is stable).
"""

import asyncio
from datetime import timezone

from minativault.core.audit import log_event
from minativault.core.exceptions import AppError, BadRequestError, BatchDeleteError, ConflictError
from minativault.core.logging import get_logger
from minativault.models.duplicate import DuplicateScan, DuplicateUser, ResolverState
from minativault.services.mapper import created_at_of, map_to_user, normalize_address
from minativault.storage.base import StoredDocument, UserStore

log = get_logger(__name__)


def _creation_order(doc: StoredDocument) -> tuple:
    created_at = created_at_of(doc.data)
    if created_at is None:
        return (1,)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return (0, created_at.timestamp())


def group_by_address(documents: list[StoredDocument]) -> dict[str, list[StoredDocument]]:
    """Buckets of two or more records sharing a normalized address."""
    buckets: dict[str, list[StoredDocument]] = {}
    for doc in documents:
        address = normalize_address(doc.data.get("bep20_address")) if isinstance(doc.data, dict) else None
        if address is None:
            continue
        buckets.setdefault(address, []).append(doc)
    return {address: docs for address, docs in buckets.items() if len(docs) > 1}


def find_duplicates(documents: list[StoredDocument]) -> list[StoredDocument]:
    """Every non-original record, group by group."""
    duplicates: list[StoredDocument] = []
    for docs in group_by_address(documents).values():
        ordered = sorted(docs, key=_creation_order)
        duplicates.extend(ordered[1:])
    return duplicates


def _failure_message(exc: Exception, fallback: str) -> str:
    return exc.message if isinstance(exc, AppError) else fallback


def _to_duplicate_user(doc: StoredDocument) -> DuplicateUser:
    user = map_to_user(doc.id, doc.data)
    return DuplicateUser(
        id=user.id,
        name=user.name,
        username=user.username,
        bep20_address=user.bep20_address or "",
        join_date=user.join_date,
    )


class DuplicateResolver:
    """Scan, then delete on confirmation.

    ``idle -> scanning -> found | none_found``; from ``found`` a confirmation
    moves through ``deleting`` to ``deleted`` or ``delete_failed``. The list
    shown after the scan is exactly the list deleted.
    """

    def __init__(self, store: UserStore) -> None:
        self.store = store
        self.state = ResolverState.IDLE
        self.duplicates: list[DuplicateUser] = []
        self.deleted_count = 0
        self.error: str | None = None
        self._lock = asyncio.Lock()

    def snapshot(self) -> DuplicateScan:
        return DuplicateScan(
            state=self.state,
            duplicates=list(self.duplicates),
            deleted_count=self.deleted_count,
            error=self.error,
        )

    async def scan(self) -> DuplicateScan:
        async with self._lock:
            self.state = ResolverState.SCANNING
            self.duplicates = []
            self.deleted_count = 0
            self.error = None
            try:
                documents = await self.store.scan()
                self.duplicates = [_to_duplicate_user(d) for d in find_duplicates(documents)]
            except Exception as e:
                self.state = ResolverState.IDLE
                self.duplicates = []
                self.error = _failure_message(e, "Duplicate scan failed")
                log.warning("duplicate_scan_failed", error=self.error)
                raise
            self.state = ResolverState.FOUND if self.duplicates else ResolverState.NONE_FOUND
            log.info("duplicate_scan", scanned=len(documents), duplicates=len(self.duplicates))
            return self.snapshot()

    async def confirm(self, expected_ids: list[str] | None = None) -> DuplicateScan:
        """Delete the pending duplicates in one atomic batch.

        ``expected_ids`` is the list the operator saw; a mismatch with the
        pending scan is refused so nothing unseen gets deleted.
        """
        async with self._lock:
            if self.state != ResolverState.FOUND:
                raise ConflictError("No duplicate scan is awaiting confirmation", details={"state": self.state.value})
            ids = [d.id for d in self.duplicates]
            if expected_ids is not None and sorted(expected_ids) != sorted(ids):
                raise ConflictError(
                    "Confirmed users differ from the pending scan; scan again",
                    details={"pending": len(ids), "confirmed": len(expected_ids)},
                )
            if len(ids) > self.store.max_batch_size:
                raise BadRequestError(
                    "Too many duplicates for one atomic delete",
                    details={"count": len(ids), "limit": self.store.max_batch_size},
                )
            self.state = ResolverState.DELETING
            try:
                await self.store.delete_batch(ids)
            except Exception as e:
                # the batch is all-or-nothing; any failure means a fresh scan is needed
                self.state = ResolverState.DELETE_FAILED
                self.duplicates = []
                self.error = _failure_message(e, BatchDeleteError().message)
                log_event("duplicates_delete_failed", "users", None, {"count": len(ids)})
                raise
            self.state = ResolverState.DELETED
            self.deleted_count = len(ids)
            self.duplicates = []
            log_event("duplicates_deleted", "users", None, {"count": len(ids), "ids": ids})
            return self.snapshot()

    def reset(self) -> None:
        self.state = ResolverState.IDLE
        self.duplicates = []
        self.deleted_count = 0
        self.error = None
