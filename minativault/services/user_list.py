"""Stateful user list: merged pages, loading/error flags, retry.

One controller per list instance. Filter, search or sort changes start a new
generation; a response that comes back for an older generation is dropped.
"""

from typing import Any

from minativault.core.exceptions import AppError
from minativault.core.logging import get_logger
from minativault.models.user import User
from minativault.models.user_list import SortBy, SortDirection, UserListSpec
from minativault.services.users import fetch_page
from minativault.storage.base import UserStore

log = get_logger(__name__)


class UserListController:
    def __init__(self, store: UserStore, spec: UserListSpec | None = None, page_size: int | None = None) -> None:
        self.store = store
        self.spec = spec or UserListSpec()
        self.page_size = page_size
        self.users: list[User] = []
        self.cursor: str | None = None
        self.has_more = True
        self.loading = False
        self.loading_more = False
        self.error: str | None = None
        self._generation = 0
        self._failed: str | None = None  # "refresh" | "load_more"

    @property
    def busy(self) -> bool:
        return self.loading or self.loading_more

    async def refresh(self) -> None:
        """Load the first page for the current list options.

        The loaded list is replaced only once the new first page arrives; on
        failure the last good list stays in place next to the error.
        """
        self._generation += 1
        generation = self._generation
        self.loading = True
        self.loading_more = False
        self.error = None
        self._failed = None
        try:
            page = await fetch_page(self.store, self.spec, None, self.page_size)
        except AppError as e:
            if generation == self._generation:
                self._set_error("refresh", e)
            return
        finally:
            if generation == self._generation:
                self.loading = False
        if generation != self._generation:
            return
        self.users = list(page.items)
        self.cursor = page.next_cursor
        self.has_more = page.has_more

    async def load_more(self) -> bool:
        """Append the next page. Returns False when the call was ignored."""
        if self.busy or not self.has_more or self.error is not None:
            return False
        generation = self._generation
        self.loading_more = True
        try:
            page = await fetch_page(self.store, self.spec, self.cursor, self.page_size)
        except AppError as e:
            if generation == self._generation:
                self._set_error("load_more", e)
            return True
        finally:
            # a newer refresh owns the flags
            if generation == self._generation:
                self.loading_more = False
        if generation != self._generation:
            return True
        known = {u.id for u in self.users}
        self.users = self.users + [u for u in page.items if u.id not in known]
        self.cursor = page.next_cursor
        self.has_more = page.has_more
        return True

    async def retry(self) -> None:
        failed, self._failed = self._failed, None
        self.error = None
        if failed == "load_more":
            await self.load_more()
        else:
            await self.refresh()

    async def update_spec(self, **changes: Any) -> None:
        self.spec = self.spec.model_copy(update=changes)
        await self.refresh()

    async def set_search(self, term: str) -> None:
        await self.update_spec(search_term=term)

    async def set_filters(
        self,
        show_only_with_address: bool | None = None,
        show_only_pending_status: bool | None = None,
        show_only_pending_referral: bool | None = None,
    ) -> None:
        changes = {
            "show_only_with_address": show_only_with_address,
            "show_only_pending_status": show_only_pending_status,
            "show_only_pending_referral": show_only_pending_referral,
        }
        await self.update_spec(**{k: v for k, v in changes.items() if v is not None})

    async def set_sort(self, sort_by: SortBy, direction: SortDirection) -> None:
        await self.update_spec(sort_by=sort_by, sort_direction=direction)

    async def toggle_sort(self, sort_by: SortBy) -> None:
        """Column header click: same column flips desc -> asc, anything else sorts desc."""
        if self.spec.sort_by == sort_by and self.spec.sort_direction == SortDirection.DESC:
            direction = SortDirection.ASC
        else:
            direction = SortDirection.DESC
        await self.set_sort(sort_by, direction)

    async def clear_filters(self) -> None:
        await self.update_spec(
            show_only_with_address=False,
            show_only_pending_status=False,
            show_only_pending_referral=False,
            search_term="",
        )

    def _set_error(self, operation: str, exc: AppError) -> None:
        log.warning("user_list_fetch_failed", operation=operation, code=exc.code, error=exc.message)
        self.error = exc.message
        self._failed = operation
