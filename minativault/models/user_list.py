from enum import Enum

from pydantic import BaseModel


class SortBy(str, Enum):
    JOIN_DATE = "joinDate"
    NAME = "name"
    MNTC_EARNED = "mntc_earned"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class UserListSpec(BaseModel):
    """Filter, search and sort options of one user list."""

    show_only_with_address: bool = False
    show_only_pending_status: bool = False
    show_only_pending_referral: bool = False
    search_term: str = ""
    sort_by: SortBy = SortBy.JOIN_DATE
    sort_direction: SortDirection = SortDirection.DESC

    @property
    def search_mode(self) -> bool:
        return bool(self.search_term.strip())

    @property
    def filters_active(self) -> bool:
        return self.show_only_with_address or self.show_only_pending_status or self.show_only_pending_referral
