from enum import Enum

from pydantic import BaseModel, Field


class ResolverState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    FOUND = "found"
    NONE_FOUND = "none_found"
    DELETING = "deleting"
    DELETED = "deleted"
    DELETE_FAILED = "delete_failed"


class DuplicateUser(BaseModel):
    id: str
    name: str
    username: str
    bep20_address: str
    join_date: str


class DuplicateScan(BaseModel):
    state: ResolverState
    duplicates: list[DuplicateUser] = Field(default_factory=list)
    deleted_count: int = 0
    error: str | None = None

    @property
    def ids(self) -> list[str]:
        return [d.id for d in self.duplicates]
