"""Cursor pagination helpers.

The cursor is opaque to clients: base64 JSON naming the last document the
store returned, so the next page resumes right after it.
"""

import base64
import json
from typing import Generic, TypeVar

from pydantic import BaseModel

from minativault.core.exceptions import BadRequestError

T = TypeVar("T")

MAX_PAGE_SIZE = 100


class CursorPage(BaseModel, Generic[T]):
    items: list[T]
    next_cursor: str | None = None
    has_more: bool = False


def clamp_page_size(page_size: int, max_page_size: int = MAX_PAGE_SIZE) -> int:
    return max(1, min(page_size, max_page_size))


def encode_cursor(doc_id: str) -> str:
    payload = {"id": doc_id}
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()


def decode_cursor(cursor: str | None) -> str | None:
    """Return the document id named by the cursor, or None for the first page.

    Raises:
        BadRequestError: If the cursor is malformed.
    """
    if not cursor:
        return None
    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode()))
    except (ValueError, TypeError) as e:
        raise BadRequestError("Invalid cursor") from e
    doc_id = data.get("id") if isinstance(data, dict) else None
    if not isinstance(doc_id, str) or not doc_id:
        raise BadRequestError("Invalid cursor")
    return doc_id
