"""
Pydantic schemas for the generic admin resource endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

MAX_BATCH_ITEMS = 5000


class BulkAddRequest(BaseModel):
    items: list[dict[str, Any]] = Field(..., max_length=MAX_BATCH_ITEMS)
    actor_id: int | None = None


class BatchItemsRequest(BaseModel):
    """
    Shared shape for check-existing and validate: items are checked one by
    one, so malformed entries are reported rather than rejected up front.
    """

    items: list[Any] = Field(..., max_length=MAX_BATCH_ITEMS)
