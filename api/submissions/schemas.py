"""
Pydantic schemas for submission review endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ApproveSubmissionRequest(BaseModel):
    item_type: str = Field(..., min_length=1, max_length=100)
    item_data: dict[str, Any] = Field(default_factory=dict)
    city_id: int | None = None
    neighborhood_id: int | None = None
    place_id: str | None = Field(default=None, max_length=300)
    submitted_by: int | None = None
    reviewer_id: int | None = None


class RejectSubmissionRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
    reviewer_id: int | None = None
