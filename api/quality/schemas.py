"""
Pydantic schemas for data-quality endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator

from .analyzer import ProposedChange


class ChangePayload(BaseModel):
    change_id: str = Field(..., min_length=1, max_length=300)
    resource_type: str = Field(..., min_length=1, max_length=100)
    resource_id: int
    field: str = Field(..., min_length=1, max_length=100)
    current_value: Any = None
    proposed_value: Any = None
    change_type: str = ""
    change_reason: str = ""
    status: str = "pending"

    def to_change(self) -> ProposedChange:
        return ProposedChange(**self.model_dump())


class _ChangeSelection(BaseModel):
    """
    Either full change objects or ids from a previous analysis run.
    Ids are resolved by re-running the analysis.
    """

    changes: list[ChangePayload] = Field(default_factory=list)
    change_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_selection(self):
        if not self.changes and not self.change_ids:
            raise ValueError("Provide changes or change_ids.")
        return self


class ApplyChangesRequest(_ChangeSelection):
    dry_run: bool = False


class RejectChangesRequest(_ChangeSelection):
    reason: str | None = Field(default=None, max_length=1000)
