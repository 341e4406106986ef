"""
Submission review endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from . import schemas
from .dependencies import get_submission_workflow
from .repository import SubmissionWorkflow

router = APIRouter(prefix="/admin/submissions")


@router.post("/{submission_id}/approve")
async def approve_submission(
    submission_id: int,
    request: schemas.ApproveSubmissionRequest,
    workflow: SubmissionWorkflow = Depends(get_submission_workflow),
) -> dict:
    created = await workflow.approve(
        submission_id,
        request.item_type,
        request.item_data,
        city_id=request.city_id,
        neighborhood_id=request.neighborhood_id,
        place_id=request.place_id,
        submitted_by=request.submitted_by,
        reviewer_id=request.reviewer_id,
    )
    return {"ok": True, "submission_id": submission_id, "item_type": request.item_type, "item": created}


@router.post("/{submission_id}/reject")
async def reject_submission(
    submission_id: int,
    request: schemas.RejectSubmissionRequest,
    workflow: SubmissionWorkflow = Depends(get_submission_workflow),
) -> dict:
    row = await workflow.reject(submission_id, request.reason, reviewer_id=request.reviewer_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Submission not found or not pending.")
    return {"ok": True, "submission": row}
