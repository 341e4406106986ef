"""
Data-quality endpoints: analysis, change apply/reject, bulk validation.

Include this router before the generic resource router so
`/admin/{type}/analysis` is not read as a resource id.
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from resources import schemas as resource_schemas

from . import schemas
from .analyzer import DataAnalyzer, ProposedChange
from .changes import ApplyOptions, ChangeWorkflow
from .dependencies import get_analyzer, get_change_workflow, get_validator
from .validation import BulkValidator

router = APIRouter(prefix="/admin")


async def _selected_changes(
    resource_type: str,
    request: schemas.ApplyChangesRequest | schemas.RejectChangesRequest,
    analyzer: DataAnalyzer,
) -> list[ProposedChange]:
    changes = [payload.to_change() for payload in request.changes]
    if request.change_ids:
        known = {change.change_id for change in changes}
        resolved = await analyzer.get_changes_by_ids(resource_type, request.change_ids)
        changes.extend(change for change in resolved if change.change_id not in known)
    return changes


@router.get("/{resource_type}/analysis")
async def analyze(
    resource_type: str,
    analyzer: DataAnalyzer = Depends(get_analyzer),
) -> dict:
    changes = await analyzer.analyze(resource_type)
    return {"changes": [asdict(change) for change in changes], "count": len(changes)}


@router.post("/{resource_type}/changes/apply")
async def apply_changes(
    resource_type: str,
    request: schemas.ApplyChangesRequest,
    analyzer: DataAnalyzer = Depends(get_analyzer),
    workflow: ChangeWorkflow = Depends(get_change_workflow),
) -> dict:
    changes = await _selected_changes(resource_type, request, analyzer)
    result = await workflow.apply_changes(resource_type, changes, ApplyOptions(dry_run=request.dry_run))
    return asdict(result)


@router.post("/{resource_type}/changes/reject")
async def reject_changes(
    resource_type: str,
    request: schemas.RejectChangesRequest,
    analyzer: DataAnalyzer = Depends(get_analyzer),
    workflow: ChangeWorkflow = Depends(get_change_workflow),
) -> dict:
    changes = await _selected_changes(resource_type, request, analyzer)
    result = await workflow.reject_changes(resource_type, changes, request.reason)
    return asdict(result)


@router.post("/{resource_type}/validate")
async def validate_bulk(
    resource_type: str,
    request: resource_schemas.BatchItemsRequest,
    validator: BulkValidator = Depends(get_validator),
) -> dict:
    report = await validator.validate_bulk_data(resource_type, request.items)
    return asdict(report)
