"""
Admin resource endpoints (generic CRUD, bulk import, duplicate checks).

`lookup_router` must be included before `router`: `/admin/lookups/{type}`
would otherwise be captured by `/admin/{resource_type}/{resource_id}`.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from core.oplog import log_operation

from . import schemas
from .dependencies import get_manager
from .errors import (
    AdminError,
    AdminModelError,
    InsertReturnedNoRow,
    NoValidColumns,
    ResourceNotFound,
    StaleChange,
    UnsupportedLookupType,
    UnsupportedResourceType,
    ValidationFailed,
)
from .repository import ResourceManager

router = APIRouter(prefix="/admin")
lookup_router = APIRouter(prefix="/admin")

_LIST_CONTROL_PARAMS = frozenset({"page", "limit", "sort", "order"})

_STATUS_BY_ERROR: tuple[tuple[type[AdminError], int], ...] = (
    (UnsupportedResourceType, status.HTTP_400_BAD_REQUEST),
    (UnsupportedLookupType, status.HTTP_400_BAD_REQUEST),
    (NoValidColumns, status.HTTP_400_BAD_REQUEST),
    (ValidationFailed, status.HTTP_400_BAD_REQUEST),
    (ResourceNotFound, status.HTTP_404_NOT_FOUND),
    (StaleChange, status.HTTP_409_CONFLICT),
    (InsertReturnedNoRow, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (AdminModelError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(exc: AdminError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def admin_error_handler(request: Request, exc: AdminError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        # Database details stay in the log.
        log_operation("error", request.method, request.url.path, "Request failed", error=str(exc))
        return JSONResponse(status_code=status_code, content={"detail": "Internal admin error."})

    content: dict[str, Any] = {"detail": str(exc)}
    if isinstance(exc, ValidationFailed) and exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=status_code, content=content)


def _filter_value(column: str, raw: str) -> Any:
    # Id columns filter by equality; everything else is a substring match.
    if (column == "id" or column.endswith("_id")) and raw.strip().isdigit():
        return int(raw.strip())
    return raw


def _not_found(resource_type: str, resource_id: int) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{resource_type} with id {resource_id} not found")


@lookup_router.get("/lookups/{lookup_type}")
async def get_lookup(
    lookup_type: str,
    manager: ResourceManager = Depends(get_manager),
) -> dict:
    lookup = await manager.get_lookup(lookup_type)
    return {"items": [{"id": key, "name": name} for key, name in lookup.items()], "count": len(lookup)}


@router.get("/{resource_type}")
async def list_resources(
    resource_type: str,
    request: Request,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1, le=500),
    sort: str = Query("id", max_length=100),
    order: str = Query("asc", max_length=4),
    manager: ResourceManager = Depends(get_manager),
) -> dict:
    """
    Paginated list. Any other query parameter is a column filter; unknown
    columns are ignored.
    """
    filters = {
        key: _filter_value(key, value)
        for key, value in request.query_params.items()
        if key not in _LIST_CONTROL_PARAMS
    }
    result = await manager.find_all(resource_type, page, limit, sort, order, filters)
    return {"items": result.items, "pagination": asdict(result.pagination)}


@router.post("/{resource_type}", status_code=201)
async def create_resource(
    resource_type: str,
    data: dict[str, Any] = Body(...),
    manager: ResourceManager = Depends(get_manager),
) -> dict:
    return await manager.create(resource_type, data)


@router.post("/{resource_type}/bulk")
async def bulk_add(
    resource_type: str,
    request: schemas.BulkAddRequest,
    manager: ResourceManager = Depends(get_manager),
) -> dict:
    result = await manager.bulk_add(resource_type, request.items, actor_id=request.actor_id)
    return asdict(result)


@router.post("/{resource_type}/check-existing")
async def check_existing(
    resource_type: str,
    request: schemas.BatchItemsRequest,
    manager: ResourceManager = Depends(get_manager),
) -> dict:
    results = await manager.check_existing(resource_type, request.items)
    return {"results": [asdict(r) for r in results], "count": len(results)}


@router.get("/{resource_type}/{resource_id}")
async def get_resource(
    resource_type: str,
    resource_id: int,
    manager: ResourceManager = Depends(get_manager),
) -> dict:
    row = await manager.find_by_id(resource_type, resource_id)
    if row is None:
        raise _not_found(resource_type, resource_id)
    return row


@router.put("/{resource_type}/{resource_id}")
async def update_resource(
    resource_type: str,
    resource_id: int,
    data: dict[str, Any] = Body(...),
    manager: ResourceManager = Depends(get_manager),
) -> dict:
    row = await manager.update(resource_type, resource_id, data)
    if row is None:
        raise _not_found(resource_type, resource_id)
    return row


@router.delete("/{resource_type}/{resource_id}")
async def delete_resource(
    resource_type: str,
    resource_id: int,
    manager: ResourceManager = Depends(get_manager),
) -> dict:
    row = await manager.delete(resource_type, resource_id)
    if row is None:
        raise _not_found(resource_type, resource_id)
    return {"ok": True, "id": resource_id}
