"""
Generic resource persistence for the admin engine.

`ResourceManager` turns statements from `StatementBuilder` into asyncpg
calls. Every method takes an optional `conn`; pass one to run inside a
caller's transaction, leave it out to run on the pool.
"""

from __future__ import annotations

import asyncio
import math
import os
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

import asyncpg

from core import db
from core.oplog import log_operation

from .errors import AdminError, InsertReturnedNoRow, wrap_errors
from .registry import ResourceDescriptor, ResourceRegistry
from .statements import DEFAULT_PAGE_SIZE, StatementBuilder


def default_page_size() -> int:
    raw = os.environ.get("ADMIN_DEFAULT_PAGE_SIZE", "").strip()
    try:
        size = int(raw) if raw else DEFAULT_PAGE_SIZE
    except ValueError:
        return DEFAULT_PAGE_SIZE
    return size if size > 0 else DEFAULT_PAGE_SIZE


@dataclass(frozen=True)
class Pagination:
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_previous_page: bool


@dataclass(frozen=True)
class Page:
    items: list[dict[str, Any]]
    pagination: Pagination


@dataclass
class BulkAddResult:
    success_count: int = 0
    failure_count: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    created_items: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class ExistenceResult:
    item: Any
    # None when the check could not be made (missing key fields or a failed query).
    existing: dict[str, Any] | None


def _format(descriptor: ResourceDescriptor, row: dict[str, Any]) -> dict[str, Any]:
    formatted = descriptor.formatter(row)
    return formatted if formatted is not None else row


class ResourceManager:
    def __init__(self, registry: ResourceRegistry, builder: StatementBuilder | None = None) -> None:
        self.registry = registry
        self.builder = builder or StatementBuilder(registry)

    def descriptor(self, resource_type: str) -> ResourceDescriptor:
        return self.registry.get_descriptor(resource_type)

    async def find_all(
        self,
        resource_type: str,
        page: int = 1,
        page_size: int | None = None,
        sort: str | None = "id",
        order: str | None = "asc",
        filters: Mapping[str, Any] | None = None,
        *,
        conn: asyncpg.Connection | None = None,
    ) -> Page:
        descriptor = self.descriptor(resource_type)
        statements = self.builder.build_list(
            descriptor.name,
            page=page,
            page_size=page_size if page_size is not None else default_page_size(),
            sort_column=sort,
            sort_direction=order,
            filters=filters,
        )

        with wrap_errors("find_all", descriptor.name):
            if conn is None:
                # Pool calls check out separate connections, so both run at once.
                rows, count_row = await asyncio.gather(
                    db.fetch_all(statements.rows.sql, *statements.rows.params),
                    db.fetch_one(statements.count.sql, *statements.count.params),
                )
            else:
                rows = await db.fetch_all(statements.rows.sql, *statements.rows.params, conn=conn)
                count_row = await db.fetch_one(statements.count.sql, *statements.count.params, conn=conn)

        total_items = int((count_row or {}).get("count") or 0)
        total_pages = math.ceil(total_items / statements.page_size) if total_items else 0
        pagination = Pagination(
            current_page=statements.page,
            total_pages=total_pages,
            total_items=total_items,
            items_per_page=statements.page_size,
            has_next_page=statements.page < total_pages,
            has_previous_page=statements.page > 1,
        )
        log_operation(
            "debug",
            "find_all",
            descriptor.name,
            "Listed resources",
            page=statements.page,
            count=len(rows),
            total=total_items,
        )
        return Page(items=[_format(descriptor, row) for row in rows], pagination=pagination)

    async def find_by_id(
        self,
        resource_type: str,
        resource_id: int,
        *,
        conn: asyncpg.Connection | None = None,
        formatted: bool = True,
        for_update: bool = False,
    ) -> dict[str, Any] | None:
        descriptor = self.descriptor(resource_type)
        statement = self.builder.build_get_by_id(descriptor.name, resource_id, for_update=for_update)
        with wrap_errors("find_by_id", descriptor.name):
            row = await db.fetch_one(statement.sql, *statement.params, conn=conn)
        if row is None:
            return None
        return _format(descriptor, row) if formatted else row

    async def create(
        self,
        resource_type: str,
        data: Mapping[str, Any],
        *,
        conn: asyncpg.Connection | None = None,
    ) -> dict[str, Any]:
        descriptor = self.descriptor(resource_type)
        statement = self.builder.build_create(descriptor.name, data)
        with wrap_errors("create", descriptor.name):
            row = await db.fetch_one(statement.sql, *statement.params, conn=conn)
        if row is None:
            raise InsertReturnedNoRow(descriptor.name)
        log_operation("info", "create", descriptor.name, "Created resource", id=row.get("id"))
        return _format(descriptor, row)

    async def update(
        self,
        resource_type: str,
        resource_id: int,
        data: Mapping[str, Any],
        *,
        conn: asyncpg.Connection | None = None,
    ) -> dict[str, Any] | None:
        descriptor = self.descriptor(resource_type)
        statement = self.builder.build_update(descriptor.name, resource_id, data)
        with wrap_errors("update", descriptor.name):
            row = await db.fetch_one(statement.sql, *statement.params, conn=conn)
        if row is None:
            log_operation("warn", "update", descriptor.name, "Resource not found", id=resource_id)
            return None
        log_operation("info", "update", descriptor.name, "Updated resource", id=resource_id)
        return _format(descriptor, row)

    async def delete(
        self,
        resource_type: str,
        resource_id: int,
        *,
        conn: asyncpg.Connection | None = None,
    ) -> dict[str, Any] | None:
        descriptor = self.descriptor(resource_type)
        statement = self.builder.build_delete(descriptor.name, resource_id)
        with wrap_errors("delete", descriptor.name):
            row = await db.fetch_one(statement.sql, *statement.params, conn=conn)
        if row is None:
            return None
        log_operation("info", "delete", descriptor.name, "Deleted resource", id=resource_id)
        return _format(descriptor, row)

    async def bulk_add(
        self,
        resource_type: str,
        items: Sequence[Mapping[str, Any]],
        actor_id: int | None = None,
    ) -> BulkAddResult:
        """
        Insert many rows on one connection inside one transaction.

        Each item gets its own savepoint, so one bad row does not abort the
        others. The transaction commits when at least one item was created
        and rolls back when every item failed.
        """
        descriptor = self.descriptor(resource_type)
        result = BulkAddResult()
        if not items:
            return result

        log_operation("info", "bulk_add", descriptor.name, "Starting bulk add", count=len(items), actor_id=actor_id)

        with wrap_errors("bulk_add", descriptor.name):
            async with db.connection() as conn:
                transaction = conn.transaction()
                await transaction.start()
                try:
                    for index, item in enumerate(items):
                        try:
                            async with conn.transaction():
                                created = await self.create(descriptor.name, item, conn=conn)
                        except AdminError as exc:
                            original = getattr(exc, "original_error", None)
                            result.failure_count += 1
                            result.errors.append(
                                {
                                    "index": index,
                                    "item": item,
                                    "error": str(exc),
                                    "detail": getattr(original, "detail", None),
                                }
                            )
                            continue
                        result.success_count += 1
                        result.created_items.append(created)
                except BaseException:
                    await transaction.rollback()
                    raise

                if result.success_count == 0:
                    await transaction.rollback()
                else:
                    await transaction.commit()

        log_operation(
            "info",
            "bulk_add",
            descriptor.name,
            "Bulk add finished",
            success=result.success_count,
            failed=result.failure_count,
        )
        return result

    async def check_existing(
        self,
        resource_type: str,
        items: Sequence[Any],
        *,
        conn: asyncpg.Connection | None = None,
    ) -> list[ExistenceResult]:
        descriptor = self.descriptor(resource_type)
        results: list[ExistenceResult] = []
        for item in items:
            statement = self.builder.build_existence_check(descriptor.name, item)
            if statement is None:
                results.append(ExistenceResult(item=item, existing=None))
                continue
            try:
                row = await db.fetch_one(statement.sql, *statement.params, conn=conn)
            except Exception as exc:
                # One failed probe must not sink the whole batch.
                log_operation("warn", "check_existing", descriptor.name, "Existence check failed", error=str(exc))
                row = None
            results.append(ExistenceResult(item=item, existing=_format(descriptor, row) if row else None))
        return results

    async def get_lookup(self, lookup_type: str, *, conn: asyncpg.Connection | None = None) -> dict[int, str]:
        statement = self.builder.build_lookup(lookup_type)
        with wrap_errors("get_lookup", lookup_type):
            rows = await db.fetch_all(statement.sql, *statement.params, conn=conn)
        return {int(row["id"]): row["name"] for row in rows}

    async def exists(
        self,
        resource_type: str,
        conditions: Mapping[str, Any],
        *,
        case_insensitive: Iterable[str] = (),
        conn: asyncpg.Connection | None = None,
    ) -> bool:
        statement = self.builder.build_exists(resource_type, conditions, case_insensitive=case_insensitive)
        with wrap_errors("exists", resource_type):
            row = await db.fetch_one(statement.sql, *statement.params, conn=conn)
        return row is not None

    async def get_name_by_id(
        self,
        lookup_type: str,
        resource_id: int,
        *,
        conn: asyncpg.Connection | None = None,
    ) -> str | None:
        statement = self.builder.build_name_by_id(lookup_type, resource_id)
        with wrap_errors("get_name_by_id", lookup_type):
            row = await db.fetch_one(statement.sql, *statement.params, conn=conn)
        return row["name"] if row else None

    async def lookup_neighborhood_by_zip(
        self,
        zip_code: str,
        *,
        conn: asyncpg.Connection | None = None,
    ) -> dict[str, Any] | None:
        statement = self.builder.build_zip_lookup(zip_code)
        with wrap_errors("lookup_neighborhood_by_zip", "neighborhoods"):
            return await db.fetch_one(statement.sql, *statement.params, conn=conn)

    async def scan_for_analysis(self, resource_type: str) -> list[dict[str, Any]]:
        """
        Raw rows (unformatted) in id order, narrowed by the descriptor's
        analysis filter.
        """
        descriptor = self.descriptor(resource_type)
        statement = self.builder.build_analysis_scan(descriptor.name)
        with wrap_errors("analyze", descriptor.name):
            return await db.fetch_all(statement.sql, *statement.params)
