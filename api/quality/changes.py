"""
Applying and rejecting proposed changes.

`apply_changes` runs on one connection inside one transaction. Each change
gets a savepoint: the live row is re-read under a row lock, compared with the
value the change was proposed against, then updated one field at a time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Sequence

import asyncpg

from core import db
from core.oplog import log_operation
from resources.errors import AdminError, ResourceNotFound, StaleChange, ValidationFailed, wrap_errors
from resources.repository import ResourceManager

from .analyzer import ProposedChange

DEFAULT_REJECTION_REASON = "Manually rejected by admin"

_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")


@dataclass(frozen=True)
class ApplyOptions:
    # Run every check, write nothing.
    dry_run: bool = False


@dataclass(frozen=True)
class AppliedChange:
    change_id: str
    resource_id: int
    resource_type: str
    field: str
    old_value: Any
    new_value: Any
    applied_at: datetime
    status: str = "applied"


@dataclass(frozen=True)
class RejectedChange:
    change_id: str
    resource_id: int
    resource_type: str
    field: str
    rejected_at: datetime
    rejection_reason: str
    status: str = "rejected"


@dataclass
class ChangeBatchResult:
    success_count: int = 0
    failure_count: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    applied_changes: list[AppliedChange] = field(default_factory=list)


@dataclass(frozen=True)
class RejectionResult:
    success_count: int
    failure_count: int
    errors: list[dict[str, Any]]
    rejected_changes: list[RejectedChange]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _as_decimal(value: Any) -> Decimal | None:
    if _is_number(value):
        return Decimal(str(value))
    if isinstance(value, str) and _NUMERIC.match(value.strip()):
        return Decimal(value.strip())
    return None


def same_value(recorded: Any, live: Any) -> bool:
    """
    Compare a recorded value with the live column value. Empty string and
    NULL are equal. Two strings must match exactly ("02134" != "2134").
    Numbers compare by value (5 == 5.0 == Decimal("5")), and a numeric
    string matches a number of the same value. Booleans only match booleans.
    """
    if _blank(recorded) or _blank(live):
        return _blank(recorded) and _blank(live)
    if isinstance(recorded, bool) or isinstance(live, bool):
        return isinstance(recorded, bool) and isinstance(live, bool) and recorded == live
    if isinstance(recorded, str) and isinstance(live, str):
        return recorded == live
    if _is_number(recorded) or _is_number(live):
        left, right = _as_decimal(recorded), _as_decimal(live)
        return left is not None and right is not None and left == right
    return recorded == live


class ChangeWorkflow:
    def __init__(self, manager: ResourceManager) -> None:
        self.manager = manager

    async def _apply_one(
        self,
        resource_type: str,
        change: ProposedChange,
        conn: asyncpg.Connection,
        options: ApplyOptions,
    ) -> AppliedChange:
        descriptor = self.manager.descriptor(resource_type)
        if self.manager.registry.get_descriptor(change.resource_type).name != descriptor.name:
            raise ValidationFailed(f"Change {change.change_id} targets {change.resource_type}, not {descriptor.name}")
        if change.field not in descriptor.update_columns:
            raise ValidationFailed(f"Field {change.field} is not updatable on {descriptor.name}")

        row = await self.manager.find_by_id(
            descriptor.name, change.resource_id, conn=conn, formatted=False, for_update=True
        )
        if row is None:
            raise ResourceNotFound(descriptor.name, change.resource_id)

        live = row.get(change.field)
        if not same_value(change.current_value, live):
            raise StaleChange(change.field, change.current_value, live)

        if not options.dry_run:
            updated = await self.manager.update(
                descriptor.name, change.resource_id, {change.field: change.proposed_value}, conn=conn
            )
            if updated is None:
                raise ResourceNotFound(descriptor.name, change.resource_id)

        return AppliedChange(
            change_id=change.change_id,
            resource_id=change.resource_id,
            resource_type=descriptor.name,
            field=change.field,
            old_value=change.current_value,
            new_value=change.proposed_value,
            applied_at=_now(),
            status="validated" if options.dry_run else "applied",
        )

    async def apply_changes(
        self,
        resource_type: str,
        changes: Sequence[ProposedChange],
        options: ApplyOptions | None = None,
    ) -> ChangeBatchResult:
        options = options or ApplyOptions()
        descriptor = self.manager.descriptor(resource_type)
        result = ChangeBatchResult()
        if not changes:
            return result

        log_operation(
            "info", "apply_changes", descriptor.name, "Applying changes", count=len(changes), dry_run=options.dry_run
        )

        with wrap_errors("apply_changes", descriptor.name):
            async with db.connection() as conn:
                transaction = conn.transaction()
                await transaction.start()
                try:
                    for change in changes:
                        try:
                            async with conn.transaction():
                                applied = await self._apply_one(descriptor.name, change, conn, options)
                        except AdminError as exc:
                            result.failure_count += 1
                            result.errors.append({"change_id": change.change_id, "error": str(exc), "change": change})
                            log_operation(
                                "warn",
                                "apply_changes",
                                descriptor.name,
                                "Change failed",
                                change_id=change.change_id,
                                error=str(exc),
                            )
                            continue
                        result.success_count += 1
                        result.applied_changes.append(applied)
                except BaseException:
                    await transaction.rollback()
                    raise

                if options.dry_run or result.success_count == 0:
                    await transaction.rollback()
                else:
                    await transaction.commit()

        log_operation(
            "info",
            "apply_changes",
            descriptor.name,
            "Finished applying changes",
            applied=result.success_count,
            failed=result.failure_count,
            committed=not options.dry_run and result.success_count > 0,
        )
        return result

    async def reject_changes(
        self,
        resource_type: str,
        changes: Sequence[ProposedChange],
        reason: str | None = None,
    ) -> RejectionResult:
        # Bookkeeping only: rejected proposals are not stored.
        descriptor = self.manager.descriptor(resource_type)
        reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
        rejected_at = _now()
        rejected = [
            RejectedChange(
                change_id=change.change_id,
                resource_id=change.resource_id,
                resource_type=change.resource_type,
                field=change.field,
                rejected_at=rejected_at,
                rejection_reason=reason,
            )
            for change in changes
        ]
        log_operation("info", "reject_changes", descriptor.name, "Rejected changes", count=len(rejected))
        return RejectionResult(success_count=len(rejected), failure_count=0, errors=[], rejected_changes=rejected)
