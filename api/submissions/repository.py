"""
Submission review: approve (create the target resource) or reject.

Submission status values are lowercase: pending, needs_review, approved,
rejected.
"""

from __future__ import annotations

from typing import Any, Mapping

from core import db
from core.oplog import log_operation
from resources.errors import ResourceNotFound, ValidationFailed, wrap_errors
from resources.repository import ResourceManager
from resources.statements import quote_ident

APPROVABLE_STATUSES = ["pending", "needs_review"]

# Submission columns that point back at the resource an approval created.
_LINK_COLUMNS = {"restaurants": "restaurant_id", "dishes": "dish_id"}


def _merge_context(
    allowed: tuple[str, ...],
    item_data: Mapping[str, Any],
    *,
    city_id: int | None,
    neighborhood_id: int | None,
    place_id: str | None,
    submitted_by: int | None,
) -> dict[str, Any]:
    payload = dict(item_data)
    context = {
        "city_id": city_id,
        "neighborhood_id": neighborhood_id,
        "google_place_id": place_id,
        "user_id": submitted_by,
    }
    for column, value in context.items():
        # Explicit item data wins over review context.
        if value is not None and column in allowed and payload.get(column) in (None, ""):
            payload[column] = value
    return payload


class SubmissionWorkflow:
    def __init__(self, manager: ResourceManager) -> None:
        self.manager = manager

    def _table(self) -> str:
        return quote_ident(self.manager.descriptor("submissions").table_name)

    async def approve(
        self,
        submission_id: int,
        item_type: str,
        item_data: Mapping[str, Any],
        *,
        city_id: int | None = None,
        neighborhood_id: int | None = None,
        place_id: str | None = None,
        submitted_by: int | None = None,
        reviewer_id: int | None = None,
    ) -> dict[str, Any]:
        """
        Create the resource and mark the submission approved in one
        transaction. Either both happen or neither does.
        """
        descriptor = self.manager.descriptor(item_type)
        if descriptor.name == "submissions":
            raise ValidationFailed("A submission cannot be approved into another submission.")

        payload = _merge_context(
            descriptor.create_columns,
            item_data,
            city_id=city_id,
            neighborhood_id=neighborhood_id,
            place_id=place_id,
            submitted_by=submitted_by,
        )

        log_operation(
            "info", "approve_submission", "submissions", "Approving submission", id=submission_id, item_type=descriptor.name
        )

        with wrap_errors("approve_submission", "submissions"):
            async with db.connection() as conn:
                async with conn.transaction():
                    created = await self.manager.create(descriptor.name, payload, conn=conn)

                    assignments = ["status = $1", "reviewed_at = now()", "reviewed_by = $2"]
                    params: list[Any] = ["approved", reviewer_id]
                    link_column = _LINK_COLUMNS.get(descriptor.name)
                    if link_column is not None and created.get("id") is not None:
                        params.append(int(created["id"]))
                        assignments.append(f"{quote_ident(link_column)} = ${len(params)}")
                    params.extend([submission_id, APPROVABLE_STATUSES])
                    n = len(params)

                    updated = await db.fetch_one(
                        f"""
                        UPDATE {self._table()}
                        SET {", ".join(assignments)}
                        WHERE id = ${n - 1}
                          AND status = ANY(${n}::text[])
                        RETURNING *
                        """,
                        *params,
                        conn=conn,
                    )
                    if updated is None:
                        # Raising inside the block rolls back the insert too.
                        raise ResourceNotFound("submissions", submission_id)

        log_operation(
            "info",
            "approve_submission",
            "submissions",
            "Submission approved",
            id=submission_id,
            item_type=descriptor.name,
            created_id=created.get("id"),
        )
        return created

    async def reject(
        self,
        submission_id: int,
        reason: str,
        reviewer_id: int | None = None,
    ) -> dict[str, Any] | None:
        """
        Reject a pending submission. Returns None when the submission does not
        exist or is no longer pending.
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailed("A rejection reason is required.")

        with wrap_errors("reject_submission", "submissions"):
            row = await db.fetch_one(
                f"""
                UPDATE {self._table()}
                SET status = $1,
                    reviewed_at = now(),
                    reviewed_by = $2,
                    rejection_reason = $3
                WHERE id = $4
                  AND status = $5
                RETURNING *
                """,
                "rejected",
                reviewer_id,
                reason,
                submission_id,
                "pending",
            )

        if row is None:
            log_operation("warn", "reject_submission", "submissions", "Submission not found or not pending", id=submission_id)
            return None

        log_operation("info", "reject_submission", "submissions", "Submission rejected", id=submission_id)
        descriptor = self.manager.descriptor("submissions")
        return descriptor.formatter(row) or row
