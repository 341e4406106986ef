"""Tests for applying and rejecting proposed changes."""

from decimal import Decimal

import pytest

from quality.analyzer import ProposedChange
from quality.changes import ApplyOptions, ChangeWorkflow, same_value
from resources.errors import AdminModelError

LOCKED_READ = "FOR UPDATE OF r"
RESTAURANT_UPDATE = 'UPDATE "restaurants" SET'


def _change(resource_id=1, field="name", current="joe's pizza", proposed="Joe's Pizza", change_type="title_case"):
    return ProposedChange.build("restaurants", resource_id, field, current, proposed, change_type, "test")


@pytest.fixture
def workflow(manager):
    return ChangeWorkflow(manager)


@pytest.mark.asyncio
async def test_apply_updates_single_field_and_commits(workflow, fake_conn):
    fake_conn.on(LOCKED_READ, {"id": 1, "name": "joe's pizza", "phone": "x"})
    fake_conn.on(RESTAURANT_UPDATE, {"id": 1, "name": "Joe's Pizza"})
    change = _change()

    result = await workflow.apply_changes("restaurants", [change])

    assert result.success_count == 1
    assert result.failure_count == 0
    (applied,) = result.applied_changes
    assert applied.change_id == change.change_id
    assert (applied.old_value, applied.new_value, applied.status) == ("joe's pizza", "Joe's Pizza", "applied")
    (sql, args), = fake_conn.sql_calls(RESTAURANT_UPDATE)
    assert sql == 'UPDATE "restaurants" SET "name" = $1 WHERE "id" = $2 RETURNING *'
    assert args == ("Joe's Pizza", 1)
    assert fake_conn.tx_log == ["BEGIN", "SAVEPOINT", "RELEASE SAVEPOINT", "COMMIT"]


@pytest.mark.asyncio
async def test_stale_change_is_isolated(workflow, fake_conn):
    def live_row(sql, args):
        # Row 2 was edited after analysis.
        return {"id": args[0], "name": "joe's pizza" if args[0] == 1 else "Someone Else's Edit"}

    fake_conn.on(LOCKED_READ, live_row)
    fake_conn.on(RESTAURANT_UPDATE, lambda sql, args: {"id": args[-1], "name": args[0]})

    result = await workflow.apply_changes("restaurants", [_change(1), _change(2)])

    assert result.success_count == 1
    assert result.failure_count == 1
    assert result.errors[0]["change_id"] == _change(2).change_id
    assert "has been modified since change was proposed" in result.errors[0]["error"]
    assert [args[-1] for _, args in fake_conn.sql_calls(RESTAURANT_UPDATE)] == [1]
    assert fake_conn.tx_log == [
        "BEGIN",
        "SAVEPOINT",
        "RELEASE SAVEPOINT",
        "SAVEPOINT",
        "ROLLBACK TO SAVEPOINT",
        "COMMIT",
    ]


@pytest.mark.asyncio
async def test_all_failures_roll_back(workflow, fake_conn):
    fake_conn.on(LOCKED_READ, {"id": 1, "name": "changed"})

    result = await workflow.apply_changes("restaurants", [_change(1)])

    assert result.success_count == 0
    assert result.failure_count == 1
    assert fake_conn.sql_calls(RESTAURANT_UPDATE) == []
    assert fake_conn.tx_log[-1] == "ROLLBACK"


@pytest.mark.asyncio
async def test_missing_row_fails_the_change(workflow, fake_conn):
    result = await workflow.apply_changes("restaurants", [_change(99)])

    assert result.failure_count == 1
    assert "restaurants with id 99 not found" in result.errors[0]["error"]


@pytest.mark.asyncio
async def test_null_current_value_is_still_checked(workflow, fake_conn):
    # Address proposed from a place lookup while empty; someone filled it since.
    fake_conn.on(LOCKED_READ, {"id": 1, "address": "2 Other St"})
    change = _change(field="address", current=None, proposed="1 Main St", change_type="google_places")

    result = await workflow.apply_changes("restaurants", [change])

    assert result.failure_count == 1
    assert fake_conn.sql_calls(RESTAURANT_UPDATE) == []


@pytest.mark.asyncio
async def test_non_updatable_field_and_foreign_type_are_rejected(workflow, fake_conn):
    wrong_field = _change(field="id", current=1, proposed=2)
    wrong_type = ProposedChange.build("dishes", 1, "name", "pie", "Pie", "title_case", "test")

    result = await workflow.apply_changes("restaurants", [wrong_field, wrong_type])

    assert result.failure_count == 2
    assert "not updatable" in result.errors[0]["error"]
    assert "targets dishes" in result.errors[1]["error"]
    assert fake_conn.calls == []


@pytest.mark.asyncio
async def test_dry_run_validates_without_writing(workflow, fake_conn):
    fake_conn.on(LOCKED_READ, {"id": 1, "name": "joe's pizza"})

    result = await workflow.apply_changes("restaurants", [_change()], ApplyOptions(dry_run=True))

    assert result.success_count == 1
    assert result.applied_changes[0].status == "validated"
    assert fake_conn.sql_calls(RESTAURANT_UPDATE) == []
    assert fake_conn.tx_log[-1] == "ROLLBACK"


@pytest.mark.asyncio
async def test_unexpected_error_rolls_back_and_raises(workflow, fake_conn, monkeypatch):
    async def explode(*args, **kwargs):
        raise KeyError("bug")

    monkeypatch.setattr(workflow, "_apply_one", explode)

    with pytest.raises(AdminModelError):
        await workflow.apply_changes("restaurants", [_change()])

    assert fake_conn.tx_log == ["BEGIN", "SAVEPOINT", "ROLLBACK TO SAVEPOINT", "ROLLBACK"]


@pytest.mark.asyncio
async def test_reject_changes_is_bookkeeping_only(workflow, fake_conn):
    result = await workflow.reject_changes("restaurants", [_change(1), _change(2)])

    assert result.success_count == 2
    assert result.failure_count == 0
    assert {r.rejection_reason for r in result.rejected_changes} == {"Manually rejected by admin"}
    assert all(r.status == "rejected" for r in result.rejected_changes)
    assert fake_conn.calls == []

    custom = await workflow.reject_changes("restaurants", [_change(1)], reason="Brand spelling")
    assert custom.rejected_changes[0].rejection_reason == "Brand spelling"


@pytest.mark.parametrize(
    ("recorded", "live", "expected"),
    [
        (5, Decimal("5.00"), True),
        ("12.5", 12.5, True),
        (None, "", True),
        ("a", "b", False),
        (None, "filled", False),
        (True, 1, False),
        ("02134", "2134", False),
        ("1.50", "1.5", False),
        ("1.50", Decimal("1.5"), True),
        (True, True, True),
    ],
)
def test_same_value(recorded, live, expected):
    assert same_value(recorded, live) is expected


@pytest.mark.asyncio
async def test_leading_zero_edit_is_stale(workflow, fake_conn):
    fake_conn.on(LOCKED_READ, {"id": 1, "zip_code": "2134"})
    fake_conn.on(RESTAURANT_UPDATE, {"id": 1, "zip_code": "02139"})
    change = _change(field="zip_code", current="02134", proposed="02139", change_type="zip_lookup")

    result = await workflow.apply_changes("restaurants", [change])

    assert result.success_count == 0
    assert result.failure_count == 1
    assert "has been modified since change was proposed" in result.errors[0]["error"]
    assert fake_conn.sql_calls(RESTAURANT_UPDATE) == []
    assert fake_conn.tx_log == ["BEGIN", "SAVEPOINT", "ROLLBACK TO SAVEPOINT", "ROLLBACK"]
