"""Tests for the admin HTTP surface."""

import pytest

from resources.errors import AdminModelError, StaleChange
from resources.router import status_for


def test_health(test_client):
    response = test_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_unknown_resource_type_is_400(test_client, fake_conn):
    response = test_client.get("/admin/widgets")
    assert response.status_code == 400
    assert response.json()["detail"] == "Unsupported resource type: widgets"
    assert fake_conn.calls == []


def test_list_passes_filters_and_pagination(test_client, fake_conn):
    fake_conn.on("count(*)", {"count": 1})
    fake_conn.on("SELECT d.*", [{"id": 1, "name": "Pie", "restaurant_id": 2, "restaurant_name": "Joe's"}])

    response = test_client.get("/admin/dishes?page=1&limit=5&sort=name&order=desc&name=pie&restaurant_id=2")

    assert response.status_code == 200
    body = response.json()
    assert body["items"][0]["restaurant_name"] == "Joe's"
    assert body["pagination"]["total_items"] == 1
    assert body["pagination"]["items_per_page"] == 5
    (sql, args), = fake_conn.sql_calls("SELECT d.*")
    assert 'ORDER BY d."name" DESC' in sql
    assert args == ("%pie%", 2, 5, 0)


def test_get_missing_resource_is_404(test_client, fake_conn):
    response = test_client.get("/admin/restaurants/99")
    assert response.status_code == 404


def test_create_without_allowed_columns_is_400(test_client, fake_conn):
    response = test_client.post("/admin/restaurants", json={"is_admin": True})
    assert response.status_code == 400
    assert "No valid columns" in response.json()["detail"]


def test_database_failure_is_500_without_details(test_client, fake_conn):
    fake_conn.on("UPDATE", RuntimeError("password authentication failed for user admin"))

    response = test_client.put("/admin/cities/1", json={"name": "Austin"})

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal admin error."}


def test_delete_returns_ok(test_client, fake_conn):
    fake_conn.on("DELETE FROM", {"id": 3, "name": "tacos"})
    response = test_client.delete("/admin/hashtags/3")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "id": 3}


def test_lookups_are_not_taken_for_resource_ids(test_client, fake_conn):
    fake_conn.on("SELECT id, name", [{"id": 1, "name": "Austin"}])

    response = test_client.get("/admin/lookups/cities")

    assert response.status_code == 200
    assert response.json() == {"items": [{"id": 1, "name": "Austin"}], "count": 1}
    assert test_client.get("/admin/lookups/dishes").status_code == 400


def test_bulk_add_endpoint(test_client, fake_conn):
    fake_conn.on("INSERT INTO", lambda sql, args: {"id": 1, "name": args[0]})

    response = test_client.post("/admin/hashtags/bulk", json={"items": [{"name": "tacos"}], "actor_id": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["success_count"] == 1
    assert body["created_items"] == [{"id": 1, "name": "tacos"}]


def test_check_existing_endpoint(test_client, fake_conn):
    fake_conn.on('FROM "cities"', {"id": 4, "name": "Austin"})

    response = test_client.post("/admin/cities/check-existing", json={"items": [{"name": "austin"}, {}]})

    assert response.status_code == 200
    results = response.json()["results"]
    assert results[0]["existing"] == {"id": 4, "name": "Austin"}
    assert results[1] == {"item": {}, "existing": None}


def test_validate_endpoint(test_client, fake_conn):
    response = test_client.post("/admin/cities/validate", json={"items": [{"name": " Austin"}, {}]})

    assert response.status_code == 200
    body = response.json()
    assert body["valid"][0]["item"] == {"name": "Austin"}
    assert body["invalid"][0]["errors"] == ["Missing required field: name"]


def test_analysis_route_is_not_a_resource_id(test_client, fake_conn):
    fake_conn.on('SELECT * FROM "hashtags"', [{"id": 3, "name": "tacos"}])

    response = test_client.get("/admin/hashtags/analysis")

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["changes"][0]["proposed_value"] == "#tacos"


def test_apply_changes_by_payload(test_client, fake_conn):
    fake_conn.on("FOR UPDATE OF t", {"id": 3, "name": "tacos"})
    fake_conn.on('UPDATE "hashtags" SET', {"id": 3, "name": "#tacos"})
    change = {
        "change_id": "hashtags_3_name_format_x",
        "resource_type": "hashtags",
        "resource_id": 3,
        "field": "name",
        "current_value": "tacos",
        "proposed_value": "#tacos",
        "change_type": "format",
    }

    response = test_client.post("/admin/hashtags/changes/apply", json={"changes": [change]})

    assert response.status_code == 200
    body = response.json()
    assert body["success_count"] == 1
    assert body["applied_changes"][0]["new_value"] == "#tacos"
    assert fake_conn.tx_log == ["BEGIN", "SAVEPOINT", "RELEASE SAVEPOINT", "COMMIT"]


def test_apply_changes_needs_a_selection(test_client, fake_conn):
    response = test_client.post("/admin/hashtags/changes/apply", json={"dry_run": True})
    assert response.status_code == 422


def test_reject_changes_by_id(test_client, fake_conn):
    fake_conn.on('SELECT * FROM "hashtags"', [{"id": 3, "name": "tacos"}])
    analysis = test_client.get("/admin/hashtags/analysis").json()
    change_id = analysis["changes"][0]["change_id"]

    response = test_client.post(
        "/admin/hashtags/changes/reject", json={"change_ids": [change_id], "reason": "Keep as is"}
    )

    assert response.status_code == 200
    rejected = response.json()["rejected_changes"]
    assert [r["change_id"] for r in rejected] == [change_id]
    assert rejected[0]["rejection_reason"] == "Keep as is"


def test_reject_submission_not_pending_is_404(test_client, fake_conn):
    response = test_client.post("/admin/submissions/5/reject", json={"reason": "Duplicate", "reviewer_id": 1})
    assert response.status_code == 404


def test_approve_submission_endpoint(test_client, fake_conn):
    fake_conn.on("INSERT INTO", {"id": 11, "name": "Joe's Pizza"})
    fake_conn.on('UPDATE "submissions"', {"id": 5, "status": "approved"})

    response = test_client.post(
        "/admin/submissions/5/approve",
        json={"item_type": "restaurants", "item_data": {"name": "Joe's Pizza"}, "reviewer_id": 1},
    )

    assert response.status_code == 200
    assert response.json()["item"]["id"] == 11


@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (StaleChange("name", "a", "b"), 409),
        (AdminModelError("update", "cities", RuntimeError("x")), 500),
    ],
)
def test_status_mapping(error, status_code):
    assert status_for(error) == status_code
