"""
Presentation formatters: raw row dict -> API-facing dict.

A formatter returns None when the row is missing what it needs to describe
the resource (usually `id` or `name`); callers fall back to the raw row.
"""

from __future__ import annotations

from typing import Any

Row = dict[str, Any]


def _int_or_none(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _float_or_none(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


def identity(row: Row) -> Row:
    return row


def format_restaurant(row: Row) -> Row | None:
    if not row or not row.get("id") or not row.get("name"):
        return None
    return {
        "id": int(row["id"]),
        "name": row["name"],
        "description": row.get("description") or None,
        "cuisine": row.get("cuisine") or None,
        "price_range": row.get("price_range") or None,
        "address": row.get("address") or None,
        "zip_code": row.get("zip_code") or None,
        "phone": row.get("phone") or None,
        "website": row.get("website") or None,
        "instagram_handle": row.get("instagram_handle") or None,
        "google_place_id": row.get("google_place_id") or None,
        "latitude": _float_or_none(row.get("latitude")),
        "longitude": _float_or_none(row.get("longitude")),
        "city_id": _int_or_none(row.get("city_id")),
        "city_name": row.get("city_name") or None,
        "neighborhood_id": _int_or_none(row.get("neighborhood_id")),
        "neighborhood_name": row.get("neighborhood_name") or None,
        "chain_id": _int_or_none(row.get("chain_id")),
        "tags": _list(row.get("tags")),
        "adds": int(row.get("adds") or 0),
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at"),
    }


def format_dish(row: Row) -> Row | None:
    if not row or not row.get("id") or not row.get("name"):
        return None
    return {
        "id": int(row["id"]),
        "name": row["name"],
        "restaurant_id": _int_or_none(row.get("restaurant_id")),
        # restaurant_* come from the list/detail join
        "restaurant_name": row.get("restaurant_name") or None,
        "restaurant_address": row.get("restaurant_address") or None,
        "description": row.get("description") or None,
        "price": _float_or_none(row.get("price")),
        "is_common": bool(row.get("is_common", False)),
        "tags": _list(row.get("tags")),
        "adds": int(row.get("adds") or 0),
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at"),
    }


def format_user(row: Row) -> Row | None:
    # password_hash never leaves this layer.
    if not row or not row.get("id") or not row.get("email"):
        return None
    return {
        "id": int(row["id"]),
        "email": row["email"],
        "username": row.get("username") or None,
        "name": row.get("name") or None,
        "account_type": row.get("account_type") or "user",
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at"),
    }


def format_neighborhood(row: Row) -> Row | None:
    if not row or not row.get("id") or not row.get("name"):
        return None
    return {
        "id": int(row["id"]),
        "name": row["name"],
        "city_id": _int_or_none(row.get("city_id")),
        "city_name": row.get("city_name") or None,
        "borough": row.get("borough") or None,
        "parent_id": _int_or_none(row.get("parent_id")),
        "location_level": _int_or_none(row.get("location_level")),
        "zipcode_ranges": _list(row.get("zipcode_ranges")),
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at"),
    }


def format_list(row: Row) -> Row | None:
    if not row:
        return None
    handle = row.get("owner_username") or row.get("creator_handle") or "unknown"
    list_type = row.get("list_type") or "mixed"
    return {
        "id": int(row.get("id") or 0),
        "name": row.get("name") or "Unnamed List",
        "description": row.get("description") or None,
        "list_type": list_type,
        "saved_count": int(row.get("saved_count") or 0),
        "item_count": int(row.get("item_count") or 0),
        "city": row.get("city_name") or row.get("city") or None,
        "tags": _list(row.get("tags")),
        "is_public": bool(row.get("is_public")),
        "is_following": bool(row.get("is_following")),
        "created_by_user": bool(row.get("created_by_user")),
        "user_id": _int_or_none(row.get("user_id")),
        "creator_handle": handle,
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at"),
    }


def format_list_item(row: Row) -> Row | None:
    if not row or not row.get("id") or not row.get("item_id") or not row.get("item_type"):
        return None
    item_type = row["item_type"]
    item_id = int(row["item_id"])
    return {
        "id": int(row["id"]),
        "list_id": _int_or_none(row.get("list_id")),
        "item_id": item_id,
        "item_type": item_type,
        "notes": row.get("notes") or None,
        "restaurant_id": item_id if item_type == "restaurant" else _int_or_none(row.get("restaurant_id")),
        "dish_id": item_id if item_type == "dish" else None,
        "added_at": row.get("added_at"),
    }
