"""Tests for the resource registry."""

import pytest

from resources.errors import UnsupportedResourceType
from resources.registry import ResourceDescriptor, build_registry, default_registry


def test_lookup_is_case_insensitive(registry):
    assert registry.get_descriptor("Restaurants").table_name == "restaurants"
    assert registry.get_descriptor("  dishes ").name == "dishes"


@pytest.mark.parametrize("resource_type", ["", None, "widgets", "restaurants; drop table users"])
def test_unknown_type_is_rejected(registry, resource_type):
    with pytest.raises(UnsupportedResourceType):
        registry.get_descriptor(resource_type)
    assert registry.is_valid(resource_type) is False


def test_all_managed_types_are_registered(registry):
    assert set(registry.resource_types()) == {
        "restaurants",
        "dishes",
        "users",
        "cities",
        "neighborhoods",
        "hashtags",
        "lists",
        "restaurant_chains",
        "submissions",
        "listitems",
    }


def test_registry_is_read_only(registry):
    with pytest.raises(TypeError):
        registry["widgets"] = registry["cities"]  # type: ignore[index]
    with pytest.raises(TypeError):
        registry["cities"].cleanup["name"] = None  # type: ignore[index]


def test_queryable_columns_exclude_private_columns(registry):
    users = registry.get_descriptor("users").queryable_columns()
    assert "password_hash" not in users
    assert {"id", "email", "created_at", "updated_at"} <= users
    assert "geom" not in registry.get_descriptor("neighborhoods").queryable_columns()


def test_submissions_analysis_is_narrowed_to_open_statuses(registry):
    predicate = registry.get_descriptor("submissions").analysis_filter
    assert predicate is not None
    assert "$1" in predicate.sql
    assert predicate.params == (["pending", "needs_review"],)


def test_custom_registry_and_default_instance():
    custom = build_registry(
        [ResourceDescriptor(name="widgets", table_name="widgets", create_columns=("name",), update_columns=("name",))]
    )
    assert custom.resource_types() == ["widgets"]
    assert default_registry() is default_registry()
