"""
Resource registry: static metadata for every admin-managed resource type.

`build_registry()` constructs the immutable registry once; the app wiring
passes it to the statement builder, the resource manager and the data
quality services. Nothing in here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Callable, Iterable, Iterator, Mapping

from . import formatters
from .cleanup import CleanupRules
from .errors import UnsupportedResourceType

Formatter = Callable[[dict[str, Any]], dict[str, Any] | None]

TIMESTAMP_COLUMNS = ("created_at", "updated_at")


@dataclass(frozen=True)
class Predicate:
    """
    Fixed SQL fragment narrowing the analysis scan. Placeholders start at $1
    and are bound from `params`.
    """

    sql: str
    params: tuple[Any, ...] = ()


@dataclass(frozen=True)
class ResourceDescriptor:
    name: str
    table_name: str
    create_columns: tuple[str, ...]
    update_columns: tuple[str, ...]
    formatter: Formatter = formatters.identity
    cleanup: Mapping[str, CleanupRules] = field(default_factory=dict)
    required_fields: tuple[str, ...] = ()
    analysis_filter: Predicate | None = None
    # Never usable as a filter or sort key.
    private_columns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "cleanup", MappingProxyType(dict(self.cleanup)))

    def queryable_columns(self) -> frozenset[str]:
        columns = {"id", *self.create_columns, *self.update_columns, *TIMESTAMP_COLUMNS}
        return frozenset(columns.difference(self.private_columns))


def _normalize(resource_type: str | None) -> str:
    if not isinstance(resource_type, str):
        return ""
    return resource_type.strip().lower()


class ResourceRegistry(Mapping[str, ResourceDescriptor]):
    """
    Read-only, case-insensitive map of resource type -> descriptor.
    """

    def __init__(self, descriptors: Iterable[ResourceDescriptor]) -> None:
        self._descriptors = MappingProxyType({d.name: d for d in descriptors})

    def __getitem__(self, resource_type: str) -> ResourceDescriptor:
        return self._descriptors[_normalize(resource_type)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def get_descriptor(self, resource_type: str | None) -> ResourceDescriptor:
        descriptor = self._descriptors.get(_normalize(resource_type))
        if descriptor is None:
            raise UnsupportedResourceType(resource_type)
        return descriptor

    def is_valid(self, resource_type: str | None) -> bool:
        return _normalize(resource_type) in self._descriptors

    def resource_types(self) -> list[str]:
        return list(self._descriptors)


_TITLE = CleanupRules(trim=True, title_case=True)


def _descriptors() -> list[ResourceDescriptor]:
    return [
        ResourceDescriptor(
            name="restaurants",
            table_name="restaurants",
            create_columns=(
                "name", "cuisine", "address", "city_id", "neighborhood_id", "zip_code", "phone",
                "website", "instagram_handle", "google_place_id", "latitude", "longitude",
                "chain_id", "created_at", "updated_at",
            ),
            update_columns=(
                "name", "cuisine", "address", "city_id", "neighborhood_id", "zip_code", "phone",
                "website", "instagram_handle", "google_place_id", "latitude", "longitude",
                "adds", "chain_id", "updated_at",
            ),
            formatter=formatters.format_restaurant,
            cleanup={
                "name": _TITLE,
                "cuisine": _TITLE,
                "description": CleanupRules(truncate=500),
                "website": CleanupRules(https_prefix=True),
                "phone": CleanupRules(us_phone=True),
            },
            required_fields=("name",),
        ),
        ResourceDescriptor(
            name="dishes",
            table_name="dishes",
            create_columns=("name", "restaurant_id", "description", "price", "is_common", "created_at", "updated_at"),
            update_columns=("name", "restaurant_id", "description", "price", "is_common", "adds", "updated_at"),
            formatter=formatters.format_dish,
            cleanup={
                "name": _TITLE,
                "description": CleanupRules(truncate=500),
            },
            required_fields=("name", "restaurant_id"),
        ),
        ResourceDescriptor(
            name="users",
            table_name="users",
            create_columns=("username", "email", "password_hash", "account_type", "created_at", "name"),
            update_columns=("username", "email", "password_hash", "account_type", "name", "updated_at"),
            formatter=formatters.format_user,
            cleanup={
                "name": _TITLE,
                "email": CleanupRules(lowercase=True),
            },
            required_fields=("email",),
            private_columns=("password_hash",),
        ),
        ResourceDescriptor(
            name="cities",
            table_name="cities",
            create_columns=("name", "has_boroughs", "state_code", "country_code"),
            update_columns=("name", "has_boroughs", "state_code", "country_code"),
            cleanup={"name": _TITLE},
            required_fields=("name",),
        ),
        ResourceDescriptor(
            name="neighborhoods",
            table_name="neighborhoods",
            create_columns=("name", "city_id", "borough", "zipcode_ranges", "parent_id", "location_level", "geom"),
            update_columns=("name", "city_id", "borough", "zipcode_ranges", "parent_id", "location_level", "geom"),
            formatter=formatters.format_neighborhood,
            cleanup={"name": _TITLE, "borough": _TITLE},
            required_fields=("name", "city_id"),
            private_columns=("geom",),
        ),
        ResourceDescriptor(
            name="hashtags",
            table_name="hashtags",
            create_columns=("name", "category"),
            update_columns=("name", "category"),
            cleanup={
                "name": CleanupRules(trim=True),
                "category": _TITLE,
            },
            required_fields=("name",),
        ),
        ResourceDescriptor(
            name="lists",
            table_name="lists",
            create_columns=(
                "user_id", "name", "description", "list_type", "city_name", "tags", "is_public",
                "created_by_user", "creator_handle", "created_at", "updated_at",
            ),
            update_columns=(
                "name", "description", "list_type", "saved_count", "city_name", "tags", "is_public",
                "creator_handle", "is_following", "updated_at",
            ),
            formatter=formatters.format_list,
            cleanup={
                "name": _TITLE,
                "description": CleanupRules(truncate=1000),
                "creator_handle": CleanupRules(trim=True),
            },
            required_fields=("name", "user_id"),
        ),
        ResourceDescriptor(
            name="restaurant_chains",
            table_name="restaurant_chains",
            create_columns=("name", "website", "description", "created_at", "updated_at"),
            update_columns=("name", "website", "description", "updated_at"),
            cleanup={
                "name": _TITLE,
                "website": CleanupRules(https_prefix=True),
                "description": CleanupRules(truncate=500),
            },
            required_fields=("name",),
        ),
        ResourceDescriptor(
            name="submissions",
            table_name="submissions",
            create_columns=(
                "user_id", "type", "name", "location", "tags", "place_id", "city", "neighborhood",
                "status", "created_at", "restaurant_id", "restaurant_name", "dish_id",
                "rejection_reason", "description", "phone", "website",
            ),
            update_columns=(
                "status", "reviewed_by", "reviewed_at", "restaurant_id", "dish_id", "rejection_reason",
                "name", "location", "tags", "city", "neighborhood", "description", "phone", "website",
            ),
            cleanup={
                "name": _TITLE,
                "location": CleanupRules(trim=True),
                "city": _TITLE,
                "neighborhood": _TITLE,
                "restaurant_name": _TITLE,
                "description": CleanupRules(truncate=500),
                "phone": CleanupRules(us_phone=True),
                "website": CleanupRules(https_prefix=True),
            },
            required_fields=("type", "name"),
            analysis_filter=Predicate("status = ANY($1::text[])", (["pending", "needs_review"],)),
        ),
        ResourceDescriptor(
            name="listitems",
            table_name="listitems",
            create_columns=("list_id", "item_type", "item_id", "notes", "added_at"),
            update_columns=("notes", "added_at"),
            formatter=formatters.format_list_item,
            cleanup={"notes": CleanupRules(truncate=255)},
            required_fields=("list_id", "item_type", "item_id"),
        ),
    ]


def build_registry(descriptors: Iterable[ResourceDescriptor] | None = None) -> ResourceRegistry:
    return ResourceRegistry(_descriptors() if descriptors is None else descriptors)


@lru_cache(maxsize=1)
def default_registry() -> ResourceRegistry:
    """
    Process-wide registry for the FastAPI wiring. Everything else receives a
    registry explicitly.
    """
    return build_registry()
