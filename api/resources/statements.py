"""
SQL statement builder for the admin engine.

Pure functions of (resource type, request) -> Statement; nothing here
executes SQL.

Rules every builder follows:
- values only ever travel in `Statement.params` ($1, $2, ... placeholders)
- identifiers come from the registry (never from request input) and pass
  through `quote_ident` before they reach SQL text
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from .errors import NoValidColumns, UnsupportedLookupType, ValidationFailed
from .registry import ResourceDescriptor, ResourceRegistry

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 500

LOOKUP_TYPES = ("neighborhoods", "restaurants", "cities")


@dataclass(frozen=True)
class Statement:
    sql: str
    params: tuple[Any, ...] = ()


@dataclass(frozen=True)
class ListStatements:
    rows: Statement
    count: Statement
    page: int
    page_size: int


@dataclass(frozen=True)
class JoinSpec:
    """
    How a resource's reads are widened with readable names from related tables.
    """

    alias: str
    extra_columns: tuple[str, ...] = ()
    joins: tuple[str, ...] = ()


_PLAIN = JoinSpec(alias="t")

JOINS: dict[str, JoinSpec] = {
    "dishes": JoinSpec(
        alias="d",
        extra_columns=("r.name AS restaurant_name", "r.address AS restaurant_address"),
        joins=("LEFT JOIN restaurants r ON d.restaurant_id = r.id",),
    ),
    "restaurants": JoinSpec(
        alias="r",
        extra_columns=("c.name AS city_name", "n.name AS neighborhood_name"),
        joins=(
            "LEFT JOIN cities c ON r.city_id = c.id",
            "LEFT JOIN neighborhoods n ON r.neighborhood_id = n.id",
        ),
    ),
    "neighborhoods": JoinSpec(
        alias="n",
        extra_columns=("c.name AS city_name",),
        joins=("LEFT JOIN cities c ON n.city_id = c.id",),
    ),
}


def quote_ident(name: str) -> str:
    """
    Double-quote a SQL identifier, escaping embedded quotes.
    """
    if not name:
        raise ValueError("Identifier is empty.")
    return '"' + name.replace('"', '""') + '"'


def project_allowed(data: Mapping[str, Any], allowed: Iterable[str]) -> dict[str, Any]:
    """
    Keep only the allow-listed keys of `data`, in allow-list order.
    """
    return {column: data[column] for column in allowed if column in data}


def _page_size(value: Any) -> int:
    try:
        size = int(value)
    except (TypeError, ValueError):
        return DEFAULT_PAGE_SIZE
    if size < 1:
        return DEFAULT_PAGE_SIZE
    return min(size, MAX_PAGE_SIZE)


def _page(value: Any) -> int:
    try:
        page = int(value)
    except (TypeError, ValueError):
        return 1
    return max(page, 1)


def _direction(value: Any) -> str:
    return "DESC" if str(value or "").strip().lower() == "desc" else "ASC"


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


# Natural-key lookups used to spot duplicates before a bulk import.
# Each returns None when the candidate does not carry enough to decide.

def _restaurant_key(table: str, item: Mapping[str, Any]) -> Statement | None:
    place_id = item.get("google_place_id")
    if place_id:
        return Statement(f"SELECT * FROM {table} WHERE google_place_id = $1 LIMIT 1", (str(place_id),))

    name = item.get("name")
    address = item.get("address")
    city_id = _positive_int(item.get("city_id"))
    if name and address and city_id is not None:
        return Statement(
            f"SELECT * FROM {table} WHERE lower(name) = lower($1) AND lower(address) = lower($2) AND city_id = $3 LIMIT 1",
            (str(name), str(address), city_id),
        )
    if name and city_id is not None:
        return Statement(
            f"SELECT * FROM {table} WHERE lower(name) = lower($1) AND city_id = $2 LIMIT 1",
            (str(name), city_id),
        )
    return None


def _dish_key(table: str, item: Mapping[str, Any]) -> Statement | None:
    restaurant_id = _positive_int(item.get("restaurant_id"))
    if not item.get("name") or restaurant_id is None:
        return None
    return Statement(
        f"SELECT * FROM {table} WHERE lower(name) = lower($1) AND restaurant_id = $2 LIMIT 1",
        (str(item["name"]), restaurant_id),
    )


def _user_key(table: str, item: Mapping[str, Any]) -> Statement | None:
    if item.get("email"):
        return Statement(f"SELECT * FROM {table} WHERE lower(email) = lower($1) LIMIT 1", (str(item["email"]),))
    if item.get("username"):
        return Statement(f"SELECT * FROM {table} WHERE lower(username) = lower($1) LIMIT 1", (str(item["username"]),))
    return None


def _city_key(table: str, item: Mapping[str, Any]) -> Statement | None:
    if not item.get("name"):
        return None
    if item.get("state_code"):
        return Statement(
            f"SELECT * FROM {table} WHERE lower(name) = lower($1) AND lower(state_code) = lower($2) LIMIT 1",
            (str(item["name"]), str(item["state_code"])),
        )
    return Statement(f"SELECT * FROM {table} WHERE lower(name) = lower($1) LIMIT 1", (str(item["name"]),))


def _neighborhood_key(table: str, item: Mapping[str, Any]) -> Statement | None:
    city_id = _positive_int(item.get("city_id"))
    if not item.get("name") or city_id is None:
        return None
    return Statement(
        f"SELECT * FROM {table} WHERE lower(name) = lower($1) AND city_id = $2 LIMIT 1",
        (str(item["name"]), city_id),
    )


def _hashtag_key(table: str, item: Mapping[str, Any]) -> Statement | None:
    if not item.get("name"):
        return None
    return Statement(f"SELECT * FROM {table} WHERE lower(name) = lower($1) LIMIT 1", (str(item["name"]),))


NATURAL_KEYS: dict[str, Callable[[str, Mapping[str, Any]], Statement | None]] = {
    "restaurants": _restaurant_key,
    "dishes": _dish_key,
    "users": _user_key,
    "cities": _city_key,
    "neighborhoods": _neighborhood_key,
    "hashtags": _hashtag_key,
}


class StatementBuilder:
    def __init__(self, registry: ResourceRegistry) -> None:
        self.registry = registry

    def _table(self, descriptor: ResourceDescriptor) -> str:
        return quote_ident(descriptor.table_name)

    def _select_from(self, descriptor: ResourceDescriptor) -> tuple[str, str, str]:
        """
        Returns (select list, FROM clause with joins, main table alias).
        """
        join = JOINS.get(descriptor.name, _PLAIN)
        select_list = ", ".join((f"{join.alias}.*", *join.extra_columns))
        from_clause = " ".join((f"{self._table(descriptor)} {join.alias}", *join.joins))
        return select_list, from_clause, join.alias

    def _filter_conditions(
        self,
        descriptor: ResourceDescriptor,
        alias: str,
        filters: Mapping[str, Any] | None,
    ) -> tuple[list[str], list[Any]]:
        queryable = descriptor.queryable_columns()
        conditions: list[str] = []
        params: list[Any] = []
        for column, value in (filters or {}).items():
            if value is None or value == "":
                continue
            # Unknown keys are dropped rather than interpolated.
            if column not in queryable:
                continue
            target = f"{alias}.{quote_ident(column)}"
            if isinstance(value, str):
                params.append(f"%{value}%")
                conditions.append(f"{target}::text ILIKE ${len(params)}")
            else:
                params.append(value)
                conditions.append(f"{target} = ${len(params)}")
        return conditions, params

    def build_list(
        self,
        resource_type: str,
        page: Any = 1,
        page_size: Any = DEFAULT_PAGE_SIZE,
        sort_column: str | None = "id",
        sort_direction: str | None = "asc",
        filters: Mapping[str, Any] | None = None,
    ) -> ListStatements:
        descriptor = self.registry.get_descriptor(resource_type)
        page = _page(page)
        page_size = _page_size(page_size)

        select_list, from_clause, alias = self._select_from(descriptor)
        conditions, params = self._filter_conditions(descriptor, alias, filters)
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""

        sort_column = sort_column if sort_column in descriptor.queryable_columns() else "id"
        order = f" ORDER BY {alias}.{quote_ident(sort_column)} {_direction(sort_direction)}"
        if sort_column != "id":
            # Stable pages when the sort key has duplicates.
            order += f", {alias}.{quote_ident('id')} ASC"

        n = len(params)
        rows = Statement(
            f"SELECT {select_list} FROM {from_clause}{where}{order} LIMIT ${n + 1} OFFSET ${n + 2}",
            (*params, page_size, (page - 1) * page_size),
        )
        count = Statement(f"SELECT count(*) AS count FROM {from_clause}{where}", tuple(params))
        return ListStatements(rows=rows, count=count, page=page, page_size=page_size)

    def build_get_by_id(self, resource_type: str, resource_id: int, *, for_update: bool = False) -> Statement:
        descriptor = self.registry.get_descriptor(resource_type)
        select_list, from_clause, alias = self._select_from(descriptor)
        sql = f"SELECT {select_list} FROM {from_clause} WHERE {alias}.{quote_ident('id')} = $1"
        if for_update:
            # Lock only the main row; joined rows sit on the nullable side.
            sql += f" FOR UPDATE OF {alias}"
        return Statement(sql, (resource_id,))

    def build_create(self, resource_type: str, data: Mapping[str, Any]) -> Statement:
        descriptor = self.registry.get_descriptor(resource_type)
        values = project_allowed(data, descriptor.create_columns)
        if not values:
            raise NoValidColumns(descriptor.name, "create")

        columns = ", ".join(quote_ident(column) for column in values)
        placeholders = ", ".join(f"${i}" for i in range(1, len(values) + 1))
        return Statement(
            f"INSERT INTO {self._table(descriptor)} ({columns}) VALUES ({placeholders}) RETURNING *",
            tuple(values.values()),
        )

    def build_update(self, resource_type: str, resource_id: int, data: Mapping[str, Any]) -> Statement:
        descriptor = self.registry.get_descriptor(resource_type)
        values = project_allowed(data, descriptor.update_columns)
        if not values:
            raise NoValidColumns(descriptor.name, "update")

        assignments = ", ".join(f"{quote_ident(column)} = ${i}" for i, column in enumerate(values, start=1))
        return Statement(
            f"UPDATE {self._table(descriptor)} SET {assignments} WHERE {quote_ident('id')} = ${len(values) + 1} RETURNING *",
            (*values.values(), resource_id),
        )

    def build_delete(self, resource_type: str, resource_id: int) -> Statement:
        descriptor = self.registry.get_descriptor(resource_type)
        return Statement(
            f"DELETE FROM {self._table(descriptor)} WHERE {quote_ident('id')} = $1 RETURNING *",
            (resource_id,),
        )

    def build_existence_check(self, resource_type: str, candidate: Mapping[str, Any]) -> Statement | None:
        descriptor = self.registry.get_descriptor(resource_type)
        natural_key = NATURAL_KEYS.get(descriptor.name)
        if natural_key is None or not isinstance(candidate, Mapping):
            return None
        return natural_key(self._table(descriptor), candidate)

    def build_exists(
        self,
        resource_type: str,
        conditions: Mapping[str, Any],
        *,
        case_insensitive: Iterable[str] = (),
    ) -> Statement:
        """
        `SELECT id ... LIMIT 1` matching every condition. Columns listed in
        `case_insensitive` compare through lower() on both sides.
        """
        descriptor = self.registry.get_descriptor(resource_type)
        queryable = descriptor.queryable_columns()
        if not conditions or any(column not in queryable for column in conditions):
            raise NoValidColumns(descriptor.name, "exists")

        folded = frozenset(case_insensitive)
        clauses: list[str] = []
        for i, column in enumerate(conditions, start=1):
            ident = quote_ident(column)
            clauses.append(f"lower({ident}) = lower(${i})" if column in folded else f"{ident} = ${i}")
        return Statement(
            f"SELECT {quote_ident('id')} FROM {self._table(descriptor)} WHERE {' AND '.join(clauses)} LIMIT 1",
            tuple(conditions.values()),
        )

    def build_lookup(self, lookup_type: str) -> Statement:
        key = (lookup_type or "").strip().lower()
        if key not in LOOKUP_TYPES or not self.registry.is_valid(key):
            raise UnsupportedLookupType(lookup_type)
        table = self._table(self.registry.get_descriptor(key))
        return Statement(f"SELECT id, name FROM {table} ORDER BY id")

    def build_name_by_id(self, lookup_type: str, resource_id: int) -> Statement:
        key = (lookup_type or "").strip().lower()
        if key not in LOOKUP_TYPES or not self.registry.is_valid(key):
            raise UnsupportedLookupType(lookup_type)
        table = self._table(self.registry.get_descriptor(key))
        return Statement(f"SELECT name FROM {table} WHERE id = $1", (resource_id,))

    def build_zip_lookup(self, zip_code: str) -> Statement:
        zip_code = str(zip_code or "").strip()
        if not zip_code:
            raise ValidationFailed("Zip code is required for a neighborhood lookup.")
        table = self._table(self.registry.get_descriptor("neighborhoods"))
        return Statement(
            f"SELECT id, name FROM {table} WHERE zipcode_ranges::text LIKE $1 ORDER BY id LIMIT 1",
            (f"%{zip_code}%",),
        )

    def build_analysis_scan(self, resource_type: str) -> Statement:
        descriptor = self.registry.get_descriptor(resource_type)
        sql = f"SELECT * FROM {self._table(descriptor)}"
        params: tuple[Any, ...] = ()
        if descriptor.analysis_filter is not None:
            sql += f" WHERE {descriptor.analysis_filter.sql}"
            params = descriptor.analysis_filter.params
        return Statement(f"{sql} ORDER BY id", params)
