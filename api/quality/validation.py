"""
Pre-import validation of bulk payloads.

Per item: required fields, per-field shape checks (with light cleaning),
then relational checks against the database. Nothing is written.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Sequence

import httpx

from core.oplog import log_operation
from resources.errors import AdminError, AdminModelError
from resources.repository import ResourceManager

MAX_TEXT_LENGTH = 500
LONG_TEXT_FIELDS = frozenset({"description", "notes"})
NUMERIC_FIELDS = ("price", "latitude", "longitude")
# External identifiers that end in _id but are not row references.
NON_ROW_ID_FIELDS = frozenset({"google_place_id", "place_id"})
ACCOUNT_TYPES = ("user", "admin", "superuser")
PRICE_WARNING_THRESHOLD = 1000

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE = re.compile(r"^\(?[\d\s\-()+.]{7,}$")
_HOSTNAME = re.compile(r"^[a-z0-9-]+(\.[a-z0-9-]+)+$")


@dataclass
class ItemValidation:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    cleaned: dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class ValidationReport:
    valid: list[dict[str, Any]] = field(default_factory=list)
    invalid: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[dict[str, Any]] = field(default_factory=list)


def _blank(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def _as_positive_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _looks_like_url(value: str) -> bool:
    candidate = value.strip()
    if not candidate.lower().startswith(("http://", "https://")):
        candidate = f"https://{candidate}"
    try:
        url = httpx.URL(candidate)
    except (httpx.InvalidURL, ValueError):
        return False
    return bool(_HOSTNAME.match(url.host))


def check_field(name: str, value: Any, result: ItemValidation) -> None:
    """
    Shape checks for one present field. Writes the cleaned value back into
    `result.cleaned`.
    """
    if isinstance(value, str):
        if len(value) > MAX_TEXT_LENGTH and name not in LONG_TEXT_FIELDS:
            result.errors.append(f"{name} is too long (max {MAX_TEXT_LENGTH} characters)")
        trimmed = value.strip()
        if trimmed != value:
            result.cleaned[name] = trimmed
            result.warnings.append(f"{name} had leading/trailing whitespace that was removed")

    if name == "email" and isinstance(value, str) and not _EMAIL.match(value.strip()):
        result.errors.append(f"{name} is not a valid email address")

    if name == "phone" and isinstance(value, str) and not _PHONE.match(value.strip()):
        result.errors.append(f"{name} is not a valid phone number")

    if (name == "website" or "url" in name) and isinstance(value, str) and not _looks_like_url(value):
        result.warnings.append(f"{name} may not be a valid URL")

    if name in NUMERIC_FIELDS:
        number = _as_float(value)
        if number is None:
            result.errors.append(f"{name} must be a valid number")
        else:
            result.cleaned[name] = number

    if name.endswith("_id") and name not in NON_ROW_ID_FIELDS:
        number = _as_positive_int(value)
        if number is None:
            result.errors.append(f"{name} must be a positive integer")
        else:
            result.cleaned[name] = number


def _failure_reason(exc: AdminError) -> str:
    if isinstance(exc, AdminModelError):
        return str(exc.original_error)
    return str(exc)


async def _check_reference(
    manager: ResourceManager,
    result: ItemValidation,
    resource_type: str,
    conditions: Mapping[str, Any],
    missing: str,
    label: str,
) -> None:
    try:
        if not await manager.exists(resource_type, conditions):
            result.errors.append(missing)
    except AdminError as exc:
        result.warnings.append(f"Could not verify {label}: {_failure_reason(exc)}")


async def _check_unique(
    manager: ResourceManager,
    result: ItemValidation,
    resource_type: str,
    column: str,
    value: str,
) -> None:
    try:
        if await manager.exists(resource_type, {column: value}, case_insensitive=(column,)):
            result.errors.append(f"{column.capitalize()} {value} already exists")
    except AdminError as exc:
        result.warnings.append(f"Could not verify {column} uniqueness: {_failure_reason(exc)}")


async def _check_restaurant(manager: ResourceManager, item: Mapping[str, Any], result: ItemValidation) -> None:
    city_id = item.get("city_id")
    if isinstance(city_id, int):
        await _check_reference(
            manager, result, "cities", {"id": city_id}, f"City ID {city_id} does not exist", "city ID"
        )

    neighborhood_id = item.get("neighborhood_id")
    if isinstance(neighborhood_id, int) and isinstance(city_id, int):
        await _check_reference(
            manager,
            result,
            "neighborhoods",
            {"id": neighborhood_id, "city_id": city_id},
            f"Neighborhood ID {neighborhood_id} does not exist or does not belong to city {city_id}",
            "neighborhood ID",
        )


async def _check_dish(manager: ResourceManager, item: Mapping[str, Any], result: ItemValidation) -> None:
    restaurant_id = item.get("restaurant_id")
    if isinstance(restaurant_id, int):
        await _check_reference(
            manager,
            result,
            "restaurants",
            {"id": restaurant_id},
            f"Restaurant ID {restaurant_id} does not exist",
            "restaurant ID",
        )

    price = _as_float(item.get("price")) if item.get("price") is not None else None
    if price is not None:
        if price < 0:
            result.errors.append("Price cannot be negative")
        elif price > PRICE_WARNING_THRESHOLD:
            result.warnings.append(f"Price seems unusually high (over ${PRICE_WARNING_THRESHOLD})")


async def _check_user(manager: ResourceManager, item: Mapping[str, Any], result: ItemValidation) -> None:
    for column in ("email", "username"):
        value = item.get(column)
        if isinstance(value, str) and value.strip():
            await _check_unique(manager, result, "users", column, value.strip())

    account_type = item.get("account_type")
    if account_type and account_type not in ACCOUNT_TYPES:
        result.errors.append(f"Invalid account type: {account_type}")


async def _check_neighborhood(manager: ResourceManager, item: Mapping[str, Any], result: ItemValidation) -> None:
    city_id = item.get("city_id")
    if isinstance(city_id, int):
        await _check_reference(
            manager, result, "cities", {"id": city_id}, f"City ID {city_id} does not exist", "city ID"
        )


RelationalCheck = Callable[[ResourceManager, Mapping[str, Any], ItemValidation], Awaitable[None]]

RELATIONAL_CHECKS: dict[str, RelationalCheck] = {
    "restaurants": _check_restaurant,
    "dishes": _check_dish,
    "users": _check_user,
    "neighborhoods": _check_neighborhood,
}


class BulkValidator:
    def __init__(self, manager: ResourceManager, checks: Mapping[str, RelationalCheck] | None = None) -> None:
        self.manager = manager
        self.checks = dict(RELATIONAL_CHECKS if checks is None else checks)

    async def validate_item(self, resource_type: str, item: Any) -> ItemValidation:
        descriptor = self.manager.descriptor(resource_type)
        if not isinstance(item, Mapping):
            return ItemValidation(errors=["Item must be an object"])

        result = ItemValidation(cleaned=dict(item))
        for name in descriptor.required_fields:
            if _blank(item.get(name)):
                result.errors.append(f"Missing required field: {name}")

        for name, value in item.items():
            if value is None:
                continue
            check_field(str(name), value, result)

        check = self.checks.get(descriptor.name)
        if check is not None:
            await check(self.manager, result.cleaned, result)
        return result

    async def validate_bulk_data(self, resource_type: str, items: Sequence[Any]) -> ValidationReport:
        descriptor = self.manager.descriptor(resource_type)
        log_operation("info", "validate_bulk_data", descriptor.name, "Validating items", count=len(items))

        report = ValidationReport()
        for index, item in enumerate(items):
            try:
                result = await self.validate_item(descriptor.name, item)
            except AdminError as exc:
                result = ItemValidation(errors=[f"Validation error: {exc}"])

            if result.is_valid:
                report.valid.append({"index": index, "item": result.cleaned, "warnings": result.warnings})
                if result.warnings:
                    report.warnings.append({"index": index, "item": item, "warnings": result.warnings})
            else:
                report.invalid.append({"index": index, "item": item, "errors": result.errors})

        log_operation(
            "info",
            "validate_bulk_data",
            descriptor.name,
            "Validation complete",
            valid=len(report.valid),
            invalid=len(report.invalid),
            warnings=len(report.warnings),
        )
        return report
