"""
Data quality analysis: scan a resource table and propose field changes.

Two passes per row:
1. resource heuristics (`ResourceRules` strategy registered per type)
2. declarative cleanup rules from the registry, one proposal per rule

Nothing is written here. Proposals are plain values; the change workflow
applies them later after re-checking the live row.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping

from core import places
from core.oplog import log_operation
from resources.cleanup import prefix_https
from resources.errors import AdminError
from resources.registry import ResourceDescriptor
from resources.repository import ResourceManager

PlaceLookup = Callable[[str], Awaitable["places.PlaceDetails | None"]]
Lookups = dict[str, dict[int, str]]


def change_id(resource_type: str, resource_id: Any, field: str, change_type: str, current_value: Any) -> str:
    """
    Stable id for a proposal: re-analysing unchanged data gives the same id,
    and a changed current value gives a different one.
    """
    digest = hashlib.sha1(repr(current_value).encode("utf-8")).hexdigest()[:8]
    return f"{resource_type}_{resource_id}_{field}_{change_type}_{digest}"


@dataclass(frozen=True)
class ProposedChange:
    change_id: str
    resource_type: str
    resource_id: int
    field: str
    current_value: Any
    proposed_value: Any
    change_type: str
    change_reason: str
    status: str = "pending"

    @classmethod
    def build(
        cls,
        resource_type: str,
        resource_id: int,
        field: str,
        current_value: Any,
        proposed_value: Any,
        change_type: str,
        change_reason: str,
    ) -> "ProposedChange":
        return cls(
            change_id=change_id(resource_type, resource_id, field, change_type, current_value),
            resource_type=resource_type,
            resource_id=resource_id,
            field=field,
            current_value=current_value,
            proposed_value=proposed_value,
            change_type=change_type,
            change_reason=change_reason,
        )


class ResourceRules:
    """
    Per-type heuristics. The base class proposes nothing.
    """

    # Lookup maps to load once before scanning rows.
    lookup_types: tuple[str, ...] = ()

    async def propose(
        self,
        row: Mapping[str, Any],
        lookups: Lookups,
        analyzer: "DataAnalyzer",
    ) -> list[ProposedChange]:
        return []


class RestaurantRules(ResourceRules):
    lookup_types = ("neighborhoods",)

    async def propose(self, row, lookups, analyzer):
        changes: list[ProposedChange] = []
        resource_id = row["id"]
        place_id = row.get("google_place_id")

        details = None
        if place_id and (not row.get("address") or not row.get("website")):
            details = await analyzer.place_lookup(str(place_id))

        if details is not None and not row.get("address") and details.address:
            changes.append(
                ProposedChange.build(
                    "restaurants",
                    resource_id,
                    "address",
                    row.get("address") or None,
                    details.address,
                    "google_places",
                    "Missing address retrieved from place details lookup",
                )
            )
        if details is not None and not row.get("website") and details.website:
            changes.append(
                ProposedChange.build(
                    "restaurants",
                    resource_id,
                    "website",
                    row.get("website") or None,
                    prefix_https(details.website),
                    "google_places",
                    "Missing website retrieved from place details lookup",
                )
            )

        zip_code = row.get("zip_code")
        if row.get("address") and not row.get("neighborhood_id") and zip_code:
            try:
                neighborhood = await analyzer.manager.lookup_neighborhood_by_zip(str(zip_code))
            except AdminError as exc:
                log_operation(
                    "warn", "analyze", "restaurants", "Zip lookup failed", id=resource_id, zip_code=zip_code, error=str(exc)
                )
                neighborhood = None
            if neighborhood and neighborhood.get("id"):
                neighborhood_id = int(neighborhood["id"])
                name = neighborhood.get("name") or lookups.get("neighborhoods", {}).get(neighborhood_id)
                changes.append(
                    ProposedChange.build(
                        "restaurants",
                        resource_id,
                        "neighborhood_id",
                        row.get("neighborhood_id") or None,
                        neighborhood_id,
                        "zip_lookup",
                        f"Neighborhood {name} (ID: {neighborhood_id}) found for zip code {zip_code}",
                    )
                )
        return changes


class HashtagRules(ResourceRules):
    async def propose(self, row, lookups, analyzer):
        name = row.get("name")
        if not isinstance(name, str) or not name or name.startswith("#"):
            return []
        return [
            ProposedChange.build(
                "hashtags",
                row["id"],
                "name",
                name,
                f"#{name}",
                "format",
                "Added # prefix to hashtag name",
            )
        ]


class DishRules(ResourceRules):
    # No dish heuristics yet; the restaurant map is loaded for when there are.
    lookup_types = ("restaurants",)


class NeighborhoodRules(ResourceRules):
    lookup_types = ("neighborhoods", "cities")


DEFAULT_RULES: dict[str, ResourceRules] = {
    "restaurants": RestaurantRules(),
    "hashtags": HashtagRules(),
    "dishes": DishRules(),
    "neighborhoods": NeighborhoodRules(),
}


def cleanup_changes(descriptor: ResourceDescriptor, row: Mapping[str, Any]) -> list[ProposedChange]:
    """
    One proposal per enabled cleanup rule whose output differs from the
    current value. Every rule sees the current value, not a prior rule's output.
    """
    changes: list[ProposedChange] = []
    for field, rules in descriptor.cleanup.items():
        current = row.get(field)
        if not isinstance(current, str):
            continue
        for change_type, reason, rule in rules.steps():
            proposed = rule(current)
            if proposed == current:
                continue
            changes.append(
                ProposedChange.build(descriptor.name, row["id"], field, current, proposed, change_type, reason)
            )
    return changes


class DataAnalyzer:
    def __init__(
        self,
        manager: ResourceManager,
        *,
        place_lookup: PlaceLookup = places.fetch_place_details,
        rules: Mapping[str, ResourceRules] | None = None,
    ) -> None:
        self.manager = manager
        self.place_lookup = place_lookup
        self.rules = dict(DEFAULT_RULES if rules is None else rules)

    async def _prepare_lookups(self, resource_type: str, lookup_types: Iterable[str]) -> Lookups:
        lookups: Lookups = {}
        for lookup_type in lookup_types:
            try:
                lookups[lookup_type] = await self.manager.get_lookup(lookup_type)
            except AdminError as exc:
                log_operation(
                    "warn", "analyze", resource_type, "Lookup data unavailable", lookup=lookup_type, error=str(exc)
                )
                lookups[lookup_type] = {}
        return lookups

    async def analyze(self, resource_type: str) -> list[ProposedChange]:
        descriptor = self.manager.descriptor(resource_type)
        if not descriptor.table_name or not descriptor.cleanup:
            log_operation(
                "error",
                "analyze",
                descriptor.name,
                "Misconfigured resource type",
                has_table=bool(descriptor.table_name),
                has_cleanup=bool(descriptor.cleanup),
            )
            return []

        log_operation("info", "analyze", descriptor.name, "Starting data analysis")
        rows = await self.manager.scan_for_analysis(descriptor.name)

        strategy = self.rules.get(descriptor.name, ResourceRules())
        lookups = await self._prepare_lookups(descriptor.name, strategy.lookup_types)

        changes: list[ProposedChange] = []
        for row in rows:
            if not row.get("id"):
                log_operation("warn", "analyze", descriptor.name, "Row missing id, skipping")
                continue
            try:
                changes.extend(await strategy.propose(row, lookups, self))
            except Exception as exc:
                # Heuristics are best effort per row; cleanup rules still run.
                log_operation("warn", "analyze", descriptor.name, "Row heuristics failed", id=row["id"], error=str(exc))
            changes.extend(cleanup_changes(descriptor, row))

        log_operation("info", "analyze", descriptor.name, "Analysis complete", changes=len(changes))
        return changes

    async def get_changes_by_ids(self, resource_type: str, change_ids: Iterable[str] | None) -> list[ProposedChange]:
        wanted = set(change_ids or ())
        if not wanted:
            log_operation("info", "get_changes_by_ids", resource_type, "No change ids requested")
            return []
        changes = [change for change in await self.analyze(resource_type) if change.change_id in wanted]
        log_operation(
            "info", "get_changes_by_ids", resource_type, "Matched changes", requested=len(wanted), found=len(changes)
        )
        return changes
