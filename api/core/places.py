"""
Place-details HTTP client helpers (Google Places "details" endpoint).

Used endpoint:
- GET /maps/api/place/details/json?place_id=...&fields=formatted_address,website&key=...
  -> {"status": "OK", "result": {"formatted_address": "...", "website": "..."}}

External calls are off unless PLACES_LOOKUP_ENABLED=1 and
GOOGLE_PLACES_API_KEY is set. While off, `fetch_place_details` returns None
without touching the network, and callers must treat None as "no data".
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

import httpx

from .oplog import log_operation

DEFAULT_PLACES_BASE_URL = "https://maps.googleapis.com"
DETAILS_FIELDS = "formatted_address,website"


# Place lookup failures are explicit and separable from other runtime errors.
class PlacesError(RuntimeError):
    pass


@dataclass(frozen=True)
class PlaceDetails:
    address: str | None = None
    website: str | None = None


def places_enabled() -> bool:
    return os.environ.get("PLACES_LOOKUP_ENABLED", "0").strip().lower() in {"1", "true", "yes"}


def places_api_key() -> str:
    return os.environ.get("GOOGLE_PLACES_API_KEY", "").strip()


def places_base_url() -> str:
    return os.environ.get("PLACES_BASE_URL", DEFAULT_PLACES_BASE_URL).strip() or DEFAULT_PLACES_BASE_URL


def parse_details_payload(data: dict[str, Any]) -> PlaceDetails | None:
    status = str(data.get("status") or "").upper()
    if status != "OK":
        raise PlacesError(f"Places details returned status {status or 'missing'}.")

    result = data.get("result")
    if not isinstance(result, dict):
        return None

    address = str(result.get("formatted_address") or "").strip() or None
    website = str(result.get("website") or "").strip() or None
    if address is None and website is None:
        return None
    return PlaceDetails(address=address, website=website)


async def request_place_details(
    place_id: str,
    *,
    api_key: str,
    base_url: str,
    timeout_s: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PlaceDetails | None:
    """
    Call the details endpoint for one place id. Raises PlacesError on failure.
    """
    place_id = (place_id or "").strip()
    if not place_id:
        raise PlacesError("Place id is empty.")
    if not api_key:
        raise PlacesError("GOOGLE_PLACES_API_KEY is empty.")

    try:
        async with httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout_s, transport=transport
        ) as client:
            resp = await client.get(
                "/maps/api/place/details/json",
                params={"place_id": place_id, "fields": DETAILS_FIELDS, "key": api_key},
            )
    except httpx.HTTPError as exc:
        raise PlacesError(f"Places details request failed: {exc}") from exc

    if resp.status_code != 200:
        # Avoid dumping huge bodies; include a small snippet.
        raise PlacesError(f"Places details request failed: {resp.status_code} {resp.text[:300]}")

    try:
        data = resp.json()
    except ValueError as exc:
        raise PlacesError(f"Places details returned a non-JSON body: {resp.text[:300]}") from exc
    if not isinstance(data, dict):
        raise PlacesError("Places details returned an unexpected payload.")

    return parse_details_payload(data)


async def fetch_place_details(place_id: str) -> PlaceDetails | None:
    """
    Best-effort lookup used by data analysis. Never raises.
    """
    if not places_enabled() or not places_api_key():
        log_operation("debug", "fetch_place_details", "external", "Place lookup disabled, skipping", place_id=place_id)
        return None

    try:
        return await request_place_details(place_id, api_key=places_api_key(), base_url=places_base_url())
    except PlacesError as exc:
        log_operation("error", "fetch_place_details", "external", "Place lookup failed", place_id=place_id, error=str(exc))
        return None
