from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Literal
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from pydantic import ValidationError

from ..domain.models import Coordinates
from ..settings import AppSettings
from ..storage.cache import load_fresh_payload, save_snapshot

LOGGER = logging.getLogger(__name__)

LOCATION_SNAPSHOT_KIND = "location"
LOCATION_SNAPSHOT_KEY = "current"
LOCATION_CACHE_TTL_SECONDS = 24 * 60 * 60

IP_GEOLOCATION_URL = "https://ipapi.co/json/"
OPEN_METEO_GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
DEFAULT_TIMEOUT_SECONDS = 10
DEFAULT_LABEL = "Current location"

LocationStatus = Literal["idle", "pending", "ready", "error"]


class LocationResolutionError(RuntimeError):
    """Raised when location cannot be resolved from any configured method."""


@dataclass(frozen=True, slots=True)
class ResolvedLocation:
    coords: Coordinates
    label: str
    source: str


def _fetch_json(url: str) -> dict[str, Any]:
    request = Request(url, headers={"User-Agent": "daylight-calendar/0.1"})
    try:
        with urlopen(request, timeout=DEFAULT_TIMEOUT_SECONDS) as response:
            payload = json.loads(response.read().decode("utf-8"))
    except (HTTPError, URLError, TimeoutError, json.JSONDecodeError):
        return {}

    if not isinstance(payload, dict):
        return {}
    return payload


def _coerce_float(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def _normalize_label(city: str | None, country: str | None, *, fallback: str) -> str:
    city_text = (city or "").strip()
    country_text = (country or "").strip()
    if city_text and country_text:
        return f"{city_text}, {country_text}"
    return city_text or country_text or fallback


def _build_location(lat: Any, lon: Any, label: str, source: str) -> ResolvedLocation | None:
    lat_value = _coerce_float(lat)
    lon_value = _coerce_float(lon)
    if lat_value is None or lon_value is None:
        return None
    return ResolvedLocation(coords=Coordinates(lat=lat_value, lon=lon_value), label=label, source=source)


def _cached_location(settings: AppSettings) -> ResolvedLocation | None:
    payload = load_fresh_payload(settings.db_path, LOCATION_SNAPSHOT_KIND, LOCATION_SNAPSHOT_KEY)
    if not isinstance(payload, dict):
        return None
    label = payload.get("label")
    if not isinstance(label, str) or not label.strip():
        return None
    return _build_location(payload.get("lat"), payload.get("lon"), label, "cache")


def _store_location(settings: AppSettings, location: ResolvedLocation) -> None:
    save_snapshot(
        settings.db_path,
        LOCATION_SNAPSHOT_KIND,
        LOCATION_SNAPSHOT_KEY,
        {
            "lat": location.coords.lat,
            "lon": location.coords.lon,
            "label": location.label,
            "source": location.source,
        },
        ttl_seconds=LOCATION_CACHE_TTL_SECONDS,
    )


def _location_from_ip() -> ResolvedLocation | None:
    payload = _fetch_json(IP_GEOLOCATION_URL)
    label = _normalize_label(payload.get("city"), payload.get("country_name"), fallback=DEFAULT_LABEL)
    return _build_location(payload.get("latitude"), payload.get("longitude"), label, "ip")


def _location_from_fallback_city(city_query: str) -> ResolvedLocation | None:
    query = city_query.strip()
    if not query:
        return None

    # Open-Meteo matches on the place name only.
    name = query.split(",", 1)[0].strip()
    params = urlencode({"name": name, "count": 1, "language": "en", "format": "json"})
    payload = _fetch_json(f"{OPEN_METEO_GEOCODING_URL}?{params}")
    results = payload.get("results")
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        return None

    result = results[0]
    label = _normalize_label(result.get("name"), result.get("country_code"), fallback=query)
    return _build_location(result.get("latitude"), result.get("longitude"), label, "fallback_city")


def get_location(settings: AppSettings) -> ResolvedLocation:
    config = settings.yaml.location
    if config.mode == "manual":
        return ResolvedLocation(
            coords=Coordinates(lat=config.lat, lon=config.lon),
            label=config.label or "Custom location",
            source="manual",
        )

    cached = _cached_location(settings)
    if cached is not None:
        return cached

    if config.mode == "auto":
        detected = _location_from_ip()
        if detected is not None:
            _store_location(settings, detected)
            return detected

    fallback = _location_from_fallback_city(config.fallback_city)
    if fallback is not None:
        _store_location(settings, fallback)
        return fallback

    raise LocationResolutionError("Unable to resolve location from IP or fallback city")


class LocationService:
    """Current location with a status that is independent of provider errors."""

    def __init__(self) -> None:
        self.coords: Coordinates | None = None
        self.label = DEFAULT_LABEL
        self.source: str | None = None
        self.status: LocationStatus = "idle"
        self.error: str | None = None

    @property
    def is_manual(self) -> bool:
        return self.source == "manual"

    def resolve(self, settings: AppSettings) -> Coordinates | None:
        self.status = "pending"
        try:
            location = get_location(settings)
        except LocationResolutionError as exc:
            LOGGER.warning("Location resolution failed: %s", exc)
            self.status = "error"
            self.error = str(exc)
            return self.coords

        self.coords = location.coords
        self.label = location.label
        self.source = location.source
        self.status = "ready"
        self.error = None
        LOGGER.info("Location resolved from %s: %s", location.source, location.label)
        return self.coords

    def set_manual_location(self, lat: Any, lon: Any, label: str | None = None) -> Coordinates | None:
        """Pin a user-chosen location; the periodic refresh job skips it."""
        try:
            coords = Coordinates(lat=lat, lon=lon)
        except ValidationError:
            self.status = "error"
            self.error = "Latitude and longitude must be numbers"
            return None

        self.coords = coords
        self.label = (label or "").strip() or "Custom location"
        self.source = "manual"
        self.status = "ready"
        self.error = None
        return coords
