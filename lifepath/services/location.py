"""Historical place names for map coordinates.

    resolver = LocationResolver(backend)
    place = resolver.resolve(lon=11.2558, lat=43.7696, year=1444)
    runner.start_session({"date": "1444-03-15", "location": place.place_name})

Two providers:

- whg: World Historical Gazetteer "nearby" search around the point. Every
  candidate is scored on distance, on whether its attested timespans cover
  the year, and on how complete its record is; the best one names the place.
- llm: the text backend is asked directly for period-appropriate names.

Sessions take a place name, not coordinates; turning a map click into one
is this module's whole job.
"""

import logging
import math
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field

from lifepath.engine.prompts import render_template
from lifepath.errors import BackendError, ParseError
from lifepath.llm.client import TEXT_MODEL

logger = logging.getLogger(__name__)

LOCATION_PROVIDERS = ("whg", "llm")

WHG_BASE_URL = "https://whgazetteer.org/api"
DEFAULT_RADIUS_KM = 25.0
DEFAULT_MAX_RESULTS = 40

EARTH_RADIUS_KM = 6371.0
UNKNOWN_AREA = "Unknown area"

LOCATION_LABEL = "location_resolution"

LOCATION_SYSTEM_PROMPT = """You are a meticulous historical toponymist.
Resolve modern coordinates and years into accurate historical place names.
Prefer historically appropriate country or polity names for the given year.
Return concise, factual information and note uncertainty when data is sparse."""

LOCATION_USER_PROMPT = """Given the following inputs, identify the historically appropriate place names.

Longitude: ${lon}
Latitude: ${lat}
Year: ${year}

Respond as strict JSON with keys:
- area (string, required)
- country (string | null)
- settlement (string | null)
- confidence (0-1 number; how confident you are)
- notes (string | null; caveats or data limitations)

Keep strings concise (max ~60 characters)."""


class LocationResolution(BaseModel):
    """A resolved place. area is always set; the rest may be unknown."""

    area: str
    country: Optional[str] = None
    settlement: Optional[str] = None
    provider: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    raw: Any = None

    @property
    def place_name(self) -> str:
        """Settlement, area and country joined, skipping blanks and repeats."""
        parts: list[str] = []
        for part in (self.settlement, self.area, self.country):
            if part and part != UNKNOWN_AREA and part not in parts:
                parts.append(part)
        return ", ".join(parts) or UNKNOWN_AREA


# -- scoring --------------------------------------------------------------


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def feature_timespans(feature: dict[str, Any]) -> list[tuple[Optional[float], Optional[float]]]:
    """(start, end) year pairs from a gazetteer feature; None is open-ended."""
    spans = []
    minmax = (feature.get("properties") or {}).get("minmax")
    if isinstance(minmax, list) and len(minmax) == 2:
        spans.append((_number(minmax[0]), _number(minmax[1])))

    for when in feature.get("whens") or []:
        for span in (when or {}).get("timespans") or []:
            start = (span or {}).get("start") or {}
            end = (span or {}).get("end") or {}
            first = _number(start.get("earliest"))
            last = _number(end.get("latest"))
            spans.append((
                first if first is not None else _number(start.get("latest")),
                last if last is not None else _number(end.get("earliest")),
            ))
    return spans


def years_outside(spans: list[tuple[Optional[float], Optional[float]]], year: float) -> float:
    """Years between `year` and the nearest span; 0 when a span covers it."""
    distance = math.inf
    for start, end in spans:
        if start is not None and year < start:
            distance = min(distance, start - year)
        elif end is not None and year > end:
            distance = min(distance, year - end)
        else:
            return 0.0
    return distance


def pick_best_feature(
    features: list[dict[str, Any]], lon: float, lat: float, year: float
) -> Optional[tuple[dict[str, Any], float]]:
    """The highest-scoring feature and a confidence for it, or None."""
    best = None
    best_score = -math.inf
    for feature in features:
        coordinates = (feature.get("geometry") or {}).get("coordinates")
        if not isinstance(coordinates, list) or len(coordinates) != 2:
            continue

        f_lon, f_lat = coordinates
        distance_km = haversine_km(lat, lon, f_lat, f_lon)
        spans = feature_timespans(feature)
        outside = years_outside(spans, year)
        properties = feature.get("properties") or {}

        score = -distance_km
        if outside == 0:
            score += 500
        elif math.isfinite(outside):
            score += max(0.0, 50 - outside)
        if properties.get("ccodes"):
            score += 25
        if properties.get("title"):
            score += 10
        if spans:
            score += 5

        if score > best_score:
            base = 0.75 if outside == 0 else 0.45
            confidence = max(0.1, min(0.95, base - min(distance_km / 200, 0.4)))
            best_score = score
            best = (feature, confidence)
    return best


def describe_feature(feature: dict[str, Any]) -> dict[str, Optional[str]]:
    """Settlement, area and country names carried by a gazetteer feature."""
    properties = feature.get("properties") or {}
    settlement = (properties.get("title") or "").strip() or None

    country = None
    ccodes = properties.get("ccodes") or []
    if ccodes and (ccodes[0] or "").strip():
        country = ccodes[0].strip().upper()

    area = None
    for related in feature.get("related") or []:
        if "broader" in (related.get("relation_type") or "") and related.get("label"):
            parts = [p.strip() for p in related["label"].split(",") if p.strip()]
            if parts:
                area = parts[0]
            if country is None and len(parts) > 1:
                country = parts[1]
            break

    return {"settlement": settlement, "area": area, "country": country}


# -- resolver -------------------------------------------------------------


class LocationResolver:
    """Resolves (lon, lat, year) into historical place names."""

    def __init__(
        self,
        backend=None,
        provider: str = "whg",
        base_url: str = WHG_BASE_URL,
        radius_km: float = DEFAULT_RADIUS_KM,
        max_results: int = DEFAULT_MAX_RESULTS,
        model: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        if provider not in LOCATION_PROVIDERS:
            raise ValueError(
                f"Unknown location provider: '{provider}'. "
                f"Expected one of: {', '.join(LOCATION_PROVIDERS)}"
            )
        self.backend = backend
        self.provider = provider
        self.radius_km = radius_km
        self.max_results = max_results
        self.model = model or TEXT_MODEL
        self._client = client or httpx.Client(
            base_url=base_url,
            headers={"Accept": "application/json", "User-Agent": "lifepath/0.1"},
            timeout=httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=10.0),
        )

    def close(self) -> None:
        self._client.close()

    def resolve(
        self,
        lon: float,
        lat: float,
        year: float,
        radius_km: Optional[float] = None,
        provider: Optional[str] = None,
    ) -> LocationResolution:
        """Name the place at (lon, lat) as it was in `year`.

        Raises ValueError for out-of-range coordinates or an unknown
        provider, BackendError when the provider cannot be reached and
        ParseError when its answer is unusable.
        """
        if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
            raise ValueError(f"Coordinates out of range: lon={lon}, lat={lat}")
        provider = provider or self.provider
        if provider not in LOCATION_PROVIDERS:
            raise ValueError(
                f"Unknown location provider: '{provider}'. "
                f"Expected one of: {', '.join(LOCATION_PROVIDERS)}"
            )

        if provider == "llm":
            result = self._resolve_with_llm(lon, lat, year)
        else:
            radius = max(radius_km, 1.0) if radius_km is not None else self.radius_km
            result = self._resolve_with_whg(lon, lat, year, radius)

        logger.info(
            f"[{LOCATION_LABEL}] ({lon:.4f}, {lat:.4f}) in {year:g} -> "
            f"{result.place_name} via {result.provider} ({result.confidence:.2f})"
        )
        return result

    def _resolve_with_whg(
        self, lon: float, lat: float, year: float, radius_km: float
    ) -> LocationResolution:
        params = {
            "type": "nearby",
            "lon": str(lon),
            "lat": str(lat),
            "km": f"{radius_km:g}",
            "pagesize": str(self.max_results),
        }
        try:
            response = self._client.get("/spatial/", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise BackendError(
                f"WHG request failed with status {e.response.status_code}", provider="whg"
            ) from e
        except httpx.HTTPError as e:
            raise BackendError(f"WHG request failed: {e}", provider="whg") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError("WHG returned invalid JSON", raw_text=response.text[:500]) from e

        features = payload.get("features") if isinstance(payload, dict) else None
        best = pick_best_feature(features or [], lon, lat, year)
        if best is None:
            logger.debug(f"[{LOCATION_LABEL}] No usable WHG features near ({lon}, {lat})")
            return LocationResolution(
                area=UNKNOWN_AREA, provider="whg", confidence=0.1, raw=payload
            )

        feature, confidence = best
        names = describe_feature(feature)
        return LocationResolution(
            area=names["area"] or names["settlement"] or UNKNOWN_AREA,
            country=names["country"],
            settlement=names["settlement"],
            provider="whg",
            confidence=confidence,
            raw=feature,
        )

    def _resolve_with_llm(self, lon: float, lat: float, year: float) -> LocationResolution:
        if self.backend is None:
            raise BackendError("No text backend configured for location resolution")

        variables = {"lon": f"{lon:.4f}", "lat": f"{lat:.4f}", "year": f"{year:g}"}
        user_prompt = render_template(LOCATION_USER_PROMPT, variables, label=LOCATION_LABEL)
        result = self.backend.complete_structured(
            LOCATION_SYSTEM_PROMPT,
            user_prompt,
            {"model": self.model, "temperature": 0.2, "max_tokens": 600},
            label=LOCATION_LABEL,
        )
        if not isinstance(result, dict):
            raise ParseError(
                f"Location answer must be a JSON object, got {type(result).__name__}"
            )

        confidence = _number(result.get("confidence"))
        return LocationResolution(
            area=_clean(result.get("area")) or UNKNOWN_AREA,
            country=_clean(result.get("country")),
            settlement=_clean(result.get("settlement")),
            provider="llm",
            confidence=min(max(confidence, 0.0), 1.0) if confidence is not None else 0.5,
            raw=result,
        )


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None
