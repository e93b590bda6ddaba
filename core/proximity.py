"""
Proximity Search

Great-circle distance filtering and ranking of candidate entities around
an origin point. Candidates come from the persistence layer; this module
never fetches them itself.
"""

import math
import logging
from typing import Any, Iterable, List, Mapping, Optional, Union

import numpy as np

from core.models import (
    Coordinate, NearbyCandidate, NearbyEntity, ValidationError, require_finite,
)

log = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000.0


def haversine_meters(origin: Coordinate, target: Coordinate) -> float:
    """Calculate distance between two points in meters."""
    phi1 = math.radians(origin.latitude)
    phi2 = math.radians(target.latitude)
    delta_phi = math.radians(target.latitude - origin.latitude)
    delta_lambda = math.radians(target.longitude - origin.longitude)

    a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    a = min(1.0, max(0.0, a))  # rounding can push near-antipodal pairs past 1
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def haversine_many(origin: Coordinate, latitudes: np.ndarray, longitudes: np.ndarray) -> np.ndarray:
    """Vectorized haversine from one origin to many points (float64, meters)."""
    phi1 = np.radians(origin.latitude)
    phi2 = np.radians(latitudes)
    delta_phi = phi2 - phi1
    delta_lambda = np.radians(longitudes - origin.longitude)

    a = np.sin(delta_phi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(delta_lambda / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def _coerce_candidate(item: Union[NearbyCandidate, Mapping[str, Any]]) -> NearbyCandidate:
    """Accept a NearbyCandidate or a persistence row (lat/lng or latitude/longitude keys)."""
    if isinstance(item, NearbyCandidate):
        return item
    if not isinstance(item, Mapping):
        raise ValidationError(f"Candidate must be a NearbyCandidate or mapping, got {type(item).__name__}")

    latitude = item.get("latitude", item.get("lat"))
    longitude = item.get("longitude", item.get("lng", item.get("lon")))
    if latitude is None or longitude is None:
        raise ValidationError(f"Candidate {item.get('id')!r} has no coordinates")

    return NearbyCandidate(
        id=str(item.get("id")),
        name=str(item.get("name", "")),
        coordinate=Coordinate(latitude, longitude),
        category=item.get("category"),
    )


def find_nearby(
    origin: Coordinate,
    candidates: Iterable[Union[NearbyCandidate, Mapping[str, Any]]],
    radius_meters: float,
    limit: Optional[int] = None
) -> List[NearbyEntity]:
    """
    Return candidates within radius_meters of origin, nearest first.

    Ties keep the input order. A zero radius matches only co-located
    candidates; an empty candidate list yields an empty result.
    """
    if not isinstance(origin, Coordinate):
        raise ValidationError(f"origin must be a Coordinate, got {type(origin).__name__}")
    radius_meters = require_finite("radius_meters", radius_meters)
    if radius_meters < 0:
        raise ValidationError(f"radius_meters must be non-negative, got {radius_meters}")
    if limit is not None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise ValidationError(f"limit must be a non-negative integer, got {limit!r}")

    pool = [_coerce_candidate(c) for c in candidates]
    if not pool:
        return []

    lats = np.array([c.coordinate.latitude for c in pool], dtype=np.float64)
    lngs = np.array([c.coordinate.longitude for c in pool], dtype=np.float64)
    distances = haversine_many(origin, lats, lngs)

    inside = np.flatnonzero(distances <= radius_meters)
    order = inside[np.argsort(distances[inside], kind="stable")]
    if limit is not None:
        order = order[:limit]

    results = [
        NearbyEntity(
            id=pool[i].id,
            name=pool[i].name,
            coordinate=pool[i].coordinate,
            distance_meters=float(distances[i]),
            category=pool[i].category,
        )
        for i in order
    ]

    log.debug(
        f"Proximity: {len(results)}/{len(pool)} candidates within {radius_meters:.0f}m "
        f"of ({origin.latitude:.4f}, {origin.longitude:.4f})"
    )
    return results
