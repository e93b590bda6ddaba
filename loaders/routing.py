"""
Route Resolver via an OSRM-compatible routing service.

One attempt per request, bounded by a strict timeout. Anything short of a
usable route produces a straight-line fallback flagged is_fallback=True so
the caller always has something to draw.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from core.models import Coordinate, RouteResult, ValidationError
from core.proximity import haversine_meters
from core.settings import EngineSettings

log = logging.getLogger(__name__)

# Straight-line fallback assumes average road speed
FALLBACK_SPEED_KMH = 50.0


class RouteUnavailable(Exception):
    """The routing provider answered, but not with a usable route."""


def fallback_route(origin: Coordinate, destination: Coordinate, reason: str) -> RouteResult:
    """Two-point great-circle line with duration at the fallback speed."""
    distance = haversine_meters(origin, destination)
    duration = (distance / 1000) / FALLBACK_SPEED_KMH * 3600
    return RouteResult(
        distance_meters=distance,
        duration_seconds=duration,
        geometry=(origin, destination),
        is_fallback=True,
        origin=origin,
        destination=destination,
        fallback_reason=reason,
    )


def _parse_geometry(route: Dict[str, Any]) -> Tuple[Coordinate, ...]:
    geometry = route.get("geometry") or {}
    coordinates: List[Any] = geometry.get("coordinates") or []
    if len(coordinates) < 2:
        raise RouteUnavailable("Route geometry has fewer than two points")
    # GeoJSON order is [lng, lat]
    return tuple(Coordinate(float(point[1]), float(point[0])) for point in coordinates)


class RouteResolver:
    """
    OSRM driving-route client.

    Endpoint: {base}/route/v1/driving/{lng},{lat};{lng},{lat}
    No retries: interactive callers prefer an immediate fallback.
    """

    def __init__(self, settings: Optional[EngineSettings] = None,
                 session: Optional[requests.Session] = None):
        self.settings = settings or EngineSettings.from_env()
        self.base_url = self.settings.osrm_base_url.rstrip("/")
        self.timeout = self.settings.provider_timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "PacificDiscoveryEngine/1.0"})

    def _build_url(self, origin: Coordinate, destination: Coordinate) -> str:
        return (
            f"{self.base_url}/route/v1/driving/"
            f"{origin.longitude},{origin.latitude};{destination.longitude},{destination.latitude}"
        )

    def _request_route(self, origin: Coordinate, destination: Coordinate) -> RouteResult:
        response = self.session.get(
            self._build_url(origin, destination),
            params={"overview": "full", "geometries": "geojson"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()

        if data.get("code") != "Ok":
            raise RouteUnavailable(f"Provider returned code {data.get('code')!r}")
        routes = data.get("routes") or []
        if not routes:
            raise RouteUnavailable("Provider returned no routes")

        route = routes[0]
        distance = float(route["distance"])
        duration = float(route["duration"])
        if distance < 0 or duration < 0:
            raise RouteUnavailable(f"Negative distance/duration: {distance}, {duration}")

        return RouteResult(
            distance_meters=distance,
            duration_seconds=duration,
            geometry=_parse_geometry(route),
            is_fallback=False,
            origin=origin,
            destination=destination,
        )

    def resolve(self, origin: Coordinate, destination: Coordinate) -> RouteResult:
        """
        Resolve a driving route between two points.

        Never raises for provider problems; only malformed input raises.
        """
        if not isinstance(origin, Coordinate) or not isinstance(destination, Coordinate):
            raise ValidationError("origin and destination must be Coordinates")

        try:
            result = self._request_route(origin, destination)
            log.info(f"Route resolved: {result.distance_meters / 1000:.1f} km, "
                     f"{result.duration_seconds / 60:.0f} min")
            return result
        except Exception as e:
            log.warning(f"Routing provider unavailable, using straight-line fallback: {e}")
            return fallback_route(origin, destination, reason=str(e) or type(e).__name__)


# Singleton instance
_resolver: Optional[RouteResolver] = None


def get_route_resolver(settings: Optional[EngineSettings] = None) -> RouteResolver:
    """Get or create the singleton route resolver."""
    global _resolver
    if _resolver is None:
        _resolver = RouteResolver(settings)
    return _resolver
