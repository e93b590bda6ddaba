"""
Core data models for the Pacific Discovery Engine.
"""

import math
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Tuple, Any


class ValidationError(ValueError):
    """Raised when caller-supplied input is malformed. Never silently corrected."""


def require_finite(name: str, value: Any) -> float:
    """Return value as a float, or raise ValidationError if it is not a finite number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number, got {type(value).__name__}")
    value = float(value)
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite, got {value}")
    return value


def require_range(name: str, value: Any, low: float, high: float) -> float:
    value = require_finite(name, value)
    if not low <= value <= high:
        raise ValidationError(f"{name} must be between {low} and {high}, got {value}")
    return value


# ═══════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════
class FeatureType(Enum):
    """Kinds of point-of-interest the detector can emit."""
    BEACH = "beach"
    FOREST = "forest"
    MOUNTAIN = "mountain"
    CULTURAL = "cultural"
    HOTEL = "hotel"

    @classmethod
    def parse(cls, value: Any) -> "FeatureType":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key == "building":
                return cls.HOTEL
            for member in cls:
                if member.value == key:
                    return member
        raise ValidationError(f"Unknown feature type: {value!r}")


class VegetationLabel(Enum):
    SPARSE = "Sparse"
    MODERATE = "Moderate"
    HEALTHY = "Healthy"


class CoralHealthLabel(Enum):
    POOR = "Poor"
    FAIR = "Fair"
    GOOD = "Good"
    EXCELLENT = "Excellent"

    @classmethod
    def parse(cls, value: Any) -> Optional["CoralHealthLabel"]:
        """
        Map a label (enum or string) onto the enum.

        Unrecognised strings return None so scoring tables can apply their
        catch-all value; non-string input is a validation error.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValidationError(f"Coral health label must be a string, got {type(value).__name__}")
        key = value.strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        return None


class DataSource(Enum):
    """Provenance of a spectral reading."""
    LIVE = "Live"
    SIMULATED = "Simulated"


class SuitabilityTier(Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class RouteState(Enum):
    RESOLVED = "Resolved"
    FALLBACK = "Fallback"


# ═══════════════════════════════════════════════════════════════════════════
# GEOMETRY
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point in decimal degrees."""
    latitude: float
    longitude: float

    def __post_init__(self):
        object.__setattr__(self, "latitude", require_range("latitude", self.latitude, -90.0, 90.0))
        object.__setattr__(self, "longitude", require_range("longitude", self.longitude, -180.0, 180.0))

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    def as_lng_lat(self) -> Tuple[float, float]:
        """GeoJSON / OSRM axis order."""
        return (self.longitude, self.latitude)


@dataclass(frozen=True)
class BoundingBox:
    """
    Geographic query area.

    All coordinates are in decimal degrees (WGS84). Degenerate boxes
    (min == max on an axis) are allowed; inverted ones are not.
    """
    min_lat: float  # Southern edge
    max_lat: float  # Northern edge
    min_lng: float  # Western edge
    max_lng: float  # Eastern edge

    def __post_init__(self):
        for name in ("min_lat", "max_lat"):
            object.__setattr__(self, name, require_range(name, getattr(self, name), -90.0, 90.0))
        for name in ("min_lng", "max_lng"):
            object.__setattr__(self, name, require_range(name, getattr(self, name), -180.0, 180.0))
        if self.min_lat > self.max_lat:
            raise ValidationError(f"Inverted bounding box: min_lat {self.min_lat} > max_lat {self.max_lat}")
        if self.min_lng > self.max_lng:
            raise ValidationError(f"Inverted bounding box: min_lng {self.min_lng} > max_lng {self.max_lng}")

    @property
    def lat_span(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def lng_span(self) -> float:
        return self.max_lng - self.min_lng

    @property
    def center(self) -> Coordinate:
        return Coordinate((self.min_lat + self.max_lat) / 2, (self.min_lng + self.max_lng) / 2)

    def contains(self, coordinate: Coordinate) -> bool:
        """Check if a point is inside this bounding box (edges inclusive)."""
        return (self.min_lat <= coordinate.latitude <= self.max_lat and
                self.min_lng <= coordinate.longitude <= self.max_lng)

    def clamp(self, latitude: float, longitude: float) -> Coordinate:
        """Pin a computed position onto the box, absorbing float rounding at the edges."""
        return Coordinate(
            min(self.max_lat, max(self.min_lat, latitude)),
            min(self.max_lng, max(self.min_lng, longitude)),
        )

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoundingBox":
        try:
            return cls(
                min_lat=data.get("min_lat", data.get("minLat")),
                max_lat=data.get("max_lat", data.get("maxLat")),
                min_lng=data.get("min_lng", data.get("minLng")),
                max_lng=data.get("max_lng", data.get("maxLng")),
            )
        except AttributeError:
            raise ValidationError("Bounding box must be a mapping")

    @classmethod
    def from_center(cls, center: Coordinate, radius_km: float) -> "BoundingBox":
        """Create a bounding box from a center point and radius."""
        radius_km = require_finite("radius_km", radius_km)
        if radius_km < 0:
            raise ValidationError(f"radius_km must be non-negative, got {radius_km}")
        # 1 degree of latitude ≈ 111 km; longitude shrinks with cos(latitude)
        lat_offset = radius_km / 111.0
        cos_lat = max(math.cos(math.radians(center.latitude)), 1e-6)
        lng_offset = radius_km / (111.0 * cos_lat)
        return cls(
            min_lat=max(-90.0, center.latitude - lat_offset),
            max_lat=min(90.0, center.latitude + lat_offset),
            min_lng=max(-180.0, center.longitude - lng_offset),
            max_lng=min(180.0, center.longitude + lng_offset),
        )


# ═══════════════════════════════════════════════════════════════════════════
# READINGS & SCORES
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class SpectralReading:
    """
    A point-in-time environmental observation for one coordinate.

    Produced fresh on every request and never mutated. The `source` tag lets
    callers show whether the values are live or simulated.
    """
    ndvi: float
    ndwi: float
    cloud_cover_pct: float
    temperature_c: float
    vegetation_label: VegetationLabel
    coral_health_label: CoralHealthLabel
    source: DataSource
    provider: str = "Simulated"
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        object.__setattr__(self, "ndvi", require_range("ndvi", self.ndvi, -1.0, 1.0))
        object.__setattr__(self, "ndwi", require_range("ndwi", self.ndwi, -1.0, 1.0))
        object.__setattr__(self, "cloud_cover_pct",
                           require_range("cloud_cover_pct", self.cloud_cover_pct, 0.0, 100.0))
        object.__setattr__(self, "temperature_c", require_finite("temperature_c", self.temperature_c))

    @property
    def is_live(self) -> bool:
        return self.source is DataSource.LIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ndvi": self.ndvi,
            "ndwi": self.ndwi,
            "cloud_cover_pct": self.cloud_cover_pct,
            "temperature_c": self.temperature_c,
            "vegetation_label": self.vegetation_label.value,
            "coral_health_label": self.coral_health_label.value,
            "source": self.source.value,
            "provider": self.provider,
            "observed_at": self.observed_at.isoformat(),
        }


@dataclass(frozen=True)
class ClimateSnapshot:
    """Coarse climate context attached to the top discoveries."""
    temperature_c: float
    precipitation_mm: float
    humidity_pct: float
    air_quality_index: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class EnvironmentalAssessment:
    """Health and visual-quality scores for a single reading."""
    health: float
    visual_quality: float
    reading: SpectralReading

    def to_dict(self) -> Dict[str, Any]:
        return {
            "health": self.health,
            "visual_quality": self.visual_quality,
            "reading": self.reading.to_dict(),
        }


@dataclass(frozen=True)
class DiscoveredLocation:
    """
    A candidate point-of-interest produced by the feature detector.

    Ephemeral: created per discovery request and never persisted.
    """
    id: str
    name: str
    coordinate: Coordinate
    feature_type: FeatureType
    confidence: float
    reading: SpectralReading
    health_score: float
    visual_quality_score: float
    description: str
    area_sq_m: float = 0.0
    elevation_m: float = 0.0
    climate: Optional[ClimateSnapshot] = None

    @property
    def rank_score(self) -> float:
        """Batch ordering key: environmental health weighted by detection confidence."""
        return self.health_score * self.confidence

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "coordinate": self.coordinate.to_dict(),
            "feature_type": self.feature_type.value,
            "confidence": self.confidence,
            "reading": self.reading.to_dict(),
            "health_score": self.health_score,
            "visual_quality_score": self.visual_quality_score,
            "description": self.description,
            "area_sq_m": self.area_sq_m,
            "elevation_m": self.elevation_m,
            "climate": self.climate.to_dict() if self.climate else None,
        }


@dataclass(frozen=True)
class LocationSuitability:
    """
    Tourism suitability of a single point.

    Derived purely from a SpectralReading. Sub-scores and overall are
    integers in [0, 100].
    """
    overall: int
    vegetation: int
    temperature: int
    coral_health: int
    accessibility: int
    tier: SuitabilityTier
    recommendation: str
    source_reading: Optional[SpectralReading] = None
    activities: Tuple[str, ...] = ()
    profile: str = "discovery"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "vegetation": self.vegetation,
            "temperature": self.temperature,
            "coral_health": self.coral_health,
            "accessibility": self.accessibility,
            "tier": self.tier.value,
            "recommendation": self.recommendation,
            "activities": list(self.activities),
            "profile": self.profile,
            "source_reading": self.source_reading.to_dict() if self.source_reading else None,
        }


# ═══════════════════════════════════════════════════════════════════════════
# PROXIMITY & ROUTING
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class NearbyCandidate:
    """An entity supplied by the persistence layer for proximity search."""
    id: str
    name: str
    coordinate: Coordinate
    category: Optional[str] = None


@dataclass(frozen=True)
class NearbyEntity:
    """Read-only view of a candidate that fell inside the search radius."""
    id: str
    name: str
    coordinate: Coordinate
    distance_meters: float
    category: Optional[str] = None

    @property
    def distance_km(self) -> float:
        return self.distance_meters / 1000.0

    def format_distance(self) -> str:
        """Human-readable "X away" label."""
        if self.distance_meters < 1000:
            return f"{round(self.distance_meters)} m away"
        return f"{self.distance_km:.1f} km away"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "coordinate": self.coordinate.to_dict(),
            "distance_meters": self.distance_meters,
            "category": self.category,
        }


@dataclass(frozen=True)
class RouteResult:
    """
    Outcome of a single route request.

    `is_fallback` is True when the routing provider could not be used and the
    geometry is a synthesized straight line.
    """
    distance_meters: float
    duration_seconds: float
    geometry: Tuple[Coordinate, ...]
    is_fallback: bool
    origin: Optional[Coordinate] = None
    destination: Optional[Coordinate] = None
    fallback_reason: Optional[str] = None

    @property
    def state(self) -> RouteState:
        return RouteState.FALLBACK if self.is_fallback else RouteState.RESOLVED

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "geometry": {
                "type": "LineString",
                "coordinates": [list(c.as_lng_lat()) for c in self.geometry],
            },
            "properties": {
                "distanceMeters": self.distance_meters,
                "durationSeconds": self.duration_seconds,
                "isFallback": self.is_fallback,
            },
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "distance_meters": self.distance_meters,
            "duration_seconds": self.duration_seconds,
            "geometry": [c.to_dict() for c in self.geometry],
            "is_fallback": self.is_fallback,
            "state": self.state.value,
            "fallback_reason": self.fallback_reason,
        }
