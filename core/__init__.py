"""
Core module for the Pacific Discovery Engine.
Contains data models, scoring and proximity search.

The detector and engine facade live in core.detector and core.engine;
they depend on loaders and are imported from there directly.
"""

from core.models import (
    Coordinate, BoundingBox, SpectralReading, DiscoveredLocation, LocationSuitability,
    NearbyEntity, RouteResult, EnvironmentalAssessment, FeatureType, ValidationError,
)
from core.health import environmental_health, candidate_health, assess_reading
from core.scoring import SuitabilityScorer, ScoringProfile, get_scorer
from core.proximity import find_nearby, haversine_meters
from core.settings import EngineSettings

__all__ = [
    # Models
    "Coordinate",
    "BoundingBox",
    "SpectralReading",
    "DiscoveredLocation",
    "LocationSuitability",
    "NearbyEntity",
    "RouteResult",
    "EnvironmentalAssessment",
    "FeatureType",
    "ValidationError",
    # Scoring
    "environmental_health",
    "candidate_health",
    "assess_reading",
    "SuitabilityScorer",
    "ScoringProfile",
    "get_scorer",
    # Proximity
    "find_nearby",
    "haversine_meters",
    "EngineSettings",
]
