"""
Environmental Health Evaluator

Two separate scoring paths that must not be merged:

- environmental_health(): raw-reading formula over (ndvi, ndwi, cloud cover)
- candidate_health(): detector-candidate formula over vegetation, water
  presence and urbanization proxies

Plus a deterministic visual-quality score driven by cloud cover.
"""

import logging
from typing import Dict, Optional, Tuple

from core.models import (
    EnvironmentalAssessment, FeatureType, SpectralReading,
    require_finite, require_range,
)

log = logging.getLogger(__name__)


# Visual quality (floor, span) per feature type; clear skies earn the full span.
VISUAL_QUALITY_BANDS: Dict[Optional[FeatureType], Tuple[float, float]] = {
    FeatureType.BEACH: (80.0, 15.0),
    FeatureType.FOREST: (75.0, 15.0),
    FeatureType.MOUNTAIN: (70.0, 20.0),
    FeatureType.CULTURAL: (75.0, 15.0),
    FeatureType.HOTEL: (75.0, 0.0),
    None: (70.0, 30.0),
}


def environmental_health(ndvi: float, ndwi: float, cloud_cover_pct: float) -> float:
    """
    Score a raw reading 0-100.

    vegetation (up to 40) + water presence (up to 30) + visibility (up to 30).
    """
    ndvi = require_range("ndvi", ndvi, -1.0, 1.0)
    ndwi = require_range("ndwi", ndwi, -1.0, 1.0)
    cloud_cover_pct = require_range("cloud_cover_pct", cloud_cover_pct, 0.0, 100.0)

    vegetation_score = max(0.0, ndvi * 40)
    water_score = 30.0 if abs(ndwi) > 0.3 else abs(ndwi) * 100
    visibility_score = (100 - cloud_cover_pct) * 0.3

    return min(100.0, vegetation_score + water_score + visibility_score)


def candidate_health(vegetation_index: float, water_presence: float, urbanization: float) -> float:
    """
    Score a detector candidate 0-100.

    Rewards vegetation and water, rewards low urbanization, but gives a
    small credit for some urbanization (accessibility).
    """
    vegetation_index = require_finite("vegetation_index", vegetation_index)
    water_presence = require_finite("water_presence", water_presence)
    urbanization = require_finite("urbanization", urbanization)

    vegetation_score = vegetation_index * 35
    water_score = min(30.0, water_presence * 30)
    preservation_score = (1 - urbanization) * 25
    accessibility_score = urbanization * 10

    score = vegetation_score + water_score + preservation_score + accessibility_score
    return max(0.0, min(100.0, score))


def visual_quality(cloud_cover_pct: float, feature_type: Optional[FeatureType] = None) -> float:
    cloud_cover_pct = require_range("cloud_cover_pct", cloud_cover_pct, 0.0, 100.0)
    floor, span = VISUAL_QUALITY_BANDS.get(feature_type, VISUAL_QUALITY_BANDS[None])
    clarity = (100 - cloud_cover_pct) / 100
    return max(0.0, min(100.0, floor + span * clarity))


def assess_reading(
    reading: SpectralReading,
    feature_type: Optional[FeatureType] = None
) -> EnvironmentalAssessment:
    """Evaluate a spectral reading into health and visual quality."""
    health = environmental_health(reading.ndvi, reading.ndwi, reading.cloud_cover_pct)
    quality = visual_quality(reading.cloud_cover_pct, feature_type)
    log.debug(f"Assessed reading ndvi={reading.ndvi} ndwi={reading.ndwi}: health={health:.1f}")
    return EnvironmentalAssessment(
        health=round(health, 1),
        visual_quality=round(quality, 1),
        reading=reading,
    )
