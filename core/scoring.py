"""
Location Suitability Scoring

Turns a spectral reading into four bounded sub-scores and one overall
tourism-suitability rating with:
- Named coral-health profiles (discovery vs. per-site analysis)
- Fixed-weight aggregation
- Tiering with templated recommendations
- Threshold-gated activity suggestions
"""

import math
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any

from core.models import (
    CoralHealthLabel, LocationSuitability, SpectralReading, SuitabilityTier,
    ValidationError, require_finite, require_range,
)

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# SCORING PROFILES
# ═══════════════════════════════════════════════════════════════════════════
class ScoringProfile(Enum):
    """Coral-health tables, keyed by the caller that invokes the scorer."""
    DISCOVERY = "discovery"
    SITE_ANALYSIS = "site_analysis"


@dataclass
class CoralTable:
    """Label -> score lookup with a catch-all for anything else."""

    name: str
    description: str
    scores: Dict[CoralHealthLabel, float] = field(default_factory=dict)
    default: float = 30.0

    def score(self, label: Optional[CoralHealthLabel]) -> float:
        if label is None:
            return self.default
        return self.scores.get(label, self.default)


CORAL_TABLES = {
    ScoringProfile.DISCOVERY: CoralTable(
        name="Discovery",
        description="Three-tier table used for open location discovery",
        scores={
            CoralHealthLabel.GOOD: 100.0,
            CoralHealthLabel.FAIR: 60.0,
        },
    ),
    ScoringProfile.SITE_ANALYSIS: CoralTable(
        name="Site Analysis",
        description="Four-tier table used for per-site analysis by signed-in users",
        scores={
            CoralHealthLabel.EXCELLENT: 95.0,
            CoralHealthLabel.GOOD: 75.0,
            CoralHealthLabel.FAIR: 50.0,
        },
    ),
}

# Weights sum to 1.0; marine health dominates.
WEIGHTS = {
    "vegetation": 0.25,
    "temperature": 0.25,
    "coral_health": 0.30,
    "accessibility": 0.20,
}

# Optimal temperature band (°C)
TEMP_OPTIMAL_MIN = 26.0
TEMP_OPTIMAL_MAX = 30.0
TEMP_COOL_PENALTY = 10.0  # points per degree below the band
TEMP_HOT_PENALTY = 15.0   # points per degree above the band

TIER_THRESHOLDS = [
    (80, SuitabilityTier.EXCELLENT),
    (65, SuitabilityTier.GOOD),
    (50, SuitabilityTier.FAIR),
]

RECOMMENDATIONS = {
    SuitabilityTier.EXCELLENT: "Highly recommended for eco-tourism and resort development. "
                               "Excellent environmental conditions.",
    SuitabilityTier.GOOD: "Good location for tourism. Consider focusing on specific activities "
                          "based on strengths.",
    SuitabilityTier.FAIR: "Moderate potential. May require additional infrastructure or "
                          "seasonal planning.",
    SuitabilityTier.POOR: "Limited tourism potential. Consider alternative locations or "
                          "specialized niche tourism.",
}

ACTIVITY_ECO = "Eco-tourism, hiking, bird watching, nature photography"
ACTIVITY_MARINE = "Diving, snorkeling, marine conservation activities"
ACTIVITY_BEACH = "Beach resort, water sports, year-round tourism"
ACTIVITY_LUXURY = "Luxury resort development, high-end eco-lodges"

ACTIVITY_THRESHOLD = 70
LUXURY_THRESHOLD = 75


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative scores (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


# ═══════════════════════════════════════════════════════════════════════════
# SUB-SCORES
# ═══════════════════════════════════════════════════════════════════════════
def vegetation_score(ndvi: float) -> float:
    ndvi = require_finite("ndvi", ndvi)
    return min(100.0, max(0.0, (ndvi + 1) * 50))


def temperature_score(temperature_c: float) -> float:
    """100 inside 26-30°C; overheating is penalized more steeply than cool weather."""
    t = require_finite("temperature_c", temperature_c)
    if TEMP_OPTIMAL_MIN <= t <= TEMP_OPTIMAL_MAX:
        return 100.0
    if t < TEMP_OPTIMAL_MIN:
        return max(0.0, 100 - (TEMP_OPTIMAL_MIN - t) * TEMP_COOL_PENALTY)
    return max(0.0, 100 - (t - TEMP_OPTIMAL_MAX) * TEMP_HOT_PENALTY)


def accessibility_score(cloud_cover_pct: float) -> float:
    cloud_cover_pct = require_finite("cloud_cover_pct", cloud_cover_pct)
    return max(0.0, 100 - cloud_cover_pct)


def tier_for(overall: int) -> SuitabilityTier:
    for threshold, tier in TIER_THRESHOLDS:
        if overall >= threshold:
            return tier
    return SuitabilityTier.POOR


def suggest_activities(vegetation: int, coral_health: int, temperature: int, overall: int) -> List[str]:
    activities = []
    if vegetation >= ACTIVITY_THRESHOLD:
        activities.append(ACTIVITY_ECO)
    if coral_health >= ACTIVITY_THRESHOLD:
        activities.append(ACTIVITY_MARINE)
    if temperature >= ACTIVITY_THRESHOLD:
        activities.append(ACTIVITY_BEACH)
    if overall >= LUXURY_THRESHOLD:
        activities.append(ACTIVITY_LUXURY)
    return activities


# ═══════════════════════════════════════════════════════════════════════════
# SUITABILITY SCORER
# ═══════════════════════════════════════════════════════════════════════════
class SuitabilityScorer:
    """
    Weighted suitability scorer.

    The scoring formula is:

    overall = round(
        0.25 × vegetation +
        0.25 × temperature +
        0.30 × coral_health +
        0.20 × accessibility
    )

    Sub-scores are computed unrounded, combined, then each reported rounded.
    Malformed input raises ValidationError rather than producing a
    misleading score.
    """

    def __init__(self, profile: ScoringProfile = ScoringProfile.DISCOVERY):
        self.profile = profile
        self.coral_table = CORAL_TABLES[profile]

    def score_values(
        self,
        ndvi: float,
        temperature_c: float,
        cloud_cover_pct: float,
        coral_health_label: Any,
        reading: Optional[SpectralReading] = None
    ) -> LocationSuitability:
        """Score a raw (ndvi, temperature, cloud cover, coral label) tuple."""
        ndvi = require_range("ndvi", ndvi, -1.0, 1.0)
        temperature_c = require_finite("temperature_c", temperature_c)
        cloud_cover_pct = require_range("cloud_cover_pct", cloud_cover_pct, 0.0, 100.0)
        label = CoralHealthLabel.parse(coral_health_label)

        veg = vegetation_score(ndvi)
        temp = temperature_score(temperature_c)
        coral = self.coral_table.score(label)
        access = accessibility_score(cloud_cover_pct)

        weighted = (
            veg * WEIGHTS["vegetation"] +
            temp * WEIGHTS["temperature"] +
            coral * WEIGHTS["coral_health"] +
            access * WEIGHTS["accessibility"]
        )
        overall = round_half_up(weighted)
        tier = tier_for(overall)

        vegetation_i = round_half_up(veg)
        temperature_i = round_half_up(temp)
        coral_i = round_half_up(coral)
        access_i = round_half_up(access)

        log.debug(
            f"Suitability [{self.profile.value}] veg={veg:.1f} temp={temp:.1f} "
            f"coral={coral:.1f} access={access:.1f} -> {overall} ({tier.value})"
        )

        return LocationSuitability(
            overall=overall,
            vegetation=vegetation_i,
            temperature=temperature_i,
            coral_health=coral_i,
            accessibility=access_i,
            tier=tier,
            recommendation=RECOMMENDATIONS[tier],
            source_reading=reading,
            activities=tuple(suggest_activities(vegetation_i, coral_i, temperature_i, overall)),
            profile=self.profile.value,
        )

    def score(self, reading: SpectralReading) -> LocationSuitability:
        """Score a spectral reading."""
        if not isinstance(reading, SpectralReading):
            raise ValidationError(f"Expected SpectralReading, got {type(reading).__name__}")
        return self.score_values(
            reading.ndvi,
            reading.temperature_c,
            reading.cloud_cover_pct,
            reading.coral_health_label,
            reading=reading,
        )

    def explain(self, suitability: LocationSuitability) -> str:
        """Generate human-readable explanation of a suitability result."""
        lines = [f"Suitability: {suitability.overall}/100 ({suitability.tier.value})"]
        lines.append(f"Profile: {self.coral_table.name}")
        lines.append("")
        lines.append("Sub-scores:")
        lines.append(f"  vegetation:    {suitability.vegetation}")
        lines.append(f"  temperature:   {suitability.temperature}")
        lines.append(f"  coral_health:  {suitability.coral_health}")
        lines.append(f"  accessibility: {suitability.accessibility}")
        lines.append("")
        lines.append(suitability.recommendation)
        if suitability.activities:
            lines.append("\nRecommended activities:")
            for activity in suitability.activities:
                lines.append(f"  - {activity}")
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════════════════
# FACTORY FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════
def get_scorer(profile: ScoringProfile = ScoringProfile.DISCOVERY) -> SuitabilityScorer:
    """Get a scorer for the specified coral profile."""
    return SuitabilityScorer(profile)


def list_profiles() -> List[Dict[str, str]]:
    """List all available scoring profiles."""
    return [
        {"id": p.value, "name": CORAL_TABLES[p].name, "description": CORAL_TABLES[p].description}
        for p in ScoringProfile
    ]
