"""
Feature Detector

Synthesizes candidate points-of-interest inside a bounding box with:
- Per-type candidate counts and placement strategies
- Simulated remote-sensing properties (vegetation, water, urbanization)
- Confidence drawn toward the top of each type's range
- Per-type concurrent detection with deterministic seeding
"""

import random
import logging
import threading
from dataclasses import dataclass, replace
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Any

from core.health import candidate_health, visual_quality
from core.models import (
    BoundingBox, Coordinate, DiscoveredLocation, FeatureType, SpectralReading,
    ValidationError, require_range,
)
from loaders.spectral import (
    SpectralReadingSynthesizer, simulated_coral_label, vegetation_label_for,
)

log = logging.getLogger(__name__)


class DiscoveryCancelled(Exception):
    """Raised when the caller cancels a discovery in flight."""


Range = Tuple[float, float]


@dataclass(frozen=True)
class FeatureSpec:
    """Everything the detector needs to synthesize one feature type."""
    feature_type: FeatureType
    count: Tuple[int, int]
    confidence: Tuple[float, float, float]  # (low, high, mode) of a triangular draw
    default_threshold: float
    vegetation: Range
    water: Range
    urbanization: Range
    elevation: Range
    area: Range
    name_words: Tuple[str, ...] = ()
    name_suffix: str = ""


FEATURE_SPECS: Dict[FeatureType, FeatureSpec] = {
    FeatureType.BEACH: FeatureSpec(
        feature_type=FeatureType.BEACH,
        count=(3, 7),
        confidence=(0.65, 0.97, 0.90),
        default_threshold=0.70,
        vegetation=(0.1, 0.3),
        water=(0.6, 0.95),
        urbanization=(0.0, 0.3),
        elevation=(0.0, 5.0),
        area=(5000.0, 50000.0),
        name_words=("Paradise", "Crystal", "Hidden", "Coral", "Sunset", "Palm", "Azure"),
        name_suffix="Beach",
    ),
    FeatureType.FOREST: FeatureSpec(
        feature_type=FeatureType.FOREST,
        count=(2, 5),
        confidence=(0.65, 0.97, 0.92),
        default_threshold=0.70,
        vegetation=(0.75, 0.95),
        water=(0.15, 0.35),
        urbanization=(0.0, 0.1),
        elevation=(100.0, 900.0),
        area=(100000.0, 1000000.0),
        name_words=("Tropical", "Pristine", "Ancient", "Highland", "Biodiversity"),
        name_suffix="Rainforest",
    ),
    FeatureType.MOUNTAIN: FeatureSpec(
        feature_type=FeatureType.MOUNTAIN,
        count=(1, 3),
        confidence=(0.65, 0.97, 0.85),
        default_threshold=0.70,
        vegetation=(0.35, 0.70),
        water=(-0.2, -0.05),
        urbanization=(0.0, 0.15),
        elevation=(500.0, 3000.0),
        area=(50000.0, 250000.0),
        name_words=("Volcanic", "Sacred", "Cloud", "Highland", "Summit"),
        name_suffix="Peak",
    ),
    FeatureType.HOTEL: FeatureSpec(
        feature_type=FeatureType.HOTEL,
        count=(4, 8),
        confidence=(0.65, 0.95, 0.85),
        default_threshold=0.65,
        vegetation=(0.25, 0.55),
        water=(0.1, 0.4),
        urbanization=(0.6, 0.95),
        elevation=(0.0, 200.0),
        area=(1000.0, 5000.0),
    ),
    FeatureType.CULTURAL: FeatureSpec(
        feature_type=FeatureType.CULTURAL,
        count=(1, 3),
        confidence=(0.60, 0.90, 0.80),
        default_threshold=0.65,
        vegetation=(0.35, 0.65),
        water=(0.0, 0.2),
        urbanization=(0.2, 0.5),
        elevation=(0.0, 600.0),
        area=(2000.0, 20000.0),
        name_words=("Traditional", "Historic", "Ancient", "Indigenous"),
        name_suffix="Village Site",
    ),
}

DEFAULT_THRESHOLDS: Dict[FeatureType, float] = {
    ft: spec.default_threshold for ft, spec in FEATURE_SPECS.items()
}

HOTEL_COASTAL_PROBABILITY = 0.6
HOTEL_COASTAL_INSET = 0.12
HOTEL_WATER_COASTAL = 0.4
HOTEL_WATER_INTERIOR = 0.1


# ═══════════════════════════════════════════════════════════════════════════
# PLACEMENT
# ═══════════════════════════════════════════════════════════════════════════
def _point_on_edge(bbox: BoundingBox, rng: random.Random, inset: float) -> Coordinate:
    """A point `inset` (fraction of span) in from a uniformly chosen edge."""
    edge = rng.randrange(4)
    along = rng.random()
    if edge == 0:    # north
        lat, lng = bbox.max_lat - inset * bbox.lat_span, bbox.min_lng + along * bbox.lng_span
    elif edge == 1:  # south
        lat, lng = bbox.min_lat + inset * bbox.lat_span, bbox.min_lng + along * bbox.lng_span
    elif edge == 2:  # east
        lat, lng = bbox.min_lat + along * bbox.lat_span, bbox.max_lng - inset * bbox.lng_span
    else:            # west
        lat, lng = bbox.min_lat + along * bbox.lat_span, bbox.min_lng + inset * bbox.lng_span
    return bbox.clamp(lat, lng)


def _point_inside(bbox: BoundingBox, rng: random.Random, low: float, high: float) -> Coordinate:
    lat = bbox.min_lat + rng.uniform(low, high) * bbox.lat_span
    lng = bbox.min_lng + rng.uniform(low, high) * bbox.lng_span
    return bbox.clamp(lat, lng)


def place_beach(bbox: BoundingBox, rng: random.Random) -> Tuple[Coordinate, bool]:
    return _point_on_edge(bbox, rng, rng.uniform(0.05, 0.20)), True


def place_inland(bbox: BoundingBox, rng: random.Random) -> Tuple[Coordinate, bool]:
    return _point_inside(bbox, rng, 0.25, 0.75), False


def place_hotel(bbox: BoundingBox, rng: random.Random) -> Tuple[Coordinate, bool]:
    if rng.random() < HOTEL_COASTAL_PROBABILITY:
        return _point_on_edge(bbox, rng, HOTEL_COASTAL_INSET), True
    return _point_inside(bbox, rng, 0.30, 0.70), False


PLACEMENT: Dict[FeatureType, Callable[[BoundingBox, random.Random], Tuple[Coordinate, bool]]] = {
    FeatureType.BEACH: place_beach,
    FeatureType.FOREST: place_inland,
    FeatureType.MOUNTAIN: place_inland,
    FeatureType.CULTURAL: place_inland,
    FeatureType.HOTEL: place_hotel,
}


# ═══════════════════════════════════════════════════════════════════════════
# NAMES & DESCRIPTIONS
# ═══════════════════════════════════════════════════════════════════════════
def feature_name(spec: FeatureSpec, index: int, coastal: bool) -> str:
    if spec.feature_type is FeatureType.HOTEL:
        return f"{'Beachfront' if coastal else 'Hillside'} Resort {index + 1}"
    words = spec.name_words
    name = f"{words[index % len(words)]} {spec.name_suffix}"
    if index >= len(words):
        name = f"{name} {index + 1}"
    return name


def feature_description(feature_type: FeatureType, area: float, elevation: float, coastal: bool) -> str:
    if feature_type is FeatureType.BEACH:
        return (f"Pristine beach detected via satellite imagery. {area:,.0f}m² of white sand "
                f"coastline with excellent water quality.")
    if feature_type is FeatureType.FOREST:
        return (f"Dense rainforest with high biodiversity. {area / 10000:.1f} hectares of "
                f"protected ecosystem.")
    if feature_type is FeatureType.MOUNTAIN:
        return (f"Mountain peak offering hiking and trekking. {elevation:,.0f}m elevation "
                f"with panoramic views.")
    if feature_type is FeatureType.HOTEL:
        setting = "on coastal strip" if coastal else "in elevated location"
        return f"Accommodation site detected. {area:,.0f}m² building structure {setting}."
    return (f"Cultural heritage site with traditional structures. {area:,.0f}m² of "
            f"community land of historic significance.")


# ═══════════════════════════════════════════════════════════════════════════
# DETECTOR
# ═══════════════════════════════════════════════════════════════════════════
def resolve_thresholds(overrides: Optional[Dict[Any, float]] = None) -> Dict[FeatureType, float]:
    """Merge caller thresholds (keys as FeatureType or names) over the defaults."""
    thresholds = dict(DEFAULT_THRESHOLDS)
    for key, value in (overrides or {}).items():
        feature_type = FeatureType.parse(key)
        thresholds[feature_type] = require_range(f"threshold[{feature_type.value}]", value, 0.0, 1.0)
    return thresholds


def _rank(items: List[DiscoveredLocation]) -> List[DiscoveredLocation]:
    return sorted(items, key=lambda d: d.rank_score, reverse=True)


class FeatureDetector:
    """
    Synthetic point-of-interest detector.

    Each requested type is detected on its own worker thread with its own
    child generator, so a seeded detector gives the same batch however the
    threads are scheduled.
    """

    def __init__(self, synthesizer: Optional[SpectralReadingSynthesizer] = None,
                 rng: Optional[random.Random] = None, max_workers: int = 5):
        self.synthesizer = synthesizer or SpectralReadingSynthesizer()
        self.rng = rng or random.Random()
        self.max_workers = max(1, max_workers)
        self._rng_lock = threading.Lock()

    def _reading_for(self, coordinate: Coordinate, vegetation: float, water: float,
                     rng: random.Random) -> SpectralReading:
        base = self.synthesizer.read(coordinate, use_live_source=False, rng=rng)
        ndvi = round(min(1.0, max(-1.0, vegetation)), 2)
        ndwi = round(min(1.0, max(-1.0, water)), 2)
        return replace(
            base, ndvi=ndvi, ndwi=ndwi,
            vegetation_label=vegetation_label_for(ndvi),
            coral_health_label=simulated_coral_label(ndvi),
        )

    def detect_type(
        self,
        bbox: BoundingBox,
        feature_type: FeatureType,
        threshold: float,
        rng: random.Random,
        cancel_event: Optional[threading.Event] = None
    ) -> List[DiscoveredLocation]:
        """Detect one feature type; results ranked by health × confidence."""
        spec = FEATURE_SPECS[feature_type]
        place = PLACEMENT[feature_type]
        count = rng.randint(*spec.count)
        found = []

        for index in range(count):
            if cancel_event is not None and cancel_event.is_set():
                raise DiscoveryCancelled(f"Discovery cancelled during {feature_type.value} detection")

            coordinate, coastal = place(bbox, rng)
            vegetation = rng.uniform(*spec.vegetation)
            if feature_type is FeatureType.HOTEL:
                water = HOTEL_WATER_COASTAL if coastal else HOTEL_WATER_INTERIOR
            else:
                water = rng.uniform(*spec.water)
            urbanization = rng.uniform(*spec.urbanization)
            elevation = rng.uniform(*spec.elevation)
            area = rng.uniform(*spec.area)
            low, high, mode = spec.confidence
            confidence = round(rng.triangular(low, high, mode), 3)

            if confidence < threshold:
                log.debug(f"Discarded {feature_type.value} #{index + 1}: confidence {confidence} < {threshold}")
                continue

            reading = self._reading_for(coordinate, vegetation, water, rng)
            found.append(DiscoveredLocation(
                id=f"{feature_type.value}-{index + 1}-{rng.getrandbits(32):08x}",
                name=feature_name(spec, index, coastal),
                coordinate=coordinate,
                feature_type=feature_type,
                confidence=confidence,
                reading=reading,
                health_score=round(candidate_health(vegetation, water, urbanization), 1),
                visual_quality_score=round(visual_quality(reading.cloud_cover_pct, feature_type), 1),
                description=feature_description(feature_type, area, elevation, coastal),
                area_sq_m=round(area),
                elevation_m=round(elevation),
            ))

        log.debug(f"Detected {len(found)}/{count} {feature_type.value} candidates")
        return _rank(found)

    def detect(
        self,
        bbox: BoundingBox,
        feature_types: Iterable[Any],
        confidence_thresholds: Optional[Dict[Any, float]] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> List[DiscoveredLocation]:
        """
        Detect all requested types concurrently and merge the ranked results.

        Args:
            bbox: Search area
            feature_types: FeatureType members or their names ("building" means hotel)
            confidence_thresholds: Per-type overrides of the default thresholds
            cancel_event: Set by the caller to abandon the request

        Returns:
            Union of all types, ranked by health × confidence (stable)
        """
        if not isinstance(bbox, BoundingBox):
            raise ValidationError(f"bbox must be a BoundingBox, got {type(bbox).__name__}")

        requested = []
        for item in feature_types:
            feature_type = FeatureType.parse(item)
            if feature_type not in requested:
                requested.append(feature_type)
        thresholds = resolve_thresholds(confidence_thresholds)

        if not requested:
            return []

        # Child seeds are drawn up front, in request order
        with self._rng_lock:
            child_rngs = {ft: random.Random(self.rng.getrandbits(64)) for ft in requested}

        by_type: Dict[FeatureType, List[DiscoveredLocation]] = {}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(requested))) as executor:
            futures = {
                executor.submit(self.detect_type, bbox, ft, thresholds[ft], child_rngs[ft], cancel_event): ft
                for ft in requested
            }
            try:
                for future in as_completed(futures):
                    by_type[futures[future]] = future.result()
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        merged = []
        for feature_type in requested:
            merged.extend(by_type[feature_type])

        log.info(
            f"Discovery in [{bbox.min_lat:.3f},{bbox.max_lat:.3f}]x[{bbox.min_lng:.3f},{bbox.max_lng:.3f}]: "
            f"{len(merged)} locations across {len(requested)} types"
        )
        return _rank(merged)
