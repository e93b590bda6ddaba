"""
Discovery Engine - the operations exposed to the marketplace.

Wires the synthesizer, detector, evaluator, scorer, proximity search and
route resolver behind one stateless facade. Each call is request-scoped;
nothing here is cached between calls.
"""

import random
import logging
import threading
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from core.detector import DiscoveryCancelled, FeatureDetector
from core.health import assess_reading
from core.models import (
    BoundingBox, Coordinate, DiscoveredLocation, EnvironmentalAssessment,
    LocationSuitability, NearbyCandidate, NearbyEntity, RouteResult, ValidationError,
)
from core.proximity import find_nearby
from core.scoring import ScoringProfile, get_scorer
from core.settings import EngineSettings
from loaders.climate import ClimateLoader
from loaders.routing import RouteResolver, get_route_resolver
from loaders.spectral import (
    CopernicusSpectralSource, SimulatedSpectralSource, SpectralReadingSynthesizer,
    get_spectral_loader,
)

log = logging.getLogger(__name__)

__all__ = ["DiscoveryEngine", "DiscoveryCancelled", "get_engine", "CLIMATE_ENRICHED_COUNT"]

# Only the best few discoveries get climate context
CLIMATE_ENRICHED_COUNT = 3


def _parse_profile(profile: Union[ScoringProfile, str]) -> ScoringProfile:
    if isinstance(profile, ScoringProfile):
        return profile
    try:
        return ScoringProfile(str(profile).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown scoring profile: {profile!r}")


class DiscoveryEngine:
    """
    Facade over the discovery, scoring and routing components.

    Pass `rng` for reproducible simulations; the detector, simulated
    readings and climate snapshots each get their own child generator.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        synthesizer: Optional[SpectralReadingSynthesizer] = None,
        route_resolver: Optional[RouteResolver] = None,
        climate_loader: Optional[ClimateLoader] = None,
        rng: Optional[random.Random] = None
    ):
        self.settings = settings or EngineSettings.from_env()
        rng = rng or random.Random()

        if synthesizer is None:
            synthesizer = SpectralReadingSynthesizer(
                live_source=CopernicusSpectralSource(self.settings, rng=random.Random(rng.getrandbits(64))),
                simulated_source=SimulatedSpectralSource(random.Random(rng.getrandbits(64))),
            )
        self.synthesizer = synthesizer
        self.detector = FeatureDetector(
            synthesizer=self.synthesizer,
            rng=random.Random(rng.getrandbits(64)),
            max_workers=self.settings.discovery_max_workers,
        )
        self.route_resolver = route_resolver or RouteResolver(self.settings)
        self.climate_loader = climate_loader or ClimateLoader(random.Random(rng.getrandbits(64)))

    def discover(
        self,
        bbox: BoundingBox,
        types: Iterable[Any],
        confidence_thresholds: Optional[Dict[Any, float]] = None,
        *,
        with_climate: bool = False,
        cancel_event: Optional[threading.Event] = None
    ) -> List[DiscoveredLocation]:
        """
        Discover candidate locations inside a bounding box.

        Returns the ranked batch; raises DiscoveryCancelled if cancel_event
        is set before detection finishes.
        """
        try:
            locations = self.detector.detect(bbox, types, confidence_thresholds, cancel_event)
        except DiscoveryCancelled:
            log.info("Discovery cancelled by caller")
            raise

        if with_climate and locations:
            head = [
                replace(loc, climate=self.climate_loader.get_climate(loc.coordinate))
                for loc in locations[:CLIMATE_ENRICHED_COUNT]
            ]
            locations = head + locations[CLIMATE_ENRICHED_COUNT:]

        return locations

    def analyze_location(
        self,
        coordinate: Coordinate,
        use_live_source: bool = False,
        profile: Union[ScoringProfile, str] = ScoringProfile.DISCOVERY
    ) -> LocationSuitability:
        """Score one point for tourism suitability."""
        if not isinstance(coordinate, Coordinate):
            raise ValidationError(f"coordinate must be a Coordinate, got {type(coordinate).__name__}")
        scorer = get_scorer(_parse_profile(profile))
        reading = self.synthesizer.read(coordinate, use_live_source=bool(use_live_source))
        suitability = scorer.score(reading)
        log.info(
            f"Analyzed ({coordinate.latitude:.4f}, {coordinate.longitude:.4f}): "
            f"{suitability.overall} {suitability.tier.value} [{reading.source.value}]"
        )
        return suitability

    def assess_environment(self, coordinate: Coordinate, use_live_source: bool = False) -> EnvironmentalAssessment:
        if not isinstance(coordinate, Coordinate):
            raise ValidationError(f"coordinate must be a Coordinate, got {type(coordinate).__name__}")
        reading = self.synthesizer.read(coordinate, use_live_source=bool(use_live_source))
        return assess_reading(reading)

    def find_nearby(
        self,
        origin: Coordinate,
        candidates: Iterable[Union[NearbyCandidate, Mapping[str, Any]]],
        radius_meters: float,
        limit: Optional[int] = None
    ) -> List[NearbyEntity]:
        return find_nearby(origin, candidates, radius_meters, limit=limit)

    def resolve_route(self, origin: Coordinate, destination: Coordinate) -> RouteResult:
        return self.route_resolver.resolve(origin, destination)


# Singleton instance
_engine: Optional[DiscoveryEngine] = None


def get_engine() -> DiscoveryEngine:
    """Get or create the process-wide engine configured from the environment."""
    global _engine
    if _engine is None:
        settings = EngineSettings.from_env()
        _engine = DiscoveryEngine(
            settings,
            synthesizer=get_spectral_loader(settings),
            route_resolver=get_route_resolver(settings),
        )
    return _engine
