"""
Spectral Reading Synthesizer.

Produces one SpectralReading per coordinate from either:
- Copernicus Data Space (Sentinel-2 catalogue + location-based estimators)
- A seeded simulation around tropical baselines

The live path never raises to the caller: any provider failure falls
through to the simulated reading, which is tagged Simulated.
"""

import math
import time
import random
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol

import requests
from tenacity import Retrying, stop_after_attempt, stop_any, wait_exponential

from core.models import (
    Coordinate, CoralHealthLabel, DataSource, SpectralReading, VegetationLabel,
)
from core.settings import EngineSettings

log = logging.getLogger(__name__)

# Simulation baselines (tropical Pacific coastline)
BASELINE_NDVI = 0.65
BASELINE_TEMPERATURE_C = 28.5
BASELINE_NDWI = 0.20
PERTURBATION = 0.05
TEMPERATURE_SENSITIVITY = 5.0
MAX_SIMULATED_CLOUD_PCT = 30

# Papua New Guinea bounds used by the live estimators
PNG_LAT_RANGE = (-12.0, -1.0)
PNG_LNG_RANGE = (140.0, 160.0)

SEASON_PERIOD_MS = 1000 * 60 * 60 * 24 * 30
CATALOGUE_LOOKBACK_DAYS = 30
CATALOGUE_BOX_DEGREES = 0.01

# A token retry is only attempted if this much of the read budget is left
MIN_ATTEMPT_SECONDS = 1.0


class SpectralSourceUnavailable(Exception):
    """Raised by a live source when it cannot produce a reading."""


class SpectralSource(Protocol):
    """Anything that can turn a coordinate into a reading."""

    def read(self, coordinate: Coordinate) -> SpectralReading:
        """Return a fresh reading for the coordinate."""


# ═══════════════════════════════════════════════════════════════════════════
# SIMULATED SOURCE
# ═══════════════════════════════════════════════════════════════════════════
class SimulatedSpectralSource:
    """Baseline-plus-perturbation reading generator."""

    provider = "Simulated"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def read(self, coordinate: Coordinate) -> SpectralReading:
        v = self.rng.uniform(-PERTURBATION, PERTURBATION)
        perturbed_ndvi = BASELINE_NDVI + v
        healthy = perturbed_ndvi > 0.6

        reading = SpectralReading(
            ndvi=round(perturbed_ndvi, 2),
            ndwi=round(BASELINE_NDWI + v, 2),
            cloud_cover_pct=float(self.rng.randrange(MAX_SIMULATED_CLOUD_PCT)),
            temperature_c=round(BASELINE_TEMPERATURE_C + v * TEMPERATURE_SENSITIVITY, 1),
            vegetation_label=VegetationLabel.HEALTHY if healthy else VegetationLabel.MODERATE,
            coral_health_label=simulated_coral_label(perturbed_ndvi),
            source=DataSource.SIMULATED,
            provider=self.provider,
        )
        log.debug(
            f"Simulated reading at ({coordinate.latitude:.4f}, {coordinate.longitude:.4f}): "
            f"ndvi={reading.ndvi} temp={reading.temperature_c}"
        )
        return reading


# ═══════════════════════════════════════════════════════════════════════════
# LIVE SOURCE (Copernicus Data Space)
# ═══════════════════════════════════════════════════════════════════════════
def is_png(coordinate: Coordinate) -> bool:
    return (PNG_LAT_RANGE[0] <= coordinate.latitude <= PNG_LAT_RANGE[1] and
            PNG_LNG_RANGE[0] <= coordinate.longitude <= PNG_LNG_RANGE[1])


def estimate_ndvi(coordinate: Coordinate, rng: random.Random) -> float:
    """Location-based NDVI estimate: highlands and inland forest score higher than coast."""
    lat = coordinate.latitude
    if is_png(coordinate):
        if -7 < lat < -5:
            return 0.75 + rng.random() * 0.15
        if abs(lat - round(lat)) < 0.3:
            return 0.5 + rng.random() * 0.25
        return 0.7 + rng.random() * 0.2
    return 0.6 + rng.random() * 0.2


def estimate_sea_temperature(coordinate: Coordinate, rng: random.Random,
                             now_ms: Optional[float] = None) -> float:
    """Sea-surface temperature with a ~monthly seasonal swing around 28.5°C for PNG waters."""
    if is_png(coordinate):
        if now_ms is None:
            now_ms = time.time() * 1000
        seasonal = math.sin(now_ms / SEASON_PERIOD_MS) * 1.5
        return round(28.5 + seasonal + (rng.random() - 0.5), 1)
    return round(27 + rng.random() * 3, 1)


def vegetation_label_for(ndvi: float) -> VegetationLabel:
    if ndvi > 0.6:
        return VegetationLabel.HEALTHY
    if ndvi > 0.4:
        return VegetationLabel.MODERATE
    return VegetationLabel.SPARSE


def simulated_coral_label(ndvi: float) -> CoralHealthLabel:
    """Coral label for simulated readings: Good above 0.6 NDVI, Fair otherwise."""
    return CoralHealthLabel.GOOD if ndvi > 0.6 else CoralHealthLabel.FAIR


def coral_label_for(temperature_c: float, ndvi: float) -> CoralHealthLabel:
    if temperature_c < 29 and ndvi > 0.5:
        return CoralHealthLabel.GOOD
    if temperature_c < 30:
        return CoralHealthLabel.FAIR
    return CoralHealthLabel.POOR


def _extract_cloud_cover(product: Dict[str, Any]) -> float:
    """Cloud cover lives either on the product or in its expanded Attributes list."""
    if product.get("CloudCover") is not None:
        return float(product["CloudCover"])
    for attribute in product.get("Attributes", []) or []:
        if str(attribute.get("Name", "")).lower() == "cloudcover":
            return float(attribute.get("Value"))
    raise SpectralSourceUnavailable(f"No cloud cover on product {product.get('Name', '?')}")


class CopernicusSpectralSource:
    """
    Live reading from the Copernicus Data Space Ecosystem.

    Flow: client-credentials token -> newest Sentinel-2 product over a small
    box around the point in the last 30 days -> reading built from the
    product's cloud cover plus location-based NDVI and sea temperature.
    """

    provider = "Copernicus Sentinel-2/3"

    def __init__(self, settings: Optional[EngineSettings] = None,
                 session: Optional[requests.Session] = None,
                 rng: Optional[random.Random] = None):
        self.settings = settings or EngineSettings.from_env()
        self.timeout = self.settings.provider_timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        self.rng = rng or random.Random()
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    def _remaining(self, deadline: float) -> float:
        """Seconds left in this read's budget; raises once it is spent."""
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise SpectralSourceUnavailable(f"Live read exceeded its {self.timeout:g}s budget")
        return remaining

    def _post_token(self, deadline: float) -> Dict[str, Any]:
        response = self.session.post(
            self.settings.copernicus_token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.settings.copernicus_client_id,
                "client_secret": self.settings.copernicus_client_secret,
            },
            timeout=self._remaining(deadline),
        )
        response.raise_for_status()
        return response.json()

    def _request_token(self, deadline: float) -> Dict[str, Any]:
        """Fetch an OAuth2 access token with a single quick retry inside the read budget."""
        retryer = Retrying(
            stop=stop_any(
                stop_after_attempt(2),
                lambda state: deadline - time.monotonic() < MIN_ATTEMPT_SECONDS,
            ),
            wait=wait_exponential(multiplier=0.5, max=2),
            reraise=True,
        )
        return retryer(self._post_token, deadline)

    def _get_token(self, deadline: float) -> str:
        with self._token_lock:
            if self._token and time.time() < self._token_expires_at:
                return self._token

            payload = self._request_token(deadline)
            token = payload.get("access_token")
            if not token:
                raise SpectralSourceUnavailable("Token response had no access_token")

            # Refresh a minute early
            expires_in = float(payload.get("expires_in", 600))
            self._token = token
            self._token_expires_at = time.time() + max(0.0, expires_in - 60)
            log.info("Copernicus access token acquired")
            return token

    def _build_filter(self, coordinate: Coordinate) -> str:
        lat, lng = coordinate.latitude, coordinate.longitude
        d = CATALOGUE_BOX_DEGREES
        ring = ", ".join(
            f"{x} {y}" for x, y in [
                (lng - d, lat - d), (lng + d, lat - d), (lng + d, lat + d),
                (lng - d, lat + d), (lng - d, lat - d),
            ]
        )
        since = (datetime.now(timezone.utc) - timedelta(days=CATALOGUE_LOOKBACK_DAYS))
        since_iso = since.strftime("%Y-%m-%dT%H:%M:%S.000Z")
        return (
            "Collection/Name eq 'SENTINEL-2' and "
            f"OData.CSC.Intersects(area=geography'SRID=4326;POLYGON(({ring}))') and "
            f"ContentDate/Start gt {since_iso}"
        )

    def _latest_product(self, coordinate: Coordinate, token: str, deadline: float) -> Dict[str, Any]:
        response = self.session.get(
            self.settings.copernicus_catalogue_url,
            params={
                "$filter": self._build_filter(coordinate),
                "$orderby": "ContentDate/Start desc",
                "$top": 1,
                "$expand": "Attributes",
            },
            headers={"Authorization": f"Bearer {token}"},
            timeout=self._remaining(deadline),
        )
        response.raise_for_status()
        products = response.json().get("value", [])
        if not products:
            raise SpectralSourceUnavailable(
                f"No Sentinel-2 product in the last {CATALOGUE_LOOKBACK_DAYS} days"
            )
        return products[0]

    def read(self, coordinate: Coordinate) -> SpectralReading:
        if not self.settings.has_copernicus_credentials:
            raise SpectralSourceUnavailable("Copernicus credentials not configured")

        # One budget covers the token, its retry and the catalogue query
        deadline = time.monotonic() + self.timeout
        token = self._get_token(deadline)
        product = self._latest_product(coordinate, token, deadline)
        cloud_cover = min(100.0, max(0.0, _extract_cloud_cover(product)))

        ndvi = round(estimate_ndvi(coordinate, self.rng), 2)
        temperature = estimate_sea_temperature(coordinate, self.rng)
        log.info(f"Copernicus product {product.get('Name', '?')} cloud={cloud_cover:.1f}%")

        return SpectralReading(
            ndvi=ndvi,
            ndwi=round(BASELINE_NDWI, 2),
            cloud_cover_pct=cloud_cover,
            temperature_c=temperature,
            vegetation_label=vegetation_label_for(ndvi),
            coral_health_label=coral_label_for(temperature, ndvi),
            source=DataSource.LIVE,
            provider=self.provider,
        )


# ═══════════════════════════════════════════════════════════════════════════
# SYNTHESIZER
# ═══════════════════════════════════════════════════════════════════════════
class SpectralReadingSynthesizer:
    """
    Chooses the live or simulated source per request.

    The caller's live-data flag is opaque here; it only says whether the
    live source may be attempted.
    """

    def __init__(self, live_source: Optional[SpectralSource] = None,
                 simulated_source: Optional[SimulatedSpectralSource] = None):
        self.live_source = live_source
        self.simulated_source = simulated_source or SimulatedSpectralSource()

    def read(self, coordinate: Coordinate, use_live_source: bool = False,
             rng: Optional[random.Random] = None) -> SpectralReading:
        """
        Get a reading for a coordinate.

        Args:
            coordinate: Point to observe
            use_live_source: Attempt the live provider first
            rng: Generator for the simulated path (detector threads pass their own)

        Returns:
            SpectralReading tagged Live or Simulated
        """
        if use_live_source and self.live_source is not None:
            try:
                return self.live_source.read(coordinate)
            except Exception as e:
                log.warning(f"Live spectral source failed, using simulated reading: {e}")

        if rng is not None:
            return SimulatedSpectralSource(rng).read(coordinate)
        return self.simulated_source.read(coordinate)


# Singleton instance
_loader: Optional[SpectralReadingSynthesizer] = None


def get_spectral_loader(settings: Optional[EngineSettings] = None) -> SpectralReadingSynthesizer:
    """Get or create the singleton synthesizer."""
    global _loader
    if _loader is None:
        settings = settings or EngineSettings.from_env()
        _loader = SpectralReadingSynthesizer(live_source=CopernicusSpectralSource(settings))
    return _loader
