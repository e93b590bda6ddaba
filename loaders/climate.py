"""
Climate Loader - coarse climate context for discovered locations.

Simulated Pacific tropical climate; there is no live climate provider.
"""

import random
import logging
from typing import Optional

from core.models import ClimateSnapshot, Coordinate

log = logging.getLogger(__name__)

# (base, spread) per field, tropical Pacific lowlands
TEMPERATURE_C = (25.0, 5.0)
PRECIPITATION_MM = (200.0, 150.0)
HUMIDITY_PCT = (75.0, 15.0)
AIR_QUALITY_INDEX = (90.0, 8.0)


class ClimateLoader:
    """Mock climate snapshots for development and enrichment."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def _draw(self, band) -> float:
        base, spread = band
        return round(base + self.rng.random() * spread, 1)

    def get_climate(self, coordinate: Coordinate) -> ClimateSnapshot:
        snapshot = ClimateSnapshot(
            temperature_c=self._draw(TEMPERATURE_C),
            precipitation_mm=self._draw(PRECIPITATION_MM),
            humidity_pct=self._draw(HUMIDITY_PCT),
            air_quality_index=self._draw(AIR_QUALITY_INDEX),
        )
        log.debug(f"Climate at ({coordinate.latitude:.4f}, {coordinate.longitude:.4f}): {snapshot}")
        return snapshot


def get_climate_loader(rng: Optional[random.Random] = None) -> ClimateLoader:
    """Factory function for climate loader."""
    return ClimateLoader(rng=rng)
