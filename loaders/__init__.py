"""
Data loaders for the Pacific Discovery Engine.

Includes:
- Spectral readings (Copernicus Data Space, simulated fallback)
- Routing (OSRM)
- Climate snapshots (simulated)
- Destination catalogue (bundled JSON)
"""

from loaders.spectral import (
    SpectralSource, SimulatedSpectralSource, CopernicusSpectralSource,
    SpectralReadingSynthesizer, get_spectral_loader,
)
from loaders.routing import RouteResolver, get_route_resolver
from loaders.climate import ClimateLoader, get_climate_loader
from loaders.catalog import DestinationCatalog, get_catalog

__all__ = [
    "SpectralSource",
    "SimulatedSpectralSource",
    "CopernicusSpectralSource",
    "SpectralReadingSynthesizer",
    "get_spectral_loader",
    "RouteResolver",
    "get_route_resolver",
    "ClimateLoader",
    "get_climate_loader",
    "DestinationCatalog",
    "get_catalog",
]
