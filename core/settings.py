"""
Engine settings, read from the environment.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

# Upper bound on any single provider call; interactive callers wait on these.
MAX_PROVIDER_TIMEOUT_SECONDS = 5.0

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "loaders" / "data" / "destinations.json"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default


@dataclass
class EngineSettings:
    """Configuration for providers and the discovery worker pool."""
    osrm_base_url: str = "https://router.project-osrm.org"
    copernicus_client_id: Optional[str] = None
    copernicus_client_secret: Optional[str] = None
    copernicus_token_url: str = (
        "https://identity.dataspace.copernicus.eu/auth/realms/CDSE/protocol/openid-connect/token"
    )
    copernicus_catalogue_url: str = "https://catalogue.dataspace.copernicus.eu/odata/v1/Products"
    provider_timeout_seconds: float = MAX_PROVIDER_TIMEOUT_SECONDS
    discovery_max_workers: int = 5
    catalog_path: Path = DEFAULT_CATALOG_PATH

    def __post_init__(self):
        if self.provider_timeout_seconds <= 0 or self.provider_timeout_seconds > MAX_PROVIDER_TIMEOUT_SECONDS:
            log.warning(
                f"Provider timeout {self.provider_timeout_seconds}s out of range, "
                f"using {MAX_PROVIDER_TIMEOUT_SECONDS}s"
            )
            self.provider_timeout_seconds = MAX_PROVIDER_TIMEOUT_SECONDS
        self.discovery_max_workers = max(1, self.discovery_max_workers)
        self.catalog_path = Path(self.catalog_path)

    @property
    def has_copernicus_credentials(self) -> bool:
        return bool(self.copernicus_client_id and self.copernicus_client_secret)

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            osrm_base_url=os.getenv("OSRM_BASE_URL", cls.osrm_base_url).rstrip("/"),
            copernicus_client_id=os.getenv("COPERNICUS_CLIENT_ID") or None,
            copernicus_client_secret=os.getenv("COPERNICUS_CLIENT_SECRET") or None,
            copernicus_token_url=os.getenv("COPERNICUS_TOKEN_URL", cls.copernicus_token_url),
            copernicus_catalogue_url=os.getenv("COPERNICUS_CATALOGUE_URL", cls.copernicus_catalogue_url),
            provider_timeout_seconds=_env_float("PROVIDER_TIMEOUT_SECONDS", MAX_PROVIDER_TIMEOUT_SECONDS),
            discovery_max_workers=_env_int("DISCOVERY_MAX_WORKERS", 5),
            catalog_path=Path(os.getenv("DESTINATION_CATALOG_PATH") or DEFAULT_CATALOG_PATH),
        )
