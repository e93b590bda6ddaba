"""
Destination Catalogue - read-only stand-in for the marketplace database.

Loads destinations, partner hotels and hire-car pickup points from a JSON
file and hands them to Proximity Search as NearbyCandidate rows.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from core.models import Coordinate, NearbyCandidate, ValidationError
from core.settings import DEFAULT_CATALOG_PATH

log = logging.getLogger(__name__)

SECTIONS = ("destinations", "hotels", "hire_cars")


class DestinationCatalog:
    """
    JSON-backed catalogue.

    The file holds one list per section; every row needs id, name,
    latitude and longitude.
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_CATALOG_PATH):
        self.path = Path(path)
        self._rows: Optional[List[Dict[str, Any]]] = None

    def _load(self) -> List[Dict[str, Any]]:
        if self._rows is not None:
            return self._rows

        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)

        rows = []
        for section in SECTIONS:
            for row in data.get(section, []):
                missing = [k for k in ("id", "name", "latitude", "longitude") if k not in row]
                if missing:
                    raise ValidationError(f"Catalogue row in {section} missing {missing}: {row}")
                rows.append(dict(row, section=section))

        log.info(f"Loaded {len(rows)} catalogue entries from {self.path}")
        self._rows = rows
        return rows

    def entries(self, section: Optional[str] = None) -> List[Dict[str, Any]]:
        """Raw rows, optionally restricted to one section."""
        if section is not None and section not in SECTIONS:
            raise ValidationError(f"Unknown catalogue section {section!r}; expected one of {SECTIONS}")
        return [r for r in self._load() if section is None or r["section"] == section]

    def candidates(self, section: Optional[str] = None) -> List[NearbyCandidate]:
        return [
            NearbyCandidate(
                id=row["id"],
                name=row["name"],
                coordinate=Coordinate(row["latitude"], row["longitude"]),
                category=row.get("category"),
            )
            for row in self.entries(section)
        ]

    def get(self, entry_id: str) -> Optional[Dict[str, Any]]:
        for row in self._load():
            if row["id"] == entry_id:
                return row
        return None


# Singleton instance
_catalog: Optional[DestinationCatalog] = None


def get_catalog(path: Optional[Union[str, Path]] = None) -> DestinationCatalog:
    """Get the shared catalogue, or a fresh one for an explicit path."""
    global _catalog
    if path is not None:
        return DestinationCatalog(path)
    if _catalog is None:
        _catalog = DestinationCatalog()
    return _catalog
