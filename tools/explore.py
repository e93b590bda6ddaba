"""
Pacific Discovery Engine command-line explorer.

Examples:
    pacific-explore discover --bbox -10 -9 147 148 --types beach forest --seed 7
    pacific-explore analyze -9.4438 147.1803 --site
    pacific-explore nearby -6.3135 143.9890 --radius 5000
    pacific-explore route -9.4438 147.1803 -6.3135 143.9890
"""

import sys
import json
import random
import logging
import argparse
from typing import Any, List, Optional

from core.engine import DiscoveryEngine, get_engine
from core.models import BoundingBox, Coordinate, FeatureType, ValidationError
from core.scoring import ScoringProfile
from core.settings import EngineSettings
from loaders.catalog import SECTIONS, get_catalog

log = logging.getLogger(__name__)


def _configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s │ %(name)-20s │ %(levelname)-8s │ %(message)s',
        datefmt='%H:%M:%S',
        stream=sys.stderr,
    )


def _emit(payload: Any):
    print(json.dumps(payload, indent=2))


def _parse_thresholds(items: Optional[List[str]]):
    thresholds = {}
    for item in items or []:
        name, sep, value = item.partition("=")
        if not sep:
            raise ValidationError(f"Threshold must look like TYPE=VALUE, got {item!r}")
        try:
            thresholds[name] = float(value)
        except ValueError:
            raise ValidationError(f"Threshold for {name} is not a number: {value!r}")
    return thresholds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pacific-explore",
        description="Discover, score and route tourism locations",
    )
    parser.add_argument("--seed", type=int, help="Seed simulated data for reproducible output")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    discover = sub.add_parser("discover", help="Detect candidate locations in a bounding box")
    discover.add_argument("--bbox", nargs=4, type=float, required=True,
                          metavar=("MIN_LAT", "MAX_LAT", "MIN_LNG", "MAX_LNG"))
    discover.add_argument("--types", nargs="+", default=[ft.value for ft in FeatureType],
                          help="Feature types to detect")
    discover.add_argument("--threshold", action="append", metavar="TYPE=VALUE",
                          help="Override a confidence threshold (repeatable)")
    discover.add_argument("--climate", action="store_true", help="Attach climate to the top results")

    for name, help_text in (("analyze", "Score a point for tourism suitability"),
                            ("assess", "Environmental health of a point")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("latitude", type=float)
        cmd.add_argument("longitude", type=float)
        cmd.add_argument("--live", action="store_true", help="Try the live data source first")
        if name == "analyze":
            cmd.add_argument("--site", action="store_true", help="Use the site-analysis coral profile")

    nearby = sub.add_parser("nearby", help="Catalogue entries near a point")
    nearby.add_argument("latitude", type=float)
    nearby.add_argument("longitude", type=float)
    nearby.add_argument("--radius", type=float, default=10000.0, help="Search radius in meters")
    nearby.add_argument("--limit", type=int, default=50)
    nearby.add_argument("--section", choices=SECTIONS, help="Restrict to one catalogue section")

    route = sub.add_parser("route", help="Driving route between two points")
    route.add_argument("from_lat", type=float)
    route.add_argument("from_lng", type=float)
    route.add_argument("to_lat", type=float)
    route.add_argument("to_lng", type=float)
    route.add_argument("--geojson", action="store_true", help="Print a GeoJSON Feature")

    return parser


def run(args: argparse.Namespace, engine: DiscoveryEngine) -> Any:
    """Execute a parsed command and return its JSON-ready result."""
    if args.command == "discover":
        bbox = BoundingBox(*args.bbox)
        locations = engine.discover(
            bbox,
            args.types,
            _parse_thresholds(args.threshold),
            with_climate=args.climate,
        )
        return [loc.to_dict() for loc in locations]

    if args.command == "analyze":
        profile = ScoringProfile.SITE_ANALYSIS if args.site else ScoringProfile.DISCOVERY
        return engine.analyze_location(
            Coordinate(args.latitude, args.longitude), args.live, profile=profile
        ).to_dict()

    if args.command == "assess":
        return engine.assess_environment(Coordinate(args.latitude, args.longitude), args.live).to_dict()

    if args.command == "nearby":
        catalog = get_catalog(engine.settings.catalog_path)
        results = engine.find_nearby(
            Coordinate(args.latitude, args.longitude),
            catalog.candidates(args.section),
            args.radius,
            limit=args.limit,
        )
        return [dict(r.to_dict(), label=r.format_distance()) for r in results]

    if args.command == "route":
        result = engine.resolve_route(
            Coordinate(args.from_lat, args.from_lng),
            Coordinate(args.to_lat, args.to_lng),
        )
        return result.to_geojson() if args.geojson else result.to_dict()

    raise ValidationError(f"Unknown command {args.command!r}")


def main(argv: Optional[List[str]] = None) -> int:
    """CLI interface for the discovery engine."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    if args.seed is not None:
        engine = DiscoveryEngine(EngineSettings.from_env(), rng=random.Random(args.seed))
    else:
        engine = get_engine()

    try:
        _emit(run(args, engine))
    except ValidationError as e:
        log.error(f"Invalid input: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
