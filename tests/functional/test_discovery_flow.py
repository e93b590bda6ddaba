import json
import random
import pytest
import requests
from unittest.mock import patch
import core.engine
import loaders.routing
import loaders.spectral
from core.engine import DiscoveryEngine
from core.models import BoundingBox, Coordinate, DataSource, FeatureType
from core.settings import EngineSettings
from loaders.catalog import DestinationCatalog
from tools.explore import main

MADANG = Coordinate(-6.3135, 143.9890)
PORT_MORESBY = Coordinate(-9.4438, 147.1803)

@pytest.fixture(autouse=True)
def fresh_singletons(monkeypatch):
    """Each CLI run builds its process-wide engine inside the test's patches."""
    monkeypatch.setattr(core.engine, "_engine", None)
    monkeypatch.setattr(loaders.spectral, "_loader", None)
    monkeypatch.setattr(loaders.routing, "_resolver", None)

@pytest.fixture
def offline_engine():
    """Engine whose HTTP sessions all fail, as if the network were down."""
    with patch('requests.Session') as mock_session:
        mock_session.return_value.get.side_effect = requests.ConnectionError("offline")
        mock_session.return_value.post.side_effect = requests.ConnectionError("offline")
        engine = DiscoveryEngine(
            EngineSettings(copernicus_client_id="id", copernicus_client_secret="secret"),
            rng=random.Random(11),
        )
        yield engine

def test_inspect_destination_flow(offline_engine):
    """Discover, score the best find, then look around and route to it while offline."""
    box = BoundingBox.from_center(MADANG, 25)
    found = offline_engine.discover(box, [ft for ft in FeatureType], with_climate=True)
    assert found
    best = found[0]
    assert box.contains(best.coordinate)
    assert best.climate is not None

    suitability = offline_engine.analyze_location(best.coordinate, use_live_source=True)
    assert suitability.source_reading.source == DataSource.SIMULATED
    assert 0 <= suitability.overall <= 100

    hotels = DestinationCatalog().candidates("hotels")
    nearby = offline_engine.find_nearby(MADANG, hotels, 1000)
    assert [n.name for n in nearby] == ["Seabreeze Lodge", "Harbour View Hotel", "Coastal Retreat"]

    route = offline_engine.resolve_route(PORT_MORESBY, MADANG)
    assert route.is_fallback
    assert route.to_geojson()["properties"]["isFallback"] is True

def test_cli_discover_seeded(capsys):
    """Verify the same seed prints the same discoveries."""
    argv = ["--seed", "5", "discover", "--bbox", "-10", "-9", "147", "148", "--types", "beach", "hotel"]
    assert main(argv) == 0
    first = json.loads(capsys.readouterr().out)
    assert main(argv) == 0
    second = json.loads(capsys.readouterr().out)

    assert [d["id"] for d in first] == [d["id"] for d in second]
    assert {d["feature_type"] for d in first} <= {"beach", "hotel"}

def test_cli_analyze_site_profile(capsys):
    assert main(["--seed", "1", "analyze", "-9.4438", "147.1803", "--site"]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["profile"] == "site_analysis"
    assert result["tier"] in {"Excellent", "Good", "Fair", "Poor"}

def test_cli_nearby(capsys):
    assert main(["nearby", "-6.3135", "143.9890", "--radius", "2000", "--section", "hotels"]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result[0]["name"] == "Seabreeze Lodge"
    assert result[0]["label"] == "0 m away"

def test_cli_route_offline(capsys):
    with patch('requests.Session') as mock_session:
        mock_session.return_value.get.side_effect = requests.ConnectionError("offline")
        assert main(["route", "-9.4438", "147.1803", "-6.3135", "143.9890", "--geojson"]) == 0
        assert core.engine.get_engine().route_resolver is loaders.routing.get_route_resolver()
        mock_session.return_value.get.assert_called_once()
    feature = json.loads(capsys.readouterr().out)
    assert feature["properties"]["isFallback"] is True
    assert len(feature["geometry"]["coordinates"]) == 2

def test_cli_invalid_bbox(capsys):
    assert main(["discover", "--bbox", "-9", "-10", "147", "148"]) == 2
    assert "Inverted" in capsys.readouterr().err
