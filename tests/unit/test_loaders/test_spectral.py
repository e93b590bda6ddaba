import random
import pytest
import requests
from unittest.mock import MagicMock, patch
from core.models import Coordinate, CoralHealthLabel, DataSource, VegetationLabel
from core.settings import EngineSettings
from loaders.spectral import (
    CopernicusSpectralSource, SimulatedSpectralSource, SpectralReadingSynthesizer,
    SpectralSourceUnavailable, coral_label_for, estimate_ndvi, estimate_sea_temperature,
    vegetation_label_for,
)

PORT_MORESBY = Coordinate(-9.4438, 147.1803)
MOUNT_HAGEN = Coordinate(-5.86, 144.23)
HONOLULU = Coordinate(21.3, -157.8)

@pytest.fixture
def settings():
    return EngineSettings(copernicus_client_id="id", copernicus_client_secret="secret")

@pytest.fixture
def live(settings):
    with patch('requests.Session') as mock_session:
        source = CopernicusSpectralSource(settings, rng=random.Random(1))
        source.session = mock_session.return_value
        yield source

def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    return response

def _token_response():
    return _response({"access_token": "tok", "expires_in": 600})

def test_simulated_ranges():
    """Verify simulated readings stay within the perturbation band."""
    source = SimulatedSpectralSource(random.Random(0))
    for _ in range(200):
        r = source.read(PORT_MORESBY)
        assert 0.60 <= r.ndvi <= 0.70
        assert 28.2 <= r.temperature_c <= 28.8
        assert 0.15 <= r.ndwi <= 0.25
        assert 0 <= r.cloud_cover_pct < 30
        assert r.cloud_cover_pct == int(r.cloud_cover_pct)
        assert r.source == DataSource.SIMULATED
        assert r.coral_health_label in (CoralHealthLabel.GOOD, CoralHealthLabel.FAIR)

def test_simulated_labels_follow_ndvi():
    """Verify healthy vegetation implies good coral in the simulation."""
    source = SimulatedSpectralSource(random.Random(5))
    for _ in range(100):
        r = source.read(PORT_MORESBY)
        if r.vegetation_label == VegetationLabel.HEALTHY:
            assert r.coral_health_label == CoralHealthLabel.GOOD
        else:
            assert r.coral_health_label == CoralHealthLabel.FAIR

def test_simulated_seeded_repeatable():
    a = SimulatedSpectralSource(random.Random(9)).read(PORT_MORESBY)
    b = SimulatedSpectralSource(random.Random(9)).read(PORT_MORESBY)
    assert (a.ndvi, a.ndwi, a.temperature_c, a.cloud_cover_pct) == (b.ndvi, b.ndwi, b.temperature_c, b.cloud_cover_pct)

def test_estimators():
    rng = random.Random(2)
    for _ in range(50):
        assert 0.75 <= estimate_ndvi(MOUNT_HAGEN, rng) <= 0.90
        assert 0.6 <= estimate_ndvi(HONOLULU, rng) <= 0.8
        assert 27.0 <= estimate_sea_temperature(HONOLULU, rng) <= 30.0
        assert 26.5 <= estimate_sea_temperature(PORT_MORESBY, rng, now_ms=0) <= 29.5

def test_live_labels():
    assert vegetation_label_for(0.61) == VegetationLabel.HEALTHY
    assert vegetation_label_for(0.5) == VegetationLabel.MODERATE
    assert vegetation_label_for(0.4) == VegetationLabel.SPARSE
    assert coral_label_for(28.9, 0.6) == CoralHealthLabel.GOOD
    assert coral_label_for(28.9, 0.4) == CoralHealthLabel.FAIR
    assert coral_label_for(29.5, 0.9) == CoralHealthLabel.FAIR
    assert coral_label_for(30.0, 0.9) == CoralHealthLabel.POOR

def test_live_success(live):
    """Verify token + catalogue flow yields a Live reading with product cloud cover."""
    live.session.post.return_value = _token_response()
    live.session.get.return_value = _response({"value": [{"Name": "S2B_MSIL2A", "CloudCover": 12.5}]})

    reading = live.read(PORT_MORESBY)
    assert reading.source == DataSource.LIVE
    assert reading.cloud_cover_pct == 12.5
    assert reading.provider == "Copernicus Sentinel-2/3"

    params = live.session.get.call_args.kwargs["params"]
    assert "SENTINEL-2" in params["$filter"]
    assert params["$orderby"] == "ContentDate/Start desc"
    assert params["$top"] == 1
    assert live.session.get.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"
    assert live.session.get.call_args.kwargs["timeout"] <= 5

def test_live_cloud_cover_from_attributes(live):
    live.session.post.return_value = _token_response()
    live.session.get.return_value = _response({"value": [{
        "Name": "S2A", "Attributes": [{"Name": "cloudCover", "Value": 40.0}],
    }]})
    assert live.read(PORT_MORESBY).cloud_cover_pct == 40.0

def test_live_token_cached(live):
    live.session.post.return_value = _token_response()
    live.session.get.return_value = _response({"value": [{"CloudCover": 5}]})
    live.read(PORT_MORESBY)
    live.read(PORT_MORESBY)
    assert live.session.post.call_count == 1

def test_live_empty_catalogue_raises(live):
    live.session.post.return_value = _token_response()
    live.session.get.return_value = _response({"value": []})
    with pytest.raises(SpectralSourceUnavailable):
        live.read(PORT_MORESBY)

def test_live_without_credentials():
    source = CopernicusSpectralSource(EngineSettings(), session=MagicMock())
    with pytest.raises(SpectralSourceUnavailable):
        source.read(PORT_MORESBY)
    source.session.post.assert_not_called()

def test_token_retried_once(live):
    """Verify the token request gets exactly one retry before giving up."""
    live.session.post.side_effect = requests.ConnectionError("down")
    with pytest.raises(requests.ConnectionError):
        live.read(PORT_MORESBY)
    assert live.session.post.call_count == 2

def test_synthesizer_falls_back(live):
    """Verify provider failure is absorbed and the reading is tagged Simulated."""
    live.session.post.return_value = _token_response()
    live.session.get.side_effect = requests.Timeout("slow")
    synthesizer = SpectralReadingSynthesizer(live_source=live)
    reading = synthesizer.read(PORT_MORESBY, use_live_source=True)
    assert reading.source == DataSource.SIMULATED

def test_synthesizer_flag_off_skips_live():
    live_source = MagicMock()
    synthesizer = SpectralReadingSynthesizer(live_source=live_source)
    assert synthesizer.read(PORT_MORESBY).source == DataSource.SIMULATED
    live_source.read.assert_not_called()

class _Clock:
    """Stand-in for time.monotonic that only moves when a fake request takes time."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

def test_slow_token_spends_whole_budget(live):
    """Verify a token call that eats the budget is neither retried nor followed by the catalogue."""
    clock = _Clock()

    def slow_post(*args, **kwargs):
        clock.now += live.timeout - 0.5
        raise requests.Timeout("slow")

    live.session.post.side_effect = slow_post
    synthesizer = SpectralReadingSynthesizer(live_source=live)
    with patch('time.monotonic', clock):
        reading = synthesizer.read(PORT_MORESBY, use_live_source=True)

    assert reading.source == DataSource.SIMULATED
    assert live.session.post.call_count == 1
    live.session.get.assert_not_called()
    assert live.session.post.call_args.kwargs["timeout"] <= live.timeout
    assert clock.now - 1000.0 <= live.timeout

def test_catalogue_gets_remaining_budget(live):
    """Verify the catalogue timeout is what the token call left over."""
    clock = _Clock()

    def slow_token(*args, **kwargs):
        clock.now += 3.0
        return _token_response()

    live.session.post.side_effect = slow_token
    live.session.get.return_value = _response({"value": [{"CloudCover": 5}]})
    with patch('time.monotonic', clock):
        live.read(PORT_MORESBY)

    assert live.session.get.call_args.kwargs["timeout"] == pytest.approx(live.timeout - 3.0)

def test_budget_spent_before_catalogue(live):
    clock = _Clock()

    def slow_token(*args, **kwargs):
        clock.now += live.timeout + 1
        return _token_response()

    live.session.post.side_effect = slow_token
    with patch('time.monotonic', clock):
        with pytest.raises(SpectralSourceUnavailable):
            live.read(PORT_MORESBY)
    live.session.get.assert_not_called()
