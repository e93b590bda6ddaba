import random
import threading
import pytest
from core.detector import (
    DEFAULT_THRESHOLDS, FEATURE_SPECS, DiscoveryCancelled, FeatureDetector,
    feature_name, resolve_thresholds,
)
from core.health import candidate_health
from core.models import BoundingBox, CoralHealthLabel, DataSource, FeatureType, ValidationError
from loaders.spectral import SpectralReadingSynthesizer

PNG_BOX = BoundingBox(min_lat=-10.0, max_lat=-9.0, min_lng=147.0, max_lng=148.0)
ALL_TYPES = [ft.value for ft in FeatureType]

@pytest.fixture
def detector():
    return FeatureDetector(synthesizer=SpectralReadingSynthesizer(), rng=random.Random(42))

def test_default_thresholds():
    assert DEFAULT_THRESHOLDS[FeatureType.BEACH] == 0.70
    assert DEFAULT_THRESHOLDS[FeatureType.FOREST] == 0.70
    assert DEFAULT_THRESHOLDS[FeatureType.MOUNTAIN] == 0.70
    assert DEFAULT_THRESHOLDS[FeatureType.HOTEL] == 0.65
    assert DEFAULT_THRESHOLDS[FeatureType.CULTURAL] == 0.65

def test_resolve_thresholds_overrides():
    thresholds = resolve_thresholds({"beach": 0.9, "building": 0.5})
    assert thresholds[FeatureType.BEACH] == 0.9
    assert thresholds[FeatureType.HOTEL] == 0.5
    assert thresholds[FeatureType.FOREST] == 0.70
    with pytest.raises(ValidationError):
        resolve_thresholds({"beach": 1.5})
    with pytest.raises(ValidationError):
        resolve_thresholds({"lagoon": 0.5})

def test_detect_invariants(detector):
    """Verify every discovery is inside the box, above threshold and bounded."""
    for _ in range(5):
        results = detector.detect(PNG_BOX, ALL_TYPES)
        for loc in results:
            assert PNG_BOX.contains(loc.coordinate)
            assert loc.confidence >= DEFAULT_THRESHOLDS[loc.feature_type]
            assert 0 <= loc.confidence <= 1
            assert 0 <= loc.health_score <= 100
            assert 0 <= loc.visual_quality_score <= 100
            assert loc.reading.source == DataSource.SIMULATED

def test_detect_counts_per_type(detector):
    """Verify no type yields more candidates than its count range allows."""
    results = detector.detect(PNG_BOX, ALL_TYPES, {ft: 0.0 for ft in FeatureType})
    for feature_type, spec in FEATURE_SPECS.items():
        found = [r for r in results if r.feature_type is feature_type]
        assert spec.count[0] <= len(found) <= spec.count[1]

def test_detect_sorted_by_rank(detector):
    results = detector.detect(PNG_BOX, ALL_TYPES)
    scores = [r.rank_score for r in results]
    assert scores == sorted(scores, reverse=True)

def test_detect_reading_uses_candidate_properties(detector):
    """Verify NDVI/NDWI come from the candidate and health uses the candidate formula."""
    results = detector.detect(PNG_BOX, ["forest"], {"forest": 0.0})
    assert results
    for loc in results:
        assert 0.75 <= loc.reading.ndvi <= 0.95
        assert 0.15 <= loc.reading.ndwi <= 0.35
        # Forest urbanization <= 0.1 so health is bounded below by the candidate formula
        assert loc.health_score >= candidate_health(0.75, 0.15, 0.1) - 0.1

def test_detect_coral_label_follows_candidate_ndvi(detector):
    """Verify the coral label is derived from the candidate NDVI, not the discarded base reading."""
    thresholds = {"forest": 0.0, "beach": 0.0}
    for _ in range(5):
        for loc in detector.detect(PNG_BOX, ["forest", "beach"], thresholds):
            if loc.feature_type is FeatureType.FOREST:
                assert loc.reading.ndvi >= 0.75
                assert loc.reading.coral_health_label == CoralHealthLabel.GOOD
            else:
                assert loc.reading.ndvi <= 0.3
                assert loc.reading.coral_health_label == CoralHealthLabel.FAIR

def test_detect_deterministic_for_seed():
    """Verify the same seed gives the same batch regardless of thread scheduling."""
    a = FeatureDetector(rng=random.Random(7)).detect(PNG_BOX, ALL_TYPES)
    b = FeatureDetector(rng=random.Random(7)).detect(PNG_BOX, ALL_TYPES)
    assert [(r.id, r.coordinate, r.confidence) for r in a] == [(r.id, r.coordinate, r.confidence) for r in b]

def test_detect_degenerate_box(detector):
    """Verify a zero-area box places everything on the single point."""
    box = BoundingBox(-9.5, -9.5, 147.5, 147.5)
    results = detector.detect(box, ALL_TYPES, {ft: 0.0 for ft in FeatureType})
    assert results
    assert all(r.coordinate.latitude == -9.5 and r.coordinate.longitude == 147.5 for r in results)

def test_detect_empty_and_duplicate_types(detector):
    assert detector.detect(PNG_BOX, []) == []
    results = detector.detect(PNG_BOX, ["beach", FeatureType.BEACH], {"beach": 0.0})
    assert len(results) <= FEATURE_SPECS[FeatureType.BEACH].count[1]

def test_detect_unknown_type(detector):
    with pytest.raises(ValidationError):
        detector.detect(PNG_BOX, ["lagoon"])

def test_detect_rejects_non_bbox(detector):
    with pytest.raises(ValidationError):
        detector.detect({"min_lat": 0}, ["beach"])

def test_detect_threshold_one_discards_all(detector):
    thresholds = {ft: 1.0 for ft in FeatureType}
    assert detector.detect(PNG_BOX, ALL_TYPES, thresholds) == []

def test_detect_cancelled(detector):
    """Verify a pre-set cancel event aborts the whole batch."""
    event = threading.Event()
    event.set()
    with pytest.raises(DiscoveryCancelled):
        detector.detect(PNG_BOX, ALL_TYPES, cancel_event=event)

def test_feature_names():
    beach = FEATURE_SPECS[FeatureType.BEACH]
    assert feature_name(beach, 0, True) == "Paradise Beach"
    assert feature_name(beach, 7, True) == "Paradise Beach 8"
    hotel = FEATURE_SPECS[FeatureType.HOTEL]
    assert feature_name(hotel, 1, True) == "Beachfront Resort 2"
    assert feature_name(hotel, 0, False) == "Hillside Resort 1"
