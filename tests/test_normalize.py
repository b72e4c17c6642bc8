import math
from datetime import datetime

import pytest

from photo_trail.metadata.normalize import CoordinateNormalizer, default_fallback_point
from photo_trail.models import ExtractedMetadata, GeoPoint

FALLBACK = GeoPoint(39.90, 116.40)
NOW = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def normalizer():
    return CoordinateNormalizer(FALLBACK, clock=lambda: NOW)


def test_valid_metadata_passes_through(normalizer):
    taken = datetime(2023, 8, 9, 7, 15, 0)
    result = normalizer.normalize(ExtractedMetadata(GeoPoint(35.6586, 139.7454), taken))

    assert result.location == GeoPoint(35.6586, 139.7454)
    assert result.capture_time == taken
    assert not result.location_is_fallback
    assert not result.time_is_fallback


def test_missing_location_uses_fallback_and_flags_it(normalizer):
    result = normalizer.normalize(ExtractedMetadata(None, datetime(2023, 1, 1)))

    assert result.location == FALLBACK
    assert result.location_is_fallback
    assert not result.time_is_fallback


@pytest.mark.parametrize(
    "point",
    [
        GeoPoint(90.5, 10.0),
        GeoPoint(-91.0, 10.0),
        GeoPoint(10.0, 180.01),
        GeoPoint(10.0, -200.0),
        GeoPoint(math.nan, 10.0),
        GeoPoint(10.0, math.inf),
    ],
)
def test_out_of_range_location_uses_fallback(normalizer, point):
    result = normalizer.normalize(ExtractedMetadata(point, datetime(2023, 1, 1)))
    assert result.location == FALLBACK
    assert result.location_is_fallback


def test_bounds_are_inclusive(normalizer):
    result = normalizer.normalize(ExtractedMetadata(GeoPoint(-90.0, 180.0), datetime(2023, 1, 1)))
    assert result.location == GeoPoint(-90.0, 180.0)
    assert not result.location_is_fallback


def test_missing_time_uses_clock_and_flags_it(normalizer):
    result = normalizer.normalize(ExtractedMetadata(GeoPoint(1.0, 2.0), None))
    assert result.capture_time == NOW
    assert result.time_is_fallback


def test_explicit_ingestion_time_wins_over_clock(normalizer):
    ingested = datetime(2022, 2, 2, 2, 2, 2)
    result = normalizer.normalize(ExtractedMetadata(None, None), ingested_at=ingested)
    assert result.capture_time == ingested
    assert result.time_is_fallback
    assert result.location_is_fallback


def test_real_fix_at_fallback_coordinates_is_not_flagged(normalizer):
    real = normalizer.normalize(ExtractedMetadata(GeoPoint(39.90, 116.40), NOW))
    substituted = normalizer.normalize(ExtractedMetadata(None, NOW))

    assert real.location == substituted.location
    assert real.location_is_fallback is False
    assert substituted.location_is_fallback is True


def test_invalid_default_point_is_rejected():
    with pytest.raises(ValueError):
        CoordinateNormalizer(GeoPoint(100.0, 0.0))


def test_default_point_comes_from_config():
    assert CoordinateNormalizer().default_point == default_fallback_point()
