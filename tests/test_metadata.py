import io
import math
from datetime import datetime

import pytest
from PIL import Image

from photo_trail.metadata.extract import MetadataExtractor
from photo_trail.models import GeoPoint


# Minimal stand-in for exifread's IfdTag
class FakeTag:
    def __init__(self, values, printable=None):
        self.values = values
        self.printable = printable if printable is not None else str(values)

    def __str__(self):
        return self.printable


class FakeRatio:
    def __init__(self, num, den):
        self.num = num
        self.den = den


def test_extracts_gps_and_capture_time(jpeg_factory):
    data = jpeg_factory(lat=39.9, lng=116.4, taken=datetime(2021, 5, 1, 10, 0, 0))

    meta = MetadataExtractor().extract(data)

    assert meta.location is not None
    assert meta.location.lat == pytest.approx(39.9, abs=1e-6)
    assert meta.location.lng == pytest.approx(116.4, abs=1e-6)
    assert meta.capture_time == datetime(2021, 5, 1, 10, 0, 0)


def test_southern_and_western_references_negate(jpeg_factory):
    data = jpeg_factory(lat=-33.8568, lng=-70.6483)

    meta = MetadataExtractor().extract(io.BytesIO(data))

    assert meta.location.lat == pytest.approx(-33.8568, abs=1e-5)
    assert meta.location.lng == pytest.approx(-70.6483, abs=1e-5)
    assert meta.capture_time is None


def test_image_without_exif_yields_nothing():
    buf = io.BytesIO()
    with Image.new("RGB", (8, 8)) as im:
        im.save(buf, format="PNG")

    meta = MetadataExtractor().extract(buf.getvalue())

    assert meta.location is None
    assert meta.capture_time is None


def test_garbage_bytes_never_raise():
    meta = MetadataExtractor().extract(b"definitely not an image")
    assert meta.location is None
    assert meta.capture_time is None


def test_pillow_used_when_exifread_finds_nothing(monkeypatch, jpeg_factory):
    import photo_trail.metadata.extract as extract_module
    monkeypatch.setattr(extract_module.exifread, "process_file", lambda f, details=False: {})

    data = jpeg_factory(lat=48.8584, lng=2.2945, taken=datetime(2019, 7, 14, 22, 30, 0))
    meta = MetadataExtractor().extract(data)

    assert meta.location.lat == pytest.approx(48.8584, abs=1e-5)
    assert meta.location.lng == pytest.approx(2.2945, abs=1e-5)
    assert meta.capture_time == datetime(2019, 7, 14, 22, 30, 0)


def test_exifread_crash_is_absorbed(monkeypatch, jpeg_factory):
    import photo_trail.metadata.extract as extract_module

    def boom(f, details=False):
        raise RuntimeError("corrupt IFD")

    monkeypatch.setattr(extract_module.exifread, "process_file", boom)

    meta = MetadataExtractor().extract(jpeg_factory(lat=10.0, lng=20.0))
    # Pillow still recovers the fix
    assert meta.location.lat == pytest.approx(10.0, abs=1e-6)


def test_zero_denominator_gps_is_skipped(monkeypatch):
    import photo_trail.metadata.extract as extract_module

    tags = {
        'GPS GPSLatitude': FakeTag([FakeRatio(39, 1), FakeRatio(54, 0), FakeRatio(0, 1)]),
        'GPS GPSLatitudeRef': FakeTag(['N'], 'N'),
        'GPS GPSLongitude': FakeTag([FakeRatio(116, 1), FakeRatio(24, 1), FakeRatio(0, 1)]),
        'GPS GPSLongitudeRef': FakeTag(['E'], 'E'),
        'EXIF DateTimeOriginal': FakeTag([], '2020:01:02 03:04:05'),
    }
    monkeypatch.setattr(extract_module.exifread, "process_file", lambda f, details=False: tags)

    meta = MetadataExtractor().extract(b"not an image either")

    assert meta.location is None
    assert meta.capture_time == datetime(2020, 1, 2, 3, 4, 5)


def test_date_tag_priority_and_placeholders(monkeypatch):
    import photo_trail.metadata.extract as extract_module

    tags = {
        'EXIF DateTimeOriginal': FakeTag([], '0000:00:00 00:00:00'),
        'EXIF DateTimeDigitized': FakeTag([], '2018:03:04 05:06:07.123'),
        'Image DateTime': FakeTag([], '2001:01:01 00:00:00'),
    }
    monkeypatch.setattr(extract_module.exifread, "process_file", lambda f, details=False: tags)

    meta = MetadataExtractor().extract(b"")

    assert meta.capture_time == datetime(2018, 3, 4, 5, 6, 7)


def test_out_of_range_fix_is_returned_for_normalizer_to_judge(monkeypatch):
    import photo_trail.metadata.extract as extract_module

    tags = {
        'GPS GPSLatitude': FakeTag([FakeRatio(95, 1), FakeRatio(0, 1), FakeRatio(0, 1)]),
        'GPS GPSLatitudeRef': FakeTag(['N'], 'N'),
        'GPS GPSLongitude': FakeTag([FakeRatio(10, 1), FakeRatio(0, 1), FakeRatio(0, 1)]),
        'GPS GPSLongitudeRef': FakeTag(['E'], 'E'),
    }
    monkeypatch.setattr(extract_module.exifread, "process_file", lambda f, details=False: tags)

    meta = MetadataExtractor().extract(b"")

    assert meta.location == GeoPoint(95.0, 10.0)
    assert not meta.location.is_valid()


def test_dms_conversion_helpers():
    extractor = MetadataExtractor()
    value = extractor._dms_to_decimal([FakeRatio(12, 1), FakeRatio(30, 1), FakeRatio(36, 1)], b"W")
    assert value == pytest.approx(-12.51)
    assert math.isfinite(value)
