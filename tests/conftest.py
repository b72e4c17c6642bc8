import io
from datetime import datetime
from typing import Optional

import pytest
from PIL import Image
from PIL.TiffImagePlugin import IFDRational

from photo_trail.database.db import DBManager
from photo_trail.database.ops import SpatialStore


@pytest.fixture
def db():
    """In-memory DBManager with the schema initialized."""
    manager = DBManager(":memory:")
    manager.connect()
    try:
        yield manager
    finally:
        manager.close()


@pytest.fixture
def store(db):
    """SpatialStore attached to the in-memory DB."""
    return SpatialStore(db)


@pytest.fixture
def file_db(tmp_path):
    """File-backed DBManager (WAL mode, per-thread connections)."""
    manager = DBManager(tmp_path / "photo_trail.db")
    try:
        yield manager
    finally:
        manager.close()


def _to_dms(value: float):
    value = abs(value)
    deg = int(value)
    minutes_full = (value - deg) * 60
    minutes = int(minutes_full)
    seconds = round((minutes_full - minutes) * 60 * 10000)
    return (IFDRational(deg, 1), IFDRational(minutes, 1), IFDRational(seconds, 10000))


def make_jpeg(lat: Optional[float] = None,
              lng: Optional[float] = None,
              taken: Optional[datetime] = None) -> bytes:
    """Small JPEG with optional GPS and DateTimeOriginal EXIF fields."""
    exif = Image.Exif()
    if taken is not None:
        stamp = taken.strftime("%Y:%m:%d %H:%M:%S")
        exif[0x0132] = stamp
        exif[0x8769] = {0x9003: stamp}
    if lat is not None and lng is not None:
        exif[0x8825] = {
            1: "S" if lat < 0 else "N",
            2: _to_dms(lat),
            3: "W" if lng < 0 else "E",
            4: _to_dms(lng),
        }

    buf = io.BytesIO()
    with Image.new("RGB", (16, 16), color="blue") as im:
        im.save(buf, format="JPEG", exif=exif)
    return buf.getvalue()


@pytest.fixture
def jpeg_factory():
    return make_jpeg
