import sqlite3
import sys
from datetime import datetime

import pytest

# Import the query tool being tested
import photo_trail_query as ptq

from photo_trail.database.db import DBManager
from photo_trail.database.ops import SpatialStore
from photo_trail.models import GeoPoint


@pytest.fixture
def catalog(tmp_path):
    """A file catalog with one real fix, one fallback location and one fallback time."""
    db_path = tmp_path / "photo_trail.db"
    with DBManager(db_path) as manager:
        store = SpatialStore(manager)
        real = store.insert("real.jpg", "/u/real.jpg", GeoPoint(48.8584, 2.2945), datetime(2021, 1, 1, 12))
        nogps = store.insert("nogps.jpg", "/u/nogps.jpg", GeoPoint(39.90, 116.40), datetime(2021, 1, 2, 12),
                             location_is_fallback=True)
        undated = store.insert("undated.jpg", "/u/undated.jpg", GeoPoint(1.0, 1.0), datetime(2021, 1, 3, 12),
                               time_is_fallback=True)
    return db_path, real, nogps, undated


@pytest.fixture
def conn(catalog):
    c = sqlite3.connect(catalog[0])
    try:
        yield c
    finally:
        c.close()


def test_connect_db_missing(tmp_path):
    missing = tmp_path / "none.db"
    with pytest.raises(SystemExit):
        ptq.connect_db(missing)


def test_show_record(catalog, conn, capsys):
    _, real, _, _ = catalog

    ptq.show_record(conn, real.id)
    out = capsys.readouterr().out
    assert "Photo:" in out
    assert "real.jpg" in out
    assert "48.858400, 2.294500 (exif)" in out

    ptq.show_record(conn, 999)
    assert "No photo with id=999" in capsys.readouterr().out


def test_fallback_listings(catalog, conn, capsys):
    _, real, nogps, undated = catalog

    ptq.list_fallback_locations(conn)
    out = capsys.readouterr().out
    assert "nogps.jpg" in out
    assert "real.jpg" not in out

    ptq.list_fallback_times(conn)
    out = capsys.readouterr().out
    assert "undated.jpg" in out
    assert "nogps.jpg" not in out


def test_empty_listings(tmp_path, capsys):
    db_path = tmp_path / "empty.db"
    with DBManager(db_path) as manager:
        manager.connect()

    c = sqlite3.connect(db_path)
    try:
        ptq.list_fallback_locations(c)
        ptq.list_fallback_times(c)
    finally:
        c.close()
    out = capsys.readouterr().out
    assert "No photos placed at the fallback point." in out
    assert "No photos dated by ingestion time." in out


def test_main_dispatch(catalog, capsys, monkeypatch):
    db_path, _, nogps, _ = catalog
    monkeypatch.setattr(sys, "argv", ["ptq", "--db", str(db_path), "--record-id", str(nogps.id)])

    ptq.main()

    out = capsys.readouterr().out
    assert "nogps.jpg" in out
    assert "(fallback)" in out
