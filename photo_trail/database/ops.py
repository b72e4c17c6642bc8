import math
import logging
import sqlite3
from datetime import datetime, UTC
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from geopy.distance import geodesic

from .. import config
from ..exceptions import InvalidQuery, StorageFailure
from ..models import GeoPoint, PhotoRecord, local_naive
from .db import DBManager

# (min_lat, max_lat, min_lng, max_lng)
Box = Tuple[float, float, float, float]

_SELECT_COLUMNS = """
    p.id, p.name, p.storage_path, p.lat, p.lng, p.capture_time,
    p.location_is_fallback, p.time_is_fallback, p.ingested_at
"""

LOCATION_CONSTRAINT = "finite, with lat in [-90, 90] and lng in [-180, 180]"


def to_storage_time(dt: datetime) -> str:
    """
    Serializes a capture time so that string order equals time order.
    Aware datetimes are converted to local time; everything is stored naive
    with a fixed microsecond width.
    """
    return local_naive(dt).isoformat(timespec="microseconds")


def _row_to_record(row: sqlite3.Row) -> PhotoRecord:
    return PhotoRecord(
        id=row["id"],
        name=row["name"],
        storage_path=row["storage_path"],
        location=GeoPoint(row["lat"], row["lng"]),
        capture_time=datetime.fromisoformat(row["capture_time"]),
        location_is_fallback=bool(row["location_is_fallback"]),
        time_is_fallback=bool(row["time_is_fallback"]),
        ingested_at=datetime.fromisoformat(row["ingested_at"]),
    )


class RecordSequence:
    """
    Lazy, restartable query result.

    Every iteration re-runs the query on the iterating thread's connection
    and streams rows in batches, so two passes with no insert in between
    yield the same records in the same order. In-memory databases fetch the
    whole result under the lock instead, so a half-consumed iterator does
    not stall writers.
    """

    def __init__(self,
                 db: DBManager,
                 sql: str,
                 params: Sequence = (),
                 predicate: Optional[Callable[[PhotoRecord], bool]] = None,
                 limit: Optional[int] = None):
        self._db = db
        self._sql = sql
        self._params = tuple(params)
        self._predicate = predicate
        self._limit = limit

    def __iter__(self) -> Iterator[PhotoRecord]:
        if self._limit == 0:
            return
        produced = 0
        for row in self._rows():
            record = _row_to_record(row)
            if self._predicate and not self._predicate(record):
                continue
            yield record
            produced += 1
            if self._limit is not None and produced >= self._limit:
                return

    def _rows(self) -> Iterator[sqlite3.Row]:
        if self._db.in_memory:
            # The shared connection is locked per read; never hold it across a yield
            with self._db.reading() as conn:
                rows = conn.execute(self._sql, self._params).fetchall()
            yield from rows
            return

        with self._db.reading() as conn:
            cur = conn.execute(self._sql, self._params)
            try:
                while True:
                    rows = cur.fetchmany(config.FETCH_BATCH_SIZE)
                    if not rows:
                        break
                    yield from rows
            finally:
                cur.close()

    def to_list(self) -> List[PhotoRecord]:
        return list(self)


class SpatialStore:
    """
    Durable PhotoRecord storage with a time-ordered index and an R*Tree point index.

    Both indexes are written in one transaction, so a record is either
    visible to every query or to none of them.
    """

    def __init__(self, db: DBManager):
        self.db = db

    # --- Writes ---

    def insert(self,
               name: str,
               storage_path: str,
               location: GeoPoint,
               capture_time: datetime,
               *,
               location_is_fallback: bool = False,
               time_is_fallback: bool = False) -> PhotoRecord:
        """
        Persists a new record and indexes it. Returns the stored record.

        Raises:
            InvalidQuery: location is NaN or outside geodetic bounds (nothing written).
            StorageFailure: the database rejected the write (nothing committed).
        """
        if not location.is_valid():
            raise InvalidQuery("location", LOCATION_CONSTRAINT, location)
        if capture_time is None:
            raise InvalidQuery("capture_time", "a datetime", capture_time)

        capture_str = to_storage_time(capture_time)
        ingested_at = datetime.now(UTC)

        with self.db.transaction() as conn:
            cur = conn.execute("""
                INSERT INTO photos (
                    name, storage_path, lat, lng, capture_time,
                    location_is_fallback, time_is_fallback, ingested_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                name, storage_path, location.lat, location.lng, capture_str,
                int(location_is_fallback), int(time_is_fallback), ingested_at.isoformat()
            ))

            if cur.lastrowid is None:
                raise StorageFailure("Database INSERT failed to return a row ID.")
            photo_id = cur.lastrowid

            conn.execute("""
                INSERT INTO photos_rtree (id, min_lat, max_lat, min_lng, max_lng)
                VALUES (?, ?, ?, ?, ?)
            """, (photo_id, location.lat, location.lat, location.lng, location.lng))

        logging.debug(f"Inserted photo {photo_id} ({name}) at {location.lat:.6f},{location.lng:.6f}")

        return PhotoRecord(
            id=photo_id,
            name=name,
            storage_path=storage_path,
            location=location,
            capture_time=datetime.fromisoformat(capture_str),
            location_is_fallback=location_is_fallback,
            time_is_fallback=time_is_fallback,
            ingested_at=ingested_at,
        )

    # --- Reads ---

    def list_ordered_by_time(self, limit: Optional[int] = None) -> RecordSequence:
        """All records, ascending capture_time, ties broken by ascending id."""
        limit = self._effective_limit(limit)
        sql = f"SELECT {_SELECT_COLUMNS} FROM photos p ORDER BY p.capture_time ASC, p.id ASC"
        params: List = []
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return RecordSequence(self.db, sql, params)

    def search_within(self,
                      center: GeoPoint,
                      radius_m: float,
                      limit: Optional[int] = None) -> RecordSequence:
        """
        Records whose WGS-84 geodesic distance from center is <= radius_m,
        ascending capture_time, ties broken by ascending id.

        A zero radius matches records at the center itself (within
        COORD_EPSILON_M). Negative, NaN and infinite radii are rejected.
        """
        if not isinstance(center, GeoPoint) or not center.is_valid():
            raise InvalidQuery("center", LOCATION_CONSTRAINT, center)
        if isinstance(radius_m, bool) or not isinstance(radius_m, (int, float)):
            raise InvalidQuery("radius_m", "a number of meters", radius_m)
        if not math.isfinite(radius_m) or radius_m < 0:
            raise InvalidQuery("radius_m", "finite and >= 0", radius_m)
        limit = self._effective_limit(limit)

        boxes = candidate_boxes(center, radius_m)
        clauses = " OR ".join(
            "(r.max_lat >= ? AND r.min_lat <= ? AND r.max_lng >= ? AND r.min_lng <= ?)"
            for _ in boxes
        )
        params: List = []
        for min_lat, max_lat, min_lng, max_lng in boxes:
            params.extend([min_lat, max_lat, min_lng, max_lng])

        sql = f"""
            SELECT {_SELECT_COLUMNS}
            FROM photos_rtree r
            JOIN photos p ON p.id = r.id
            WHERE {clauses}
            ORDER BY p.capture_time ASC, p.id ASC
        """

        threshold = radius_m if radius_m > 0 else config.COORD_EPSILON_M
        origin = center.as_tuple()

        def within(record: PhotoRecord) -> bool:
            return geodesic(origin, record.location.as_tuple()).meters <= threshold

        return RecordSequence(self.db, sql, params, predicate=within, limit=limit)

    def get(self, record_id: int) -> Optional[PhotoRecord]:
        """Looks up one record. A missing id is a normal outcome and returns None."""
        with self.db.reading() as conn:
            row = conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM photos p WHERE p.id = ?", (record_id,)
            ).fetchone()
        return _row_to_record(row) if row else None

    def count(self) -> int:
        with self.db.reading() as conn:
            return conn.execute("SELECT COUNT(*) FROM photos").fetchone()[0]

    def _effective_limit(self, limit: Optional[int]) -> Optional[int]:
        if limit is None:
            return config.DEFAULT_MAX_RESULTS
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise InvalidQuery("limit", "a non-negative integer", limit)
        return limit


def candidate_boxes(center: GeoPoint, radius_m: float) -> List[Box]:
    """
    Lat/lng boxes guaranteed to contain every point within radius_m of center.

    Used only to prune R*Tree candidates; the geodesic check decides.
    Boxes are split at the antimeridian and widened to all longitudes
    when the search cap reaches a pole.
    """
    reach = max(radius_m, config.COORD_EPSILON_M) * config.BBOX_SAFETY_FACTOR
    dlat = reach / config.MIN_METERS_PER_DEG_LAT
    min_lat = center.lat - dlat
    max_lat = center.lat + dlat

    if min_lat <= -90.0 or max_lat >= 90.0:
        return [(max(min_lat, -90.0), min(max_lat, 90.0), -180.0, 180.0)]

    # Degrees of longitude shrink toward the poles; size the box for its poleward edge
    extreme_lat = max(abs(min_lat), abs(max_lat))
    meters_per_deg_lng = config.METERS_PER_DEG_LNG_EQUATOR * math.cos(math.radians(extreme_lat))
    dlng = reach / meters_per_deg_lng

    if dlng >= 180.0:
        return [(min_lat, max_lat, -180.0, 180.0)]

    west = center.lng - dlng
    east = center.lng + dlng
    if west < -180.0:
        return [(min_lat, max_lat, west + 360.0, 180.0), (min_lat, max_lat, -180.0, east)]
    if east > 180.0:
        return [(min_lat, max_lat, west, 180.0), (min_lat, max_lat, -180.0, east - 360.0)]
    return [(min_lat, max_lat, west, east)]
