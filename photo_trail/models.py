import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any

from . import config


def local_naive(dt: datetime) -> datetime:
    """Capture times are compared as naive local time; aware values are converted."""
    if dt.tzinfo is not None:
        return dt.astimezone().replace(tzinfo=None)
    return dt


@dataclass(frozen=True)
class GeoPoint:
    """A WGS-84 (latitude, longitude) pair in decimal degrees."""
    lat: float
    lng: float

    def is_valid(self) -> bool:
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            return False
        lat_min, lat_max = config.LAT_RANGE
        lng_min, lng_max = config.LNG_RANGE
        return lat_min <= self.lat <= lat_max and lng_min <= self.lng <= lng_max

    def as_tuple(self) -> tuple[float, float]:
        # geopy expects (lat, lng)
        return (self.lat, self.lng)


@dataclass(frozen=True)
class ExtractedMetadata:
    """
    Best-effort output of the extractor. Either field may be None;
    absence is a normal outcome, not an error.
    """
    location: Optional[GeoPoint] = None
    capture_time: Optional[datetime] = None


@dataclass(frozen=True)
class NormalizedMetadata:
    """Concrete values ready for persistence, tagged with where they came from."""
    location: GeoPoint
    capture_time: datetime
    location_is_fallback: bool
    time_is_fallback: bool


@dataclass(frozen=True)
class PhotoRecord:
    """
    A persisted, geotagged photo. Created once at ingestion, never edited.
    """
    id: int
    name: str
    storage_path: str       # opaque reference; the bytes live elsewhere
    location: GeoPoint
    capture_time: datetime

    # Provenance flags (True = substituted by policy, not read from the file)
    location_is_fallback: bool = False
    time_is_fallback: bool = False

    ingested_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'storage_path': self.storage_path,
            'lat': self.location.lat,
            'lng': self.location.lng,
            'capture_time': self.capture_time.isoformat(),
            'location_is_fallback': self.location_is_fallback,
            'time_is_fallback': self.time_is_fallback,
        }
