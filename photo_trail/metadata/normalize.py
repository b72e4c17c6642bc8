"""
Fallback policy for extracted metadata.

A photo without a usable GPS fix is placed at a configured default point,
and a photo without a capture timestamp is dated at ingestion time. Both
substitutions are flagged on the result (and later on the stored record)
so a fallback point is never mistaken for a real fix at the same spot.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from .. import config
from ..models import ExtractedMetadata, GeoPoint, NormalizedMetadata


def default_fallback_point() -> GeoPoint:
    return GeoPoint(config.FALLBACK_LAT, config.FALLBACK_LNG)


def local_now() -> datetime:
    # Naive local time, comparable with EXIF DateTimeOriginal
    return datetime.now()


class CoordinateNormalizer:
    def __init__(self,
                 default_point: Optional[GeoPoint] = None,
                 clock: Callable[[], datetime] = local_now):
        self.default_point = default_point or default_fallback_point()
        if not self.default_point.is_valid():
            raise ValueError(f"Fallback point {self.default_point} is not a valid coordinate")
        self.clock = clock

    def normalize(self,
                  extracted: ExtractedMetadata,
                  ingested_at: Optional[datetime] = None,
                  source: str = "<upload>") -> NormalizedMetadata:
        location = extracted.location
        location_is_fallback = False
        if location is None:
            logging.info(f"No GPS fix for {source}; using fallback point {self.default_point}")
            location = self.default_point
            location_is_fallback = True
        elif not location.is_valid():
            logging.warning(f"GPS fix out of range for {source}: {location}; using fallback point")
            location = self.default_point
            location_is_fallback = True

        capture_time = extracted.capture_time
        time_is_fallback = False
        if capture_time is None:
            capture_time = ingested_at or self.clock()
            time_is_fallback = True
            logging.info(f"No EXIF date for {source}; using ingestion time {capture_time.isoformat()}")

        return NormalizedMetadata(
            location=location,
            capture_time=capture_time,
            location_is_fallback=location_is_fallback,
            time_is_fallback=time_is_fallback,
        )
