from datetime import datetime
from typing import Iterable, Iterator, List, Optional, Dict, Any

from geopy.distance import geodesic

from .models import GeoPoint, PhotoRecord, local_naive


class TrajectoryAssembler:
    """
    Turns time-ordered records into a drawable path.

    The path follows the order it is given (chronological, as returned by
    SpatialStore.list_ordered_by_time), not spatial proximity. Stateless.
    """

    def select(self,
               records: Iterable[PhotoRecord],
               start: Optional[datetime] = None,
               end: Optional[datetime] = None,
               skip_fallback_locations: bool = False) -> Iterator[PhotoRecord]:
        """
        Yields the records that fall inside the window, in input order.

        Aware window bounds are converted to naive local time, the way
        capture times are stored.
        """
        start = local_naive(start) if start is not None else None
        end = local_naive(end) if end is not None else None

        for rec in records:
            if start is not None and rec.capture_time < start:
                continue
            if end is not None and rec.capture_time > end:
                continue
            if skip_fallback_locations and rec.location_is_fallback:
                continue
            yield rec

    def assemble(self,
                 records: Iterable[PhotoRecord],
                 start: Optional[datetime] = None,
                 end: Optional[datetime] = None,
                 skip_fallback_locations: bool = False) -> List[GeoPoint]:
        """
        Args:
            start, end: Optional inclusive capture-time window.
            skip_fallback_locations: Drop records placed at the fallback point;
                they would otherwise draw a jump to the default coordinate.

        Returns:
            Points in input order, or [] when fewer than two remain (no line to draw).
        """
        points = [rec.location for rec in self.select(records, start, end, skip_fallback_locations)]

        if len(points) < 2:
            return []
        return points


def path_length_m(points: List[GeoPoint]) -> float:
    """Sum of geodesic segment lengths along the path, in meters."""
    total = 0.0
    for a, b in zip(points, points[1:]):
        total += geodesic(a.as_tuple(), b.as_tuple()).meters
    return total


def to_geojson(points: List[GeoPoint]) -> Dict[str, Any]:
    # GeoJSON positions are [lng, lat]
    return {
        "type": "LineString",
        "coordinates": [[p.lng, p.lat] for p in points],
    }
