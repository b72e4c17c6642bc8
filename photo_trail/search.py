import math
import logging
from typing import List, Optional

from .database.ops import SpatialStore, LOCATION_CONSTRAINT
from .exceptions import InvalidQuery
from .models import GeoPoint, PhotoRecord


class RadiusSearchService:
    """
    Validates a radius query, then hands it to the store unchanged.
    Bad input is rejected before any database access.
    """

    def __init__(self, store: SpatialStore):
        self.store = store

    def search(self,
               lat: float,
               lng: float,
               radius_m: float,
               limit: Optional[int] = None) -> List[PhotoRecord]:
        lat = self._as_float("lat", lat)
        lng = self._as_float("lng", lng)
        radius_m = self._as_float("radius_m", radius_m)

        center = GeoPoint(lat, lng)
        if not center.is_valid():
            field = "lat" if not -90.0 <= lat <= 90.0 else "lng"
            raise InvalidQuery(field, LOCATION_CONSTRAINT, lat if field == "lat" else lng)
        if radius_m < 0:
            raise InvalidQuery("radius_m", "finite and >= 0", radius_m)

        logging.debug(f"Radius search: center={lat:.6f},{lng:.6f} radius={radius_m}m")
        return self.store.search_within(center, radius_m, limit=limit).to_list()

    def _as_float(self, field: str, value) -> float:
        if isinstance(value, bool):
            raise InvalidQuery(field, "a number", value)
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise InvalidQuery(field, "a number", value) from e
        if not math.isfinite(number):
            raise InvalidQuery(field, "finite", value)
        return number
