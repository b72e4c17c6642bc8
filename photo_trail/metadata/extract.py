import io
import logging
import math
from datetime import datetime
from typing import Optional, Any, BinaryIO, Union

import exifread
from PIL import Image, UnidentifiedImageError

from .. import config
from ..exceptions import ExtractionSkipped
from ..models import ExtractedMetadata, GeoPoint


class MetadataExtractor:
    """
    Best-effort reader for the GPS fix and capture time embedded in an image.

    Strategies:
      - 'exifread' first (fast, Python-native, tolerant of odd files).
      - Pillow's EXIF reader when exifread comes back empty for a field.

    Nothing here raises for missing or broken metadata. Each field is
    looked up independently and returned as None when it cannot be read.
    """

    def extract(self, source: Union[bytes, BinaryIO]) -> ExtractedMetadata:
        data = source if isinstance(source, (bytes, bytearray)) else source.read()

        tags = self._read_exif_tags(data)
        pil_exif = None

        location = None
        try:
            location = self._gps_from_exifread(tags)
        except ExtractionSkipped as e:
            logging.debug(f"exifread GPS unavailable: {e}")
            try:
                pil_exif = self._read_pillow_exif(data)
                location = self._gps_from_pillow(pil_exif)
            except ExtractionSkipped as e2:
                logging.debug(f"Pillow GPS unavailable: {e2}")

        capture_time = None
        try:
            capture_time = self._time_from_exifread(tags)
        except ExtractionSkipped as e:
            logging.debug(f"exifread date unavailable: {e}")
            try:
                if pil_exif is None:
                    pil_exif = self._read_pillow_exif(data)
                capture_time = self._time_from_pillow(pil_exif)
            except ExtractionSkipped as e2:
                logging.debug(f"Pillow date unavailable: {e2}")

        return ExtractedMetadata(location=location, capture_time=capture_time)

    # --- Tag Readers ---

    def _read_exif_tags(self, data: bytes) -> dict:
        try:
            # details=False skips MakerNotes; GPS and EXIF IFDs are still parsed
            return exifread.process_file(io.BytesIO(data), details=False) or {}
        except Exception as e:
            logging.warning(f"ExifRead failed: {e}")
            return {}

    def _read_pillow_exif(self, data: bytes):
        try:
            with Image.open(io.BytesIO(data)) as img:
                return img.getexif()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ExtractionSkipped(f"Pillow could not open image: {e}") from e

    # --- GPS ---

    def _gps_from_exifread(self, tags) -> GeoPoint:
        if config.GPS_LAT_TAG not in tags or config.GPS_LNG_TAG not in tags:
            raise ExtractionSkipped("no GPS tags")

        lat = self._dms_to_decimal(
            tags[config.GPS_LAT_TAG].values,
            str(tags.get(config.GPS_LAT_REF_TAG, 'N')),
        )
        lng = self._dms_to_decimal(
            tags[config.GPS_LNG_TAG].values,
            str(tags.get(config.GPS_LNG_REF_TAG, 'E')),
        )
        return GeoPoint(lat, lng)

    def _gps_from_pillow(self, exif) -> GeoPoint:
        gps_info = exif.get_ifd(config.GPS_IFD_POINTER) if exif is not None else None
        if not gps_info:
            raise ExtractionSkipped("no GPS IFD")

        lat_dms = gps_info.get(config.PIL_GPS_LAT)
        lng_dms = gps_info.get(config.PIL_GPS_LNG)
        if not lat_dms or not lng_dms:
            raise ExtractionSkipped("GPS IFD without latitude/longitude")

        lat = self._dms_to_decimal(lat_dms, gps_info.get(config.PIL_GPS_LAT_REF, 'N'))
        lng = self._dms_to_decimal(lng_dms, gps_info.get(config.PIL_GPS_LNG_REF, 'E'))
        return GeoPoint(lat, lng)

    def _dms_to_decimal(self, dms, ref) -> float:
        """Degrees/minutes/seconds rationals -> signed decimal degrees."""
        try:
            parts = list(dms)
        except TypeError as e:
            raise ExtractionSkipped(f"GPS value is not a sequence: {dms!r}") from e
        if len(parts) != 3:
            raise ExtractionSkipped(f"expected 3 GPS components, got {len(parts)}")

        deg, minutes, seconds = (self._ratio_to_float(p) for p in parts)
        value = deg + minutes / 60.0 + seconds / 3600.0
        if not math.isfinite(value):
            raise ExtractionSkipped(f"non-finite GPS coordinate from {dms!r}")

        if isinstance(ref, bytes):
            ref = ref.decode('ascii', errors='ignore')
        if str(ref).strip().upper()[:1] in ('S', 'W'):
            value = -value
        return value

    def _ratio_to_float(self, value: Any) -> float:
        # exifread Ratio exposes num/den; old Pillow returns (num, den) tuples;
        # Pillow's IFDRational converts with float() (NaN on a zero denominator)
        try:
            if hasattr(value, 'num') and hasattr(value, 'den'):
                num, den = value.num, value.den
            elif isinstance(value, tuple) and len(value) == 2:
                num, den = value
            else:
                return float(value)
            if not den:
                raise ExtractionSkipped(f"zero denominator in {value!r}")
            return float(num) / float(den)
        except (TypeError, ValueError, ZeroDivisionError) as e:
            raise ExtractionSkipped(f"unreadable GPS rational {value!r}") from e

    # --- Capture Time ---

    def _time_from_exifread(self, tags) -> datetime:
        for tag in config.DATE_TAGS:
            if tag in tags:
                dt = self._parse_exif_date(str(tags[tag]))
                if dt:
                    return dt
        raise ExtractionSkipped(f"no parseable date (tags tried: {', '.join(config.DATE_TAGS)})")

    def _time_from_pillow(self, exif) -> datetime:
        if exif is None:
            raise ExtractionSkipped("no EXIF block")
        candidates = []
        sub_ifd = exif.get_ifd(config.EXIF_IFD_POINTER)
        if sub_ifd:
            candidates.extend(sub_ifd.get(tag) for tag in config.PIL_DATE_TAGS)
        candidates.append(exif.get(config.PIL_BASE_DATE_TAG))

        for raw in candidates:
            if raw:
                dt = self._parse_exif_date(str(raw))
                if dt:
                    return dt
        raise ExtractionSkipped("no parseable date in Pillow EXIF")

    def _parse_exif_date(self, dt_str: str) -> Optional[datetime]:
        """
        Parses the EXIF "YYYY:MM:DD HH:MM:SS" form. Returns a naive datetime
        (camera local time) or None for placeholders like "0000:00:00 00:00:00".
        """
        clean = dt_str.strip().rstrip('\x00')
        if not clean:
            return None
        clean = clean.replace(':', '-', 2)
        # Sub-second precision is sometimes appended; strptime rejects it
        if '.' in clean:
            clean = clean.split('.')[0]
        try:
            return datetime.strptime(clean, "%Y-%m-%d %H:%M:%S")
        except ValueError:
            return None
