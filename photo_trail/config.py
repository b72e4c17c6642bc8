"""
Configuration constants for photo_trail.
"""
import os

# --- Metadata Parsing ---
DATE_TAGS = [
    'EXIF DateTimeOriginal',
    'EXIF DateTimeDigitized',
    'Image DateTime',
]

# exifread tag names for the GPS block
GPS_LAT_TAG = 'GPS GPSLatitude'
GPS_LAT_REF_TAG = 'GPS GPSLatitudeRef'
GPS_LNG_TAG = 'GPS GPSLongitude'
GPS_LNG_REF_TAG = 'GPS GPSLongitudeRef'

# Pillow: GPSInfo IFD pointer and the numeric keys inside it
GPS_IFD_POINTER = 0x8825
PIL_GPS_LAT_REF = 1
PIL_GPS_LAT = 2
PIL_GPS_LNG_REF = 3
PIL_GPS_LNG = 4

# --- Fallback Policy ---
# Substituted when a photo carries no usable GPS fix (central Beijing).
FALLBACK_LAT = float(os.getenv("PHOTO_TRAIL_FALLBACK_LAT", "39.90"))
FALLBACK_LNG = float(os.getenv("PHOTO_TRAIL_FALLBACK_LNG", "116.40"))

# --- Geodesy ---
LAT_RANGE = (-90.0, 90.0)
LNG_RANGE = (-180.0, 180.0)

# Two points closer than this are "the same point" for zero-radius searches
COORD_EPSILON_M = 0.01

# Shortest possible length of one degree of latitude on WGS-84 (at the equator)
MIN_METERS_PER_DEG_LAT = 110_574.0
# Length of one degree of longitude at the equator on WGS-84
METERS_PER_DEG_LNG_EQUATOR = 111_320.0
# Widen the candidate box so rounding never drops a true match
BBOX_SAFETY_FACTOR = 1.05

# --- Storage ---
DB_FILENAME = "photo_trail.db"
DB_PATH = os.getenv("PHOTO_TRAIL_DB")

# Rows pulled per fetchmany() while streaming query results
FETCH_BATCH_SIZE = 500

# Upper bound on rows returned by list/search queries; None = unbounded
_max_results_env = os.getenv("PHOTO_TRAIL_MAX_RESULTS")
DEFAULT_MAX_RESULTS = int(_max_results_env) if _max_results_env else None

# --- Ingestion ---
IMAGE_EXTS = {'.jpg', '.jpeg', '.jpe', '.tif', '.tiff', '.png', '.heic', '.webp'}
INGEST_WORKERS = 3

# Pillow: Exif sub-IFD pointer and date tags (DateTimeOriginal, DateTimeDigitized, DateTime)
EXIF_IFD_POINTER = 0x8769
PIL_DATE_TAGS = [0x9003, 0x9004]
PIL_BASE_DATE_TAG = 0x0132
