"""
Database schema definitions.
"""
import sqlite3
import logging

CURRENT_SCHEMA_VERSION = 1

def init_schema(conn: sqlite3.Connection):
    """
    Applies the core schema to the database.
    Idempotent: safe to run on every startup.
    """
    with conn:
        # 1. Version Tracking (For future migrations)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
        """)

        cur = conn.cursor()
        cur.execute("SELECT version FROM schema_version")
        if not cur.fetchone():
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))

        # 2. Photo Records
        # AUTOINCREMENT keeps ids monotonic and never reused
        conn.execute("""
        CREATE TABLE IF NOT EXISTS photos (
            id                    INTEGER PRIMARY KEY AUTOINCREMENT,
            name                  TEXT NOT NULL,
            storage_path          TEXT NOT NULL,
            lat                   REAL NOT NULL CHECK (lat BETWEEN -90 AND 90),
            lng                   REAL NOT NULL CHECK (lng BETWEEN -180 AND 180),
            capture_time          TEXT NOT NULL,      -- naive ISO-8601, fixed microsecond width
            location_is_fallback  INTEGER NOT NULL DEFAULT 0,
            time_is_fallback      INTEGER NOT NULL DEFAULT 0,
            ingested_at           TEXT NOT NULL       -- UTC ISO-8601
        );
        """)

        # 3. Time-ordered index (trajectory order, id breaks ties)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_photos_capture_time ON photos(capture_time, id);")

        # 4. Point-geometry index
        # Degenerate boxes (min == max); rowid matches photos.id
        conn.execute("""
        CREATE VIRTUAL TABLE IF NOT EXISTS photos_rtree USING rtree(
            id,
            min_lat, max_lat,
            min_lng, max_lng
        );
        """)

    logging.debug("Database schema initialized.")
