#!/usr/bin/env python

import argparse
import sqlite3
from pathlib import Path


def connect_db(db_path: Path) -> sqlite3.Connection:
    if not db_path.exists():
        raise SystemExit(f"DB not found: {db_path}")
    return sqlite3.connect(db_path)


def show_record(conn: sqlite3.Connection, record_id: int):
    cur = conn.cursor()
    cur.execute("""
        SELECT id, name, storage_path, lat, lng, capture_time,
               location_is_fallback, time_is_fallback, ingested_at
        FROM photos
        WHERE id = ?
    """, (record_id,))
    row = cur.fetchone()
    if not row:
        print(f"No photo with id={record_id}")
        return

    pid, name, storage_path, lat, lng, capture, loc_fb, time_fb, ingested = row
    print("Photo:")
    print(f"  id:            {pid}")
    print(f"  name:          {name}")
    print(f"  storage_path:  {storage_path}")
    print(f"  location:      {lat:.6f}, {lng:.6f} ({'fallback' if loc_fb else 'exif'})")
    print(f"  capture_time:  {capture} ({'ingestion' if time_fb else 'exif'})")
    print(f"  ingested_at:   {ingested}")


def list_fallback_locations(conn: sqlite3.Connection):
    cur = conn.cursor()
    cur.execute("""
        SELECT id, capture_time, lat, lng, name
        FROM photos
        WHERE location_is_fallback = 1
        ORDER BY capture_time, id
    """)
    rows = cur.fetchall()
    if not rows:
        print("No photos placed at the fallback point.")
        return

    print("Photos without a GPS fix (placed at the fallback point):")
    print("id   | capture_time               | lat        | lng         | name")
    print("-----+----------------------------+------------+-------------+-----")
    for pid, capture, lat, lng, name in rows:
        print(f"{pid:4d} | {capture.ljust(26)} | {lat:10.6f} | {lng:11.6f} | {name}")


def list_fallback_times(conn: sqlite3.Connection):
    cur = conn.cursor()
    cur.execute("""
        SELECT id, capture_time, ingested_at, name
        FROM photos
        WHERE time_is_fallback = 1
        ORDER BY capture_time, id
    """)
    rows = cur.fetchall()
    if not rows:
        print("No photos dated by ingestion time.")
        return

    print("Photos without an EXIF date (dated at ingestion):")
    print("id   | capture_time               | ingested_at                      | name")
    print("-----+----------------------------+----------------------------------+-----")
    for pid, capture, ingested, name in rows:
        print(f"{pid:4d} | {capture.ljust(26)} | {ingested.ljust(32)} | {name}")


def parse_args():
    p = argparse.ArgumentParser(description="Query helper for the photo_trail SQLite catalog.")
    p.add_argument("--db", required=True, help="Path to photo_trail.db")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--record-id", type=int, help="Show one photo by id")
    group.add_argument("--fallback-locations", action="store_true", help="List photos placed at the fallback point")
    group.add_argument("--fallback-times", action="store_true", help="List photos dated by ingestion time")
    return p.parse_args()


def main():
    args = parse_args()
    db_path = Path(args.db).resolve()
    conn = connect_db(db_path)

    try:
        if args.record_id is not None:
            show_record(conn, args.record_id)
        elif args.fallback_locations:
            list_fallback_locations(conn)
        elif args.fallback_times:
            list_fallback_times(conn)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
