import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .core import PhotoTrailApp
from .exceptions import InvalidQuery, NotFound, StorageFailure
from .models import GeoPoint
from .reporting import ReportGenerator
from .trajectory import path_length_m, to_geojson
from . import config

def setup_logging(verbose: bool, log_file: Optional[Path] = None):
    """Console logging (stderr, so stdout stays valid JSON), plus an optional log file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Photo Trail: geotagged photo catalog with trajectory and radius queries")

    p.add_argument("--db", type=Path, default=None,
                   help=f"SQLite catalog path (default: $PHOTO_TRAIL_DB or ./{config.DB_FILENAME})")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    p.add_argument("--fallback-lat", type=float, default=config.FALLBACK_LAT,
                   help="Latitude used for photos without GPS data")
    p.add_argument("--fallback-lng", type=float, default=config.FALLBACK_LNG,
                   help="Longitude used for photos without GPS data")

    sub = p.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Extract metadata from images and store them")
    ingest.add_argument("paths", type=Path, nargs="+", help="Image files or directories")
    ingest.add_argument("--workers", type=int, default=config.INGEST_WORKERS, help="Parallel extraction workers")

    traj = sub.add_parser("trajectory", help="Print records in chronological (trajectory) order")
    traj.add_argument("--geojson", action="store_true", help="Print the path as a GeoJSON LineString")
    traj.add_argument("--skip-fallback", action="store_true", help="Leave out photos placed at the fallback point")
    traj.add_argument("--start", type=datetime.fromisoformat, default=None,
                      help="Window start (ISO-8601; an offset is converted to local time)")
    traj.add_argument("--end", type=datetime.fromisoformat, default=None,
                      help="Window end (ISO-8601; an offset is converted to local time)")
    traj.add_argument("--limit", type=int, default=None, help="Maximum records to print")

    search = sub.add_parser("search", help="Records within a geodesic radius of a point")
    search.add_argument("--lat", type=float, required=True)
    search.add_argument("--lng", type=float, required=True)
    search.add_argument("--radius", type=float, required=True, help="Radius in meters")
    search.add_argument("--limit", type=int, default=None, help="Maximum records to print")

    show = sub.add_parser("show", help="Print one record by id")
    show.add_argument("record_id", type=int)

    report = sub.add_parser("report", help="Write a CSV of all records with GPS/time provenance")
    report.add_argument("--csv", type=Path, default=Path("photo_trail_report.csv"), help="Output CSV path")

    return p.parse_args(argv)

def _emit(payload):
    print(json.dumps(payload, ensure_ascii=False, indent=2))

def run(args) -> int:
    db_path = args.db or (Path(config.DB_PATH) if config.DB_PATH else Path.cwd() / config.DB_FILENAME)
    fallback = GeoPoint(args.fallback_lat, args.fallback_lng)

    with PhotoTrailApp(db_path, default_point=fallback) as app:
        if args.command == "ingest":
            records = app.ingest_paths(args.paths, max_workers=args.workers)
            _emit([r.to_dict() for r in records])

        elif args.command == "trajectory":
            if args.geojson:
                points = app.trajectory(start=args.start, end=args.end,
                                        skip_fallback_locations=args.skip_fallback)
                _emit({
                    "type": "Feature",
                    "geometry": to_geojson(points),
                    "properties": {"length_m": round(path_length_m(points), 1), "points": len(points)},
                })
            else:
                records = app.timeline(limit=args.limit, start=args.start, end=args.end,
                                       skip_fallback_locations=args.skip_fallback)
                _emit([r.to_dict() for r in records])

        elif args.command == "search":
            records = app.search(args.lat, args.lng, args.radius, limit=args.limit)
            _emit([r.to_dict() for r in records])

        elif args.command == "show":
            _emit(app.record(args.record_id).to_dict())

        elif args.command == "report":
            summary = ReportGenerator(app.store).generate_quality_report(args.csv)
            _emit(summary)

    return 0

def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    try:
        sys.exit(run(args))
    except InvalidQuery as e:
        logging.error(str(e))
        sys.exit(2)
    except NotFound as e:
        logging.error(str(e))
        sys.exit(3)
    except StorageFailure:
        logging.exception("Storage failure.")
        sys.exit(1)
    except ValueError as e:
        # e.g. an out-of-range --fallback-lat/--fallback-lng
        logging.error(str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)

if __name__ == "__main__":
    main()
