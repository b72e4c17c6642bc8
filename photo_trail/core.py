import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from itertools import islice
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

from tqdm import tqdm

from .database.db import DBManager
from .database.ops import SpatialStore
from .exceptions import InvalidQuery, NotFound
from .metadata.extract import MetadataExtractor
from .metadata.normalize import CoordinateNormalizer
from .models import GeoPoint, PhotoRecord
from .search import RadiusSearchService
from .trajectory import TrajectoryAssembler
from . import config


class PhotoTrailApp:
    """
    Wires the pipeline together:
    upload bytes -> extract -> normalize -> SpatialStore.insert,
    plus the two query paths (trajectory, radius search).
    """

    def __init__(self, db_path: Union[Path, str], default_point: Optional[GeoPoint] = None):
        self.db_manager = DBManager(db_path)
        self.store = SpatialStore(self.db_manager)
        self.extractor = MetadataExtractor()
        self.normalizer = CoordinateNormalizer(default_point)
        self.searcher = RadiusSearchService(self.store)
        self.assembler = TrajectoryAssembler()

    def close(self):
        self.db_manager.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # --- Ingestion ---

    def ingest_bytes(self, data: bytes, name: str, storage_path: str) -> PhotoRecord:
        """
        Extracts metadata from the uploaded bytes and persists the record.
        Missing metadata is filled in by the fallback policy; StorageFailure propagates.
        """
        extracted = self.extractor.extract(data)
        normalized = self.normalizer.normalize(extracted, source=name)

        record = self.store.insert(
            name,
            storage_path,
            normalized.location,
            normalized.capture_time,
            location_is_fallback=normalized.location_is_fallback,
            time_is_fallback=normalized.time_is_fallback,
        )
        logging.info(
            f"Ingested {name} as #{record.id} "
            f"(gps={'fallback' if record.location_is_fallback else 'exif'}, "
            f"time={'fallback' if record.time_is_fallback else 'exif'})"
        )
        return record

    def ingest_file(self, path: Path) -> PhotoRecord:
        """The file stays where it is; its path becomes the record's storage reference."""
        return self.ingest_bytes(path.read_bytes(), path.name, str(path))

    def ingest_paths(self, paths: Iterable[Path], max_workers: int = config.INGEST_WORKERS) -> List[PhotoRecord]:
        """
        Ingests many files. Unreadable files are logged and skipped;
        a storage failure stops the run.
        """
        files = list(self._expand(paths))
        if not files:
            logging.info("No images to ingest.")
            return []

        logging.info(f"Ingesting {len(files)} files with {max_workers} workers...")
        records = []
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            future_to_path = {executor.submit(self.ingest_file, p): p for p in files}
            for future in tqdm(as_completed(future_to_path), total=len(files), desc="Ingesting"):
                path = future_to_path[future]
                try:
                    records.append(future.result())
                except OSError as e:
                    logging.error(f"Could not read {path}: {e}")

        records.sort(key=lambda r: r.id)
        logging.info(f"Ingestion complete. Stored {len(records)} of {len(files)} files.")
        return records

    def _expand(self, paths: Iterable[Path]):
        """Yields image files; directories are walked recursively."""
        for p in paths:
            if p.is_dir():
                for child in sorted(p.rglob("*")):
                    if child.is_file() and child.suffix.lower() in config.IMAGE_EXTS:
                        yield child
            else:
                yield p

    # --- Queries ---

    def timeline(self,
                 limit: Optional[int] = None,
                 start: Optional[datetime] = None,
                 end: Optional[datetime] = None,
                 skip_fallback_locations: bool = False) -> List[PhotoRecord]:
        """Records in trajectory order; the window and fallback filters apply before the limit."""
        if start is None and end is None and not skip_fallback_locations:
            return self.store.list_ordered_by_time(limit=limit).to_list()

        if limit is None:
            limit = config.DEFAULT_MAX_RESULTS
        elif isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise InvalidQuery("limit", "a non-negative integer", limit)

        selected = self.assembler.select(
            self.store.list_ordered_by_time(),
            start=start,
            end=end,
            skip_fallback_locations=skip_fallback_locations,
        )
        return list(islice(selected, limit))

    def trajectory(self,
                   start: Optional[datetime] = None,
                   end: Optional[datetime] = None,
                   skip_fallback_locations: bool = False) -> List[GeoPoint]:
        return self.assembler.assemble(
            self.store.list_ordered_by_time(),
            start=start,
            end=end,
            skip_fallback_locations=skip_fallback_locations,
        )

    def search(self, lat: float, lng: float, radius_m: float, limit: Optional[int] = None) -> List[PhotoRecord]:
        return self.searcher.search(lat, lng, radius_m, limit=limit)

    def record(self, record_id: int) -> PhotoRecord:
        """Like SpatialStore.get, but a missing id is an error for this caller."""
        rec = self.store.get(record_id)
        if rec is None:
            raise NotFound(f"No photo with id={record_id}")
        return rec
