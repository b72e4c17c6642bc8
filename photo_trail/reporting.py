import csv
import logging
from pathlib import Path
from typing import Dict, Union

from .database.ops import SpatialStore


class ReportGenerator:
    def __init__(self, store: SpatialStore):
        self.store = store

    def generate_quality_report(self, output_csv: Union[Path, str]) -> Dict[str, int]:
        """
        Writes every record, in trajectory order, with its provenance flags,
        so fallback points can be told apart from real GPS fixes downstream.

        Returns summary counts: total, location_fallback, time_fallback.
        """
        logging.info(f"Generating quality report -> {output_csv}")

        headers = [
            "ID",
            "Name",
            "Storage Path",
            "Latitude",
            "Longitude",
            "Capture Time",
            "Location Source",
            "Time Source",
        ]

        summary = {"total": 0, "location_fallback": 0, "time_fallback": 0}

        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)

            for rec in self.store.list_ordered_by_time():
                summary["total"] += 1
                if rec.location_is_fallback:
                    summary["location_fallback"] += 1
                if rec.time_is_fallback:
                    summary["time_fallback"] += 1

                writer.writerow([
                    rec.id,
                    rec.name,
                    rec.storage_path,
                    f"{rec.location.lat:.6f}",
                    f"{rec.location.lng:.6f}",
                    rec.capture_time.isoformat(),
                    "fallback" if rec.location_is_fallback else "exif",
                    "ingestion" if rec.time_is_fallback else "exif",
                ])

        logging.info(
            f"Report complete. {summary['total']} records, "
            f"{summary['location_fallback']} with fallback location, "
            f"{summary['time_fallback']} with fallback time."
        )
        return summary
