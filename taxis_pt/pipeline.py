from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import pandas as pd

from taxis_pt import config
from taxis_pt import ingest
from taxis_pt.areas import EnrichedArea, generate_areas
from taxis_pt.export import assemble_exports, copy_topology, write_artifact
from taxis_pt.metadata import add_metadata, prepare_metadata
from taxis_pt.timeseries import add_ts_data, backfill_data, combine_ts_data, group_ts_data, prep_ts_data

LOGGER = logging.getLogger(__name__)


def build_time_series(sources: Mapping[str, object]) -> pd.DataFrame:
    frames: List[pd.DataFrame] = []
    for source, settings in config.TIME_SERIES_SOURCES.items():
        records = prep_ts_data(sources[source], settings["indicator"])
        if settings["backfill"]:
            records = backfill_data(records)
        LOGGER.info("Prepared %d %s records", len(records), source)
        frames.append(records)
    return combine_ts_data(frames)


def build_enriched_areas(sources: Mapping[str, object]) -> Dict[str, EnrichedArea]:
    areas = generate_areas(sources["areas"], sources["abbreviations"], sources["files"])
    LOGGER.info("Built %d areas", len(areas))

    with_metadata = add_metadata(areas, prepare_metadata(sources["metadata"]))
    time_series = build_time_series(sources)
    return add_ts_data(with_metadata, group_ts_data(time_series))


def build_export_pipeline(
    data_dir: Optional[Path] = None,
    export_dir: Optional[Path] = None,
    max_workers: int = config.MAX_WORKERS,
) -> Dict[str, Path]:
    data_dir = Path(data_dir) if data_dir is not None else config.DATA_DIR
    export_dir = Path(export_dir) if export_dir is not None else config.EXPORT_DIR

    sources = ingest.load_sources(data_dir, max_workers=max_workers)
    areas = build_enriched_areas(sources)
    artifacts = assemble_exports(areas, sources["national_dormidas"], sources["topology"])

    # Nothing is written until every artifact has been assembled.
    export_dir.mkdir(parents=True, exist_ok=True)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            artifact.file_name: executor.submit(write_artifact, artifact, export_dir)
            for artifact in artifacts
        }
        futures[config.EXPORT_FILES["topology"]] = executor.submit(
            copy_topology, data_dir / config.RAW_FILES["topology"], export_dir
        )
        written = {name: future.result() for name, future in futures.items()}

    print(f"[build_export] Done! Wrote {len(written)} files to {export_dir}.")
    return written
