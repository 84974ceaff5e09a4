from __future__ import annotations

import json
import logging
import re
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Dict, List

import pandas as pd

from taxis_pt import config

LOGGER = logging.getLogger(__name__)


class SourceReadError(RuntimeError):
    """A raw source file is missing or could not be parsed."""


def clean_header(column_name: str) -> str:
    return column_name.replace("\ufeff", "").strip()


def normalize_header(column_name: str) -> str:
    cleaned = clean_header(column_name)
    marker = ""
    if cleaned.endswith(config.MULTI_VALUE_MARKER):
        marker = config.MULTI_VALUE_MARKER
        cleaned = cleaned[: -len(marker)]
    cleaned = cleaned.lower()
    cleaned = re.sub(r"[^a-z0-9]+", "_", cleaned)
    cleaned = cleaned.strip("_")
    return cleaned + marker


def normalize_dataframe_headers(df: pd.DataFrame, keep_field_names: bool = False) -> pd.DataFrame:
    """Rename columns to their normalized header.

    With ``keep_field_names`` only the key columns (``config.KEY_HEADERS``)
    are normalized; every other header keeps its spelling, accents and case,
    since it becomes an output field name.
    """
    rename_map: Dict[str, str] = {}
    used: Dict[str, int] = {}

    for column in df.columns:
        normalized = normalize_header(str(column))
        if keep_field_names and normalized not in config.KEY_HEADERS:
            normalized = clean_header(str(column))
        if normalized in used:
            used[normalized] += 1
            normalized = f"{normalized}_{used[normalized]}"
        else:
            used[normalized] = 0
        rename_map[column] = normalized

    return df.rename(columns=rename_map)


def ensure_required_raw_files_exist(data_dir: Path) -> None:
    missing_files = [
        file_name
        for file_name in config.REQUIRED_RAW_FILES
        if not (data_dir / file_name).exists()
    ]

    if missing_files:
        formatted = "\n".join(f"  - {name}" for name in missing_files)
        raise SourceReadError(
            f"Missing required raw files in {data_dir}.\n"
            f"Please add these files and rerun:\n{formatted}"
        )


def read_raw_csv(path: Path, keep_field_names: bool = False) -> pd.DataFrame:
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except FileNotFoundError as exc:
        raise SourceReadError(f"Source file not found: {path}") from exc
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise SourceReadError(f"Could not parse CSV source {path}: {exc}") from exc

    df = normalize_dataframe_headers(df, keep_field_names=keep_field_names)
    for column in df.columns:
        df[column] = df[column].str.strip()

    if config.ID_COLUMN not in df.columns:
        raise SourceReadError(
            f"Source {path} has no '{config.ID_COLUMN}' column. Available columns: {sorted(df.columns)}"
        )
    return df


def read_json(path: Path) -> object:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError as exc:
        raise SourceReadError(f"Source file not found: {path}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise SourceReadError(f"Could not parse JSON source {path}: {exc}") from exc


def scan_file_folder(folder: Path) -> Dict[str, List[Dict[str, object]]]:
    """List the downloadable files per area.

    Every sub-directory of ``folder`` is named after an area id. Files nested
    deeper are listed too, with paths relative to ``folder``.
    """
    listing: Dict[str, List[Dict[str, object]]] = {}
    if not folder.is_dir():
        LOGGER.info("No files folder at %s, areas get no downloads.", folder)
        return listing

    for area_dir in sorted(p for p in folder.iterdir() if p.is_dir()):
        entries = [
            {
                "name": file_path.name,
                "path": file_path.relative_to(folder).as_posix(),
                "bytes": file_path.stat().st_size,
            }
            for file_path in sorted(area_dir.rglob("*"))
            if file_path.is_file() and not file_path.name.startswith(".")
        ]
        listing[area_dir.name] = sorted(entries, key=lambda entry: entry["name"])

    return listing


def _source_loaders(data_dir: Path) -> Dict[str, Callable[[], object]]:
    loaders: Dict[str, Callable[[], object]] = {
        "areas": lambda: read_raw_csv(data_dir / config.RAW_FILES["areas"]),
        "abbreviations": lambda: read_raw_csv(data_dir / config.RAW_FILES["abbreviations"]),
        "files": lambda: scan_file_folder(data_dir / config.FILES_FOLDER),
        "metadata": lambda: read_raw_csv(data_dir / config.RAW_FILES["metadata"], keep_field_names=True),
        "national_dormidas": lambda: read_json(data_dir / config.RAW_FILES["national_dormidas"]),
        "topology": lambda: read_json(data_dir / config.RAW_FILES["topology"]),
    }
    for source in config.TIME_SERIES_SOURCES:
        file_name = config.RAW_FILES[source]
        loaders[source] = lambda file_name=file_name: read_raw_csv(data_dir / file_name)
    return loaders


def load_sources(data_dir: Path, max_workers: int = config.MAX_WORKERS) -> Dict[str, object]:
    """Read every raw source concurrently.

    The first failing source cancels whatever has not started yet and is
    re-raised as ``SourceReadError``; no partial result is returned.
    """
    ensure_required_raw_files_exist(data_dir)
    loaders = _source_loaders(data_dir)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_source = {executor.submit(loader): name for name, loader in loaders.items()}
        done, pending = wait(future_to_source, return_when=FIRST_EXCEPTION)

        for future in pending:
            future.cancel()

        results: Dict[str, object] = {}
        for future in done:
            source = future_to_source[future]
            exc = future.exception()
            if exc is None:
                results[source] = future.result()
                continue
            if isinstance(exc, SourceReadError):
                raise exc
            raise SourceReadError(f"Failed to load source '{source}': {exc}") from exc

    missing = sorted(set(loaders) - set(results))
    if missing:
        raise SourceReadError(f"Sources not loaded: {', '.join(missing)}")

    LOGGER.info("Loaded %d sources from %s", len(results), data_dir)
    return results
