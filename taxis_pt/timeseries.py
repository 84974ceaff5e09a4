from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Dict, Iterable, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from taxis_pt import config
from taxis_pt.areas import EnrichedArea

LOGGER = logging.getLogger(__name__)

KEY_COLUMNS = [config.ID_COLUMN, "year", "indicator"]
TS_COLUMNS = KEY_COLUMNS + ["value"]

PERIOD_PATTERN = re.compile(r"(?P<year>\d{4})(?:[_-](?P<sub>[a-z0-9_]+))?")


def parse_period(column_name: str) -> Optional[Tuple[int, Optional[str]]]:
    match = PERIOD_PATTERN.fullmatch(str(column_name))
    if match is None:
        return None
    year = int(match.group("year"))
    if not config.MIN_YEAR <= year <= config.MAX_YEAR:
        return None
    return year, match.group("sub")


def parse_numeric_series(
    series: pd.Series,
    thousands: str = config.THOUSANDS_SEPARATOR,
    decimal: str = config.DECIMAL_SEPARATOR,
) -> pd.Series:
    """Parse cells as floats; malformed or ambiguous cells become NaN.

    A cell containing the thousands separator must group digits by three,
    so with the defaults "1,200" is 1200.0 while "1,5" is rejected rather
    than read as 15.0.
    """
    cleaned = series.astype(str).str.strip()
    cleaned = cleaned.str.replace("\u00a0", "", regex=False)
    cleaned = cleaned.str.replace(" ", "", regex=False)
    missing = cleaned.isin(config.MISSING_VALUE_TOKENS)

    grouped_pattern = rf"[-+]?\d{{1,3}}(?:{re.escape(thousands)}\d{{3}})+(?:{re.escape(decimal)}\d+)?"
    grouped = cleaned.str.contains(thousands, regex=False)
    ambiguous = grouped & ~cleaned.str.fullmatch(grouped_pattern) & ~missing
    if ambiguous.any():
        LOGGER.warning(
            "Reading %d cells with ambiguous separators as missing: %s",
            int(ambiguous.sum()),
            ", ".join(sorted(set(cleaned[ambiguous]))[:5]),
        )

    cleaned = cleaned.str.replace(thousands, "", regex=False)
    if decimal != ".":
        cleaned = cleaned.str.replace(decimal, ".", regex=False)
    cleaned = cleaned.where(~(missing | ambiguous), np.nan)
    return pd.to_numeric(cleaned, errors="coerce").astype(float)


def empty_ts_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            config.ID_COLUMN: pd.Series(dtype=object),
            "year": pd.Series(dtype=int),
            "indicator": pd.Series(dtype=object),
            "value": pd.Series(dtype=float),
        }
    )


def assert_unique_keys(df: pd.DataFrame, label: str) -> None:
    duplicates = df.duplicated(KEY_COLUMNS).sum()
    if duplicates:
        raise ValueError(f"Dataset {label} has {duplicates} duplicated (id, year, indicator) rows.")


def prep_ts_data(df: pd.DataFrame, indicator: str) -> pd.DataFrame:
    """Pivot a wide per-year table into one row per (id, year, indicator).

    Columns that are not periods are dropped. Empty or non-numeric cells
    become NaN rows rather than disappearing. A repeated area row overrides
    the earlier one.
    """
    if config.ID_COLUMN not in df.columns:
        raise ValueError(f"Time series {indicator!r} has no '{config.ID_COLUMN}' column.")

    periods: Dict[str, Tuple[int, Optional[str]]] = {}
    for column in df.columns:
        parsed = parse_period(column) if column != config.ID_COLUMN else None
        if parsed is not None:
            periods[column] = parsed

    if not periods:
        raise ValueError(
            f"Time series {indicator!r} has no year columns. Available columns: {sorted(df.columns)}"
        )

    ignored = [column for column in df.columns if column != config.ID_COLUMN and column not in periods]
    if ignored:
        LOGGER.debug("Ignoring non-period columns in %s: %s", indicator, ", ".join(map(str, ignored)))

    rows = df[df[config.ID_COLUMN].astype(str).str.len() > 0]
    long = rows[[config.ID_COLUMN] + list(periods)].melt(
        id_vars=[config.ID_COLUMN],
        var_name="column",
        value_name="raw",
    )

    long["year"] = long["column"].map(lambda column: periods[column][0]).astype(int)
    long["indicator"] = long["column"].map(
        lambda column: indicator if periods[column][1] is None else f"{indicator}_{periods[column][1]}"
    )
    long["value"] = parse_numeric_series(long["raw"])

    records = (
        long[TS_COLUMNS]
        .drop_duplicates(subset=KEY_COLUMNS, keep="last")
        .sort_values([config.ID_COLUMN, "indicator", "year"], kind="stable")
        .reset_index(drop=True)
    )
    assert_unique_keys(records, indicator)
    return records


def backfill_data(records: pd.DataFrame) -> pd.DataFrame:
    """Carry the last known value forward inside each area's observed span.

    Per (id, indicator) the span runs from the first to the last year with a
    record. Missing years inside the span are inserted; null values take the
    most recent earlier value. Nothing is added before or after the span.

    Wide sources give every area a row per year column, so each span ends at
    the source's last year. Long-form input whose span for an area stops
    before the indicator's overall last year is not extended to it.
    """
    if records.empty:
        return empty_ts_frame()

    records = records.drop_duplicates(subset=KEY_COLUMNS, keep="last")
    filled_frames = []

    for (area_id, indicator), group in records.groupby([config.ID_COLUMN, "indicator"], sort=True):
        series = group.set_index("year")["value"].sort_index()
        years = list(range(int(series.index.min()), int(series.index.max()) + 1))
        values = series.reindex(years).ffill()

        filled_frames.append(
            pd.DataFrame(
                {
                    config.ID_COLUMN: area_id,
                    "year": years,
                    "indicator": indicator,
                    "value": values.to_numpy(dtype=float),
                }
            )
        )

    filled = (
        pd.concat(filled_frames, ignore_index=True)[TS_COLUMNS]
        .sort_values([config.ID_COLUMN, "indicator", "year"])
        .reset_index(drop=True)
    )
    filled["year"] = filled["year"].astype(int)
    assert_unique_keys(filled, "backfilled")
    return filled


def combine_ts_data(frames: Iterable[pd.DataFrame]) -> pd.DataFrame:
    frames = [frame[TS_COLUMNS] for frame in frames if not frame.empty]
    if not frames:
        return empty_ts_frame()

    combined = pd.concat(frames, ignore_index=True).drop_duplicates(subset=KEY_COLUMNS, keep="last")
    assert_unique_keys(combined, "combined_time_series")
    return combined.reset_index(drop=True)


def group_ts_data(records: pd.DataFrame) -> Dict[str, Tuple[Dict[str, object], ...]]:
    """Group records by area and year into ``{year, indicator: value}`` entries.

    Indicators missing for a year are left out of that entry; NaN becomes None.
    """
    grouped: Dict[str, Tuple[Dict[str, object], ...]] = {}
    if records.empty:
        return grouped

    ordered = records.sort_values([config.ID_COLUMN, "year"], kind="stable")
    for area_id, area_df in ordered.groupby(config.ID_COLUMN, sort=False):
        entries = []
        for year, year_df in area_df.groupby("year", sort=True):
            entry: Dict[str, object] = {"year": int(year)}
            for indicator, value in zip(year_df["indicator"], year_df["value"]):
                entry[indicator] = None if pd.isna(value) else float(value)
            entries.append(entry)
        grouped[area_id] = tuple(entries)

    return grouped


def add_ts_data(
    areas: Mapping[str, EnrichedArea],
    grouped: Mapping[str, Tuple[Dict[str, object], ...]],
) -> Dict[str, EnrichedArea]:
    unmatched = sorted(set(grouped) - set(areas))
    if unmatched:
        LOGGER.debug("Time series rows without a matching area: %s", ", ".join(unmatched))

    return {
        area_id: replace(area, data=grouped.get(area_id, ()))
        for area_id, area in areas.items()
    }
