from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping

import pandas as pd

from taxis_pt import config
from taxis_pt.areas import Area, EnrichedArea

LOGGER = logging.getLogger(__name__)


def get_multi_value_fields(columns: Iterable[str]) -> List[str]:
    return [str(column) for column in columns if str(column).endswith(config.MULTI_VALUE_MARKER)]


def split_multi_value(raw: object, delimiter: str = config.MULTI_VALUE_DELIMITER) -> List[str]:
    if raw is None or (isinstance(raw, float) and pd.isna(raw)):
        return []
    parts = (part.strip() for part in str(raw).split(delimiter))
    return [part for part in parts if part]


def parse_multi_value_fields(df: pd.DataFrame, fields: Iterable[str]) -> pd.DataFrame:
    """Replace delimited string columns with lists of trimmed values.

    ``fields`` are column names as found in the source, marker included
    (``tags[]``). The output column drops the marker (``tags``).
    """
    parsed = df.copy()
    rename_map: Dict[str, str] = {}

    for field in fields:
        if field not in parsed.columns:
            raise ValueError(f"Multi-value field {field!r} not found. Available columns: {sorted(parsed.columns)}")
        parsed[field] = parsed[field].map(split_multi_value)
        if field.endswith(config.MULTI_VALUE_MARKER):
            rename_map[field] = field[: -len(config.MULTI_VALUE_MARKER)]

    return parsed.rename(columns=rename_map)


def prepare_metadata(df: pd.DataFrame) -> Dict[str, Dict[str, object]]:
    """Index metadata rows by area id; later rows win for a repeated id."""
    metadata = parse_multi_value_fields(df, get_multi_value_fields(df.columns))
    duplicates = int(metadata.duplicated(config.ID_COLUMN).sum())
    if duplicates:
        LOGGER.debug("Metadata has %d repeated area ids, keeping the last row of each.", duplicates)

    metadata = metadata.drop_duplicates(subset=[config.ID_COLUMN], keep="last")
    value_columns = [column for column in metadata.columns if column not in config.STRUCTURAL_FIELDS]

    return {
        row[config.ID_COLUMN]: {column: row[column] for column in value_columns}
        for row in metadata.to_dict("records")
    }


def add_metadata(
    areas: Mapping[str, Area],
    metadata: Mapping[str, Mapping[str, object]],
) -> Dict[str, EnrichedArea]:
    unmatched = sorted(set(metadata) - set(areas))
    if unmatched:
        LOGGER.debug("Metadata rows without a matching area: %s", ", ".join(unmatched))

    return {
        area_id: EnrichedArea(area=area, meta=dict(metadata.get(area_id, {})))
        for area_id, area in areas.items()
    }
