from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from taxis_pt import config

LOGGER = logging.getLogger(__name__)

AREA_COLUMNS = ["id", "name", "type", "parent_id"]


class ReferentialIntegrityError(ValueError):
    """The area list does not form a consistent hierarchy."""


@dataclass(frozen=True)
class Area:
    id: str
    name: str
    type: str
    parent_id: Optional[str] = None
    children: Tuple[str, ...] = ()
    abbreviation: Optional[str] = None
    files: Tuple[Dict[str, object], ...] = ()


@dataclass(frozen=True)
class EnrichedArea:
    area: Area
    meta: Mapping[str, object] = field(default_factory=dict)
    data: Tuple[Dict[str, object], ...] = ()

    @property
    def id(self) -> str:
        return self.area.id

    @property
    def type(self) -> str:
        return self.area.type

    @property
    def children(self) -> Tuple[str, ...]:
        return self.area.children


def _validate_columns(df: pd.DataFrame, required: Iterable[str], label: str) -> None:
    missing = sorted(set(required) - set(df.columns))
    if missing:
        raise ValueError(f"Missing required columns in {label}: {', '.join(missing)}.")


def _display_names(abbreviations: pd.DataFrame) -> Dict[str, Dict[str, str]]:
    names: Dict[str, Dict[str, str]] = {}
    for row in abbreviations.to_dict("records"):
        entry = names.setdefault(row[config.ID_COLUMN], {})
        for column in ("name", "abbreviation"):
            value = row.get(column)
            if isinstance(value, str) and value:
                entry[column] = value
    return names


def generate_areas(
    area_rows: pd.DataFrame,
    abbreviations: pd.DataFrame,
    files: Optional[Mapping[str, List[Dict[str, object]]]] = None,
) -> Dict[str, Area]:
    """Build the id -> Area arena and wire parent/child links.

    Children are appended in source order. Every broken row is collected and
    reported together in one ``ReferentialIntegrityError``.
    """
    _validate_columns(area_rows, AREA_COLUMNS, "area list")
    files = files or {}
    names = _display_names(abbreviations)

    rows: Dict[str, Dict[str, object]] = {}
    problems: List[str] = []

    for row in area_rows.to_dict("records"):
        area_id = row["id"]
        area_type = str(row["type"]).lower()
        if not area_id:
            problems.append(f"row without id: {row}")
            continue
        if area_id in rows:
            problems.append(f"{area_id}: duplicated area id")
            continue
        if area_type not in config.AREA_TYPES:
            problems.append(f"{area_id}: unknown area type {row['type']!r}")
            continue
        rows[area_id] = {
            "id": area_id,
            "name": names.get(area_id, {}).get("name") or row["name"],
            "type": area_type,
            "parent_id": row["parent_id"] or None,
            "abbreviation": names.get(area_id, {}).get("abbreviation"),
        }

    children: Dict[str, List[str]] = {area_id: [] for area_id in rows}
    for area_id, row in rows.items():
        parent_id = row["parent_id"]
        if parent_id is None:
            if row["type"] not in config.ROOT_TYPES:
                problems.append(f"{area_id}: {row['type']} without a parent")
            continue
        parent = rows.get(parent_id)
        if parent is None:
            problems.append(f"{area_id}: parent {parent_id!r} does not exist")
            continue
        expected_type = config.PARENT_TYPES.get(row["type"])
        if parent["type"] != expected_type:
            problems.append(
                f"{area_id}: parent {parent_id!r} is a {parent['type']}, expected {expected_type}"
            )
            continue
        children[parent_id].append(area_id)

    if problems:
        formatted = "\n".join(f"  - {problem}" for problem in problems)
        raise ReferentialIntegrityError(f"Inconsistent area hierarchy:\n{formatted}")

    unmatched_files = sorted(set(files) - set(rows))
    if unmatched_files:
        LOGGER.debug("Files folder has entries for unknown areas: %s", ", ".join(unmatched_files))

    return {
        area_id: Area(
            id=area_id,
            name=row["name"],
            type=row["type"],
            parent_id=row["parent_id"],
            children=tuple(children[area_id]),
            abbreviation=row["abbreviation"],
            files=tuple(files.get(area_id, [])),
        )
        for area_id, row in rows.items()
    }


def unique_values(areas: Iterable[Area], attribute: str) -> List[str]:
    """Distinct attribute values in first-seen order."""
    seen: List[str] = []
    for area in areas:
        value = getattr(area, attribute)
        if value not in seen:
            seen.append(value)
    return seen
