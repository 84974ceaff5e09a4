from __future__ import annotations

import copy
import json
import logging
import shutil
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from taxis_pt import config
from taxis_pt.areas import EnrichedArea, unique_values
from taxis_pt.topology import join_topology

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Artifact:
    file_name: str
    payload: object
    description: Optional[str] = None


def _base_fields(area: EnrichedArea) -> Dict[str, object]:
    return {
        "id": area.area.id,
        "name": area.area.name,
        "abbreviation": area.area.abbreviation,
        "parent_id": area.area.parent_id,
        "files": [dict(entry) for entry in area.area.files],
    }


def full_record(area: EnrichedArea) -> Dict[str, object]:
    """Everything known about an area: hierarchy, metadata and time series."""
    record = _base_fields(area)
    record["type"] = area.area.type
    record["children"] = list(area.area.children)
    record.update(copy.deepcopy(dict(area.meta)))
    record["data"] = [dict(entry) for entry in area.data]
    return record


def menu_record(area: EnrichedArea) -> Dict[str, object]:
    """Structure-only view of an area: no type, children or time series."""
    record = _base_fields(area)
    record.update(copy.deepcopy(dict(area.meta)))
    return record


def build_type_exports(areas: Mapping[str, EnrichedArea]) -> Dict[str, List[Dict[str, object]]]:
    return {
        area_type: [full_record(area) for area in areas.values() if area.type == area_type]
        for area_type in unique_values((area.area for area in areas.values()), "type")
    }


def build_national(
    areas: Mapping[str, EnrichedArea],
    national_aggregate: Optional[object] = None,
) -> List[object]:
    """NUT3 records with their concelhos nested as full records.

    The national aggregate is appended as-is: overnight stays are not additive
    across concelhos so it cannot be rebuilt from them.
    """
    national: List[object] = []
    for area in areas.values():
        if area.type != "nut3":
            continue
        record = full_record(area)
        record["children"] = [full_record(areas[child_id]) for child_id in area.children]
        national.append(record)

    if national_aggregate is not None:
        national.append(copy.deepcopy(national_aggregate))
    return national


def build_national_menu(areas: Mapping[str, EnrichedArea]) -> List[Dict[str, object]]:
    menu: List[Dict[str, object]] = []
    for area in areas.values():
        if area.type != "nut3":
            continue
        record = menu_record(area)
        record["children"] = [menu_record(areas[child_id]) for child_id in area.children]
        menu.append(record)
    return menu


def build_topology_export(
    areas: Mapping[str, EnrichedArea],
    topology: Mapping[str, object],
    key: str = config.TOPOLOGY_JOIN_KEY,
) -> Dict[str, object]:
    return join_topology(topology, [full_record(area) for area in areas.values()], key=key)


def assemble_exports(
    areas: Mapping[str, EnrichedArea],
    national_aggregate: Optional[object],
    topology: Mapping[str, object],
) -> List[Artifact]:
    artifacts = [
        Artifact(
            file_name=config.EXPORT_FILES["type_full"].format(type=area_type),
            payload=records,
            description=config.EXPORT_DESCRIPTIONS["type_full"].format(type=area_type),
        )
        for area_type, records in build_type_exports(areas).items()
    ]

    artifacts.append(
        Artifact(
            file_name=config.EXPORT_FILES["national"],
            payload=build_national(areas, national_aggregate),
            description=config.EXPORT_DESCRIPTIONS["national"],
        )
    )
    artifacts.append(
        Artifact(
            file_name=config.EXPORT_FILES["national_menu"],
            payload=build_national_menu(areas),
            description=config.EXPORT_DESCRIPTIONS["national_menu"],
        )
    )
    artifacts.append(
        Artifact(
            file_name=config.EXPORT_FILES["topology_data"],
            payload=build_topology_export(areas, topology),
        )
    )
    return artifacts


def store_response(data: object, path: Path, description: str, generated: Optional[date] = None) -> None:
    generated = generated or date.today()
    write_json(
        {
            "meta": {"description": description, "generated": generated.isoformat()},
            "data": data,
        },
        path,
    )


def write_json(payload: object, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False, allow_nan=False)


def write_artifact(artifact: Artifact, export_dir: Path) -> Path:
    path = export_dir / artifact.file_name
    if artifact.description is None:
        write_json(artifact.payload, path)
    else:
        store_response(artifact.payload, path, artifact.description)
    LOGGER.info("Wrote %s", path)
    return path


def copy_topology(source: Path, export_dir: Path) -> Path:
    target = export_dir / config.EXPORT_FILES["topology"]
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, target)
    LOGGER.info("Copied %s to %s", source, target)
    return target
