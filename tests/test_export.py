import copy
import json

import pytest

from taxis_pt.areas import generate_areas
from taxis_pt.export import (
    assemble_exports,
    build_national,
    build_national_menu,
    build_topology_export,
    build_type_exports,
    full_record,
    store_response,
)
from taxis_pt.metadata import add_metadata
from taxis_pt.timeseries import add_ts_data


@pytest.fixture
def enriched(area_rows, abbreviations):
    areas = generate_areas(area_rows, abbreviations)
    with_meta = add_metadata(areas, {"C1": {"website": "https://c1.example.pt", "tags": ["praia"]}})
    grouped = {
        "C1": ({"year": 2010, "taxis": 5.0, "population": 100.0},),
        "N1": ({"year": 2010, "taxis": 8.0},),
    }
    return add_ts_data(with_meta, grouped)


def _keys_anywhere(value):
    if isinstance(value, dict):
        keys = set(value)
        for nested in value.values():
            keys |= _keys_anywhere(nested)
        return keys
    if isinstance(value, list):
        keys = set()
        for item in value:
            keys |= _keys_anywhere(item)
        return keys
    return set()


def test_full_record_contains_hierarchy_metadata_and_data(enriched):
    record = full_record(enriched["C1"])

    assert record == {
        "id": "C1",
        "name": "Concelho Um (display)",
        "abbreviation": "CU",
        "parent_id": "N1",
        "files": [],
        "type": "concelho",
        "children": [],
        "website": "https://c1.example.pt",
        "tags": ["praia"],
        "data": [{"year": 2010, "taxis": 5.0, "population": 100.0}],
    }


def test_type_exports_have_one_list_per_type(enriched):
    exports = build_type_exports(enriched)

    assert list(exports) == ["district", "nut3", "concelho"]
    assert [record["id"] for record in exports["concelho"]] == ["C1", "C2", "C3"]
    assert exports["nut3"][0]["children"] == ["C1", "C2"]
    assert exports["concelho"][1]["data"] == []


def test_national_nests_full_concelhos_and_appends_aggregate(enriched):
    aggregate = {"id": "PT", "data": [{"year": 2011, "dormidas": 10}]}

    national = build_national(enriched, aggregate)

    assert [record["id"] for record in national] == ["N1", "N2", "PT"]
    assert [child["id"] for child in national[0]["children"]] == ["C1", "C2"]
    assert national[0]["children"][0]["data"] == [{"year": 2010, "taxis": 5.0, "population": 100.0}]
    assert national[-1] == aggregate
    assert national[-1] is not aggregate


def test_national_menu_never_carries_type_or_data(enriched):
    menu = build_national_menu(enriched)

    assert [record["id"] for record in menu] == ["N1", "N2"]
    assert [child["id"] for child in menu[0]["children"]] == ["C1", "C2"]
    assert menu[0]["children"][0]["website"] == "https://c1.example.pt"
    assert "children" not in menu[0]["children"][0]
    assert not {"type", "data"} & _keys_anywhere(menu)


def test_artifacts_do_not_share_mutable_state(enriched):
    before = copy.deepcopy(build_type_exports(enriched))

    national = build_national(enriched)
    national[0]["children"][0]["data"].append({"year": 1999})
    national[0]["children"][0]["tags"].append("changed")
    menu = build_national_menu(enriched)
    menu[0]["name"] = "changed"

    assert build_type_exports(enriched) == before
    assert enriched["C1"].meta["tags"] == ["praia"]


def test_topology_export_joins_full_records(enriched, topology):
    joined = build_topology_export(enriched, topology)

    c1, c3, sea = joined["objects"]["areas"]["geometries"]
    assert c1["properties"]["label"] == "c1"
    assert c1["properties"]["data"] == [{"year": 2010, "taxis": 5.0, "population": 100.0}]
    assert c3["properties"]["type"] == "concelho"
    assert sea is topology["objects"]["areas"]["geometries"][2]


def test_assemble_exports_names_every_artifact(enriched, topology):
    artifacts = assemble_exports(enriched, {"id": "PT"}, topology)

    assert [artifact.file_name for artifact in artifacts] == [
        "district-full.json",
        "nut3-full.json",
        "concelho-full.json",
        "national.json",
        "national-menu.json",
        "admin-areas-data.topojson",
    ]
    assert artifacts[1].description.endswith("aggregated by nut3")
    assert artifacts[-1].description is None


def test_store_response_wraps_data_with_meta(tmp_path):
    path = tmp_path / "out" / "national.json"

    store_response([{"id": "N1", "name": "Região"}], path, "Some description")

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["meta"]["description"] == "Some description"
    assert payload["data"] == [{"id": "N1", "name": "Região"}]
    assert "Região" in path.read_text(encoding="utf-8")
