import copy
import json
from pathlib import Path

import pandas as pd
import pytest

from taxis_pt import config

AREAS_CSV = """id,name,type,parent_id
D1,Distrito Um,district,
N1,Nut Um,nut3,
N2,Nut Dois,NUT3,D1
C1,Concelho Um,concelho,N1
C2,Concelho Dois,concelho,N1
C3,Concelho Tres,concelho,N2
"""

ABBREVIATIONS_CSV = """id,name,abbreviation
C1,Concelho Um (display),CU
N1,,NU
"""

METADATA_CSV = """id,website,tags[]
C1,https://c1.example.pt,praia | serra
C2,,
CX,https://unknown.example.pt,orphan
"""

TAXIS_CSV = """id,name,2010,2011,2012
C1,Concelho Um,5,,7
C2,Concelho Dois,3,4,
C3,Concelho Tres,,,2
"""

POPULATION_CSV = """id,2010,2011
C1,100,101
C2,"1,200",
"""

DORMIDAS_CSV = """id,2011_hotels,2011_other,notes
C1,10,2,x
"""

NATIONAL_DORMIDAS = {
    "id": "PT",
    "name": "Portugal",
    "data": [{"year": 2011, "dormidas_hotels": 1000}],
}

TOPOLOGY = {
    "type": "Topology",
    "arcs": [[[0, 0], [1, 1]], [[1, 1], [2, 2]], [[2, 2], [0, 0]]],
    "objects": {
        "areas": {
            "type": "GeometryCollection",
            "geometries": [
                {"type": "Polygon", "id": "C1", "arcs": [[0, 1]], "properties": {"label": "c1"}},
                {"type": "Polygon", "id": "C3", "arcs": [[2]]},
                {"type": "Polygon", "id": "sea", "arcs": [[-1]], "properties": {"label": "sea"}},
            ],
        }
    },
}


def write_data_dir(root: Path) -> Path:
    data_dir = root / "data"
    data_dir.mkdir(parents=True)
    (data_dir / config.RAW_FILES["areas"]).write_text(AREAS_CSV, encoding="utf-8")
    (data_dir / config.RAW_FILES["abbreviations"]).write_text(ABBREVIATIONS_CSV, encoding="utf-8")
    (data_dir / config.RAW_FILES["metadata"]).write_text(METADATA_CSV, encoding="utf-8")
    (data_dir / config.RAW_FILES["taxis"]).write_text(TAXIS_CSV, encoding="utf-8")
    (data_dir / config.RAW_FILES["population"]).write_text(POPULATION_CSV, encoding="utf-8")
    (data_dir / config.RAW_FILES["dormidas"]).write_text(DORMIDAS_CSV, encoding="utf-8")
    (data_dir / config.RAW_FILES["national_dormidas"]).write_text(
        json.dumps(NATIONAL_DORMIDAS), encoding="utf-8"
    )
    (data_dir / config.RAW_FILES["topology"]).write_text(json.dumps(TOPOLOGY), encoding="utf-8")

    files_dir = data_dir / config.FILES_FOLDER / "C1"
    files_dir.mkdir(parents=True)
    (files_dir / "relatorio.pdf").write_bytes(b"%PDF-1.4")
    return data_dir


@pytest.fixture
def data_dir(tmp_path):
    return write_data_dir(tmp_path)


@pytest.fixture
def area_rows():
    return pd.DataFrame(
        {
            "id": ["D1", "N1", "C1", "C2", "N2", "C3"],
            "name": ["Distrito", "Nut Um", "Concelho Um", "Concelho Dois", "Nut Dois", "Concelho Tres"],
            "type": ["district", "nut3", "concelho", "concelho", "nut3", "concelho"],
            "parent_id": ["", "", "N1", "N1", "D1", "N2"],
        }
    )


@pytest.fixture
def abbreviations():
    return pd.DataFrame({"id": ["C1"], "name": ["Concelho Um (display)"], "abbreviation": ["CU"]})


@pytest.fixture
def topology():
    return copy.deepcopy(TOPOLOGY)
