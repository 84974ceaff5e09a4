from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATA_DIR = PROJECT_ROOT / "data"
EXPORT_DIR = PROJECT_ROOT / "export"

RAW_FILES = {
    "areas": "concelhos.csv",
    "abbreviations": "area-abbreviations.csv",
    "metadata": "area-metadata.csv",
    "taxis": "taxis.csv",
    "population": "population.csv",
    "dormidas": "dormidas.csv",
    "national_dormidas": "national-dormidas.json",
    "topology": "admin-areas.topojson",
}

FILES_FOLDER = "files"

REQUIRED_RAW_FILES = [
    RAW_FILES["areas"],
    RAW_FILES["abbreviations"],
    RAW_FILES["metadata"],
    RAW_FILES["taxis"],
    RAW_FILES["population"],
    RAW_FILES["dormidas"],
    RAW_FILES["national_dormidas"],
    RAW_FILES["topology"],
]

# Wide time-series tables. The indicator name is used for plain `YYYY` columns,
# `YYYY_<sub>` columns become `<indicator>_<sub>`.
TIME_SERIES_SOURCES = {
    "taxis": {"indicator": "taxis", "backfill": True},
    "population": {"indicator": "population", "backfill": True},
    "dormidas": {"indicator": "dormidas", "backfill": True},
}

ID_COLUMN = "id"

AREA_TYPES = ["district", "nut3", "concelho"]
PARENT_TYPES = {
    "nut3": "district",
    "concelho": "nut3",
}
ROOT_TYPES = {"district", "nut3"}

# Keys owned by the hierarchy; metadata columns with these names are ignored.
STRUCTURAL_FIELDS = {"id", "type", "parent_id", "children", "data"}

# Headers that are always normalized (lowercase, snake_case); other metadata
# headers are used verbatim as output field names.
KEY_HEADERS = {"id", "name", "type", "parent_id", "abbreviation"}

MULTI_VALUE_MARKER = "[]"
MULTI_VALUE_DELIMITER = "|"

MIN_YEAR = 1900
MAX_YEAR = 2100
MISSING_VALUE_TOKENS = {"", ":", "..", "-", "x", "nan", "None"}

# Cells using the thousands separator must group digits by three ("1,200");
# anything else ("1,5") is ambiguous and read as missing.
THOUSANDS_SEPARATOR = ","
DECIMAL_SEPARATOR = "."

TOPOLOGY_JOIN_KEY = "id"

EXPORT_FILES = {
    "type_full": "{type}-full.json",
    "national": "national.json",
    "national_menu": "national-menu.json",
    "topology": "admin-areas.topojson",
    "topology_data": "admin-areas-data.topojson",
}

EXPORT_DESCRIPTIONS = {
    "type_full": "Data about taxis in Portugal from 2006 on, aggregated by {type}",
    "national": "Data about taxis in Portugal from 2006 on, aggregated by NUT3 and concelho",
    "national_menu": "The NUT3 areas with their concelhos",
}

MAX_WORKERS = 8
