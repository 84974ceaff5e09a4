from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from taxis_pt import config

LOGGER = logging.getLogger(__name__)


def _feature_key(feature: Mapping[str, object], key: str) -> Optional[str]:
    if key in feature:
        value = feature[key]
    else:
        value = (feature.get("properties") or {}).get(key)
    # TopoJSON ids are often numeric while area ids are read as text.
    return None if value is None else str(value)


def _join_features(
    features: Iterable[Mapping[str, object]],
    records_by_key: Mapping[str, Mapping[str, object]],
    key: str,
    unmatched: List[Optional[str]],
) -> List[Mapping[str, object]]:
    joined = []
    for feature in features:
        feature_key = _feature_key(feature, key)
        record = records_by_key.get(feature_key)
        if record is None:
            unmatched.append(feature_key)
            joined.append(feature)
            continue
        # Only the properties mapping is replaced; geometry, arcs and ids are shared.
        joined_feature = dict(feature)
        joined_feature["properties"] = {**(feature.get("properties") or {}), **record}
        joined.append(joined_feature)
    return joined


def join_topology(
    topology: Mapping[str, object],
    records: Iterable[Mapping[str, object]],
    key: str = config.TOPOLOGY_JOIN_KEY,
) -> Dict[str, object]:
    """Return a copy of ``topology`` with area records merged into feature properties.

    Works on TopoJSON (``objects -> geometries``) and GeoJSON (``features``)
    documents. Record fields win over existing properties. Features without a
    matching record are passed through as they are. Keys are compared as
    text, so a numeric feature id 101 matches the area id "101". The input
    document is left untouched.
    """
    records_by_key = {str(record[key]): record for record in records if record.get(key) is not None}
    unmatched: List[Optional[str]] = []
    joined: Dict[str, object] = dict(topology)

    if "features" in topology:
        joined["features"] = _join_features(topology["features"], records_by_key, key, unmatched)

    if "objects" in topology:
        objects = {}
        for name, collection in topology["objects"].items():
            if "geometries" not in collection:
                objects[name] = collection
                continue
            joined_collection = dict(collection)
            joined_collection["geometries"] = _join_features(
                collection["geometries"], records_by_key, key, unmatched
            )
            objects[name] = joined_collection
        joined["objects"] = objects

    if "features" not in topology and "objects" not in topology:
        raise ValueError("Topology document has neither 'objects' nor 'features'.")

    if unmatched:
        LOGGER.info("%d features without area data: %s", len(unmatched), unmatched)
    return joined
