"""Load representation adapters from JSON geometry descriptions.

A geometry document is a JSON object with a ``kind`` key:

* ``mesh`` - ``vertices`` + ``triangles`` (+ ``area_costs``), or ``triangle_soup``
* ``grid`` - ``cells`` as ``[x, y, cost?]`` or a ``mask`` (+ ``cell_size``, ``neighbors``...)
* ``freegrid`` - ``cells`` as ``[min_x, min_y, max_x, max_y, cost?, z?]``
* ``net`` - ``nodes`` and ``edges`` (+ ``directed``)
* ``islands`` - ``regions``: a list of the documents above
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Union

from .freegrid import FreeGrid
from .graph import SpatialSource
from .grid import UniformGrid
from .mesh import TriangleMesh
from .net import NavNet
from .regions import RegionSet


def _regions(payload: Mapping[str, Any]) -> RegionSet:
    return RegionSet([source_from_json_dict(item) for item in payload.get("regions", [])])


_LOADERS: Dict[str, Callable[[Mapping[str, Any]], SpatialSource]] = {
    "mesh": TriangleMesh.from_json_dict,
    "grid": UniformGrid.from_json_dict,
    "freegrid": FreeGrid.from_json_dict,
    "net": NavNet.from_json_dict,
    "islands": _regions,
}


def source_from_json_dict(payload: Mapping[str, Any]) -> SpatialSource:
    """Build the adapter described by ``payload``; raises ``ValueError`` on unknown kinds."""

    if not isinstance(payload, Mapping):
        raise ValueError(f"Geometry must be a JSON object, got {type(payload).__name__}")
    kind = payload.get("kind")
    try:
        loader = _LOADERS[kind]
    except KeyError:
        raise ValueError(f"Unknown geometry kind {kind!r}; expected one of {sorted(_LOADERS)}") from None
    try:
        return loader(payload)
    except (IndexError, KeyError, TypeError) as exc:
        raise ValueError(f"Malformed {kind} geometry: {exc}") from exc


def load_source(path: Union[str, Path]) -> SpatialSource:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return source_from_json_dict(payload)


__all__ = ["load_source", "source_from_json_dict"]
