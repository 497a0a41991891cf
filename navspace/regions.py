"""Multi-region worlds: several independent representations in one graph.

Each region keeps its own adjacency rules; node ids are offset so they stay
unique across regions. Regions never link to one another natively, so each
starts on its own island(s) until bridges stitch them together.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, ClassVar, Dict, List, Sequence, Tuple

from .graph import Edge, Node, NodeId, Portal, SpatialSource
from .vector import Precision


@dataclass(slots=True)
class RegionSet:
    kind: ClassVar[str] = "islands"

    regions: List[SpatialSource]

    @property
    def directed(self) -> bool:
        return any(region.directed for region in self.regions)

    @property
    def heuristic_kind(self) -> str:
        kinds = {getattr(region, "heuristic_kind", "zero") for region in self.regions}
        return "distance" if kinds == {"distance"} else "zero"

    def produce_nodes(self, tolerance: float, precision: Precision) -> List[Node]:
        out: List[Node] = []
        offset = 0
        for index, region in enumerate(self.regions):
            local = region.produce_nodes(tolerance, precision)
            if not local:
                continue
            low = min(node.id for node in local)
            high = max(node.id for node in local)
            for node in local:
                metadata = dict(node.metadata)
                metadata["region"] = index
                metadata["local_id"] = node.id
                out.append(replace(node, id=offset + node.id - low, metadata=metadata))
            offset += high - low + 1
        return out

    def _split(self, nodes: Sequence[Node]) -> List[Tuple[List[Node], Dict[NodeId, NodeId]]]:
        groups: List[Tuple[List[Node], Dict[NodeId, NodeId]]] = [([], {}) for _ in self.regions]
        for node in nodes:
            local_nodes, to_global = groups[node.metadata["region"]]
            local_nodes.append(replace(node, id=node.metadata["local_id"]))
            to_global[node.metadata["local_id"]] = node.id
        return groups

    def produce_edges(self, nodes: Sequence[Node], tolerance: float) -> List[Edge]:
        out: List[Edge] = []
        for region, (local_nodes, to_global) in zip(self.regions, self._split(nodes)):
            for edge in region.produce_edges(local_nodes, tolerance):
                a, b = to_global[edge.source], to_global[edge.target]
                out.append(replace(edge, source=a, target=b))
                if self.directed and not region.directed:
                    out.append(replace(edge, source=b, target=a))
        return out

    def produce_portals(self, nodes: Sequence[Node], tolerance: float) -> Dict[Tuple[NodeId, NodeId], Portal]:
        out: Dict[Tuple[NodeId, NodeId], Portal] = {}
        for region, (local_nodes, to_global) in zip(self.regions, self._split(nodes)):
            produce = getattr(region, "produce_portals", None)
            if produce is None:
                continue
            for (a, b), portal in produce(local_nodes, tolerance).items():
                out[(to_global[a], to_global[b])] = portal
        return out

    def to_json_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "regions": [region.to_json_dict() for region in self.regions]}


__all__ = ["RegionSet"]
