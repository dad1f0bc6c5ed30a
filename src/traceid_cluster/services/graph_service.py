"""
Graph data for 3D viewers.

Combines items, their distance matrix, a clustering and an optional MDS
layout into plain nodes and links that a force-graph renderer can load.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..algorithms.clustering import Cluster, cluster_labels
from ..algorithms.distance import parse_traceability_id, validate_distance_matrix


@dataclass
class GraphNode:
    """One token in the graph, with its parsed parts and cluster."""

    id: str
    index: int
    cluster_id: int
    level: Optional[str] = None
    scope: Optional[str] = None
    semantic: Optional[str] = None
    hash: Optional[str] = None
    version: Optional[str] = None
    # fixed position from the layout, when one was supplied
    fx: Optional[float] = None
    fy: Optional[float] = None
    fz: Optional[float] = None


@dataclass
class GraphLink:
    """Edge between two tokens within the edge threshold."""

    source: str
    target: str
    distance: float


@dataclass
class GraphData:
    """Nodes and links ready for a force-graph renderer."""

    nodes: List[GraphNode] = field(default_factory=list)
    links: List[GraphLink] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [asdict(n) for n in self.nodes],
            "links": [asdict(link) for link in self.links],
        }


def build_graph_data(
    items: Sequence[str],
    matrix,
    clusters: Sequence[Cluster],
    edge_threshold: float,
    coordinates: Optional[np.ndarray] = None,
    scale: float = 100.0,
) -> GraphData:
    """
    Build nodes and links for a 3D graph.

    Args:
        items: Tokens, one node each (in order)
        matrix: Their distance matrix
        clusters: Clustering of the same items; unclustered nodes get id 0
        edge_threshold: Link every pair whose distance is <= this value
        coordinates: Optional (n, d) layout; the first three columns (zero
            when d < 3) become fx/fy/fz multiplied by *scale*
        scale: Coordinate multiplier for the renderer's units

    Returns:
        GraphData

    Raises:
        ValueError: If matrix or coordinates do not match the items
    """
    n = len(items)
    dist = validate_distance_matrix(matrix, n)
    labels = cluster_labels(clusters, n)

    coords = None
    if coordinates is not None:
        coords = np.asarray(coordinates, dtype=np.float64)
        if coords.ndim != 2 or coords.shape[0] != n:
            raise ValueError(
                f"coordinates must have shape ({n}, d), got {coords.shape}"
            )
        if coords.shape[1] < 3:
            coords = np.hstack([coords, np.zeros((n, 3 - coords.shape[1]))])

    nodes: List[GraphNode] = []
    for i, item in enumerate(items):
        node = GraphNode(id=item, index=i, cluster_id=int(labels[i]))
        parts = parse_traceability_id(item)
        if parts is not None:
            node.level, node.scope, node.semantic, node.hash, node.version = parts
        if coords is not None:
            node.fx, node.fy, node.fz = (float(v) * scale for v in coords[i, :3])
        nodes.append(node)

    rows, cols = np.nonzero(np.triu(dist <= edge_threshold, k=1))
    links = [
        GraphLink(source=items[i], target=items[j], distance=float(dist[i, j]))
        for i, j in zip(rows.tolist(), cols.tolist())
    ]

    return GraphData(nodes=nodes, links=links)
