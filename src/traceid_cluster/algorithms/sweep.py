"""
Parameter sweeps for clustering over a fixed distance matrix.

Runs one clustering algorithm across several values of its main parameter
(``threshold`` for hierarchical, ``k`` for kmeans, ``epsilon`` for dbscan)
and scores every run with the precomputed silhouette, so a user can pick a
value before committing to a single clustering.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..utils.logging_config import get_logger
from .clustering import (
    ClusteringOptions,
    cluster_labels,
    create_clustering_algorithm,
    silhouette_score_precomputed,
)
from .distance import validate_distance_matrix

logger = get_logger(__name__)

SWEEP_PARAMETERS = {
    "hierarchical": "threshold",
    "kmeans": "k",
    "dbscan": "epsilon",
}


@dataclass
class SweepConfig:
    """Configuration for a clustering parameter sweep."""

    algorithm: str = "hierarchical"
    values: Sequence[float] = (0.1, 0.2, 0.3, 0.4, 0.5)
    options: ClusteringOptions = field(default_factory=ClusteringOptions)

    @property
    def parameter(self) -> str:
        try:
            return SWEEP_PARAMETERS[self.algorithm.strip().lower()]
        except KeyError:
            raise ValueError(
                f"Unknown clustering algorithm: {self.algorithm}. "
                f"Available: {', '.join(SWEEP_PARAMETERS)}"
            ) from None


@dataclass
class SweepResult:
    """Results from a clustering sweep."""

    algorithm: str
    parameter: str
    by_value: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    best_value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algorithm": self.algorithm,
            "parameter": self.parameter,
            "best_value": self.best_value,
            "by_value": self.by_value,
        }


def run_sweep(items: Sequence[str], matrix, cfg: SweepConfig) -> SweepResult:
    """
    Cluster *items* once per value in ``cfg.values``.

    For every value the result records the number of clusters, the cluster
    sizes (in cluster order) and the silhouette score computed on *matrix*.
    The best value is the one with the highest silhouette; the earliest value
    wins ties.

    Args:
        items: Items to cluster
        matrix: Their distance matrix
        cfg: SweepConfig naming the algorithm, values and base options

    Returns:
        SweepResult keyed by ``str(value)``

    Raises:
        ValueError: If the algorithm is unknown, values is empty, or a value is
            rejected by the algorithm
    """
    parameter = cfg.parameter
    if len(cfg.values) == 0:
        raise ValueError("values must not be empty")

    n = len(items)
    dist = validate_distance_matrix(matrix, n)

    by_value: Dict[str, Dict[str, Any]] = {}
    best_value: Optional[float] = None
    best_score = -np.inf

    for value in cfg.values:
        if parameter == "k":
            value = int(value)
        options = replace(cfg.options, **{parameter: value})
        algorithm = create_clustering_algorithm(cfg.algorithm, options)
        clusters = algorithm.cluster(items, dist)

        labels = cluster_labels(clusters, n)
        score = silhouette_score_precomputed(labels, dist) if n else 0.0
        sizes: List[int] = [c.size for c in clusters]

        by_value[str(value)] = {
            "n_clusters": len(clusters),
            "sizes": sizes,
            "silhouette": score,
        }
        logger.debug(
            "Sweep %s %s=%s: %d clusters, silhouette=%.4f",
            cfg.algorithm,
            parameter,
            value,
            len(clusters),
            score,
        )
        if score > best_score:
            best_score = score
            best_value = value

    return SweepResult(
        algorithm=cfg.algorithm,
        parameter=parameter,
        by_value=by_value,
        best_value=best_value,
    )
