"""
Analysis Service - runs the distance / clustering / layout pipeline.

Takes a list of tokens, builds the distance matrix once and hands it to the
clustering algorithm and to classical MDS, so the two outputs always agree on
the same distances.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..algorithms.clustering import (
    Cluster,
    ClusteringAlgorithm,
    cluster_labels,
    create_clustering_algorithm,
    silhouette_score_precomputed,
)
from ..algorithms.dimensionality_reduction import MDSResult, classical_mds
from ..algorithms.distance import (
    DistanceCalculator,
    build_distance_matrix,
    create_distance_calculator,
    parse_traceability_id,
    validate_distance_matrix,
)
from ..config import Config
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_NEAR_DUPLICATE_THRESHOLD = 0.1


@dataclass
class NearDuplicatePair:
    """Two tokens closer than the near-duplicate threshold."""

    first: str
    second: str
    distance: float
    pattern: str


@dataclass
class NearDuplicateReport:
    """Near-duplicate pairs, closest first, and their share of all pairs."""

    threshold: float
    pairs: List[NearDuplicatePair] = field(default_factory=list)
    rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threshold": self.threshold,
            "rate": self.rate,
            "pairs": [asdict(p) for p in self.pairs],
        }


def duplicate_pattern(a: str, b: str) -> str:
    """
    Classify a pair by whether the two IDs share their scope and level.

    Returns one of ``same-scope-same-level``, ``same-scope-different-level``,
    ``different-scope-same-level``, ``different-scope-different-level``, or
    ``unparsed`` when either token is not a traceability ID.
    """
    pa = parse_traceability_id(a)
    pb = parse_traceability_id(b)
    if pa is None or pb is None:
        return "unparsed"
    scope = "same-scope" if pa.scope == pb.scope else "different-scope"
    level = "same-level" if pa.level == pb.level else "different-level"
    return f"{scope}-{level}"


def find_near_duplicates(
    items: Sequence[str],
    matrix,
    threshold: float = DEFAULT_NEAR_DUPLICATE_THRESHOLD,
) -> NearDuplicateReport:
    """
    Collect every pair ``i < j`` whose distance is strictly below *threshold*.

    Args:
        items: Tokens in matrix order
        matrix: Their distance matrix
        threshold: Exclusive upper bound on the pair distance

    Returns:
        NearDuplicateReport with pairs sorted by ascending distance (scan
        order among equal distances) and the rate over all ``n(n-1)/2`` pairs

    Raises:
        ValueError: If threshold is negative or the matrix does not match
    """
    if threshold < 0:
        raise ValueError(f"threshold must be >= 0, got {threshold}")
    items = list(items)
    n = len(items)
    dist = validate_distance_matrix(matrix, n)

    rows, cols = np.nonzero(np.triu(dist < threshold, k=1))
    pairs = [
        NearDuplicatePair(
            first=items[i],
            second=items[j],
            distance=float(dist[i, j]),
            pattern=duplicate_pattern(items[i], items[j]),
        )
        for i, j in zip(rows.tolist(), cols.tolist())
    ]
    pairs.sort(key=lambda p: p.distance)

    total_pairs = n * (n - 1) // 2
    rate = len(pairs) / total_pairs if total_pairs else 0.0
    return NearDuplicateReport(threshold=threshold, pairs=pairs, rate=rate)


@dataclass
class AnalysisResult:
    """Clusters, near-duplicate pairs and (optionally) layout for one list of items."""

    items: List[str]
    clusters: List[Cluster]
    matrix: np.ndarray
    algorithm: str
    distance_calculator: str
    silhouette: float = 0.0
    mds: Optional[MDSResult] = None
    near_duplicates: Optional[NearDuplicateReport] = None

    def to_dict(self, include_matrix: bool = False) -> Dict[str, Any]:
        """JSON-safe representation."""
        result: Dict[str, Any] = {
            "algorithm": self.algorithm,
            "distance_calculator": self.distance_calculator,
            "n_items": len(self.items),
            "n_clusters": len(self.clusters),
            "silhouette": self.silhouette,
            "clusters": [c.to_dict() for c in self.clusters],
        }
        if self.mds is not None:
            result["layout"] = self.mds.to_dict()
        if self.near_duplicates is not None:
            result["near_duplicates"] = self.near_duplicates.to_dict()
        if include_matrix:
            result["matrix"] = self.matrix.tolist()
        return result


class AnalysisService:
    """
    Service running clustering and MDS layout over a shared distance matrix.

    Usage:
        service = AnalysisService.from_config()
        result = service.analyze(["req:auth:login-1a2b#v1", ...])
        for cluster in result.clusters:
            print(cluster.id, cluster.representative, cluster.members)
    """

    def __init__(
        self,
        calculator: DistanceCalculator,
        algorithm: ClusteringAlgorithm,
        mds_dimensions: int = 3,
        near_duplicate_threshold: float = DEFAULT_NEAR_DUPLICATE_THRESHOLD,
    ):
        """
        Initialize the analysis service.

        Args:
            calculator: Distance calculator used for the matrix
            algorithm: Clustering algorithm applied to the matrix
            mds_dimensions: Output dimensionality of the layout
            near_duplicate_threshold: Pairs closer than this are reported
                as near-duplicates

        Raises:
            ValueError: If mds_dimensions < 1 or near_duplicate_threshold < 0
        """
        if mds_dimensions < 1:
            raise ValueError(f"mds_dimensions must be >= 1, got {mds_dimensions}")
        if near_duplicate_threshold < 0:
            raise ValueError(
                f"near_duplicate_threshold must be >= 0, got {near_duplicate_threshold}"
            )
        self.calculator = calculator
        self.algorithm = algorithm
        self.mds_dimensions = mds_dimensions
        self.near_duplicate_threshold = near_duplicate_threshold

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "AnalysisService":
        """Build the service from a Config (environment defaults when None)."""
        if config is None:
            config = Config()
        calculator = create_distance_calculator(
            config.distance.name,
            prefix_scale=config.distance.prefix_scale,
            ngram_size=config.distance.ngram_size,
        )
        algorithm = create_clustering_algorithm(config.algorithm, config.clustering)
        return cls(calculator, algorithm, mds_dimensions=config.mds_dimensions)

    def build_matrix(self, items: Sequence[str]) -> np.ndarray:
        return build_distance_matrix(list(items), self.calculator)

    def _matrix_for(self, items: Sequence[str], matrix) -> np.ndarray:
        if matrix is None:
            return self.build_matrix(items)
        return validate_distance_matrix(matrix, len(items))

    def cluster(self, items: Sequence[str], matrix=None) -> List[Cluster]:
        """Cluster items, computing the distance matrix unless one is given."""
        items = list(items)
        return self.algorithm.cluster(items, self._matrix_for(items, matrix))

    def layout(self, items: Sequence[str], matrix=None) -> MDSResult:
        """Project items into ``mds_dimensions`` coordinates."""
        items = list(items)
        return classical_mds(self._matrix_for(items, matrix), self.mds_dimensions)

    def near_duplicates(self, items: Sequence[str], matrix=None) -> NearDuplicateReport:
        """Report pairs closer than ``near_duplicate_threshold``."""
        items = list(items)
        return find_near_duplicates(
            items, self._matrix_for(items, matrix), self.near_duplicate_threshold
        )

    def analyze(self, items: Sequence[str], include_layout: bool = True) -> AnalysisResult:
        """
        Run the full pipeline on *items*.

        Args:
            items: Tokens to analyze, in a stable order
            include_layout: Also compute the MDS layout

        Returns:
            AnalysisResult with clusters, matrix, silhouette, near-duplicate
            pairs and optional layout
        """
        items = list(items)
        logger.info(
            "Analyzing %d items (distance=%s, algorithm=%s)",
            len(items),
            self.calculator.name,
            self.algorithm.name,
        )
        matrix = self.build_matrix(items)
        clusters = self.algorithm.cluster(items, matrix)
        logger.info("Created %d clusters", len(clusters))

        silhouette = 0.0
        if items:
            silhouette = silhouette_score_precomputed(
                cluster_labels(clusters, len(items)), matrix
            )

        mds = classical_mds(matrix, self.mds_dimensions) if include_layout else None
        near_duplicates = find_near_duplicates(items, matrix, self.near_duplicate_threshold)
        if near_duplicates.pairs:
            logger.info(
                "Found %d near-duplicate pairs below %.3f",
                len(near_duplicates.pairs),
                self.near_duplicate_threshold,
            )

        return AnalysisResult(
            items=items,
            clusters=clusters,
            matrix=matrix,
            algorithm=self.algorithm.name,
            distance_calculator=self.calculator.name,
            silhouette=silhouette,
            mds=mds,
            near_duplicates=near_duplicates,
        )
