"""
Algorithm Core Library - distances, clustering and spatial layout.

This module provides the engine behind traceid-cluster: string distance
metrics, clustering over a precomputed distance matrix, and classical MDS on
top of a Jacobi eigensolver. Nothing here performs I/O.
"""

from .distance import (
    DISTANCE_CALCULATORS,
    CosineDistance,
    DistanceCalculator,
    JaroWinklerDistance,
    LevenshteinDistance,
    StructuralDistance,
    StructuralWeights,
    TraceabilityId,
    build_distance_matrix,
    create_distance_calculator,
    normalized_levenshtein,
    parse_traceability_id,
)
from .clustering import (
    CLUSTERING_ALGORITHMS,
    Cluster,
    ClusteringAlgorithm,
    ClusteringOptions,
    DBSCANClustering,
    HierarchicalClustering,
    KMeansClustering,
    cluster_labels,
    create_clustering_algorithm,
    find_medoid,
    silhouette_score_precomputed,
)
from .dimensionality_reduction import (
    EigenDecomposition,
    MDSResult,
    classical_mds,
    double_center,
    jacobi_eigen,
)
from .sweep import SweepConfig, SweepResult, run_sweep

__all__ = [
    # Distance
    "DISTANCE_CALCULATORS",
    "DistanceCalculator",
    "LevenshteinDistance",
    "JaroWinklerDistance",
    "CosineDistance",
    "StructuralDistance",
    "StructuralWeights",
    "TraceabilityId",
    "parse_traceability_id",
    "normalized_levenshtein",
    "build_distance_matrix",
    "create_distance_calculator",
    # Clustering
    "CLUSTERING_ALGORITHMS",
    "Cluster",
    "ClusteringAlgorithm",
    "ClusteringOptions",
    "HierarchicalClustering",
    "KMeansClustering",
    "DBSCANClustering",
    "find_medoid",
    "cluster_labels",
    "create_clustering_algorithm",
    "silhouette_score_precomputed",
    # Layout
    "EigenDecomposition",
    "MDSResult",
    "jacobi_eigen",
    "double_center",
    "classical_mds",
    # Sweep orchestration
    "SweepConfig",
    "SweepResult",
    "run_sweep",
]
