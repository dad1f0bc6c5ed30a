"""
traceid-cluster - Core Package

Finds near-duplicate and related traceability IDs
(``level:scope:semantic-hash#version``) across a corpus.

This package provides:
- String distance metrics and distance matrix construction
- Clustering over a precomputed distance matrix (hierarchical, K-Means, DBSCAN)
- Classical MDS layout backed by a Jacobi eigensolver
- Service layer and command line front end
"""

__version__ = "0.1.0"

from .algorithms import (
    Cluster,
    MDSResult,
    build_distance_matrix,
    classical_mds,
    create_clustering_algorithm,
    create_distance_calculator,
)

# Explicitly import subpackages so traceid_cluster.services etc. are available
from . import algorithms
from . import services
from . import utils

__all__ = [
    "Cluster",
    "MDSResult",
    "build_distance_matrix",
    "classical_mds",
    "create_clustering_algorithm",
    "create_distance_calculator",
    "algorithms",
    "services",
    "utils",
]
