"""
Business Logic Layer (Services)

Services sit between the algorithm core (distances, clustering, layout) and
the command line / external collaborators that supply tokens and consume
results.

Services handle:
- Building the distance matrix once and sharing it between clustering and layout
- Cluster quality scoring
- Near-duplicate pair detection
- Query-by-example similarity search
- Graph data for 3D viewers
"""

from .analysis_service import (
    AnalysisResult,
    AnalysisService,
    NearDuplicatePair,
    NearDuplicateReport,
    find_near_duplicates,
)
from .graph_service import GraphData, GraphLink, GraphNode, build_graph_data
from .similarity_service import SimilarityItem, SimilaritySearchResult, SimilarityService

__all__ = [
    "AnalysisResult",
    "AnalysisService",
    "NearDuplicatePair",
    "NearDuplicateReport",
    "find_near_duplicates",
    "GraphData",
    "GraphLink",
    "GraphNode",
    "build_graph_data",
    "SimilarityItem",
    "SimilaritySearchResult",
    "SimilarityService",
]
