"""
Similarity Service - ranks tokens against a query.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..algorithms.distance import DistanceCalculator, TraceabilityId, parse_traceability_id


@dataclass
class SimilarityItem:
    """One ranked match."""

    item: str
    index: int
    distance: float


@dataclass
class SimilaritySearchResult:
    """Matches sorted from closest to farthest."""

    query: str
    distance_calculator: str
    items: List[SimilarityItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "distance_calculator": self.distance_calculator,
            "items": [
                {"item": m.item, "index": m.index, "distance": m.distance}
                for m in self.items
            ],
        }


class SimilarityService:
    """Nearest-token lookup with a configurable distance calculator."""

    def __init__(self, calculator: DistanceCalculator):
        self.calculator = calculator

    def search_similar(
        self, query: str, items: Sequence[str], top: Optional[int] = None
    ) -> SimilaritySearchResult:
        """
        Rank *items* by distance to *query*.

        Ties keep the input order.

        Args:
            query: Token to compare against
            items: Candidate tokens
            top: Keep only the N closest matches (all when None)

        Raises:
            ValueError: If top < 1
        """
        if top is not None and top < 1:
            raise ValueError(f"top must be >= 1, got {top}")

        matches = [
            SimilarityItem(item=item, index=i, distance=self.calculator.calculate(query, item))
            for i, item in enumerate(items)
        ]
        matches.sort(key=lambda m: m.distance)
        if top is not None:
            matches = matches[:top]

        return SimilaritySearchResult(
            query=query,
            distance_calculator=self.calculator.name,
            items=matches,
        )

    @staticmethod
    def search_by_keyword(
        query: str, items: Sequence[str], component: Optional[str] = None
    ) -> List[str]:
        """
        Case-insensitive substring search.

        Args:
            query: Keyword to look for
            items: Candidate tokens
            component: Restrict the match to one parsed part of a traceability
                ID ("level", "scope", "semantic", "hash" or "version"); tokens
                that do not parse never match. None searches the whole token.

        Raises:
            ValueError: If component is not a known part name
        """
        if component is not None and component not in TraceabilityId._fields:
            raise ValueError(
                f"Unknown component: {component}. "
                f"Available: {', '.join(TraceabilityId._fields)}"
            )
        needle = query.lower()
        found = []
        for item in items:
            if component is None:
                haystack = item
            else:
                parts = parse_traceability_id(item)
                if parts is None:
                    continue
                haystack = getattr(parts, component)
            if needle in haystack.lower():
                found.append(item)
        return found
