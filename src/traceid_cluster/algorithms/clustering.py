"""
Clustering algorithms over a precomputed distance matrix.

Provides single-linkage hierarchical clustering, a medoid variant of K-Means
with K-Means++ seeding, and DBSCAN. All three consume an item list plus its
distance matrix and return dense, 1-based ``Cluster`` objects whose
representative is always an actual member.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

import numpy as np

from ..utils.logging_config import get_logger
from .distance import validate_distance_matrix

logger = get_logger(__name__)

Array2D = np.ndarray


@dataclass
class Cluster:
    """A group of items produced by a clustering call."""

    id: int
    members: List[str]
    indices: List[int] = field(default_factory=list)
    representative: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.members)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "size": self.size,
            "representative": self.representative,
            "members": list(self.members),
            "indices": list(self.indices),
        }


@runtime_checkable
class ClusteringAlgorithm(Protocol):
    """Partitions items given their pairwise distance matrix."""

    name: str

    def cluster(self, items: Sequence[str], matrix) -> List[Cluster]:
        ...


def find_medoid(indices: Sequence[int], matrix: Array2D) -> int:
    """
    Return the index in *indices* with the smallest total distance to the rest.

    The first such index wins ties.
    """
    idx = np.asarray(indices, dtype=int)
    totals = matrix[np.ix_(idx, idx)].sum(axis=1)
    return int(idx[int(np.argmin(totals))])


def _make_cluster(
    cluster_id: int,
    indices: Sequence[int],
    items: Sequence[str],
    representative: Optional[int],
) -> Cluster:
    return Cluster(
        id=cluster_id,
        members=[items[i] for i in indices],
        indices=[int(i) for i in indices],
        representative=None if representative is None else items[representative],
    )


class HierarchicalClustering:
    """
    Agglomerative single-linkage clustering.

    Clusters keep merging while the closest pair is within ``threshold``.
    Among pairs sharing the minimum distance, the first one found scanning
    the current cluster list in (i, j), i < j order is merged; the merged
    cluster is appended at the end of the list with the lower-position
    cluster's members first.
    """

    name = "hierarchical"

    def __init__(self, threshold: float):
        """
        Args:
            threshold: Maximum single-linkage distance at which clusters merge
        """
        self.threshold = float(threshold)

    def cluster(self, items: Sequence[str], matrix) -> List[Cluster]:
        n = len(items)
        if n == 0:
            return []
        dist = validate_distance_matrix(matrix, n)

        groups: List[List[int]] = [[i] for i in range(n)]
        # single-linkage distances between the current groups (Lance-Williams min update)
        linkage = dist.copy()
        merges = 0

        while len(groups) > 1:
            m = len(groups)
            rows, cols = np.triu_indices(m, k=1)
            values = linkage[rows, cols]
            pos = int(np.argmin(values))
            if values[pos] > self.threshold:
                break

            i, j = int(rows[pos]), int(cols[pos])
            merged_row = np.minimum(linkage[i], linkage[j])
            keep = [x for x in range(m) if x != i and x != j]

            new_linkage = np.zeros((m - 1, m - 1), dtype=np.float64)
            new_linkage[: m - 2, : m - 2] = linkage[np.ix_(keep, keep)]
            new_linkage[m - 2, : m - 2] = merged_row[keep]
            new_linkage[: m - 2, m - 2] = merged_row[keep]
            linkage = new_linkage

            merged = groups[i] + groups[j]
            groups = [groups[x] for x in keep]
            groups.append(merged)
            merges += 1

        logger.debug(
            "Hierarchical clustering: %d items, %d merges, %d clusters (threshold=%s)",
            n,
            merges,
            len(groups),
            self.threshold,
        )
        return [
            _make_cluster(cid, group, items, group[0])
            for cid, group in enumerate(groups, start=1)
        ]

    def __repr__(self) -> str:
        return f"HierarchicalClustering(threshold={self.threshold})"


class LinearCongruentialGenerator:
    """
    Small seeded PRNG used for reproducible K-Means++ seeding.

    ``state = (state * 1103515245 + 12345) & 0x7fffffff``; each draw returns
    ``state / 0x7fffffff`` in [0, 1].
    """

    MULTIPLIER = 1103515245
    INCREMENT = 12345
    MODULUS_MASK = 0x7FFFFFFF

    def __init__(self, seed: int):
        self.state = int(seed) & self.MODULUS_MASK

    def random(self) -> float:
        self.state = (self.state * self.MULTIPLIER + self.INCREMENT) & self.MODULUS_MASK
        return self.state / self.MODULUS_MASK


def estimate_k(n: int) -> int:
    """Rule-of-thumb cluster count ``max(2, floor(sqrt(n / 2)))``."""
    return max(2, int(math.floor(math.sqrt(n / 2))))


class KMeansClustering:
    """
    K-Means over a distance matrix using medoids instead of means.

    Items are strings, so a centroid is always an actual item: the member
    minimizing total distance to the rest of its cluster.
    """

    name = "kmeans"

    def __init__(self, k: int, max_iterations: int = 100, seed: int = 42):
        """
        Args:
            k: Number of clusters; 0 or less estimates it from the item count
            max_iterations: Upper bound on assignment passes
            seed: Seed for the K-Means++ generator

        Raises:
            ValueError: If max_iterations < 1
        """
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        self.k = int(k)
        self.max_iterations = int(max_iterations)
        self.seed = int(seed)

    def cluster(self, items: Sequence[str], matrix) -> List[Cluster]:
        n = len(items)
        if n == 0:
            return []
        dist = validate_distance_matrix(matrix, n)

        k = self.k if self.k > 0 else estimate_k(n)
        if k >= n:
            return [_make_cluster(i + 1, [i], items, i) for i in range(n)]

        rng = LinearCongruentialGenerator(self.seed)
        medoids = self._init_medoids_kmeanspp(dist, k, rng)

        assignments: Optional[np.ndarray] = None
        n_iter = 0
        for _ in range(self.max_iterations):
            n_iter += 1
            # argmin picks the lowest medoid position on ties
            new_assignments = np.argmin(dist[:, medoids], axis=1)
            if assignments is not None and np.array_equal(new_assignments, assignments):
                break
            assignments = new_assignments

            for c in range(k):
                members = np.flatnonzero(assignments == c)
                if members.size > 0:
                    medoids[c] = find_medoid(members, dist)

        clusters: List[Cluster] = []
        for c in range(k):
            members = np.flatnonzero(assignments == c)
            if members.size == 0:
                continue
            clusters.append(
                _make_cluster(len(clusters) + 1, members.tolist(), items, medoids[c])
            )

        logger.debug(
            "K-Means: %d items, k=%d, %d iterations, %d non-empty clusters",
            n,
            k,
            n_iter,
            len(clusters),
        )
        return clusters

    @staticmethod
    def _init_medoids_kmeanspp(
        dist: Array2D, k: int, rng: LinearCongruentialGenerator
    ) -> List[int]:
        """Pick k initial medoids with the K-Means++ rule."""
        n = dist.shape[0]
        medoids = [min(int(rng.random() * n), n - 1)]

        while len(medoids) < k:
            nearest = dist[:, medoids].min(axis=1)
            weights = nearest * nearest
            total = float(weights.sum())

            r = rng.random() * total
            candidates = np.flatnonzero(weights > 0)
            # round-off fallback when the roulette walk never reaches r
            chosen = int(candidates[-1]) if candidates.size else 0
            for i in range(n):
                r -= weights[i]
                if r <= 0:
                    chosen = i
                    break
            medoids.append(chosen)

        return medoids

    def __repr__(self) -> str:
        return (
            f"KMeansClustering(k={self.k}, max_iterations={self.max_iterations}, "
            f"seed={self.seed})"
        )


class DBSCANClustering:
    """
    Density-based clustering with a single pooled noise cluster.

    A point is core when at least ``min_points`` points (itself included) lie
    within ``epsilon``. Points not density-reachable from any core point are
    gathered into one extra cluster appended after the density clusters.
    """

    name = "dbscan"

    UNVISITED = -1
    NOISE = -2

    def __init__(self, epsilon: float, min_points: int):
        """
        Args:
            epsilon: Neighborhood radius (inclusive), must be > 0
            min_points: Density threshold, must be >= 1

        Raises:
            ValueError: If a parameter is out of range
        """
        if epsilon <= 0:
            raise ValueError(f"epsilon must be positive, got {epsilon}")
        if min_points < 1:
            raise ValueError(f"min_points must be at least 1, got {min_points}")
        self.epsilon = float(epsilon)
        self.min_points = int(min_points)

    def neighbors(self, point: int, dist: Array2D) -> List[int]:
        return np.flatnonzero(dist[point] <= self.epsilon).tolist()

    def cluster(self, items: Sequence[str], matrix) -> List[Cluster]:
        n = len(items)
        if n == 0:
            return []
        dist = validate_distance_matrix(matrix, n)

        labels = np.full(n, self.UNVISITED, dtype=int)
        n_density = 0

        for i in range(n):
            if labels[i] != self.UNVISITED:
                continue
            neighborhood = self.neighbors(i, dist)
            if len(neighborhood) < self.min_points:
                labels[i] = self.NOISE
                continue
            self._expand_cluster(i, neighborhood, n_density, labels, dist)
            n_density += 1

        clusters: List[Cluster] = []
        for c in range(n_density):
            members = np.flatnonzero(labels == c).tolist()
            if members:
                clusters.append(
                    _make_cluster(
                        len(clusters) + 1, members, items, find_medoid(members, dist)
                    )
                )

        noise = np.flatnonzero(labels == self.NOISE).tolist()
        if noise:
            clusters.append(
                _make_cluster(len(clusters) + 1, noise, items, find_medoid(noise, dist))
            )

        logger.debug(
            "DBSCAN: %d items, %d density clusters, %d noise points (eps=%s, min_points=%d)",
            n,
            n_density,
            len(noise),
            self.epsilon,
            self.min_points,
        )
        return clusters

    def _expand_cluster(
        self,
        point: int,
        neighborhood: List[int],
        cluster_id: int,
        labels: np.ndarray,
        dist: Array2D,
    ) -> None:
        labels[point] = cluster_id
        queue = list(neighborhood)
        enqueued = set(neighborhood)

        pos = 0
        while pos < len(queue):
            q = queue[pos]
            pos += 1

            if labels[q] == self.NOISE:
                # border point: joins but is not expanded
                labels[q] = cluster_id
                continue
            if labels[q] != self.UNVISITED:
                continue

            labels[q] = cluster_id
            q_neighborhood = self.neighbors(q, dist)
            if len(q_neighborhood) >= self.min_points:
                for nn in q_neighborhood:
                    if nn not in enqueued:
                        enqueued.add(nn)
                        queue.append(nn)

    def __repr__(self) -> str:
        return f"DBSCANClustering(epsilon={self.epsilon}, min_points={self.min_points})"


@dataclass
class ClusteringOptions:
    """Parameters for every clustering algorithm; each uses its own subset."""

    threshold: float = 0.3
    k: int = 0
    max_iterations: int = 100
    seed: int = 42
    epsilon: float = 0.3
    min_points: int = 2


CLUSTERING_ALGORITHMS = ("hierarchical", "kmeans", "dbscan")


def create_clustering_algorithm(
    name: str, options: Optional[ClusteringOptions] = None
) -> ClusteringAlgorithm:
    """
    Instantiate a clustering algorithm by name.

    Args:
        name: One of ``CLUSTERING_ALGORITHMS``
        options: Algorithm parameters (defaults when None)

    Returns:
        The configured algorithm

    Raises:
        ValueError: If the name is unknown or a parameter is out of range
    """
    opts = options or ClusteringOptions()
    key = name.strip().lower()
    if key == "hierarchical":
        return HierarchicalClustering(opts.threshold)
    if key == "kmeans":
        return KMeansClustering(opts.k, max_iterations=opts.max_iterations, seed=opts.seed)
    if key == "dbscan":
        return DBSCANClustering(opts.epsilon, opts.min_points)
    raise ValueError(
        f"Unknown clustering algorithm: {name}. "
        f"Available: {', '.join(CLUSTERING_ALGORITHMS)}"
    )


def cluster_labels(clusters: Sequence[Cluster], n_items: int) -> np.ndarray:
    """
    Per-item cluster ids (1-based) built from a clustering result.

    Items not present in any cluster get label 0.
    """
    labels = np.zeros(n_items, dtype=int)
    for c in clusters:
        labels[c.indices] = c.id
    return labels


def silhouette_score_precomputed(labels: np.ndarray, dist: np.ndarray) -> float:
    """
    Compute silhouette score using precomputed distance matrix.

    Silhouette score measures how well-separated clusters are.
    Higher is better (range [-1, 1]).

    Args:
        labels: Cluster assignments
        dist: Precomputed distance matrix of shape (n_samples, n_samples)

    Returns:
        Mean silhouette score (0.0 with fewer than two clusters)
    """
    labels = np.asarray(labels)
    dist = np.asarray(dist, dtype=np.float64)
    n = len(labels)
    unique = np.unique(labels)
    if n == 0 or len(unique) == 1:
        return 0.0

    sil = np.zeros(n, dtype=np.float64)
    for i in range(n):
        same_mask = labels == labels[i]
        same_count = same_mask.sum()
        if same_count <= 1:
            sil[i] = 0.0
            continue
        a = dist[i, same_mask].sum() / (same_count - 1)
        b = np.inf
        for c in unique:
            if c == labels[i]:
                continue
            other_mask = labels == c
            b = min(b, dist[i, other_mask].mean())
        denom = max(a, b)
        sil[i] = (b - a) / denom if denom > 0 else 0.0
    return float(np.mean(sil))
