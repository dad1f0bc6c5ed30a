"""
String distance calculators and distance matrix construction.

Provides four interchangeable metrics (Levenshtein, Jaro-Winkler, n-gram
cosine and the traceability-ID aware structural metric) behind a common
``DistanceCalculator`` protocol, plus the pairwise matrix builder every
clustering and layout routine consumes.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import astuple, dataclass, fields
from typing import (
    Dict,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)

import numpy as np

from ..utils.logging_config import get_logger

logger = get_logger(__name__)

Array2D = np.ndarray

TRACEABILITY_ID_PATTERN = re.compile(
    r"^([A-Za-z0-9_-]+):([A-Za-z0-9_-]+):([A-Za-z0-9_-]+)-([A-Za-z0-9]+)#([A-Za-z0-9]+)$"
)


@runtime_checkable
class DistanceCalculator(Protocol):
    """Maps a pair of strings to a non-negative dissimilarity."""

    name: str

    def calculate(self, a: str, b: str) -> float:
        ...


class TraceabilityId(NamedTuple):
    """Components of a ``level:scope:semantic-hash#version`` token."""

    level: str
    scope: str
    semantic: str
    hash: str
    version: str


def parse_traceability_id(token: str) -> Optional[TraceabilityId]:
    """
    Split a traceability ID into its five components.

    The semantic part may contain hyphens; the hash is whatever follows the
    last hyphen before ``#``.

    Args:
        token: Raw token text

    Returns:
        TraceabilityId, or None if the token does not follow the syntax
    """
    match = TRACEABILITY_ID_PATTERN.match(token)
    if match is None:
        return None
    return TraceabilityId(*match.groups())


def levenshtein(a: str, b: str) -> int:
    """
    Classic edit distance with unit insertion, deletion and substitution cost.

    Runs the O(m*n) dynamic programme keeping only two rows.
    """
    m, n = len(a), len(b)
    if m == 0:
        return n
    if n == 0:
        return m

    prev = list(range(n + 1))
    for i in range(1, m + 1):
        curr = [i] + [0] * n
        ca = a[i - 1]
        for j in range(1, n + 1):
            cost = 0 if ca == b[j - 1] else 1
            curr[j] = min(
                prev[j] + 1,  # deletion
                curr[j - 1] + 1,  # insertion
                prev[j - 1] + cost,  # substitution
            )
        prev = curr
    return prev[n]


def normalized_levenshtein(a: str, b: str) -> float:
    """Edit distance divided by the longer length; 0.0 for two empty strings."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 0.0
    return levenshtein(a, b) / max_len


class LevenshteinDistance:
    """Unnormalized edit distance."""

    name = "levenshtein"

    def calculate(self, a: str, b: str) -> float:
        return float(levenshtein(a, b))

    def __repr__(self) -> str:
        return "LevenshteinDistance()"


class JaroWinklerDistance:
    """
    Jaro-Winkler distance (1 - similarity).

    Well suited to short strings; rewards a shared prefix of up to four
    characters.
    """

    name = "jaro-winkler"
    MAX_PREFIX = 4

    def __init__(self, prefix_scale: float = 0.1):
        """
        Args:
            prefix_scale: Winkler prefix weight, must lie in [0, 0.25]

        Raises:
            ValueError: If prefix_scale is out of range
        """
        if not 0.0 <= prefix_scale <= 0.25:
            raise ValueError(
                f"prefix_scale must be between 0.0 and 0.25, got {prefix_scale}"
            )
        self.prefix_scale = float(prefix_scale)

    def calculate(self, a: str, b: str) -> float:
        return 1.0 - self.similarity(a, b)

    def similarity(self, a: str, b: str) -> float:
        """Jaro-Winkler similarity in [0, 1]."""
        if not a and not b:
            return 1.0
        if not a or not b:
            return 0.0

        jaro = jaro_similarity(a, b)

        prefix_len = 0
        for ca, cb in zip(a[: self.MAX_PREFIX], b[: self.MAX_PREFIX]):
            if ca != cb:
                break
            prefix_len += 1

        return jaro + prefix_len * self.prefix_scale * (1.0 - jaro)

    def __repr__(self) -> str:
        return f"JaroWinklerDistance(prefix_scale={self.prefix_scale})"


def jaro_similarity(a: str, b: str) -> float:
    """
    Jaro similarity of two non-empty strings.

    Characters match when equal and no further apart than
    ``floor(max(len) / 2) - 1``; transpositions are counted by walking the
    matched characters of both strings in order.
    """
    a_len, b_len = len(a), len(b)
    match_distance = max(a_len, b_len) // 2 - 1
    if match_distance < 0:
        # both strings have at most one character
        return 1.0 if a == b else 0.0

    a_matched = [False] * a_len
    b_matched = [False] * b_len
    matches = 0

    for i, ca in enumerate(a):
        start = max(0, i - match_distance)
        end = min(i + match_distance + 1, b_len)
        for j in range(start, end):
            if b_matched[j] or ca != b[j]:
                continue
            a_matched[i] = True
            b_matched[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i in range(a_len):
        if not a_matched[i]:
            continue
        while not b_matched[k]:
            k += 1
        if a[i] != b[k]:
            transpositions += 1
        k += 1

    return (
        matches / a_len
        + matches / b_len
        + (matches - transpositions / 2.0) / matches
    ) / 3.0


class CosineDistance:
    """Cosine distance between character n-gram frequency vectors."""

    name = "cosine"

    def __init__(self, ngram_size: int = 2):
        """
        Args:
            ngram_size: Length of the character n-grams (default: bigrams)

        Raises:
            ValueError: If ngram_size < 1
        """
        if ngram_size < 1:
            raise ValueError(f"ngram_size must be at least 1, got {ngram_size}")
        self.ngram_size = int(ngram_size)

    def ngrams(self, text: str) -> List[str]:
        """Overlapping n-grams; text shorter than n is a single n-gram."""
        n = self.ngram_size
        if len(text) < n:
            return [text]
        return [text[i : i + n] for i in range(len(text) - n + 1)]

    def similarity(self, a: str, b: str) -> float:
        if not a and not b:
            return 1.0
        if not a or not b:
            return 0.0

        vec_a = Counter(self.ngrams(a))
        vec_b = Counter(self.ngrams(b))

        dot = sum(count * vec_b[gram] for gram, count in vec_a.items())
        norm_a = math.sqrt(sum(c * c for c in vec_a.values()))
        norm_b = math.sqrt(sum(c * c for c in vec_b.values()))
        if norm_a == 0 or norm_b == 0:
            return 0.0
        return dot / (norm_a * norm_b)

    def calculate(self, a: str, b: str) -> float:
        if a == b:
            return 0.0
        # round-off can push parallel vectors a hair past 1.0
        return min(1.0, max(0.0, 1.0 - self.similarity(a, b)))

    def __repr__(self) -> str:
        return f"CosineDistance(ngram_size={self.ngram_size})"


@dataclass(frozen=True)
class StructuralWeights:
    """Per-component weights for the structural metric."""

    level: float = 0.2
    scope: float = 0.3
    semantic: float = 0.3
    hash: float = 0.1
    version: float = 0.1

    @classmethod
    def from_mapping(cls, weights: Mapping[str, float]) -> "StructuralWeights":
        """Build weights from a dict; missing keys count as 0."""
        known = {f.name for f in fields(cls)}
        unknown = set(weights) - known
        if unknown:
            raise ValueError(
                f"Unknown structural weight(s): {sorted(unknown)}. "
                f"Available: {sorted(known)}"
            )
        return cls(**{name: float(weights.get(name, 0.0)) for name in known})

    def total(self) -> float:
        return float(sum(astuple(self)))

    def normalized(self, tolerance: float = 0.001) -> "StructuralWeights":
        """
        Return weights summing to 1.

        Raises:
            ValueError: If any weight is negative or all are zero
        """
        values = astuple(self)
        if any(w < 0 for w in values):
            raise ValueError(f"Structural weights must be non-negative: {self}")
        total = self.total()
        if total <= 0:
            raise ValueError("Structural weights must not all be zero")
        if abs(total - 1.0) <= tolerance:
            return self
        return StructuralWeights(*(w / total for w in values))

    def as_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class StructuralDistance:
    """
    Component-wise distance for traceability IDs.

    Both tokens are split into level, scope, semantic, hash and version; each
    pair of components is compared with normalized Levenshtein and the
    results are combined with the configured weights. Tokens that do not
    follow the syntax fall back to normalized Levenshtein over the raw text.
    """

    name = "structural"

    def __init__(
        self,
        weights: Optional[Union[StructuralWeights, Mapping[str, float]]] = None,
    ):
        """
        Args:
            weights: StructuralWeights or a mapping of component -> weight.
                Re-normalized to sum to 1 when needed.

        Raises:
            ValueError: If weights are negative, all zero, or name unknown components
        """
        if weights is None:
            weights = StructuralWeights()
        elif not isinstance(weights, StructuralWeights):
            weights = StructuralWeights.from_mapping(weights)
        self.weights = weights.normalized()

    def calculate(self, a: str, b: str) -> float:
        parts_a = parse_traceability_id(a)
        parts_b = parse_traceability_id(b)
        if parts_a is None or parts_b is None:
            return normalized_levenshtein(a, b)

        w = self.weights
        total = (
            w.level * self.component_distance(parts_a.level, parts_b.level)
            + w.scope * self.component_distance(parts_a.scope, parts_b.scope)
            + w.semantic * self.component_distance(parts_a.semantic, parts_b.semantic)
            + w.hash * self.component_distance(parts_a.hash, parts_b.hash)
            + w.version * self.component_distance(parts_a.version, parts_b.version)
        )
        # weights within the normalization tolerance may sum slightly above 1
        return min(1.0, total)

    @staticmethod
    def component_distance(a: str, b: str) -> float:
        if a == b:
            return 0.0
        return normalized_levenshtein(a, b)

    def __repr__(self) -> str:
        return f"StructuralDistance(weights={self.weights})"


DISTANCE_CALCULATORS = ("levenshtein", "jaro-winkler", "cosine", "structural")


def create_distance_calculator(
    name: str,
    *,
    prefix_scale: float = 0.1,
    ngram_size: int = 2,
    weights: Optional[Union[StructuralWeights, Mapping[str, float]]] = None,
) -> DistanceCalculator:
    """
    Instantiate a distance calculator by name.

    Parameters that do not apply to the chosen metric are ignored.

    Args:
        name: One of ``DISTANCE_CALCULATORS``
        prefix_scale: Jaro-Winkler prefix weight
        ngram_size: Cosine n-gram size
        weights: Structural component weights

    Returns:
        The configured calculator

    Raises:
        ValueError: If the name is unknown or a parameter is out of range
    """
    key = name.strip().lower()
    if key == "levenshtein":
        return LevenshteinDistance()
    if key == "jaro-winkler":
        return JaroWinklerDistance(prefix_scale=prefix_scale)
    if key == "cosine":
        return CosineDistance(ngram_size=ngram_size)
    if key == "structural":
        return StructuralDistance(weights=weights)
    raise ValueError(
        f"Unknown distance calculator: {name}. "
        f"Available: {', '.join(DISTANCE_CALCULATORS)}"
    )


def build_distance_matrix(
    items: Sequence[str], calculator: DistanceCalculator
) -> Array2D:
    """
    Compute the symmetric pairwise distance matrix of *items*.

    Only the upper triangle is computed; it is mirrored to the lower triangle
    and the diagonal stays zero.

    Args:
        items: Strings to compare
        calculator: Distance calculator to apply to every pair

    Returns:
        Array of shape (n, n)
    """
    n = len(items)
    matrix = np.zeros((n, n), dtype=np.float64)
    for i in range(n):
        for j in range(i + 1, n):
            d = calculator.calculate(items[i], items[j])
            matrix[i, j] = d
            matrix[j, i] = d
    logger.debug(
        "Built %dx%d distance matrix with %s (%d pairs)",
        n,
        n,
        calculator.name,
        n * (n - 1) // 2,
    )
    return matrix


def validate_distance_matrix(matrix, n_items: int) -> Array2D:
    """
    Coerce *matrix* to a float array and check it matches *n_items*.

    Raises:
        ValueError: If the matrix is not square or its size differs from n_items
    """
    arr = np.asarray(matrix, dtype=np.float64)
    if n_items == 0 and arr.size == 0:
        return arr.reshape(0, 0)
    if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
        raise ValueError(f"Distance matrix must be square, got shape {arr.shape}")
    if arr.shape[0] != n_items:
        raise ValueError(
            f"Distance matrix size ({arr.shape[0]}) does not match number of items ({n_items})"
        )
    return arr
