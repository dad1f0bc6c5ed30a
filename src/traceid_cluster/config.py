"""
Configuration management for traceid-cluster.

Loads defaults for the distance metric, the clustering algorithm and the
layout from environment variables (typically from a .env file). Uses
python-dotenv to load .env automatically.

Usage:
    from traceid_cluster.config import load_config

    config = load_config()
    calculator = create_distance_calculator(config.distance.name, ...)
    algorithm = create_clustering_algorithm(config.algorithm, config.clustering)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, TypeVar

from dotenv import load_dotenv

from .algorithms.clustering import CLUSTERING_ALGORITHMS, ClusteringOptions
from .algorithms.distance import DISTANCE_CALCULATORS

T = TypeVar("T")

# Look for .env in project root (parent of src/)
ENV_PATH = Path(__file__).parent.parent.parent / ".env"


@dataclass
class DistanceConfig:
    """Distance metric selection and its parameters."""

    name: str = "structural"
    prefix_scale: float = 0.1
    ngram_size: int = 2

    def __post_init__(self):
        """Validate the metric name early."""
        self.name = self.name.strip().lower()
        if self.name not in DISTANCE_CALCULATORS:
            raise ValueError(
                f"Unknown distance calculator: {self.name}. "
                f"Available: {', '.join(DISTANCE_CALCULATORS)}"
            )


def _read(
    env: Mapping[str, str], var: str, default: T, convert: Callable[[str], T]
) -> T:
    raw = env.get(var)
    if raw is None or raw.strip() == "":
        return default
    try:
        return convert(raw.strip())
    except ValueError as e:
        raise ValueError(f"Invalid value for {var}: {raw!r}") from e


class Config:
    """
    Engine configuration loaded from environment variables.

    Environment variables can be set:
    1. In a .env file in the project root
    2. In the system environment
    3. Explicitly, by passing a mapping (used by tests)
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        """
        Load configuration.

        Args:
            env: Mapping to read from instead of ``os.environ``

        Raises:
            ValueError: If a variable cannot be parsed or names an unknown
                metric / algorithm
        """
        if env is None:
            env = os.environ

        self.distance = DistanceConfig(
            name=_read(env, "TRACEID_DISTANCE", "structural", str),
            prefix_scale=_read(env, "TRACEID_PREFIX_SCALE", 0.1, float),
            ngram_size=_read(env, "TRACEID_NGRAM_SIZE", 2, int),
        )

        self.algorithm = _read(env, "TRACEID_ALGORITHM", "hierarchical", str).lower()
        if self.algorithm not in CLUSTERING_ALGORITHMS:
            raise ValueError(
                f"Unknown clustering algorithm: {self.algorithm}. "
                f"Available: {', '.join(CLUSTERING_ALGORITHMS)}"
            )

        self.clustering = ClusteringOptions(
            threshold=_read(env, "TRACEID_THRESHOLD", 0.3, float),
            k=_read(env, "TRACEID_K", 0, int),
            max_iterations=_read(env, "TRACEID_MAX_ITERATIONS", 100, int),
            seed=_read(env, "TRACEID_SEED", 42, int),
            epsilon=_read(env, "TRACEID_EPSILON", 0.3, float),
            min_points=_read(env, "TRACEID_MIN_POINTS", 2, int),
        )

        self.mds_dimensions = _read(env, "TRACEID_MDS_DIMENSIONS", 3, int)
        if self.mds_dimensions < 1:
            raise ValueError(
                f"TRACEID_MDS_DIMENSIONS must be >= 1, got {self.mds_dimensions}"
            )

        self.log_level = _read(env, "TRACEID_LOG_LEVEL", "WARNING", str).upper()

    def __repr__(self) -> str:
        return (
            f"Config(distance={self.distance}, algorithm={self.algorithm!r}, "
            f"clustering={self.clustering}, mds_dimensions={self.mds_dimensions}, "
            f"log_level={self.log_level!r})"
        )


def load_config(env_file: Optional[Path] = None) -> Config:
    """
    Load the .env file (if present) into the environment and build a Config.

    Variables already set in the environment win over the .env file.

    Args:
        env_file: Path to a .env file (default: project root .env)

    Returns:
        Config built from the environment
    """
    path = env_file if env_file is not None else ENV_PATH
    if path.exists():
        load_dotenv(path)
    return Config()
