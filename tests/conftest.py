"""
Pytest configuration and shared fixtures.

This file is automatically discovered by pytest and provides fixtures
available to all test modules.
"""

import numpy as np
import pytest

from traceid_cluster.algorithms.distance import (
    CosineDistance,
    JaroWinklerDistance,
    LevenshteinDistance,
    StructuralDistance,
)


@pytest.fixture
def traceability_ids():
    """
    A small corpus of traceability IDs with two obvious groups.

    The first three share level and scope ("req:apikey"); the last three
    share "des:dashboard".
    """
    return [
        "req:apikey:hierarchy-9a2f4d#20251111a",
        "req:apikey:hierarchy-9a2f4e#20251111b",
        "req:apikey:vendor-mgmt-3b7e5c#20251111a",
        "des:dashboard:login-a1b2c3#20240101",
        "des:dashboard:login-a1b2c4#20240101",
        "des:dashboard:logout-ffe210#20240102",
    ]


@pytest.fixture
def all_calculators():
    """One instance of every distance calculator with default parameters."""
    return [
        LevenshteinDistance(),
        JaroWinklerDistance(),
        CosineDistance(),
        StructuralDistance(),
    ]


@pytest.fixture
def two_group_matrix():
    """
    Distance matrix with two tight groups ({0, 1, 2} and {3, 4}) far apart.
    """
    return np.array(
        [
            [0.0, 1.0, 1.5, 20.0, 21.0],
            [1.0, 0.0, 1.2, 20.5, 21.5],
            [1.5, 1.2, 0.0, 19.0, 20.0],
            [20.0, 20.5, 19.0, 0.0, 0.8],
            [21.0, 21.5, 20.0, 0.8, 0.0],
        ]
    )


@pytest.fixture
def planar_points():
    """Points in the plane whose Euclidean distances MDS must reproduce."""
    return np.array(
        [
            [0.0, 0.0],
            [3.0, 0.0],
            [0.0, 4.0],
            [3.0, 4.0],
            [1.5, 2.0],
        ]
    )


@pytest.fixture
def euclidean_matrix(planar_points):
    """Euclidean distance matrix of ``planar_points``."""
    diff = planar_points[:, None, :] - planar_points[None, :, :]
    return np.sqrt((diff ** 2).sum(axis=2))
