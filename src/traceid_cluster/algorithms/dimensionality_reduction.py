"""
Spatial layout of a distance matrix.

Provides a cyclic Jacobi eigen-decomposition for symmetric matrices and
classical multidimensional scaling (MDS) built on top of it. The layout is
for visualization only; clustering never reads it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from ..utils.logging_config import get_logger

logger = get_logger(__name__)

Array2D = np.ndarray

JACOBI_TOLERANCE = 1e-10


@dataclass
class EigenDecomposition:
    """Eigenpairs of a symmetric matrix, in diagonal (unsorted) order."""

    eigenvalues: np.ndarray
    eigenvectors: Array2D
    n_iter: int = 0
    converged: bool = True

    def sorted_descending(self) -> "EigenDecomposition":
        """Return a copy with eigenpairs ordered by decreasing eigenvalue."""
        order = np.argsort(-self.eigenvalues, kind="stable")
        return EigenDecomposition(
            eigenvalues=self.eigenvalues[order],
            eigenvectors=self.eigenvectors[:, order],
            n_iter=self.n_iter,
            converged=self.converged,
        )


@dataclass
class MDSResult:
    """Result of classical MDS."""

    coordinates: Array2D
    eigenvalues: List[float] = field(default_factory=list)

    @property
    def dimensions(self) -> int:
        return int(self.coordinates.shape[1])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coordinates": self.coordinates.tolist(),
            "eigenvalues": list(self.eigenvalues),
        }


def jacobi_eigen(
    matrix: Array2D,
    *,
    tol: float = JACOBI_TOLERANCE,
    max_iter: Optional[int] = None,
) -> EigenDecomposition:
    """
    Eigen-decomposition of a symmetric matrix with Jacobi rotations.

    Each iteration zeroes the largest-magnitude off-diagonal entry (p, q)
    with a Givens rotation that is also accumulated into the eigenvector
    matrix. Iteration stops once every off-diagonal entry is below *tol* or
    after *max_iter* rotations.

    Args:
        matrix: Symmetric array of shape (n, n); not modified
        tol: Convergence threshold on the largest off-diagonal magnitude
        max_iter: Rotation cap (default: 100 * n^2)

    Returns:
        EigenDecomposition with eigenvalues in diagonal order and
        eigenvectors as columns

    Raises:
        ValueError: If the matrix is not square, not symmetric or not finite
    """
    A = np.array(matrix, dtype=np.float64)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError(f"Matrix must be square, got shape {A.shape}")
    if not np.all(np.isfinite(A)):
        raise ValueError("Matrix must contain only finite values")
    if not np.allclose(A, A.T, rtol=1e-8, atol=1e-12):
        raise ValueError("Matrix must be symmetric")

    n = A.shape[0]
    V = np.eye(n, dtype=np.float64)
    if n < 2:
        return EigenDecomposition(eigenvalues=np.diag(A).copy(), eigenvectors=V)

    if max_iter is None:
        max_iter = 100 * n * n

    upper = np.triu_indices(n, k=1)
    n_iter = 0
    converged = False

    while n_iter < max_iter:
        off = np.abs(A[upper])
        k = int(np.argmax(off))
        if off[k] < tol:
            converged = True
            break
        p, q = int(upper[0][k]), int(upper[1][k])

        app, aqq, apq = A[p, p], A[q, q], A[p, q]
        theta = (aqq - app) / (2.0 * apq)
        sign = 1.0 if theta >= 0 else -1.0
        t = sign / (abs(theta) + np.sqrt(theta * theta + 1.0))
        c = 1.0 / np.sqrt(t * t + 1.0)
        s = t * c

        col_p = A[:, p].copy()
        col_q = A[:, q].copy()
        new_p = c * col_p - s * col_q
        new_q = s * col_p + c * col_q
        A[:, p] = new_p
        A[p, :] = new_p
        A[:, q] = new_q
        A[q, :] = new_q
        A[p, p] = c * c * app - 2.0 * s * c * apq + s * s * aqq
        A[q, q] = s * s * app + 2.0 * s * c * apq + c * c * aqq
        A[p, q] = 0.0
        A[q, p] = 0.0

        v_p = V[:, p].copy()
        v_q = V[:, q].copy()
        V[:, p] = c * v_p - s * v_q
        V[:, q] = s * v_p + c * v_q

        n_iter += 1
    else:
        # loop condition failed without break: check the final state
        converged = bool(np.max(np.abs(A[upper])) < tol)

    if not converged:
        logger.warning(
            "Jacobi eigensolver stopped after %d rotations without reaching tol=%g",
            n_iter,
            tol,
        )
    else:
        logger.debug("Jacobi eigensolver converged after %d rotations (n=%d)", n_iter, n)

    return EigenDecomposition(
        eigenvalues=np.diag(A).copy(),
        eigenvectors=V,
        n_iter=n_iter,
        converged=converged,
    )


def double_center(squared: Array2D) -> Array2D:
    """
    Double-center a squared distance matrix.

    ``B[i, j] = -0.5 * (D2[i, j] - rowMean[i] - colMean[j] + grandMean)``
    """
    D2 = np.asarray(squared, dtype=np.float64)
    row_means = D2.mean(axis=1)
    col_means = D2.mean(axis=0)
    grand_mean = D2.mean()
    return -0.5 * (D2 - row_means[:, None] - col_means[None, :] + grand_mean)


def classical_mds(matrix, dimensions: int = 3) -> MDSResult:
    """
    Project a distance matrix into *dimensions* coordinates (classical MDS).

    Steps: square the distances, double-center, eigen-decompose with
    ``jacobi_eigen``, keep the top ``min(dimensions, n)`` eigenpairs and scale
    each eigenvector by ``sqrt(max(eigenvalue, 0))``. Negative eigenvalues
    (non-Euclidean input) collapse to zero instead of producing NaN. Columns
    beyond the usable eigenpairs are zero.

    Args:
        matrix: Symmetric distance matrix of shape (n, n)
        dimensions: Number of output coordinates per item (default: 3)

    Returns:
        MDSResult with coordinates of shape (n, dimensions) and the selected
        eigenvalues in descending order

    Raises:
        ValueError: If dimensions < 1 or the matrix is not square
    """
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    D = np.asarray(matrix, dtype=np.float64)
    if D.size == 0:
        return MDSResult(coordinates=np.zeros((0, dimensions)), eigenvalues=[])
    if D.ndim != 2 or D.shape[0] != D.shape[1]:
        raise ValueError(f"Distance matrix must be square, got shape {D.shape}")

    n = D.shape[0]
    if n == 1:
        return MDSResult(
            coordinates=np.zeros((1, dimensions)),
            eigenvalues=[0.0] * dimensions,
        )

    B = double_center(D * D)
    decomposition = jacobi_eigen(B).sorted_descending()

    dim = min(dimensions, n)
    top_values = decomposition.eigenvalues[:dim]
    scales = np.sqrt(np.maximum(top_values, 0.0))

    coordinates = np.zeros((n, dimensions), dtype=np.float64)
    coordinates[:, :dim] = decomposition.eigenvectors[:, :dim] * scales[None, :]

    logger.debug(
        "Classical MDS: n=%d, dimensions=%d, top eigenvalues=%s",
        n,
        dimensions,
        np.round(top_values, 6).tolist(),
    )
    return MDSResult(coordinates=coordinates, eigenvalues=[float(v) for v in top_values])
