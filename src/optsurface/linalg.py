"""Linear algebra kernel — SVD least squares and symmetric eigenanalysis.

Generic real-valued routines with no knowledge of trials, surfaces or
reports.  The rest of the package only talks to numpy/scipy through
this module so that every numerical failure surfaces as one exception
type, :class:`SolverError`.

Routines
--------
svd_lstsq           x = V diag(1/sᵢ) Uᵀ b over sᵢ > rcond · max(s)
symmetric_eigen     λ, V of a real symmetric matrix (solver order)
truncated_inverse   Σ_{λᵢ > floor} vᵢ vᵢᵀ / λᵢ
rescale_max_abs     v / max|vᵢ|
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import scipy.linalg as la

__all__ = [
    "SolverError",
    "LstsqSolution",
    "svd_lstsq",
    "symmetric_eigen",
    "truncated_inverse",
    "rescale_max_abs",
]


class SolverError(RuntimeError):
    """A decomposition failed to converge or was fed unusable numbers."""


# ═══════════════════════════════════════════════════════════════════
# Least squares via singular value decomposition
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LstsqSolution:
    """Result of :func:`svd_lstsq`.

    Attributes
    ----------
    solution : np.ndarray
        Minimum-norm least-squares solution, shape ``(n_cols,)``.
    singular_values : np.ndarray
        All singular values of the design matrix, descending.
    rank : int
        Number of singular values kept above the relative cutoff.
    residual_ss : float
        Sum of squared residuals ``‖A x − b‖²``.
    """

    solution: np.ndarray
    singular_values: np.ndarray
    rank: int
    residual_ss: float

    @property
    def condition_number(self) -> float:
        """Ratio of largest to smallest *kept* singular value."""
        if self.rank == 0:
            return np.inf
        return float(self.singular_values[0] / self.singular_values[self.rank - 1])


def svd_lstsq(a: np.ndarray, b: np.ndarray,
              rcond: float = 1e-10) -> LstsqSolution:
    """Solve ``a x ≈ b`` by truncated SVD back-substitution.

    Singular values no larger than ``rcond`` times the largest one are
    treated as exact zeros, so near-singular directions contribute
    nothing instead of blowing up.  This also covers the
    underdetermined case (fewer rows than columns), where the result is
    the minimum-norm solution.

    Parameters
    ----------
    a : (m, n) array
    b : (m,) array
    rcond : float
        Relative singular-value cutoff.

    Raises
    ------
    SolverError
        Non-finite input or the SVD did not converge.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.ndim != 2 or b.ndim != 1 or a.shape[0] != b.shape[0]:
        raise ValueError(
            f"Shape mismatch: a{a.shape} vs b{b.shape}")
    if not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
        raise SolverError("Least-squares input contains NaN or inf")

    try:
        u, s, vt = la.svd(a, full_matrices=False, lapack_driver="gesvd")
    except (np.linalg.LinAlgError, la.LinAlgError, ValueError) as exc:
        raise SolverError(f"SVD failed: {exc}") from exc

    if s.size == 0 or s[0] <= 0.0:
        rank = 0
    else:
        rank = int(np.count_nonzero(s > rcond * s[0]))

    # Back-substitute only over the kept singular triplets.
    coef = u[:, :rank].T @ b / s[:rank]
    x = vt[:rank].T @ coef

    resid = a @ x - b
    return LstsqSolution(
        solution=x,
        singular_values=s,
        rank=rank,
        residual_ss=float(resid @ resid),
    )


# ═══════════════════════════════════════════════════════════════════
# Symmetric eigendecomposition
# ═══════════════════════════════════════════════════════════════════

def symmetric_eigen(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Eigenvalues and orthonormal eigenvectors of a real symmetric matrix.

    Column ``i`` of the returned vector matrix pairs with eigenvalue
    ``i``.  The order is whatever the solver produces; callers that need
    an extremal eigenvalue must scan for it.

    Raises
    ------
    ValueError
        The matrix is not square or not exactly symmetric.
    SolverError
        Non-finite entries or the eigensolver did not converge.
    """
    m = np.asarray(matrix, dtype=np.float64)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {m.shape}")
    if not np.array_equal(m, m.T):
        raise ValueError("Matrix is not symmetric")
    if not np.all(np.isfinite(m)):
        raise SolverError("Eigen input contains NaN or inf")

    try:
        evals, evecs = la.eigh(m)
    except (np.linalg.LinAlgError, la.LinAlgError) as exc:
        raise SolverError(f"Eigendecomposition failed: {exc}") from exc
    return evals, evecs


def truncated_inverse(eigenvalues: np.ndarray, eigenvectors: np.ndarray,
                      floor: float = 1e-8) -> np.ndarray:
    """Spectral pseudo-inverse restricted to eigenvalues above *floor*.

    Directions with eigenvalue ≤ *floor* (near-zero or negative) are
    dropped, i.e. treated as unconstrained.  The result is symmetric by
    construction.
    """
    evals = np.asarray(eigenvalues, dtype=np.float64)
    evecs = np.asarray(eigenvectors, dtype=np.float64)
    keep = evals > floor
    v = evecs[:, keep]
    inv = (v / evals[keep]) @ v.T
    return 0.5 * (inv + inv.T)


def rescale_max_abs(vector: np.ndarray) -> np.ndarray:
    """Scale *vector* so its largest-magnitude component is ±1.0."""
    v = np.asarray(vector, dtype=np.float64)
    scale = float(np.max(np.abs(v))) if v.size else 0.0
    if scale == 0.0:
        return v.copy()
    return v / scale
