"""Hessian reconstruction and repair.

The fitted quadratic ``Σ c_jk d_j d_k`` has second partials

    ∂²/∂d_j²      = 2 c_jj
    ∂²/∂d_j∂d_k   = c_jk      (j ≠ k)

Near a true minimum the Hessian is positive semi-definite.  Real
populations are noisier than that, so two passes push it in that
direction:

1. **Diagonal repair** — a diagonal below ``hessian.diag_floor`` means
   the surface is flat or saddle-shaped along that axis.  Row and
   column are zeroed: no information rather than wrong information.
2. **Off-diagonal clamp** — ``|H_jk| ≤ shrink · √(H_jj H_kk)``, the
   Cauchy–Schwarz bound every PSD matrix satisfies.  Necessary, not
   sufficient: odd correlation patterns can still leave negative
   eigenvalues, and the spectral stage copes with those.

Both passes return new arrays; the raw Hessian is kept untouched for
reporting.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .surface import QuadraticFit
from .thresholds import DEFAULT_THRESHOLDS, ThresholdRegistry

__all__ = [
    "RegularizedHessian",
    "build_hessian",
    "repair_diagonal",
    "clamp_off_diagonal",
    "regularize_hessian",
]

logger = logging.getLogger(__name__)


def build_hessian(fit: QuadraticFit) -> np.ndarray:
    """Unpack the quadratic/cross coefficients into a symmetric ``(P, P)`` matrix."""
    q = fit.quadratic
    # Adding the transpose mirrors c_jk and doubles c_jj.
    return q + q.T


def repair_diagonal(
    hessian: np.ndarray, floor: float = 1e-10,
) -> Tuple[np.ndarray, Tuple[int, ...]]:
    """Zero row and column j wherever ``H[j, j] < floor``.

    Returns
    -------
    (matrix, zeroed)
        New matrix and the indices that were zeroed.
    """
    h = np.array(hessian, dtype=np.float64, copy=True)
    zeroed = tuple(int(j) for j in np.flatnonzero(np.diag(h) < floor))
    for j in zeroed:
        h[j, :] = 0.0
        h[:, j] = 0.0
    return h, zeroed


def clamp_off_diagonal(
    hessian: np.ndarray, shrink: float = 0.99999,
) -> Tuple[np.ndarray, Tuple[Tuple[int, int], ...]]:
    """Clamp each off-diagonal pair into ``[-L, L]``, ``L = shrink·√(H_jj H_kk)``.

    Pairs where either diagonal is not positive are left alone (after
    :func:`repair_diagonal` they are already zero).

    Returns
    -------
    (matrix, clamped)
        New matrix and the ``(j, k)`` pairs, j < k, that were clamped.
    """
    h = np.array(hessian, dtype=np.float64, copy=True)
    n = h.shape[0]
    clamped: List[Tuple[int, int]] = []
    for j in range(n - 1):
        djj = h[j, j]
        if djj <= 0.0:
            continue
        for k in range(j + 1, n):
            dkk = h[k, k]
            if dkk <= 0.0:
                continue
            limit = shrink * math.sqrt(djj * dkk)
            v = h[j, k]
            if v > limit:
                v = limit
            elif v < -limit:
                v = -limit
            else:
                continue
            h[j, k] = h[k, j] = v
            clamped.append((j, k))
    return h, tuple(clamped)


@dataclass(frozen=True, eq=False)
class RegularizedHessian:
    """Output of :func:`regularize_hessian`.

    Attributes
    ----------
    matrix : np.ndarray
        Repaired symmetric Hessian.
    zeroed : tuple[int, ...]
        Parameters whose row/column was zeroed by the diagonal repair.
    clamped : tuple[tuple[int, int], ...]
        Off-diagonal pairs pulled in by the Cauchy–Schwarz clamp.
    """

    matrix: np.ndarray
    zeroed: Tuple[int, ...] = ()
    clamped: Tuple[Tuple[int, int], ...] = ()

    @property
    def n_informative(self) -> int:
        """Parameters that kept a positive diagonal."""
        return int(self.matrix.shape[0]) - len(self.zeroed)

    def summary(self) -> str:
        return (
            f"RegularizedHessian(P={self.matrix.shape[0]}, "
            f"zeroed={list(self.zeroed)}, clamped={len(self.clamped)})"
        )


def regularize_hessian(
    hessian: np.ndarray,
    thresholds: ThresholdRegistry = DEFAULT_THRESHOLDS,
) -> RegularizedHessian:
    """Diagonal repair followed by the off-diagonal clamp."""
    h, zeroed = repair_diagonal(hessian, thresholds["hessian.diag_floor"])
    h, clamped = clamp_off_diagonal(h, thresholds["hessian.offdiag_shrink"])
    if zeroed:
        logger.debug(f"Zeroed Hessian rows/columns {list(zeroed)}")
    if clamped:
        logger.debug(f"Clamped Hessian pairs {list(clamped)}")
    return RegularizedHessian(matrix=h, zeroed=zeroed, clamped=clamped)
