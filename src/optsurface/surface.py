"""Second-order response surface fitted around the best trial.

Each kept trial contributes one row of deviations from the best trial
``d = x − x_best``.  Columns run, for every parameter j in turn, over the
linear term ``d_j`` and then the products ``d_j · d_k`` for ``k ≥ j``; a
constant column closes the row.  For P = 2 a row reads

    d₁, d₁², d₁d₂, d₂, d₂², 1

The target is ``f_best − f``: the sign flip turns the neighbourhood of
a maximum into that of a minimum so curvatures print positive.  It has
no mathematical effect.

The system is solved by truncated SVD (:func:`~optsurface.linalg.svd_lstsq`)
so a barely-determined or underdetermined neighbourhood yields the
minimum-norm fit instead of a failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .linalg import svd_lstsq
from .neighborhood import Neighborhood
from .population import Population
from .thresholds import DEFAULT_THRESHOLDS, ThresholdRegistry

__all__ = [
    "CoefficientTerm",
    "QuadraticFit",
    "coefficient_layout",
    "design_matrix",
    "target_vector",
    "fit_quadratic",
]

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
# Column layout
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CoefficientTerm:
    """One design-matrix column.

    ``kind`` is ``"linear"`` (uses *j*), ``"quadratic"`` (uses *j* ≤ *k*;
    *j* = *k* is a pure square) or ``"constant"``.
    """

    kind: str
    j: Optional[int] = None
    k: Optional[int] = None

    @property
    def label(self) -> str:
        if self.kind == "linear":
            return f"x{self.j + 1}"
        if self.kind == "quadratic":
            if self.j == self.k:
                return f"x{self.j + 1}^2"
            return f"x{self.j + 1}*x{self.k + 1}"
        return "1"


def coefficient_layout(n_params: int) -> Tuple[CoefficientTerm, ...]:
    """The fixed column order shared by the fit and the Hessian unpacking."""
    terms = []
    for j in range(n_params):
        terms.append(CoefficientTerm("linear", j))
        for k in range(j, n_params):
            terms.append(CoefficientTerm("quadratic", j, k))
    terms.append(CoefficientTerm("constant"))
    return tuple(terms)


# ═══════════════════════════════════════════════════════════════════
# Regression inputs
# ═══════════════════════════════════════════════════════════════════

def design_matrix(neighborhood: Neighborhood,
                  population: Population) -> np.ndarray:
    """``(K, C)`` matrix of deviations and their products, layout order."""
    params = population.parameters
    d = params[neighborhood.indices] - params[neighborhood.best_index]
    n = population.n_params

    cols = []
    for j in range(n):
        cols.append(d[:, j])
        for k in range(j, n):
            cols.append(d[:, j] * d[:, k])
    cols.append(np.ones(d.shape[0]))
    return np.column_stack(cols)


def target_vector(neighborhood: Neighborhood,
                  population: Population) -> np.ndarray:
    """``(K,)`` vector of ``f_best − f_i``."""
    f = population.objectives
    return f[neighborhood.best_index] - f[neighborhood.indices]


# ═══════════════════════════════════════════════════════════════════
# QuadraticFit
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class QuadraticFit:
    """Least-squares coefficients of the local quadratic model.

    Attributes
    ----------
    coefficients : np.ndarray
        ``(C,)`` in :func:`coefficient_layout` order.
    n_params : int
    rank : int
        Effective rank of the design matrix after the SVD cutoff.
    singular_values : np.ndarray
    residual_ss : float
        Sum of squared residuals of the fit.
    target_ss : float
        Sum of squares of the centred target (for R²).
    n_points : int
        K, the number of trials in the fit.
    """

    coefficients: np.ndarray
    n_params: int
    rank: int
    singular_values: np.ndarray
    residual_ss: float
    target_ss: float
    n_points: int

    @property
    def n_coefficients(self) -> int:
        return int(self.coefficients.shape[0])

    @property
    def is_underdetermined(self) -> bool:
        return self.n_points < self.n_coefficients

    @property
    def is_rank_deficient(self) -> bool:
        return self.rank < self.n_coefficients

    @property
    def constant(self) -> float:
        return float(self.coefficients[-1])

    @property
    def linear(self) -> np.ndarray:
        """``(P,)`` first-order coefficients."""
        out = np.zeros(self.n_params)
        for idx, term in enumerate(coefficient_layout(self.n_params)):
            if term.kind == "linear":
                out[term.j] = self.coefficients[idx]
        return out

    @property
    def quadratic(self) -> np.ndarray:
        """``(P, P)`` upper triangle with ``[j, k] = c_jk`` for j ≤ k."""
        out = np.zeros((self.n_params, self.n_params))
        for idx, term in enumerate(coefficient_layout(self.n_params)):
            if term.kind == "quadratic":
                out[term.j, term.k] = self.coefficients[idx]
        return out

    @property
    def r_squared(self) -> float:
        """Coefficient of determination; nan when the target is constant."""
        if self.target_ss <= 0.0:
            return float("nan")
        return 1.0 - self.residual_ss / self.target_ss

    def rows(self):
        """Yield ``(linear_j, [c_jj, c_j,j+1, …])`` per parameter, layout order."""
        pos = 0
        for j in range(self.n_params):
            lin = float(self.coefficients[pos])
            width = self.n_params - j
            quad = [float(c) for c in self.coefficients[pos + 1:pos + 1 + width]]
            yield lin, quad
            pos += 1 + width

    def predict(self, deviations: np.ndarray) -> np.ndarray:
        """Model value (``f_best − f`` scale) at deviation rows ``(m, P)``."""
        d = np.atleast_2d(np.asarray(deviations, dtype=np.float64))
        lin = d @ self.linear
        quad = np.einsum("ij,jk,ik->i", d, self.quadratic, d)
        return lin + quad + self.constant

    def summary(self) -> str:
        return (
            f"QuadraticFit(P={self.n_params}, C={self.n_coefficients}, "
            f"K={self.n_points}, rank={self.rank}, "
            f"R²={self.r_squared:.4f})"
        )


def fit_quadratic(
    neighborhood: Neighborhood,
    population: Population,
    thresholds: ThresholdRegistry = DEFAULT_THRESHOLDS,
) -> QuadraticFit:
    """Fit the local quadratic model by truncated SVD least squares.

    Raises
    ------
    SolverError
        The SVD failed.
    """
    a = design_matrix(neighborhood, population)
    b = target_vector(neighborhood, population)
    sol = svd_lstsq(a, b, rcond=thresholds["fit.rcond"])

    centred = b - b.mean()
    fit = QuadraticFit(
        coefficients=sol.solution,
        n_params=population.n_params,
        rank=sol.rank,
        singular_values=sol.singular_values,
        residual_ss=sol.residual_ss,
        target_ss=float(centred @ centred),
        n_points=a.shape[0],
    )
    if fit.is_underdetermined:
        logger.warning(
            f"Only {fit.n_points} trials for {fit.n_coefficients} "
            f"coefficients; using the minimum-norm fit")
    logger.info(fit.summary())
    return fit
