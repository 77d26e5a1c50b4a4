"""Neighborhood selection around the best trial.

Distant trials only confuse an estimate of *local* behaviour, so the
quadratic model is fitted to the K trials closest (squared Euclidean
distance in parameter space) to the best one.  K scales with the number
of model coefficients C so that every interaction term still has data
behind it:

    C = P + P(P+1)/2 + 1
    K = min(N, floor(multiplier · C))

Ordering is by distance, then by input position (stable sort), which
makes the selection reproducible when trials are duplicated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .population import Population
from .thresholds import DEFAULT_THRESHOLDS, ThresholdRegistry

__all__ = [
    "Neighborhood",
    "n_coefficients",
    "neighborhood_size",
    "select_neighborhood",
]

logger = logging.getLogger(__name__)


def n_coefficients(n_params: int) -> int:
    """Number of quadratic-model coefficients: linear + quadratic/cross + constant."""
    return n_params + n_params * (n_params + 1) // 2 + 1


def neighborhood_size(n_trials: int, n_params: int,
                      multiplier: float = 1.5) -> int:
    """K = min(N, floor(multiplier · C)), never below 1.

    The product is truncated, so 1.5 · 21 = 31.5 keeps 31 trials.
    """
    k = int(multiplier * n_coefficients(n_params))
    return max(1, min(n_trials, k))


@dataclass(frozen=True, eq=False)
class Neighborhood:
    """The K trials nearest the best one, closest first.

    Attributes
    ----------
    best_index : int
        Row of the best trial in the population.
    indices : np.ndarray
        ``(K,)`` population rows, ascending by distance then input order.
    sq_distances : np.ndarray
        ``(K,)`` squared distances matching *indices*.
    n_coefficients : int
        C for this parameter count.
    """

    best_index: int
    indices: np.ndarray
    sq_distances: np.ndarray
    n_coefficients: int

    @property
    def size(self) -> int:
        return int(self.indices.shape[0])

    @property
    def is_underdetermined(self) -> bool:
        """True when fewer trials than coefficients were kept."""
        return self.size < self.n_coefficients

    @property
    def radius(self) -> float:
        """Distance to the farthest kept trial."""
        return float(np.sqrt(self.sq_distances[-1])) if self.size else 0.0

    def summary(self) -> str:
        flag = " [UNDERDETERMINED]" if self.is_underdetermined else ""
        return (
            f"Neighborhood(K={self.size}, C={self.n_coefficients}, "
            f"best=#{self.best_index}, radius={self.radius:.4g}){flag}"
        )


def select_neighborhood(
    population: Population,
    thresholds: ThresholdRegistry = DEFAULT_THRESHOLDS,
) -> Neighborhood:
    """Pick the trials nearest the best one.

    Parameters
    ----------
    population : Population
    thresholds : ThresholdRegistry
        Uses ``neighborhood.multiplier``.

    Returns
    -------
    Neighborhood
    """
    params = population.parameters
    best = population.best_index
    diff = params - params[best]
    sq = np.einsum("ij,ij->i", diff, diff)
    order = np.argsort(sq, kind="stable")

    k = neighborhood_size(len(population), population.n_params,
                          thresholds["neighborhood.multiplier"])
    keep = order[:k]

    hood = Neighborhood(
        best_index=best,
        indices=keep,
        sq_distances=sq[keep],
        n_coefficients=n_coefficients(population.n_params),
    )
    logger.debug(hood.summary())
    return hood
