"""Eigenanalysis of the repaired Hessian.

From the spectrum ``H = V Λ Vᵀ`` we build a truncated generalized
inverse that serves as a rough covariance of "equally good" parameter
moves:

    inv = Σ_{λᵢ > floor} vᵢ vᵢᵀ / λᵢ

Directions with near-zero or negative curvature carry no constraint and
are dropped.  From ``inv`` follow

* **variation** — ``√inv_jj`` scaled so the largest is 1.0: how far
  parameter j can move, relative to the others, before performance
  suffers;
* **correlation** — ``inv_jk / √(inv_jj inv_kk)``: a strong positive
  value means a rise in j can be offset by a rise in k, a strong
  negative one by a fall in k;
* **sensitivity directions** — the eigenvectors of the largest and of
  the smallest positive eigenvalue.

Undetermined values (zero variation) are ``nan``, never 0.0, so they
cannot be read as "no correlation".

The eigensolver's output order is not relied on: extremal eigenvalues
are found by explicit scans.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .linalg import rescale_max_abs, symmetric_eigen, truncated_inverse
from .thresholds import DEFAULT_THRESHOLDS, ThresholdRegistry

__all__ = [
    "Spectrum",
    "SensitivityDirections",
    "SpectralAnalysis",
    "decompose",
    "generalized_inverse",
    "parameter_variation",
    "parameter_correlation",
    "sensitivity_directions",
    "analyse_spectrum",
]


# ═══════════════════════════════════════════════════════════════════
# Spectrum
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class Spectrum:
    """Eigenvalues and matching eigenvectors (columns), solver order."""

    eigenvalues: np.ndarray
    eigenvectors: np.ndarray

    @property
    def size(self) -> int:
        return int(self.eigenvalues.shape[0])

    def n_positive(self, floor: float = 0.0) -> int:
        return int(np.count_nonzero(self.eigenvalues > floor))

    @property
    def largest_index(self) -> int:
        """Index of the largest eigenvalue (first one on ties)."""
        return int(np.argmax(self.eigenvalues))

    def smallest_positive_index(self, floor: float = 0.0) -> Optional[int]:
        """Index of the smallest eigenvalue above *floor*, or None."""
        best = None
        for i, lam in enumerate(self.eigenvalues):
            if lam > floor and (best is None or lam < self.eigenvalues[best]):
                best = i
        return best

    def vector(self, index: int) -> np.ndarray:
        return self.eigenvectors[:, index]


def decompose(hessian: np.ndarray) -> Spectrum:
    """Eigendecompose a symmetric Hessian."""
    evals, evecs = symmetric_eigen(hessian)
    return Spectrum(eigenvalues=evals, eigenvectors=evecs)


def generalized_inverse(spectrum: Spectrum, floor: float = 1e-8) -> np.ndarray:
    """Pseudo-inverse over eigenvalues strictly above *floor*."""
    return truncated_inverse(spectrum.eigenvalues, spectrum.eigenvectors, floor)


# ═══════════════════════════════════════════════════════════════════
# Variation & correlation
# ═══════════════════════════════════════════════════════════════════

def parameter_variation(inverse: np.ndarray) -> np.ndarray:
    """Relative freedom of each parameter; largest is 1.0.

    When every diagonal of *inverse* is zero the scale is undefined and
    all entries are ``nan``.
    """
    sd = np.sqrt(np.maximum(np.diag(inverse), 0.0))
    scale = float(sd.max()) if sd.size else 0.0
    if scale <= 0.0:
        return np.full(sd.shape, np.nan)
    return sd / scale


def parameter_correlation(inverse: np.ndarray) -> np.ndarray:
    """Correlation matrix implied by *inverse*, clamped to [-1, 1].

    Entries involving a parameter with non-positive ``inv_jj`` are
    ``nan``.  Defined diagonal entries are exactly 1.0.
    """
    diag = np.diag(inverse)
    sd = np.where(diag > 0.0, np.sqrt(np.maximum(diag, 0.0)), 0.0)
    denom = np.outer(sd, sd)
    corr = np.full(inverse.shape, np.nan)
    ok = denom > 0.0
    corr[ok] = np.clip(inverse[ok] / denom[ok], -1.0, 1.0)
    defined = sd > 0.0
    idx = np.flatnonzero(defined)
    corr[idx, idx] = 1.0
    return corr


# ═══════════════════════════════════════════════════════════════════
# Sensitivity directions
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class SensitivityDirections:
    """Eigen-directions of most and least change in performance.

    Both vectors are scaled so their largest-magnitude component is
    ±1.0; only the direction is meaningful.
    """

    maximum: np.ndarray
    minimum: np.ndarray
    max_index: int
    min_index: int
    max_eigenvalue: float
    min_eigenvalue: float

    @property
    def anisotropy(self) -> float:
        """λ_max / λ_min: how elongated the level ellipses are."""
        return self.max_eigenvalue / self.min_eigenvalue


def sensitivity_directions(
    spectrum: Spectrum, floor: float = 0.0,
) -> Optional[SensitivityDirections]:
    """Directions of maximum and minimum sensitivity.

    Returns None when fewer than two eigenvalues exceed *floor*: the
    local curvature does not support a meaningful pair.
    """
    if spectrum.n_positive(floor) < 2:
        return None
    imax = spectrum.largest_index
    imin = spectrum.smallest_positive_index(floor)
    return SensitivityDirections(
        maximum=rescale_max_abs(spectrum.vector(imax)),
        minimum=rescale_max_abs(spectrum.vector(imin)),
        max_index=imax,
        min_index=imin,
        max_eigenvalue=float(spectrum.eigenvalues[imax]),
        min_eigenvalue=float(spectrum.eigenvalues[imin]),
    )


# ═══════════════════════════════════════════════════════════════════
# SpectralAnalysis — everything derived from the repaired Hessian
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class SpectralAnalysis:
    """Spectrum, generalized inverse and the quantities read off it."""

    spectrum: Spectrum
    inverse: np.ndarray
    variation: np.ndarray
    correlation: np.ndarray
    sensitivity: Optional[SensitivityDirections]
    n_trusted: int

    @property
    def is_informative(self) -> bool:
        """True if at least one eigenvalue entered the inverse."""
        return self.n_trusted > 0

    def summary(self) -> str:
        var = ", ".join(
            "-----" if np.isnan(v) else f"{v:.3f}" for v in self.variation)
        return (
            f"SpectralAnalysis(trusted={self.n_trusted}/"
            f"{self.spectrum.size}, variation=[{var}], "
            f"directions={'yes' if self.sensitivity else 'no'})"
        )


def analyse_spectrum(
    hessian: np.ndarray,
    thresholds: ThresholdRegistry = DEFAULT_THRESHOLDS,
) -> SpectralAnalysis:
    """Run the full eigen stage on a repaired Hessian."""
    spectrum = decompose(hessian)
    inv_floor = thresholds["spectrum.inverse_floor"]
    inverse = generalized_inverse(spectrum, inv_floor)
    return SpectralAnalysis(
        spectrum=spectrum,
        inverse=inverse,
        variation=parameter_variation(inverse),
        correlation=parameter_correlation(inverse),
        sensitivity=sensitivity_directions(
            spectrum, thresholds["spectrum.positive_floor"]),
        n_trusted=spectrum.n_positive(inv_floor),
    )
