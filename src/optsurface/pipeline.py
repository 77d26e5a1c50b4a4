"""End-to-end local surface analysis of an optimiser population.

Neighborhood → quadratic fit → Hessian repair → eigenanalysis, with
every intermediate captured in one frozen :class:`SurfaceAnalysis` so a
run can be reported, archived, or inspected after the fact.

Outcomes
--------
* ``AnalysisStatus.OK`` — the pipeline ran; numerical trouble (flat
  axes, saddle points, too few positive eigenvalues) shows up in the
  result as zeroed rows, ``nan`` correlations or missing directions,
  never as an exception.
* ``AnalysisStatus.SKIPPED`` — fewer than two parameters.  Nothing to
  analyse; this is a success with no content.
* ``AnalysisStatus.FAILED`` — memory or solver failure.  Only
  :func:`run_paramcor` reports this; :func:`analyze_population` lets the
  exception propagate.

Usage
-----
>>> from optsurface import Population, analyze_population, run_paramcor
>>> pop = Population.from_table(table, nparams=4)
>>> analysis = analyze_population(pop)
>>> analysis.variation            # array([1.   , 0.31 , 0.07 , 0.55 ])
>>> run_paramcor(table, 4, "runs/")   # AnalysisStatus.OK, runs/PARAMCOR.LOG
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, TextIO, Union

import numpy as np

from .hessian import RegularizedHessian, build_hessian, regularize_hessian
from .linalg import SolverError
from .neighborhood import Neighborhood, select_neighborhood
from .population import Population, Trial, as_population
from .report import render_report, write_text
from .spectral import SensitivityDirections, SpectralAnalysis, analyse_spectrum
from .surface import QuadraticFit, fit_quadratic
from .thresholds import DEFAULT_THRESHOLDS, ThresholdRegistry, validate_thresholds

__all__ = [
    "AnalysisStatus",
    "SurfaceAnalysis",
    "analyze_population",
    "run_paramcor",
]

logger = logging.getLogger(__name__)


class AnalysisStatus(enum.Enum):
    """Outcome of one analysis invocation."""

    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def succeeded(self) -> bool:
        """True for OK and SKIPPED; only FAILED is an error."""
        return self is not AnalysisStatus.FAILED


# ═══════════════════════════════════════════════════════════════════
# SurfaceAnalysis — the full audit trail of one run
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class SurfaceAnalysis:
    """Every intermediate result of one local surface analysis.

    1. **neighborhood** — the trials kept around the best one
    2. **fit** — quadratic-model coefficients and fit diagnostics
    3. **hessian_raw** — Hessian unpacked from the fit
    4. **regularized** — repaired Hessian plus which rows were zeroed
       and which pairs clamped
    5. **spectral** — spectrum, generalized inverse, variation,
       correlation, sensitivity directions

    Stages are None when ``status`` is SKIPPED.
    """

    status: AnalysisStatus
    n_params: int
    n_trials: int
    best_trial: Optional[Trial] = None
    best_index: Optional[int] = None
    neighborhood: Optional[Neighborhood] = None
    fit: Optional[QuadraticFit] = None
    hessian_raw: Optional[np.ndarray] = None
    regularized: Optional[RegularizedHessian] = None
    spectral: Optional[SpectralAnalysis] = None
    thresholds_name: str = "production"
    elapsed_s: float = 0.0

    # ── derived views ───────────────────────────────────────────

    @property
    def has_content(self) -> bool:
        return self.status is AnalysisStatus.OK

    @property
    def hessian(self) -> Optional[np.ndarray]:
        """The repaired Hessian."""
        return self.regularized.matrix if self.regularized else None

    @property
    def inverse(self) -> Optional[np.ndarray]:
        return self.spectral.inverse if self.spectral else None

    @property
    def variation(self) -> Optional[np.ndarray]:
        return self.spectral.variation if self.spectral else None

    @property
    def correlation(self) -> Optional[np.ndarray]:
        return self.spectral.correlation if self.spectral else None

    @property
    def sensitivity(self) -> Optional[SensitivityDirections]:
        return self.spectral.sensitivity if self.spectral else None

    @property
    def eigenvalues(self) -> Optional[np.ndarray]:
        return self.spectral.spectrum.eigenvalues if self.spectral else None

    # ── presentation ────────────────────────────────────────────

    def summary(self) -> str:
        if not self.has_content:
            return (f"SurfaceAnalysis({self.status.value}: "
                    f"P={self.n_params}, N={self.n_trials})")
        return (
            f"SurfaceAnalysis(P={self.n_params}, N={self.n_trials}, "
            f"K={self.neighborhood.size}, rank={self.fit.rank}, "
            f"zeroed={len(self.regularized.zeroed)}, "
            f"trusted={self.spectral.n_trusted}, "
            f"directions={'yes' if self.sensitivity else 'no'})"
        )

    def report(self) -> str:
        """Render the plain-text report (empty when skipped)."""
        return render_report(self)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dict; ``nan`` (undetermined) becomes None."""
        out: Dict[str, Any] = {
            "status": self.status.value,
            "n_params": self.n_params,
            "n_trials": self.n_trials,
            "thresholds_name": self.thresholds_name,
            "elapsed_s": round(self.elapsed_s, 6),
        }
        if not self.has_content:
            return out

        sens = self.sensitivity
        out.update({
            "best_index": self.best_index,
            "best_parameters": list(self.best_trial.parameters),
            "best_objective": self.best_trial.objective,
            "neighborhood": {
                "indices": _jsonable(self.neighborhood.indices),
                "sq_distances": _jsonable(self.neighborhood.sq_distances),
                "n_coefficients": self.neighborhood.n_coefficients,
            },
            "fit": {
                "coefficients": _jsonable(self.fit.coefficients),
                "rank": self.fit.rank,
                "singular_values": _jsonable(self.fit.singular_values),
                "residual_ss": self.fit.residual_ss,
                "r_squared": _jsonable(self.fit.r_squared),
                "n_points": self.fit.n_points,
            },
            "hessian_raw": _jsonable(self.hessian_raw),
            "hessian": _jsonable(self.hessian),
            "zeroed": list(self.regularized.zeroed),
            "clamped": [list(p) for p in self.regularized.clamped],
            "eigenvalues": _jsonable(self.eigenvalues),
            "eigenvectors": _jsonable(self.spectral.spectrum.eigenvectors),
            "inverse": _jsonable(self.inverse),
            "variation": _jsonable(self.variation),
            "correlation": _jsonable(self.correlation),
            "sensitivity": None if sens is None else {
                "maximum": _jsonable(sens.maximum),
                "minimum": _jsonable(sens.minimum),
                "max_index": sens.max_index,
                "min_index": sens.min_index,
                "max_eigenvalue": sens.max_eigenvalue,
                "min_eigenvalue": sens.min_eigenvalue,
            },
        })
        return out


def _jsonable(value: Any) -> Any:
    """numpy → native Python, with nan mapped to None."""
    if isinstance(value, np.ndarray):
        return [_jsonable(v) for v in value.tolist()]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return None if np.isnan(value) else float(value)
    return value


# ═══════════════════════════════════════════════════════════════════
# Entry points
# ═══════════════════════════════════════════════════════════════════

def analyze_population(
    population,
    thresholds: ThresholdRegistry = DEFAULT_THRESHOLDS,
    *,
    nparams: Optional[int] = None,
) -> SurfaceAnalysis:
    """Characterise the objective surface around the best trial.

    Parameters
    ----------
    population : Population, sequence of Trial, or table
        A raw table also needs *nparams*.
    thresholds : ThresholdRegistry
        Tunable heuristics; defaults to the production registry.

    Returns
    -------
    SurfaceAnalysis
        ``status`` is SKIPPED for fewer than two parameters, else OK.

    Raises
    ------
    SolverError
        A decomposition failed.
    MemoryError
        Working buffers could not be allocated.
    """
    pop = as_population(population, nparams)
    validate_thresholds(thresholds)

    if pop.n_params < 2:
        logger.info(f"{pop.n_params} parameter(s): nothing to analyse")
        return SurfaceAnalysis(
            status=AnalysisStatus.SKIPPED,
            n_params=pop.n_params,
            n_trials=len(pop),
            thresholds_name=thresholds.name,
        )

    t0 = time.perf_counter()
    hood = select_neighborhood(pop, thresholds)
    logger.info(hood.summary())
    fit = fit_quadratic(hood, pop, thresholds)
    raw = build_hessian(fit)
    reg = regularize_hessian(raw, thresholds)
    spectral = analyse_spectrum(reg.matrix, thresholds)
    logger.debug(spectral.summary())

    return SurfaceAnalysis(
        status=AnalysisStatus.OK,
        n_params=pop.n_params,
        n_trials=len(pop),
        best_trial=pop.best,
        best_index=pop.best_index,
        neighborhood=hood,
        fit=fit,
        hessian_raw=raw,
        regularized=reg,
        spectral=spectral,
        thresholds_name=thresholds.name,
        elapsed_s=time.perf_counter() - t0,
    )


def run_paramcor(
    data,
    nparams: int,
    sink: Union[str, Path, TextIO, None] = None,
    thresholds: ThresholdRegistry = DEFAULT_THRESHOLDS,
) -> AnalysisStatus:
    """Analyse an optimiser's trial table and write the report.

    Parameters
    ----------
    data : array-like
        ``ncases`` rows of ``nparams`` parameters plus the objective,
        2-D or flat row-major.  Never modified.
    nparams : int
    sink : path, directory, text stream or None
        Where the report goes; None computes without writing.

    Returns
    -------
    AnalysisStatus
        OK (report written), SKIPPED (``nparams < 2``, nothing written)
        or FAILED (memory, solver or write failure; nothing written).

    Raises
    ------
    ValueError
        *data* does not have ``nparams + 1`` columns or holds NaN/inf.
    """
    if nparams < 2:
        logger.info(f"{nparams} parameter(s): nothing to analyse")
        return AnalysisStatus.SKIPPED

    population = Population.from_table(data, nparams)
    try:
        analysis = analyze_population(population, thresholds)
        text = render_report(analysis)
    except (MemoryError, SolverError) as exc:
        logger.warning(f"Parameter correlation analysis failed: {exc}")
        return AnalysisStatus.FAILED

    if sink is not None:
        try:
            path = write_text(text, sink)
        except OSError as exc:
            logger.warning(f"Could not write report to {sink!r}: {exc}")
            return AnalysisStatus.FAILED
        if path is not None:
            logger.info(f"Report written to {path}")
    return analysis.status
