"""optsurface: local response-surface analysis of optimiser populations.

Given the trial population left behind by a global stochastic optimiser
(differential evolution and the like), estimate the shape of the
objective around the best trial: how far each parameter can move without
hurting performance, which parameters trade off against each other, and
the directions of greatest and least sensitivity.

The pipeline fits a quadratic model to the trials nearest the best one,
repairs the resulting Hessian toward positive semi-definiteness, and
reads variation, correlation and sensitivity off a truncated generalized
inverse.  The model is local and heuristic by nature.
"""
from .population import Population, Trial, find_best
from .thresholds import ThresholdRegistry, DEFAULT_THRESHOLDS, validate_thresholds

# Linear algebra kernel
from .linalg import (
    SolverError, LstsqSolution,
    svd_lstsq, symmetric_eigen, truncated_inverse, rescale_max_abs,
)

# Pipeline stages
from .neighborhood import (
    Neighborhood, n_coefficients, neighborhood_size, select_neighborhood,
)
from .surface import (
    CoefficientTerm, QuadraticFit,
    coefficient_layout, design_matrix, target_vector, fit_quadratic,
)
from .hessian import (
    RegularizedHessian,
    build_hessian, repair_diagonal, clamp_off_diagonal, regularize_hessian,
)
from .spectral import (
    Spectrum, SensitivityDirections, SpectralAnalysis,
    decompose, generalized_inverse,
    parameter_variation, parameter_correlation, sensitivity_directions,
    analyse_spectrum,
)

# Orchestration, reporting, archive
from .pipeline import AnalysisStatus, SurfaceAnalysis, analyze_population, run_paramcor
from .report import DEFAULT_REPORT_NAME, UNDETERMINED, render_report, write_report
from .archive import (
    AnalysisArchive, analysis_to_dict, analysis_to_json, analysis_from_json,
)

__version__ = "0.1.0"

__all__ = [
    "Population", "Trial", "find_best",
    "ThresholdRegistry", "DEFAULT_THRESHOLDS", "validate_thresholds",
    # Linear algebra kernel
    "SolverError", "LstsqSolution",
    "svd_lstsq", "symmetric_eigen", "truncated_inverse", "rescale_max_abs",
    # Pipeline stages
    "Neighborhood", "n_coefficients", "neighborhood_size", "select_neighborhood",
    "CoefficientTerm", "QuadraticFit",
    "coefficient_layout", "design_matrix", "target_vector", "fit_quadratic",
    "RegularizedHessian",
    "build_hessian", "repair_diagonal", "clamp_off_diagonal", "regularize_hessian",
    "Spectrum", "SensitivityDirections", "SpectralAnalysis",
    "decompose", "generalized_inverse",
    "parameter_variation", "parameter_correlation", "sensitivity_directions",
    "analyse_spectrum",
    # Orchestration, reporting, archive
    "AnalysisStatus", "SurfaceAnalysis", "analyze_population", "run_paramcor",
    "DEFAULT_REPORT_NAME", "UNDETERMINED", "render_report", "write_report",
    "AnalysisArchive", "analysis_to_dict", "analysis_to_json", "analysis_from_json",
]
