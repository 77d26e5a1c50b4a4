"""Plain-text report of a surface analysis.

Sections, in order:

1. fitted coefficients, one row per parameter (linear term, then its
   quadratic/cross terms with higher-indexed parameters), then the
   constant;
2. Hessian before adjustment;
3. Hessian after adjustment;
4. eigenvalues (top row) with each eigenvector as a column below;
5. generalized inverse of the adjusted Hessian;
6. variation and correlation table;
7. directions of maximum and minimum sensitivity, when available.

Rendering is pure formatting.  The whole text is built before the sink
is touched, so a failure never leaves a half-written report.

Usage
-----
>>> from optsurface import analyze_population, write_report
>>> analysis = analyze_population(pop)
>>> write_report(analysis, "runs/")           # → runs/PARAMCOR.LOG
>>> print(render_report(analysis))
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, TextIO, Union

import numpy as np

if TYPE_CHECKING:
    from .pipeline import SurfaceAnalysis

__all__ = [
    "DEFAULT_REPORT_NAME",
    "UNDETERMINED",
    "render_report",
    "write_report",
    "write_text",
]

DEFAULT_REPORT_NAME = "PARAMCOR.LOG"

UNDETERMINED = "-----"
"""Printed where a variation or correlation cannot be computed."""


# ── cell formatting ─────────────────────────────────────────────

def _sci(x: float) -> str:
    return f" {x:11.3e}"


def _fixed(x: float, width: int = 12) -> str:
    if np.isnan(x):
        return " " + UNDETERMINED.rjust(width)
    return f" {x:{width}.3f}"


def _matrix_lines(m: np.ndarray) -> List[str]:
    return ["".join(_sci(v) for v in row) for row in m]


# ── sections ────────────────────────────────────────────────────

def _coefficient_section(analysis: "SurfaceAnalysis") -> List[str]:
    fit = analysis.fit
    lines = ["Coefficients fitting performance to parameters, "
             "linear first, then quadratic, then mixed", ""]
    for lin, quad in fit.rows():
        lines.append(f"{lin:11.3e} :" + "".join(_sci(c) for c in quad))
    lines.append(f"Constant: {fit.constant:.3e}")
    return lines


def _hessian_sections(analysis: "SurfaceAnalysis") -> List[str]:
    lines = ["", "", "Hessian before adjustment", ""]
    lines += _matrix_lines(analysis.hessian_raw)
    lines += ["", "",
              "Hessian after adjustment to encourage nonnegative eigenvalues",
              ""]
    lines += _matrix_lines(analysis.hessian)
    return lines


def _eigen_section(analysis: "SurfaceAnalysis") -> List[str]:
    spectrum = analysis.spectral.spectrum
    lines = ["", "",
             "Eigenvalues (top row) with corresponding vectors below each", ""]
    lines.append("".join(_sci(v) for v in spectrum.eigenvalues))
    lines += _matrix_lines(spectrum.eigenvectors)
    return lines


def _inverse_section(analysis: "SurfaceAnalysis") -> List[str]:
    lines = ["", "", "Generalized inverse of modified Hessian", ""]
    lines += _matrix_lines(analysis.spectral.inverse)
    return lines


def _correlation_section(analysis: "SurfaceAnalysis") -> List[str]:
    n = analysis.n_params
    lines = [
        "", "",
        "Estimated parameter variation and correlations",
        "",
        "Variation very roughly indicates how much the parameter can change",
        "RELATIVE to the others without having a huge impact on performance.",
        "",
        "A strong positive correlation between A and B means that an increase",
        "in parameter A can be somewhat offset by an increase in parameter B.",
        "",
        "A strong negative correlation between A and B means that an increase",
        "in parameter A can be somewhat offset by a decrease in parameter B.",
        "",
    ]
    lines.append(" " * 15 + "".join(f"{'Param ' + str(i + 1):>13}"
                                    for i in range(n)))
    lines.append("  Variation-->" + "".join(
        _fixed(v) for v in analysis.variation))
    for i, row in enumerate(analysis.correlation):
        lines.append(f"  {i + 1:12d}" + "".join(_fixed(c) for c in row))
    return lines


def _sensitivity_section(analysis: "SurfaceAnalysis") -> List[str]:
    sens = analysis.sensitivity
    if sens is None:
        return []
    lines = [
        "", "",
        "Directions of maximum and minimum sensitivity",
        "Moving in the direction of maximum sensitivity causes the most "
        "change in performance.",
        "Moving in the direction of minimum sensitivity causes the least "
        "change in performance.",
        "",
        " " * 21 + "Max        Min",
        "",
    ]
    for i, (hi, lo) in enumerate(zip(sens.maximum, sens.minimum)):
        lines.append(f"       Param {i + 1} {hi:10.3f} {lo:10.3f}")
    return lines


_SECTIONS = (
    _coefficient_section,
    _hessian_sections,
    _eigen_section,
    _inverse_section,
    _correlation_section,
    _sensitivity_section,
)


# ═══════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════

def render_report(analysis: "SurfaceAnalysis") -> str:
    """Return the full report text; empty for a skipped analysis."""
    if not analysis.has_content:
        return ""
    lines: List[str] = []
    for section in _SECTIONS:
        lines.extend(section(analysis))
    return "\n".join(lines) + "\n"


def write_report(
    analysis: "SurfaceAnalysis",
    sink: Union[str, Path, TextIO],
) -> Optional[Path]:
    """Write the report to *sink*.

    Parameters
    ----------
    sink : str, Path or text stream
        A stream receives the text via ``write()``.  A directory, or a
        path ending in a separator (created if missing), gets
        :data:`DEFAULT_REPORT_NAME` inside it; any other path is written
        as UTF-8 text through a temporary file that then replaces it, so
        readers never see a partial report.

    Returns
    -------
    Path or None
        The file written, or None for a stream.
    """
    return write_text(render_report(analysis), sink)


def write_text(text: str, sink: Union[str, Path, TextIO]) -> Optional[Path]:
    """Send already-rendered report *text* to *sink* (see :func:`write_report`)."""
    if hasattr(sink, "write"):
        sink.write(text)
        return None
    path = Path(sink).expanduser()
    if str(sink).endswith(("/", os.sep)):
        path.mkdir(parents=True, exist_ok=True)
    if path.is_dir():
        path = path / DEFAULT_REPORT_NAME

    # Atomic write using temp file + rename
    temp_path = path.with_name(path.name + ".tmp")
    try:
        temp_path.write_text(text, encoding="utf-8")
        os.replace(temp_path, path)
    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise
    return path

