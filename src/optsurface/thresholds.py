"""ThresholdRegistry — every tunable number of the pipeline in one place.

The local surface analysis rests on a handful of heuristics: how many
neighbours to keep around the best trial, where to cut small singular
values, when a Hessian diagonal counts as "positive", how hard to clamp
the off-diagonals, and which eigenvalues are trustworthy.  They live in
an immutable registry whose values are range-checked on the way in, so a
bad sweep value fails at ``replace()`` instead of deep inside an
eigendecomposition.

Usage
-----
>>> from optsurface.thresholds import DEFAULT_THRESHOLDS
>>> DEFAULT_THRESHOLDS["fit.rcond"]                       # 1e-10
>>> wide = DEFAULT_THRESHOLDS.replace(
...     {"neighborhood.multiplier": 2.5}, name="wide")
>>> DEFAULT_THRESHOLDS.replace({"hessian.offdiag_shrink": 1.2})
ValueError: hessian.offdiag_shrink must lie in (0, 1], got 1.2
"""

from __future__ import annotations

import math
from typing import Callable, Dict, Optional, Tuple

__all__ = [
    "ThresholdRegistry",
    "DEFAULT_THRESHOLDS",
    "validate_thresholds",
]


# ═══════════════════════════════════════════════════════════════════
# Admissible ranges
# ═══════════════════════════════════════════════════════════════════

def _positive(x: float) -> bool:
    return x > 0.0


def _non_negative(x: float) -> bool:
    return x >= 0.0


def _unit_interval(x: float) -> bool:
    return 0.0 < x <= 1.0


# key → (range test, wording used in the error)
_RULES: Dict[str, Tuple[Callable[[float], bool], str]] = {
    "neighborhood.multiplier": (_positive, "be positive"),
    "fit.rcond": (_non_negative, "be non-negative"),
    "hessian.diag_floor": (_non_negative, "be non-negative"),
    "hessian.offdiag_shrink": (_unit_interval, "lie in (0, 1]"),
    "spectrum.inverse_floor": (_non_negative, "be non-negative"),
    "spectrum.positive_floor": (_non_negative, "be non-negative"),
}


def _check_value(key: str, value: float) -> None:
    if not math.isfinite(value):
        raise ValueError(f"{key} must be finite, got {value!r}")
    rule = _RULES.get(key)
    if rule is not None and not rule[0](value):
        raise ValueError(f"{key} must {rule[1]}, got {value!r}")


# ═══════════════════════════════════════════════════════════════════
# ThresholdRegistry
# ═══════════════════════════════════════════════════════════════════

class ThresholdRegistry:
    """Read-only mapping of dotted threshold keys to float values.

    Parameters
    ----------
    data : dict[str, float]
        ``{"stage.name": value, ...}``.  Pipeline keys are range-checked;
        other keys are stored as given.
    name : str, optional
        Label carried into every :class:`~optsurface.pipeline.SurfaceAnalysis`
        built with this registry (e.g. ``"production"``, ``"sweep-3"``).

    Raises
    ------
    ValueError
        A pipeline key holds a non-finite or out-of-range value.
    """

    def __init__(self, data: Dict[str, float], *, name: str = "custom"):
        for key, value in data.items():
            _check_value(key, value)
        self._data: Dict[str, float] = dict(data)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def __getitem__(self, key: str) -> float:
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __setitem__(self, key: str, value: float):
        raise TypeError(
            "ThresholdRegistry is immutable — use .replace() instead")

    def __repr__(self) -> str:
        return f"ThresholdRegistry({self._name!r}, {len(self._data)} keys)"

    def replace(
        self,
        overrides: Dict[str, float],
        *,
        name: Optional[str] = None,
    ) -> "ThresholdRegistry":
        """Return a new registry with selected keys overridden.

        Raises
        ------
        KeyError
            A key in *overrides* is not in this registry.
        ValueError
            An override is out of range for its key.
        """
        unknown = sorted(k for k in overrides if k not in self._data)
        if unknown:
            raise KeyError(
                f"Unknown threshold key(s) {unknown}; "
                f"valid keys: {sorted(self._data)}")
        merged = dict(self._data)
        merged.update(overrides)
        return ThresholdRegistry(merged, name=name or (self._name + "+"))


# ═══════════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════════

def validate_thresholds(registry: ThresholdRegistry) -> ThresholdRegistry:
    """Check that *registry* carries every key the pipeline reads.

    Values were range-checked when the registry was built; this adds the
    completeness check.  Returns the registry so the call can be chained.

    Raises
    ------
    KeyError
        A required key is missing.
    """
    missing = [key for key in _RULES if key not in registry]
    if missing:
        raise KeyError(f"Threshold registry {registry.name!r} "
                       f"lacks required key(s) {missing}")
    return registry


# ═══════════════════════════════════════════════════════════════════
# DEFAULT_THRESHOLDS — the production config
# ═══════════════════════════════════════════════════════════════════

_DEFAULT_DATA: Dict[str, float] = {

    # ── neighborhood — local subset around the best trial ───────
    # Small keeps the fit local; too small misses interactions.
    # Do not go below 1.5.
    "neighborhood.multiplier": 1.5,

    # ── fit — SVD least squares ─────────────────────────────────
    "fit.rcond": 1e-10,                 # relative singular-value cutoff

    # ── hessian — repair toward positive semi-definite ──────────
    "hessian.diag_floor": 1e-10,        # below → row/column zeroed
    "hessian.offdiag_shrink": 0.99999,  # Cauchy–Schwarz clamp factor

    # ── spectrum — eigen analysis ───────────────────────────────
    "spectrum.inverse_floor": 1e-8,     # λ kept in generalized inverse
    "spectrum.positive_floor": 0.0,     # λ counted positive for directions
}


DEFAULT_THRESHOLDS: ThresholdRegistry = ThresholdRegistry(
    _DEFAULT_DATA, name="production",
)
"""The production threshold registry."""
