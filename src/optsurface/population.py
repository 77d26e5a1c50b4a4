"""Trial populations handed over by a global optimiser.

A population is a fixed table with one row per trial: ``nparams``
parameter columns followed by one objective column.  The table is
copied once on construction and frozen, so nothing downstream can
alter the optimiser's output.

Usage
-----
>>> pop = Population.from_table(table, nparams=4)   # (N, 5) array
>>> pop.best                                         # Trial(...)
>>> pop = Population.from_trials([Trial((1.0, 2.0), 0.3), ...])
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

import numpy as np

__all__ = [
    "Trial",
    "Population",
    "as_population",
    "find_best",
]


@dataclass(frozen=True)
class Trial:
    """One optimiser sample: a parameter vector and its objective value."""

    parameters: Tuple[float, ...]
    objective: float

    @property
    def n_params(self) -> int:
        return len(self.parameters)


@dataclass(frozen=True, eq=False)
class Population:
    """Read-only table of trials.

    Attributes
    ----------
    table : np.ndarray
        ``(n_trials, n_params + 1)`` float64 array, not writeable.
        Column ``n_params`` holds the objective.
    n_params : int
        Number of parameter columns.
    """

    table: np.ndarray
    n_params: int

    # ── construction ────────────────────────────────────────────

    @classmethod
    def from_table(cls, data, nparams: int) -> "Population":
        """Build from a row-major table of ``nparams + 1`` columns.

        *data* may be a 2-D array-like or a flat sequence of length
        ``ncases * (nparams + 1)``.

        Raises
        ------
        ValueError
            Negative *nparams*, empty table, wrong column count, or
            non-finite entries.
        """
        if nparams < 0:
            raise ValueError(f"nparams must be non-negative, got {nparams}")
        arr = np.array(data, dtype=np.float64, copy=True)
        width = nparams + 1
        if arr.ndim == 1:
            if arr.size % width:
                raise ValueError(
                    f"Flat table of {arr.size} values is not a whole "
                    f"number of rows of width {width}")
            arr = arr.reshape(-1, width)
        if arr.ndim != 2 or arr.shape[1] != width:
            raise ValueError(
                f"Expected {width} columns (nparams + objective), "
                f"got shape {arr.shape}")
        if arr.shape[0] == 0:
            raise ValueError("Population is empty")
        if not np.all(np.isfinite(arr)):
            raise ValueError("Population contains NaN or inf values")
        arr.setflags(write=False)
        return cls(table=arr, n_params=nparams)

    @classmethod
    def from_trials(cls, trials: Iterable[Trial]) -> "Population":
        """Build from :class:`Trial` records of equal length."""
        trials = list(trials)
        if not trials:
            raise ValueError("Population is empty")
        n = trials[0].n_params
        for i, t in enumerate(trials):
            if t.n_params != n:
                raise ValueError(
                    f"Trial {i} has {t.n_params} parameters, expected {n}")
        rows = [list(t.parameters) + [t.objective] for t in trials]
        return cls.from_table(np.array(rows, dtype=np.float64).reshape(-1, n + 1), n)

    # ── views ───────────────────────────────────────────────────

    def __len__(self) -> int:
        return int(self.table.shape[0])

    @property
    def n_trials(self) -> int:
        return len(self)

    @property
    def parameters(self) -> np.ndarray:
        """``(n_trials, n_params)`` read-only view."""
        return self.table[:, :self.n_params]

    @property
    def objectives(self) -> np.ndarray:
        """``(n_trials,)`` read-only view."""
        return self.table[:, self.n_params]

    def trial(self, index: int) -> Trial:
        row = self.table[index]
        return Trial(
            parameters=tuple(float(x) for x in row[:self.n_params]),
            objective=float(row[self.n_params]),
        )

    def trials(self) -> List[Trial]:
        return [self.trial(i) for i in range(len(self))]

    # ── best trial ──────────────────────────────────────────────

    @property
    def best_index(self) -> int:
        """Index of the maximal objective.

        Ties go to the earliest trial in input order.
        """
        return find_best(self.objectives)

    @property
    def best(self) -> Trial:
        return self.trial(self.best_index)

    def summary(self) -> str:
        best = self.best
        return (
            f"Population({len(self)} trials × {self.n_params} params, "
            f"best objective={best.objective:.4g} at trial {self.best_index})"
        )


def find_best(objectives) -> int:
    """Index of the largest objective; ties go to the first occurrence."""
    obj = np.asarray(objectives, dtype=np.float64)
    if obj.size == 0:
        raise ValueError("No objectives to choose from")
    return int(np.argmax(obj))


def as_population(data, nparams: int | None = None) -> Population:
    """Coerce a Population, a sequence of Trials, or a table into a Population."""
    if isinstance(data, Population):
        return data
    if isinstance(data, Sequence) and data and isinstance(data[0], Trial):
        return Population.from_trials(data)
    if nparams is None:
        raise ValueError("nparams is required when passing a raw table")
    return Population.from_table(data, nparams)
