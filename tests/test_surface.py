"""Tests for optsurface.surface — the local quadratic fit.

Covers:
1. coefficient_layout — column order and labels
2. design_matrix / target_vector
3. fit_quadratic — exact recovery on quadratic data, underdetermined fits
4. QuadraticFit views — linear, quadratic, rows, predict, R²
"""

import itertools

import numpy as np
import pytest

from optsurface.neighborhood import select_neighborhood
from optsurface.population import Population
from optsurface.surface import (
    CoefficientTerm,
    QuadraticFit,
    coefficient_layout,
    design_matrix,
    fit_quadratic,
    target_vector,
)


def _paraboloid():
    """Five trials on f = 10 − (p1 − 3)² − 2(p2 − 1)², best at (3, 1)."""
    table = [
        [3.0, 1.0, 10.0],
        [4.0, 1.0, 9.0],
        [2.0, 1.0, 9.0],
        [3.0, 2.0, 8.0],
        [3.0, 0.0, 8.0],
    ]
    return Population.from_table(table, 2)


def _grid_population():
    """125-point grid on a 3-parameter quadratic with a cross term."""
    def f(x, y, z):
        return (5.0 - (x - 1.0) ** 2 - 0.5 * (y + 2.0) ** 2 - 3.0 * z ** 2
                + 0.4 * (x - 1.0) * (y + 2.0))

    xs = [0.0, 0.5, 1.0, 1.5, 2.0]
    ys = [-3.0, -2.5, -2.0, -1.5, -1.0]
    zs = [-1.0, -0.5, 0.0, 0.5, 1.0]
    rows = [[x, y, z, f(x, y, z)] for x, y, z in itertools.product(xs, ys, zs)]
    return Population.from_table(rows, 3)


# ═══════════════════════════════════════════════════════════════════
# 1. Layout
# ═══════════════════════════════════════════════════════════════════

class TestCoefficientLayout:

    def test_two_parameters(self):
        labels = [t.label for t in coefficient_layout(2)]
        assert labels == ["x1", "x1^2", "x1*x2", "x2", "x2^2", "1"]

    def test_three_parameters(self):
        labels = [t.label for t in coefficient_layout(3)]
        assert labels == ["x1", "x1^2", "x1*x2", "x1*x3",
                          "x2", "x2^2", "x2*x3",
                          "x3", "x3^2", "1"]

    def test_constant_last(self):
        assert coefficient_layout(4)[-1] == CoefficientTerm("constant")

    @pytest.mark.parametrize("p", [1, 2, 3, 5, 8])
    def test_length(self, p):
        assert len(coefficient_layout(p)) == p + p * (p + 1) // 2 + 1


# ═══════════════════════════════════════════════════════════════════
# 2. Regression inputs
# ═══════════════════════════════════════════════════════════════════

class TestRegressionInputs:

    def test_design_rows_match_layout(self):
        pop = _paraboloid()
        hood = select_neighborhood(pop)
        a = design_matrix(hood, pop)
        assert a.shape == (5, 6)
        # row order follows the neighborhood: best, then the four at distance 1
        np.testing.assert_array_equal(a[0], [0, 0, 0, 0, 0, 1])
        np.testing.assert_array_equal(a[1], [1, 1, 0, 0, 0, 1])
        np.testing.assert_array_equal(a[2], [-1, 1, 0, 0, 0, 1])
        np.testing.assert_array_equal(a[3], [0, 0, 0, 1, 1, 1])
        np.testing.assert_array_equal(a[4], [0, 0, 0, -1, 1, 1])

    def test_cross_term_column(self):
        pop = Population.from_table(
            [[0.0, 0.0, 5.0], [2.0, 3.0, 1.0]], 2)
        hood = select_neighborhood(pop)
        a = design_matrix(hood, pop)
        np.testing.assert_array_equal(a[1], [2, 4, 6, 3, 9, 1])

    def test_target_is_best_minus_objective(self):
        pop = _paraboloid()
        hood = select_neighborhood(pop)
        np.testing.assert_array_equal(target_vector(hood, pop),
                                      [0, 1, 1, 2, 2])

    def test_target_non_negative(self):
        rng = np.random.default_rng(2)
        table = np.column_stack([rng.normal(size=(30, 2)), rng.normal(size=30)])
        pop = Population.from_table(table, 2)
        hood = select_neighborhood(pop)
        assert np.all(target_vector(hood, pop) >= 0.0)


# ═══════════════════════════════════════════════════════════════════
# 3. fit_quadratic
# ═══════════════════════════════════════════════════════════════════

class TestFitQuadratic:

    def test_paraboloid_exact_recovery(self):
        pop = _paraboloid()
        fit = fit_quadratic(select_neighborhood(pop), pop)
        assert isinstance(fit, QuadraticFit)
        np.testing.assert_allclose(fit.coefficients, [0, 1, 0, 0, 2, 0],
                                   atol=1e-10)
        assert fit.rank == 5           # no diagonal points: cross term unseen
        assert fit.n_points == 5
        assert fit.is_underdetermined
        assert fit.r_squared == pytest.approx(1.0)

    def test_grid_recovers_cross_term(self):
        pop = _grid_population()
        hood = select_neighborhood(pop)
        assert hood.size == 15
        fit = fit_quadratic(hood, pop)
        assert fit.rank == 10
        assert not fit.is_rank_deficient
        np.testing.assert_allclose(fit.linear, [0, 0, 0], atol=1e-9)
        np.testing.assert_allclose(
            fit.quadratic,
            [[1.0, -0.4, 0.0],
             [0.0, 0.5, 0.0],
             [0.0, 0.0, 3.0]],
            atol=1e-9)
        assert fit.constant == pytest.approx(0.0, abs=1e-9)
        assert fit.residual_ss == pytest.approx(0.0, abs=1e-16)

    def test_underdetermined_warns(self, caplog):
        pop = Population.from_table(
            [[0.0, 0.0, 1.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], 2)
        with caplog.at_level("WARNING", logger="optsurface.surface"):
            fit = fit_quadratic(select_neighborhood(pop), pop)
        assert fit.is_underdetermined
        assert "minimum-norm" in caplog.text
        assert np.all(np.isfinite(fit.coefficients))

    def test_constant_objective_gives_zero_fit(self):
        rng = np.random.default_rng(4)
        table = np.column_stack([rng.normal(size=(20, 3)), np.full(20, 7.0)])
        pop = Population.from_table(table, 3)
        fit = fit_quadratic(select_neighborhood(pop), pop)
        np.testing.assert_array_equal(fit.coefficients, np.zeros(10))
        assert np.isnan(fit.r_squared)

    def test_rcond_threshold_is_used(self):
        from optsurface.thresholds import DEFAULT_THRESHOLDS
        pop = _grid_population()
        hood = select_neighborhood(pop)
        harsh = DEFAULT_THRESHOLDS.replace({"fit.rcond": 0.999})
        assert fit_quadratic(hood, pop, harsh).rank < 10


# ═══════════════════════════════════════════════════════════════════
# 4. Views
# ═══════════════════════════════════════════════════════════════════

class TestQuadraticFitViews:

    @pytest.fixture
    def fit(self):
        # layout for P=2: x1, x1^2, x1*x2, x2, x2^2, 1
        return QuadraticFit(
            coefficients=np.array([0.5, 1.0, -0.3, -0.25, 2.0, 0.1]),
            n_params=2, rank=6, singular_values=np.ones(6),
            residual_ss=0.0, target_ss=1.0, n_points=9)

    def test_linear(self, fit):
        np.testing.assert_array_equal(fit.linear, [0.5, -0.25])

    def test_quadratic_upper_triangle(self, fit):
        np.testing.assert_array_equal(fit.quadratic, [[1.0, -0.3], [0.0, 2.0]])

    def test_rows(self, fit):
        assert list(fit.rows()) == [(0.5, [1.0, -0.3]), (-0.25, [2.0])]

    def test_constant(self, fit):
        assert fit.constant == pytest.approx(0.1)

    def test_predict(self, fit):
        d = np.array([[1.0, 2.0]])
        expected = 0.5 - 0.5 + 1.0 - 0.6 + 8.0 + 0.1
        assert fit.predict(d)[0] == pytest.approx(expected)

    def test_summary(self, fit):
        s = fit.summary()
        assert "P=2" in s and "C=6" in s and "K=9" in s
