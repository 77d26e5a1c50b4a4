"""Tests for optsurface.linalg — the SVD / eigen kernel.

Covers:
1. svd_lstsq — over-, under- and rank-deficient systems, cutoff, errors
2. symmetric_eigen — reconstruction, orthonormality, input checks
3. truncated_inverse — full-rank agreement with inv, truncation
4. rescale_max_abs
"""

import numpy as np
import pytest

from optsurface.linalg import (
    LstsqSolution,
    SolverError,
    rescale_max_abs,
    svd_lstsq,
    symmetric_eigen,
    truncated_inverse,
)


# ═══════════════════════════════════════════════════════════════════
# 1. svd_lstsq
# ═══════════════════════════════════════════════════════════════════

class TestSvdLstsq:
    """Truncated-SVD least squares."""

    def test_overdetermined_exact_system(self):
        rng = np.random.default_rng(7)
        a = rng.normal(size=(12, 4))
        x_true = np.array([1.5, -2.0, 0.25, 3.0])
        sol = svd_lstsq(a, a @ x_true)
        np.testing.assert_allclose(sol.solution, x_true, atol=1e-10)
        assert sol.rank == 4
        assert sol.residual_ss == pytest.approx(0.0, abs=1e-18)

    def test_returns_solution_record(self):
        sol = svd_lstsq(np.eye(2), np.array([1.0, 2.0]))
        assert isinstance(sol, LstsqSolution)
        assert sol.singular_values.shape == (2,)
        assert sol.condition_number == pytest.approx(1.0)

    def test_least_squares_residual(self):
        # Fit a constant to 1, 2, 3: mean 2, residual 2.
        a = np.ones((3, 1))
        sol = svd_lstsq(a, np.array([1.0, 2.0, 3.0]))
        assert sol.solution[0] == pytest.approx(2.0)
        assert sol.residual_ss == pytest.approx(2.0)

    def test_underdetermined_gives_minimum_norm(self):
        sol = svd_lstsq(np.array([[1.0, 1.0]]), np.array([2.0]))
        np.testing.assert_allclose(sol.solution, [1.0, 1.0])
        assert sol.rank == 1

    def test_rank_deficient_columns(self):
        a = np.array([[1.0, 1.0], [1.0, 1.0], [1.0, 1.0]])
        sol = svd_lstsq(a, np.array([2.0, 2.0, 2.0]))
        np.testing.assert_allclose(sol.solution, [1.0, 1.0])
        assert sol.rank == 1

    def test_relative_cutoff_drops_tiny_singular_values(self):
        a = np.diag([1.0, 1e-12])
        sol = svd_lstsq(a, np.array([1.0, 1.0]), rcond=1e-10)
        assert sol.rank == 1
        np.testing.assert_allclose(sol.solution, [1.0, 0.0])

    def test_zero_cutoff_keeps_tiny_singular_values(self):
        a = np.diag([1.0, 1e-12])
        sol = svd_lstsq(a, np.array([1.0, 1.0]), rcond=0.0)
        assert sol.rank == 2
        assert sol.solution[1] == pytest.approx(1e12)

    def test_zero_matrix_gives_zero_solution(self):
        sol = svd_lstsq(np.zeros((4, 3)), np.ones(4))
        assert sol.rank == 0
        np.testing.assert_array_equal(sol.solution, np.zeros(3))
        assert sol.condition_number == np.inf

    def test_zero_target_gives_zero_solution(self):
        rng = np.random.default_rng(3)
        sol = svd_lstsq(rng.normal(size=(9, 6)), np.zeros(9))
        np.testing.assert_array_equal(sol.solution, np.zeros(6))

    def test_nan_input_raises(self):
        a = np.array([[1.0, np.nan], [0.0, 1.0]])
        with pytest.raises(SolverError):
            svd_lstsq(a, np.array([1.0, 1.0]))

    def test_shape_mismatch_raises(self):
        with pytest.raises(ValueError, match="Shape mismatch"):
            svd_lstsq(np.eye(3), np.ones(2))


# ═══════════════════════════════════════════════════════════════════
# 2. symmetric_eigen
# ═══════════════════════════════════════════════════════════════════

class TestSymmetricEigen:
    """Eigenvalues / eigenvectors of symmetric matrices."""

    def test_reconstruction(self):
        m = np.array([[4.0, 1.0, 0.5],
                      [1.0, 3.0, -0.2],
                      [0.5, -0.2, 2.0]])
        evals, evecs = symmetric_eigen(m)
        np.testing.assert_allclose(evecs @ np.diag(evals) @ evecs.T, m,
                                   atol=1e-12)

    def test_eigenvectors_orthonormal(self):
        m = np.array([[2.0, -1.0], [-1.0, 2.0]])
        _, evecs = symmetric_eigen(m)
        np.testing.assert_allclose(evecs.T @ evecs, np.eye(2), atol=1e-12)

    def test_handles_negative_and_zero_eigenvalues(self):
        evals, _ = symmetric_eigen(np.diag([3.0, 0.0, -2.0]))
        assert sorted(evals.tolist()) == pytest.approx([-2.0, 0.0, 3.0])

    def test_non_symmetric_raises(self):
        with pytest.raises(ValueError, match="not symmetric"):
            symmetric_eigen(np.array([[1.0, 2.0], [0.0, 1.0]]))

    def test_non_square_raises(self):
        with pytest.raises(ValueError, match="square"):
            symmetric_eigen(np.ones((2, 3)))

    def test_inf_raises(self):
        with pytest.raises(SolverError):
            symmetric_eigen(np.array([[np.inf, 0.0], [0.0, 1.0]]))


# ═══════════════════════════════════════════════════════════════════
# 3. truncated_inverse
# ═══════════════════════════════════════════════════════════════════

class TestTruncatedInverse:
    """Spectral pseudo-inverse."""

    def test_matches_inverse_when_all_positive(self):
        m = np.array([[3.0, 0.4], [0.4, 1.5]])
        evals, evecs = symmetric_eigen(m)
        inv = truncated_inverse(evals, evecs)
        np.testing.assert_allclose(inv, np.linalg.inv(m), atol=1e-12)

    def test_drops_non_positive_directions(self):
        evals = np.array([2.0, -1.0, 1e-9])
        evecs = np.eye(3)
        inv = truncated_inverse(evals, evecs, floor=1e-8)
        np.testing.assert_allclose(inv, np.diag([0.5, 0.0, 0.0]))

    def test_exactly_symmetric(self):
        rng = np.random.default_rng(11)
        b = rng.normal(size=(5, 5))
        m = b @ b.T + 0.1 * np.eye(5)
        evals, evecs = symmetric_eigen(0.5 * (m + m.T))
        inv = truncated_inverse(evals, evecs)
        assert np.array_equal(inv, inv.T)

    def test_all_dropped_gives_zero_matrix(self):
        inv = truncated_inverse(np.zeros(3), np.eye(3))
        np.testing.assert_array_equal(inv, np.zeros((3, 3)))


# ═══════════════════════════════════════════════════════════════════
# 4. rescale_max_abs
# ═══════════════════════════════════════════════════════════════════

class TestRescaleMaxAbs:

    def test_largest_magnitude_becomes_unit(self):
        out = rescale_max_abs(np.array([0.5, -2.0, 1.0]))
        np.testing.assert_allclose(out, [0.25, -1.0, 0.5])

    def test_zero_vector_unchanged(self):
        v = np.zeros(3)
        out = rescale_max_abs(v)
        np.testing.assert_array_equal(out, v)
        assert out is not v
