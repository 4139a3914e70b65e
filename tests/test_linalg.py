"""
Test: dense linear algebra kernel.

Rank by Gaussian elimination, the partial pivot solver, the row
orthogonalizing solver on regular and singular systems, and the
functional matrix helpers.
"""
import pytest
import jax.numpy as jnp

from pynodal.errors import DimensionMismatch
from pynodal.linalg import (
    mat_make,
    mat_v_mult,
    mat_scale_add,
    mat_copy,
    mat_copy_transposed,
    mat_rank,
    algebraic_rows,
    mat_solve,
    mat_solve_rq,
    add_two_terminal,
    add_entry,
    add_to_vector,
    two_terminal_value,
)


class TestRank:

    def test_rank_equals_rank_of_transpose(self):
        M = jnp.array([
            [1.0, 2.0, 3.0, 4.0],
            [2.0, 0.0, 1.0, 1.0],
            [3.0, 2.0, 4.0, 5.0],   # row 0 + row 1
        ])
        assert mat_rank(M) == 2
        assert mat_rank(M.T) == 2

    def test_full_rank(self):
        M = jnp.array([[2.0, 1.0], [1.0, 3.0]])
        assert mat_rank(M) == 2

    def test_zero_matrix(self):
        assert mat_rank(mat_make(3, 3)) == 0

    def test_zero_row_lowers_rank(self):
        M = jnp.eye(3).at[1].set(0.0)
        assert mat_rank(M) == 2

    @pytest.mark.parametrize("row", [0, 1, 2])
    def test_zero_row_same_as_removed_row(self, row):
        M = jnp.array([
            [1.0, 2.0, 0.0],
            [0.0, 1.0, 1.0],
            [1.0, 3.0, 1.0],   # row 0 + row 1
        ])
        zeroed = M.at[row].set(0.0)
        removed = jnp.delete(M, row, axis=0)
        assert mat_rank(zeroed) == mat_rank(removed) == 2

    def test_tiny_entries_relative_to_scale(self):
        # second row is 1e-15 of the first, below eps * max|M|
        M = jnp.array([[1.0, 0.0], [0.0, 1e-15]])
        assert mat_rank(M) == 1


class TestAlgebraicRows:

    def test_storage_rows_are_not_algebraic(self):
        # capacitor on unknown 1 only
        C = jnp.array([[0.0, 0.0], [0.0, 1e-6]])
        assert algebraic_rows(C).tolist() == [1.0, 0.0]

    def test_coupled_rows(self):
        # two dependent rows: the first can be dropped, the second cannot
        C = jnp.array([[1.0, -1.0], [-1.0, 1.0]])
        assert algebraic_rows(C).tolist() == [1.0, 0.0]


class TestSolve:

    def test_regular_system(self):
        A = jnp.array([[2.0, 1.0], [1.0, 3.0]])
        b = jnp.array([3.0, 5.0])
        x = mat_solve(A, b)
        assert x.tolist() == pytest.approx([0.8, 1.4])

    def test_augmented_matrix(self):
        M = jnp.array([[2.0, 1.0, 3.0], [1.0, 3.0, 5.0]])
        assert mat_solve(M).tolist() == pytest.approx([0.8, 1.4])

    def test_needs_pivoting(self):
        A = jnp.array([[0.0, 1.0], [1.0, 1.0]])
        b = jnp.array([2.0, 3.0])
        assert mat_solve(A, b).tolist() == pytest.approx([1.0, 2.0])

    def test_zero_pivot_column_does_not_fail(self):
        A = jnp.array([[0.0, 0.0], [0.0, 1.0]])
        b = jnp.array([0.0, 2.0])
        x = mat_solve(A, b)
        assert bool(jnp.all(jnp.isfinite(x)))
        assert float(x[1]) == pytest.approx(2.0)

    def test_rq_matches_partial_pivot(self):
        A = jnp.array([[4.0, -2.0, 1.0], [-2.0, 4.0, -2.0], [1.0, -2.0, 4.0]])
        b = jnp.array([11.0, -16.0, 17.0])
        x_pp = mat_solve(A, b)
        x_rq = mat_solve_rq(A, b)
        assert x_rq.tolist() == pytest.approx(x_pp.tolist(), rel=1e-9)
        assert mat_v_mult(A, x_rq).tolist() == pytest.approx(b.tolist(), rel=1e-9)

    def test_rq_singular_gives_minimum_norm(self):
        A = jnp.array([[1.0, 1.0], [1.0, 1.0]])
        b = jnp.array([2.0, 2.0])
        x = mat_solve_rq(A, b)
        assert x.tolist() == pytest.approx([1.0, 1.0])

    def test_rq_zero_row_ignored(self):
        # a node with nothing connected contributes a zero row
        A = jnp.array([[1.0, 0.0], [0.0, 0.0]])
        b = jnp.array([3.0, 1.0])
        x = mat_solve_rq(A, b)
        assert x.tolist() == pytest.approx([3.0, 0.0])

    def test_bad_shapes(self):
        with pytest.raises(DimensionMismatch):
            mat_solve(jnp.eye(2), jnp.ones(3))
        with pytest.raises(ValueError):
            mat_solve_rq(jnp.eye(2))


class TestMatrixHelpers:

    def test_mat_v_mult_scale(self):
        M = jnp.array([[1.0, 2.0], [3.0, 4.0]])
        x = jnp.array([1.0, 1.0])
        assert mat_v_mult(M, x, -1.0).tolist() == [-3.0, -7.0]

    def test_mat_v_mult_mismatch(self):
        with pytest.raises(DimensionMismatch):
            mat_v_mult(jnp.eye(2), jnp.ones(3))

    def test_scale_add_with_row_scale(self):
        A = jnp.eye(2)
        B = jnp.ones((2, 2))
        result = mat_scale_add(A, B, jnp.array([1.0, 2.0]), 3.0)
        assert result.tolist() == [[4.0, 3.0], [3.0, 5.0]]

    def test_scale_add_into_larger_matrix(self):
        C = mat_make(2, 3)
        result = mat_scale_add(jnp.eye(2), jnp.eye(2), 1.0, 1.0, C)
        assert result.shape == (2, 3)
        assert result.tolist() == [[2.0, 0.0, 0.0], [0.0, 2.0, 0.0]]
        # inputs are untouched
        assert float(jnp.sum(C)) == 0.0

    def test_scale_add_b_too_small(self):
        with pytest.raises(DimensionMismatch):
            mat_scale_add(jnp.eye(3), jnp.eye(2), 1.0, 1.0)

    def test_copy(self):
        dest = mat_make(3, 3)
        src = jnp.array([[1.0, 2.0], [3.0, 4.0]])
        assert mat_copy(src, dest)[:2, :2].tolist() == src.tolist()
        assert mat_copy_transposed(src, dest)[:2, :2].tolist() == src.T.tolist()

    def test_copy_too_large(self):
        with pytest.raises(DimensionMismatch):
            mat_copy(jnp.ones((3, 1)), mat_make(2, 2))
        with pytest.raises(DimensionMismatch):
            mat_copy_transposed(jnp.ones((1, 3)), mat_make(2, 2))

    def test_stamps_skip_ground(self):
        M = add_two_terminal(mat_make(2, 2), 0, -1, 2.0)
        assert M.tolist() == [[2.0, 0.0], [0.0, 0.0]]
        M = add_two_terminal(M, 0, 1, 1.0)
        assert M.tolist() == [[3.0, -1.0], [-1.0, 1.0]]
        assert add_entry(M, -1, 0, 5.0).tolist() == M.tolist()

        x = add_to_vector(jnp.zeros(2), 1, 4.0)
        assert add_to_vector(x, -1, 1.0).tolist() == [0.0, 4.0]
        assert float(two_terminal_value(x, 1, -1)) == 4.0
        assert float(two_terminal_value(x, -1, 1)) == -4.0
        assert two_terminal_value(x, -1, -1) == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
