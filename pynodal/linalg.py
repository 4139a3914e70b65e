"""
Dense linear algebra for MNA matrices (JAX, functional style).

Matrices are jax Arrays and are never modified in place: every routine
returns a new array. The elimination loops are written with
jax.lax.fori_loop and jit-compiled once per matrix shape.

Ground is node -1; the stamp helpers below silently drop any entry that
touches it.
"""

from __future__ import annotations
from functools import partial

import jax
import jax.numpy as jnp
from jax import Array

from .errors import DimensionMismatch

EPS = 1.0e-12


def mat_make(n: int, m: int) -> Array:
    """Allocate an n x m zero matrix."""
    return jnp.zeros((n, m))


def mat_v_mult(M: Array, x: Array, scale: float = 1.0) -> Array:
    """Form b = scale * M @ x."""
    if M.ndim != 2 or x.ndim != 1 or M.shape[1] != x.shape[0]:
        raise DimensionMismatch(
            f"Rows of M mismatched to b or cols mismatch to x: {M.shape} @ {x.shape}"
        )
    return scale * (M @ x)


def _row_scale(scale, n: int) -> Array:
    scale = jnp.asarray(scale)
    if scale.ndim == 0:
        return scale
    if scale.shape[0] < n:
        raise DimensionMismatch(f"Row scale vector has {scale.shape[0]} entries, need {n}")
    return scale[:n, None]


def mat_scale_add(A: Array, B: Array, scale_a, scale_b, C: Array | None = None) -> Array:
    """
    Form scale_a*A + scale_b*B over the bounds of A.

    scale_a and scale_b are scalars or per-row vectors (row scaling).
    If C is given, the result is written into its top-left block.
    """
    n, m = A.shape
    if n > B.shape[0] or m > B.shape[1]:
        raise DimensionMismatch("Rows or columns of A too large for B")
    if C is not None and (n > C.shape[0] or m > C.shape[1]):
        raise DimensionMismatch("Rows or columns of A too large for C")
    result = _row_scale(scale_a, n) * A + _row_scale(scale_b, n) * B[:n, :m]
    if C is None:
        return result
    return C.at[:n, :m].set(result)


def mat_copy(src: Array, dest: Array) -> Array:
    """Copy src into the top-left block of dest."""
    n, m = src.shape
    if n > dest.shape[0] or m > dest.shape[1]:
        raise DimensionMismatch("Rows or cols of src exceed rows or cols of dest")
    return dest.at[:n, :m].set(src)


def mat_copy_transposed(src: Array, dest: Array) -> Array:
    """Copy src transposed into the top-left block of dest."""
    n, m = src.shape
    if n > dest.shape[1] or m > dest.shape[0]:
        raise DimensionMismatch("Rows or cols of src exceed cols or rows of dest")
    return dest.at[:m, :n].set(src.T)


def _swap_rows(M: Array, i, j) -> Array:
    idx = jnp.stack([i, j])
    return M.at[idx].set(M[idx[::-1]])


@partial(jax.jit, static_argnames=("eps",))
def _rank(M: Array, eps: float) -> Array:
    n_rows, n_cols = M.shape
    rows = jnp.arange(n_rows)
    threshold = eps * jnp.max(jnp.abs(M))

    def body(col, carry):
        M, row = carry
        # largest candidate in this column among the rows not yet pivoted
        candidates = jnp.where(rows >= row, jnp.abs(M[:, col]), -1.0)
        max_row = jnp.argmax(candidates)
        found = (candidates[max_row] > threshold) & (row < n_rows)

        pivot_row = jnp.minimum(row, n_rows - 1)
        swapped = _swap_rows(M, pivot_row, max_row)
        factors = jnp.where(rows > pivot_row, swapped[:, col] / swapped[pivot_row, col], 0.0)
        eliminated = swapped - factors[:, None] * swapped[pivot_row][None, :]

        M = jnp.where(found, eliminated, M)
        return M, row + found.astype(row.dtype)

    _, rank = jax.lax.fori_loop(0, n_cols, body, (M, jnp.array(0)))
    return rank


def mat_rank(M: Array, eps: float = EPS) -> int:
    """
    Rank of M by Gaussian elimination with partial pivoting.

    A pivot counts when its magnitude exceeds eps times the largest
    entry of M.
    """
    M = jnp.asarray(M, dtype=float)
    if M.size == 0:
        return 0
    return int(_rank(M, eps))


def algebraic_rows(M: Array, eps: float = EPS) -> Array:
    """
    Mark algebraic rows of M.

    Returns a vector of ones and zeros; ones denote rows that can be
    zeroed without changing rank(M). Rows are tried in order and a
    removable row stays removed for the following checks.
    """
    M = jnp.asarray(M, dtype=float)
    n_rows = M.shape[0]
    rank = mat_rank(M, eps)
    Mc = M
    one_if_alg = []
    for row in range(n_rows):
        trial = Mc.at[row].set(0.0)
        if mat_rank(trial, eps) == rank:
            Mc = trial
            one_if_alg.append(1.0)
        else:
            one_if_alg.append(0.0)
    return jnp.array(one_if_alg)


def _augment(M: Array, rhs: Array | None) -> Array:
    M = jnp.asarray(M, dtype=float)
    n_rows = M.shape[0]
    if rhs is None:
        if M.shape[1] != n_rows + 1:
            raise DimensionMismatch(f"Augmented matrix must be N x N+1, got {M.shape}")
        return M
    rhs = jnp.asarray(rhs, dtype=float)
    if rhs.shape != (n_rows,) or M.shape[1] not in (n_rows, n_rows + 1):
        raise DimensionMismatch(f"Cannot augment {M.shape} with rhs {rhs.shape}")
    return jnp.concatenate([M[:, :n_rows], rhs[:, None]], axis=1)


@partial(jax.jit, static_argnames=("eps",))
def _solve_partial_pivot(M: Array, eps: float) -> Array:
    n = M.shape[0]
    rows = jnp.arange(n)

    def eliminate(col, M):
        candidates = jnp.where(rows >= col, jnp.abs(M[:, col]), -1.0)
        max_row = jnp.argmax(candidates)
        # no pivot at all: put a small conductance to ground on the diagonal
        M = jnp.where(
            candidates[max_row] == 0.0,
            M.at[col, col].set(eps),
            _swap_rows(M, col, max_row),
        )
        factors = jnp.where(rows > col, M[:, col] / M[col, col], 0.0)
        return M - factors[:, None] * M[col][None, :]

    M = jax.lax.fori_loop(0, n, eliminate, M)

    # upper triangular now, back substitute from the last row
    def back_substitute(k, x):
        i = n - 1 - k
        residual = M[i, n] - M[i, :n] @ x
        return x.at[i].set(residual / M[i, i])

    return jax.lax.fori_loop(0, n, back_substitute, jnp.zeros(n, dtype=M.dtype))


def mat_solve(M: Array, rhs: Array | None = None, eps: float = EPS) -> Array:
    """
    Solve Ax = b by Gaussian elimination with partial pivoting.

    Args:
        M: Augmented matrix [A | b] (N x N+1), or A when rhs is given
        rhs: Optional right-hand side, copied into the last column
        eps: Diagonal value used when a pivot column is entirely zero

    Returns:
        Solution vector x
    """
    M = _augment(M, rhs)
    if M.shape[0] == 0:
        return jnp.zeros(0)
    return _solve_partial_pivot(M, eps)


@partial(jax.jit, static_argnames=("eps",))
def _solve_rq(M: Array, eps: float) -> Array:
    n_rows = M.shape[0]
    rows = jnp.arange(n_rows)

    def body(row, carry):
        M, mat_scale, n_nonzero, active = carry
        # bring the remaining row with the largest 2-norm up (last col is rhs)
        sumsq = jnp.sum(M[:, :-1] ** 2, axis=1)
        candidates = jnp.where(rows >= row, sumsq, -1.0)
        max_row = jnp.argmax(candidates)
        M = _swap_rows(M, row, max_row)

        row_norm = jnp.sqrt(candidates[max_row])
        mat_scale = jnp.where(row == 0, row_norm, mat_scale)

        # rows below the scale threshold are the null space of M
        active = active & (row_norm > mat_scale * eps)
        scale = jnp.where(active, 1.0 / jnp.where(row_norm > 0, row_norm, 1.0), 1.0)
        Mr = M[row] * scale
        M = M.at[row].set(Mr)

        # orthogonalize the rows below against this one, rhs included
        inner = M[:, :-1] @ Mr[:-1]
        inner = jnp.where((rows > row) & active, inner, 0.0)
        M = M - inner[:, None] * Mr[None, :]
        return M, mat_scale, n_nonzero + active.astype(n_nonzero.dtype), active

    init = (M, jnp.array(0.0, dtype=M.dtype), jnp.array(0), jnp.array(True))
    M, _, n_nonzero, _ = jax.lax.fori_loop(0, n_rows, body, init)

    # last column holds inv(R^T) rhs, scale the rows of Q to get x
    weights = jnp.where(rows < n_nonzero, M[:, -1], 0.0)
    return weights @ M[:, :-1]


def mat_solve_rq(M: Array, rhs: Array | None = None, eps: float = EPS) -> Array:
    """
    Solve Ax = b with a row-orthogonalizing (R^T Q^T) factorization.

    Rows are taken in order of decreasing 2-norm, normalized and
    orthogonalized against each other. Once a row's norm drops below eps
    times the first row norm, the remaining rows are treated as null space
    and ignored, so singular systems yield a minimum-norm style answer
    instead of an error.

    Args:
        M: Augmented matrix [A | b] (N x N+1), or A when rhs is given
        rhs: Optional right-hand side, copied into the last column
        eps: Relative row norm threshold

    Returns:
        Solution vector x
    """
    M = _augment(M, rhs)
    if M.shape[0] == 0:
        return jnp.zeros(0)
    return _solve_rq(M, eps)


def add_two_terminal(M: Array, i: int, j: int, g) -> Array:
    """Stamp a two-terminal admittance g between nodes i and j."""
    if i >= 0:
        M = M.at[i, i].add(g)
        if j >= 0:
            M = M.at[i, j].add(-g)
            M = M.at[j, i].add(-g)
            M = M.at[j, j].add(g)
    elif j >= 0:
        M = M.at[j, j].add(g)
    return M


def add_entry(M: Array, i: int, j: int, v) -> Array:
    """Add v to M[i, j] unless either index is ground."""
    if i >= 0 and j >= 0:
        M = M.at[i, j].add(v)
    return M


def add_to_vector(x: Array, i: int, v) -> Array:
    """Add v to x[i] unless i is ground."""
    if i >= 0:
        x = x.at[i].add(v)
    return x


def two_terminal_value(x: Array, i: int, j: int):
    """Return x[i] - x[j], with ground at zero."""
    value = 0.0
    if i >= 0:
        value = x[i]
    if j >= 0:
        value = value - x[j]
    return value
