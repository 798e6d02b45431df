# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

from typing import Iterable, Tuple

import numpy as np
import scipy.sparse as sp


def is_sparse(x) -> bool:
    """Return True if x is a scipy sparse matrix/array."""
    return sp.issparse(x)


def sparse_binary(active_indices: Iterable[int], size: int) -> sp.csc_matrix:
    """
    Build a sparse-binary column vector of shape (size, 1) with ones on the
    given rows.
    """
    rows = np.unique(np.asarray(list(active_indices), dtype=int))
    if rows.size and (rows[0] < 0 or rows[-1] >= size):
        raise ValueError(f"Active indices out of range for size {size}")
    data = np.ones(rows.size)
    cols = np.zeros(rows.size, dtype=int)
    return sp.csc_matrix((data, (rows, cols)), shape=(size, 1))


def _single_column(x) -> sp.coo_matrix:
    if not sp.issparse(x):
        raise TypeError(f"Expected a sparse array, got {type(x).__name__}")
    coo = sp.coo_matrix(x)
    if coo.shape[1] != 1:
        # only single-column sparse vectors are supported end-to-end
        raise ValueError(f"Sparse input must be a column vector, got shape {coo.shape}")
    coo.sum_duplicates()
    return coo


def active_indices(x) -> np.ndarray:
    """Row indices of the stored entries of a sparse column vector."""
    return _single_column(x).row


def sparse_column(x) -> Tuple[np.ndarray, np.ndarray]:
    """Return (rows, values) of the stored entries of a sparse column vector."""
    coo = _single_column(x)
    return coo.row, coo.data


def input_length(x) -> int:
    """
    Number of input features of a dense vector or a sparse column vector.

    Raises:
        ValueError: If a dense x is not 1-D.
    """
    if sp.issparse(x):
        return x.shape[0]
    shape = np.shape(x)
    if len(shape) != 1:
        raise ValueError(f"Expected a 1-D vector, got shape {shape}")
    return shape[0]


def sparse_dot(w: np.ndarray, x) -> np.ndarray:
    """
    Dense matrix (m, n) times input vector x.

    x is either a dense (n,) ndarray or a sparse (n, 1) column; the result is
    always a dense (m,) vector.
    """
    if sp.issparse(x):
        rows, vals = sparse_column(x)
        return w[:, rows] @ vals
    return w @ x


def sparse_outer(errors: np.ndarray, x) -> sp.csc_matrix:
    """
    Outer product errors ⊗ xᵀ for a sparse column x.

    Returns a sparse (m, n) matrix whose non-zero columns are the active
    rows of x.
    """
    rows, vals = sparse_column(x)
    m, n = errors.shape[0], x.shape[0]
    data = np.outer(errors, vals).ravel()
    r = np.repeat(np.arange(m), rows.size)
    c = np.tile(rows, m)
    return sp.csc_matrix((data, (r, c)), shape=(m, n))


def sparse_entries(errors, shape: Tuple[int, ...]) -> Tuple[Tuple[np.ndarray, ...], np.ndarray]:
    """
    Index tuple and values of the non-zero entries of a sparse errors array,
    addressed for a dense array of the given shape (1-D or 2-D). Explicitly
    stored zeros are dropped.
    """
    coo = sp.coo_matrix(errors, copy=True)
    coo.sum_duplicates()
    coo.eliminate_zeros()
    if len(shape) == 1:
        if coo.shape == (shape[0], 1):
            return (coo.row,), coo.data
        if coo.shape == (1, shape[0]):
            return (coo.col,), coo.data
    elif coo.shape == tuple(shape):
        return (coo.row, coo.col), coo.data
    raise ValueError(f"Sparse errors of shape {coo.shape} do not match array shape {shape}")


def non_zero_sign(x: np.ndarray) -> np.ndarray:
    """Elementwise sign where zero counts as positive: +1 for x >= 0, -1 otherwise."""
    return np.where(x < 0.0, -1.0, 1.0)
