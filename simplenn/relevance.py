# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Layer-wise relevance propagation helpers.

Relevance of an output j is redistributed onto the inputs i in proportion
to their contributions:

    R_i = sum_j R_j * (C[j, i] + eps_j / n) / (y_j + eps_j)

where eps_j = +-RELEVANCE_EPS has the sign of y_j (zero counts as positive)
and n is the number of inputs taking part. The stabilizer keeps the ratio
finite when y_j is close to zero.
"""

import logging

import numpy as np
import scipy.sparse as sp

from .utils import active_indices, non_zero_sign

logger = logging.getLogger(__name__)

RELEVANCE_EPS: float = 0.01


def _stabilized(y: np.ndarray) -> np.ndarray:
    return non_zero_sign(y) * RELEVANCE_EPS


def calculate_relevance_of_array(x, y: np.ndarray, y_relevance: np.ndarray, contributions):
    """
    Distribute y_relevance onto the input x.

    Args:
        x: Dense (n,) input or sparse (n, 1) input column.
        y: The (m,) outputs the contributions sum to.
        y_relevance: The (m,) relevance of the outputs.
        contributions: (m, n) matrix of C[j, i], sparse for a sparse x.

    Returns:
        A dense (n,) relevance for a dense x. For a sparse x a sparse (n, 1)
        column with entries only on the active rows of x.

    Raises:
        TypeError: If x is neither a numpy array nor a scipy sparse matrix.
    """
    eps = _stabilized(y)
    denominator = (y + eps)[:, None]

    if sp.issparse(x):
        rows = active_indices(x)
        n = x.shape[0]
        if rows.size == 0:
            return sp.csc_matrix((n, 1))
        c = contributions[:, rows]
        if sp.issparse(c):
            c = c.toarray()
        values = ((c + (eps / rows.size)[:, None]) / denominator).T @ y_relevance
        return sp.csc_matrix((values, (rows, np.zeros(rows.size, dtype=int))), shape=(n, 1))

    if isinstance(x, np.ndarray):
        n = x.shape[0]
        return ((contributions + (eps / n)[:, None]) / denominator).T @ y_relevance

    raise TypeError(f"Unsupported array type for relevance: {type(x).__name__}")


def relevance_partition1(y_relevance: np.ndarray, y: np.ndarray, c1: np.ndarray, c2: np.ndarray) -> np.ndarray:
    """Share of y_relevance of the first of two contributions y = c1 + c2."""
    eps = _stabilized(c2)
    return y_relevance * (c1 + eps / 2.0) / (y + eps)


def relevance_partition2(y_relevance: np.ndarray, y: np.ndarray, c2: np.ndarray) -> np.ndarray:
    """Share of y_relevance of the second of two contributions y = c1 + c2."""
    eps = _stabilized(c2)
    return y_relevance * (c2 + eps / 2.0) / (y + eps)


def normalize_relevance(distribution) -> np.ndarray:
    """L1 normalization of an outcome distribution (zeros stay zeros)."""
    distribution = np.asarray(distribution, dtype=float)
    norm = np.abs(distribution).sum()
    if norm == 0.0:
        logger.debug("Relevance distribution is all zeros")
        return distribution.copy()
    return distribution / norm
