# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging

import numpy as np
import pytest
import scipy.sparse as sp

from simplenn.activations import Tanh
from simplenn.layers import FeedforwardLayerStructure
from simplenn.parameters import FeedforwardLayerParameters, FixedRangeRandom
from simplenn.relevance import (
    RELEVANCE_EPS,
    calculate_relevance_of_array,
    normalize_relevance,
    relevance_partition1,
    relevance_partition2,
)
from simplenn.utils import sparse_binary

TEST_ITERATIONS = 20
logger = logging.getLogger(__name__)


def test_partition_law():
    rng = np.random.default_rng(seed=3)
    for _ in range(TEST_ITERATIONS):
        c1 = rng.normal(size=8)
        c2 = rng.normal(size=8)
        y = c1 + c2
        y_relevance = rng.normal(size=8)

        p1 = relevance_partition1(y_relevance, y, c1, c2)
        p2 = relevance_partition2(y_relevance, y, c2)
        logger.debug("p1=%s p2=%s", p1, p2)
        np.testing.assert_allclose(p1 + p2, y_relevance, rtol=1e-10, atol=1e-12)


def test_dense_relevance_formula():
    rng = np.random.default_rng(seed=5)
    w = rng.normal(size=(3, 4))
    x = rng.normal(size=4)
    y = w @ x
    y_relevance = np.array([0.2, 0.5, 0.3])

    relevance = calculate_relevance_of_array(x, y, y_relevance, w * x)

    eps = np.where(y < 0.0, -RELEVANCE_EPS, RELEVANCE_EPS)
    expected = np.zeros(4)
    for i in range(4):
        for j in range(3):
            expected[i] += y_relevance[j] * (w[j, i] * x[i] + eps[j] / 4) / (y[j] + eps[j])
    np.testing.assert_allclose(relevance, expected)
    assert np.isclose(relevance.sum(), 1.0)


def test_sparse_relevance_uses_active_rows_only():
    rng = np.random.default_rng(seed=7)
    w = rng.normal(size=(3, 6))
    x = sparse_binary([0, 3, 5], 6)
    rows = [0, 3, 5]
    y = w[:, rows].sum(axis=1)
    y_relevance = np.array([0.1, 0.6, 0.3])
    contributions = sp.csc_matrix(w * x.toarray().ravel())

    relevance = calculate_relevance_of_array(x, y, y_relevance, contributions)
    assert sp.issparse(relevance)
    assert relevance.shape == (6, 1)

    dense = relevance.toarray().ravel()
    np.testing.assert_array_equal(dense[[1, 2, 4]], 0.0)
    expected = calculate_relevance_of_array(np.ones(3), y, y_relevance, w[:, rows])
    np.testing.assert_allclose(dense[rows], expected)


def test_unsupported_array_type():
    with pytest.raises(TypeError):
        calculate_relevance_of_array([1.0, 2.0], np.ones(2), np.ones(2), np.ones((2, 2)))


def test_multi_column_sparse_input_is_rejected():
    x = sp.csc_matrix(np.ones((4, 2)))
    with pytest.raises(ValueError):
        calculate_relevance_of_array(x, np.ones(3), np.ones(3), sp.csc_matrix((3, 4)))


def test_normalize_relevance():
    np.testing.assert_allclose(normalize_relevance([1.0, -3.0]), [0.25, -0.75])
    np.testing.assert_array_equal(normalize_relevance(np.zeros(3)), 0.0)


def _feedforward_layer(sparse_input):
    params = FeedforwardLayerParameters(6, 4)
    params.initialize(FixedRangeRandom(radius=1.0, seed=11), biases_init_value=0.0)
    layer = FeedforwardLayerStructure(params, activation=Tanh())
    x = sparse_binary([1, 2, 5], 6) if sparse_input else np.linspace(-1.0, 1.0, 6)
    layer.set_input(x)
    layer.forward()
    return layer


@pytest.mark.parametrize("sparse_input", [False, True])
def test_zero_bias_layer_relevance_sums_to_one(sparse_input):
    layer = _feedforward_layer(sparse_input)
    layer.calculate_relevance(normalize_relevance([0.1, 0.4, 0.2, 0.3]))

    relevance = layer.input_unit.relevance
    assert sp.issparse(relevance) == sparse_input
    total = relevance.sum()
    logger.debug("input relevance total: %s", total)
    assert np.isclose(total, 1.0)
    assert layer.recurrent_relevance is None


def test_relevance_before_forward():
    params = FeedforwardLayerParameters(2, 2)
    layer = FeedforwardLayerStructure(params)
    with pytest.raises(RuntimeError):
        layer.calculate_relevance(np.ones(2))
