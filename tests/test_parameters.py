# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np
import pytest
import scipy.sparse as sp

from simplenn.config import LayerConfiguration, LayerType
from simplenn.parameters import (
    FixedRangeRandom,
    NetworkParameters,
    ParamsArray,
    layer_parameters_factory,
)

EXPECTED_ORDER = {
    LayerType.Connection.FEEDFORWARD: ["unit.weights", "unit.biases"],
    LayerType.Connection.SIMPLE_RECURRENT: ["unit.weights", "unit.biases", "unit.recurrent_weights"],
    LayerType.Connection.CFN: [
        "input_gate.weights",
        "input_gate.biases",
        "input_gate.recurrent_weights",
        "forget_gate.weights",
        "forget_gate.biases",
        "forget_gate.recurrent_weights",
        "candidate.weights",
    ],
    LayerType.Connection.GRU: [
        "reset_gate.weights",
        "reset_gate.biases",
        "reset_gate.recurrent_weights",
        "partition_gate.weights",
        "partition_gate.biases",
        "partition_gate.recurrent_weights",
        "candidate.weights",
        "candidate.biases",
        "candidate.recurrent_weights",
    ],
    LayerType.Connection.RAN: [
        "input_gate.weights",
        "input_gate.biases",
        "input_gate.recurrent_weights",
        "forget_gate.weights",
        "forget_gate.biases",
        "forget_gate.recurrent_weights",
        "candidate.weights",
        "candidate.biases",
    ],
}


@pytest.mark.parametrize("connection_type", list(LayerType.Connection))
def test_iteration_order_and_shapes(connection_type):
    params = layer_parameters_factory(3, 4, connection_type)
    assert [p.name for p in params] == EXPECTED_ORDER[connection_type]
    for p in params:
        if p.kind == ParamsArray.WEIGHTS:
            assert p.shape == (4, 3)
        elif p.kind == ParamsArray.BIASES:
            assert p.shape == (4,)
        else:
            assert p.shape == (4, 4)


def test_uids_are_unique_and_stable():
    params = layer_parameters_factory(3, 4, LayerType.Connection.GRU)
    uids = [p.uid for p in params]
    assert len(set(uids)) == len(uids)

    params.initialize(FixedRangeRandom())
    assert [p.uid for p in params] == uids

    clone = params.copy()
    assert not set(p.uid for p in clone) & set(uids)


@pytest.mark.parametrize("connection_type", list(LayerType.Connection))
def test_initialize(connection_type):
    params = layer_parameters_factory(5, 6, connection_type)
    params.initialize(FixedRangeRandom(radius=0.1), biases_init_value=0.25)
    for p in params:
        if p.kind == ParamsArray.BIASES:
            np.testing.assert_array_equal(p.values, 0.25)
        else:
            assert np.all(np.abs(p.values) <= 0.1)
            assert np.any(p.values != 0.0)


def test_initialize_sparse_input_fails():
    params = layer_parameters_factory(5, 6, LayerType.Connection.RAN, sparse_input=True)
    assert params.params_list[0].is_sparse
    with pytest.raises(ValueError):
        params.initialize(FixedRangeRandom())


def test_fixed_range_random_is_reproducible():
    a = np.zeros((3, 4))
    b = np.zeros((3, 4))
    FixedRangeRandom(seed=1).randomize(a)
    FixedRangeRandom(seed=1).randomize(b)
    np.testing.assert_array_equal(a, b)

    r = FixedRangeRandom(radius=2.0)
    assert all(-2.0 <= r.next() <= 2.0 for _ in range(100))


def test_params_array_sparse_sum_and_div():
    array = ParamsArray.zeros("w", ParamsArray.WEIGHTS, (3, 4), sparse=True)
    array.assign_values(sp.csc_matrix(([1.0], ([0], [1])), shape=(3, 4)))
    array.assign_sum(sp.csc_matrix(([3.0, 2.0], ([0, 2], [1, 3])), shape=(3, 4)))
    array.assign_div(2.0)

    assert array.is_sparse
    expected = np.zeros((3, 4))
    expected[0, 1] = 2.0
    expected[2, 3] = 1.0
    np.testing.assert_allclose(array.values.toarray(), expected)

    array.assign_zeros()
    assert array.values.nnz == 0


def test_params_array_dense_from_sparse():
    array = ParamsArray.zeros("w", ParamsArray.WEIGHTS, (2, 2))
    array.assign_sum(sp.csc_matrix(np.eye(2)))
    array.assign_sum(np.ones((2, 2)))
    np.testing.assert_allclose(array.values, [[2.0, 1.0], [1.0, 2.0]])

    with pytest.raises(ValueError):
        array.assign_values(np.ones(3))


def _configuration():
    return [
        LayerConfiguration(size=3),
        LayerConfiguration(size=4, activation="tanh", connection_type=LayerType.Connection.GRU),
        LayerConfiguration(size=2, connection_type=LayerType.Connection.FEEDFORWARD),
    ]


def test_network_parameters_copy_is_independent():
    params = NetworkParameters(_configuration())
    params.initialize(FixedRangeRandom(), biases_init_value=0.1)
    clone = params.copy()
    assert clone.structure == params.structure
    assert len(clone) == len(params) == 9 + 2

    for a, b in zip(clone, params):
        np.testing.assert_array_equal(a.values, b.values)
    next(iter(clone)).values[0, 0] += 1.0
    assert next(iter(clone)).values[0, 0] != next(iter(params)).values[0, 0]


def test_network_parameters_only_input_weights_are_sparse():
    params = NetworkParameters(_configuration(), sparse_input=True)
    sparse_names = [p.name for p in params if p.is_sparse]
    assert sparse_names == ["reset_gate.weights", "partition_gate.weights", "candidate.weights"]


def test_network_parameters_incompatible():
    params = NetworkParameters(_configuration())
    other = NetworkParameters(
        [
            LayerConfiguration(size=3),
            LayerConfiguration(size=4, connection_type=LayerType.Connection.RAN),
            LayerConfiguration(size=2, connection_type=LayerType.Connection.FEEDFORWARD),
        ]
    )
    with pytest.raises(ValueError):
        params.assign_sum(other)
