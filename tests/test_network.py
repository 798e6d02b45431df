# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np
import pytest

from simplenn.activations import Tanh
from simplenn.config import LayerConfiguration, LayerType
from simplenn.network import NetworkStructure, NeuralNetwork, feedforward_network, recurrent_network
from simplenn.parameters import FixedRangeRandom


def test_configuration_requires_input_and_layer():
    with pytest.raises(ValueError):
        NeuralNetwork([LayerConfiguration(size=3)])


def test_input_configuration_has_no_connection():
    with pytest.raises(ValueError):
        NeuralNetwork(
            [
                LayerConfiguration(size=3, connection_type=LayerType.Connection.FEEDFORWARD),
                LayerConfiguration(size=2, connection_type=LayerType.Connection.FEEDFORWARD),
            ]
        )


def test_layer_configuration_needs_connection():
    with pytest.raises(ValueError):
        NeuralNetwork([LayerConfiguration(size=3), LayerConfiguration(size=2)])


def test_sparse_input_with_activation():
    with pytest.raises(ValueError):
        NeuralNetwork(
            [
                LayerConfiguration(size=3, input_type=LayerType.Input.SPARSE_BINARY, activation="tanh"),
                LayerConfiguration(size=2, connection_type=LayerType.Connection.FEEDFORWARD),
            ]
        )


def test_hidden_layer_cannot_be_sparse():
    with pytest.raises(ValueError):
        NeuralNetwork(
            [
                LayerConfiguration(size=3),
                LayerConfiguration(
                    size=2,
                    input_type=LayerType.Input.SPARSE_BINARY,
                    connection_type=LayerType.Connection.FEEDFORWARD,
                ),
            ]
        )


@pytest.mark.parametrize("kwargs", [{"size": 0}, {"size": 3, "dropout": 1.0}, {"size": 3, "dropout": -0.1}])
def test_invalid_layer_configuration(kwargs):
    with pytest.raises(ValueError):
        LayerConfiguration(**kwargs)


def test_activation_by_name():
    conf = LayerConfiguration(size=3, activation="tanh")
    assert isinstance(conf.activation, Tanh)
    with pytest.raises(KeyError):
        LayerConfiguration(size=3, activation="gelu")


def test_factories():
    network = recurrent_network(5, 4, 2, input_type=LayerType.Input.SPARSE_BINARY)
    assert network.sparse_input
    assert network.is_recurrent
    assert network.num_layers == 2
    assert not any(p.is_sparse for p in network.parameters_factory())
    assert [p.name for p in network.parameters_errors_factory() if p.is_sparse] == [
        "input_gate.weights",
        "forget_gate.weights",
        "candidate.weights",
    ]
    assert network.parameters_errors_factory().structure == network.model.structure


def test_initialize_returns_network():
    network = feedforward_network(3, [4, 4], 2)
    assert network.initialize(FixedRangeRandom(seed=5), biases_init_value=0.5) is network
    assert not network.is_recurrent
    for layer_params in network.model.params_per_layer:
        np.testing.assert_array_equal(layer_params.unit.biases.values, 0.5)


def test_network_structure_chains_layers():
    network = feedforward_network(3, [4], 2, hidden_activation="tanh").initialize()
    structure = NetworkStructure(network)
    x = np.array([0.1, -0.2, 0.3])
    structure.forward(x)

    hidden, output = network.model[0].unit, network.model[1].unit
    h = np.tanh(hidden.weights.values @ x + hidden.biases.values)
    y = output.weights.values @ h + output.biases.values
    np.testing.assert_allclose(structure.output_unit.values, y)

    grads = network.parameters_errors_factory()
    structure.backward(np.ones(2), grads)
    np.testing.assert_allclose(grads[1].unit.weights.values, np.outer(np.ones(2), h))
    np.testing.assert_allclose(
        structure.layers[0].output_unit.errors, output.weights.values.T @ np.ones(2)
    )


def test_dropout():
    network = feedforward_network(20, [4], 2, dropout=0.5).initialize()
    structure = NetworkStructure(network)
    x = np.ones(20)

    structure.forward(x, use_dropout=False)
    assert structure.layers[0].dropout_mask is None
    y = structure.output_unit.values.copy()

    structure.forward(x, use_dropout=True)
    mask = structure.layers[0].dropout_mask
    assert set(np.unique(mask)) <= {0.0, 2.0}

    grads = network.parameters_errors_factory()
    structure.backward(np.ones(2), grads, propagate_to_input=True)
    np.testing.assert_array_equal(structure.input_unit.errors[mask == 0.0], 0.0)

    structure.forward(x)
    np.testing.assert_allclose(structure.output_unit.values, y)
