# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging

import numpy as np
import pytest

from simplenn.config import LayerType
from simplenn.losses import MSECalculator
from simplenn.network import feedforward_network, recurrent_network
from simplenn.optimizer import ParamsErrorsAccumulator, ParamsOptimizer
from simplenn.parameters import FixedRangeRandom
from simplenn.processors import FeedforwardNeuralProcessor, RecurrentNeuralProcessor
from simplenn.updatemethods import AdaGradMethod, LearningRateMethod, NesterovMomentumMethod
from simplenn.utils import sparse_binary


def _gradients(network, seed):
    grads = network.parameters_errors_factory()
    rng = np.random.default_rng(seed=seed)
    for array in grads:
        array.values[...] = rng.normal(size=array.shape)
    return grads


def test_accumulator_idempotence():
    network = recurrent_network(3, 4, 2, connection_type=LayerType.Connection.CFN)
    grads = _gradients(network, seed=1)

    twice = ParamsErrorsAccumulator(network.parameters_errors_factory)
    twice.accumulate(grads)
    twice.accumulate(grads)
    twice.average_errors()

    once = ParamsErrorsAccumulator(network.parameters_errors_factory)
    once.accumulate(grads)

    assert twice.count == 2 and once.count == 1
    for a, b in zip(twice.get_params_errors(), once.get_params_errors()):
        np.testing.assert_allclose(a.values, b.values)


def test_accumulator_copies_then_sums():
    network = feedforward_network(3, [4], 2)
    a, b = _gradients(network, seed=2), _gradients(network, seed=3)
    accumulator = ParamsErrorsAccumulator(network.parameters_errors_factory)
    accumulator.accumulate(a)
    accumulator.accumulate(b)

    for acc, x, y in zip(accumulator.get_params_errors(), a, b):
        np.testing.assert_allclose(acc.values, x.values + y.values)

    # the first accumulated container is not aliased
    next(iter(a)).values[...] = 0.0
    assert np.any(next(iter(accumulator.get_params_errors())).values != 0.0)


def test_accumulator_reset_and_empty():
    network = feedforward_network(3, [4], 2)
    accumulator = ParamsErrorsAccumulator(network.parameters_errors_factory)
    assert accumulator.is_empty
    accumulator.average_errors()
    for array in accumulator.get_params_errors():
        np.testing.assert_array_equal(array.values, 0.0)

    accumulator.accumulate(_gradients(network, seed=4))
    accumulator.reset()
    assert accumulator.is_empty
    assert accumulator.get_params_errors() is not accumulator.params_errors


def test_accumulator_structure_mismatch():
    accumulator = ParamsErrorsAccumulator(feedforward_network(3, [4], 2).parameters_errors_factory)
    with pytest.raises(ValueError):
        accumulator.accumulate(feedforward_network(3, [5], 2).parameters_errors_factory())


def test_optimizer_applies_average_and_resets():
    network = feedforward_network(3, [4], 2).initialize()
    before = network.model.copy()
    a, b = _gradients(network, seed=5), _gradients(network, seed=6)

    optimizer = ParamsOptimizer(network.model, LearningRateMethod(learning_rate=1.0), network.parameters_errors_factory)
    optimizer.accumulate(a)
    optimizer.accumulate(b)
    optimizer.update()

    for w, w0, x, y in zip(network.model, before, a, b):
        np.testing.assert_allclose(w.values, w0.values - (x.values + y.values) / 2)
    assert optimizer.accumulator.is_empty


def test_optimizer_update_without_errors_warns(caplog):
    network = feedforward_network(3, [4], 2).initialize()
    before = network.model.copy()
    optimizer = ParamsOptimizer(network.model, AdaGradMethod())

    with caplog.at_level(logging.WARNING, logger="simplenn.optimizer"):
        optimizer.update()
    assert "no accumulated" in caplog.text
    for w, w0 in zip(network.model, before):
        np.testing.assert_array_equal(w.values, w0.values)


def test_training_reduces_loss():
    network = feedforward_network(2, [8], 1, hidden_activation="tanh").initialize(FixedRangeRandom(radius=0.5))
    processor = FeedforwardNeuralProcessor(network)
    optimizer = ParamsOptimizer(network.model, AdaGradMethod(learning_rate=0.1), network.parameters_errors_factory)
    loss = MSECalculator()
    data = [(np.array([0.0, 0.0]), [0.0]), (np.array([0.0, 1.0]), [1.0]),
            (np.array([1.0, 0.0]), [1.0]), (np.array([1.0, 1.0]), [0.0])]

    def epoch_loss():
        return sum(loss.calculate_loss(processor.forward(x), g) for x, g in data)

    start = epoch_loss()
    for _ in range(200):
        for x, gold in data:
            processor.forward(x)
            processor.backward(loss.calculate_errors(processor.get_output(), gold))
            optimizer.accumulate(processor.get_params_errors(copy=False))
        optimizer.update()
        optimizer.new_epoch()
    assert epoch_loss() < start


def test_sparse_training_only_touches_active_columns():
    network = recurrent_network(6, 3, 2, input_type=LayerType.Input.SPARSE_BINARY).initialize()
    before = network.model.copy()
    processor = RecurrentNeuralProcessor(network)
    optimizer = ParamsOptimizer(network.model, AdaGradMethod(learning_rate=0.1), network.parameters_errors_factory)

    processor.forward([sparse_binary([1], 6), sparse_binary([4], 6)])
    processor.backward([np.ones(2), np.ones(2)])
    optimizer.accumulate(processor.get_params_errors(copy=False))
    optimizer.update()

    weights = network.model[0].input_gate.weights.values
    weights0 = before[0].input_gate.weights.values
    np.testing.assert_array_equal(weights[:, [0, 2, 3, 5]], weights0[:, [0, 2, 3, 5]])
    assert np.any(weights[:, [1, 4]] != weights0[:, [1, 4]])


def test_default_optimizer_keeps_sparse_gradients():
    network = recurrent_network(6, 3, 2, input_type=LayerType.Input.SPARSE_BINARY).initialize()
    processor = RecurrentNeuralProcessor(network)
    optimizer = ParamsOptimizer(network.model, NesterovMomentumMethod(learning_rate=0.1))

    def train_on(column):
        processor.forward([sparse_binary([column], 6)])
        processor.backward([np.ones(2)])
        optimizer.accumulate(processor.get_params_errors(copy=False))
        optimizer.update()

    train_on(1)
    train_on(1)
    before = network.model[0].input_gate.weights.values.copy()
    train_on(4)
    after = network.model[0].input_gate.weights.values

    np.testing.assert_array_equal(after[:, [0, 1, 2, 3, 5]], before[:, [0, 1, 2, 3, 5]])
    assert np.any(after[:, 4] != before[:, 4])
