# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Gated Recurrent Unit layer.

    r = sigmoid(Wr x + br + Wrr y_prev)
    p = sigmoid(Wp x + bp + Wpr y_prev)
    c = g(Wc x + bc + Wcr (r * y_prev))
    y = p * c + (1 - p) * y_prev

At the first step y_prev is missing: the reset gate has no effect and
y = p * c.
"""

import numpy as np

from ..activations import Sigmoid
from ..config import LayerType
from ..relevance import calculate_relevance_of_array, relevance_partition1, relevance_partition2
from ..units import AugmentedArray, RecurrentLayerUnit
from ..utils import sparse_dot
from .base import LayerStructure


class GRULayerStructure(LayerStructure):
    connection_type = LayerType.Connection.GRU

    def __init__(self, params, activation=None, **kwargs) -> None:
        super().__init__(params, activation=activation, **kwargs)
        self.reset_gate = RecurrentLayerUnit(self.output_size, Sigmoid())
        self.partition_gate = RecurrentLayerUnit(self.output_size, Sigmoid())
        self.candidate = RecurrentLayerUnit(self.output_size, activation)
        self._output_unit = AugmentedArray(self.output_size)
        self._reset_prev = None

    @property
    def output_unit(self) -> AugmentedArray:
        return self._output_unit

    def _forward(self) -> None:
        p = self.params
        self.reset_gate.forward(p.reset_gate, self.x, self.y_prev)
        self.partition_gate.forward(p.partition_gate, self.x, self.y_prev)

        if self.y_prev is not None:
            self._reset_prev = self.reset_gate.values * self.y_prev
        else:
            self._reset_prev = None
        self.candidate.forward(p.candidate, self.x, self._reset_prev)

        y = self.partition_gate.values * self.candidate.values
        if self.y_prev is not None:
            y = y + (1.0 - self.partition_gate.values) * self.y_prev
        self.output_unit.assign_values(y)

    def _backward(self, errors, params_errors) -> None:
        p = self.params
        self._gy = errors
        partition = self.partition_gate.values
        self.candidate.errors = self.candidate.backward_activation(errors * partition)

        if self.y_prev is not None:
            reset_errors = (p.candidate.recurrent_weights.values.T @ self.candidate.errors) * self.y_prev
            self.reset_gate.errors = self.reset_gate.backward_activation(reset_errors)
            partition_errors = (self.candidate.values - self.y_prev) * errors
        else:
            self.reset_gate.errors = np.zeros(self.output_size)
            partition_errors = self.candidate.values * errors
        self.partition_gate.errors = self.partition_gate.backward_activation(partition_errors)

        self.reset_gate.assign_params_gradients(params_errors.reset_gate, self.x, self.y_prev)
        self.partition_gate.assign_params_gradients(params_errors.partition_gate, self.x, self.y_prev)
        self.candidate.assign_params_gradients(params_errors.candidate, self.x, self._reset_prev)

    def _input_errors(self) -> np.ndarray:
        p = self.params
        return (
            p.reset_gate.weights.values.T @ self.reset_gate.errors
            + p.partition_gate.weights.values.T @ self.partition_gate.errors
            + p.candidate.weights.values.T @ self.candidate.errors
        )

    def recurrent_errors(self) -> np.ndarray:
        p = self.params
        return (
            p.reset_gate.recurrent_weights.values.T @ self.reset_gate.errors
            + p.partition_gate.recurrent_weights.values.T @ self.partition_gate.errors
            + (p.candidate.recurrent_weights.values.T @ self.candidate.errors) * self.reset_gate.values
            + (1.0 - self.partition_gate.values) * self._gy
        )

    def _relevance(self, relevance):
        p = self.params
        x = self.x
        candidate_pre = self.candidate.values_not_activated
        contributions = self.candidate.contributions(p.candidate, x)
        if self.y_prev is None:
            return calculate_relevance_of_array(x, candidate_pre, relevance, contributions), None

        y = self.output_unit.values
        c1 = self.partition_gate.values * self.candidate.values
        c2 = (1.0 - self.partition_gate.values) * self.y_prev
        candidate_share = relevance_partition1(relevance, y, c1, c2)
        prev_share = relevance_partition2(relevance, y, c2)

        candidate_in = sparse_dot(p.candidate.weights.values, x) + p.candidate.biases.values
        candidate_rec = p.candidate.recurrent_weights.values @ self._reset_prev
        input_relevance = calculate_relevance_of_array(
            x,
            candidate_in,
            relevance_partition1(candidate_share, candidate_pre, candidate_in, candidate_rec),
            contributions,
        )
        prev_relevance = prev_share + calculate_relevance_of_array(
            self.y_prev,
            candidate_rec,
            relevance_partition2(candidate_share, candidate_pre, candidate_rec),
            self.candidate.recurrent_contributions(p.candidate, self._reset_prev),
        )
        return input_relevance, prev_relevance
