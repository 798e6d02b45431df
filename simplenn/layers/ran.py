# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Recurrent Additive Network layer.

    i = sigmoid(Wi x + bi + Wir y_prev)
    f = sigmoid(Wf x + bf + Wfr y_prev)
    c = Wc x + bc
    y = g(i * c + f * y_prev)
"""

import numpy as np

from ..activations import Sigmoid
from ..config import LayerType
from ..relevance import calculate_relevance_of_array, relevance_partition1, relevance_partition2
from ..units import AugmentedArray, LayerUnit, RecurrentLayerUnit
from .base import LayerStructure


class RANLayerStructure(LayerStructure):
    connection_type = LayerType.Connection.RAN

    def __init__(self, params, activation=None, **kwargs) -> None:
        super().__init__(params, activation=activation, **kwargs)
        self.input_gate = RecurrentLayerUnit(self.output_size, Sigmoid())
        self.forget_gate = RecurrentLayerUnit(self.output_size, Sigmoid())
        self.candidate = LayerUnit(self.output_size)
        self._output_unit = AugmentedArray(self.output_size, activation)

    @property
    def output_unit(self) -> AugmentedArray:
        return self._output_unit

    def _forward(self) -> None:
        p = self.params
        self.input_gate.forward(p.input_gate, self.x, self.y_prev)
        self.forget_gate.forward(p.forget_gate, self.x, self.y_prev)
        self.candidate.forward(p.candidate, self.x)

        y = self.input_gate.values * self.candidate.values
        if self.y_prev is not None:
            y = y + self.forget_gate.values * self.y_prev
        self.output_unit.assign_values(y)
        self.output_unit.activate()

    def _backward(self, errors, params_errors) -> None:
        gy = self.output_unit.backward_activation(errors)
        self._gy = gy
        self.candidate.errors = gy * self.input_gate.values
        self.input_gate.errors = self.input_gate.backward_activation(gy * self.candidate.values)
        if self.y_prev is not None:
            self.forget_gate.errors = self.forget_gate.backward_activation(gy * self.y_prev)
        else:
            self.forget_gate.errors = np.zeros(self.output_size)

        self.input_gate.assign_params_gradients(params_errors.input_gate, self.x, self.y_prev)
        self.forget_gate.assign_params_gradients(params_errors.forget_gate, self.x, self.y_prev)
        self.candidate.assign_params_gradients(params_errors.candidate, self.x)

    def _input_errors(self) -> np.ndarray:
        p = self.params
        return (
            p.input_gate.weights.values.T @ self.input_gate.errors
            + p.forget_gate.weights.values.T @ self.forget_gate.errors
            + p.candidate.weights.values.T @ self.candidate.errors
        )

    def recurrent_errors(self) -> np.ndarray:
        p = self.params
        return (
            p.input_gate.recurrent_weights.values.T @ self.input_gate.errors
            + p.forget_gate.recurrent_weights.values.T @ self.forget_gate.errors
            + self.forget_gate.values * self._gy
        )

    def _relevance(self, relevance):
        x = self.x
        candidate = self.candidate.values
        contributions = self.candidate.contributions(self.params.candidate, x)
        if self.y_prev is None:
            return calculate_relevance_of_array(x, candidate, relevance, contributions), None

        y = self.output_unit.values_not_activated
        c1 = self.input_gate.values * candidate
        c2 = self.forget_gate.values * self.y_prev
        input_share = relevance_partition1(relevance, y, c1, c2)
        input_relevance = calculate_relevance_of_array(x, candidate, input_share, contributions)
        return input_relevance, relevance_partition2(relevance, y, c2)
