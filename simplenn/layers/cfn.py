# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Chaos Free Network layer.

    i = sigmoid(Wi x + bi + Wir y_prev)
    f = sigmoid(Wf x + bf + Wfr y_prev)
    c = g(Wc x)
    y = i * c + f * g(y_prev)

The candidate has no biases and the output is not activated.
"""

import numpy as np

from ..activations import Sigmoid
from ..config import LayerType
from ..relevance import calculate_relevance_of_array, relevance_partition1, relevance_partition2
from ..units import AugmentedArray, RecurrentLayerUnit, check_input, weight_contributions, weight_gradients
from ..utils import sparse_dot
from .base import LayerStructure


class CFNLayerStructure(LayerStructure):
    connection_type = LayerType.Connection.CFN

    def __init__(self, params, activation=None, **kwargs) -> None:
        super().__init__(params, activation=activation, **kwargs)
        self.input_gate = RecurrentLayerUnit(self.output_size, Sigmoid())
        self.forget_gate = RecurrentLayerUnit(self.output_size, Sigmoid())
        self.candidate = AugmentedArray(self.output_size, activation)
        self._output_unit = AugmentedArray(self.output_size)
        self._prev_activated = None

    @property
    def output_unit(self) -> AugmentedArray:
        return self._output_unit

    def _activate(self, values: np.ndarray) -> np.ndarray:
        return self.activation.f(values) if self.activation is not None else values

    def _forward(self) -> None:
        p = self.params
        self.input_gate.forward(p.input_gate, self.x, self.y_prev)
        self.forget_gate.forward(p.forget_gate, self.x, self.y_prev)

        check_input(p.candidate_weights.values, self.x)
        self.candidate.assign_values(sparse_dot(p.candidate_weights.values, self.x))
        self.candidate.activate()

        y = self.input_gate.values * self.candidate.values
        if self.y_prev is not None:
            self._prev_activated = self._activate(self.y_prev)
            y = y + self.forget_gate.values * self._prev_activated
        else:
            self._prev_activated = None
        self.output_unit.assign_values(y)

    def _backward(self, errors, params_errors) -> None:
        self._gy = errors
        self.candidate.errors = self.candidate.backward_activation(errors * self.input_gate.values)
        self.input_gate.errors = self.input_gate.backward_activation(errors * self.candidate.values)
        if self._prev_activated is not None:
            self.forget_gate.errors = self.forget_gate.backward_activation(errors * self._prev_activated)
        else:
            self.forget_gate.errors = np.zeros(self.output_size)

        self.input_gate.assign_params_gradients(params_errors.input_gate, self.x, self.y_prev)
        self.forget_gate.assign_params_gradients(params_errors.forget_gate, self.x, self.y_prev)
        params_errors.candidate_weights.assign_values(weight_gradients(self.candidate.errors, self.x))

    def _input_errors(self) -> np.ndarray:
        p = self.params
        return (
            p.input_gate.weights.values.T @ self.input_gate.errors
            + p.forget_gate.weights.values.T @ self.forget_gate.errors
            + p.candidate_weights.values.T @ self.candidate.errors
        )

    def recurrent_errors(self) -> np.ndarray:
        p = self.params
        errors = (
            p.input_gate.recurrent_weights.values.T @ self.input_gate.errors
            + p.forget_gate.recurrent_weights.values.T @ self.forget_gate.errors
        )
        if self._prev_activated is not None:
            through_forget = self._gy * self.forget_gate.values
            if self.activation is not None:
                through_forget = self.activation.backward(self._prev_activated, through_forget)
            errors = errors + through_forget
        return errors

    def _relevance(self, relevance):
        x = self.x
        w = self.params.candidate_weights.values
        candidate_in = sparse_dot(w, x)
        contributions = weight_contributions(w, x)
        if self.y_prev is None:
            return calculate_relevance_of_array(x, candidate_in, relevance, contributions), None

        y = self.output_unit.values
        c1 = self.input_gate.values * self.candidate.values
        c2 = self.forget_gate.values * self._prev_activated
        input_share = relevance_partition1(relevance, y, c1, c2)
        input_relevance = calculate_relevance_of_array(x, candidate_in, input_share, contributions)
        return input_relevance, relevance_partition2(relevance, y, c2)
