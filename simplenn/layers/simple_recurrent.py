# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np

from ..config import LayerType
from ..relevance import calculate_relevance_of_array, relevance_partition1, relevance_partition2
from ..units import AugmentedArray, RecurrentLayerUnit
from ..utils import sparse_dot
from .base import LayerStructure


class SimpleRecurrentLayerStructure(LayerStructure):
    """y = g(W x + b + Wr y_prev)"""

    connection_type = LayerType.Connection.SIMPLE_RECURRENT

    def __init__(self, params, activation=None, **kwargs) -> None:
        super().__init__(params, activation=activation, **kwargs)
        self.unit = RecurrentLayerUnit(self.output_size)
        self._output_unit = AugmentedArray(self.output_size, activation)

    @property
    def output_unit(self) -> AugmentedArray:
        return self._output_unit

    def _forward(self) -> None:
        self.unit.forward(self.params.unit, self.x, self.y_prev)
        self.output_unit.assign_values(self.unit.values)
        self.output_unit.activate()

    def _backward(self, errors, params_errors) -> None:
        self.unit.errors = self.output_unit.backward_activation(errors)
        self.unit.assign_params_gradients(params_errors.unit, self.x, self.y_prev)

    def _input_errors(self) -> np.ndarray:
        return self.params.unit.weights.values.T @ self.unit.errors

    def recurrent_errors(self) -> np.ndarray:
        return self.params.unit.recurrent_weights.values.T @ self.unit.errors

    def _relevance(self, relevance):
        y = self.unit.values
        contributions = self.unit.contributions(self.params.unit, self.x)
        if self.y_prev is None:
            return calculate_relevance_of_array(self.x, y, relevance, contributions), None

        y_input = sparse_dot(self.params.unit.weights.values, self.x) + self.params.unit.biases.values
        y_recurrent = self.params.unit.recurrent_weights.values @ self.y_prev

        input_relevance = calculate_relevance_of_array(
            self.x, y_input, relevance_partition1(relevance, y, y_input, y_recurrent), contributions
        )
        prev_relevance = calculate_relevance_of_array(
            self.y_prev,
            y_recurrent,
            relevance_partition2(relevance, y, y_recurrent),
            self.unit.recurrent_contributions(self.params.unit, self.y_prev),
        )
        return input_relevance, prev_relevance
