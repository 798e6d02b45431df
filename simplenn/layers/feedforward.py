# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np

from ..config import LayerType
from ..relevance import calculate_relevance_of_array
from ..units import AugmentedArray, LayerUnit
from .base import LayerStructure


class FeedforwardLayerStructure(LayerStructure):
    """y = g(W x + b)"""

    connection_type = LayerType.Connection.FEEDFORWARD

    def __init__(self, params, activation=None, **kwargs) -> None:
        super().__init__(params, activation=activation, **kwargs)
        self.unit = LayerUnit(self.output_size)
        self._output_unit = AugmentedArray(self.output_size, activation)

    @property
    def output_unit(self) -> AugmentedArray:
        return self._output_unit

    def _forward(self) -> None:
        self.unit.forward(self.params.unit, self.x)
        self.output_unit.assign_values(self.unit.values)
        self.output_unit.activate()

    def _backward(self, errors, params_errors) -> None:
        self.unit.errors = self.output_unit.backward_activation(errors)
        self.unit.assign_params_gradients(params_errors.unit, self.x)

    def _input_errors(self) -> np.ndarray:
        return self.params.unit.weights.values.T @ self.unit.errors

    def _relevance(self, relevance):
        contributions = self.unit.contributions(self.params.unit, self.x)
        return calculate_relevance_of_array(self.x, self.unit.values, relevance, contributions), None
