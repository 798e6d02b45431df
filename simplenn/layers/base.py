# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Common machinery of the layer structures.

A layer structure computes one layer at one time step. It owns its units
(input, gates, candidate, output), reads the shared LayerParameters and
reaches the same layer at the adjacent time steps through its context
window. The lifecycle is:

    set_input -> forward -> backward
                        \\-> calculate_relevance

backward and calculate_relevance before forward raise RuntimeError.
"""

from enum import Enum
from typing import Optional

import numpy as np

from ..activations import ActivationFunction
from ..context import EmptyContextWindow, LayerContextWindow
from ..parameters import LayerParameters
from ..units import AugmentedArray


class LayerState(Enum):
    UNINITIALIZED = "uninitialized"
    FORWARDED = "forwarded"
    BACKWARDED = "backwarded"


class LayerStructure:
    """
    Base class of the per-architecture layer structures.

    Subclasses implement `_forward`, `_backward`, `_input_errors`,
    `recurrent_errors` and `_relevance`.

    Args:
        params: The shared parameters of the layer.
        activation: The configured activation of the layer.
        input_activation: Activation applied to the input values when they
            are set (used for the network input only).
        dropout: Probability of dropping an input value when forwarding with
            use_dropout.
        context_window: Access to the adjacent time steps.
        random_generator: numpy Generator drawing the dropout masks.
    """

    def __init__(
        self,
        params: LayerParameters,
        activation: Optional[ActivationFunction] = None,
        input_activation: Optional[ActivationFunction] = None,
        dropout: float = 0.0,
        context_window: Optional[LayerContextWindow] = None,
        random_generator: Optional[np.random.Generator] = None,
    ) -> None:
        self.params = params
        self.input_size = params.input_size
        self.output_size = params.output_size
        self.activation = activation
        self.dropout = dropout
        self.context_window = context_window or EmptyContextWindow()
        self.random_generator = random_generator or np.random.default_rng()

        self.input_unit = AugmentedArray(self.input_size, input_activation)
        self.state = LayerState.UNINITIALIZED
        self.recurrent_relevance: Optional[np.ndarray] = None
        self._has_input = False
        self._dropout_mask: Optional[np.ndarray] = None
        self._x = None
        self._y_prev: Optional[np.ndarray] = None

    @property
    def output_unit(self) -> AugmentedArray:
        raise NotImplementedError

    @property
    def x(self):
        """The input values used by the forward pass (after dropout)."""
        return self._x

    @property
    def dropout_mask(self) -> Optional[np.ndarray]:
        """The inverted dropout mask of the last forward, None without dropout."""
        return self._dropout_mask

    @property
    def y_prev(self) -> Optional[np.ndarray]:
        """The output of this layer at the previous time step, if any."""
        return self._y_prev

    def set_input(self, x) -> None:
        self.input_unit.assign_values(x)
        self.input_unit.activate()
        self._has_input = True
        self.state = LayerState.UNINITIALIZED

    def forward(self, use_dropout: bool = False) -> None:
        if not self._has_input:
            raise RuntimeError("forward called before set_input")

        self._x = self.input_unit.values
        self._dropout_mask = None
        if use_dropout and self.dropout > 0.0 and not self.input_unit.is_sparse:
            keep = 1.0 - self.dropout
            self._dropout_mask = self.random_generator.binomial(1, keep, size=self.input_size) / keep
            self._x = self._x * self._dropout_mask

        prev_layer = self.context_window.get_prev_state_layer()
        self._y_prev = prev_layer.output_unit.values if prev_layer is not None else None

        self._forward()
        self.recurrent_relevance = None
        self.state = LayerState.FORWARDED

    def backward(self, params_errors: LayerParameters, propagate_to_input: bool = False) -> None:
        """
        Backpropagate the output errors into params_errors.

        The errors of the output unit must be set by the caller. The recurrent
        contribution of the next time step (when already backwarded) is added
        to them first. Gradients in params_errors are overwritten.

        Raises:
            RuntimeError: If the layer has not been forwarded.
            ValueError: If propagate_to_input is requested for a sparse input.
        """
        if self.state is not LayerState.FORWARDED:
            raise RuntimeError(f"backward called in state {self.state.name}")
        if propagate_to_input and self.input_unit.is_sparse:
            raise ValueError("Input errors are not defined for a sparse input")

        errors = self.output_unit.errors
        next_layer = self.context_window.get_next_state_layer()
        if next_layer is not None and next_layer.state is LayerState.BACKWARDED:
            errors = errors + next_layer.recurrent_errors()

        self._backward(errors, params_errors)

        if propagate_to_input:
            gx = self.input_unit.backward_activation(self._input_errors())
            if self._dropout_mask is not None:
                gx = gx * self._dropout_mask
            self.input_unit.errors = gx

        self.state = LayerState.BACKWARDED

    def calculate_relevance(self, output_relevance: np.ndarray) -> None:
        """
        Distribute output_relevance (plus the relevance flowing back from the
        next time step) onto the input unit and the previous output.

        Raises:
            RuntimeError: If the layer has not been forwarded.
        """
        if self.state is LayerState.UNINITIALIZED:
            raise RuntimeError("calculate_relevance called before forward")

        relevance = np.asarray(output_relevance, dtype=float)
        next_layer = self.context_window.get_next_state_layer()
        if next_layer is not None and next_layer.recurrent_relevance is not None:
            relevance = relevance + next_layer.recurrent_relevance

        self.output_unit.relevance = relevance
        self.input_unit.relevance, self.recurrent_relevance = self._relevance(relevance)

    def clear_relevance(self) -> None:
        self.input_unit.relevance = None
        self.output_unit.relevance = None
        self.recurrent_relevance = None

    def recurrent_errors(self) -> np.ndarray:
        """Errors this step propagates onto the output of the previous step."""
        return np.zeros(self.output_size)

    def _forward(self) -> None:
        raise NotImplementedError

    def _backward(self, errors: np.ndarray, params_errors: LayerParameters) -> None:
        raise NotImplementedError

    def _input_errors(self) -> np.ndarray:
        raise NotImplementedError

    def _relevance(self, relevance: np.ndarray):
        """Return (input relevance, previous output relevance or None)."""
        raise NotImplementedError
