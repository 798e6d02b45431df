# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Activation units: the arrays flowing through a layer.

An AugmentedArray holds the values of a layer section together with the
errors and relevance propagated onto them. A LayerUnit also knows how to
compute its values from an input and a ParametersUnit, and how to write its
gradients into a gradient container.
"""

from typing import Optional

import numpy as np
import scipy.sparse as sp

from .activations import ActivationFunction
from .parameters import ParametersUnit, RecurrentParametersUnit
from .utils import input_length, sparse_column, sparse_dot, sparse_outer


def weight_gradients(errors: np.ndarray, x):
    """Outer product `errors ⊗ xᵀ`, sparse for a sparse x."""
    if sp.issparse(x):
        return sparse_outer(errors, x)
    return np.outer(errors, x)


def weight_contributions(w: np.ndarray, x):
    """
    Matrix of the contributions `w[j, i] * x[i]` of each input to each output.

    Sparse (with only the active columns stored) when x is sparse.
    """
    if sp.issparse(x):
        rows, vals = sparse_column(x)
        m, n = w.shape
        data = (w[:, rows] * vals).ravel(order="F")
        indices = np.tile(np.arange(m), rows.size)
        return sp.csc_matrix((data, (indices, np.repeat(rows, m))), shape=(m, n))
    return w * x


def check_input(w: np.ndarray, x) -> None:
    if input_length(x) != w.shape[1]:
        raise ValueError(f"Input of size {input_length(x)} does not match weights with {w.shape[1]} columns")


class AugmentedArray:
    """
    Values, not activated values, errors and relevance of a vector.

    Attributes:
        values: Activated values (equal to values_not_activated without an
            activation). A sparse column when it holds a sparse input.
        values_not_activated: Values before the activation.
        errors: Errors w.r.t. the values (set by the owner).
        relevance: Relevance assigned to the values, None until computed.
    """

    def __init__(self, size: int, activation: Optional[ActivationFunction] = None) -> None:
        self.size = size
        self.activation = activation
        self.values = np.zeros(size)
        self.values_not_activated = np.zeros(size)
        self.errors = np.zeros(size)
        self.relevance = None

    @property
    def has_activation(self) -> bool:
        return self.activation is not None

    @property
    def is_sparse(self) -> bool:
        return sp.issparse(self.values)

    def assign_values(self, values) -> None:
        """Set the not activated values (and the values) to a copy of `values`."""
        if input_length(values) != self.size:
            raise ValueError(f"Expected {self.size} values, got {input_length(values)}")
        if sp.issparse(values):
            self.values = values.copy()
            self.values_not_activated = self.values
        else:
            self.values_not_activated = np.array(values, dtype=float)
            self.values = self.values_not_activated.copy()

    def assign_errors(self, errors) -> None:
        errors = np.asarray(errors, dtype=float)
        if errors.shape != (self.size,):
            raise ValueError(f"Expected errors of shape ({self.size},), got {errors.shape}")
        self.errors = errors.copy()

    def activate(self) -> None:
        if self.has_activation:
            if self.is_sparse:
                raise ValueError("A sparse array cannot be activated")
            self.values = self.activation.f(self.values_not_activated)

    def calculate_activation_deriv(self) -> np.ndarray:
        if not self.has_activation:
            return np.ones(self.size)
        return self.activation.df(self.values)

    def backward_activation(self, errors: np.ndarray) -> np.ndarray:
        """Errors w.r.t. the not activated values, given errors w.r.t. the values."""
        if not self.has_activation:
            return errors
        return self.activation.backward(self.values, errors)


class LayerUnit(AugmentedArray):
    """A unit computing `values = f(W x + b)`."""

    def _affine(self, params_unit: ParametersUnit, x) -> np.ndarray:
        check_input(params_unit.weights.values, x)
        return sparse_dot(params_unit.weights.values, x) + params_unit.biases.values

    def forward(self, params_unit: ParametersUnit, x) -> None:
        self.values_not_activated = self._affine(params_unit, x)
        self.values = self.values_not_activated.copy()
        self.activate()

    def assign_params_gradients(self, params_errors_unit: ParametersUnit, x) -> None:
        """
        Overwrite the bias and weight gradients from the current errors.

        The errors must be w.r.t. the not activated values.
        """
        params_errors_unit.biases.assign_values(self.errors)
        params_errors_unit.weights.assign_values(weight_gradients(self.errors, x))

    def contributions(self, params_unit: ParametersUnit, x):
        check_input(params_unit.weights.values, x)
        return weight_contributions(params_unit.weights.values, x)


class RecurrentLayerUnit(LayerUnit):
    """A unit computing `values = f(W x + b + Wr y_prev)`."""

    def forward(self, params_unit: RecurrentParametersUnit, x, y_prev: Optional[np.ndarray] = None) -> None:
        pre = self._affine(params_unit, x)
        if y_prev is not None:
            pre = pre + params_unit.recurrent_weights.values @ y_prev
        self.values_not_activated = pre
        self.values = pre.copy()
        self.activate()

    def assign_params_gradients(
        self, params_errors_unit: RecurrentParametersUnit, x, y_prev: Optional[np.ndarray] = None
    ) -> None:
        super().assign_params_gradients(params_errors_unit, x)
        if y_prev is not None:
            params_errors_unit.recurrent_weights.assign_values(np.outer(self.errors, y_prev))
        else:
            params_errors_unit.recurrent_weights.assign_zeros()

    def recurrent_contributions(self, params_unit: RecurrentParametersUnit, y_prev: np.ndarray) -> np.ndarray:
        return params_unit.recurrent_weights.values * y_prev
