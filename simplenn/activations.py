# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Activation functions for the layer units.

Every function works on dense 1-D arrays and exposes:
- f(x): the activation itself
- df(y): the derivative, computed from the *activated* values y
- backward(y, errors): errors w.r.t. the activation input, given errors
  w.r.t. its output (elementwise for all but Softmax)
"""

import numpy as np
from scipy.special import expit


class ActivationFunction:
    """Base class of the elementwise activation functions."""

    def f(self, x: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def df(self, y: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def backward(self, y: np.ndarray, errors: np.ndarray) -> np.ndarray:
        """
        Backpropagate errors through the activation.

        Args:
            y: Activated values (output of f).
            errors: Gradient w.r.t. y.

        Returns:
            Gradient w.r.t. the activation input.
        """
        return errors * self.df(y)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Sigmoid(ActivationFunction):
    """Logistic sigmoid: 1 / (1 + exp(-x))."""

    def f(self, x: np.ndarray) -> np.ndarray:
        return expit(x)

    def df(self, y: np.ndarray) -> np.ndarray:
        return y * (1.0 - y)


class Tanh(ActivationFunction):
    """Hyperbolic tangent."""

    def f(self, x: np.ndarray) -> np.ndarray:
        return np.tanh(x)

    def df(self, y: np.ndarray) -> np.ndarray:
        return 1.0 - y**2


class ReLU(ActivationFunction):
    """Rectified Linear Unit: max(0, x)."""

    def f(self, x: np.ndarray) -> np.ndarray:
        return np.maximum(0.0, x)

    def df(self, y: np.ndarray) -> np.ndarray:
        return (y > 0.0).astype(y.dtype)


class ELU(ActivationFunction):
    """
    Exponential Linear Unit.

    ELU(x) = x if x > 0 else alpha * (exp(x) - 1)
    """

    def __init__(self, alpha: float = 1.0) -> None:
        self.alpha = alpha

    def f(self, x: np.ndarray) -> np.ndarray:
        return np.where(x > 0.0, x, self.alpha * np.expm1(np.minimum(x, 0.0)))

    def df(self, y: np.ndarray) -> np.ndarray:
        # for x <= 0: d/dx alpha * (e^x - 1) = alpha * e^x = y + alpha
        return np.where(y > 0.0, 1.0, y + self.alpha)

    def __repr__(self) -> str:
        return f"ELU(alpha={self.alpha})"


class Softmax(ActivationFunction):
    """Numerically stable softmax over a 1-D vector."""

    def f(self, x: np.ndarray) -> np.ndarray:
        z = x - x.max()
        e = np.exp(z)
        return e / e.sum()

    def df(self, y: np.ndarray) -> np.ndarray:
        """Diagonal of the Jacobian only; backward uses the full one."""
        return y * (1.0 - y)

    def backward(self, y: np.ndarray, errors: np.ndarray) -> np.ndarray:
        # J = diag(y) - y yᵀ  ->  Jᵀ g = y * (g - g·y)
        return y * (errors - errors @ y)


# Registry for easy lookup by name
ACTIVATIONS = {
    "sigmoid": Sigmoid,
    "tanh": Tanh,
    "relu": ReLU,
    "elu": ELU,
    "softmax": Softmax,
}


def get_activation(name: str) -> ActivationFunction:
    """
    Get a new activation function instance by name.

    Args:
        name: One of 'sigmoid', 'tanh', 'relu', 'elu', 'softmax'.

    Returns:
        ActivationFunction instance.

    Raises:
        KeyError: If activation name is not recognized.
    """
    if name not in ACTIVATIONS:
        raise KeyError(f"Unknown activation: {name}. Available: {list(ACTIVATIONS.keys())}")
    return ACTIVATIONS[name]()
