# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Update methods applying a gradient to a parameter array.

Every method keeps its per-array state (moments, velocities, ...) in a
support structure created lazily on the first update of the array and
keyed by `ParamsArray.uid`.

Only the entries with a non-zero gradient are updated, for dense and sparse
errors alike: both the array and the support state are left untouched
elsewhere (no velocity decay on the other entries).
"""

import logging
from typing import Dict, Optional

import numpy as np
import scipy.sparse as sp

from .parameters import ParamsArray
from .utils import sparse_entries

logger = logging.getLogger(__name__)


class UpdateMethod:
    """
    Base class of the update methods.

    Subclasses implement `_new_support` and `_update_entries`, where `index`
    selects the entries to update (Ellipsis when all of them are).
    """

    def __init__(self) -> None:
        self.support: Dict[int, Dict[str, np.ndarray]] = {}

    def get_support_structure(self, array: ParamsArray) -> Dict[str, np.ndarray]:
        if array.uid not in self.support:
            self.support[array.uid] = self._new_support(array.values)
        return self.support[array.uid]

    def update(self, array: ParamsArray, errors) -> None:
        """
        Apply errors (the gradient of the loss w.r.t. array) to array.

        Raises:
            TypeError: If the array to update is sparse.
            ValueError: If the errors do not match the array shape.
        """
        if sp.issparse(array.values):
            raise TypeError(f"Cannot update the sparse array {array.name}")

        support = self.get_support_structure(array)
        if sp.issparse(errors):
            index, values = sparse_entries(errors, array.shape)
            self._update_entries(array.values, support, values, index)
        else:
            errors = np.asarray(errors, dtype=float)
            if errors.shape != array.shape:
                raise ValueError(f"{array.name}: errors of shape {errors.shape} do not match {array.shape}")
            if np.all(errors != 0.0):
                self._update_entries(array.values, support, errors, Ellipsis)
            else:
                index = np.nonzero(errors)
                self._update_entries(array.values, support, errors[index], index)

    def new_epoch(self) -> None:
        pass

    def new_batch(self) -> None:
        pass

    def _new_support(self, values: np.ndarray) -> Dict[str, np.ndarray]:
        return {}

    def _update_entries(self, values: np.ndarray, support: Dict[str, np.ndarray], grad: np.ndarray, index) -> None:
        raise NotImplementedError


class HyperbolicDecay:
    """learning_rate(t) = init_learning_rate / (1 + decay * t)"""

    def __init__(self, decay: float, init_learning_rate: float) -> None:
        self.decay = decay
        self.init_learning_rate = init_learning_rate

    def update(self, time_step: int) -> float:
        return self.init_learning_rate / (1.0 + self.decay * time_step)


class LearningRateMethod(UpdateMethod):
    """
    Plain gradient descent: w -= learning_rate * g

    Raises:
        ValueError: If decay_method starts from a learning rate other than
            learning_rate.
    """

    def __init__(self, learning_rate: float = 0.001, decay_method: Optional[HyperbolicDecay] = None) -> None:
        super().__init__()
        if decay_method is not None and not np.isclose(decay_method.init_learning_rate, learning_rate):
            raise ValueError(
                f"Decay starts from learning rate {decay_method.init_learning_rate}, expected {learning_rate}"
            )
        self.learning_rate = learning_rate
        self.decay_method = decay_method
        self.epoch_count = 0

    def new_epoch(self) -> None:
        self.epoch_count += 1
        if self.decay_method is not None:
            self.learning_rate = self.decay_method.update(self.epoch_count)
            logger.debug("Learning rate decayed to %g", self.learning_rate)

    def _update_entries(self, values, support, grad, index) -> None:
        values[index] -= self.learning_rate * grad


class AdaGradMethod(LearningRateMethod):
    """
    AdaGrad.

        m += g^2
        w -= learning_rate * g / (sqrt(m) + epsilon)
    """

    def __init__(
        self,
        learning_rate: float = 0.01,
        epsilon: float = 1e-8,
        decay_method: Optional[HyperbolicDecay] = None,
    ) -> None:
        super().__init__(learning_rate, decay_method)
        self.epsilon = epsilon

    def _new_support(self, values):
        return {"second_order_moments": np.zeros_like(values)}

    def _update_entries(self, values, support, grad, index) -> None:
        m = support["second_order_moments"]
        m[index] += grad**2
        values[index] -= self.learning_rate * grad / (np.sqrt(m[index]) + self.epsilon)


class MomentumMethod(LearningRateMethod):
    """
    Classical momentum.

        v = momentum * v - learning_rate * g
        w += v
    """

    def __init__(
        self,
        learning_rate: float = 0.01,
        momentum: float = 0.9,
        decay_method: Optional[HyperbolicDecay] = None,
    ) -> None:
        super().__init__(learning_rate, decay_method)
        self.momentum = momentum

    def _new_support(self, values):
        return {"v": np.zeros_like(values)}

    def _update_entries(self, values, support, grad, index) -> None:
        v = support["v"]
        v[index] = self.momentum * v[index] - self.learning_rate * grad
        values[index] += v[index]


class NesterovMomentumMethod(MomentumMethod):
    """
    Nesterov momentum, in the form applying the look-ahead to the stored
    parameters:

        v_prev = v
        v = momentum * v - learning_rate * g
        w += -momentum * v_prev + (1 + momentum) * v
    """

    def _update_entries(self, values, support, grad, index) -> None:
        v = support["v"]
        v_prev = v[index].copy()
        v[index] = self.momentum * v_prev - self.learning_rate * grad
        values[index] += -self.momentum * v_prev + (1.0 + self.momentum) * v[index]


class ADAMMethod(UpdateMethod):
    """
    Adam with bias correction and one step counter per array.

        m = beta1 * m + (1 - beta1) * g
        v = beta2 * v + (1 - beta2) * g^2
        w -= step_size * m_hat / (sqrt(v_hat) + epsilon)
    """

    def __init__(
        self, step_size: float = 0.001, beta1: float = 0.9, beta2: float = 0.999, epsilon: float = 1e-8
    ) -> None:
        super().__init__()
        self.step_size = step_size
        self.beta1 = beta1
        self.beta2 = beta2
        self.epsilon = epsilon

    def _new_support(self, values):
        return {"m": np.zeros_like(values), "v": np.zeros_like(values), "t": np.zeros(1, dtype=int)}

    def _update_entries(self, values, support, grad, index) -> None:
        m, v, t = support["m"], support["v"], support["t"]
        t += 1

        m[index] = self.beta1 * m[index] + (1.0 - self.beta1) * grad
        v[index] = self.beta2 * v[index] + (1.0 - self.beta2) * grad**2

        m_hat = m[index] / (1.0 - self.beta1 ** t[0])
        v_hat = v[index] / (1.0 - self.beta2 ** t[0])
        values[index] -= self.step_size * m_hat / (np.sqrt(v_hat) + self.epsilon)


UPDATE_METHODS = {
    "learning_rate": LearningRateMethod,
    "adagrad": AdaGradMethod,
    "momentum": MomentumMethod,
    "nesterov": NesterovMomentumMethod,
    "adam": ADAMMethod,
}


def get_update_method(name: str, **kwargs) -> UpdateMethod:
    """
    Build an update method by name.

    Raises:
        KeyError: If the name is not recognized.
    """
    if name not in UPDATE_METHODS:
        raise KeyError(f"Unknown update method: {name}. Available: {list(UPDATE_METHODS.keys())}")
    return UPDATE_METHODS[name](**kwargs)
