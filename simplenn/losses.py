# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Loss calculators used by training loops to produce the output errors.

The errors are w.r.t. the (activated) output values, as expected by the
backward of the processors.
"""

import numpy as np


class LossCalculator:
    def calculate_errors(self, output: np.ndarray, gold: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def calculate_loss(self, output: np.ndarray, gold: np.ndarray) -> float:
        raise NotImplementedError

    def calculate_mean_loss(self, outputs, golds) -> float:
        """Mean loss over a sequence or a batch of outputs."""
        losses = [self.calculate_loss(y, g) for y, g in zip(outputs, golds)]
        return float(np.mean(losses)) if losses else 0.0


class MSECalculator(LossCalculator):
    """loss = 0.5 * sum((y - gold)^2), errors = y - gold"""

    def calculate_errors(self, output: np.ndarray, gold: np.ndarray) -> np.ndarray:
        return np.asarray(output, dtype=float) - np.asarray(gold, dtype=float)

    def calculate_loss(self, output: np.ndarray, gold: np.ndarray) -> float:
        diff = self.calculate_errors(output, gold)
        return float(0.5 * np.sum(diff**2))


class CrossEntropyCalculator(LossCalculator):
    """
    loss = -sum(gold * log(y)), errors = -gold / y

    Meant for a Softmax output: through its backward the errors become
    y - gold on the softmax input.
    """

    def __init__(self, eps: float = 1e-12) -> None:
        self.eps = eps

    def calculate_errors(self, output: np.ndarray, gold: np.ndarray) -> np.ndarray:
        output = np.maximum(np.asarray(output, dtype=float), self.eps)
        return -np.asarray(gold, dtype=float) / output

    def calculate_loss(self, output: np.ndarray, gold: np.ndarray) -> float:
        output = np.maximum(np.asarray(output, dtype=float), self.eps)
        return float(-np.sum(np.asarray(gold, dtype=float) * np.log(output)))
