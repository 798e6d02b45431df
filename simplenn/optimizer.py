# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Gradient accumulation and parameter optimization.

Typical batch loop:

    optimizer = ParamsOptimizer(network.model, AdaGradMethod(), network.parameters_errors_factory)
    for x, gold in batch:
        processor.forward(x)
        processor.backward(loss.calculate_errors(processor.get_output(), gold))
        optimizer.accumulate(processor.get_params_errors(copy=False))
    optimizer.update()
"""

import logging
from functools import partial
from typing import Callable, Optional

from .parameters import NetworkParameters
from .updatemethods import UpdateMethod

logger = logging.getLogger(__name__)


class ParamsErrorsAccumulator:
    """
    Sum of gradient containers.

    Args:
        params_errors_factory: Builds a zeroed container compatible with the
            accumulated ones.
    """

    def __init__(self, params_errors_factory: Callable[[], NetworkParameters]) -> None:
        self.params_errors_factory = params_errors_factory
        self.params_errors = params_errors_factory()
        self.count = 0

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    def accumulate(self, params_errors: NetworkParameters) -> None:
        """
        Copy params_errors in (first call after a reset) or sum it in place.

        The first copy keeps the layout of params_errors, so sparse input
        weights stay sparse whatever the factory builds.

        Raises:
            ValueError: If params_errors has a different structure.
        """
        if params_errors.structure != self.params_errors.structure:
            raise ValueError("Cannot accumulate params errors of a different structure")
        if self.count == 0:
            self.params_errors = params_errors.copy()
        else:
            self.params_errors.assign_sum(params_errors)
        self.count += 1

    def average_errors(self) -> None:
        if self.count != 0:
            self.params_errors.assign_div(self.count)

    def reset(self) -> None:
        self.count = 0

    def get_params_errors(self) -> NetworkParameters:
        """The accumulated errors, or a fresh zeroed container if empty."""
        if self.is_empty:
            return self.params_errors_factory()
        return self.params_errors


class ParamsOptimizer:
    """
    Applies the averaged accumulated errors to the parameters.

    Args:
        params: The parameters to optimize (usually `network.model`).
        update_method: The UpdateMethod applied to each array.
        params_errors_factory: Factory of the gradient containers; defaults to
            dense containers shaped like params.
    """

    def __init__(
        self,
        params: NetworkParameters,
        update_method: UpdateMethod,
        params_errors_factory: Optional[Callable[[], NetworkParameters]] = None,
    ) -> None:
        self.params = params
        self.update_method = update_method
        if params_errors_factory is None:
            params_errors_factory = partial(NetworkParameters, params.layers_configuration, sparse_input=False)
        self.accumulator = ParamsErrorsAccumulator(params_errors_factory)

    def accumulate(self, params_errors: NetworkParameters) -> None:
        self.accumulator.accumulate(params_errors)

    def update(self) -> None:
        if self.accumulator.is_empty:
            logger.warning("update called with no accumulated params errors, skipping")
            return

        logger.debug("Updating parameters with %d accumulated examples", self.accumulator.count)
        self.accumulator.average_errors()
        for array, errors in zip(self.params, self.accumulator.params_errors):
            self.update_method.update(array, errors.values)
        self.accumulator.reset()

    def new_epoch(self) -> None:
        self.update_method.new_epoch()

    def new_batch(self) -> None:
        self.update_method.new_batch()
