# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Neural processors: the forward/backward/relevance interface of a network.

FeedforwardNeuralProcessor computes one example at a time.
RecurrentNeuralProcessor keeps one NetworkStructure per time step of the
current sequence and runs backpropagation through time over them.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from .context import SequenceContextWindow
from .network import NetworkStructure, NeuralNetwork
from .parameters import NetworkParameters
from .relevance import normalize_relevance

logger = logging.getLogger(__name__)


def _copy(values, copy: bool):
    return values.copy() if copy else values


class FeedforwardNeuralProcessor:
    """
    Processor of single examples.

    Example:
        >>> processor = FeedforwardNeuralProcessor(network)
        >>> y = processor.forward(x)
        >>> processor.backward(y - gold)
        >>> optimizer.accumulate(processor.get_params_errors(copy=False))
    """

    def __init__(self, network: NeuralNetwork) -> None:
        self.network = network
        self.structure = NetworkStructure(network)
        self.params_errors = network.parameters_errors_factory()
        self._input_errors_available = False

    def forward(self, features, use_dropout: bool = False) -> np.ndarray:
        self.structure.forward(features, use_dropout)
        self._input_errors_available = False
        return self.get_output()

    def backward(self, output_errors, propagate_to_input: bool = False) -> None:
        """
        Raises:
            RuntimeError: If called without a forward since the last backward.
            ValueError: If propagate_to_input is requested for a sparse input.
        """
        if propagate_to_input and self.network.sparse_input:
            raise ValueError("Input errors are not defined for a sparse input")
        self.structure.backward(output_errors, self.params_errors, propagate_to_input)
        self._input_errors_available = propagate_to_input

    def get_output(self, copy: bool = True) -> np.ndarray:
        return _copy(self.structure.output_unit.values, copy)

    def get_params_errors(self, copy: bool = True) -> NetworkParameters:
        return self.params_errors.copy() if copy else self.params_errors

    def get_input_errors(self, copy: bool = True) -> np.ndarray:
        if self.network.sparse_input:
            raise ValueError("Input errors are not defined for a sparse input")
        if not self._input_errors_available:
            raise RuntimeError("Input errors were not propagated by the last backward")
        return _copy(self.structure.input_unit.errors, copy)

    def calculate_relevance(self, relevant_outcomes_distribution) -> None:
        self.structure.clear_relevance()
        self.structure.calculate_relevance(normalize_relevance(relevant_outcomes_distribution))

    def get_input_relevance(self, copy: bool = True):
        relevance = self.structure.input_unit.relevance
        if relevance is None:
            raise RuntimeError("Relevance has not been calculated")
        return _copy(relevance, copy)


class RecurrentNeuralProcessor:
    """
    Processor of sequences.

    The parameters are shared by all the time steps; the gradient returned by
    get_params_errors after a backward is the sum over the sequence.
    """

    def __init__(self, network: NeuralNetwork) -> None:
        self.network = network
        self.states: List[NetworkStructure] = []
        self.params_errors = network.parameters_errors_factory()
        self._step_params_errors = network.parameters_errors_factory()
        self._input_errors_available = False

    def forward(self, sequence: Sequence, use_dropout: bool = False) -> List[np.ndarray]:
        """Forward a whole new sequence and return the outputs of every step."""
        if len(sequence) == 0:
            raise ValueError("Cannot forward an empty sequence")
        for i, features in enumerate(sequence):
            self.forward_step(features, first_state=i == 0, use_dropout=use_dropout)
        logger.debug("Forwarded a sequence of %d states", len(self.states))
        return self.get_outputs()

    def forward_step(self, features, first_state: bool = False, use_dropout: bool = False) -> np.ndarray:
        """Forward one more step of the current sequence (a new one if first_state)."""
        if first_state:
            self.states = []
            self._input_errors_available = False

        index = len(self.states)
        windows = [
            SequenceContextWindow(self.states, index, layer_index) for layer_index in range(self.network.num_layers)
        ]
        structure = NetworkStructure(self.network, windows)
        self.states.append(structure)
        structure.forward(features, use_dropout)
        return self.get_output()

    def get_output(self, copy: bool = True) -> np.ndarray:
        if not self.states:
            raise RuntimeError("No state has been forwarded")
        return _copy(self.states[-1].output_unit.values, copy)

    def get_outputs(self, copy: bool = True) -> List[np.ndarray]:
        return [_copy(state.output_unit.values, copy) for state in self.states]

    def backward(self, output_errors: Sequence[Optional[np.ndarray]], propagate_to_input: bool = False) -> None:
        """
        Backpropagation through time over the current sequence.

        Args:
            output_errors: One errors array per state; None means no errors at
                that state.
            propagate_to_input: Also compute the errors of every input.

        Raises:
            ValueError: If the number of errors does not match the number of
                states, or if input errors are requested for a sparse input.
        """
        if len(output_errors) != len(self.states):
            raise ValueError(f"Got {len(output_errors)} errors for {len(self.states)} states")
        if propagate_to_input and self.network.sparse_input:
            raise ValueError("Input errors are not defined for a sparse input")

        self.params_errors.assign_zeros()
        for index in reversed(range(len(self.states))):
            errors = output_errors[index]
            if errors is None:
                errors = np.zeros(self.network.output_size)
            self.states[index].backward(errors, self._step_params_errors, propagate_to_input)
            self.params_errors.assign_sum(self._step_params_errors)

        self._input_errors_available = propagate_to_input
        logger.debug("Backwarded a sequence of %d states", len(self.states))

    def get_params_errors(self, copy: bool = True) -> NetworkParameters:
        return self.params_errors.copy() if copy else self.params_errors

    def get_input_errors(self, state: int, copy: bool = True) -> np.ndarray:
        if self.network.sparse_input:
            raise ValueError("Input errors are not defined for a sparse input")
        if not self._input_errors_available:
            raise RuntimeError("Input errors were not propagated by the last backward")
        return _copy(self.states[state].input_unit.errors, copy)

    def get_inputs_errors(self, copy: bool = True) -> List[np.ndarray]:
        return [self.get_input_errors(i, copy) for i in range(len(self.states))]

    def calculate_relevance(self, relevant_outcomes_distribution, state_to: Optional[int] = None) -> None:
        """
        Propagate the relevance of the outcome at state_to (default: the last
        state) back onto the inputs of every state up to it.
        """
        if not self.states:
            raise RuntimeError("No state has been forwarded")
        if state_to is None:
            state_to = len(self.states) - 1

        for state in self.states:
            state.clear_relevance()

        relevance = normalize_relevance(relevant_outcomes_distribution)
        no_relevance = np.zeros(self.network.output_size)
        for index in range(state_to, -1, -1):
            self.states[index].calculate_relevance(relevance if index == state_to else no_relevance)
        logger.debug("Relevance propagated from state %d", state_to)

    def get_input_relevance(self, state: int, copy: bool = True):
        relevance = self.states[state].input_unit.relevance
        if relevance is None:
            raise RuntimeError(f"Relevance has not been calculated for state {state}")
        return _copy(relevance, copy)
