# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Neural network model and the per-example network structure.

NeuralNetwork owns the configuration and the model parameters.
NetworkStructure chains one layer structure per connection for a single
example (or a single time step of a sequence).
"""

import logging
from typing import List, Optional, Sequence, Union

import numpy as np

from .activations import ActivationFunction
from .config import LayerConfiguration, LayerType, validate_configuration
from .context import EmptyContextWindow, LayerContextWindow
from .layers import LayerStructure, get_layer_structure
from .parameters import FixedRangeRandom, NetworkParameters

logger = logging.getLogger(__name__)

Activation = Optional[Union[ActivationFunction, str]]


class NeuralNetwork:
    """
    A network configuration together with its model parameters.

    Args:
        layers_configuration: Input configuration followed by one
            configuration per layer.
        dropout_seed: Seed of the generator drawing the dropout masks.

    Raises:
        ValueError: If the configuration is invalid.
    """

    def __init__(self, layers_configuration: List[LayerConfiguration], dropout_seed: Optional[int] = None) -> None:
        validate_configuration(layers_configuration)
        input_conf = layers_configuration[0]
        self.sparse_input = input_conf.input_type is LayerType.Input.SPARSE_BINARY
        if self.sparse_input and input_conf.activation is not None:
            raise ValueError("A sparse input cannot have an activation")

        self.layers_configuration = layers_configuration
        self.dropout_generator = np.random.default_rng(dropout_seed)
        self.model = self.parameters_factory()
        logger.debug("Created %r", self)

    @property
    def input_size(self) -> int:
        return self.layers_configuration[0].size

    @property
    def output_size(self) -> int:
        return self.layers_configuration[-1].size

    @property
    def num_layers(self) -> int:
        return len(self.layers_configuration) - 1

    @property
    def is_recurrent(self) -> bool:
        return any(conf.connection_type.is_recurrent for conf in self.layers_configuration[1:])

    def initialize(
        self, random_generator: Optional[FixedRangeRandom] = None, biases_init_value: float = 0.0
    ) -> "NeuralNetwork":
        self.model.initialize(random_generator or FixedRangeRandom(), biases_init_value)
        return self

    def parameters_factory(self) -> NetworkParameters:
        """A zeroed container shaped like the model (always dense)."""
        return NetworkParameters(self.layers_configuration, sparse_input=False)

    def parameters_errors_factory(self) -> NetworkParameters:
        """A zeroed gradient container (sparse input weights for a sparse input)."""
        return NetworkParameters(self.layers_configuration, sparse_input=self.sparse_input)

    def __repr__(self) -> str:
        sizes = [conf.size for conf in self.layers_configuration]
        types = [conf.connection_type.value for conf in self.layers_configuration[1:]]
        return f"NeuralNetwork(sizes={sizes}, connections={types})"


def feedforward_network(
    input_size: int,
    hidden_sizes: Sequence[int],
    output_size: int,
    hidden_activation: Activation = "tanh",
    output_activation: Activation = None,
    input_type: LayerType.Input = LayerType.Input.DENSE,
    dropout: float = 0.0,
) -> NeuralNetwork:
    """Build a network of feedforward layers."""
    confs = [LayerConfiguration(size=input_size, input_type=input_type)]
    for size in hidden_sizes:
        confs.append(
            LayerConfiguration(
                size=size,
                activation=hidden_activation,
                connection_type=LayerType.Connection.FEEDFORWARD,
                dropout=dropout,
            )
        )
    confs.append(
        LayerConfiguration(
            size=output_size,
            activation=output_activation,
            connection_type=LayerType.Connection.FEEDFORWARD,
            dropout=dropout,
        )
    )
    return NeuralNetwork(confs)


def recurrent_network(
    input_size: int,
    hidden_size: int,
    output_size: int,
    connection_type: LayerType.Connection = LayerType.Connection.RAN,
    hidden_activation: Activation = "tanh",
    output_activation: Activation = None,
    input_type: LayerType.Input = LayerType.Input.DENSE,
) -> NeuralNetwork:
    """Build a recurrent hidden layer followed by a feedforward output layer."""
    confs = [
        LayerConfiguration(size=input_size, input_type=input_type),
        LayerConfiguration(size=hidden_size, activation=hidden_activation, connection_type=connection_type),
        LayerConfiguration(
            size=output_size,
            activation=output_activation,
            connection_type=LayerType.Connection.FEEDFORWARD,
        ),
    ]
    return NeuralNetwork(confs)


class NetworkStructure:
    """
    The chain of layer structures computing one example.

    The output of each layer is the input of the next one. Only the first
    layer carries the input activation of the network.
    """

    def __init__(
        self, network: NeuralNetwork, context_windows: Optional[Sequence[LayerContextWindow]] = None
    ) -> None:
        self.network = network
        confs = network.layers_configuration
        self.layers: List[LayerStructure] = []
        for i, (prev, conf) in enumerate(zip(confs[:-1], confs[1:])):
            structure_cls = get_layer_structure(conf.connection_type)
            self.layers.append(
                structure_cls(
                    network.model[i],
                    activation=conf.activation,
                    input_activation=prev.activation if i == 0 else None,
                    dropout=conf.dropout,
                    context_window=context_windows[i] if context_windows else EmptyContextWindow(),
                    random_generator=network.dropout_generator,
                )
            )

    @property
    def input_unit(self):
        return self.layers[0].input_unit

    @property
    def output_unit(self):
        return self.layers[-1].output_unit

    def forward(self, features, use_dropout: bool = False) -> None:
        values = features
        for layer in self.layers:
            layer.set_input(values)
            layer.forward(use_dropout)
            values = layer.output_unit.values

    def backward(self, output_errors, params_errors: NetworkParameters, propagate_to_input: bool = False) -> None:
        """
        Backpropagate output_errors through the layers, from top to bottom.

        The gradients of every layer are written into params_errors.
        """
        self.output_unit.assign_errors(output_errors)
        for i in reversed(range(len(self.layers))):
            layer = self.layers[i]
            layer.backward(params_errors[i], propagate_to_input=propagate_to_input or i > 0)
            if i > 0:
                self.layers[i - 1].output_unit.assign_errors(layer.input_unit.errors)

    def calculate_relevance(self, output_relevance) -> None:
        relevance = output_relevance
        for layer in reversed(self.layers):
            layer.calculate_relevance(relevance)
            relevance = layer.input_unit.relevance

    def clear_relevance(self) -> None:
        for layer in self.layers:
            layer.clear_relevance()
