# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Layer configuration: the description of a network topology.

A network is configured by a list of LayerConfiguration. The first entry
describes the input (its size, input type and an optional activation applied
to the input features), every following entry describes a layer connected
to the previous one.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from .activations import ActivationFunction, get_activation


class LayerType:
    """Namespace of the layer type enums."""

    class Input(Enum):
        DENSE = "dense"
        SPARSE_BINARY = "sparse_binary"

    class Connection(Enum):
        FEEDFORWARD = "feedforward"
        SIMPLE_RECURRENT = "simple_recurrent"
        CFN = "cfn"
        GRU = "gru"
        RAN = "ran"

        @property
        def is_recurrent(self) -> bool:
            return self is not LayerType.Connection.FEEDFORWARD


@dataclass
class LayerConfiguration:
    size: int
    input_type: LayerType.Input = LayerType.Input.DENSE
    activation: Optional[Union[ActivationFunction, str]] = None
    connection_type: Optional[LayerType.Connection] = None
    dropout: float = 0.0

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError(f"Layer size must be positive, got {self.size}")
        if not 0.0 <= self.dropout < 1.0:
            raise ValueError(f"Dropout must be in [0, 1), got {self.dropout}")
        if isinstance(self.activation, str):
            self.activation = get_activation(self.activation)


def validate_configuration(layers_configuration: List[LayerConfiguration]) -> None:
    """
    Check that a list of configurations describes a valid network.

    Raises:
        ValueError: If there are less than two entries, if the first one has a
            connection type or if any later one does not.
    """
    if len(layers_configuration) < 2:
        raise ValueError("A network needs an input configuration and at least one layer")
    if layers_configuration[0].connection_type is not None:
        raise ValueError("The input configuration must not have a connection type")
    for i, conf in enumerate(layers_configuration[1:], start=1):
        if conf.connection_type is None:
            raise ValueError(f"Layer {i} has no connection type")
        if conf.input_type is not LayerType.Input.DENSE:
            raise ValueError(f"Only the input configuration can be sparse (layer {i})")
