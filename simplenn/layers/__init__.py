# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""Layer structures, one per connection type."""

from ..config import LayerType
from .base import LayerState, LayerStructure
from .cfn import CFNLayerStructure
from .feedforward import FeedforwardLayerStructure
from .gru import GRULayerStructure
from .ran import RANLayerStructure
from .simple_recurrent import SimpleRecurrentLayerStructure

LAYER_STRUCTURES = {
    LayerType.Connection.FEEDFORWARD: FeedforwardLayerStructure,
    LayerType.Connection.SIMPLE_RECURRENT: SimpleRecurrentLayerStructure,
    LayerType.Connection.CFN: CFNLayerStructure,
    LayerType.Connection.GRU: GRULayerStructure,
    LayerType.Connection.RAN: RANLayerStructure,
}


def get_layer_structure(connection_type: LayerType.Connection) -> type:
    """
    Get the LayerStructure class of a connection type.

    Raises:
        KeyError: If the connection type has no layer structure.
    """
    if connection_type not in LAYER_STRUCTURES:
        raise KeyError(f"Unknown connection type: {connection_type}. Available: {list(LAYER_STRUCTURES.keys())}")
    return LAYER_STRUCTURES[connection_type]


__all__ = [
    "LayerState",
    "LayerStructure",
    "FeedforwardLayerStructure",
    "SimpleRecurrentLayerStructure",
    "CFNLayerStructure",
    "GRULayerStructure",
    "RANLayerStructure",
    "LAYER_STRUCTURES",
    "get_layer_structure",
]
