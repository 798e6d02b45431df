# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
simplenn
========

A small numpy neural-network core: feedforward and recurrent layers
(simple recurrent, CFN, GRU, RAN) trained with hand-derived
backpropagation through time, layer-wise relevance propagation and
sparse-aware update methods.

Public API
~~~~~~~~~~
- Configuration
    - `LayerType`, `LayerConfiguration`
    - `NeuralNetwork`, `feedforward_network`, `recurrent_network`
- Processing
    - `FeedforwardNeuralProcessor`, `RecurrentNeuralProcessor`
- Training
    - `ParamsOptimizer`, `ParamsErrorsAccumulator`
    - `LearningRateMethod`, `HyperbolicDecay`, `AdaGradMethod`,
      `MomentumMethod`, `NesterovMomentumMethod`, `ADAMMethod`
    - `MSECalculator`, `CrossEntropyCalculator`
- Parameters
    - `NetworkParameters`, `ParamsArray`, `FixedRangeRandom`
- Helpers
    - `get_activation`, `sparse_binary`

Everything else lives in sub-modules and is **not** considered part of the
stable interface.

Example
-------
>>> import numpy as np, simplenn as nn
>>> net = nn.recurrent_network(4, 8, 2).initialize()
>>> processor = nn.RecurrentNeuralProcessor(net)
>>> outputs = processor.forward([np.ones(4), np.zeros(4)])
>>> len(outputs)
2
"""

from importlib.metadata import version as _pkg_version

from .activations import ACTIVATIONS, ActivationFunction, get_activation
from .config import LayerConfiguration, LayerType
from .losses import CrossEntropyCalculator, LossCalculator, MSECalculator
from .network import NetworkStructure, NeuralNetwork, feedforward_network, recurrent_network
from .optimizer import ParamsErrorsAccumulator, ParamsOptimizer
from .parameters import FixedRangeRandom, NetworkParameters, ParamsArray
from .processors import FeedforwardNeuralProcessor, RecurrentNeuralProcessor
from .updatemethods import (
    ADAMMethod,
    AdaGradMethod,
    HyperbolicDecay,
    LearningRateMethod,
    MomentumMethod,
    NesterovMomentumMethod,
    UpdateMethod,
    get_update_method,
)
from .utils import sparse_binary

__all__ = [
    "ACTIVATIONS",
    "ActivationFunction",
    "get_activation",
    "LayerConfiguration",
    "LayerType",
    "NeuralNetwork",
    "NetworkStructure",
    "feedforward_network",
    "recurrent_network",
    "FeedforwardNeuralProcessor",
    "RecurrentNeuralProcessor",
    "ParamsErrorsAccumulator",
    "ParamsOptimizer",
    "UpdateMethod",
    "LearningRateMethod",
    "HyperbolicDecay",
    "AdaGradMethod",
    "MomentumMethod",
    "NesterovMomentumMethod",
    "ADAMMethod",
    "get_update_method",
    "LossCalculator",
    "MSECalculator",
    "CrossEntropyCalculator",
    "FixedRangeRandom",
    "NetworkParameters",
    "ParamsArray",
    "sparse_binary",
]

try:  # installed via pip / build backend
    __version__ = _pkg_version(__name__)
except Exception:  # running from a checkout
    __version__ = "0.0.0.dev0"

import logging as _logging

_logging.getLogger(__name__).addHandler(_logging.NullHandler())
