# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Parameter containers.

A LayerParameters groups the arrays of one layer in a fixed, architecture
defined order (gates first, then the candidate). Two containers built with
the same architecture, sizes and sparsity are shape compatible and can be
zipped element by element.
"""

import itertools
import logging
from typing import Iterator, List, Optional, Tuple

import numpy as np
import scipy.sparse as sp

from .config import LayerConfiguration, LayerType

logger = logging.getLogger(__name__)

_uids = itertools.count()


class ParamsArray:
    """
    A named, independently mutable parameter array.

    The uid is assigned once at construction and identifies the array for
    the support structures of the update methods.
    """

    WEIGHTS = "weights"
    BIASES = "biases"
    RECURRENT_WEIGHTS = "recurrent_weights"

    def __init__(self, name: str, kind: str, values) -> None:
        self.name = name
        self.kind = kind
        self.values = values
        self.uid = next(_uids)

    @classmethod
    def zeros(cls, name: str, kind: str, shape: Tuple[int, ...], sparse: bool = False) -> "ParamsArray":
        values = sp.csc_matrix(shape) if sparse else np.zeros(shape)
        return cls(name, kind, values)

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(self.values.shape)

    @property
    def is_sparse(self) -> bool:
        return sp.issparse(self.values)

    def assign_values(self, values) -> None:
        """Overwrite the values with a copy of the given ones."""
        if tuple(values.shape) != self.shape:
            raise ValueError(f"{self.name}: shape {values.shape} does not match {self.shape}")
        if self.is_sparse:
            self.values = sp.csc_matrix(values, copy=True)
        elif sp.issparse(values):
            self.values[...] = values.toarray()
        else:
            self.values[...] = values

    def assign_sum(self, values) -> None:
        if tuple(values.shape) != self.shape:
            raise ValueError(f"{self.name}: shape {values.shape} does not match {self.shape}")
        if self.is_sparse:
            self.values = (self.values + sp.csc_matrix(values)).tocsc()
        elif sp.issparse(values):
            self.values += values.toarray()
        else:
            self.values += values

    def assign_div(self, value: float) -> None:
        if self.is_sparse:
            self.values = (self.values / value).tocsc()
        else:
            self.values /= value

    def assign_zeros(self) -> None:
        if self.is_sparse:
            self.values = sp.csc_matrix(self.shape)
        else:
            self.values.fill(0.0)

    def copy(self) -> "ParamsArray":
        return ParamsArray(self.name, self.kind, self.values.copy())

    def __repr__(self) -> str:
        kind = "sparse" if self.is_sparse else "dense"
        return f"ParamsArray({self.name!r}, shape={self.shape}, {kind}, uid={self.uid})"


class ParametersUnit:
    """Weights (out, in) and biases (out,) connecting an input to an output."""

    def __init__(self, input_size: int, output_size: int, sparse_input: bool = False, name: str = "unit") -> None:
        self.input_size = input_size
        self.output_size = output_size
        self.sparse_input = sparse_input
        self.weights = ParamsArray.zeros(
            f"{name}.weights", ParamsArray.WEIGHTS, (output_size, input_size), sparse=sparse_input
        )
        self.biases = ParamsArray.zeros(f"{name}.biases", ParamsArray.BIASES, (output_size,))

    @property
    def params_list(self) -> List[ParamsArray]:
        return [self.weights, self.biases]


class RecurrentParametersUnit(ParametersUnit):
    """ParametersUnit with the additional recurrent weights (out, out)."""

    def __init__(self, input_size: int, output_size: int, sparse_input: bool = False, name: str = "unit") -> None:
        super().__init__(input_size, output_size, sparse_input=sparse_input, name=name)
        self.recurrent_weights = ParamsArray.zeros(
            f"{name}.recurrent_weights", ParamsArray.RECURRENT_WEIGHTS, (output_size, output_size)
        )

    @property
    def params_list(self) -> List[ParamsArray]:
        return [self.weights, self.biases, self.recurrent_weights]


class FixedRangeRandom:
    """
    Random generator of values uniformly distributed in [-radius, radius].

    With enable_pseudo_random the sequence is reproducible from the seed.
    """

    def __init__(self, radius: float = 0.08, enable_pseudo_random: bool = True, seed: int = 743) -> None:
        self.radius = radius
        self.rng = np.random.default_rng(seed if enable_pseudo_random else None)

    def next(self) -> float:
        return float(self.rng.uniform(-self.radius, self.radius))

    def randomize(self, array: np.ndarray) -> None:
        array[...] = self.rng.uniform(-self.radius, self.radius, size=array.shape)


class LayerParameters:
    """
    Base container of the parameters of a layer.

    Subclasses build their units and set `params_list` in the fixed order
    used for iteration, summation, copying and updates.
    """

    connection_type: LayerType.Connection

    def __init__(self, input_size: int, output_size: int, sparse_input: bool = False) -> None:
        self.input_size = input_size
        self.output_size = output_size
        self.sparse_input = sparse_input
        self.params_list: List[ParamsArray] = []

    def __iter__(self) -> Iterator[ParamsArray]:
        return iter(self.params_list)

    def __len__(self) -> int:
        return len(self.params_list)

    @property
    def structure(self) -> Tuple:
        """Names and shapes of the arrays, equal for compatible containers."""
        return tuple((p.name, p.shape) for p in self.params_list)

    def initialize(self, random_generator: FixedRangeRandom, biases_init_value: float = 0.0) -> None:
        """
        Randomize the weights with the given generator and set every bias to
        biases_init_value.

        Raises:
            ValueError: If the weights connected to the input are sparse.
        """
        if self.sparse_input:
            raise ValueError("Cannot randomize sparse weights")

        for param in self.params_list:
            if param.kind == ParamsArray.BIASES:
                param.values.fill(biases_init_value)
            else:
                random_generator.randomize(param.values)

    def copy(self) -> "LayerParameters":
        clone = type(self)(self.input_size, self.output_size, sparse_input=self.sparse_input)
        for a, b in zip(clone, self):
            a.assign_values(b.values)
        return clone


class FeedforwardLayerParameters(LayerParameters):
    connection_type = LayerType.Connection.FEEDFORWARD

    def __init__(self, input_size: int, output_size: int, sparse_input: bool = False) -> None:
        super().__init__(input_size, output_size, sparse_input)
        self.unit = ParametersUnit(input_size, output_size, sparse_input, name="unit")
        self.params_list = self.unit.params_list


class SimpleRecurrentLayerParameters(LayerParameters):
    connection_type = LayerType.Connection.SIMPLE_RECURRENT

    def __init__(self, input_size: int, output_size: int, sparse_input: bool = False) -> None:
        super().__init__(input_size, output_size, sparse_input)
        self.unit = RecurrentParametersUnit(input_size, output_size, sparse_input, name="unit")
        self.params_list = self.unit.params_list


class CFNLayerParameters(LayerParameters):
    """Input gate, forget gate and the candidate weights (no candidate biases)."""

    connection_type = LayerType.Connection.CFN

    def __init__(self, input_size: int, output_size: int, sparse_input: bool = False) -> None:
        super().__init__(input_size, output_size, sparse_input)
        self.input_gate = RecurrentParametersUnit(input_size, output_size, sparse_input, name="input_gate")
        self.forget_gate = RecurrentParametersUnit(input_size, output_size, sparse_input, name="forget_gate")
        self.candidate_weights = ParamsArray.zeros(
            "candidate.weights", ParamsArray.WEIGHTS, (output_size, input_size), sparse=sparse_input
        )
        self.params_list = (
            self.input_gate.params_list + self.forget_gate.params_list + [self.candidate_weights]
        )


class GRULayerParameters(LayerParameters):
    connection_type = LayerType.Connection.GRU

    def __init__(self, input_size: int, output_size: int, sparse_input: bool = False) -> None:
        super().__init__(input_size, output_size, sparse_input)
        self.reset_gate = RecurrentParametersUnit(input_size, output_size, sparse_input, name="reset_gate")
        self.partition_gate = RecurrentParametersUnit(input_size, output_size, sparse_input, name="partition_gate")
        self.candidate = RecurrentParametersUnit(input_size, output_size, sparse_input, name="candidate")
        self.params_list = (
            self.reset_gate.params_list + self.partition_gate.params_list + self.candidate.params_list
        )


class RANLayerParameters(LayerParameters):
    connection_type = LayerType.Connection.RAN

    def __init__(self, input_size: int, output_size: int, sparse_input: bool = False) -> None:
        super().__init__(input_size, output_size, sparse_input)
        self.input_gate = RecurrentParametersUnit(input_size, output_size, sparse_input, name="input_gate")
        self.forget_gate = RecurrentParametersUnit(input_size, output_size, sparse_input, name="forget_gate")
        self.candidate = ParametersUnit(input_size, output_size, sparse_input, name="candidate")
        self.params_list = (
            self.input_gate.params_list + self.forget_gate.params_list + self.candidate.params_list
        )


LAYER_PARAMETERS = {
    LayerType.Connection.FEEDFORWARD: FeedforwardLayerParameters,
    LayerType.Connection.SIMPLE_RECURRENT: SimpleRecurrentLayerParameters,
    LayerType.Connection.CFN: CFNLayerParameters,
    LayerType.Connection.GRU: GRULayerParameters,
    LayerType.Connection.RAN: RANLayerParameters,
}


def layer_parameters_factory(
    input_size: int,
    output_size: int,
    connection_type: LayerType.Connection,
    sparse_input: bool = False,
) -> LayerParameters:
    """Build the LayerParameters of the given connection type."""
    if connection_type not in LAYER_PARAMETERS:
        raise KeyError(f"Unknown connection type: {connection_type}. Available: {list(LAYER_PARAMETERS.keys())}")
    return LAYER_PARAMETERS[connection_type](input_size, output_size, sparse_input=sparse_input)


class NetworkParameters:
    """
    The parameters of a whole network: one LayerParameters per connection.

    Only the weights connected to the network input can be sparse.
    """

    def __init__(self, layers_configuration: List[LayerConfiguration], sparse_input: bool = False) -> None:
        self.layers_configuration = layers_configuration
        self.sparse_input = sparse_input
        self.params_per_layer: List[LayerParameters] = [
            layer_parameters_factory(
                input_size=prev.size,
                output_size=conf.size,
                connection_type=conf.connection_type,
                sparse_input=sparse_input and i == 0,
            )
            for i, (prev, conf) in enumerate(zip(layers_configuration[:-1], layers_configuration[1:]))
        ]

    def __iter__(self) -> Iterator[ParamsArray]:
        for layer_params in self.params_per_layer:
            yield from layer_params

    def __len__(self) -> int:
        return sum(len(p) for p in self.params_per_layer)

    def __getitem__(self, index: int) -> LayerParameters:
        return self.params_per_layer[index]

    @property
    def structure(self) -> Tuple:
        return tuple(p.structure for p in self.params_per_layer)

    def initialize(self, random_generator: Optional[FixedRangeRandom] = None, biases_init_value: float = 0.0) -> None:
        random_generator = random_generator or FixedRangeRandom()
        for layer_params in self.params_per_layer:
            layer_params.initialize(random_generator, biases_init_value)
        logger.debug("Initialized %d parameter arrays", len(self))

    def _check_compatible(self, other: "NetworkParameters") -> None:
        if other.structure != self.structure:
            raise ValueError("Incompatible network parameters structure")

    def assign_values(self, other: "NetworkParameters") -> None:
        self._check_compatible(other)
        for a, b in zip(self, other):
            a.assign_values(b.values)

    def assign_sum(self, other: "NetworkParameters") -> None:
        self._check_compatible(other)
        for a, b in zip(self, other):
            a.assign_sum(b.values)

    def assign_div(self, value: float) -> None:
        for param in self:
            param.assign_div(value)

    def assign_zeros(self) -> None:
        for param in self:
            param.assign_zeros()

    def copy(self) -> "NetworkParameters":
        clone = NetworkParameters(self.layers_configuration, sparse_input=self.sparse_input)
        clone.assign_values(self)
        return clone
