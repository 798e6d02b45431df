# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Context windows: access to the same layer at the adjacent time steps.

A context window never owns layers. The sequence variant only stores a
handle to the processor's list of per-step network structures and looks
the neighbours up by index, so a step can be forwarded before its successor
exists.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Sequence


class ContextPosition(Enum):
    EMPTY = "empty"
    BACK = "back"
    FRONT = "front"
    BILATERAL = "bilateral"


class LayerContextWindow(ABC):
    @abstractmethod
    def get_prev_state_layer(self):
        """The layer at the previous time step, or None."""

    @abstractmethod
    def get_next_state_layer(self):
        """The layer at the next time step, or None."""

    @property
    def position(self) -> ContextPosition:
        has_prev = self.get_prev_state_layer() is not None
        has_next = self.get_next_state_layer() is not None
        if has_prev and has_next:
            return ContextPosition.BILATERAL
        if has_prev:
            return ContextPosition.BACK
        if has_next:
            return ContextPosition.FRONT
        return ContextPosition.EMPTY


class EmptyContextWindow(LayerContextWindow):
    def get_prev_state_layer(self):
        return None

    def get_next_state_layer(self):
        return None


class SequenceContextWindow(LayerContextWindow):
    """
    Args:
        states: The append-only list of per-step structures (anything with a
            `layers` sequence).
        index: The time step of the owning layer.
        layer_index: The position of the owning layer in its structure.
    """

    def __init__(self, states: Sequence, index: int, layer_index: int) -> None:
        self.states = states
        self.index = index
        self.layer_index = layer_index

    def _layer_at(self, index: int) -> Optional[object]:
        if 0 <= index < len(self.states):
            return self.states[index].layers[self.layer_index]
        return None

    def get_prev_state_layer(self):
        return self._layer_at(self.index - 1)

    def get_next_state_layer(self):
        return self._layer_at(self.index + 1)
