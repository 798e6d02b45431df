# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np

from simplenn.context import ContextPosition, EmptyContextWindow, SequenceContextWindow
from simplenn.network import recurrent_network
from simplenn.processors import RecurrentNeuralProcessor


def test_empty_window():
    window = EmptyContextWindow()
    assert window.get_prev_state_layer() is None
    assert window.get_next_state_layer() is None
    assert window.position is ContextPosition.EMPTY


def test_sequence_window_positions():
    processor = RecurrentNeuralProcessor(recurrent_network(3, 4, 2).initialize())
    processor.forward([np.ones(3)] * 3)

    positions = [state.layers[0].context_window.position for state in processor.states]
    assert positions == [ContextPosition.FRONT, ContextPosition.BILATERAL, ContextPosition.BACK]

    window = processor.states[1].layers[1].context_window
    assert window.get_prev_state_layer() is processor.states[0].layers[1]
    assert window.get_next_state_layer() is processor.states[2].layers[1]


def test_sequence_window_sees_appended_states():
    states = []
    window = SequenceContextWindow(states, index=0, layer_index=0)
    assert window.position is ContextPosition.EMPTY

    class _State:
        layers = ["layer"]

    states.append(_State())
    states.append(_State())
    assert window.position is ContextPosition.FRONT
    assert window.get_next_state_layer() == "layer"


def test_single_state_sequence():
    processor = RecurrentNeuralProcessor(recurrent_network(3, 4, 2).initialize())
    processor.forward([np.ones(3)])
    assert processor.states[0].layers[0].context_window.position is ContextPosition.EMPTY
