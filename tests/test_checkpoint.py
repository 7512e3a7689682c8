"""
Phase-state checkpoint payload.

Tests:
1. Round trip through a text stream restores phase_state and old_phase_state
2. Payload is one integer followed by a blank per vertex
3. Closed / non-writable / exhausted streams and invalid tokens raise CheckpointIOError naming the vertex
"""

from __future__ import annotations

import io

import pytest

from core.types import PhaseState
from output.checkpoint import (
    CheckpointIOError,
    deserialize_entity,
    read_phase_states,
    serialize_entity,
    write_phase_states,
)


def test_round_trip_restores_states(model_factory):
    model = model_factory(n_cells=2)
    states = [PhaseState.WETTING_ONLY, PhaseState.BOTH_PHASES, PhaseState.NONWETTING_ONLY]
    for v, s in enumerate(states):
        model.switch.vertex_data(v).phase_state = s

    stream = io.StringIO()
    assert model.serialize(stream) == 3
    assert stream.getvalue() == "1 2 0 "

    restored = model_factory(n_cells=2)
    stream.seek(0)
    assert restored.deserialize(stream) == 3
    for v, s in enumerate(states):
        assert restored.phase_state(v) == s
        assert restored.phase_state(v, old=True) == s


def test_single_entity_round_trip(model_factory):
    model = model_factory(n_cells=1, phase_state=PhaseState.NONWETTING_ONLY)
    stream = io.StringIO()
    serialize_entity(stream, model.switch, 1)
    model.switch.vertex_data(1).phase_state = PhaseState.BOTH_PHASES
    stream.seek(0)
    deserialize_entity(stream, model.switch, 1)
    assert model.phase_state(1) == PhaseState.NONWETTING_ONLY
    assert model.phase_state(1, old=True) == PhaseState.NONWETTING_ONLY


def test_closed_stream_raises(model_factory):
    model = model_factory(n_cells=1)
    stream = io.StringIO()
    stream.close()
    with pytest.raises(CheckpointIOError, match="Could not serialize vertex 1"):
        serialize_entity(stream, model.switch, 1)
    with pytest.raises(CheckpointIOError, match="Could not deserialize vertex 0"):
        deserialize_entity(stream, model.switch, 0)


def test_read_only_stream_cannot_serialize(model_factory, tmp_path):
    model = model_factory(n_cells=1)
    path = tmp_path / "phase_state.txt"
    path.write_text("2 2 ", encoding="utf-8")
    with path.open("r", encoding="utf-8") as stream:
        with pytest.raises(CheckpointIOError, match="vertex 0"):
            write_phase_states(stream, model.switch)


def test_exhausted_stream_raises(model_factory):
    model = model_factory(n_cells=2)
    with pytest.raises(CheckpointIOError, match="Could not deserialize vertex 2"):
        read_phase_states(io.StringIO("1 1 "), model.switch)


def test_invalid_token_raises(model_factory):
    model = model_factory(n_cells=1)
    with pytest.raises(CheckpointIOError, match="Could not deserialize vertex 0"):
        deserialize_entity(io.StringIO("7 "), model.switch, 0)
    with pytest.raises(CheckpointIOError, match="vertex 1"):
        deserialize_entity(io.StringIO("x"), model.switch, 1)
